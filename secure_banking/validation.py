"""
Checksum Validation Module

Pure validators for payment card numbers, ABA routing numbers, bank account
numbers and birth-date eligibility. One shared implementation serves both the
intake models and any server-side re-validation.

Validators never raise on malformed input: structural problems (empty,
wrong length, non-digit characters) and checksum failures both come back as
rejected ValidationResults, told apart by their RejectionReason.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Union


class RejectionReason(Enum):
    """Reason codes attached to rejected values"""
    BAD_LENGTH = "bad-length"
    NON_DIGIT = "non-digit"
    CHECKSUM_MISMATCH = "checksum-mismatch"
    UNKNOWN_BRAND = "unknown-brand"
    FUTURE_DATE = "future-date"
    BELOW_MINIMUM_AGE = "below-minimum-age"
    ABOVE_MAXIMUM_AGE = "above-maximum-age"
    INVALID_FORMAT = "invalid-format"
    AMOUNT_OUT_OF_RANGE = "amount-out-of-range"


class CardBrand(Enum):
    """Supported card networks"""
    VISA = "visa"
    MASTERCARD = "mastercard"
    AMEX = "amex"
    DISCOVER = "discover"


class FundingType(Enum):
    """Declared context of a funding source"""
    CARD = "card"
    BANK = "bank"


class ValidationRejected(ValueError):
    """Raised by ValidationResult.raise_for_rejection()"""

    def __init__(self, reason: RejectionReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation: accepted, or rejected with a reason code"""
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: str = ""
    brand: Optional[CardBrand] = None

    def __bool__(self) -> bool:
        return self.accepted

    @classmethod
    def accept(cls, brand: Optional[CardBrand] = None) -> 'ValidationResult':
        return cls(accepted=True, brand=brand)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> 'ValidationResult':
        return cls(accepted=False, reason=reason, message=message)

    def raise_for_rejection(self) -> None:
        if not self.accepted:
            raise ValidationRejected(self.reason, self.message)


CARD_MIN_LENGTH = 13
CARD_MAX_LENGTH = 19
ROUTING_LENGTH = 9
BANK_ACCOUNT_MIN_LENGTH = 4
BANK_ACCOUNT_MAX_LENGTH = 17
DEFAULT_MINIMUM_AGE = 18
DEFAULT_MAXIMUM_AGE = 120


def is_ascii_digits(value) -> bool:
    """True for a non-empty string made only of 0-9"""
    return isinstance(value, str) and value != "" and value.isascii() and value.isdigit()


def normalize_card_number(raw: str) -> str:
    """Drop the spaces and hyphens people type between digit groups"""
    return raw.replace(" ", "").replace("-", "")


# Luhn

def _luhn_sum(digits: str) -> int:
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total


def is_valid_luhn(digits: str) -> bool:
    """Luhn mod-10 check over a string of ASCII digits"""
    if not is_ascii_digits(digits):
        return False
    return _luhn_sum(digits) % 10 == 0


def check_luhn(digits: str) -> ValidationResult:
    """Luhn check that reports why a value failed"""
    if not digits:
        return ValidationResult.reject(RejectionReason.BAD_LENGTH, "Number is required")
    if not is_ascii_digits(digits):
        return ValidationResult.reject(RejectionReason.NON_DIGIT, "Number must contain only digits")
    if _luhn_sum(digits) % 10 != 0:
        return ValidationResult.reject(RejectionReason.CHECKSUM_MISMATCH, "Invalid card number")
    return ValidationResult.accept()


# Card brands

def classify_card(digits: str) -> Optional[CardBrand]:
    """Identify the card network from the number's prefix"""
    if not is_ascii_digits(digits):
        return None

    if digits.startswith("4"):
        return CardBrand.VISA

    if len(digits) >= 2 and 51 <= int(digits[:2]) <= 55:
        return CardBrand.MASTERCARD
    if len(digits) >= 4 and 2221 <= int(digits[:4]) <= 2720:
        return CardBrand.MASTERCARD

    if digits.startswith(("34", "37")):
        return CardBrand.AMEX

    if digits.startswith(("6011", "65")):
        return CardBrand.DISCOVER
    if len(digits) >= 6 and 622126 <= int(digits[:6]) <= 622925:
        return CardBrand.DISCOVER
    if len(digits) >= 3 and 644 <= int(digits[:3]) <= 649:
        return CardBrand.DISCOVER

    return None


def validate_card_number(raw: Optional[str]) -> ValidationResult:
    """
    Validate a payment card number as typed by the customer.

    The number must be 13-19 digits, pass the Luhn check and belong to a
    supported network. Both checks are independent and both must pass.
    """
    if not isinstance(raw, str) or not raw:
        return ValidationResult.reject(RejectionReason.BAD_LENGTH, "Card number is required")

    digits = normalize_card_number(raw)
    if not digits:
        return ValidationResult.reject(RejectionReason.BAD_LENGTH, "Card number is required")
    if not is_ascii_digits(digits):
        return ValidationResult.reject(RejectionReason.NON_DIGIT, "Card number must contain only digits")
    if not CARD_MIN_LENGTH <= len(digits) <= CARD_MAX_LENGTH:
        return ValidationResult.reject(
            RejectionReason.BAD_LENGTH,
            f"Card number must be {CARD_MIN_LENGTH}-{CARD_MAX_LENGTH} digits"
        )

    luhn = check_luhn(digits)
    if not luhn:
        return luhn

    brand = classify_card(digits)
    if brand is None:
        return ValidationResult.reject(
            RejectionReason.UNKNOWN_BRAND,
            "Card type not supported. We accept Visa, Mastercard, Amex, and Discover"
        )
    return ValidationResult.accept(brand=brand)


# ABA routing numbers

def _routing_checksum(digits: str) -> int:
    d = [int(char) for char in digits]
    return (
        3 * (d[0] + d[3] + d[6]) +
        7 * (d[1] + d[4] + d[7]) +
        1 * (d[2] + d[5] + d[8])
    )


def is_valid_routing(digits: str) -> bool:
    """ABA 3-7-1 weighted checksum over exactly nine digits"""
    if not is_ascii_digits(digits) or len(digits) != ROUTING_LENGTH:
        return False
    return _routing_checksum(digits) % 10 == 0


def validate_routing_number(raw: Optional[str]) -> ValidationResult:
    """Validate a bank routing number, reporting why it failed"""
    if not isinstance(raw, str) or not raw:
        return ValidationResult.reject(
            RejectionReason.BAD_LENGTH, "Routing number is required for bank transfers"
        )
    if not is_ascii_digits(raw):
        return ValidationResult.reject(RejectionReason.NON_DIGIT, "Routing number must contain only digits")
    if len(raw) != ROUTING_LENGTH:
        return ValidationResult.reject(RejectionReason.BAD_LENGTH, "Routing number must be exactly 9 digits")
    if _routing_checksum(raw) % 10 != 0:
        return ValidationResult.reject(RejectionReason.CHECKSUM_MISMATCH, "Invalid routing number")
    return ValidationResult.accept()


def validate_bank_account_number(raw: Optional[str]) -> ValidationResult:
    """Bank account numbers carry no checksum, only a length range"""
    if not isinstance(raw, str) or not raw:
        return ValidationResult.reject(RejectionReason.BAD_LENGTH, "Account number is required")
    if not is_ascii_digits(raw):
        return ValidationResult.reject(RejectionReason.NON_DIGIT, "Account number must contain only digits")
    if not BANK_ACCOUNT_MIN_LENGTH <= len(raw) <= BANK_ACCOUNT_MAX_LENGTH:
        return ValidationResult.reject(
            RejectionReason.BAD_LENGTH,
            f"Account number must be {BANK_ACCOUNT_MIN_LENGTH}-{BANK_ACCOUNT_MAX_LENGTH} digits"
        )
    return ValidationResult.accept()


def validate_funding_source(
    funding_type: Union[FundingType, str],
    account_number: Optional[str],
    routing_number: Optional[str] = None
) -> ValidationResult:
    """
    Validate a funding source in its declared context.

    Cards are checked as card numbers; bank transfers need both an account
    number and a valid routing number.
    """
    try:
        funding_type = FundingType(funding_type)
    except ValueError:
        return ValidationResult.reject(RejectionReason.INVALID_FORMAT, "Unknown funding type")

    if funding_type == FundingType.CARD:
        return validate_card_number(account_number)

    account = validate_bank_account_number(account_number)
    if not account:
        return account
    return validate_routing_number(routing_number)


# Birth dates

def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def calculate_age(birth_date: Union[date, datetime], reference_date: Union[date, datetime]) -> int:
    """Completed years between birth_date and reference_date"""
    birth = _as_date(birth_date)
    reference = _as_date(reference_date)
    age = reference.year - birth.year

    # Birthday not reached yet this year
    if (reference.month, reference.day) < (birth.month, birth.day):
        age -= 1

    return age


def age_at_least(birth_date: Union[date, datetime], reference_date: Union[date, datetime],
                 min_years: int) -> bool:
    """
    True when the person is at least min_years old on reference_date.

    The exact anniversary counts as eligible. Birth dates after the reference
    date are never eligible.
    """
    if not isinstance(birth_date, date) or not isinstance(reference_date, date):
        return False
    if _as_date(birth_date) > _as_date(reference_date):
        return False
    return calculate_age(birth_date, reference_date) >= min_years


def validate_birth_date(
    birth_date: Optional[Union[date, datetime]],
    reference_date: Optional[Union[date, datetime]] = None,
    min_years: int = DEFAULT_MINIMUM_AGE,
    max_years: int = DEFAULT_MAXIMUM_AGE
) -> ValidationResult:
    """Birth date policy: not in the future, old enough and plausible"""
    if not isinstance(birth_date, date):
        return ValidationResult.reject(RejectionReason.INVALID_FORMAT, "Date of birth is required")
    if reference_date is None:
        reference_date = datetime.now(timezone.utc).date()

    if _as_date(birth_date) > _as_date(reference_date):
        return ValidationResult.reject(RejectionReason.FUTURE_DATE, "Date of birth cannot be in the future")

    age = calculate_age(birth_date, reference_date)
    if age < min_years:
        return ValidationResult.reject(
            RejectionReason.BELOW_MINIMUM_AGE, f"You must be at least {min_years} years old"
        )
    if age > max_years:
        return ValidationResult.reject(RejectionReason.ABOVE_MAXIMUM_AGE, "Please enter a valid date of birth")
    return ValidationResult.accept()
