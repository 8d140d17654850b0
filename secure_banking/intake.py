"""
Intake Request Models

Pydantic models for the signup and account funding forms. Every rule is
delegated to the shared validators so the server re-validates exactly what
the forms check. Rejections are logged with the field name and reason code;
submitted values are hidden from both logs and validation errors.
"""

import re
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import get_config
from .encryption import ConfidentialFieldCodec
from .logging_config import log_rejection
from .validation import (
    CardBrand, FundingType, RejectionReason, ValidationResult,
    classify_card, is_ascii_digits, normalize_card_number,
    validate_bank_account_number, validate_birth_date,
    validate_card_number, validate_routing_number
)

logger = logging.getLogger(__name__)


US_STATE_CODES = frozenset([
    'AL', 'AK', 'AZ', 'AR', 'CA', 'CO', 'CT', 'DE', 'FL', 'GA',
    'HI', 'ID', 'IL', 'IN', 'IA', 'KS', 'KY', 'LA', 'ME', 'MD',
    'MA', 'MI', 'MN', 'MS', 'MO', 'MT', 'NE', 'NV', 'NH', 'NJ',
    'NM', 'NY', 'NC', 'ND', 'OH', 'OK', 'OR', 'PA', 'RI', 'SC',
    'SD', 'TN', 'TX', 'UT', 'VT', 'VA', 'WA', 'WV', 'WI', 'WY',
    'DC', 'PR', 'VI', 'GU', 'AS', 'MP'
])

# Endings that are almost always a mistyped ".com" / ".net" / ".org"
EMAIL_TYPO_ENDINGS = ('.con', '.cmo', '.cm', '.co.', '.om', '.ner', '.ogr')
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PASSWORD_SPECIAL_CHARACTERS = re.compile(r'[!@#$%^&*(),.?":{}|<>]')
PASSWORD_MIN_LENGTH = 8
INTERNATIONAL_PHONE_PATTERN = re.compile(r'^\+[0-9]{1,3}[0-9]{7,14}$')
AMOUNT_PATTERN = re.compile(r'^[0-9]+\.?[0-9]{0,2}$')
SSN_LENGTH = 9
ZIP_CODE_LENGTH = 5


def _invalid(message: str) -> ValidationResult:
    return ValidationResult.reject(RejectionReason.INVALID_FORMAT, message)


def validate_email_address(email: str) -> ValidationResult:
    """Format check plus common top-level-domain typos"""
    if not EMAIL_PATTERN.match(email):
        return _invalid("Invalid email format")
    if email.lower().endswith(EMAIL_TYPO_ENDINGS):
        return _invalid("Invalid domain extension. Check for typos (e.g., .con should be .com)")
    return ValidationResult.accept()


def validate_password_strength(password: str) -> ValidationResult:
    if len(password) < PASSWORD_MIN_LENGTH:
        return ValidationResult.reject(
            RejectionReason.BAD_LENGTH,
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if not re.search(r'[0-9]', password):
        return _invalid("Password must contain at least one number")
    if not re.search(r'[A-Z]', password):
        return _invalid("Password must contain at least one uppercase letter")
    if not re.search(r'[a-z]', password):
        return _invalid("Password must contain at least one lowercase letter")
    if not PASSWORD_SPECIAL_CHARACTERS.search(password):
        return _invalid("Password must contain at least one special character")
    return ValidationResult.accept()


def validate_phone_number(phone: str) -> ValidationResult:
    """
    US/Canada numbers need a real area code (200-899); anything else must be
    in international format with a leading + and country code.
    """
    cleaned = re.sub(r'[\s\-\(\)]', '', phone)

    if is_ascii_digits(cleaned) and len(cleaned) == 10:
        area_code = int(cleaned[:3])
        if area_code < 200 or area_code >= 900:
            return _invalid("Invalid area code. US/Canada area codes range from 200 to 899")
        return ValidationResult.accept()

    if INTERNATIONAL_PHONE_PATTERN.match(cleaned):
        return ValidationResult.accept()

    return _invalid(
        "Invalid phone number. Use valid 10-digit US/Canada number (area code 200-899) "
        "or international format with country code"
    )


def validate_state_code(state: str) -> ValidationResult:
    if state.upper() not in US_STATE_CODES:
        return _invalid("Invalid state code")
    return ValidationResult.accept()


def validate_zip_code(zip_code: str) -> ValidationResult:
    if not is_ascii_digits(zip_code):
        return ValidationResult.reject(RejectionReason.NON_DIGIT, "ZIP code must contain only digits")
    if len(zip_code) != ZIP_CODE_LENGTH:
        return ValidationResult.reject(RejectionReason.BAD_LENGTH, "ZIP code must be 5 digits")
    return ValidationResult.accept()


def validate_ssn_format(ssn: str) -> ValidationResult:
    if not is_ascii_digits(ssn):
        return ValidationResult.reject(RejectionReason.NON_DIGIT, "SSN must contain only digits")
    if len(ssn) != SSN_LENGTH:
        return ValidationResult.reject(RejectionReason.BAD_LENGTH, "SSN must be 9 digits")
    return ValidationResult.accept()


def validate_funding_amount(raw: str, minimum: Decimal, maximum: Decimal) -> ValidationResult:
    """Amounts arrive as strings with at most two decimal places"""
    if not AMOUNT_PATTERN.match(raw):
        return _invalid("Invalid amount format")
    if re.match(r'^0[0-9]', raw):
        return _invalid("Remove leading zeros")

    amount = Decimal(raw)
    if amount < minimum:
        return ValidationResult.reject(
            RejectionReason.AMOUNT_OUT_OF_RANGE, f"Amount must be at least ${minimum}"
        )
    if amount > maximum:
        return ValidationResult.reject(
            RejectionReason.AMOUNT_OUT_OF_RANGE, f"Amount cannot exceed ${maximum:,}"
        )
    return ValidationResult.accept()


def parse_funding_amount(raw: Any) -> Decimal:
    """Validate a submitted amount against the configured limits and return it as Decimal"""
    config = get_config()
    text = str(raw).strip()
    _enforce(
        validate_funding_amount(text, config.min_funding_amount, config.max_funding_amount),
        "amount"
    )
    return Decimal(text)


def _enforce(result: ValidationResult, field: str) -> None:
    """Turn a rejection into the ValueError pydantic expects, logging only its reason"""
    if not result:
        log_rejection(logger, field, result.reason.value)
        raise ValueError(result.message)


class SignupRequest(BaseModel):
    """Customer signup form"""
    model_config = ConfigDict(hide_input_in_errors=True, str_strip_whitespace=True)

    email: str
    password: str = Field(..., repr=False)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: str
    date_of_birth: date
    ssn: str = Field(..., repr=False)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str
    zip_code: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.lower()
        _enforce(validate_email_address(value), "email")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        _enforce(validate_password_strength(value), "password")
        return value

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value: str) -> str:
        _enforce(validate_phone_number(value), "phone_number")
        return value

    @field_validator("date_of_birth")
    @classmethod
    def check_date_of_birth(cls, value: date) -> date:
        config = get_config()
        _enforce(
            validate_birth_date(
                value,
                min_years=config.minimum_age_years,
                max_years=config.maximum_age_years
            ),
            "date_of_birth"
        )
        return value

    @field_validator("ssn")
    @classmethod
    def check_ssn(cls, value: str) -> str:
        _enforce(validate_ssn_format(value), "ssn")
        return value

    @field_validator("state")
    @classmethod
    def check_state(cls, value: str) -> str:
        value = value.upper()
        _enforce(validate_state_code(value), "state")
        return value

    @field_validator("zip_code")
    @classmethod
    def check_zip_code(cls, value: str) -> str:
        _enforce(validate_zip_code(value), "zip_code")
        return value

    def to_customer_record(self, codec: ConfidentialFieldCodec) -> Dict[str, Any]:
        """
        Persistable customer profile.

        The SSN is encrypted before it leaves this method; the password is left
        out because credentials are hashed and stored by the auth layer.
        """
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone_number": self.phone_number,
            "date_of_birth": self.date_of_birth.isoformat(),
            "ssn": codec.encrypt(self.ssn),
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }


class FundingRequest(BaseModel):
    """Account funding form: an amount and a card or bank funding source"""
    model_config = ConfigDict(hide_input_in_errors=True, str_strip_whitespace=True)

    account_id: int
    amount: Decimal
    funding_type: FundingType = FundingType.CARD
    account_number: str = Field(..., repr=False)
    routing_number: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, value: Any) -> Decimal:
        return parse_funding_amount(value)

    @model_validator(mode="after")
    def check_funding_source(self) -> 'FundingRequest':
        if self.funding_type == FundingType.CARD:
            _enforce(validate_card_number(self.account_number), "account_number")
        else:
            _enforce(validate_bank_account_number(self.account_number), "account_number")
            _enforce(validate_routing_number(self.routing_number), "routing_number")
        return self

    @property
    def card_brand(self) -> Optional[CardBrand]:
        if self.funding_type != FundingType.CARD:
            return None
        return classify_card(normalize_card_number(self.account_number))


def mask_for_display(record: Dict[str, Any], codec: ConfidentialFieldCodec,
                     field: str = "ssn") -> Dict[str, Any]:
    """Copy of a stored record with the sensitive field masked"""
    masked = dict(record)
    if masked.get(field) is not None:
        masked[field] = codec.mask_raw(masked[field])
    return masked
