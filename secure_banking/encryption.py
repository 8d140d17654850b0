"""
Confidential Field Encryption Module

Provides reversible protection at rest for a single sensitive string field
(SSN or a similar national identifier). Every encryption uses a fresh random
IV, so the same plaintext never produces the same stored value twice.

Stored wire format: "<32 hex chars IV>:<hex ciphertext>". A value without the
":" separator is legacy plaintext that has not been migrated yet.
"""

import os
import re
import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)


KEY_LENGTH = 32  # AES-256
IV_LENGTH = 16
SEPARATOR = ":"
MASK_PREFIX = "***-**-"
VISIBLE_SUFFIX_LENGTH = 4

# Fallback secret for local development only. Values encrypted with it must
# not outlive a development session.
DEVELOPMENT_SECRET = "temporary-key-for-development-use"

_HEX_PATTERN = re.compile(r'^(?:[0-9a-fA-F]{2})+$')


class EncryptionError(ValueError):
    """Raised when a value cannot be encrypted (bad key, bad input)"""


class DecryptionError(ValueError):
    """Raised when a stored value is malformed, tampered with or encrypted under another key"""


@dataclass(frozen=True)
class EncryptionKey:
    """Derived symmetric key material"""
    material: bytes = field(repr=False)
    is_development: bool = False

    def __len__(self) -> int:
        return len(self.material)


@dataclass(frozen=True)
class StoredValue:
    """Field value in its encrypted wire format"""
    ciphertext: str


@dataclass(frozen=True)
class LegacyValue:
    """Field value still held as plaintext (written before encryption was enabled)"""
    plaintext: str = field(repr=False)


FieldValue = Union[StoredValue, LegacyValue]


def classify_field_value(raw: str) -> FieldValue:
    """Tag a raw value read from the record store as stored or legacy"""
    if SEPARATOR in raw:
        return StoredValue(raw)
    return LegacyValue(raw)


def derive_key(secret: Optional[str]) -> EncryptionKey:
    """
    Hash a configured secret into a 32-byte AES-256 key.

    An empty secret falls back to DEVELOPMENT_SECRET and the resulting key is
    flagged with is_development=True.
    """
    if not secret:
        logger.warning(
            "No encryption key configured - using development-only fallback key. "
            "Do not persist values encrypted with it."
        )
        return EncryptionKey(
            hashlib.sha256(DEVELOPMENT_SECRET.encode('utf-8')).digest(),
            is_development=True
        )
    return EncryptionKey(hashlib.sha256(secret.encode('utf-8')).digest())


_process_key: Optional[EncryptionKey] = None
_process_key_lock = threading.Lock()


def get_encryption_key(config=None) -> EncryptionKey:
    """
    Return the process-wide key, deriving it on first use.

    Initialization happens once under a lock; concurrent callers all receive
    the same immutable EncryptionKey. In production an absent secret is an
    error rather than a fallback.
    """
    global _process_key
    if _process_key is not None:
        return _process_key

    with _process_key_lock:
        if _process_key is None:
            if config is None:
                from .config import get_config
                config = get_config()
            if not config.encryption_key and config.is_production:
                raise EncryptionError(
                    "SECURE_BANKING_ENCRYPTION_KEY must be set in production"
                )
            _process_key = derive_key(config.encryption_key)
            logger.info("Process encryption key initialized")
    return _process_key


def reset_encryption_key() -> None:
    """Forget the cached process key so the next call re-derives it"""
    global _process_key
    with _process_key_lock:
        _process_key = None


class FieldCipher(ABC):
    """Abstract base class for the block cipher used by the codec"""

    name = "abstract"

    @abstractmethod
    def encrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        """Encrypt data with key and IV"""
        pass

    @abstractmethod
    def decrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        """Decrypt data with key and IV; raise DecryptionError on failure"""
        pass


class AESGCMFieldCipher(FieldCipher):
    """AES-256-GCM: authenticated, the ciphertext carries a 16-byte tag"""

    name = "aesgcm"

    def encrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        return AESGCM(key).encrypt(iv, data, None)

    def decrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        try:
            return AESGCM(key).decrypt(iv, data, None)
        except InvalidTag:
            raise DecryptionError("Authentication failed - wrong key or tampered value")


class AESCBCFieldCipher(FieldCipher):
    """
    AES-256-CBC with PKCS7 padding.

    Reads and writes values produced by the earlier CBC-based implementation.
    Not authenticated: tampering is detected only when it breaks the padding
    or the UTF-8 decoding.
    """

    name = "aescbc"

    def encrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        if len(data) % (algorithms.AES.block_size // 8) != 0:
            raise DecryptionError("Ciphertext is not a whole number of blocks")
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            raise DecryptionError("Invalid padding - wrong key or tampered value")


CIPHERS = {
    AESGCMFieldCipher.name: AESGCMFieldCipher,
    AESCBCFieldCipher.name: AESCBCFieldCipher,
}


class ConfidentialFieldCodec:
    """Encrypts, decrypts and masks one sensitive field with an injected key"""

    def __init__(self, key: EncryptionKey, cipher: Optional[FieldCipher] = None):
        self.key = key
        self.cipher = cipher or AESGCMFieldCipher()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext under a fresh random IV and return the stored format"""
        if len(self.key) != KEY_LENGTH:
            raise EncryptionError(
                f"Encryption key must be {KEY_LENGTH} bytes, got {len(self.key)}"
            )
        if not isinstance(plaintext, str):
            raise EncryptionError("Only string values can be encrypted")

        iv = os.urandom(IV_LENGTH)
        ciphertext = self.cipher.encrypt(self.key.material, iv, plaintext.encode('utf-8'))
        return f"{iv.hex()}{SEPARATOR}{ciphertext.hex()}"

    def decrypt(self, stored: str) -> str:
        """Decrypt a value in the stored format"""
        if len(self.key) != KEY_LENGTH:
            raise DecryptionError(
                f"Encryption key must be {KEY_LENGTH} bytes, got {len(self.key)}"
            )
        if not isinstance(stored, str) or SEPARATOR not in stored:
            raise DecryptionError("Stored value is missing the IV separator")

        iv_hex, ciphertext_hex = stored.split(SEPARATOR, 1)
        if len(iv_hex) != IV_LENGTH * 2 or not _HEX_PATTERN.match(iv_hex):
            raise DecryptionError("Malformed initialization vector")
        if not _HEX_PATTERN.match(ciphertext_hex):
            raise DecryptionError("Malformed ciphertext")

        plaintext = self.cipher.decrypt(
            self.key.material, bytes.fromhex(iv_hex), bytes.fromhex(ciphertext_hex)
        )
        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError:
            raise DecryptionError("Decrypted value is not valid UTF-8")

    def reveal(self, value: FieldValue) -> str:
        """Plaintext of a tagged value, decrypting stored values"""
        if isinstance(value, StoredValue):
            return self.decrypt(value.ciphertext)
        if isinstance(value, LegacyValue):
            return value.plaintext
        raise TypeError(f"Unsupported field value type: {type(value).__name__}")

    def mask(self, value: FieldValue) -> str:
        """Display form showing only the last four characters"""
        return mask_plaintext(self.reveal(value))

    def mask_raw(self, raw: str) -> str:
        """Mask a raw record store value, which may be stored or legacy"""
        return self.mask(classify_field_value(raw))


def mask_plaintext(plaintext: str) -> str:
    """Redact all but the last four characters"""
    return f"{MASK_PREFIX}{plaintext[-VISIBLE_SUFFIX_LENGTH:]}"


def encrypt_field(plaintext: str, key: EncryptionKey) -> str:
    """Encrypt a field value with AES-256-GCM"""
    return ConfidentialFieldCodec(key).encrypt(plaintext)


def decrypt_field(stored: str, key: EncryptionKey) -> str:
    """Decrypt an AES-256-GCM stored field value"""
    return ConfidentialFieldCodec(key).decrypt(stored)


def mask_field(value: FieldValue, key: EncryptionKey) -> str:
    """Mask a stored or legacy field value"""
    return ConfidentialFieldCodec(key).mask(value)


def create_field_codec(config=None, key: Optional[EncryptionKey] = None) -> ConfidentialFieldCodec:
    """Factory function building the codec from configuration"""
    if config is None:
        from .config import get_config
        config = get_config()

    cipher_name = config.encryption_cipher.lower()
    cipher_class = CIPHERS.get(cipher_name)
    if cipher_class is None:
        logger.warning(f"Unknown encryption cipher '{cipher_name}' - using aesgcm")
        cipher_class = AESGCMFieldCipher
    elif cipher_class is AESCBCFieldCipher:
        logger.warning(
            "Encryption cipher 'aescbc' writes unauthenticated values - use it only to "
            "read legacy values or as previous_codec when migrating to aesgcm"
        )

    return ConfidentialFieldCodec(key or get_encryption_key(config), cipher_class())
