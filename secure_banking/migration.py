"""
Field Migration Module

Moves a sensitive field from legacy plaintext to the encrypted stored format
and re-encrypts stored values after a key rotation. Works on plain record
dicts; loading and saving them is left to the record store.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .encryption import (
    ConfidentialFieldCodec, DecryptionError, LegacyValue, StoredValue, classify_field_value
)

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Migrated records plus counters for monitoring"""
    records: List[Dict[str, Any]] = field(default_factory=list)
    encrypted: int = 0
    reencrypted: int = 0
    unchanged: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "encrypted": self.encrypted,
            "reencrypted": self.reencrypted,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
        }


def migrate_records(
    records: Iterable[Dict[str, Any]],
    codec: ConfidentialFieldCodec,
    field_name: str = "ssn",
    previous_codec: Optional[ConfidentialFieldCodec] = None
) -> MigrationReport:
    """
    Bring the sensitive field of every record up to date with codec.

    Legacy plaintext is encrypted. When a previous_codec is given (key
    rotation), stored values that codec cannot already read are decrypted with
    previous_codec and re-encrypted, so a partly rotated batch can be rerun.
    Without previous_codec stored values are left untouched.
    Records without the field are copied unchanged. Input records are not
    mutated; a DecryptionError from a corrupt value propagates.
    """
    report = MigrationReport()

    for record in records:
        migrated = dict(record)
        raw = migrated.get(field_name)

        if raw is None:
            report.skipped += 1
            report.records.append(migrated)
            continue

        value = classify_field_value(str(raw))
        if isinstance(value, LegacyValue):
            migrated[field_name] = codec.encrypt(value.plaintext)
            report.encrypted += 1
        elif isinstance(value, StoredValue) and previous_codec is not None:
            try:
                codec.decrypt(value.ciphertext)
            except DecryptionError:
                # Not under the current key yet; a failure here is a corrupt value
                plaintext = previous_codec.decrypt(value.ciphertext)
                migrated[field_name] = codec.encrypt(plaintext)
                report.reencrypted += 1
            else:
                report.unchanged += 1
        else:
            report.unchanged += 1

        report.records.append(migrated)

    logger.info(f"Field migration completed for '{field_name}': {report.to_dict()}")
    return report
