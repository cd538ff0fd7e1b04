"""Integrity and envelope codecs for backup descriptors.

Usage:
    from db_backup.codec import Envelope, seal, verify_checksum
"""

from db_backup.codec.envelope import Envelope
from db_backup.codec.integrity import (
    canonical_json,
    compute_checksum,
    seal,
    validate_descriptor,
    verify_checksum,
)

__all__ = [
    "Envelope",
    "canonical_json",
    "compute_checksum",
    "seal",
    "validate_descriptor",
    "verify_checksum",
]
