"""Canonical checksums and structural validation for backup descriptors.

The checksum is SHA-256 over the canonical JSON of the decoded descriptor
mapping with its ``checksum`` key removed.  Canonical JSON sorts keys at
every level and uses compact separators, so two mappings that differ only
in key order produce the same digest.

Checksums are always computed over the raw mapping as it came out of the
envelope, never over a re-dumped model, so unknown or extra keys are
covered too.

Usage:
    from db_backup.codec.integrity import seal, verify_checksum

    payload = seal(descriptor.to_payload())
    verify_checksum(payload)  # raises IntegrityError on mismatch
"""

import hashlib
import json
import re
from datetime import datetime
from typing import Any

from db_backup.errors import IntegrityError

CHECKSUM_FIELD = "checksum"

_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")


def canonical_json(value: Any) -> str:
    """Serialize ``value`` deterministically (sorted keys, compact, UTF-8 safe)."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_checksum(payload: dict[str, Any]) -> str:
    """Return the SHA-256 hex digest of ``payload`` without its checksum field."""
    body = {k: v for k, v in payload.items() if k != CHECKSUM_FIELD}
    return hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()


def seal(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``payload`` with a freshly computed checksum."""
    sealed = dict(payload)
    sealed[CHECKSUM_FIELD] = compute_checksum(payload)
    return sealed


def verify_checksum(payload: dict[str, Any]) -> None:
    """Recompute and compare the checksum of a decoded descriptor.

    Raises:
        IntegrityError: If the checksum is missing or does not match.  The
            backup must be treated as unusable; it is never repaired.
    """
    stored = payload.get(CHECKSUM_FIELD)
    if not stored:
        raise IntegrityError("Backup has no checksum")

    calculated = compute_checksum(payload)
    if stored != calculated:
        raise IntegrityError(
            f"Checksum mismatch: stored {stored}, calculated {calculated}"
        )


def validate_descriptor(payload: dict[str, Any]) -> dict:
    """Check the structure of a decoded descriptor mapping.

    Does not look at the checksum; call ``verify_checksum`` for that.

    Args:
        payload: Decoded descriptor mapping (camelCase keys).

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        and ``warnings`` (list[str]).

    Example:
        report = validate_descriptor(payload)
        if report["errors"]:
            raise CodecError("; ".join(report["errors"]))
    """
    errors: list[str] = []
    warnings: list[str] = []

    for key in ("filename", "timestamp", "version", CHECKSUM_FIELD):
        if not payload.get(key):
            errors.append(f"Missing required field: {key}")

    timestamp = payload.get("timestamp")
    if isinstance(timestamp, str) and timestamp:
        try:
            datetime.fromisoformat(timestamp)
        except ValueError:
            errors.append(f"Invalid timestamp: {timestamp}")

    version = payload.get("version")
    if isinstance(version, str) and version and not _SEMVER_RE.match(version):
        errors.append(f"Invalid version: {version}")

    if payload.get("isIncremental"):
        if not payload.get("baseBackup"):
            errors.append("Incremental backup missing baseBackup")
        if not isinstance(payload.get("changes"), dict):
            errors.append("Incremental backup missing changes")
    elif not isinstance(payload.get("tables"), dict):
        errors.append("Full backup missing tables")

    skipped = payload.get("skippedTables") or []
    if skipped:
        warnings.append(f"Backup is partial, skipped tables: {', '.join(skipped)}")

    return {"valid": not errors, "errors": errors, "warnings": warnings}
