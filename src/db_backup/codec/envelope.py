"""Compression and encryption of backup descriptors.

Write path: canonical JSON -> gzip -> AES-256-CBC (PKCS7 padding, fresh
random 16-byte IV per write) -> ``{"encrypted": <base64>, "iv": <base64>}``.
The read path reverses every step.  The IV is not secret and is stored next
to the ciphertext.

Usage:
    from db_backup.codec.envelope import Envelope

    envelope = Envelope(settings.encryption_key_bytes())
    blob = envelope.encode(payload)
    assert envelope.decode(blob) == payload
"""

import base64
import binascii
import gzip
import json
import os
import zlib
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from db_backup.codec.integrity import canonical_json
from db_backup.errors import CodecError, ConfigurationError

KEY_LENGTH = 32
IV_LENGTH = 16
_BLOCK_BITS = 128


class Envelope:
    """Gzip + AES-256-CBC codec for descriptor payloads.

    Args:
        key: 32-byte AES key.

    Raises:
        ConfigurationError: If the key is not exactly 32 bytes.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise ConfigurationError(
                f"Encryption key must be {KEY_LENGTH} bytes, got {len(key)}"
            )
        self._key = key

    def encode(self, payload: dict[str, Any]) -> bytes:
        """Serialize, compress and encrypt ``payload`` into stored bytes."""
        compressed = gzip.compress(canonical_json(payload).encode("utf-8"))

        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(compressed) + padder.finalize()

        iv = os.urandom(IV_LENGTH)
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()

        wrapper = {
            "encrypted": base64.b64encode(encrypted).decode("ascii"),
            "iv": base64.b64encode(iv).decode("ascii"),
        }
        return json.dumps(wrapper).encode("utf-8")

    def decode(self, blob: bytes) -> dict[str, Any]:
        """Decrypt, decompress and parse stored bytes.

        Raises:
            CodecError: If any step fails.  A wrong key usually surfaces
                here as a padding or gzip error.
        """
        try:
            wrapper = json.loads(blob)
            encrypted = base64.b64decode(wrapper["encrypted"], validate=True)
            iv = base64.b64decode(wrapper["iv"], validate=True)
        except (ValueError, KeyError, TypeError, binascii.Error) as e:
            raise CodecError(f"Invalid backup wrapper: {e}") from e

        if len(iv) != IV_LENGTH:
            raise CodecError(f"Invalid IV length: {len(iv)}")
        if not encrypted or len(encrypted) % (_BLOCK_BITS // 8):
            raise CodecError("Ciphertext is not a whole number of AES blocks")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(encrypted) + decryptor.finalize()

        try:
            unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
            compressed = unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise CodecError("Decryption failed (wrong key or corrupted data)") from e

        try:
            text = gzip.decompress(compressed).decode("utf-8")
        except (OSError, EOFError, zlib.error, UnicodeDecodeError) as e:
            raise CodecError(f"Decompression failed: {e}") from e

        try:
            payload = json.loads(text)
        except ValueError as e:
            raise CodecError(f"Invalid descriptor JSON: {e}") from e

        if not isinstance(payload, dict):
            raise CodecError("Descriptor is not a JSON object")
        return payload
