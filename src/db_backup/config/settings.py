"""Environment-driven settings for backup operations.

Secrets and connection details come from environment variables (or a
``.env`` file); nothing here is read from the backup config TOML.

Usage:
    from db_backup.config.settings import get_settings

    settings = get_settings()
    key = settings.encryption_key_bytes()
"""

import base64
import binascii
from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from db_backup.adapters.base import DEFAULT_TABLES
from db_backup.errors import ConfigurationError

KEY_LENGTH = 32


class Settings(BaseSettings):
    """Application settings for backup, restore and scheduled runs."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Payload encryption
    encryption_key: str = Field(default="", validation_alias="BACKUP_ENCRYPTION_KEY")

    # Data source: DATABASE_URL wins over Supabase when both are set
    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_key: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_KEY"),
    )
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
    db_password: str | None = Field(default=None, validation_alias="DB_PASSWORD")

    # S3 storage
    aws_region: str | None = Field(default=None, validation_alias="AWS_REGION")
    aws_access_key_id: str | None = Field(default=None, validation_alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(
        default=None, validation_alias="AWS_SECRET_ACCESS_KEY"
    )

    # Notifications
    resend_api_key: str | None = Field(default=None, validation_alias="RESEND_API_KEY")
    admin_email: str = Field(default="", validation_alias="ADMIN_EMAIL")
    notify_sender: str = Field(
        default="Backups <backups@resend.dev>", validation_alias="BACKUP_NOTIFY_SENDER"
    )

    # Backup behaviour
    backup_tables: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_TABLES),
        validation_alias="BACKUP_TABLES",
    )
    storage_bucket: str = Field(default="backups", validation_alias="BACKUP_BUCKET")
    io_timeout: float = Field(default=30.0, gt=0, validation_alias="BACKUP_IO_TIMEOUT")
    restore_chunk_size: int = Field(
        default=1000, gt=0, validation_alias="BACKUP_RESTORE_CHUNK_SIZE"
    )

    @field_validator("backup_tables", mode="before")
    @classmethod
    def _split_tables(cls, value: object) -> object:
        # BACKUP_TABLES=users,clients,orders
        if isinstance(value, str):
            return [t.strip() for t in value.split(",") if t.strip()]
        return value

    def encryption_key_bytes(self) -> bytes:
        """Decode ``BACKUP_ENCRYPTION_KEY`` into a 32-byte AES key.

        Accepts 64 hex characters, a raw 32-byte string, or base64 of 32
        bytes, in that order.

        Returns:
            The 32-byte key.

        Raises:
            ConfigurationError: If the key is unset or none of the accepted
                encodings yields 32 bytes.
        """
        raw = self.encryption_key.strip()
        if not raw:
            raise ConfigurationError("BACKUP_ENCRYPTION_KEY is not set")

        if len(raw) == KEY_LENGTH * 2:
            try:
                return bytes.fromhex(raw)
            except ValueError:
                pass  # not hex, try the other encodings

        encoded = raw.encode("utf-8")
        if len(encoded) == KEY_LENGTH:
            return encoded

        try:
            decoded = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError):
            decoded = b""
        if len(decoded) == KEY_LENGTH:
            return decoded

        raise ConfigurationError(
            f"BACKUP_ENCRYPTION_KEY must be {KEY_LENGTH} bytes "
            f"(raw, {KEY_LENGTH * 2} hex chars or base64)"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
