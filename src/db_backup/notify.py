"""Success/failure notifications for backup operations.

Provides the ``Notifier`` Protocol, a ``ResendNotifier`` that sends email
through the Resend API with httpx, a ``LogNotifier`` used when email is not
configured, and the HTML message builders for each operation.

Notification failures are logged and never change the outcome of the
operation that triggered them (see ``send_notification``).

Usage:
    from db_backup.notify import ResendNotifier, backup_created_message

    notifier = ResendNotifier(api_key="re_...", sender="backups@example.com")
    subject, html = backup_created_message(result)
    await notifier.notify("admin@example.com", subject, html)
"""

import html as html_lib
import logging
from datetime import datetime, timezone
from typing import Protocol

import httpx

from db_backup._retry import DEFAULT_ATTEMPTS, DEFAULT_WAIT_SECONDS, call_with_retry
from db_backup.models import BackupResult, RestoreSummary

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class Notifier(Protocol):
    """Receives success and failure events."""

    async def notify(self, to: str, subject: str, html: str) -> None:
        ...


class LogNotifier:
    """Notifier that only writes the subject to the log."""

    async def notify(self, to: str, subject: str, html: str) -> None:
        logger.info(f"Notification (not sent, email not configured) to={to or '-'}: {subject}")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class ResendNotifier:
    """Send notification emails through the Resend HTTP API.

    Args:
        api_key: Resend API key.
        sender: ``from`` address; must belong to a domain verified in Resend.
        timeout: Seconds allowed per attempt.
        attempts: Total attempts for transient failures.
        retry_wait: Seconds between attempts.
        transport: Optional httpx transport (tests pass a ``MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        timeout: float = 30.0,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_wait: float = DEFAULT_WAIT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._attempts = attempts
        self._retry_wait = retry_wait
        self._transport = transport

    async def notify(self, to: str, subject: str, html: str) -> None:
        async def _send() -> None:
            async with httpx.AsyncClient(transport=self._transport) as http_client:
                response = await http_client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._sender,
                        "to": to,
                        "subject": subject,
                        "html": html,
                    },
                )
                response.raise_for_status()

        await call_with_retry(
            _send,
            timeout=self._timeout,
            is_transient=_is_transient,
            attempts=self._attempts,
            wait=self._retry_wait,
        )
        logger.info(f"Notification sent to {to}: {subject}")


async def send_notification(notifier: Notifier | None, to: str, subject: str, html: str) -> None:
    """Deliver a notification, logging (not raising) any failure."""
    if notifier is None:
        return
    try:
        await notifier.notify(to, subject, html)
    except Exception as e:
        logger.error(f"Failed to send notification '{subject}': {e}")


# ============================================================================
# Message Builders
# ============================================================================


def _now_label() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _items(values: dict[str, str]) -> str:
    rows = "".join(
        f"<li>{html_lib.escape(label)}: {html_lib.escape(value)}</li>"
        for label, value in values.items()
    )
    return f"<ul>{rows}</ul>"


def backup_created_message(result: BackupResult) -> tuple[str, str]:
    details = {
        "File": result.filename,
        "Type": "Incremental" if result.is_incremental else "Full",
        "Date": _now_label(),
    }
    if result.fallback_reason:
        details["Note"] = f"Incremental backup requested, full backup written: {result.fallback_reason}"
    if result.skipped_tables:
        details["Skipped tables"] = ", ".join(result.skipped_tables)
    body = "<h1>Backup Created</h1><p>A new backup was created.</p>" + _items(details)
    return "Backup Created", body


def backup_failed_message(error: BaseException) -> tuple[str, str]:
    body = (
        "<h1>Backup Failed</h1><p>An error occurred while creating the backup.</p>"
        f"<pre>{html_lib.escape(str(error))}</pre>"
    )
    return "Backup Failed", body


def restore_finished_message(summary: RestoreSummary) -> tuple[str, str]:
    details = {
        "File": summary.filename,
        "Chain": " -> ".join(summary.chain),
        "Date": _now_label(),
    }
    if summary.success:
        body = "<h1>Backup Restored</h1><p>The backup was restored.</p>" + _items(details)
        return "Backup Restored", body

    errors = "".join(f"<li>{html_lib.escape(e)}</li>" for e in summary.errors)
    body = (
        "<h1>Backup Restored With Errors</h1>"
        "<p>The restore finished but some tables failed.</p>"
        + _items(details)
        + f"<ul>{errors}</ul>"
    )
    return "Backup Restored With Errors", body


def restore_failed_message(filename: str, error: BaseException) -> tuple[str, str]:
    body = (
        "<h1>Restore Failed</h1>"
        f"<p>An error occurred while restoring {html_lib.escape(filename)}.</p>"
        f"<pre>{html_lib.escape(str(error))}</pre>"
    )
    return "Restore Failed", body


def backup_deleted_message(filename: str) -> tuple[str, str]:
    body = "<h1>Backup Deleted</h1><p>A backup was deleted.</p>" + _items(
        {"File": filename, "Date": _now_label()}
    )
    return "Backup Deleted", body


def backup_delete_failed_message(filename: str, error: BaseException) -> tuple[str, str]:
    body = (
        "<h1>Backup Deletion Failed</h1>"
        f"<p>An error occurred while deleting {html_lib.escape(filename)}.</p>"
        f"<pre>{html_lib.escape(str(error))}</pre>"
    )
    return "Backup Deletion Failed", body
