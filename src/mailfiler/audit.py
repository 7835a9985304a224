"""JSON-lines audit trail of classifications and filing actions."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 500


def clean_field(value: str) -> str:
    """Strip control characters from a mailbox-supplied string and cap its length."""
    printable = "".join(ch for ch in value if ch.isprintable() or ch == "\t")
    if len(printable) > MAX_FIELD_LENGTH:
        return printable[: MAX_FIELD_LENGTH - 3] + "..."
    return printable


class AuditLog:
    """Appends one JSON object per event to an audit file.

    With no file configured every call is a no-op, so callers never need to
    check whether auditing is enabled.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path).expanduser() if path else None

    def record(self, event_type: str, **fields: Any) -> None:
        """Append an event; write failures are logged, never raised."""
        if self.path is None:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            **fields,
        }
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Could not write audit entry to {self.path}: {e}")

    def folder_classified(self, folder: str, message_count: int, categorization: str, reason: str) -> None:
        self.record(
            "folder_classified",
            folder=clean_field(folder),
            message_count=message_count,
            categorization=categorization,
            reason=reason,
        )

    def message_filed(
        self,
        uid: int,
        from_address: str | None,
        action: str,
        folder: str | None = None,
        dry_run: bool = False,
    ) -> None:
        fields = {
            "uid": uid,
            "from": clean_field(from_address) if from_address else None,
            "action": action,
            "folder": folder,
            "dry_run": dry_run,
        }
        self.record("message_filed", **fields)

    def error(self, error_type: str, message: str, **details: Any) -> None:
        self.record("error", error_type=error_type, message=clean_field(message), details=details)

    def run_started(self, **settings: Any) -> None:
        """Record the start of a run with its non-secret settings."""
        self.record("startup", **settings)

    def run_finished(self, reason: str = "normal") -> None:
        self.record("shutdown", reason=reason)
