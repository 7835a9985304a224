"""Execution of filing decisions against the mailbox."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mailfiler.mailbox import InboxMessage, MailboxAccessor
    from mailfiler.audit import AuditLog

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    """Type of action to take on a message."""

    MOVE = "move"
    JUNK = "junk"
    KEEP = "keep"


@dataclass(frozen=True)
class FilingDecision:
    """What to do with one message."""

    action: ActionType | str
    folder: str | None = None
    reason: str = ""

    @classmethod
    def move(cls, folder: str, reason: str = "") -> FilingDecision:
        return cls(ActionType.MOVE, folder, reason)

    @classmethod
    def junk(cls, reason: str = "") -> FilingDecision:
        return cls(ActionType.JUNK, None, reason)

    @classmethod
    def keep(cls, reason: str = "") -> FilingDecision:
        return cls(ActionType.KEEP, None, reason)


class ActionExecutor:
    """Applies filing decisions and remembers which folders received mail.

    Moved messages are only flagged as deleted in their source folder; the
    caller expunges once after a batch, using changed_folders to decide
    whether anything needs compacting.
    """

    def __init__(
        self,
        mailbox: MailboxAccessor,
        junk_folder: str = "Junk",
        dry_run: bool = False,
        audit: AuditLog | None = None,
    ):
        self.mailbox = mailbox
        self.junk_folder = junk_folder
        self.dry_run = dry_run
        self.audit = audit
        self.changed_folders: set[str] = set()
        self._existing_folders: set[str] = set()

    def execute(self, decision: FilingDecision, message: InboxMessage) -> None:
        """Carry out one decision.

        Raises:
            ValueError: If the decision's action is not a known action, or a
                move has no destination folder
        """
        try:
            action = ActionType(decision.action)
        except ValueError:
            raise ValueError(f"Unknown action: {decision.action}") from None

        if action == ActionType.KEEP:
            logger.debug(f"Keeping message {message.uid} from '{message.from_address}'")
            self._audit(message, action, None)
            return

        if action == ActionType.JUNK:
            folder = self.junk_folder
        else:
            folder = decision.folder
            if not folder:
                raise ValueError(f"Move of message {message.uid} has no destination folder")

        self._move(message, folder)
        self.changed_folders.add(folder)
        self._audit(message, action, folder)

    def _move(self, message: InboxMessage, folder: str) -> None:
        if self.dry_run:
            logger.info(
                f"DRY-RUN: Would move message {message.uid} from '{message.from_address}' to '{folder}'"
            )
            return

        logger.info(f"Moving message {message.uid} from '{message.from_address}' to '{folder}'")
        self._ensure_folder_exists(folder)
        self.mailbox.copy_message(message.uid, folder)
        self.mailbox.mark_deleted(message.uid)

    def _ensure_folder_exists(self, folder: str) -> None:
        if folder in self._existing_folders:
            return
        if not self.mailbox.folder_exists(folder):
            self.mailbox.create_folder(folder)
        self._existing_folders.add(folder)

    def _audit(self, message: InboxMessage, action: ActionType, folder: str | None) -> None:
        if self.audit:
            self.audit.message_filed(
                uid=message.uid,
                from_address=message.from_address,
                action=action.value,
                folder=folder,
                dry_run=self.dry_run,
            )

    def summary(self) -> str:
        """Describe which folders were changed."""
        if not self.changed_folders:
            return "No messages were moved"
        folders = ", ".join(sorted(self.changed_folders))
        return f"Updated {len(self.changed_folders)} folders: {folders}"
