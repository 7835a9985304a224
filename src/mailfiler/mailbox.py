"""Mailbox access interface shared by the analyzer, classifier and executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from email.message import Message
from email.utils import getaddresses
from typing import Protocol, runtime_checkable


class MailboxError(RuntimeError):
    """A mailbox protocol operation failed."""


@dataclass
class FolderInfo:
    """A folder as returned by a mailbox listing."""

    name: str
    delimiter: str = "/"
    attributes: list[str] = field(default_factory=list)


@dataclass
class Envelope:
    """Sender and recipient addresses of a message."""

    uid: int
    from_addrs: list[str] = field(default_factory=list)
    to_addrs: list[str] = field(default_factory=list)

    @property
    def sender(self) -> str | None:
        """First sender address, if any."""
        return self.from_addrs[0] if self.from_addrs else None

    @property
    def recipient(self) -> str | None:
        """First recipient address, if any."""
        return self.to_addrs[0] if self.to_addrs else None


@dataclass
class InboxMessage:
    """A message waiting to be filed, with its header block."""

    uid: int
    headers: Message

    @property
    def from_address(self) -> str:
        addresses = normalize_addresses([str(v) for v in self.headers.get_all("From", [])])
        return addresses[0] if addresses else ""

    @property
    def from_domain(self) -> str:
        return self.from_address.rpartition("@")[2]


def normalize_address(value: str) -> str | None:
    """Lower-case a bare address, returning None unless it is local@domain."""
    address = value.strip().lower()
    local, sep, domain = address.rpartition("@")
    if not sep or not local or not domain:
        return None
    return address


def normalize_addresses(values: list[str]) -> list[str]:
    """Parse address header values into normalized addresses, in order."""
    result = []
    for _name, addr in getaddresses(values):
        normalized = normalize_address(addr)
        if normalized:
            result.append(normalized)
    return result


@runtime_checkable
class MailboxAccessor(Protocol):
    """Operations the analysis and filing pipeline needs from a mailbox.

    Every operation acts on the connection's currently selected folder where
    that applies. Implementations raise MailboxError when the server refuses
    an operation.
    """

    def list_folders(self) -> list[FolderInfo]:
        """Return every folder in the mailbox."""

    def select_folder(self, folder: str) -> None:
        """Select a folder for subsequent operations."""

    def folder_status(self, folder: str) -> dict[str, int]:
        """Return the MESSAGES and UNSEEN counters of a folder."""

    def search_all(self) -> list[int]:
        """Return all message UIDs in the selected folder, oldest first."""

    def fetch_envelopes(self, uids: list[int]) -> list[Envelope]:
        """Return sender/recipient envelopes for the given UIDs."""

    def fetch_headers(self, uid: int) -> str:
        """Return the raw header block of a message."""

    def copy_message(self, uid: int, folder: str) -> None:
        """Copy a message into another folder."""

    def mark_deleted(self, uid: int) -> None:
        """Flag a message as deleted in the selected folder."""

    def create_folder(self, folder: str) -> None:
        """Create a folder."""

    def folder_exists(self, folder: str) -> bool:
        """Return True if the folder exists."""

    def expunge(self) -> None:
        """Permanently remove deleted messages from the selected folder."""


__all__ = [
    "Envelope",
    "FolderInfo",
    "InboxMessage",
    "MailboxAccessor",
    "MailboxError",
    "normalize_address",
    "normalize_addresses",
]
