"""In-memory mailbox used by the tests."""

from __future__ import annotations

import email
from dataclasses import dataclass

from mailfiler.mailbox import Envelope, FolderInfo, InboxMessage, MailboxError
from mailfiler.models import Categorization, FolderSnapshot


@dataclass
class FakeMessage:
    from_addr: str | None = "sender@example.com"
    to_addr: str | None = "me@example.org"
    extra_headers: str = ""

    def header_block(self) -> str:
        lines = []
        if self.from_addr:
            lines.append(f"From: {self.from_addr}")
        if self.to_addr:
            lines.append(f"To: {self.to_addr}")
        lines.append("Subject: test")
        block = "\r\n".join(lines) + "\r\n"
        if self.extra_headers:
            block += self.extra_headers.rstrip("\r\n") + "\r\n"
        return block + "\r\n"


MUTATIONS = {"copy_message", "mark_deleted", "create_folder", "expunge"}


class FakeMailbox:
    """Mailbox accessor backed by dictionaries.

    Folders listed in the fail_* sets raise MailboxError from the matching
    operation. Every call is recorded in `calls`.
    """

    def __init__(self, folders: dict[str, list[FakeMessage]] | None = None):
        self.folders: dict[str, list[FakeMessage]] = dict(folders or {})
        self.attributes: dict[str, list[str]] = {}
        self.unselectable: set[str] = set()
        self.fail_status: set[str] = set()
        self.fail_search: set[str] = set()
        self.fail_fetch: set[str] = set()
        self.fail_headers: set[str] = set()
        self.status_override: dict[str, int] = {}
        self.selected: str | None = None
        self.calls: list[tuple] = []

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in MUTATIONS]

    def list_folders(self) -> list[FolderInfo]:
        self.calls.append(("list_folders",))
        return [
            FolderInfo(name=name, attributes=self.attributes.get(name, []))
            for name in self.folders
        ]

    def select_folder(self, folder: str) -> None:
        self.calls.append(("select_folder", folder))
        if folder not in self.folders or folder in self.unselectable:
            self.selected = None
            raise MailboxError(f"SELECT failed: {folder}")
        self.selected = folder

    def folder_status(self, folder: str) -> dict[str, int]:
        self.calls.append(("folder_status", folder))
        if folder in self.fail_status:
            raise MailboxError(f"STATUS failed: {folder}")
        count = self.status_override.get(folder, len(self.folders[folder]))
        return {"MESSAGES": count, "UNSEEN": 0}

    def search_all(self) -> list[int]:
        self.calls.append(("search_all", self.selected))
        if self.selected is None or self.selected in self.fail_search:
            raise MailboxError("SEARCH failed")
        return list(range(1, len(self.folders[self.selected]) + 1))

    def _message(self, uid: int) -> FakeMessage:
        return self.folders[self.selected][uid - 1]

    def fetch_envelopes(self, uids: list[int]) -> list[Envelope]:
        self.calls.append(("fetch_envelopes", self.selected, list(uids)))
        if self.selected in self.fail_fetch:
            raise MailboxError("FETCH failed")
        envelopes = []
        for uid in uids:
            message = self._message(uid)
            envelopes.append(
                Envelope(
                    uid=uid,
                    from_addrs=[message.from_addr.lower()] if message.from_addr else [],
                    to_addrs=[message.to_addr.lower()] if message.to_addr else [],
                )
            )
        return envelopes

    def fetch_headers(self, uid: int) -> str:
        self.calls.append(("fetch_headers", self.selected, uid))
        if self.selected in self.fail_headers:
            raise MailboxError("FETCH failed")
        return self._message(uid).header_block()

    def copy_message(self, uid: int, folder: str) -> None:
        self.calls.append(("copy_message", uid, folder))

    def mark_deleted(self, uid: int) -> None:
        self.calls.append(("mark_deleted", uid))

    def create_folder(self, folder: str) -> None:
        self.calls.append(("create_folder", folder))
        self.folders.setdefault(folder, [])

    def folder_exists(self, folder: str) -> bool:
        self.calls.append(("folder_exists", folder))
        return folder in self.folders

    def expunge(self) -> None:
        self.calls.append(("expunge", self.selected))


def messages(count: int, **kwargs) -> list[FakeMessage]:
    """Build `count` identical messages."""
    return [FakeMessage(**kwargs) for _ in range(count)]


def inbox_message(uid: int = 1, from_addr: str = "sender@example.com", extra_headers: str = "") -> InboxMessage:
    """Build an inbox message from a sender address and optional headers."""
    block = f"From: {from_addr}\r\nTo: me@example.org\r\nSubject: hello\r\n"
    if extra_headers:
        block += extra_headers.rstrip("\r\n") + "\r\n"
    return InboxMessage(uid=uid, headers=email.message_from_string(block + "\r\n"))


def snapshot(
    name: str,
    message_count: int = 10,
    senders: list[str] | None = None,
    categorization: Categorization | None = None,
) -> FolderSnapshot:
    """Build a folder snapshot."""
    return FolderSnapshot(
        name=name,
        message_count=message_count,
        senders=senders or [],
        categorization=categorization,
    )
