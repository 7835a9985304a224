"""IMAP client for mailbox operations."""

from __future__ import annotations

import email
import imaplib
import json
import logging
import re
from typing import TYPE_CHECKING

from mailfiler.mailbox import (
    Envelope,
    FolderInfo,
    InboxMessage,
    MailboxError,
    normalize_addresses,
)

if TYPE_CHECKING:
    from mailfiler.config import ImapConfig

logger = logging.getLogger(__name__)

LIST_RESPONSE = re.compile(
    rb'\((?P<flags>[^)]*)\)\s+(?P<delim>"[^"]*"|NIL)\s+(?P<name>.+)$'
)
STATUS_ITEM = re.compile(rb"(MESSAGES|UNSEEN)\s+(\d+)")


def quote_folder(folder: str) -> str:
    """Quote a folder name for use as an IMAP astring."""
    escaped = folder.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def parse_list_response(line: bytes) -> FolderInfo | None:
    """Parse one untagged LIST response line."""
    match = LIST_RESPONSE.match(line.strip())
    if not match:
        return None

    flags = match.group("flags").decode("ascii", errors="replace").split()
    delim = match.group("delim").decode("ascii", errors="replace")
    delim = "" if delim == "NIL" else delim.strip('"')

    name = match.group("name").decode("utf-8", errors="replace").strip()
    if name.startswith('"') and name.endswith('"'):
        name = name[1:-1].replace('\\"', '"').replace("\\\\", "\\")

    return FolderInfo(name=name, delimiter=delim, attributes=flags)


def _fetch_payloads(data: list) -> list[tuple[int, bytes]]:
    """Extract (uid, literal) pairs from a UID FETCH response."""
    payloads = []
    for item in data:
        if not isinstance(item, tuple) or len(item) < 2:
            continue
        match = re.search(rb"UID (\d+)", item[0])
        if match:
            payloads.append((int(match.group(1)), item[1]))
    return payloads


class IMAPClient:
    """IMAP implementation of the mailbox accessor."""

    def __init__(self, config: ImapConfig):
        self.config = config
        self._connection: imaplib.IMAP4 | None = None
        self._selected_folder: str | None = None
        self._known_folders: set[str] | None = None

    def __enter__(self) -> IMAPClient:
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    @property
    def selected_folder(self) -> str | None:
        return self._selected_folder

    def connect(self) -> None:
        """Open the connection and authenticate.

        Raises:
            ConnectionError: If the server cannot be reached
            ValueError: If the server rejects the credentials
        """
        host, port = self.config.host, self.config.port
        factory = imaplib.IMAP4_SSL if self.config.use_tls else imaplib.IMAP4
        logger.info(json.dumps({"event": "connect", "host": host, "port": port, "tls": self.config.use_tls}))

        try:
            self._connection = factory(host, port, timeout=self.config.timeout)
        except OSError as e:
            message = f"Cannot connect to {host}:{port}: {e}"
            logger.error(message)
            raise ConnectionError(message) from e

        try:
            self._connection.login(self.config.username, self.config.get_password())
        except imaplib.IMAP4.error as e:
            if "AUTHENTICATIONFAILED" in str(e).upper():
                message = f"Authentication failed for {self.config.username}"
            else:
                message = f"Login rejected for {self.config.username}: {e}"
            logger.error(message)
            self._connection = None
            raise ValueError(message) from e

        logger.info(json.dumps({"event": "login", "username": self.config.username}))

    def disconnect(self) -> None:
        """Log out and forget all per-connection state."""
        connection, self._connection = self._connection, None
        self._selected_folder = None
        self._known_folders = None
        if connection is None:
            return
        try:
            connection.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.warning(f"Logout from {self.config.host} failed: {e}")

    def _conn(self) -> imaplib.IMAP4:
        if not self._connection:
            raise RuntimeError("Not connected")
        return self._connection

    def _command(self, name: str, *args) -> list:
        """Run an IMAP command, raising MailboxError unless the server says OK."""
        conn = self._conn()
        try:
            status, data = getattr(conn, name)(*args)
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailboxError(f"{name.upper()} failed: {e}") from e
        if status != "OK":
            raise MailboxError(f"{name.upper()} failed: {data}")
        return data

    def _uid(self, command: str, *args) -> list:
        return self._command("uid", command, *args)

    def list_folders(self) -> list[FolderInfo]:
        """List every folder on the server."""
        data = self._command("list", '""', "*")
        folders = []
        for line in data:
            if not line:
                continue
            if isinstance(line, tuple):
                # Folder name sent as a literal
                prefix, literal = line[0], line[1]
                escaped = literal.replace(b"\\", b"\\\\").replace(b'"', b'\\"')
                line = prefix.rsplit(b" ", 1)[0] + b' "' + escaped + b'"'
            folder = parse_list_response(line)
            if folder is None:
                logger.debug(f"Unparseable LIST response: {line!r}")
                continue
            folders.append(folder)

        self._known_folders = {f.name for f in folders}
        logger.debug(f"Found {len(folders)} folders")
        return folders

    def select_folder(self, folder: str) -> None:
        """Select a folder."""
        logger.debug(f"Selecting folder: {folder}")
        # A failed SELECT leaves no folder selected
        self._selected_folder = None
        self._command("select", quote_folder(folder))
        self._selected_folder = folder

    def folder_status(self, folder: str) -> dict[str, int]:
        """Read MESSAGES and UNSEEN counters of a folder."""
        data = self._command("status", quote_folder(folder), "(MESSAGES UNSEEN)")
        counters = {"MESSAGES": 0, "UNSEEN": 0}
        for line in data:
            if isinstance(line, bytes):
                for key, value in STATUS_ITEM.findall(line[line.rfind(b"("):]):
                    counters[key.decode()] = int(value)
        return counters

    def search_all(self) -> list[int]:
        """Return all UIDs of the selected folder, oldest first."""
        return self._search("ALL")

    def _search(self, *criteria: str) -> list[int]:
        if not self._selected_folder:
            raise MailboxError("No folder selected")
        data = self._uid("SEARCH", None, *criteria)
        if not data or not data[0]:
            return []
        return sorted(int(uid) for uid in data[0].split())

    def fetch_envelopes(self, uids: list[int]) -> list[Envelope]:
        """Fetch From/To addresses for the given UIDs."""
        if not uids:
            return []
        uid_set = ",".join(str(uid) for uid in uids)
        data = self._uid("FETCH", uid_set, "(UID BODY.PEEK[HEADER.FIELDS (FROM TO)])")

        envelopes = []
        for uid, raw in _fetch_payloads(data):
            msg = email.message_from_bytes(raw)
            envelopes.append(
                Envelope(
                    uid=uid,
                    from_addrs=normalize_addresses([str(v) for v in msg.get_all("From", [])]),
                    to_addrs=normalize_addresses([str(v) for v in msg.get_all("To", [])]),
                )
            )
        return envelopes

    def fetch_headers(self, uid: int) -> str:
        """Fetch the raw header block of one message."""
        data = self._uid("FETCH", str(uid), "(UID BODY.PEEK[HEADER])")
        payloads = _fetch_payloads(data)
        if not payloads:
            raise MailboxError(f"No headers returned for UID {uid}")
        return payloads[0][1].decode("utf-8", errors="replace")

    def fetch_new_messages(self, folder: str = "INBOX") -> list[InboxMessage]:
        """Fetch header blocks of unseen, undeleted messages in a folder."""
        self.select_folder(folder)
        uids = self._search("UNSEEN", "NOT", "DELETED")
        if not uids:
            return []

        logger.info(json.dumps({"event": "found_unseen", "folder": folder, "count": len(uids)}))
        return self._fetch_messages(uids)

    def fetch_all_messages(self, folder: str) -> list[InboxMessage]:
        """Fetch header blocks of every undeleted message in a folder."""
        self.select_folder(folder)
        uids = self._search("NOT", "DELETED")
        if not uids:
            return []
        return self._fetch_messages(uids)

    def _fetch_messages(self, uids: list[int]) -> list[InboxMessage]:
        uid_set = ",".join(str(uid) for uid in uids)
        data = self._uid("FETCH", uid_set, "(UID BODY.PEEK[HEADER])")
        return [
            InboxMessage(uid=uid, headers=email.message_from_bytes(raw))
            for uid, raw in _fetch_payloads(data)
        ]

    def copy_message(self, uid: int, folder: str) -> None:
        """Copy a message to another folder."""
        self._uid("COPY", str(uid), quote_folder(folder))

    def mark_deleted(self, uid: int) -> None:
        """Flag a message as deleted."""
        self._uid("STORE", str(uid), "+FLAGS", r"(\Deleted)")

    def create_folder(self, folder: str) -> None:
        """Create a folder."""
        logger.info(f"Creating folder: {folder}")
        self._command("create", quote_folder(folder))
        if self._known_folders is not None:
            self._known_folders.add(folder)

    def folder_exists(self, folder: str) -> bool:
        """Check whether a folder exists, using the last listing when available."""
        if self._known_folders is None:
            self.list_folders()
        return folder in self._known_folders

    def expunge(self) -> None:
        """Expunge deleted messages from the selected folder."""
        self._command("expunge")
        logger.debug(f"Expunged {self._selected_folder}")
