"""Sender address lists collected from mailbox folders at filing time."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mailfiler.mailbox import MailboxAccessor, MailboxError

if TYPE_CHECKING:
    from mailfiler.config import FilingConfig

logger = logging.getLogger(__name__)

FETCH_BATCH_SIZE = 200

SENT_FOLDER_CANDIDATES = ["Sent Items", "Sent", "[Gmail]/Sent Mail", "Sent Mail"]


@dataclass
class SenderLists:
    """Addresses learned from the user's own folders.

    whitelisted holds senders of whitelist folders plus recipients of sent
    mail. blacklisted holds senders of the blacklist folder, junk_senders the
    senders found in the junk folder. sender_map sends each list-folder
    sender back to the folder it was found in; the first folder wins.
    """

    whitelisted: set[str] = field(default_factory=set)
    blacklisted: set[str] = field(default_factory=set)
    junk_senders: set[str] = field(default_factory=set)
    sender_map: dict[str, str] = field(default_factory=dict)


def collect_addresses(
    mailbox: MailboxAccessor,
    folder: str,
    recipients: bool = False,
    limit: int = 1000,
) -> list[str]:
    """Unique sender (or recipient) addresses of the newest messages in a folder.

    A folder that does not exist yields no addresses.
    """
    if not mailbox.folder_exists(folder):
        logger.debug(f"Folder {folder} not found, no addresses collected")
        return []

    mailbox.select_folder(folder)
    uids = mailbox.search_all()[-limit:]

    addresses: dict[str, None] = {}
    for start in range(0, len(uids), FETCH_BATCH_SIZE):
        for envelope in mailbox.fetch_envelopes(uids[start:start + FETCH_BATCH_SIZE]):
            address = envelope.recipient if recipients else envelope.sender
            if address:
                addresses.setdefault(address)

    logger.debug(f"Collected {len(addresses)} addresses from {folder}")
    return list(addresses)


def find_sent_folder(mailbox: MailboxAccessor, configured: str | None = None) -> str | None:
    """The configured sent folder, else the one flagged \\Sent, else a conventional name."""
    if configured:
        return configured

    folders = mailbox.list_folders()
    for info in folders:
        if any(attr.lower() == "\\sent" for attr in info.attributes):
            return info.name

    names = {info.name for info in folders}
    for name in SENT_FOLDER_CANDIDATES:
        if name in names:
            return name
    return None


class SenderListBuilder:
    """Collects the sender lists a filing run needs."""

    def __init__(self, mailbox: MailboxAccessor, config: FilingConfig):
        self.mailbox = mailbox
        self.config = config

    def _collect(self, folder: str, recipients: bool = False) -> list[str]:
        return collect_addresses(
            self.mailbox, folder, recipients=recipients, limit=self.config.folder_sample_size
        )

    def for_cleaning(self) -> SenderLists:
        """Whitelist, blacklist, junk senders and list-folder sender map."""
        lists = SenderLists()
        self._add_blacklist(lists)
        self._add_whitelist(lists)
        self._add_sender_map(lists, self.config.sender_map_folders())
        return lists

    def for_filing(self) -> SenderLists:
        """Sender map over the list and whitelist folders."""
        lists = SenderLists()
        self._add_sender_map(lists, self.config.sender_map_folders(filing=True))
        return lists

    def _add_blacklist(self, lists: SenderLists) -> None:
        logger.info("Building blacklist...")
        if self.config.blacklist_folder:
            try:
                lists.blacklisted.update(self._collect(self.config.blacklist_folder))
            except MailboxError as e:
                logger.warning(
                    f"Blacklist folder '{self.config.blacklist_folder}' not readable: {e}"
                )
        lists.junk_senders.update(self._collect(self.config.junk_folder))
        logger.info(
            f"Found {len(lists.blacklisted)} blacklisted and {len(lists.junk_senders)} junk folder senders"
        )

    def _add_whitelist(self, lists: SenderLists) -> None:
        logger.info("Building whitelist...")
        for folder in self.config.whitelist_folders:
            lists.whitelisted.update(self._collect(folder))

        sent_folder = find_sent_folder(self.mailbox, self.config.sent_folder)
        if sent_folder:
            lists.whitelisted.update(self._collect(sent_folder, recipients=True))
        else:
            logger.warning("No sent folder found, sent mail recipients are not whitelisted")
        logger.info(f"Found {len(lists.whitelisted)} whitelisted senders")

    def _add_sender_map(self, lists: SenderLists, folders: list[str]) -> None:
        logger.info("Building sender map...")
        for folder in folders:
            logger.debug(f"  adding addresses from {folder}")
            for address in self._collect(folder):
                lists.sender_map.setdefault(address, folder)
        logger.info(f"Mapped {len(lists.sender_map)} senders to folders")
