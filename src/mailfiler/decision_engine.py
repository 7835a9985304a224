"""Filing decisions for individual messages."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mailfiler.executor import FilingDecision

if TYPE_CHECKING:
    from mailfiler.config import FilingConfig
    from mailfiler.mailbox import InboxMessage
    from mailfiler.senders import SenderLists

logger = logging.getLogger(__name__)

# Headers added by forwarding services that make list detection unreliable
FAKE_HEADER_FIELDS = ["X-Antiabuse"]


class DecisionEngine:
    """Decides what happens to a message.

    The filing configuration is combined with the sender lists collected
    from the mailbox. Addresses from the configuration take precedence over
    collected ones where the two disagree.
    """

    def __init__(
        self,
        config: FilingConfig,
        senders: SenderLists | None = None,
        unjunking: bool = False,
    ):
        self.config = config
        self.unjunking = unjunking

        self.whitelisted_emails = {e.lower() for e in config.whitelisted_emails}
        self.whitelisted_domains = {d.lower() for d in config.whitelisted_domains}
        self.blacklisted_emails = {e.lower() for e in config.blacklisted_emails}
        self.junk_senders: set[str] = set()
        self.list_domain_map = {d.lower(): f for d, f in config.list_domain_map.items()}
        self.sender_map: dict[str, str] = {}

        if senders is not None:
            self.whitelisted_emails |= {e.lower() for e in senders.whitelisted}
            self.blacklisted_emails |= {e.lower() for e in senders.blacklisted}
            self.junk_senders = {e.lower() for e in senders.junk_senders}
            self.sender_map = {e.lower(): f for e, f in senders.sender_map.items()}

        self.sender_map.update({e.lower(): f for e, f in config.sender_map.items()})

    def decide_for_new_message(self, message: InboxMessage) -> FilingDecision:
        """
        Decide for a newly arrived inbox message.

        The user blacklist wins over everything, the whitelist keeps the
        message in place, senders known from list folders go back to their
        folder, recognised list mail goes to its list folder and anything
        else is junked.
        """
        if self._blacklisted(message):
            return FilingDecision.junk("blacklisted sender")

        if self._whitelisted(message):
            return FilingDecision.keep("whitelisted sender")

        folder = self.sender_map.get(message.from_address)
        if folder:
            return FilingDecision.move(folder, "known list sender")

        if self._valid_list_email(message):
            folder = self.list_domain_map.get(message.from_domain, self.config.list_folder)
            return FilingDecision.move(folder, "list sender")

        return FilingDecision.junk("unknown sender")

    def decide_for_filing(self, message: InboxMessage) -> FilingDecision:
        """Decide for an existing message: file it if its sender is mapped."""
        folder = self.sender_map.get(message.from_address)
        if folder:
            return FilingDecision.move(folder, "known sender")

        folder = self.list_domain_map.get(message.from_domain)
        if folder:
            return FilingDecision.move(folder, "list domain")

        return FilingDecision.keep("no mapping")

    def _blacklisted(self, message: InboxMessage) -> bool:
        if self.unjunking:
            return False
        if message.from_address in self.blacklisted_emails:
            return True
        # A whitelisted sender found in the junk folder is a false positive
        if self._whitelisted(message):
            return False
        return message.from_address in self.junk_senders

    def _whitelisted(self, message: InboxMessage) -> bool:
        if self.unjunking:
            return False
        return (
            message.from_address in self.whitelisted_emails
            or message.from_domain in self.whitelisted_domains
        )

    def _valid_list_email(self, message: InboxMessage) -> bool:
        if any(message.headers.get(name) is not None for name in FAKE_HEADER_FIELDS):
            return False

        if message.from_domain in self.list_domain_map:
            return True

        # Only the topmost Authentication-Results header, added by the
        # receiving server, is trusted
        auth_results = message.headers.get("Authentication-Results")
        return auth_results is not None and "dkim=pass" in str(auth_results)
