"""Heuristic classification of mailbox folders."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from mailfiler.mailbox import MailboxAccessor
from mailfiler.models import Categorization, Classification, FolderSnapshot

logger = logging.getLogger(__name__)

MIN_MESSAGE_COUNT = 5
BULK_HEADER_RATIO = 0.3
SINGLE_SOURCE_MAX_DOMAINS = 2
SINGLE_SOURCE_MIN_MESSAGES = 50
PERSONAL_SENDER_RATIO = 0.3
HIGH_VOLUME_MIN_MESSAGES = 100

SYSTEM_FOLDER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"^sent",
        r"^drafts?$",
        r"^outbox$",
        r"^trash$",
        r"^deleted",
        r"^junk",
        r"^calendar",
        r"^contacts$",
        r"^notes$",
        r"^tasks$",
        r"^templates$",
        r"^archive$",
        r"^conversation",
        r"^journal$",
        r"^apple mail to do$",
        r"^notes_\d+$",
        r"^_unsubscribed$",
        r"^old$",
        r"^misc$",
    ]
]

LIST_FOLDER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in [
        # Social networks
        r"^facebook$", r"^twitter$", r"^linkedin$", r"^instagram$",
        # E-commerce
        r"^amazon$", r"^ebay$", r"^paypal$",
        # Development platforms
        r"^github$", r"^stackoverflow$", r"^gitlab$",
        # Newsletter and notification content
        r"^shopping", r"^entertainment", r"^movies", r"^tv", r"^streaming",
        r"^lists?", r"^newsletters?", r"^notifications?", r"^alerts",
        r"^marketing", r"^promotions", r"^ads", r"^deals",
        r"^updates",
    ]
]

WHITELIST_FOLDER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"^family", r"^friends", r"^personal", r"^private",
        r"^work", r"^business", r"^clients", r"^customers",
        r"^important", r"^urgent", r"^priority", r"^critical",
        r"^projects", r"^meetings", r"^appointments",
    ]
]

BULK_HEADER_PATTERNS = [
    re.compile(p, re.IGNORECASE | re.MULTILINE)
    for p in [
        r"^List-Unsubscribe:",
        r"^Precedence:\s*bulk",
        r"^X-Mailer:.*(mailing|newsletter|campaign)",
        r"^X-Campaign:",
        r"^X-Mailing-List:",
        r"^Feedback-ID:",
        r"^X-Auto-Response-Suppress:",
    ]
]

# Weak heuristic: corporate first.last accounts of bulk senders also match.
PERSONAL_LOCAL_PART = re.compile(r"^[a-z]+\.[a-z]+$")


def matches_any(patterns: list[re.Pattern], value: str) -> bool:
    return any(p.search(value) for p in patterns)


def has_bulk_header(header_text: str) -> bool:
    """Check whether a raw header block carries a bulk-mail indicator."""
    return matches_any(BULK_HEADER_PATTERNS, header_text)


@dataclass(frozen=True)
class ClassificationRule:
    """One entry in the ordered classification table."""

    name: str
    applies: Callable[[FolderSnapshot], bool]
    categorization: Categorization
    reason: Callable[[FolderSnapshot], str]


class FolderClassifier:
    """Assigns skip/list/whitelist to a folder snapshot.

    The optional mailbox is used to sample message headers; without one the
    bulk header check never matches.
    """

    def __init__(
        self,
        mailbox: MailboxAccessor | None = None,
        header_sample_size: int = 20,
    ):
        self.mailbox = mailbox
        self.header_sample_size = header_sample_size
        self.rules = [
            ClassificationRule(
                name="system_folder",
                applies=lambda f: matches_any(SYSTEM_FOLDER_PATTERNS, f.name),
                categorization=Categorization.SKIP,
                reason=lambda f: "system folder",
            ),
            ClassificationRule(
                name="low_volume",
                applies=lambda f: f.message_count < MIN_MESSAGE_COUNT,
                categorization=Categorization.SKIP,
                reason=lambda f: f"low volume ({f.message_count} messages)",
            ),
            ClassificationRule(
                name="bulk_headers",
                applies=self._has_bulk_headers,
                categorization=Categorization.LIST,
                reason=lambda f: "bulk headers detected",
            ),
            ClassificationRule(
                name="list_name",
                applies=lambda f: matches_any(LIST_FOLDER_PATTERNS, f.name),
                categorization=Categorization.LIST,
                reason=lambda f: "folder name suggests list/newsletter content",
            ),
            ClassificationRule(
                name="whitelist_name",
                applies=lambda f: matches_any(WHITELIST_FOLDER_PATTERNS, f.name),
                categorization=Categorization.WHITELIST,
                reason=lambda f: "folder name suggests personal/professional emails",
            ),
        ]

    def classify(self, folder: FolderSnapshot) -> Classification:
        """Classify a folder. The first matching rule wins."""
        for rule in self.rules:
            if rule.applies(folder):
                logger.debug(f"Rule '{rule.name}' matched for folder {folder.name}")
                return Classification(rule.categorization, rule.reason(folder))

        return self._classify_by_senders(folder)

    def _has_bulk_headers(self, folder: FolderSnapshot) -> bool:
        if self.mailbox is None:
            return False

        try:
            self.mailbox.select_folder(folder.name)
            uids = self.mailbox.search_all()[-self.header_sample_size:]
            if not uids:
                return False

            indicators = sum(
                1 for uid in uids if has_bulk_header(self.mailbox.fetch_headers(uid))
            )
        except Exception as e:
            logger.error(f"Could not analyze headers for {folder.name}: {e}")
            return False

        return indicators / len(uids) > BULK_HEADER_RATIO

    def _classify_by_senders(self, folder: FolderSnapshot) -> Classification:
        senders = folder.senders
        if not senders:
            return Classification(Categorization.SKIP, "no senders found")

        if (
            len(folder.domains) <= SINGLE_SOURCE_MAX_DOMAINS
            and folder.message_count > SINGLE_SOURCE_MIN_MESSAGES
        ):
            return Classification(
                Categorization.LIST, "sender patterns suggest list/newsletter content"
            )

        personal = sum(
            1 for s in senders if PERSONAL_LOCAL_PART.match(s.rpartition("@")[0])
        )
        if personal > len(senders) * PERSONAL_SENDER_RATIO:
            return Classification(
                Categorization.WHITELIST, "sender patterns suggest personal correspondence"
            )

        if folder.message_count > HIGH_VOLUME_MIN_MESSAGES:
            return Classification(Categorization.LIST, "high volume with mixed senders")
        return Classification(Categorization.SKIP, "no clear pattern")
