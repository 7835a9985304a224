"""Mailbox analysis: folder sampling, classification and recommendations."""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Callable
from typing import TYPE_CHECKING

from mailfiler.classifier import FolderClassifier
from mailfiler.domain_mapper import DomainMapper
from mailfiler.domain_rules import DomainRuleSet
from mailfiler.mailbox import FolderInfo, MailboxAccessor
from mailfiler.models import (
    Categorization,
    FolderAnalysis,
    FolderSnapshot,
    Recommendation,
    SentItemsSummary,
)
from mailfiler.senders import SENT_FOLDER_CANDIDATES

if TYPE_CHECKING:
    from mailfiler.audit import AuditLog
    from mailfiler.config import AnalysisConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

DOMAIN_CATEGORIES = [
    (re.compile(r"facebook\.com|twitter\.com|instagram\.com|linkedin\.com|tiktok\.com"), "social"),
    (re.compile(r"github\.com|gitlab\.com|bitbucket\.org|stackoverflow\.com"), "development"),
    (re.compile(r"newsletter|mailchimp|constantcontact|mailerlite|convertkit"), "newsletter"),
    (re.compile(r"amazon\.com|ebay\.com|etsy\.com|shopify\.com"), "shopping"),
    (re.compile(r"bank|paypal|stripe|square"), "financial"),
    (re.compile(r"google\.com|microsoft\.com|apple\.com|adobe\.com"), "tech_company"),
]


def categorize_domain(domain: str) -> str:
    """Label a sender domain with a coarse category."""
    domain = domain.lower()
    for pattern, category in DOMAIN_CATEGORIES:
        if pattern.search(domain):
            return category
    return "other"


class EmailAnalyzer:
    """Walks a mailbox, classifies its folders and derives recommendations.

    All mailbox access is sequential: each folder's select, search and fetch
    complete before the next folder is touched. A failure while sampling one
    folder degrades that folder's result and never aborts the run.
    """

    def __init__(
        self,
        mailbox: MailboxAccessor,
        config: AnalysisConfig | None = None,
        classifier: FolderClassifier | None = None,
        rules: DomainRuleSet | None = None,
        audit: AuditLog | None = None,
        inbox_folder: str = "INBOX",
    ):
        self.mailbox = mailbox
        self.sender_sample_size = config.sender_sample_size if config else 100
        self.sent_sample_size = config.sent_sample_size if config else 200
        self.top_correspondents = config.top_correspondents if config else 20
        self.classifier = classifier or FolderClassifier(
            mailbox,
            header_sample_size=config.header_sample_size if config else 20,
        )
        self.domain_mapper = DomainMapper(rules or DomainRuleSet.empty())
        self.audit = audit
        self.inbox_folder = inbox_folder

        self.folder_analysis: FolderAnalysis | None = None
        self.sent_items: SentItemsSummary | None = None

    def analyze_folders(self, progress: ProgressCallback | None = None) -> FolderAnalysis:
        """Sample and classify every folder except the inbox.

        Args:
            progress: Called with (index, total, folder_name) after each folder

        Returns:
            Kept folders sorted by descending message count, plus the names
            of skipped folders
        """
        folders: list[FolderSnapshot] = []
        skipped: list[str] = []

        listing = self.mailbox.list_folders()
        total = len(listing)
        logger.debug(f"Found {total} folders to analyze")

        for index, info in enumerate(listing, start=1):
            if info.name.upper() == self.inbox_folder.upper():
                continue

            logger.debug(f"Analyzing folder {index}/{total}: {info.name}")
            snapshot = self._build_snapshot(info)
            result = self.classifier.classify(snapshot)

            if result.categorization == Categorization.SKIP:
                logger.debug(f"  Skipping {info.name} ({result.reason})")
                skipped.append(info.name)
            else:
                logger.debug(f"  Categorized as {result.categorization.value} ({result.reason})")
                snapshot.categorization = result.categorization
                snapshot.reason = result.reason
                folders.append(snapshot)

            if self.audit:
                self.audit.folder_classified(
                    info.name, snapshot.message_count, result.categorization.value, result.reason
                )

            if progress:
                progress(index, total, info.name)

        folders.sort(key=lambda f: -f.message_count)
        logger.debug(
            f"Analysis complete: {len(folders)} folders analyzed, {len(skipped)} skipped"
        )

        self.folder_analysis = FolderAnalysis(folders=folders, skipped=skipped, total=total)
        return self.folder_analysis

    def _build_snapshot(self, info: FolderInfo) -> FolderSnapshot:
        try:
            self.mailbox.select_folder(info.name)
            status = self.mailbox.folder_status(info.name)
        except Exception as e:
            logger.error(f"Could not analyze folder {info.name}: {e}")
            return FolderSnapshot(name=info.name, attributes=list(info.attributes))

        message_count = status.get("MESSAGES", 0)
        return FolderSnapshot(
            name=info.name,
            message_count=message_count,
            unseen_count=status.get("UNSEEN", 0),
            senders=self._sample_senders(info.name, message_count),
            attributes=list(info.attributes),
        )

    def _sample_senders(self, folder: str, message_count: int) -> list[str]:
        """Unique first-From addresses of the most recent messages."""
        if message_count == 0:
            return []

        try:
            sample_size = min(message_count, self.sender_sample_size)
            uids = self.mailbox.search_all()[-sample_size:]
            if not uids:
                return []

            logger.debug(f"    Fetching {len(uids)} envelopes from {folder}")
            envelopes = self.mailbox.fetch_envelopes(uids)
        except Exception as e:
            logger.error(f"Could not analyze senders for {folder}: {e}")
            return []

        senders = list(dict.fromkeys(env.sender for env in envelopes if env.sender))
        logger.debug(f"    Found {len(senders)} unique senders")
        return senders

    def detect_sent_folder(self) -> str | None:
        """Return the first conventional sent-mail folder that can be selected."""
        for name in SENT_FOLDER_CANDIDATES:
            try:
                self.mailbox.select_folder(name)
            except Exception as e:
                logger.debug(f"Sent folder candidate {name} not usable: {e}")
                continue
            return name
        return None

    def analyze_sent_items(self) -> SentItemsSummary:
        """Find the most frequent recipients of recently sent mail."""
        sent_folder = self.detect_sent_folder()
        if sent_folder is None:
            logger.debug("No sent folder found")
            self.sent_items = SentItemsSummary()
            return self.sent_items

        try:
            logger.debug(f"Analyzing sent items from {sent_folder}")
            all_uids = self.mailbox.search_all()
            uids = all_uids[-self.sent_sample_size:]
            if not uids:
                self.sent_items = SentItemsSummary(total_sent=len(all_uids), folder=sent_folder)
                return self.sent_items

            envelopes = self.mailbox.fetch_envelopes(uids)
        except Exception as e:
            logger.error(f"Could not analyze sent items: {e}")
            self.sent_items = SentItemsSummary()
            return self.sent_items

        recipients = Counter(env.recipient for env in envelopes if env.recipient)
        frequent = tuple(recipients.most_common(self.top_correspondents))
        logger.debug(f"Found {len(frequent)} frequent correspondents")

        self.sent_items = SentItemsSummary(
            frequent_correspondents=frequent,
            total_sent=len(all_uids),
            sample_size=len(uids),
            folder=sent_folder,
        )
        return self.sent_items

    def analyze_domain_patterns(self) -> dict[str, str]:
        """Categorize every sender domain found in the analyzed folders."""
        if self.folder_analysis is None:
            return {}

        domains = dict.fromkeys(
            domain for folder in self.folder_analysis.folders for domain in folder.domains
        )
        return {domain: categorize_domain(domain) for domain in domains}

    def generate_recommendations(self) -> Recommendation:
        """Build filing recommendations from the analysis done so far."""
        if self.folder_analysis is None:
            logger.warning("No folder analysis available, recommendations will be empty")
            folders: list[FolderSnapshot] = []
        else:
            folders = self.folder_analysis.folders

        whitelist = [f.name for f in folders if f.categorization == Categorization.WHITELIST]
        lists = [f.name for f in folders if f.categorization == Categorization.LIST]
        correspondents = self.sent_items.frequent_correspondents if self.sent_items else ()

        return Recommendation(
            whitelist_folders=tuple(dict.fromkeys(whitelist)),
            list_folders=tuple(dict.fromkeys(lists)),
            domain_mappings=self.domain_mapper.generate_mappings(folders),
            frequent_correspondents=correspondents,
        )
