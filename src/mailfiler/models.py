"""Data model for folder analysis results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Categorization(str, Enum):
    """Class assigned to a folder by the classifier."""

    SKIP = "skip"
    LIST = "list"
    WHITELIST = "whitelist"


@dataclass(frozen=True)
class Classification:
    """Result of classifying one folder."""

    categorization: Categorization
    reason: str


@dataclass
class FolderSnapshot:
    """Analyzed state of one mailbox folder."""

    name: str
    message_count: int = 0
    senders: list[str] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)
    unseen_count: int = 0
    categorization: Categorization | None = None
    reason: str | None = None

    @property
    def domains(self) -> list[str]:
        """Unique host parts of the sampled senders."""
        return list(dict.fromkeys(s.rpartition("@")[2] for s in self.senders))


@dataclass
class FolderAnalysis:
    """Outcome of walking every folder of a mailbox."""

    folders: list[FolderSnapshot]
    skipped: list[str]
    total: int

    @property
    def total_analyzed(self) -> int:
        return len(self.folders)

    @property
    def total_skipped(self) -> int:
        return len(self.skipped)


@dataclass(frozen=True)
class SentItemsSummary:
    """Most frequent recipients found in the sent-mail folder."""

    frequent_correspondents: tuple[tuple[str, int], ...] = ()
    total_sent: int = 0
    sample_size: int = 0
    folder: str | None = None


@dataclass(frozen=True)
class Recommendation:
    """Filing configuration suggested by an analysis run."""

    whitelist_folders: tuple[str, ...] = ()
    list_folders: tuple[str, ...] = ()
    domain_mappings: dict[str, str] = field(default_factory=dict)
    frequent_correspondents: tuple[tuple[str, int], ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "whitelist_folders": list(self.whitelist_folders),
            "list_folders": list(self.list_folders),
            "domain_mappings": dict(self.domain_mappings),
            "frequent_correspondents": [
                {"address": address, "count": count}
                for address, count in self.frequent_correspondents
            ],
        }
