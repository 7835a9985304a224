"""Inference of related sender domains for list folders."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from mailfiler.domain_rules import DomainRuleSet
from mailfiler.models import Categorization, FolderSnapshot

logger = logging.getLogger(__name__)


class DomainMapper:
    """Maps domains related to a list folder's senders onto that folder."""

    def __init__(self, rules: DomainRuleSet):
        self.rules = rules

    def generate_mappings(self, folders: Iterable[FolderSnapshot]) -> dict[str, str]:
        """
        Build a domain -> folder name mapping.

        Only list folders contribute. A domain that some folder already
        receives mail from is never mapped, and the first folder to claim a
        domain keeps it.
        """
        folders = list(folders)
        owned = {domain for folder in folders for domain in folder.domains}
        mappings: dict[str, str] = {}

        def claim(domain: str, folder_name: str) -> None:
            if domain in mappings or domain in owned:
                return
            mappings[domain] = folder_name

        for folder in folders:
            if folder.categorization != Categorization.LIST:
                continue

            for domain in folder.domains:
                for related in self.rules.related_domains(domain):
                    claim(related, folder.name)

            for suggested in self.rules.suggested_domains(folder.name):
                claim(suggested, folder.name)

        logger.debug(f"Generated {len(mappings)} domain mappings")
        return mappings
