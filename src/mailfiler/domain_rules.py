"""Loading of the domain relation rule tables."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "domain_rules.yml"

PatternTable = tuple[tuple[re.Pattern, tuple[str, ...]], ...]


class DomainRulesFile(BaseModel):
    """Schema of a domain rules YAML file."""

    domain_patterns: dict[str, list[str]] = Field(default_factory=dict)
    folder_patterns: dict[str, list[str]] = Field(default_factory=dict)


@dataclass(frozen=True)
class DomainRuleSet:
    """Ordered pattern tables; the first matching pattern wins."""

    domain_patterns: PatternTable = ()
    folder_patterns: PatternTable = ()
    source: Path | None = field(default=None, compare=False)

    @classmethod
    def empty(cls) -> DomainRuleSet:
        return cls()

    @classmethod
    def from_mapping(cls, data: dict, source: Path | None = None) -> DomainRuleSet:
        """Build a rule set from parsed YAML data.

        Raises:
            ValidationError: If the data does not have the expected shape
        """
        parsed = DomainRulesFile(**data)
        return cls(
            domain_patterns=_compile_table(parsed.domain_patterns, source),
            folder_patterns=_compile_table(parsed.folder_patterns, source),
            source=source,
        )

    def related_domains(self, domain: str) -> tuple[str, ...]:
        """Domains related to the given sender domain."""
        return _first_match(self.domain_patterns, domain)

    def suggested_domains(self, folder_name: str) -> tuple[str, ...]:
        """Domains suggested for a folder with the given name."""
        return _first_match(self.folder_patterns, folder_name)

    def __len__(self) -> int:
        return len(self.domain_patterns) + len(self.folder_patterns)


def _compile_table(table: dict[str, list[str]], source: Path | None) -> PatternTable:
    compiled = []
    for pattern, domains in table.items():
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.error(f"Invalid pattern in domain rules {source}: {pattern} - {e}")
            continue
        cleaned = tuple(dict.fromkeys(d.strip().lower() for d in domains if d and d.strip()))
        compiled.append((regex, cleaned))
    return tuple(compiled)


def _first_match(table: PatternTable, value: str) -> tuple[str, ...]:
    for regex, domains in table:
        if regex.search(value):
            return domains
    return ()


def _read_rules(path: Path) -> DomainRuleSet:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a mapping at top level, got {type(data).__name__}")
    return DomainRuleSet.from_mapping(data, source=path)


def load_domain_rules(
    user_path: str | Path | None,
    default_path: str | Path | None = DEFAULT_RULES_PATH,
) -> DomainRuleSet:
    """Resolve and load the domain rules.

    The user override is tried first, then the packaged default. A missing or
    unreadable source falls through to the next one; when neither yields a
    rule set the result is empty.

    Args:
        user_path: User override file, may not exist
        default_path: Packaged default rules file

    Returns:
        The loaded rule set
    """
    for label, candidate in (("user", user_path), ("default", default_path)):
        if candidate is None:
            continue
        path = Path(candidate).expanduser()
        if not path.exists():
            logger.debug(f"No {label} domain rules at {path}")
            continue
        try:
            rules = _read_rules(path)
        except (OSError, yaml.YAMLError, ValidationError, ValueError) as e:
            logger.warning(f"Could not load {label} domain rules from {path}: {e}")
            continue
        logger.debug(f"Loaded {len(rules)} domain rules from {path}")
        return rules

    logger.warning("No domain rules file found, domain mappings will be empty")
    return DomainRuleSet.empty()
