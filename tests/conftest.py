"""Shared fixtures."""

import pytest

from mailfiler.domain_rules import DEFAULT_RULES_PATH, load_domain_rules


@pytest.fixture
def default_rules():
    return load_domain_rules(None, DEFAULT_RULES_PATH)
