"""
Pytest configuration.

This file adds the project root to the Python path so that tests can import
the domain, services, repositories and api packages, and provides the
in-memory stores most tests share.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, services, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fakes import (  # noqa: E402
    InMemoryAttributionStore,
    InMemoryBillingStore,
    InMemoryEmailLog,
    InMemoryEventSource,
    InMemoryJobStore,
    InMemoryTenantStore,
)


@pytest.fixture
def events() -> InMemoryEventSource:
    return InMemoryEventSource()


@pytest.fixture
def email_log() -> InMemoryEmailLog:
    return InMemoryEmailLog()


@pytest.fixture
def tenants() -> InMemoryTenantStore:
    return InMemoryTenantStore()


@pytest.fixture
def attribution() -> InMemoryAttributionStore:
    return InMemoryAttributionStore()


@pytest.fixture
def jobs() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def billing() -> InMemoryBillingStore:
    return InMemoryBillingStore()
