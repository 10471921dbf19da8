"""Unit-test fixtures built on the in-memory fakes."""

from unittest.mock import AsyncMock

import pytest
from fakes import (
    FakePricing,
    InMemoryBundleRepository,
    InMemoryMoneyRequestRepository,
    RecordingNotifier,
    make_db,
)

from src.sm_common.aggregate_lock import AggregateLockRegistry
from src.sm_money.application.writer import MoneyRequestWriter


@pytest.fixture
def db() -> AsyncMock:
    return make_db()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def pricing() -> FakePricing:
    return FakePricing()


@pytest.fixture
def bundle_repo() -> InMemoryBundleRepository:
    return InMemoryBundleRepository()


@pytest.fixture
def money_repo() -> InMemoryMoneyRequestRepository:
    return InMemoryMoneyRequestRepository()


@pytest.fixture
def writer(money_repo: InMemoryMoneyRequestRepository) -> MoneyRequestWriter:
    return MoneyRequestWriter(repo=money_repo, locks=AggregateLockRegistry("test"))
