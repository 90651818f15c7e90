"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from mass_notify.core.engine import MassNotificationEngine
from mass_notify.storage import InMemoryEndpointStore, InMemoryScheduleStore, InMemoryStatsStore
from mass_notify.utils.logging import clear_correlation_id
from tests.fixtures.doubles import StubGateway, build_engine


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> Iterator[None]:
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.fixture
def endpoint_store() -> InMemoryEndpointStore:
    return InMemoryEndpointStore()


@pytest.fixture
def stats_store() -> InMemoryStatsStore:
    return InMemoryStatsStore()


@pytest.fixture
def schedule_store() -> InMemoryScheduleStore:
    return InMemoryScheduleStore()


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def engine(
    endpoint_store: InMemoryEndpointStore,
    gateway: StubGateway,
    stats_store: InMemoryStatsStore,
    schedule_store: InMemoryScheduleStore,
) -> MassNotificationEngine:
    """Engine wired to the in-memory stores and stub gateway fixtures."""
    return build_engine(
        endpoint_store=endpoint_store,
        gateway=gateway,
        stats_store=stats_store,
        schedule_store=schedule_store,
    )
