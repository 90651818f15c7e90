"""In-memory stores with the same contracts as the SQL stores.

Used by tests and by dry runs without a database. Every operation runs on
the event loop thread without awaiting in between, so a status transition is
atomic with respect to other coroutines.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from uuid import uuid4

from mass_notify.types import (
    DispatchSummaryRecord,
    Endpoint,
    Platform,
    ScheduledNotification,
    ScheduleStatus,
    StatsRow,
)

__all__ = ["InMemoryEndpointStore", "InMemoryScheduleStore", "InMemoryStatsStore"]


class InMemoryEndpointStore:
    """Endpoint store over a list, returned in insertion order."""

    def __init__(self, endpoints: Iterable[Endpoint] = ()) -> None:
        self._endpoints: list[Endpoint] = list(endpoints)
        self.query_count: int = 0

    def add(self, endpoint: Endpoint) -> None:
        self._endpoints.append(endpoint)

    async def query_endpoints(
        self,
        *,
        registered_after: datetime,
        platform: Platform | None = None,
        owner_ids: Collection[str] | None = None,
    ) -> Sequence[Endpoint]:
        self.query_count += 1
        return tuple(
            endpoint
            for endpoint in self._endpoints
            if endpoint.registered_at >= registered_after
            and (platform is None or endpoint.platform is platform)
            and (owner_ids is None or endpoint.owner_id in owner_ids)
        )


class InMemoryStatsStore:
    """Append-only stats store."""

    def __init__(self) -> None:
        self._records: list[DispatchSummaryRecord] = []

    @property
    def records(self) -> Sequence[DispatchSummaryRecord]:
        return tuple(self._records)

    async def insert(self, row: StatsRow) -> str:
        record = DispatchSummaryRecord(
            id=uuid4().hex,
            title=row.title,
            body=row.body,
            target_audience=row.target_audience,
            total_users=row.total_users,
            sent_count=row.sent_count,
            failed_count=row.failed_count,
            created_at=row.created_at,
        )
        self._records.append(record)
        return record.id

    async def recent(self, limit: int) -> Sequence[DispatchSummaryRecord]:
        # Stable sort keeps insertion order reversed for equal timestamps
        newest_first = sorted(reversed(self._records), key=lambda record: record.created_at, reverse=True)
        return tuple(newest_first[:limit])


class InMemoryScheduleStore:
    """Scheduled-notification store keyed by record id."""

    def __init__(self) -> None:
        self._records: dict[str, ScheduledNotification] = {}

    async def insert(self, record: ScheduledNotification) -> None:
        if record.id in self._records:
            msg = f"Scheduled notification {record.id!r} already exists"
            raise ValueError(msg)
        self._records[record.id] = record

    async def get(self, record_id: str) -> ScheduledNotification | None:
        return self._records.get(record_id)

    async def transition(
        self,
        record_id: str,
        *,
        expected: ScheduleStatus,
        new: ScheduleStatus,
    ) -> bool:
        record = self._records.get(record_id)
        if record is None or record.status is not expected:
            return False
        self._records[record_id] = replace(record, status=new)
        return True

    async def list_due(self, now: datetime) -> Sequence[ScheduledNotification]:
        return tuple(
            record
            for record in self._records.values()
            if record.status is ScheduleStatus.SCHEDULED and record.scheduled_at <= now
        )
