"""SQLAlchemy-backed stores.

Tables:
    push_tokens: registered push endpoints (read-only to the engine)
    notification_stats: one row per pipeline run
    scheduled_notifications: deferred requests and their lifecycle status

The driver is synchronous; every store call runs in a worker thread through
``asyncio.to_thread`` so the event loop never blocks on the database.
Timestamps are stored as naive UTC and returned timezone-aware.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Sequence
from datetime import UTC, datetime
from typing import override
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, String, Text, create_engine, select, update
from sqlalchemy.engine import Dialect, Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from mass_notify.types import (
    CustomAudience,
    DispatchSummaryRecord,
    Endpoint,
    NotificationRequest,
    Platform,
    ScheduledNotification,
    ScheduleStatus,
    StatsRow,
    parse_audience,
)

__all__ = [
    "Base",
    "NotificationStatsRow",
    "PushTokenRow",
    "SQLEndpointStore",
    "SQLScheduleStore",
    "SQLStatsStore",
    "ScheduledNotificationRow",
    "create_database",
]

logger = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    """Aware datetimes in, aware UTC datetimes out, naive UTC at rest."""

    impl = DateTime
    cache_ok = True

    @override
    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            msg = "Naive datetime cannot be stored"
            raise ValueError(msg)
        return value.astimezone(UTC).replace(tzinfo=None)

    @override
    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    pass


class PushTokenRow(Base):
    """Registered push endpoint."""

    __tablename__ = "push_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(255), unique=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    platform: Mapped[str] = mapped_column(String(16), index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)


class NotificationStatsRow(Base):
    """Outcome of one mass notification run."""

    __tablename__ = "notification_stats"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    body: Mapped[str] = mapped_column(Text)
    target_audience: Mapped[str] = mapped_column(String(16))
    total_users: Mapped[int] = mapped_column(Integer)
    sent_count: Mapped[int] = mapped_column(Integer)
    failed_count: Mapped[int] = mapped_column(Integer)
    delivered_count: Mapped[int] = mapped_column(Integer, default=0)
    opened_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)


class ScheduledNotificationRow(Base):
    """Deferred request waiting for the time trigger."""

    __tablename__ = "scheduled_notifications"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    body: Mapped[str] = mapped_column(Text)
    target_audience: Mapped[str] = mapped_column(String(16))
    owner_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    payload: Mapped[dict[str, object]] = mapped_column(JSON, default=dict)
    notification_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scheduled_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    status: Mapped[str] = mapped_column(String(16), index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime())


def create_database(database_url: str, *, create_tables: bool = True) -> Engine:
    """Create the engine for ``database_url`` and, optionally, the tables.

    SQLite connections are shared with worker threads; an in-memory SQLite
    database is pinned to a single connection so every thread sees it.
    """
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif database_url.startswith("sqlite"):
        engine = create_engine(database_url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(database_url, pool_pre_ping=True)

    if create_tables:
        Base.metadata.create_all(engine)
    logger.debug("Database ready", extra={"dialect": engine.dialect.name})
    return engine


class _SQLStore:
    def __init__(self, engine: Engine) -> None:
        self._engine: Engine = engine
        self._sessions: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)


class SQLEndpointStore(_SQLStore):
    """Endpoint store over ``push_tokens``."""

    async def add(self, endpoint: Endpoint) -> None:
        await asyncio.to_thread(self._add_sync, endpoint)

    def _add_sync(self, endpoint: Endpoint) -> None:
        with self._sessions.begin() as session:
            session.add(
                PushTokenRow(
                    token=endpoint.token,
                    user_id=endpoint.owner_id,
                    platform=endpoint.platform.value,
                    created_at=endpoint.registered_at,
                )
            )

    async def query_endpoints(
        self,
        *,
        registered_after: datetime,
        platform: Platform | None = None,
        owner_ids: Collection[str] | None = None,
    ) -> Sequence[Endpoint]:
        return await asyncio.to_thread(self._query_sync, registered_after, platform, owner_ids)

    def _query_sync(
        self,
        registered_after: datetime,
        platform: Platform | None,
        owner_ids: Collection[str] | None,
    ) -> tuple[Endpoint, ...]:
        stmt = select(PushTokenRow).where(PushTokenRow.created_at >= registered_after)
        if platform is not None:
            stmt = stmt.where(PushTokenRow.platform == platform.value)
        if owner_ids is not None:
            stmt = stmt.where(PushTokenRow.user_id.in_(sorted(owner_ids)))
        stmt = stmt.order_by(PushTokenRow.id)

        with self._sessions() as session:
            rows = session.scalars(stmt).all()
            return tuple(
                Endpoint(
                    token=row.token,
                    platform=Platform(row.platform),
                    owner_id=row.user_id,
                    registered_at=row.created_at,
                )
                for row in rows
            )


class SQLStatsStore(_SQLStore):
    """Append-only stats store over ``notification_stats``."""

    async def insert(self, row: StatsRow) -> str:
        return await asyncio.to_thread(self._insert_sync, row)

    def _insert_sync(self, row: StatsRow) -> str:
        row_id = uuid4().hex
        with self._sessions.begin() as session:
            session.add(
                NotificationStatsRow(
                    id=row_id,
                    title=row.title,
                    body=row.body,
                    target_audience=row.target_audience,
                    total_users=row.total_users,
                    sent_count=row.sent_count,
                    failed_count=row.failed_count,
                    delivered_count=0,
                    opened_count=0,
                    created_at=row.created_at,
                )
            )
        return row_id

    async def recent(self, limit: int) -> Sequence[DispatchSummaryRecord]:
        return await asyncio.to_thread(self._recent_sync, limit)

    def _recent_sync(self, limit: int) -> tuple[DispatchSummaryRecord, ...]:
        stmt = select(NotificationStatsRow).order_by(NotificationStatsRow.created_at.desc()).limit(limit)
        with self._sessions() as session:
            return tuple(
                DispatchSummaryRecord(
                    id=row.id,
                    title=row.title,
                    body=row.body,
                    target_audience=row.target_audience,
                    total_users=row.total_users,
                    sent_count=row.sent_count,
                    failed_count=row.failed_count,
                    created_at=row.created_at,
                )
                for row in session.scalars(stmt).all()
            )


class SQLScheduleStore(_SQLStore):
    """Scheduled-notification store over ``scheduled_notifications``.

    Status changes are a conditional UPDATE on the expected status, so a
    cancel racing a dispatch has exactly one winner.
    """

    async def insert(self, record: ScheduledNotification) -> None:
        await asyncio.to_thread(self._insert_sync, record)

    def _insert_sync(self, record: ScheduledNotification) -> None:
        request = record.request
        owner_ids = sorted(request.audience.owner_ids) if isinstance(request.audience, CustomAudience) else []
        with self._sessions.begin() as session:
            session.add(
                ScheduledNotificationRow(
                    id=record.id,
                    title=request.title,
                    body=request.body,
                    target_audience=request.audience.tag,
                    owner_ids=owner_ids,
                    payload=dict(request.payload),
                    notification_type=request.notification_type,
                    scheduled_at=record.scheduled_at,
                    status=record.status.value,
                    created_at=record.created_at,
                )
            )

    async def get(self, record_id: str) -> ScheduledNotification | None:
        return await asyncio.to_thread(self._get_sync, record_id)

    def _get_sync(self, record_id: str) -> ScheduledNotification | None:
        with self._sessions() as session:
            row = session.get(ScheduledNotificationRow, record_id)
            return _to_record(row) if row is not None else None

    async def transition(
        self,
        record_id: str,
        *,
        expected: ScheduleStatus,
        new: ScheduleStatus,
    ) -> bool:
        return await asyncio.to_thread(self._transition_sync, record_id, expected, new)

    def _transition_sync(self, record_id: str, expected: ScheduleStatus, new: ScheduleStatus) -> bool:
        stmt = (
            update(ScheduledNotificationRow)
            .where(ScheduledNotificationRow.id == record_id)
            .where(ScheduledNotificationRow.status == expected.value)
            .values(status=new.value)
        )
        with self._engine.begin() as connection:
            result = connection.execute(stmt)
            return result.rowcount == 1

    async def list_due(self, now: datetime) -> Sequence[ScheduledNotification]:
        return await asyncio.to_thread(self._list_due_sync, now)

    def _list_due_sync(self, now: datetime) -> tuple[ScheduledNotification, ...]:
        stmt = (
            select(ScheduledNotificationRow)
            .where(ScheduledNotificationRow.status == ScheduleStatus.SCHEDULED.value)
            .where(ScheduledNotificationRow.scheduled_at <= now)
            .order_by(ScheduledNotificationRow.scheduled_at)
        )
        with self._sessions() as session:
            return tuple(_to_record(row) for row in session.scalars(stmt).all())


def _to_record(row: ScheduledNotificationRow) -> ScheduledNotification:
    return ScheduledNotification(
        id=row.id,
        request=NotificationRequest(
            title=row.title,
            body=row.body,
            audience=parse_audience(row.target_audience, row.owner_ids),
            payload=row.payload,
            notification_type=row.notification_type,
        ),
        scheduled_at=row.scheduled_at,
        status=ScheduleStatus(row.status),
        created_at=row.created_at,
    )
