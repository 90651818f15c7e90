"""Scheduler for deferred notification requests.

The scheduler only persists records and moves them through their lifecycle::

    Scheduled ──cancel──────────▶ Cancelled
        │
        └──mark_dispatched─────▶ Dispatched

Both target states are terminal. It never triggers a dispatch itself; an
external time trigger polls :meth:`Scheduler.due` and runs the pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from uuid import uuid4

from mass_notify.core.exceptions import PersistenceFailure
from mass_notify.types import (
    Clock,
    NotificationRequest,
    ScheduledId,
    ScheduledNotification,
    ScheduleStatus,
    ScheduleStore,
)
from mass_notify.utils.logging import get_logger, log_with_context
from mass_notify.utils.sanitization import sanitize_exception

__all__ = ["Scheduler"]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _require_aware(value: datetime, name: str) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        msg = f"{name} must be timezone-aware"
        raise ValueError(msg)
    return value.astimezone(UTC)


class Scheduler:
    """Create, cancel and complete scheduled notification records."""

    def __init__(
        self,
        store: ScheduleStore,
        *,
        clock: Clock = _utc_now,
        id_factory: Callable[[], str] = lambda: uuid4().hex,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._store: ScheduleStore = store
        self._clock: Clock = clock
        self._id_factory: Callable[[], str] = id_factory
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def schedule(self, request: NotificationRequest, at: datetime) -> ScheduledId:
        """Persist a request for delivery at ``at``.

        Raises:
            ValueError: If ``at`` is a naive datetime
            PersistenceFailure: If the record cannot be stored
        """
        scheduled_at = _require_aware(at, "at")
        record = ScheduledNotification(
            id=self._id_factory(),
            request=request,
            scheduled_at=scheduled_at,
            status=ScheduleStatus.SCHEDULED,
            created_at=self._clock(),
        )
        try:
            await self._store.insert(record)
        except Exception as exc:
            raise PersistenceFailure(f"Could not schedule notification: {sanitize_exception(exc)}") from exc

        log_with_context(
            self._logger,
            logging.INFO,
            "Notification scheduled",
            extra={
                "scheduled_id": record.id,
                "scheduled_at": scheduled_at.isoformat(),
                "audience": request.audience.tag,
            },
        )
        return record.id

    async def cancel(self, record_id: ScheduledId) -> bool:
        """Cancel a record that is still scheduled.

        Returns:
            True if the record moved to Cancelled; False if it was already
            terminal or does not exist. Never raises on a terminal record.
        """
        cancelled = await self._transition(record_id, ScheduleStatus.CANCELLED)
        log_with_context(
            self._logger,
            logging.INFO if cancelled else logging.DEBUG,
            "Scheduled notification cancelled" if cancelled else "Nothing to cancel",
            extra={"scheduled_id": record_id},
        )
        return cancelled

    async def mark_dispatched(self, record_id: ScheduledId) -> bool:
        """Record that the pipeline ran for this record.

        Returns:
            True if the record moved to Dispatched
        """
        return await self._transition(record_id, ScheduleStatus.DISPATCHED)

    async def get(self, record_id: ScheduledId) -> ScheduledNotification | None:
        try:
            return await self._store.get(record_id)
        except Exception as exc:
            raise PersistenceFailure(f"Could not load scheduled notification: {sanitize_exception(exc)}") from exc

    async def due(self, now: datetime | None = None) -> Sequence[ScheduledNotification]:
        """Return still-scheduled records whose time has come, oldest first."""
        as_of = _require_aware(now, "now") if now is not None else self._clock()
        try:
            records = await self._store.list_due(as_of)
        except Exception as exc:
            raise PersistenceFailure(f"Could not list due notifications: {sanitize_exception(exc)}") from exc
        return tuple(
            sorted(
                (record for record in records if record.status is ScheduleStatus.SCHEDULED),
                key=lambda record: record.scheduled_at,
            )
        )

    async def _transition(self, record_id: ScheduledId, new: ScheduleStatus) -> bool:
        try:
            return await self._store.transition(
                record_id,
                expected=ScheduleStatus.SCHEDULED,
                new=new,
            )
        except Exception as exc:
            raise PersistenceFailure(
                f"Could not move scheduled notification to {new.value}: {sanitize_exception(exc)}"
            ) from exc
