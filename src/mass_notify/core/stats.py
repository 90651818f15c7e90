"""Stats recorder: one immutable row per pipeline run."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from mass_notify.core.exceptions import PersistenceFailure
from mass_notify.types import (
    Clock,
    DispatchSummary,
    DispatchSummaryRecord,
    NotificationRequest,
    StatsRow,
    StatsStore,
)
from mass_notify.utils.logging import get_logger, log_with_context
from mass_notify.utils.sanitization import sanitize_exception

__all__ = ["StatsRecorder"]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class StatsRecorder:
    """Persist and read back dispatch statistics.

    A failed write is logged and swallowed: by the time it happens the
    recipients have already been notified, so losing the row is preferred
    over failing the dispatch.
    """

    def __init__(
        self,
        store: StatsStore,
        *,
        clock: Clock = _utc_now,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._store: StatsStore = store
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def record(
        self,
        request: NotificationRequest,
        audience_tag: str,
        summary: DispatchSummary,
    ) -> None:
        row = StatsRow(
            title=request.title,
            body=request.body,
            target_audience=audience_tag,
            total_users=summary.total_endpoints,
            sent_count=summary.sent_count,
            failed_count=summary.failed_count,
            created_at=self._clock(),
        )
        try:
            row_id = await self._store.insert(row)
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Failed to save notification stats",
                extra={
                    "audience": audience_tag,
                    "total_users": row.total_users,
                    "sent_count": row.sent_count,
                    "failed_count": row.failed_count,
                    "error": sanitize_exception(exc),
                },
            )
            return

        log_with_context(
            self._logger,
            logging.DEBUG,
            "Notification stats saved",
            extra={"stats_id": row_id, "audience": audience_tag},
        )

    async def recent(self, limit: int = 10) -> Sequence[DispatchSummaryRecord]:
        """Return the most recent stats rows, newest first.

        Raises:
            ValueError: If limit is less than one
            PersistenceFailure: If the store cannot be read
        """
        if limit < 1:
            msg = f"limit must be >= 1, got {limit}"
            raise ValueError(msg)
        try:
            records = await self._store.recent(limit)
        except Exception as exc:
            raise PersistenceFailure(f"Stats read failed: {sanitize_exception(exc)}") from exc
        return tuple(records)
