"""Mass notification engine: the dispatch pipeline and its entry points.

A pipeline run goes::

    type gate → audience resolution → batching → dispatch (per batch)
              → aggregation → stats record → summary

The type gate and audience resolution are the only steps that can fail the
call. Batch failures are counted in the summary and a failed stats write is
logged only. Batches may run with bounded parallelism; each run keeps its
outcomes in its own list and folds them once every batch has finished.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from mass_notify.core.aggregator import fold
from mass_notify.core.audience import AudienceResolver
from mass_notify.core.batching import MAX_BATCH_SIZE, chunk
from mass_notify.core.dispatcher import BatchDispatcher
from mass_notify.core.exceptions import ResolutionFailed, TypeDisabled
from mass_notify.core.scheduler import Scheduler
from mass_notify.core.stats import StatsRecorder
from mass_notify.core.type_registry import TypeRegistry
from mass_notify.types import (
    AllAudience,
    Batch,
    BatchOutcome,
    CustomAudience,
    DispatchSummary,
    DispatchSummaryRecord,
    NotificationRequest,
    Platform,
    PlatformAudience,
    ScheduledId,
)
from mass_notify.utils.logging import (
    get_logger,
    log_with_context,
    reset_correlation_id,
    set_correlation_id,
)

__all__ = ["DueDispatch", "MassNotificationEngine"]

type CorrelationIDFactory = Callable[[], str]


@dataclass(slots=True, frozen=True)
class DueDispatch:
    """Result of running one due scheduled record."""

    scheduled_id: ScheduledId
    summary: DispatchSummary


class MassNotificationEngine:
    """Fan one notification request out to its whole audience.

    Args:
        registry: Notification kinds used to gate requests
        resolver: Audience resolver backed by the endpoint store
        dispatcher: Batch dispatcher backed by the push gateway
        recorder: Stats recorder backed by the stats store
        scheduler: Scheduler backed by the scheduled-notification store
        max_batch_size: Largest batch per gateway call (1..100)
        max_concurrent_batches: Gateway calls allowed in flight per run
    """

    def __init__(
        self,
        *,
        registry: TypeRegistry,
        resolver: AudienceResolver,
        dispatcher: BatchDispatcher,
        recorder: StatsRecorder,
        scheduler: Scheduler,
        max_batch_size: int = MAX_BATCH_SIZE,
        max_concurrent_batches: int = 1,
        correlation_id_factory: CorrelationIDFactory | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if not 1 <= max_batch_size <= MAX_BATCH_SIZE:
            msg = f"max_batch_size must be between 1 and {MAX_BATCH_SIZE}"
            raise ValueError(msg)
        if max_concurrent_batches < 1:
            msg = "max_concurrent_batches must be >= 1"
            raise ValueError(msg)

        self._registry: TypeRegistry = registry
        self._resolver: AudienceResolver = resolver
        self._dispatcher: BatchDispatcher = dispatcher
        self._recorder: StatsRecorder = recorder
        self._scheduler: Scheduler = scheduler
        self._max_batch_size: int = max_batch_size
        self._max_concurrent_batches: int = max_concurrent_batches
        self._correlation_id_factory: CorrelationIDFactory = correlation_id_factory or (lambda: uuid4().hex)
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def registry(self) -> TypeRegistry:
        return self._registry

    async def dispatch_to_all(
        self,
        title: str,
        body: str,
        payload: Mapping[str, object] | None = None,
        notification_type: str | None = None,
    ) -> DispatchSummary:
        """Send to every eligible endpoint."""
        return await self.dispatch(
            NotificationRequest(
                title=title,
                body=body,
                audience=AllAudience(),
                payload=payload or {},
                notification_type=notification_type,
            )
        )

    async def dispatch_to_platform(
        self,
        platform: Platform,
        title: str,
        body: str,
        payload: Mapping[str, object] | None = None,
        notification_type: str | None = None,
    ) -> DispatchSummary:
        """Send to eligible endpoints of one platform."""
        return await self.dispatch(
            NotificationRequest(
                title=title,
                body=body,
                audience=PlatformAudience(Platform(platform)),
                payload=payload or {},
                notification_type=notification_type,
            )
        )

    async def dispatch_to_owners(
        self,
        owner_ids: Collection[str],
        title: str,
        body: str,
        payload: Mapping[str, object] | None = None,
        notification_type: str | None = None,
    ) -> DispatchSummary:
        """Send to eligible endpoints of the given recipients."""
        return await self.dispatch(
            NotificationRequest(
                title=title,
                body=body,
                audience=CustomAudience.of(owner_ids),
                payload=payload or {},
                notification_type=notification_type,
            )
        )

    async def dispatch(self, request: NotificationRequest) -> DispatchSummary:
        """Run the dispatch pipeline for one request.

        Returns:
            Aggregate counts for the run, partial failures included

        Raises:
            TypeDisabled: The request names a disabled kind; nothing was queried or sent
            ResolutionFailed: The audience could not be resolved; nothing was sent
        """
        token = set_correlation_id(self._correlation_id_factory())
        try:
            return await self._run_pipeline(request)
        finally:
            reset_correlation_id(token)

    async def _run_pipeline(self, request: NotificationRequest) -> DispatchSummary:
        audience_tag = request.audience.tag
        try:
            self._registry.ensure_enabled(request.notification_type)
        except TypeDisabled:
            log_with_context(
                self._logger,
                logging.WARNING,
                "Dispatch rejected: notification type disabled",
                extra={"notification_type": request.notification_type, "audience": audience_tag},
            )
            raise

        log_with_context(
            self._logger,
            logging.INFO,
            "Starting mass notification",
            extra={"audience": audience_tag, "notification_type": request.notification_type},
        )

        endpoints = await self._resolver.resolve(request.audience)
        if not endpoints:
            log_with_context(
                self._logger,
                logging.INFO,
                "No eligible endpoints, nothing to send",
                extra={"audience": audience_tag},
            )
            return DispatchSummary.empty()

        batches = chunk(endpoints, self._max_batch_size)
        outcomes = await self._dispatch_batches(batches, request)
        summary = fold(outcomes)

        await self._recorder.record(request, audience_tag, summary)

        log_with_context(
            self._logger,
            logging.INFO,
            "Mass notification finished",
            extra={
                "audience": audience_tag,
                "total_users": summary.total_endpoints,
                "sent_count": summary.sent_count,
                "failed_count": summary.failed_count,
                "batch_count": len(batches),
            },
        )
        return summary

    async def _dispatch_batches(
        self,
        batches: Sequence[Batch],
        request: NotificationRequest,
    ) -> list[BatchOutcome]:
        # Slots are written once each, by the task owning that batch index.
        results: list[BatchOutcome | None] = [None] * len(batches)
        semaphore = asyncio.Semaphore(self._max_concurrent_batches)

        async def _send(index: int) -> None:
            async with semaphore:
                results[index] = await self._dispatcher.send(batches[index], request, batch_index=index)

        async with asyncio.TaskGroup() as task_group:
            for index in range(len(batches)):
                _ = task_group.create_task(_send(index))

        return [outcome for outcome in results if outcome is not None]

    async def schedule(self, request: NotificationRequest, at: datetime) -> ScheduledId:
        """Persist a request for the external trigger to run at ``at``.

        Raises:
            TypeDisabled: The request names a disabled kind
            ValueError: ``at`` is a naive datetime
        """
        self._registry.ensure_enabled(request.notification_type)
        return await self._scheduler.schedule(request, at)

    async def cancel(self, scheduled_id: ScheduledId) -> bool:
        """Cancel a scheduled record; False if already terminal or unknown."""
        return await self._scheduler.cancel(scheduled_id)

    async def recent_stats(self, limit: int = 10) -> Sequence[DispatchSummaryRecord]:
        return await self._recorder.recent(limit)

    async def process_due(self, now: datetime | None = None) -> tuple[DueDispatch, ...]:
        """Run every scheduled record that is due; the external trigger's hook.

        Records are re-read right before they run so one cancelled after the
        listing is skipped. A record is marked Dispatched only after its
        pipeline returned a summary; a gated or unresolvable record stays
        Scheduled and is logged.
        """
        completed: list[DueDispatch] = []
        for record in await self._scheduler.due(now):
            current = await self._scheduler.get(record.id)
            if current is None or current.status.is_terminal:
                log_with_context(
                    self._logger,
                    logging.INFO,
                    "Skipping scheduled notification no longer pending",
                    extra={"scheduled_id": record.id},
                )
                continue

            try:
                summary = await self.dispatch(current.request)
            except (TypeDisabled, ResolutionFailed) as exc:
                log_with_context(
                    self._logger,
                    logging.ERROR,
                    "Scheduled notification could not be dispatched",
                    extra={"scheduled_id": record.id, "error": str(exc)},
                )
                continue

            if not await self._scheduler.mark_dispatched(record.id):
                log_with_context(
                    self._logger,
                    logging.WARNING,
                    "Scheduled notification changed state during dispatch",
                    extra={"scheduled_id": record.id},
                )
            completed.append(DueDispatch(scheduled_id=record.id, summary=summary))

        return tuple(completed)
