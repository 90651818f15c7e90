"""Wire configuration into a ready-to-use notification engine."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from mass_notify.core.audience import AudienceResolver
from mass_notify.core.config import MainConfig
from mass_notify.core.dispatcher import BatchDispatcher, RetryPolicy
from mass_notify.core.engine import MassNotificationEngine
from mass_notify.core.scheduler import Scheduler
from mass_notify.core.stats import StatsRecorder
from mass_notify.core.type_registry import TypeRegistry
from mass_notify.gateway import DryRunPushGateway, ExpoPushGateway
from mass_notify.storage import SQLEndpointStore, SQLScheduleStore, SQLStatsStore, create_database
from mass_notify.types import EndpointStore, PushGateway, ScheduleStore, StatsStore
from mass_notify.utils.http_client import AIOHTTPClient

__all__ = ["build_engine", "open_engine"]

logger = logging.getLogger(__name__)


def build_engine(
    config: MainConfig,
    *,
    gateway: PushGateway,
    endpoint_store: EndpointStore,
    stats_store: StatsStore,
    schedule_store: ScheduleStore,
) -> MassNotificationEngine:
    """Assemble the pipeline components from validated configuration."""
    retry_policy = RetryPolicy(
        retry_attempts=config.dispatch.retry_attempts,
        max_backoff_seconds=config.dispatch.retry_max_backoff_seconds,
    )
    return MassNotificationEngine(
        registry=TypeRegistry.with_overrides(config.enabled_overrides()),
        resolver=AudienceResolver(endpoint_store, recency_window=config.dispatch.recency_window),
        dispatcher=BatchDispatcher(gateway, retry_policy=retry_policy),
        recorder=StatsRecorder(stats_store),
        scheduler=Scheduler(schedule_store),
        max_batch_size=config.gateway.max_batch_size,
        max_concurrent_batches=config.dispatch.max_concurrent_batches,
    )


@asynccontextmanager
async def open_engine(config: MainConfig) -> AsyncIterator[MassNotificationEngine]:
    """Open the database and gateway session, yield the engine, then close both.

    With ``application.dry_run`` set, batches are logged instead of sent.
    """
    db_engine = create_database(config.storage.database_url)
    async with AsyncExitStack() as stack:
        stack.callback(db_engine.dispose)

        gateway: PushGateway
        if config.application.dry_run:
            logger.info("Dry-run mode: push gateway calls are logged only")
            gateway = DryRunPushGateway()
        else:
            http_client = await stack.enter_async_context(
                AIOHTTPClient(default_timeout_seconds=config.gateway.timeout_seconds)
            )
            gateway = ExpoPushGateway(
                http_client,
                url=config.gateway.url,
                timeout_seconds=config.gateway.timeout_seconds,
                access_token=config.gateway.access_token,
            )

        yield build_engine(
            config,
            gateway=gateway,
            endpoint_store=SQLEndpointStore(db_engine),
            stats_store=SQLStatsStore(db_engine),
            schedule_store=SQLScheduleStore(db_engine),
        )
