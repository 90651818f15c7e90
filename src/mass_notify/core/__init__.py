"""Dispatch pipeline: type gate, audience, batching, delivery, stats, scheduling."""

from mass_notify.core.aggregator import fold, summarize
from mass_notify.core.audience import DEFAULT_RECENCY_WINDOW, AudienceResolver
from mass_notify.core.batching import MAX_BATCH_SIZE, chunk
from mass_notify.core.dispatcher import BatchDispatcher, RetryPolicy, build_messages
from mass_notify.core.engine import DueDispatch, MassNotificationEngine
from mass_notify.core.exceptions import (
    MassNotifyError,
    PersistenceFailure,
    ResolutionFailed,
    TransportFailure,
    TypeDisabled,
    UnknownType,
)
from mass_notify.core.scheduler import Scheduler
from mass_notify.core.stats import StatsRecorder
from mass_notify.core.type_registry import (
    DEFAULT_TEMPLATES,
    DEFAULT_TYPES,
    QUICK_TEMPLATES,
    QuickTemplate,
    TypeRegistry,
    TypeTemplate,
)

__all__ = [
    "DEFAULT_RECENCY_WINDOW",
    "DEFAULT_TEMPLATES",
    "DEFAULT_TYPES",
    "MAX_BATCH_SIZE",
    "QUICK_TEMPLATES",
    "AudienceResolver",
    "BatchDispatcher",
    "DueDispatch",
    "MassNotificationEngine",
    "MassNotifyError",
    "PersistenceFailure",
    "QuickTemplate",
    "ResolutionFailed",
    "RetryPolicy",
    "Scheduler",
    "StatsRecorder",
    "TransportFailure",
    "TypeDisabled",
    "TypeRegistry",
    "TypeTemplate",
    "UnknownType",
    "build_messages",
    "chunk",
    "fold",
    "summarize",
]
