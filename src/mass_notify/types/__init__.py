"""Type definitions and protocols for the mass notification engine.

This package provides:
- Data models (immutable dataclasses)
- Protocol definitions (collaborator interfaces)
- Type aliases (PEP 695 modern syntax)
"""

from mass_notify.types.aliases import Batch, Clock, Payload, ScheduledId
from mass_notify.types.models import (
    AllAudience,
    AudienceSpec,
    BatchOutcome,
    CustomAudience,
    Delivered,
    DeliveryOutcome,
    DispatchSummary,
    DispatchSummaryRecord,
    Endpoint,
    NotificationRequest,
    Platform,
    PlatformAudience,
    PushMessage,
    PushTicket,
    Rejected,
    RenderedTemplate,
    Response,
    ScheduledNotification,
    ScheduleStatus,
    StatsRow,
    TypeDescriptor,
    parse_audience,
)
from mass_notify.types.protocols import (
    EndpointStore,
    HTTPClient,
    PushGateway,
    ScheduleStore,
    StatsStore,
)

__all__ = [
    # Type aliases
    "Batch",
    "Clock",
    "Payload",
    "ScheduledId",
    # Data models
    "AllAudience",
    "AudienceSpec",
    "BatchOutcome",
    "CustomAudience",
    "Delivered",
    "DeliveryOutcome",
    "DispatchSummary",
    "DispatchSummaryRecord",
    "Endpoint",
    "NotificationRequest",
    "Platform",
    "PlatformAudience",
    "PushMessage",
    "PushTicket",
    "Rejected",
    "RenderedTemplate",
    "Response",
    "ScheduleStatus",
    "ScheduledNotification",
    "StatsRow",
    "TypeDescriptor",
    "parse_audience",
    # Protocols
    "EndpointStore",
    "HTTPClient",
    "PushGateway",
    "ScheduleStore",
    "StatsStore",
]
