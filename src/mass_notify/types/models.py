"""Data models for the mass notification engine.

This module defines the immutable dataclasses passed between the dispatch
pipeline stages: requests and audiences on the way in, endpoints and batches
in the middle, outcomes and summaries on the way out.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import ClassVar, Self


class Platform(StrEnum):
    """Device platform a push registration belongs to."""

    IOS = "ios"
    ANDROID = "android"


@dataclass(slots=True, frozen=True)
class AllAudience:
    """Every eligible endpoint, regardless of platform."""

    tag: ClassVar[str] = "all"


@dataclass(slots=True, frozen=True)
class PlatformAudience:
    """Eligible endpoints registered on a single platform."""

    platform: Platform

    @property
    def tag(self) -> str:
        return self.platform.value


@dataclass(slots=True, frozen=True)
class CustomAudience:
    """Eligible endpoints owned by an explicit set of recipients."""

    tag: ClassVar[str] = "custom"

    owner_ids: frozenset[str] = frozenset()

    @classmethod
    def of(cls, owner_ids: Collection[str]) -> Self:
        return cls(owner_ids=frozenset(owner_ids))


type AudienceSpec = AllAudience | PlatformAudience | CustomAudience


def parse_audience(tag: str, owner_ids: Collection[str] = ()) -> AudienceSpec:
    """Rebuild an audience variant from its persisted tag.

    Args:
        tag: One of ``all``, ``ios``, ``android`` or ``custom``
        owner_ids: Recipient identifiers, only used for ``custom``

    Returns:
        The matching audience variant

    Raises:
        ValueError: If the tag is not recognised
    """
    if tag == AllAudience.tag:
        return AllAudience()
    if tag == CustomAudience.tag:
        return CustomAudience.of(owner_ids)
    try:
        return PlatformAudience(Platform(tag))
    except ValueError:
        msg = f"Unknown audience tag: {tag!r}"
        raise ValueError(msg) from None


@dataclass(slots=True, frozen=True)
class NotificationRequest:
    """One logical notification, the unit of work of a pipeline run."""

    title: str
    body: str
    audience: AudienceSpec
    payload: Mapping[str, object] = field(default_factory=dict)
    notification_type: str | None = None

    def __post_init__(self) -> None:
        # Freeze the caller's mapping so later mutation cannot leak into a run.
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))


@dataclass(slots=True, frozen=True)
class Endpoint:
    """A registered push destination, owned by the endpoint store."""

    token: str
    platform: Platform
    owner_id: str
    registered_at: datetime


@dataclass(slots=True, frozen=True)
class PushMessage:
    """Single message inside a gateway call."""

    to: str
    title: str
    body: str
    data: Mapping[str, object]
    sound: str = "default"
    badge: int = 1

    def to_wire(self) -> dict[str, object]:
        return {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": dict(self.data),
            "sound": self.sound,
            "badge": self.badge,
        }


@dataclass(slots=True, frozen=True)
class PushTicket:
    """Per-item gateway answer, aligned by position with the request."""

    status: str
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(slots=True, frozen=True)
class Delivered:
    """Gateway accepted the message for this endpoint."""


@dataclass(slots=True, frozen=True)
class Rejected:
    """Gateway refused the message, or the whole batch call failed."""

    reason: str


type DeliveryOutcome = Delivered | Rejected


@dataclass(slots=True, frozen=True)
class BatchOutcome:
    """Outcomes of one gateway call, one entry per endpoint of the batch."""

    outcomes: tuple[DeliveryOutcome, ...]
    batch_failed: bool = False

    @property
    def endpoint_count(self) -> int:
        return len(self.outcomes)


@dataclass(slots=True, frozen=True)
class DispatchSummary:
    """Aggregate counts for one pipeline run.

    ``delivered_count`` and ``opened_count`` are filled in later by receipt
    reconciliation and are always zero when a run produces the summary.
    """

    total_endpoints: int
    sent_count: int
    failed_count: int
    delivered_count: int = 0
    opened_count: int = 0

    @classmethod
    def empty(cls) -> Self:
        return cls(total_endpoints=0, sent_count=0, failed_count=0)

    def __add__(self, other: DispatchSummary) -> DispatchSummary:
        return DispatchSummary(
            total_endpoints=self.total_endpoints + other.total_endpoints,
            sent_count=self.sent_count + other.sent_count,
            failed_count=self.failed_count + other.failed_count,
            delivered_count=self.delivered_count + other.delivered_count,
            opened_count=self.opened_count + other.opened_count,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total_endpoints": self.total_endpoints,
            "sent_count": self.sent_count,
            "failed_count": self.failed_count,
            "delivered_count": self.delivered_count,
            "opened_count": self.opened_count,
        }


@dataclass(slots=True, frozen=True)
class StatsRow:
    """Unsaved stats row, appended once per pipeline run."""

    title: str
    body: str
    target_audience: str
    total_users: int
    sent_count: int
    failed_count: int
    created_at: datetime


@dataclass(slots=True, frozen=True)
class DispatchSummaryRecord:
    """Stats row as read back from the stats store."""

    id: str
    title: str
    body: str
    target_audience: str
    total_users: int
    sent_count: int
    failed_count: int
    created_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "target_audience": self.target_audience,
            "total_users": self.total_users,
            "sent_count": self.sent_count,
            "failed_count": self.failed_count,
            "created_at": self.created_at.isoformat(),
        }


class ScheduleStatus(StrEnum):
    """Lifecycle state of a scheduled notification."""

    SCHEDULED = "scheduled"
    DISPATCHED = "dispatched"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ScheduleStatus.SCHEDULED


@dataclass(slots=True, frozen=True)
class ScheduledNotification:
    """Persisted request waiting for the external time trigger."""

    id: str
    request: NotificationRequest
    scheduled_at: datetime
    status: ScheduleStatus
    created_at: datetime


@dataclass(slots=True, frozen=True)
class TypeDescriptor:
    """Static presentation and gating metadata for a notification kind."""

    key: str
    enabled: bool
    title: str
    icon: str
    sound: bool
    vibration: bool
    description: str = ""


@dataclass(slots=True, frozen=True)
class RenderedTemplate:
    """Title, body and payload produced from a notification template."""

    title: str
    body: str
    payload: Mapping[str, object]
    notification_type: str

    def to_request(self, audience: AudienceSpec) -> NotificationRequest:
        return NotificationRequest(
            title=self.title,
            body=self.body,
            audience=audience,
            payload=self.payload,
            notification_type=self.notification_type,
        )


@dataclass(slots=True)
class Response:
    """HTTP response.

    Represents an HTTP response with status code, decoded JSON body, and headers.
    """

    status: int
    body: object
    headers: Mapping[str, str]
