"""Protocol definitions for the engine's external collaborators.

This module defines structural subtyping protocols for the stores and the
push gateway so that the core pipeline never depends on a concrete driver.
"""

from collections.abc import Collection, Mapping, Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from mass_notify.types.models import (
    DispatchSummaryRecord,
    Endpoint,
    Platform,
    PushMessage,
    PushTicket,
    Response,
    ScheduledNotification,
    ScheduleStatus,
    StatsRow,
)


@runtime_checkable
class EndpointStore(Protocol):
    """Read access to registered push endpoints."""

    async def query_endpoints(
        self,
        *,
        registered_after: datetime,
        platform: Platform | None = None,
        owner_ids: Collection[str] | None = None,
    ) -> Sequence[Endpoint]:
        """Return endpoints registered at or after the cutoff, optionally filtered.

        Args:
            registered_after: Inclusive recency cutoff, older registrations are excluded
            platform: Only return endpoints on this platform
            owner_ids: Only return endpoints owned by one of these recipients

        Returns:
            Matching endpoints in store order
        """
        ...


@runtime_checkable
class PushGateway(Protocol):
    """Downstream service that delivers a batch of push messages."""

    async def send(self, messages: Sequence[PushMessage]) -> Sequence[PushTicket]:
        """Deliver one batch of messages in a single call.

        Args:
            messages: At most the gateway's maximum batch size of messages

        Returns:
            One ticket per message, aligned by position

        Raises:
            TransportFailure: If the call produced no usable response
        """
        ...


@runtime_checkable
class StatsStore(Protocol):
    """Append-only store of per-run dispatch statistics."""

    async def insert(self, row: StatsRow) -> str:
        """Append a row and return its identifier."""
        ...

    async def recent(self, limit: int) -> Sequence[DispatchSummaryRecord]:
        """Return the most recent rows, newest first."""
        ...


@runtime_checkable
class ScheduleStore(Protocol):
    """Persistence for scheduled notification records."""

    async def insert(self, record: ScheduledNotification) -> None:
        """Persist a new record."""
        ...

    async def get(self, record_id: str) -> ScheduledNotification | None:
        """Return a record by identifier, or None when absent."""
        ...

    async def transition(
        self,
        record_id: str,
        *,
        expected: ScheduleStatus,
        new: ScheduleStatus,
    ) -> bool:
        """Atomically move a record from ``expected`` to ``new``.

        Returns:
            True if the record existed in the expected state and was updated
        """
        ...

    async def list_due(self, now: datetime) -> Sequence[ScheduledNotification]:
        """Return scheduled records whose time is at or before ``now``."""
        ...


class HTTPClient(Protocol):
    """Protocol for HTTP client operations used by gateway adapters."""

    async def post(
        self,
        url: str,
        payload: Sequence[Mapping[str, object]] | Mapping[str, object],
        *,
        timeout: float,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send HTTP POST request with a JSON body and timeout.

        Args:
            url: Target URL for the POST request
            payload: Request body data, JSON-encoded
            timeout: Request timeout in seconds (keyword-only)
            headers: Extra request headers

        Returns:
            HTTP response with status, body, and headers
        """
        ...
