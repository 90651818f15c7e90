"""Expo push gateway adapter.

POSTs a batch of messages as a JSON array to the Expo push endpoint and maps
the ``data`` array of the answer onto :class:`PushTicket` values, one per
message. Anything that yields no usable per-item answer raises
:class:`TransportFailure`; per-item errors are tickets, not exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final

import aiohttp

from mass_notify.core.config import EXPO_PUSH_URL
from mass_notify.core.exceptions import TransportFailure
from mass_notify.types import HTTPClient, PushMessage, PushTicket, Response

__all__ = ["EXPO_PUSH_URL", "DryRunPushGateway", "ExpoPushGateway"]


_SUCCESS_STATUSES: Final[range] = range(200, 300)
_BASE_HEADERS: Final[Mapping[str, str]] = {
    "Accept": "application/json",
    "Accept-Encoding": "gzip, deflate",
    "Content-Type": "application/json",
}


@dataclass(slots=True)
class ExpoPushGateway:
    """Push gateway backed by the Expo push service."""

    http_client: HTTPClient
    url: str = EXPO_PUSH_URL
    timeout_seconds: float = 10.0
    access_token: str | None = None
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            msg = "timeout_seconds must be positive"
            raise ValueError(msg)
        self._logger = logging.getLogger(__name__)

    def _headers(self) -> dict[str, str]:
        headers = dict(_BASE_HEADERS)
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send(self, messages: Sequence[PushMessage]) -> Sequence[PushTicket]:
        """Deliver one batch in a single POST.

        Raises:
            TransportFailure: On timeout, connection error, non-2xx status or
                a body without a ``data`` list
        """
        wire = [message.to_wire() for message in messages]
        try:
            response = await self.http_client.post(
                self.url,
                wire,
                timeout=self.timeout_seconds,
                headers=self._headers(),
            )
        except TimeoutError as exc:
            msg = f"Push gateway timed out after {self.timeout_seconds:.1f}s"
            raise TransportFailure(msg) from exc
        except (aiohttp.ClientError, ValueError) as exc:
            msg = f"Push gateway request failed: {type(exc).__name__}"
            raise TransportFailure(msg) from exc

        if response.status not in _SUCCESS_STATUSES:
            raise TransportFailure(f"Push gateway answered HTTP {response.status}{_error_suffix(response)}")

        tickets = _parse_tickets(response.body)
        self._logger.debug(
            "Push gateway answered %d tickets for %d messages",
            len(tickets),
            len(messages),
        )
        return tickets


def _parse_tickets(body: object) -> tuple[PushTicket, ...]:
    if not isinstance(body, Mapping):
        msg = "Push gateway response is not a JSON object"
        raise TransportFailure(msg)
    data = body.get("data")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]  # JSON boundary
    if not isinstance(data, list):
        msg = "Push gateway response has no data list"
        raise TransportFailure(msg)
    return tuple(_ticket(item) for item in data)  # pyright: ignore[reportUnknownArgumentType, reportUnknownVariableType]  # JSON boundary


def _ticket(item: object) -> PushTicket:
    if not isinstance(item, Mapping):
        return PushTicket(status="error", message="Malformed ticket")
    status = item.get("status")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]  # JSON boundary
    message = item.get("message")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]  # JSON boundary
    return PushTicket(
        status=status if isinstance(status, str) else "error",
        message=message if isinstance(message, str) else None,
    )


def _error_suffix(response: Response) -> str:
    body = response.body
    if isinstance(body, Mapping):
        errors = body.get("errors")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]  # JSON boundary
        if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
            message = errors[0].get("message")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]  # JSON boundary
            if isinstance(message, str):
                return f": {message}"
    return ""


@dataclass(slots=True)
class DryRunPushGateway:
    """Gateway that only logs batches and accepts every message."""

    sent_batches: list[tuple[PushMessage, ...]] = field(default_factory=list)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    async def send(self, messages: Sequence[PushMessage]) -> Sequence[PushTicket]:
        self.sent_batches.append(tuple(messages))
        self._logger.info(
            "Dry-run: would send %d push messages",
            len(messages),
            extra={"batch_size": len(messages), "dry_run": True},
        )
        return tuple(PushTicket(status="ok") for _ in messages)
