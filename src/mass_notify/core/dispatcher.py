"""Batch dispatcher: one gateway call per batch, outcomes per endpoint.

The dispatcher builds one message per endpoint, sends the whole batch in a
single gateway call and maps the per-item tickets back onto the batch by
position. A call that yields no usable response marks every endpoint of the
batch as rejected; it never raises to the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Final

from mass_notify.core.exceptions import TransportFailure
from mass_notify.types import (
    Batch,
    BatchOutcome,
    Delivered,
    DeliveryOutcome,
    NotificationRequest,
    PushGateway,
    PushMessage,
    PushTicket,
    Rejected,
)
from mass_notify.utils.logging import get_logger, log_with_context
from mass_notify.utils.sanitization import sanitize_exception

__all__ = ["BatchDispatcher", "RetryPolicy", "build_messages"]

_DEFAULT_SOUND: Final[str] = "default"
_BADGE_INCREMENT: Final[int] = 1

type Sleeper = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Bounded retry for transport failures at the dispatcher boundary.

    The default performs no retry, so each batch is sent exactly once.

    Args:
        retry_attempts: Extra attempts after the first failed call
        max_backoff_seconds: Upper bound for a single backoff delay
        jitter_percent: Random jitter applied to each delay (±percent)
    """

    def __init__(
        self,
        *,
        retry_attempts: int = 0,
        max_backoff_seconds: float = 30.0,
        jitter_percent: float = 20.0,
    ) -> None:
        if retry_attempts < 0:
            msg = "retry_attempts must be >= 0"
            raise ValueError(msg)
        self.retry_attempts: int = retry_attempts
        self.max_backoff_seconds: float = max_backoff_seconds
        self.jitter_percent: float = jitter_percent

    @property
    def max_calls(self) -> int:
        return self.retry_attempts + 1

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff (2^attempt seconds) with jitter, capped."""
        base_delay = min(pow(2.0, attempt), self.max_backoff_seconds)
        jitter_factor = 1.0 + random.uniform(
            -self.jitter_percent / 100.0,
            self.jitter_percent / 100.0,
        )
        return min(base_delay * jitter_factor, self.max_backoff_seconds)


def build_messages(batch: Batch, request: NotificationRequest) -> list[PushMessage]:
    """Build one gateway message per endpoint of the batch."""
    return [
        PushMessage(
            to=endpoint.token,
            title=request.title,
            body=request.body,
            data={
                **request.payload,
                "ownerId": endpoint.owner_id,
                "platform": endpoint.platform.value,
                "massNotification": True,
            },
            sound=_DEFAULT_SOUND,
            badge=_BADGE_INCREMENT,
        )
        for endpoint in batch
    ]


def _outcome_for(ticket: PushTicket) -> DeliveryOutcome:
    if ticket.ok:
        return Delivered()
    return Rejected(reason=ticket.message or ticket.status)


class BatchDispatcher:
    """Send batches to the push gateway and parse per-recipient outcomes."""

    def __init__(
        self,
        gateway: PushGateway,
        *,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleeper = asyncio.sleep,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._gateway: PushGateway = gateway
        self._retry_policy: RetryPolicy = retry_policy or RetryPolicy()
        self._sleep: Sleeper = sleep
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def send(
        self,
        batch: Batch,
        request: NotificationRequest,
        *,
        batch_index: int = 0,
    ) -> BatchOutcome:
        """Send one batch and return an outcome for every endpoint in it.

        Args:
            batch: Endpoints for a single gateway call
            request: Notification being dispatched
            batch_index: Position of the batch within the run, for logging

        Returns:
            Outcomes aligned with the batch; ``batch_failed`` is set when the
            call produced no usable response
        """
        if not batch:
            return BatchOutcome(outcomes=())

        messages = build_messages(batch, request)
        start = time.perf_counter()

        for attempt in range(self._retry_policy.max_calls):
            try:
                tickets = await self._call_gateway(messages)
            except TransportFailure as exc:
                remaining = self._retry_policy.max_calls - attempt - 1
                if remaining > 0:
                    delay = self._retry_policy.backoff_delay(attempt)
                    log_with_context(
                        self._logger,
                        logging.WARNING,
                        "Batch transport failure, retrying",
                        extra={
                            "batch_index": batch_index,
                            "batch_size": len(batch),
                            "attempt": attempt + 1,
                            "retry_in_seconds": round(delay, 2),
                            "error": sanitize_exception(exc),
                        },
                    )
                    await self._sleep(delay)
                    continue
                return self._failed_batch(batch, batch_index, exc, start)
            else:
                return self._parsed_batch(batch_index, tickets, start)

        # max_calls is always >= 1, so the loop returns before reaching here
        raise AssertionError("unreachable")

    async def _call_gateway(self, messages: Sequence[PushMessage]) -> Sequence[PushTicket]:
        try:
            tickets = await self._gateway.send(messages)
        except TransportFailure:
            raise
        except Exception as exc:
            raise TransportFailure(f"Gateway call failed: {sanitize_exception(exc)}") from exc

        if len(tickets) != len(messages):
            # Positional attribution is only valid when the lengths agree
            msg = f"Gateway returned {len(tickets)} results for {len(messages)} messages"
            raise TransportFailure(msg)
        return tickets

    def _parsed_batch(self, batch_index: int, tickets: Sequence[PushTicket], start: float) -> BatchOutcome:
        outcomes = tuple(_outcome_for(ticket) for ticket in tickets)
        rejected = sum(1 for outcome in outcomes if isinstance(outcome, Rejected))
        log_with_context(
            self._logger,
            logging.INFO if rejected == 0 else logging.WARNING,
            "Batch dispatched",
            extra={
                "batch_index": batch_index,
                "batch_size": len(outcomes),
                "sent": len(outcomes) - rejected,
                "rejected": rejected,
                "delivery_time_ms": round((time.perf_counter() - start) * 1000.0, 2),
            },
        )
        return BatchOutcome(outcomes=outcomes)

    def _failed_batch(self, batch: Batch, batch_index: int, exc: TransportFailure, start: float) -> BatchOutcome:
        reason = sanitize_exception(exc)
        log_with_context(
            self._logger,
            logging.ERROR,
            "Batch transport failure, all endpoints counted as failed",
            extra={
                "batch_index": batch_index,
                "batch_size": len(batch),
                "error": reason,
                "delivery_time_ms": round((time.perf_counter() - start) * 1000.0, 2),
            },
        )
        rejected = Rejected(reason=reason)
        return BatchOutcome(outcomes=tuple(rejected for _ in batch), batch_failed=True)
