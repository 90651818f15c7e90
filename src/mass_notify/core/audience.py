"""Audience resolution against the endpoint store."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Final, assert_never

from mass_notify.core.exceptions import ResolutionFailed
from mass_notify.types import (
    AllAudience,
    AudienceSpec,
    Clock,
    CustomAudience,
    Endpoint,
    EndpointStore,
    PlatformAudience,
)
from mass_notify.utils.logging import get_logger, log_with_context
from mass_notify.utils.sanitization import sanitize_exception

__all__ = ["DEFAULT_RECENCY_WINDOW", "AudienceResolver"]

# Push registrations expire implicitly; older ones are treated as stale.
DEFAULT_RECENCY_WINDOW: Final[timedelta] = timedelta(days=30)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class AudienceResolver:
    """Turn an audience specification into a concrete list of endpoints.

    Exactly one store query is made per call, with no internal retry. An
    empty custom audience short-circuits without touching the store.
    """

    def __init__(
        self,
        store: EndpointStore,
        *,
        recency_window: timedelta = DEFAULT_RECENCY_WINDOW,
        clock: Clock = _utc_now,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if recency_window <= timedelta(0):
            msg = "recency_window must be positive"
            raise ValueError(msg)
        self._store: EndpointStore = store
        self._recency_window: timedelta = recency_window
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def recency_window(self) -> timedelta:
        return self._recency_window

    async def resolve(self, audience: AudienceSpec) -> Sequence[Endpoint]:
        """Return eligible endpoints for the audience, in store order.

        Raises:
            ResolutionFailed: If the store query fails; no partial audience is returned
        """
        if isinstance(audience, CustomAudience) and not audience.owner_ids:
            log_with_context(
                self._logger,
                logging.INFO,
                "Custom audience is empty, skipping endpoint query",
            )
            return ()

        cutoff = self._clock() - self._recency_window
        try:
            match audience:
                case AllAudience():
                    endpoints = await self._store.query_endpoints(registered_after=cutoff)
                case PlatformAudience(platform=platform):
                    endpoints = await self._store.query_endpoints(
                        registered_after=cutoff,
                        platform=platform,
                    )
                case CustomAudience(owner_ids=owner_ids):
                    endpoints = await self._store.query_endpoints(
                        registered_after=cutoff,
                        owner_ids=owner_ids,
                    )
                case _:
                    assert_never(audience)
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Endpoint query failed",
                extra={"audience": audience.tag, "error": sanitize_exception(exc)},
            )
            raise ResolutionFailed(f"Could not resolve audience {audience.tag!r}: {sanitize_exception(exc)}") from exc

        log_with_context(
            self._logger,
            logging.INFO,
            "Audience resolved",
            extra={"audience": audience.tag, "endpoint_count": len(endpoints)},
        )
        return tuple(endpoints)
