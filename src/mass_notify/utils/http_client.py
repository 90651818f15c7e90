"""HTTP client abstraction for push gateway delivery.

This module provides the aiohttp-backed implementation of the
:class:`~mass_notify.types.protocols.HTTPClient` protocol. It issues exactly
one request per call: retry policy lives above it, at the dispatcher
boundary, so a gateway timeout surfaces here as a plain ``TimeoutError``.
"""

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from typing import Self

import aiohttp

from mass_notify.types.models import Response


class AIOHTTPClient:
    """Async HTTP client for JSON POST requests.

    Example:
        >>> async with AIOHTTPClient() as client:
        ...     response = await client.post(
        ...         "https://exp.host/--/api/v2/push/send",
        ...         [{"to": "ExponentPushToken[...]", "title": "Hi", "body": "..."}],
        ...         timeout=10.0,
        ...     )
    """

    def __init__(self, *, default_timeout_seconds: float = 10.0) -> None:
        """Initialize HTTP client.

        Args:
            default_timeout_seconds: Session-wide timeout ceiling in seconds
        """
        self._default_timeout_seconds: float = default_timeout_seconds
        self._session: aiohttp.ClientSession | None = None
        self._logger: logging.Logger = logging.getLogger(__name__)

    async def __aenter__(self) -> Self:
        timeout = aiohttp.ClientTimeout(total=self._default_timeout_seconds)
        self._session = aiohttp.ClientSession(
            timeout=timeout,
            json_serialize=json.dumps,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def post(
        self,
        url: str,
        payload: Sequence[Mapping[str, object]] | Mapping[str, object],
        *,
        timeout: float,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send HTTP POST request with timeout.

        Args:
            url: Target URL for the POST request
            payload: Request body data (will be JSON-encoded)
            timeout: Request timeout in seconds (keyword-only)
            headers: Extra request headers

        Returns:
            HTTP response with status, body, and headers. A body that is not
            valid JSON is returned as ``None``.

        Raises:
            TimeoutError: If request exceeds timeout
            ValueError: If URL is malformed
            aiohttp.ClientError: For connection issues
        """
        if self._session is None:
            msg = "HTTP client session not initialized. Use 'async with' context manager."
            raise RuntimeError(msg)

        self._logger.debug("Initiating POST request to %s", url)

        body_data = list(payload) if isinstance(payload, Sequence) else dict(payload)

        try:
            async with asyncio.timeout(timeout):
                async with self._session.post(
                    url,
                    json=body_data,
                    headers=dict(headers) if headers else None,
                ) as response:
                    body: object
                    try:
                        body = await response.json()  # pyright: ignore[reportAny]  # aiohttp returns Any
                    except (aiohttp.ContentTypeError, ValueError):
                        body = None

                    return Response(
                        status=response.status,
                        body=body,
                        headers=dict(response.headers),
                    )
        except TimeoutError:
            self._logger.warning("Request to %s timed out after %.1fs", url, timeout)
            raise
        except aiohttp.InvalidURL as exc:
            self._logger.error("Invalid URL: %s", url)
            raise ValueError(f"Malformed URL: {url}") from exc
        except aiohttp.ClientError as exc:
            self._logger.warning("Client error for %s: %s", url, exc)
            raise
