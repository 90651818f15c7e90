"""Exception hierarchy for the dispatch pipeline.

Only :class:`TypeDisabled` and :class:`ResolutionFailed` escape an immediate
dispatch call. :class:`TransportFailure` is contained per batch and
:class:`PersistenceFailure` is logged and swallowed on the stats write path.
"""

from __future__ import annotations


class MassNotifyError(Exception):
    """Base exception for engine failures."""


class TypeDisabled(MassNotifyError):
    """Raised when a request names a notification type that is switched off."""

    key: str

    def __init__(self, key: str) -> None:
        super().__init__(f"Notification type {key!r} is disabled in configuration")
        self.key = key


class UnknownType(MassNotifyError, KeyError):
    """Raised when a type key is not registered or defines no template."""

    key: str

    def __init__(self, key: str, *, reason: str = "is not registered") -> None:
        super().__init__(f"Notification type {key!r} {reason}")
        self.key = key

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class ResolutionFailed(MassNotifyError):
    """Raised when the endpoint store cannot produce the audience."""


class TransportFailure(MassNotifyError):
    """Raised when one gateway call produced no usable per-item response."""


class PersistenceFailure(MassNotifyError):
    """Raised when a stats or schedule store operation fails."""
