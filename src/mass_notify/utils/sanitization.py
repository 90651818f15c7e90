"""Secret sanitization utilities for logging and error messages.

Push registration tokens identify a single device and gateway access tokens
authorize sending to all of them, so neither may reach log output or error
messages. This module redacts them from strings, URLs, and structured data.

Examples:
    >>> sanitize_text("sent to ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]")
    'sent to ExponentPushToken[<REDACTED>]'

    >>> sanitize_text("Authorization: Bearer abc.def.ghi")
    'Authorization: Bearer <REDACTED>'

    >>> sanitize_value({"access_token": "secret", "count": 42})
    {'access_token': '<REDACTED>', 'count': 42}
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TypeIs

# Redaction marker for sanitized values
REDACTED = "<REDACTED>"

# Expo push tokens: ExponentPushToken[...] and ExpoPushToken[...]
_EXPO_PUSH_TOKEN_PATTERN = re.compile(
    r"\b(Expo(?:nent)?PushToken\[)([^\]]+)(\])",
)

# Bearer credentials in header-like text
_BEARER_PATTERN = re.compile(
    r"(\bBearer\s+)([A-Za-z0-9._~+/=-]+)",
    re.IGNORECASE,
)

# Pattern for URLs with tokens in path segments
_GENERIC_TOKEN_IN_PATH = re.compile(
    r"(/(?:token|api[-_]?key|auth|secret|bearer)[=/])([^/?#]+)",
    re.IGNORECASE,
)

# Pattern for URLs with tokens in query parameters
_GENERIC_TOKEN_IN_QUERY = re.compile(
    r"([?&](?:token|api[-_]?key|auth|secret|bearer|access_token)=)([^&]+)",
    re.IGNORECASE,
)

# Sensitive field name patterns (case-insensitive)
_SENSITIVE_FIELD_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in [
        r".*token.*",
        r".*api[-_]?key.*",
        r".*secret.*",
        r".*password.*",
        r".*credential.*",
        r".*authorization.*",
        r".*bearer.*",
    ]
]


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Examples:
        >>> is_sensitive_field("access_token")
        True
        >>> is_sensitive_field("owner_id")
        False
    """
    return any(pattern.match(field_name) for pattern in _SENSITIVE_FIELD_PATTERNS)


def sanitize_text(text: str) -> str:
    """Redact push tokens, bearer credentials and token-bearing URL parts.

    Args:
        text: Free text, possibly containing URLs or header values

    Returns:
        Text with secret values replaced by the REDACTED marker
    """
    if not text:
        return text

    sanitized = _EXPO_PUSH_TOKEN_PATTERN.sub(rf"\1{REDACTED}\3", text)
    sanitized = _BEARER_PATTERN.sub(rf"\1{REDACTED}", sanitized)
    sanitized = _GENERIC_TOKEN_IN_PATH.sub(rf"\1{REDACTED}", sanitized)
    return _GENERIC_TOKEN_IN_QUERY.sub(rf"\1{REDACTED}", sanitized)


def _is_primitive(value: object) -> TypeIs[str | int | float | bool | None]:
    return isinstance(value, (str, int, float, bool, type(None)))


def _is_mapping(value: object) -> TypeIs[Mapping[str, object]]:
    return isinstance(value, Mapping)


def _is_sequence(value: object) -> TypeIs[Sequence[object]]:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def sanitize_value(
    value: object,
    *,
    field_name: str | None = None,
) -> object:
    """Recursively sanitize sensitive values from structured data.

    Values are redacted wholesale when their field name looks sensitive,
    strings are scrubbed with :func:`sanitize_text`, and nested mappings and
    sequences are walked.

    Args:
        value: The value to sanitize (can be any type)
        field_name: Optional field name for context-aware sanitization

    Returns:
        Sanitized value with secrets replaced by REDACTED marker
    """
    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if _is_primitive(value):
        if type(value) is str:
            return sanitize_text(value)
        return value

    if _is_mapping(value):
        return {key: sanitize_value(val, field_name=str(key)) for key, val in value.items()}

    if _is_sequence(value):
        sanitized_items: list[object] = [sanitize_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(sanitized_items)
        return sanitized_items

    return sanitize_text(str(value))


def sanitize_exception(exc: BaseException) -> str:
    """Sanitize exception messages to remove sensitive information.

    Examples:
        >>> sanitize_exception(ValueError("bad ExponentPushToken[abc]"))
        'ValueError: bad ExponentPushToken[<REDACTED>]'
    """
    return f"{type(exc).__name__}: {sanitize_text(str(exc))}"


def sanitize_args(args: tuple[object, ...]) -> tuple[object, ...]:
    """Sanitize a tuple of logging arguments."""
    return tuple(sanitize_value(arg) for arg in args)


def sanitize_mapping(data: Mapping[str, object]) -> dict[str, object]:
    """Sanitize a mapping (e.g., logging extra dict) for safe output."""
    return {key: sanitize_value(val, field_name=key) for key, val in data.items()}
