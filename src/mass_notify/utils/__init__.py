"""Shared utility modules for common operations.

This package provides:
- Message template system (placeholder-based title and body formatting)
- Secret sanitization for logs and error messages
- Structured logging with correlation IDs
- The aiohttp-backed HTTP client used by gateway adapters

Nothing in here knows about a specific push gateway or datastore.
"""

from mass_notify.utils.sanitization import (
    REDACTED,
    sanitize_exception,
    sanitize_text,
    sanitize_value,
)
from mass_notify.utils.template import (
    KNOWN_PLACEHOLDERS,
    TemplateError,
    identify_placeholders,
    load_template,
    replace_placeholders,
    validate_template,
)

__all__ = [
    # Sanitization
    "REDACTED",
    "sanitize_exception",
    "sanitize_text",
    "sanitize_value",
    # Template system
    "KNOWN_PLACEHOLDERS",
    "TemplateError",
    "identify_placeholders",
    "load_template",
    "replace_placeholders",
    "validate_template",
]
