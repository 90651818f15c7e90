"""Message template system for placeholder-based notification text.

This module provides a pure, stateless template system for safe placeholder
replacement in notification titles and bodies. Templates are validated when
the type registry loads them and only known placeholders may be used, which
keeps request parameters from injecting format directives.
"""

import re
from collections.abc import Mapping, Set
from typing import Final

# Known placeholders that can be used in templates
KNOWN_PLACEHOLDERS: Final[Set[str]] = frozenset({
    "amount",
    "description",
    "discount",
    "duration",
    "estimated_time",
    "headline",
    "holiday_name",
    "order_number",
    "service_name",
    "service_time",
    "start_time",
    "worker_name",
})

# Matches {placeholder_name} format (lowercase letters, numbers, underscores)
PLACEHOLDER_PATTERN: Final[re.Pattern[str]] = re.compile(r"\{([a-z_][a-z0-9_]*)\}")


class TemplateError(ValueError):
    """Raised when template validation or processing fails."""

    pass


def identify_placeholders(template: str) -> Set[str]:
    """Identify all placeholders in a template string.

    Args:
        template: Template string potentially containing {placeholder} markers

    Returns:
        Set of placeholder names found in the template (without braces)

    Example:
        >>> sorted(identify_placeholders("Order {order_number} by {worker_name}"))
        ['order_number', 'worker_name']
    """
    matches = PLACEHOLDER_PATTERN.findall(template)
    return frozenset(matches)


def validate_template(template: str) -> None:
    """Validate that a template only uses known placeholders.

    Args:
        template: Template string to validate

    Raises:
        TemplateError: If template contains unknown placeholders
    """
    placeholders = identify_placeholders(template)
    unknown = placeholders - KNOWN_PLACEHOLDERS

    if unknown:
        unknown_list = sorted(unknown)
        known_list = sorted(KNOWN_PLACEHOLDERS)
        msg = (
            f"Template contains unknown placeholders: {unknown_list}. "
            f"Known placeholders are: {known_list}"
        )
        raise TemplateError(msg)


def replace_placeholders(template: str, values: Mapping[str, object]) -> str:
    """Replace placeholders in template with provided values.

    Args:
        template: Template string with {placeholder} markers
        values: Mapping of placeholder names to replacement values

    Returns:
        Template string with placeholders replaced by their values

    Raises:
        TemplateError: If required placeholders are missing from values

    Example:
        >>> replace_placeholders("Order {order_number} confirmed", {"order_number": 42})
        'Order 42 confirmed'
    """
    placeholders = identify_placeholders(template)

    missing = placeholders - values.keys()
    if missing:
        missing_list = sorted(missing)
        raise TemplateError(f"Missing values for placeholders: {missing_list}")

    # Only substitute what the template asks for; stray braces in values stay literal
    return PLACEHOLDER_PATTERN.sub(lambda match: str(values[match.group(1)]), template)


def load_template(template_str: str) -> str:
    """Load and validate a template string.

    Args:
        template_str: Template string to load and validate

    Returns:
        The validated template string

    Raises:
        TemplateError: If template validation fails
    """
    validate_template(template_str)
    return template_str
