"""Notification type registry and templates.

The registry is a static table of notification kinds. It is built once at
startup from the built-in defaults plus the ``notification_types`` section of
the configuration file, and exposed read-only: switching a kind on or off is
a redeployment, not an API call.

Dispatching a request that names a disabled kind fails with
:class:`TypeDisabled` before any store or gateway call is made.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Final

from mass_notify.core.exceptions import TypeDisabled, UnknownType
from mass_notify.types import RenderedTemplate, TypeDescriptor
from mass_notify.utils.template import (
    TemplateError,
    identify_placeholders,
    load_template,
    replace_placeholders,
)

__all__ = [
    "DEFAULT_TEMPLATES",
    "DEFAULT_TYPES",
    "QUICK_TEMPLATES",
    "QuickTemplate",
    "TypeRegistry",
    "TypeTemplate",
]


@dataclass(slots=True, frozen=True)
class TypeTemplate:
    """Body (and optional title) text for a notification kind."""

    body: str
    title: str | None = None


@dataclass(slots=True, frozen=True)
class QuickTemplate:
    """Ready-made campaign message bound to a notification kind."""

    type_key: str
    title: str
    body: str
    payload: Mapping[str, object] | None = None


DEFAULT_TYPES: Final[tuple[TypeDescriptor, ...]] = (
    TypeDescriptor(
        key="ORDER_CONFIRMED",
        enabled=True,
        title="Order confirmed",
        description="The order was accepted and is being worked on",
        icon="✅",
        sound=True,
        vibration=True,
    ),
    TypeDescriptor(
        key="WORKER_ASSIGNED",
        enabled=True,
        title="Specialist assigned",
        description="Details of the assigned specialist",
        icon="👨‍🔧",
        sound=True,
        vibration=True,
    ),
    TypeDescriptor(
        key="WORKER_ARRIVED",
        enabled=True,
        title="Specialist arrived",
        description="The specialist has arrived at the address",
        icon="🚗",
        sound=True,
        vibration=True,
    ),
    TypeDescriptor(
        key="ORDER_COMPLETED",
        enabled=True,
        title="Order completed",
        description="Work is finished and a rating is requested",
        icon="🎉",
        sound=True,
        vibration=False,
    ),
    TypeDescriptor(
        key="PAYMENT_RECEIVED",
        enabled=True,
        title="Payment received",
        description="Confirmation of a successful payment",
        icon="💳",
        sound=False,
        vibration=False,
    ),
    TypeDescriptor(
        key="ORDER_CANCELLED",
        enabled=False,
        title="Order cancelled",
        description="The order was cancelled",
        icon="❌",
        sound=True,
        vibration=True,
    ),
    TypeDescriptor(
        key="RATING_REQUEST",
        enabled=False,
        title="Rate the work",
        description="Request to rate the service (duplicates ORDER_COMPLETED)",
        icon="⭐",
        sound=False,
        vibration=False,
    ),
    TypeDescriptor(
        key="PROMOTION",
        enabled=True,
        title="Offers and discounts",
        description="Special offers",
        icon="🎁",
        sound=False,
        vibration=False,
    ),
    TypeDescriptor(
        key="SYSTEM_UPDATE",
        enabled=False,
        title="System update",
        description="Important service announcements",
        icon="📢",
        sound=False,
        vibration=False,
    ),
    TypeDescriptor(
        key="WORKER_ON_WAY",
        enabled=True,
        title="Specialist on the way",
        description="The specialist has left for the address",
        icon="🚙",
        sound=True,
        vibration=True,
    ),
    TypeDescriptor(
        key="REMINDER_24H",
        enabled=True,
        title="Order reminder",
        description="The order is scheduled for tomorrow",
        icon="⏰",
        sound=False,
        vibration=False,
    ),
)

DEFAULT_TEMPLATES: Final[Mapping[str, TypeTemplate]] = MappingProxyType({
    "ORDER_CONFIRMED": TypeTemplate(
        body="Your order #{order_number} has been accepted. A specialist will contact you shortly.",
    ),
    "WORKER_ASSIGNED": TypeTemplate(
        body="Specialist {worker_name} has been assigned to your order #{order_number}",
    ),
    "WORKER_ARRIVED": TypeTemplate(
        body="The specialist has arrived to carry out order #{order_number}",
    ),
    "ORDER_COMPLETED": TypeTemplate(
        body="Order #{order_number} is complete. Please rate the specialist's work.",
    ),
    "PAYMENT_RECEIVED": TypeTemplate(
        body="Your payment of {amount} has been processed",
    ),
    "PROMOTION": TypeTemplate(
        title="{headline}",
        body="{description}",
    ),
    "WORKER_ON_WAY": TypeTemplate(
        body="The specialist is on the way for order #{order_number}. Estimated arrival: {estimated_time}",
    ),
    "REMINDER_24H": TypeTemplate(
        body="Reminder: order #{order_number} is scheduled for tomorrow at {service_time}",
    ),
})

QUICK_TEMPLATES: Final[Mapping[str, QuickTemplate]] = MappingProxyType({
    "promotion": QuickTemplate(
        type_key="PROMOTION",
        title="🎁 {discount} off!",
        body="{description}",
    ),
    "maintenance": QuickTemplate(
        type_key="SYSTEM_UPDATE",
        title="🔧 Scheduled maintenance",
        body="Maintenance is planned for {start_time}. Expected duration: {duration}",
        payload={"maintenance": True},
    ),
    "new_service": QuickTemplate(
        type_key="PROMOTION",
        title="🆕 New service!",
        body="{service_name} is now available. Book it today!",
    ),
    "holiday": QuickTemplate(
        type_key="PROMOTION",
        title="🎉 Happy {holiday_name}!",
        body="Happy {holiday_name} from all of us! We wish you comfort and happiness at home.",
    ),
})


class TypeRegistry:
    """Read-only table of notification kinds with their templates.

    Args:
        descriptors: Kinds to register, keyed by their ``key``
        templates: Template text per kind; kinds without one cannot be rendered
        quick_templates: Named campaign templates bound to registered kinds
    """

    def __init__(
        self,
        descriptors: tuple[TypeDescriptor, ...] = DEFAULT_TYPES,
        *,
        templates: Mapping[str, TypeTemplate] = DEFAULT_TEMPLATES,
        quick_templates: Mapping[str, QuickTemplate] = QUICK_TEMPLATES,
    ) -> None:
        table: dict[str, TypeDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.key in table:
                msg = f"Notification type {descriptor.key!r} registered twice"
                raise ValueError(msg)
            table[descriptor.key] = descriptor

        for key, template in templates.items():
            if key not in table:
                raise UnknownType(key, reason="has a template but is not registered")
            _ = load_template(template.body)
            if template.title is not None:
                _ = load_template(template.title)

        for name, quick in quick_templates.items():
            if quick.type_key not in table:
                raise UnknownType(quick.type_key, reason=f"is bound to quick template {name!r} but is not registered")
            _ = load_template(quick.title)
            _ = load_template(quick.body)

        self._types: Mapping[str, TypeDescriptor] = MappingProxyType(table)
        self._templates: Mapping[str, TypeTemplate] = MappingProxyType(dict(templates))
        self._quick_templates: Mapping[str, QuickTemplate] = MappingProxyType(dict(quick_templates))

    @classmethod
    def with_overrides(cls, enabled_overrides: Mapping[str, bool]) -> TypeRegistry:
        """Build the default registry with per-kind ``enabled`` flags replaced.

        Raises:
            UnknownType: If an override names a kind that does not exist
        """
        defaults = {descriptor.key: descriptor for descriptor in DEFAULT_TYPES}
        for key in enabled_overrides:
            if key not in defaults:
                raise UnknownType(key)
        descriptors = tuple(
            replace(descriptor, enabled=enabled_overrides.get(key, descriptor.enabled))
            for key, descriptor in defaults.items()
        )
        return cls(descriptors)

    @property
    def types(self) -> Mapping[str, TypeDescriptor]:
        """All registered kinds, enabled or not."""
        return self._types

    def get(self, key: str) -> TypeDescriptor:
        try:
            return self._types[key]
        except KeyError:
            raise UnknownType(key) from None

    def is_enabled(self, key: str) -> bool:
        """Return True only for a registered kind whose flag is on."""
        descriptor = self._types.get(key)
        return descriptor is not None and descriptor.enabled

    def enabled_types(self) -> Mapping[str, TypeDescriptor]:
        return MappingProxyType({key: d for key, d in self._types.items() if d.enabled})

    def ensure_enabled(self, key: str | None) -> None:
        """Gate a pipeline run on its notification kind.

        A request without a kind is always allowed. Unknown kinds are treated
        like disabled ones: nothing unregistered reaches the gateway.

        Raises:
            TypeDisabled: If the kind is unknown or switched off
        """
        if key is not None and not self.is_enabled(key):
            raise TypeDisabled(key)

    def build_template(self, key: str, params: Mapping[str, object]) -> RenderedTemplate:
        """Render the template of a kind with the given parameters.

        Args:
            key: Notification kind
            params: Values for the template placeholders

        Returns:
            Title, body and payload ready to be turned into a request

        Raises:
            UnknownType: If the kind is not registered or has no template
            TypeDisabled: If the kind is switched off
            TemplateError: If a placeholder value is missing
        """
        descriptor = self.get(key)
        template = self._templates.get(key)
        if template is None:
            raise UnknownType(key, reason="does not define a template")
        if not descriptor.enabled:
            raise TypeDisabled(key)

        if template.title is None:
            title = f"{descriptor.icon} {descriptor.title}"
        else:
            title = f"{descriptor.icon} {replace_placeholders(template.title, params)}"
        body = replace_placeholders(template.body, params)
        return RenderedTemplate(
            title=title,
            body=body,
            payload=_template_payload(key, (template.title or "", template.body), params),
            notification_type=key,
        )

    def build_quick_template(self, name: str, params: Mapping[str, object]) -> RenderedTemplate:
        """Render a named campaign template.

        The result carries the bound kind, so dispatching it is still gated;
        ``maintenance`` is bound to SYSTEM_UPDATE, which ships disabled.

        Raises:
            TemplateError: If the name is unknown or a placeholder value is missing
        """
        quick = self._quick_templates.get(name)
        if quick is None:
            known = ", ".join(sorted(self._quick_templates))
            msg = f"Unknown quick template {name!r}. Known templates: {known}"
            raise TemplateError(msg)

        payload = _template_payload(quick.type_key, (quick.title, quick.body), params)
        if quick.payload:
            payload.update(quick.payload)
        return RenderedTemplate(
            title=replace_placeholders(quick.title, params),
            body=replace_placeholders(quick.body, params),
            payload=payload,
            notification_type=quick.type_key,
        )


def _template_payload(key: str, texts: tuple[str, ...], params: Mapping[str, object]) -> dict[str, object]:
    used: set[str] = set()
    for text in texts:
        used |= identify_placeholders(text)
    payload: dict[str, object] = {"type": key}
    payload.update({name: params[name] for name in sorted(used) if name in params})
    return payload
