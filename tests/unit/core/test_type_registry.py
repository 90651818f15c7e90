"""Tests for the notification type registry and its templates."""

from __future__ import annotations

import pytest

from mass_notify.core.exceptions import TypeDisabled, UnknownType
from mass_notify.core.type_registry import (
    DEFAULT_TYPES,
    QUICK_TEMPLATES,
    QuickTemplate,
    TypeRegistry,
    TypeTemplate,
)
from mass_notify.types import AllAudience, TypeDescriptor
from mass_notify.utils.template import TemplateError


def _descriptor(key: str, *, enabled: bool = True) -> TypeDescriptor:
    return TypeDescriptor(key=key, enabled=enabled, title=key.title(), icon="*", sound=False, vibration=False)


class TestDefaults:
    def test_default_table_has_eleven_kinds(self) -> None:
        registry = TypeRegistry()
        assert len(registry.types) == 11
        assert len(DEFAULT_TYPES) == 11

    @pytest.mark.parametrize("key", ["ORDER_CANCELLED", "RATING_REQUEST", "SYSTEM_UPDATE"])
    def test_disabled_by_default(self, key: str) -> None:
        registry = TypeRegistry()
        assert registry.is_enabled(key) is False
        assert key not in registry.enabled_types()

    def test_enabled_types_only_lists_enabled(self) -> None:
        enabled = TypeRegistry().enabled_types()
        assert len(enabled) == 8
        assert all(descriptor.enabled for descriptor in enabled.values())

    def test_unknown_key_is_not_enabled(self) -> None:
        assert TypeRegistry().is_enabled("NOT_A_TYPE") is False

    def test_types_mapping_is_read_only(self) -> None:
        registry = TypeRegistry()
        with pytest.raises(TypeError):
            registry.types["PROMOTION"] = _descriptor("PROMOTION")  # pyright: ignore[reportIndexIssue]

    def test_get_unknown_raises_unknown_type(self) -> None:
        with pytest.raises(UnknownType, match="NOPE"):
            _ = TypeRegistry().get("NOPE")


class TestConstruction:
    def test_duplicate_key_rejected(self) -> None:
        with pytest.raises(ValueError, match="registered twice"):
            _ = TypeRegistry((_descriptor("A"), _descriptor("A")), templates={}, quick_templates={})

    def test_template_for_unregistered_kind_rejected(self) -> None:
        with pytest.raises(UnknownType):
            _ = TypeRegistry(
                (_descriptor("A"),),
                templates={"B": TypeTemplate(body="hi")},
                quick_templates={},
            )

    def test_template_with_unknown_placeholder_rejected(self) -> None:
        with pytest.raises(TemplateError, match="unknown placeholders"):
            _ = TypeRegistry(
                (_descriptor("A"),),
                templates={"A": TypeTemplate(body="Hello {password}")},
                quick_templates={},
            )

    def test_quick_template_bound_to_unknown_kind_rejected(self) -> None:
        with pytest.raises(UnknownType):
            _ = TypeRegistry(
                (_descriptor("A"),),
                templates={},
                quick_templates={"x": QuickTemplate(type_key="B", title="t", body="b")},
            )


class TestOverrides:
    def test_override_enables_disabled_kind(self) -> None:
        registry = TypeRegistry.with_overrides({"SYSTEM_UPDATE": True})
        assert registry.is_enabled("SYSTEM_UPDATE") is True

    def test_override_disables_enabled_kind(self) -> None:
        registry = TypeRegistry.with_overrides({"PROMOTION": False})
        assert registry.is_enabled("PROMOTION") is False
        assert registry.is_enabled("ORDER_CONFIRMED") is True

    def test_override_unknown_kind_rejected(self) -> None:
        with pytest.raises(UnknownType):
            _ = TypeRegistry.with_overrides({"NOT_A_TYPE": True})


class TestGate:
    def test_no_type_always_allowed(self) -> None:
        TypeRegistry().ensure_enabled(None)

    def test_enabled_type_allowed(self) -> None:
        TypeRegistry().ensure_enabled("PROMOTION")

    def test_disabled_type_raises(self) -> None:
        with pytest.raises(TypeDisabled) as exc_info:
            TypeRegistry().ensure_enabled("ORDER_CANCELLED")
        assert exc_info.value.key == "ORDER_CANCELLED"

    def test_unknown_type_treated_as_disabled(self) -> None:
        with pytest.raises(TypeDisabled):
            TypeRegistry().ensure_enabled("MYSTERY")


class TestBuildTemplate:
    def test_title_uses_icon_and_kind_title(self) -> None:
        rendered = TypeRegistry().build_template("ORDER_CONFIRMED", {"order_number": "A-17"})
        assert rendered.title == "✅ Order confirmed"
        assert "#A-17" in rendered.body
        assert rendered.notification_type == "ORDER_CONFIRMED"

    def test_payload_carries_type_and_used_params(self) -> None:
        rendered = TypeRegistry().build_template(
            "WORKER_ASSIGNED",
            {"order_number": 5, "worker_name": "Ann", "ignored": "x"},
        )
        assert dict(rendered.payload) == {"type": "WORKER_ASSIGNED", "order_number": 5, "worker_name": "Ann"}

    def test_template_title_override(self) -> None:
        rendered = TypeRegistry().build_template(
            "PROMOTION",
            {"headline": "Spring sale", "description": "20% off all cleaning"},
        )
        assert rendered.title == "🎁 Spring sale"
        assert rendered.body == "20% off all cleaning"

    def test_missing_param_raises_template_error(self) -> None:
        with pytest.raises(TemplateError, match="order_number"):
            _ = TypeRegistry().build_template("ORDER_CONFIRMED", {})

    def test_unknown_kind_raises_unknown_type(self) -> None:
        with pytest.raises(UnknownType):
            _ = TypeRegistry().build_template("NOPE", {})

    def test_kind_without_template_raises_unknown_type(self) -> None:
        with pytest.raises(UnknownType, match="does not define a template"):
            _ = TypeRegistry.with_overrides({"RATING_REQUEST": True}).build_template("RATING_REQUEST", {})

    def test_disabled_kind_raises_type_disabled(self) -> None:
        registry = TypeRegistry.with_overrides({"PROMOTION": False})
        with pytest.raises(TypeDisabled):
            _ = registry.build_template("PROMOTION", {"headline": "h", "description": "d"})

    def test_rendered_template_becomes_request(self) -> None:
        rendered = TypeRegistry().build_template("PAYMENT_RECEIVED", {"amount": "15.00"})
        request = rendered.to_request(AllAudience())
        assert request.notification_type == "PAYMENT_RECEIVED"
        assert request.payload["amount"] == "15.00"

    def test_placeholder_value_braces_stay_literal(self) -> None:
        rendered = TypeRegistry().build_template("PAYMENT_RECEIVED", {"amount": "{order_number}"})
        assert rendered.body == "Your payment of {order_number} has been processed"


class TestQuickTemplates:
    def test_known_quick_templates(self) -> None:
        assert set(QUICK_TEMPLATES) == {"promotion", "maintenance", "new_service", "holiday"}

    def test_holiday_renders_title_and_body(self) -> None:
        rendered = TypeRegistry().build_quick_template("holiday", {"holiday_name": "New Year"})
        assert rendered.title == "🎉 Happy New Year!"
        assert "Happy New Year" in rendered.body
        assert rendered.notification_type == "PROMOTION"
        assert rendered.payload["holiday_name"] == "New Year"

    def test_maintenance_is_bound_to_system_update(self) -> None:
        rendered = TypeRegistry().build_quick_template(
            "maintenance",
            {"start_time": "02:00", "duration": "1h"},
        )
        assert rendered.notification_type == "SYSTEM_UPDATE"
        assert rendered.payload["maintenance"] is True

    def test_unknown_quick_template(self) -> None:
        with pytest.raises(TemplateError, match="Unknown quick template"):
            _ = TypeRegistry().build_quick_template("flash_sale", {})
