"""Unit tests for pipeline data models."""

from __future__ import annotations

import pytest

from mass_notify.types import (
    AllAudience,
    CustomAudience,
    DispatchSummary,
    NotificationRequest,
    Platform,
    PlatformAudience,
    PushMessage,
    PushTicket,
    RenderedTemplate,
    ScheduleStatus,
    parse_audience,
)


class TestParseAudience:
    """Test audience reconstruction from persisted tags."""

    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("all", AllAudience()),
            ("ios", PlatformAudience(Platform.IOS)),
            ("android", PlatformAudience(Platform.ANDROID)),
        ],
    )
    def test_known_tags(self, tag: str, expected: object) -> None:
        assert parse_audience(tag) == expected

    def test_custom_keeps_owner_ids(self) -> None:
        audience = parse_audience("custom", ["a", "b", "a"])
        assert audience == CustomAudience(owner_ids=frozenset({"a", "b"}))

    def test_unknown_tag_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown audience tag"):
            _ = parse_audience("web")

    def test_tags_round_trip(self) -> None:
        for audience in (AllAudience(), PlatformAudience(Platform.ANDROID), CustomAudience.of(["x"])):
            owner_ids = audience.owner_ids if isinstance(audience, CustomAudience) else ()
            assert parse_audience(audience.tag, owner_ids) == audience


class TestNotificationRequest:
    def test_payload_is_copied_and_read_only(self) -> None:
        payload: dict[str, object] = {"promo": "spring"}
        request = NotificationRequest(title="t", body="b", audience=AllAudience(), payload=payload)

        payload["promo"] = "changed"

        assert request.payload["promo"] == "spring"
        with pytest.raises(TypeError):
            request.payload["promo"] = "x"  # pyright: ignore[reportIndexIssue]  # asserting immutability

    def test_defaults(self) -> None:
        request = NotificationRequest(title="t", body="b", audience=AllAudience())
        assert dict(request.payload) == {}
        assert request.notification_type is None


class TestPushMessage:
    def test_to_wire(self) -> None:
        message = PushMessage(to="ExponentPushToken[a]", title="t", body="b", data={"ownerId": "u1"})

        assert message.to_wire() == {
            "to": "ExponentPushToken[a]",
            "title": "t",
            "body": "b",
            "data": {"ownerId": "u1"},
            "sound": "default",
            "badge": 1,
        }


class TestSmallTypes:
    def test_ticket_ok(self) -> None:
        assert PushTicket("ok").ok is True
        assert PushTicket("error", "DeviceNotRegistered").ok is False

    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (ScheduleStatus.SCHEDULED, False),
            (ScheduleStatus.DISPATCHED, True),
            (ScheduleStatus.CANCELLED, True),
        ],
    )
    def test_schedule_status_terminal(self, status: ScheduleStatus, terminal: bool) -> None:
        assert status.is_terminal is terminal

    def test_summary_addition(self) -> None:
        total = DispatchSummary(10, 8, 2) + DispatchSummary(5, 5, 0)
        assert total == DispatchSummary(total_endpoints=15, sent_count=13, failed_count=2)

    def test_empty_summary(self) -> None:
        assert DispatchSummary.empty().to_dict() == {
            "total_endpoints": 0,
            "sent_count": 0,
            "failed_count": 0,
            "delivered_count": 0,
            "opened_count": 0,
        }

    def test_rendered_template_to_request(self) -> None:
        rendered = RenderedTemplate(
            title="🎁 Offers",
            body="20% off",
            payload={"type": "PROMOTION"},
            notification_type="PROMOTION",
        )

        request = rendered.to_request(PlatformAudience(Platform.IOS))

        assert request.title == "🎁 Offers"
        assert request.audience == PlatformAudience(Platform.IOS)
        assert dict(request.payload) == {"type": "PROMOTION"}
        assert request.notification_type == "PROMOTION"
