"""Tests for the mass-notify command-line interface."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from mass_notify.__main__ import (
    EXIT_CONFIG_ERROR,
    EXIT_RUNTIME_ERROR,
    EXIT_SUCCESS,
    EXIT_TYPE_DISABLED,
    load_config,
    main,
    parse_arguments,
    parse_datetime,
    parse_owner_ids,
    parse_params,
)
from mass_notify.core.config import MainConfig
from mass_notify.storage import create_database
from mass_notify.storage.sql import PushTokenRow


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from replacing pytest's root log handlers."""

    def _configure(**_: object) -> None:
        return None

    monkeypatch.setattr("mass_notify.__main__.configure_logging", _configure)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'push.db'}"


@pytest.fixture
def config_path(tmp_path: Path, database_url: str) -> Path:
    path = tmp_path / "mass-notify.yaml"
    _ = path.write_text(f"storage:\n  database_url: {database_url}\napplication:\n  dry_run: true\n")
    return path


@pytest.fixture
def seeded(database_url: str) -> None:
    """Three iOS and two Android devices registered yesterday."""
    engine = create_database(database_url)
    registered_at = datetime.now(tz=UTC) - timedelta(days=1)
    try:
        with Session(engine) as session, session.begin():
            for index in range(5):
                platform = "ios" if index < 3 else "android"
                session.add(
                    PushTokenRow(
                        token=f"ExponentPushToken[cli-{index}]",
                        user_id=f"user-{index}",
                        platform=platform,
                        created_at=registered_at,
                    )
                )
    finally:
        engine.dispose()


def run_cli(argv: list[str], capsys: pytest.CaptureFixture[str]) -> tuple[int, object, str]:
    """Run ``main`` and return its exit code, parsed stdout and stderr."""
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    captured = capsys.readouterr()
    output: object = json.loads(captured.out) if captured.out.strip() else None  # pyright: ignore[reportAny]
    code = exc_info.value.code
    return (code if isinstance(code, int) else EXIT_RUNTIME_ERROR), output, captured.err


@pytest.mark.usefixtures("seeded")
class TestSendCommands:
    """Test immediate dispatch commands against a dry-run gateway."""

    def test_send_all(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, output, _ = run_cli(["-c", str(config_path), "send-all", "--title", "Hi", "--body", "All"], capsys)

        assert code == EXIT_SUCCESS
        assert output == {
            "total_endpoints": 5,
            "sent_count": 5,
            "failed_count": 0,
            "delivered_count": 0,
            "opened_count": 0,
        }

    def test_send_platform(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, output, _ = run_cli(
            ["-c", str(config_path), "send-platform", "android", "--title", "Hi", "--body", "Droid"],
            capsys,
        )

        assert code == EXIT_SUCCESS
        assert isinstance(output, dict)
        assert output["total_endpoints"] == 2

    def test_send_owners(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, output, _ = run_cli(
            [
                "-c",
                str(config_path),
                "send-owners",
                "--owner",
                "user-0,user-4",
                "--owner",
                "ghost",
                "--title",
                "Hi",
                "--body",
                "You",
            ],
            capsys,
        )

        assert code == EXIT_SUCCESS
        assert isinstance(output, dict)
        assert output["sent_count"] == 2

    def test_quick_template(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, _ = run_cli(
            ["-c", str(config_path), "send-all", "--template", "holiday", "--param", "holiday_name=New Year"],
            capsys,
        )
        assert code == EXIT_SUCCESS

        code, output, _ = run_cli(["-c", str(config_path), "stats", "--limit", "1"], capsys)

        assert code == EXIT_SUCCESS
        assert isinstance(output, list)
        assert output[0]["title"] == "🎉 Happy New Year!"
        assert output[0]["target_audience"] == "all"

    def test_type_template(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, output, _ = run_cli(
            [
                "-c",
                str(config_path),
                "send-owners",
                "--owner",
                "user-1",
                "--from-type",
                "ORDER_CONFIRMED",
                "--param",
                "order_number=42",
            ],
            capsys,
        )

        assert code == EXIT_SUCCESS
        assert isinstance(output, dict)
        assert output["total_endpoints"] == 1

    def test_disabled_type_exits_2(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, output, err = run_cli(
            ["-c", str(config_path), "send-all", "--title", "t", "--body", "b", "--type", "ORDER_CANCELLED"],
            capsys,
        )

        assert code == EXIT_TYPE_DISABLED
        assert output is None
        assert "ORDER_CANCELLED" in err

    def test_config_override_enables_type(
        self,
        config_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        with config_path.open("a") as f:
            _ = f.write("notification_types:\n  ORDER_CANCELLED:\n    enabled: true\n")

        code, _, _ = run_cli(
            ["-c", str(config_path), "send-all", "--title", "t", "--body", "b", "--type", "ORDER_CANCELLED"],
            capsys,
        )

        assert code == EXIT_SUCCESS


@pytest.mark.usefixtures("seeded")
class TestScheduleCommands:
    """Test the scheduled-notification lifecycle through the CLI."""

    def test_schedule_run_due_and_stats(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        at = (datetime.now(tz=UTC) - timedelta(minutes=1)).isoformat()
        code, scheduled, _ = run_cli(
            [
                "-c",
                str(config_path),
                "schedule",
                "--at",
                at,
                "--audience",
                "ios",
                "--title",
                "Later",
                "--body",
                "Now",
            ],
            capsys,
        )
        assert code == EXIT_SUCCESS
        assert isinstance(scheduled, dict)
        scheduled_id = scheduled["scheduled_id"]

        code, ran, _ = run_cli(["-c", str(config_path), "run-due"], capsys)

        assert code == EXIT_SUCCESS
        assert isinstance(ran, list)
        assert [(item["scheduled_id"], item["sent_count"]) for item in ran] == [(scheduled_id, 3)]

        code, ran_again, _ = run_cli(["-c", str(config_path), "run-due"], capsys)
        assert (code, ran_again) == (EXIT_SUCCESS, [])

    def test_cancel_before_due(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _, scheduled, _ = run_cli(
            [
                "-c",
                str(config_path),
                "schedule",
                "--at",
                "2030-01-01T09:00:00+00:00",
                "--audience",
                "custom",
                "--owner",
                "user-0",
                "--title",
                "t",
                "--body",
                "b",
            ],
            capsys,
        )
        assert isinstance(scheduled, dict)
        scheduled_id = scheduled["scheduled_id"]

        _, first, _ = run_cli(["-c", str(config_path), "cancel", scheduled_id], capsys)
        _, second, _ = run_cli(["-c", str(config_path), "cancel", scheduled_id], capsys)
        code, ran, _ = run_cli(["-c", str(config_path), "run-due", "--now", "2030-01-02T00:00:00+00:00"], capsys)

        assert first == {"scheduled_id": scheduled_id, "cancelled": True}
        assert second == {"scheduled_id": scheduled_id, "cancelled": False}
        assert (code, ran) == (EXIT_SUCCESS, [])

    def test_schedule_requires_offset(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = run_cli(
            ["-c", str(config_path), "schedule", "--at", "2030-01-01T09:00:00", "--title", "t", "--body", "b"],
            capsys,
        )

        assert code == EXIT_RUNTIME_ERROR
        assert "UTC offset" in err


class TestErrors:
    def test_missing_explicit_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = run_cli(["-c", str(tmp_path / "nope.yaml"), "stats"], capsys)

        assert code == EXIT_CONFIG_ERROR
        assert "Configuration file not found" in err

    def test_invalid_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "bad.yaml"
        _ = path.write_text("gateway:\n  max_batch_size: 0\n")

        code, _, err = run_cli(["-c", str(path), "stats"], capsys)

        assert code == EXIT_CONFIG_ERROR
        assert "max_batch_size" in err

    def test_title_and_body_required(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = run_cli(["-c", str(config_path), "send-all", "--title", "only"], capsys)

        assert code == EXIT_RUNTIME_ERROR
        assert "--title and --body" in err

    def test_bad_template_param(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = run_cli(
            ["-c", str(config_path), "send-all", "--template", "holiday", "--param", "holiday_name"],
            capsys,
        )

        assert code == EXIT_RUNTIME_ERROR
        assert "NAME=VALUE" in err

    def test_data_must_be_object(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = run_cli(
            ["-c", str(config_path), "send-all", "--title", "t", "--body", "b", "--data", "[1, 2]"],
            capsys,
        )

        assert code == EXIT_RUNTIME_ERROR
        assert "JSON object" in err

    def test_template_and_type_are_exclusive(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _ = parse_arguments(["send-all", "--template", "holiday", "--from-type", "PROMOTION"])
        assert exc_info.value.code == 2


class TestHelpers:
    def test_parse_params(self) -> None:
        assert parse_params(["a=1", " b = x=y"]) == {"a": "1", "b": " x=y"}

    @pytest.mark.parametrize("pair", ["novalue", "=value"])
    def test_parse_params_rejects_malformed(self, pair: str) -> None:
        with pytest.raises(ValueError, match="NAME=VALUE"):
            _ = parse_params([pair])

    def test_parse_owner_ids(self) -> None:
        assert parse_owner_ids(["a,b", " c ", "a,,"]) == frozenset({"a", "b", "c"})

    def test_parse_datetime(self) -> None:
        assert parse_datetime("2026-03-01T12:00:00+00:00") == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def test_parse_datetime_requires_offset(self) -> None:
        with pytest.raises(ValueError, match="UTC offset"):
            _ = parse_datetime("2026-03-01T12:00:00")

    def test_load_config_without_file_uses_defaults(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_config(None) == MainConfig()

    def test_load_config_from_default_location(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config").mkdir()
        _ = (tmp_path / "config" / "mass-notify.yaml").write_text("dispatch:\n  max_concurrent_batches: 3\n")

        assert load_config(None).dispatch.max_concurrent_batches == 3
