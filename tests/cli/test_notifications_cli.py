"""CLI tests for the notification inspection commands."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from journalmate.cli import cli
from journalmate.cli.notifications import notifications_app


runner = CliRunner()


def _write(tmp_path: Path, payload) -> Path:
    path = tmp_path / "entity.json"
    path.write_text(json.dumps(payload))
    return path


def test_intervals_json() -> None:
    result = runner.invoke(notifications_app, ["intervals", "starts", "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output)["intervals"] == [10080, 4320, 1440, 0]


def test_intervals_table() -> None:
    result = runner.invoke(notifications_app, ["intervals", "due"])

    assert result.exit_code == 0
    assert "30" in result.output


def test_render_json() -> None:
    result = runner.invoke(
        notifications_app,
        ["render", "task_due_soon", "--context", '{"title": "Pay rent"}', "--json"],
    )

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["title"] == "📋 Pay rent"
    assert payload["channel"] == "journalmate_tasks"


def test_render_unknown_template_fails() -> None:
    result = runner.invoke(notifications_app, ["render", "nope", "--json"])

    assert result.exit_code == 1
    assert '"success": false' in result.output


def test_extract(tmp_path: Path) -> None:
    path = _write(tmp_path, {"dueDate": "2025-09-01T10:00:00Z", "metadata": {"eventStart": "2025-09-02"}})

    result = runner.invoke(notifications_app, ["extract", str(path), "--json"])

    assert result.exit_code == 0
    fields = json.loads(result.output)["fields"]
    assert [f["context"] for f in fields] == ["due", "event"]


def test_extract_rejects_non_object(tmp_path: Path) -> None:
    path = _write(tmp_path, ["not", "an", "object"])

    result = runner.invoke(notifications_app, ["extract", str(path), "--json"])

    assert result.exit_code == 1


def test_preview_trip(tmp_path: Path) -> None:
    path = _write(tmp_path, {"id": "a1", "title": "Paris Trip", "startDate": "2025-09-01"})

    result = runner.invoke(
        notifications_app,
        ["preview", str(path), "--type", "activity", "--now", "2025-08-01T00:00:00Z", "--json"],
    )

    assert result.exit_code == 0
    rows = json.loads(result.output)["notifications"]
    assert [r["scheduled_at"] for r in rows] == [
        "2025-08-25T00:00:00+00:00",
        "2025-08-29T00:00:00+00:00",
        "2025-08-31T00:00:00+00:00",
        "2025-09-01T08:00:00+00:00",
    ]


def test_preview_rejects_bad_instant(tmp_path: Path) -> None:
    path = _write(tmp_path, {"id": "a1", "startDate": "2025-09-01"})

    result = runner.invoke(notifications_app, ["preview", str(path), "--now", "yesterday-ish"])

    assert result.exit_code == 1


def test_channels() -> None:
    result = runner.invoke(cli, ["notifications", "channels", "--json"])

    assert result.exit_code == 0
    assert len(json.loads(result.output)["channels"]) == 6


def test_haptic() -> None:
    result = runner.invoke(notifications_app, ["haptic", "light", "--json"])

    assert json.loads(result.output)["pattern"] == [0, 50]


def test_config_reads_file_without_writing(tmp_path: Path) -> None:
    config_path = tmp_path / "notifications.json"
    config_path.write_text(json.dumps({"notifications": {"morning_of_hour": 7}}))

    result = runner.invoke(notifications_app, ["config", "--path", str(config_path), "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output)["settings"]["morning_of_hour"] == 7
