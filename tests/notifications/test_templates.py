"""Tests for the template registry and rendering helpers."""

from __future__ import annotations

from journalmate.notifications.templates import (
    CHANNEL_ACHIEVEMENTS,
    CHANNEL_TASKS,
    TEMPLATES,
    generate_notification_message,
    get_haptic_pattern,
    get_notification_channels,
    get_streak_milestone_template,
    lead_phrase,
    truncate,
)


class TestTruncate:
    def test_long_value_is_cut_with_ellipsis(self) -> None:
        result = truncate("x" * 60, 40)

        assert len(result) == 40
        assert result.endswith("...")

    def test_short_value_is_unchanged(self) -> None:
        assert truncate("Pay rent", 40) == "Pay rent"

    def test_empty_value(self) -> None:
        assert truncate(None, 10) == ""
        assert truncate("", 10) == ""

    def test_tiny_limits_never_exceed_the_limit(self) -> None:
        assert truncate("Pay rent", 4) == "P..."
        assert truncate("Pay rent", 3) == "Pay"
        assert truncate("Pay rent", 2) == "Pa"
        assert truncate("Pay rent", 0) == ""


def test_task_due_soon_renders_title_and_body() -> None:
    message = generate_notification_message(
        "task_due_soon", {"title": "Pay rent", "minutes_until": 30}
    )

    assert message is not None
    assert message.title == "📋 Pay rent"
    assert "30 minutes" in message.body
    assert message.channel == CHANNEL_TASKS
    assert message.priority == "high"


def test_title_is_truncated_to_template_limit() -> None:
    message = generate_notification_message("task_due_soon", {"title": "A" * 80})

    assert message is not None
    assert message.title == "📋 " + "A" * 37 + "..."


def test_missing_context_uses_defaults() -> None:
    message = generate_notification_message("activity_one_week")

    assert message is not None
    assert "Your plan" in message.title


def test_unknown_type_returns_none() -> None:
    assert generate_notification_message("does_not_exist", {"title": "x"}) is None


def test_scheduling_aliases_point_at_named_templates() -> None:
    assert TEMPLATES["task_due_30"] is TEMPLATES["task_due_soon"]
    assert TEMPLATES["activity_starts_0"] is TEMPLATES["activity_morning_of"]
    assert TEMPLATES["departs_1440"] is TEMPLATES["flight_day_before"]
    assert TEMPLATES["releases_0"] is TEMPLATES["movie_theater_release"]


def test_goal_milestone_body_lists_counts() -> None:
    message = generate_notification_message(
        "goal_milestone",
        {"title": "Run a marathon", "percentage": 50, "completed_count": 2, "total_count": 4},
    )

    assert message is not None
    assert "50%" in message.title
    assert "2/4" in message.body
    assert message.channel == CHANNEL_ACHIEVEMENTS


def test_streak_milestone_template_lookup() -> None:
    assert get_streak_milestone_template(7) == "streak_milestone_7"
    assert get_streak_milestone_template(365) == "streak_milestone_365"
    assert get_streak_milestone_template(8) is None

    message = generate_notification_message("streak_milestone_7")
    assert message is not None
    assert message.haptic == "celebration"


def test_lead_phrase() -> None:
    assert lead_phrase(10080) == "in 1 week"
    assert lead_phrase(4320) == "in 3 days"
    assert lead_phrase(1440) == "tomorrow"
    assert lead_phrase(60) == "in 1 hour"
    assert lead_phrase(30) == "in 30 minutes"
    assert lead_phrase(0) == "today"


def test_notification_channels() -> None:
    channels = get_notification_channels()

    assert len(channels) == 6
    assert {c["id"] for c in channels} >= {"journalmate_tasks", "journalmate_streaks"}
    assert all({"id", "name", "description", "importance"} <= set(c) for c in channels)


def test_haptic_patterns() -> None:
    assert get_haptic_pattern("light") == [0, 50]
    assert get_haptic_pattern("urgent")[:2] == [0, 300]
    assert get_haptic_pattern("nonsense") == get_haptic_pattern("medium")
