"""Notification CLI commands.

Provides commands for:
- Inspecting the interval policy and the template catalogue
- Extracting time fields from an entity JSON file
- Previewing the reminder set an entity would produce
- Showing the resolved notification settings
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from typer import Argument, Option, Typer

from ..configuration.settings import DEFAULT_CONFIG_PATH, bootstrap_settings
from ..notifications.extractor import extract_time_fields
from ..notifications.intervals import get_intervals_for_context
from ..notifications.memory import InMemoryNotificationStore
from ..notifications.models import UserProfile
from ..notifications.scheduler import SmartNotificationScheduler
from ..notifications.templates import (
    generate_notification_message,
    get_haptic_pattern,
    get_notification_channels,
)
from ..notifications.timeutil import parse_instant, utcnow

logger = logging.getLogger(__name__)

console = Console()

notifications_app = Typer(help="Smart notification inspection commands")


@notifications_app.callback()
def main(
    verbose: bool = Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


def _load_entity(path: Path) -> dict:
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def _fail(message: str, output_json: bool) -> None:
    logger.error(message)
    if output_json:
        print(json.dumps({"success": False, "error": message}))
    else:
        console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


# ============================================================================
# Policy and template commands
# ============================================================================


@notifications_app.command("intervals")
def show_intervals(
    context: str = Argument(..., help="Time-field context: due, starts, deadline, ..."),
    output_json: bool = Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show reminder lead times for a context.

    Examples:
        journalmate notifications intervals starts
        journalmate notifications intervals departs --json
    """
    intervals = get_intervals_for_context(context)
    if output_json:
        print(json.dumps({"success": True, "context": context, "intervals": intervals}))
        return

    table = Table(title=f"Lead times for '{context}'")
    table.add_column("Minutes", justify="right")
    table.add_column("Fires")
    for lead in intervals:
        table.add_row(str(lead), "morning of" if lead == 0 else "before the instant")
    console.print(table)


@notifications_app.command("render")
def render_template(
    notification_type: str = Argument(..., help="Template key, e.g. task_due_soon"),
    context: str = Option("{}", "--context", "-c", help="Render context as JSON"),
    output_json: bool = Option(False, "--json", help="Output as JSON"),
) -> None:
    """Render a notification template.

    Examples:
        journalmate notifications render task_due_soon -c '{"title": "Pay rent"}'
    """
    try:
        values = json.loads(context)
        message = generate_notification_message(notification_type, values)
    except Exception as e:
        _fail(str(e), output_json)
        return

    if message is None:
        _fail(f"No template registered for '{notification_type}'", output_json)
        return

    if output_json:
        print(json.dumps({"success": True, **message.to_dict()}))
        return

    console.print(f"\n[bold]{message.title}[/bold]")
    console.print(message.body)
    console.print(
        f"[dim]{message.category} | haptic={message.haptic} | channel={message.channel}[/dim]"
    )


@notifications_app.command("channels")
def show_channels(
    output_json: bool = Option(False, "--json", help="Output as JSON"),
) -> None:
    """List platform notification channels."""
    channels = get_notification_channels()
    if output_json:
        print(json.dumps({"success": True, "channels": channels}))
        return

    table = Table(title="Notification Channels")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Importance")
    for channel in channels:
        table.add_row(channel["id"], channel["name"], channel["importance"])
    console.print(table)


@notifications_app.command("haptic")
def show_haptic(
    haptic_type: str = Argument(..., help="light, medium, heavy, celebration or urgent"),
    output_json: bool = Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the vibration pattern for a haptic type."""
    pattern = get_haptic_pattern(haptic_type)
    if output_json:
        print(json.dumps({"success": True, "haptic": haptic_type, "pattern": pattern}))
    else:
        console.print(f"{haptic_type}: {pattern}")


# ============================================================================
# Entity commands
# ============================================================================


@notifications_app.command("extract")
def extract(
    path: Path = Argument(..., exists=True, dir_okay=False, help="Entity JSON file"),
    entity_type: str = Option("task", "--type", "-t", help="Entity type"),
    output_json: bool = Option(False, "--json", help="Output as JSON"),
) -> None:
    """Extract time fields from an entity JSON file."""
    try:
        fields = extract_time_fields(_load_entity(path), entity_type)
    except Exception as e:
        _fail(str(e), output_json)
        return

    rows = [
        {
            "field": f.field_name,
            "value": f.value.isoformat(),
            "context": f.context,
            "label": f.label,
        }
        for f in fields
    ]
    if output_json:
        print(json.dumps({"success": True, "fields": rows}))
        return

    if not rows:
        console.print("[yellow]No time fields found[/yellow]")
        return

    table = Table(title=f"Time fields ({len(rows)})")
    table.add_column("Field", style="cyan")
    table.add_column("Context")
    table.add_column("Instant (UTC)")
    for row in rows:
        table.add_row(row["field"], row["context"], row["value"])
    console.print(table)


@notifications_app.command("preview")
def preview(
    path: Path = Argument(..., exists=True, dir_okay=False, help="Entity JSON file"),
    entity_type: str = Option("activity", "--type", "-t", help="Entity type"),
    now: Optional[str] = Option(None, "--now", help="Instant to schedule from (ISO-8601)"),
    timezone: str = Option("UTC", "--timezone", "--tz", help="User IANA timezone"),
    user_id: str = Option("preview-user", "--user-id", help="Owner of the entity"),
    output_json: bool = Option(False, "--json", help="Output as JSON"),
) -> None:
    """Dry-run the reminder set an entity would schedule.

    Nothing is persisted; rows are computed against an in-memory store.

    Examples:
        journalmate notifications preview trip.json --now 2025-08-01T00:00:00Z
    """
    try:
        entity = _load_entity(path)
    except Exception as e:
        _fail(str(e), output_json)
        return

    instant = parse_instant(now) if now else utcnow()
    if instant is None:
        _fail(f"Invalid --now value '{now}'", output_json)
        return

    store = InMemoryNotificationStore()
    store.add_user(UserProfile(user_id=user_id, timezone=timezone))
    scheduler = SmartNotificationScheduler(store, clock=lambda: instant)
    entity_id = entity.get("id", "preview")
    rows = asyncio.run(
        scheduler.auto_schedule_notifications(entity, entity_type, entity_id, user_id)
    )

    if output_json:
        print(json.dumps({"success": True, "notifications": [r.to_dict() for r in rows]}))
        return

    if not rows:
        console.print(f"[yellow]No reminders for {entity_type} {entity_id}[/yellow]")
        return

    table = Table(title=f"Reminders for {entity_type} {entity_id}")
    table.add_column("Scheduled (UTC)")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("Body")
    for row in rows:
        table.add_row(row.scheduled_at.isoformat(), row.notification_type, row.title, row.body)
    console.print(table)


@notifications_app.command("config")
def show_config(
    config_path: Path = Option(DEFAULT_CONFIG_PATH, "--path", help="Settings file"),
    output_json: bool = Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show resolved notification settings (file + environment)."""
    try:
        settings = bootstrap_settings(path=config_path, persist=False)
    except Exception as e:
        _fail(str(e), output_json)
        return

    data = settings.notifications.model_dump(mode="json")
    if output_json:
        print(json.dumps({"success": True, "settings": data}))
        return

    table = Table(title="Notification Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, str(value))
    console.print(table)
