"""Instant parsing and timezone helpers shared by the notification core."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone, tzinfo
from typing import Any, Optional

from dateutil import parser as dateutil_parser
from dateutil import tz

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


def utcnow() -> datetime:
    """Timezone-aware current instant in UTC."""
    return datetime.now(timezone.utc)


def parse_instant(value: Any) -> Optional[datetime]:
    """Coerce a loosely typed date value into an aware UTC datetime.

    Accepts ``datetime`` (naive values are taken as UTC), ``date`` (midnight
    UTC), ISO-8601 or free-form date strings, and integer/float epoch
    milliseconds. Anything unparsable yields ``None`` instead of raising.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = dateutil_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = dateutil_parser.parse(text)
            except (ValueError, OverflowError):
                return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_timezone(name: Optional[str], fallback: str = DEFAULT_TIMEZONE) -> tzinfo:
    """Resolve an IANA zone name, falling back to ``fallback`` then UTC."""
    for candidate in (name, fallback):
        if not candidate:
            continue
        zone = tz.gettz(candidate)
        if zone is not None:
            return zone
        logger.warning(f"Unknown timezone '{candidate}', falling back")
    return timezone.utc


def is_known_timezone(name: str) -> bool:
    return bool(name) and tz.gettz(name) is not None


def parse_clock(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse an ``HH:mm`` string into ``(hour, minute)``; ``None`` if malformed."""
    if not value:
        return None
    try:
        hour_text, _, minute_text = value.strip().partition(":")
        hour = int(hour_text)
        minute = int(minute_text) if minute_text else 0
    except ValueError:
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def local_at(day: date, hour: int, minute: int, zone: tzinfo) -> datetime:
    """Aware UTC instant for ``hour:minute`` wall-clock time on ``day`` in ``zone``."""
    local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
    return local.astimezone(timezone.utc)


def first_known_timezone(*candidates: Optional[str], fallback: str = DEFAULT_TIMEZONE) -> str:
    """First candidate naming a resolvable zone, else ``fallback``."""
    for candidate in candidates:
        if candidate and is_known_timezone(candidate):
            return candidate
    return fallback
