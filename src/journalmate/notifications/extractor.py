"""Time-field extraction from arbitrary entity mappings.

Entities arrive as loosely typed mappings (rows serialized by the web layer,
imported plans, calendar sync payloads). Rather than requiring a schema, the
extractor walks a fixed table of well-known keys and reports every one that
holds a parseable instant. Both the camelCase keys used on the wire and their
snake_case equivalents are recognised.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import TimeField
from .timeutil import parse_instant

logger = logging.getLogger(__name__)

# Fixed context vocabulary
CONTEXTS: Tuple[str, ...] = (
    "due",
    "starts",
    "ends",
    "deadline",
    "scheduled",
    "releases",
    "departs",
    "arrives",
    "check-in",
    "reservation",
    "event",
)

# (canonical field, accepted keys, context), evaluated in declaration order
DIRECT_FIELDS: Tuple[Tuple[str, Tuple[str, ...], str], ...] = (
    ("dueDate", ("dueDate", "due_date"), "due"),
    ("startDate", ("startDate", "start_date"), "starts"),
    ("endDate", ("endDate", "end_date"), "ends"),
    ("deadline", ("deadline",), "deadline"),
    ("scheduledAt", ("scheduledAt", "scheduled_at"), "scheduled"),
    ("releaseDate", ("releaseDate", "release_date"), "releases"),
    ("departureTime", ("departureTime", "departure_time"), "departs"),
    ("arrivalTime", ("arrivalTime", "arrival_time"), "arrives"),
    ("checkInTime", ("checkInTime", "check_in_time"), "check-in"),
    ("reservationTime", ("reservationTime", "reservation_time"), "reservation"),
)

# (canonical key, accepted keys, context, label) inside the ``metadata`` bag
METADATA_FIELDS: Tuple[Tuple[str, Tuple[str, ...], str, str], ...] = (
    ("flightDeparture", ("flightDeparture", "flight_departure"), "departs", "flight departs"),
    ("hotelCheckIn", ("hotelCheckIn", "hotel_check_in"), "check-in", "hotel check-in"),
    ("eventStart", ("eventStart", "event_start"), "event", "event starts"),
    ("movieRelease", ("movieRelease", "movie_release"), "releases", "movie releases"),
)

TIMELINE_KEY = "timeline"
METADATA_KEY = "metadata"


def time_field_keys() -> frozenset[str]:
    """Every top-level key whose change should trigger a reschedule."""
    keys = {key for _, aliases, _ in DIRECT_FIELDS for key in aliases}
    keys.update({TIMELINE_KEY, METADATA_KEY})
    return frozenset(keys)


def _first_present(entity: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = entity.get(key)
        if value:
            return value
    return None


def _entity_label(entity: Mapping[str, Any]) -> str:
    return str(entity.get("title") or entity.get("name") or "")


def extract_time_fields(entity: Any, entity_type: str) -> List[TimeField]:
    """Extract every time-bearing field from ``entity``.

    Args:
        entity: Any entity-shaped mapping; non-mappings yield nothing
        entity_type: Source vocabulary entry (task, activity, ...), used for logging

    Returns:
        TimeFields in declaration order: direct fields, then timeline items,
        then metadata keys. Missing and unparsable dates are omitted.
    """
    if not isinstance(entity, Mapping):
        return []

    fields: List[TimeField] = []
    label = _entity_label(entity)

    for field_name, aliases, context in DIRECT_FIELDS:
        instant = parse_instant(_first_present(entity, aliases))
        if instant is not None:
            fields.append(TimeField(field_name, instant, context, label))

    fields.extend(_timeline_fields(entity.get(TIMELINE_KEY)))

    metadata = entity.get(METADATA_KEY)
    if isinstance(metadata, Mapping):
        for key, aliases, context, meta_label in METADATA_FIELDS:
            instant = parse_instant(_first_present(metadata, aliases))
            if instant is not None:
                fields.append(TimeField(f"metadata.{key}", instant, context, meta_label))

    logger.debug(
        f"Extracted {len(fields)} time fields",
        extra={"entity_type": entity_type, "fields": [f.field_name for f in fields]},
    )
    return fields


def _timeline_fields(timeline: Optional[Sequence[Any]]) -> List[TimeField]:
    if not isinstance(timeline, (list, tuple)):
        return []

    fields = []
    for index, item in enumerate(timeline):
        if not isinstance(item, Mapping):
            continue
        instant = parse_instant(_first_present(item, ("scheduledAt", "scheduled_at")))
        if instant is None:
            continue
        label = str(item.get("title") or f"Step {index + 1}")
        fields.append(
            TimeField(f"timeline[{index}].scheduledAt", instant, "scheduled", label)
        )
    return fields
