"""Reminder lead-time policy per time-field context.

Lead times are minutes before the instant. A lead of ``0`` means "morning of":
the reminder fires at the configured local hour on the instant's calendar day.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

MORNING_OF = 0
DEFAULT_LEAD_MINUTES = 30

NOTIFICATION_INTERVALS: Mapping[str, Tuple[int, ...]] = MappingProxyType(
    {
        "due": (30,),
        # 7 days, 3 days, 1 day, morning of
        "starts": (10080, 4320, 1440, MORNING_OF),
        # 7 days, 3 days, 1 day, 1 hour
        "deadline": (10080, 4320, 1440, 60),
        "scheduled": (30,),
        # 1 day, 4 hours, 1 hour
        "departs": (1440, 240, 60),
        "arrives": (60,),
        "check-in": (1440, 120),
        "reservation": (1440, 120),
        "releases": (MORNING_OF,),
        "event": (1440, 60, 30),
    }
)


def get_intervals_for_context(
    context: str, default_lead_minutes: Optional[int] = None
) -> List[int]:
    """Lead times for ``context``, largest first.

    Args:
        context: Semantic context from the extractor
        default_lead_minutes: Lead used for contexts absent from the table,
            normally the user's ``reminder_lead_time``; 30 when not given

    Returns:
        A fresh list so callers may mutate it freely
    """
    intervals = NOTIFICATION_INTERVALS.get(context)
    if intervals is not None:
        return list(intervals)
    lead = default_lead_minutes if default_lead_minutes and default_lead_minutes > 0 else DEFAULT_LEAD_MINUTES
    return [lead]


def has_morning_of(context: str) -> bool:
    return MORNING_OF in NOTIFICATION_INTERVALS.get(context, ())
