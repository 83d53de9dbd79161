"""Join-window checks for scheduled sessions.

These are pure functions of the window and an explicit ``now``; callers
re-invoke them on a timer to reflect the passage of time.
"""

from datetime import datetime
from typing import Optional

from telehealth_scheduling.config import get_settings
from telehealth_scheduling.scheduling.models import SessionWindowDecision, TimeWindow, load_zone


def _minutes_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 60


def can_start_session(
    window: TimeWindow,
    timezone: str,
    now: datetime,
    pre_roll_minutes: Optional[int] = None,
    post_roll_minutes: Optional[int] = None,
) -> SessionWindowDecision:
    """Decide whether a session may be joined at *now*.

    Blocked when it is more than ``pre_roll_minutes`` before the start, or
    when ``minutes_until_end`` has dropped below ``post_roll_minutes``
    (negative: that many minutes after the nominal end). Both boundaries
    are inclusive of the allowed side, so ``now == window.start`` and
    ``now == window.end + 30min`` are not blocked.

    Args:
        window: The scheduled session
        timezone: Viewing timezone *now* is converted into
        now: Current instant (must be timezone-aware)
        pre_roll_minutes: Override for the early-join tolerance
        post_roll_minutes: Override for the late-join tolerance

    Returns:
        SessionWindowDecision with the minute offsets used for the decision
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")

    settings = get_settings()
    if pre_roll_minutes is None:
        pre_roll_minutes = settings.session_pre_roll_minutes
    if post_roll_minutes is None:
        post_roll_minutes = settings.session_post_roll_minutes

    local_now = now.astimezone(load_zone(timezone))
    minutes_until_start = _minutes_between(window.start, local_now)
    minutes_until_end = _minutes_between(window.end, local_now)

    too_early = minutes_until_start > pre_roll_minutes
    too_late = minutes_until_end < post_roll_minutes

    return SessionWindowDecision(
        blocked=too_early or too_late,
        minutes_until_start=minutes_until_start,
        minutes_until_end=minutes_until_end,
    )


def end_warning_offset(
    window: TimeWindow,
    now: datetime,
    warning_minutes: int = 10,
) -> Optional[float]:
    """Minutes after start at which to warn that the session is ending.

    Returns None once the window has ended.
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")
    if now > window.end:
        return None
    return window.duration_minutes - warning_minutes
