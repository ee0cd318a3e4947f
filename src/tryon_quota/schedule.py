"""Reset boundary and remaining-time formatting."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo

_EXHAUSTED_PREFIX = "No generations left."


def next_reset_at(now: datetime, anchor_hour: int, tz: tzinfo | None = None) -> datetime:
    """Return the next ``anchor_hour:00`` strictly after ``now``, in UTC.

    Args:
        now: timezone-aware current time
        anchor_hour: wall-clock hour (0-23) at which periods end
        tz: zone the anchor hour is read in. None means the host's local zone.

    Returns:
        The boundary as a UTC datetime. Today's anchor when it is still ahead,
        otherwise tomorrow's.
    """
    if not 0 <= anchor_hour <= 23:
        raise ValueError(f"anchor_hour must be within 0-23, got {anchor_hour}")
    if tz is None:
        # naive local wall time; astimezone() re-applies the host's DST rules
        local_now = now.astimezone().replace(tzinfo=None)
    else:
        local_now = now.astimezone(tz)
    boundary = local_now.replace(hour=anchor_hour, minute=0, second=0, microsecond=0)
    if boundary <= local_now:
        boundary = boundary + timedelta(days=1)
    return boundary.astimezone(timezone.utc)


def format_retry_message(remaining: timedelta) -> str:
    """Build the exhausted message from the time left until reset.

    Hours and minutes are truncated, not rounded.
    """
    total = max(int(remaining.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes = rest // 60
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if not parts:
        return f"{_EXHAUSTED_PREFIX} Please check back in a moment."
    return f"{_EXHAUSTED_PREFIX} Please check back in about {' '.join(parts)}."


def format_countdown(resets_at: datetime, now: datetime) -> str:
    """``HH:MM:SS`` until ``resets_at``; ``00:00:00`` once it has passed."""
    total = int((resets_at - now).total_seconds())
    if total < 0:
        return "00:00:00"
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
