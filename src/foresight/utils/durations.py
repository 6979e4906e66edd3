"""
Human duration strings such as ``90m``, ``2h``, ``1.5d`` or ``3 days``.
"""

from __future__ import annotations

import re
from datetime import timedelta

from foresight.errors import ValidationError

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)

_UNIT_SECONDS = {
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "week": 604800, "weeks": 604800,
}


def parse_duration(text: str) -> timedelta:
    """
    Parse ``<number><unit>`` into a timedelta.

    Raises:
        ValidationError: Unparseable text or unknown unit
    """
    match = _DURATION_RE.match(text or "")
    if not match:
        raise ValidationError(
            'Invalid duration format. Use formats like "1h" for 1 hour or "2d" for 2 days.'
        )

    amount, unit = match.groups()
    seconds = _UNIT_SECONDS.get(unit.lower() or "s")
    if seconds is None:
        raise ValidationError(f'Unknown duration unit "{unit}". Use m, h, d or w.')
    try:
        return timedelta(seconds=float(amount) * seconds)
    except (OverflowError, ValueError) as e:
        raise ValidationError(f'Duration "{text.strip()}" is too long.') from e


def format_remaining(delta: timedelta) -> str:
    """Compact ``2d 3h`` / ``45m`` rendering; past deltas render as ``0m``."""
    seconds = max(0, int(delta.total_seconds()))
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes or not parts:
        parts.append(f"{minutes}m")
    return " ".join(parts)
