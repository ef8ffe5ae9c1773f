"""
Expiration Parser - duration tokens to absolute expiry instants.

Supported tokens:
- "never" (or no value) -> no expiration
- "<n>h" hours, "<n>d" days, "<n>m" calendar months, "<n>y" calendar years

Month and year arithmetic is calendar-aware: the day of month is kept and
clamped to the last day of the target month (Jan 31 + 1m -> Feb 28/29,
Feb 29 + 1y -> Feb 28).
"""

import calendar
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from token_manager.core.exceptions import validation_error


VALID_EXPIRATION_SHORTCUTS = ("1h", "1d", "7d", "30d", "90d", "1y", "never")

_TOKEN_RE = re.compile(r"([0-9]+)([hdmy])")

# Upper bound per unit (1 year for h/d/m, 10 years for y)
_LIMITS = {"h": 8760, "d": 365, "m": 12, "y": 10}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def add_months(moment: datetime, months: int) -> datetime:
    """
    Advance a datetime by whole calendar months, clamping the day.

    Args:
        moment: Starting instant.
        months: Number of months to add (may be negative).

    Returns:
        The shifted datetime with the same time of day and tzinfo.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_expires_in(
    value: Optional[str], now: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Convert a duration token into an absolute UTC expiry.

    Args:
        value: Token such as "7d", "3m", "1y" or "never". None or "" means never.
        now: Reference instant (defaults to the current UTC time).

    Returns:
        Expiry datetime, or None for no expiration.

    Raises:
        TokenManagerError: VALIDATION_ERROR for malformed or out-of-range tokens.
    """
    if not value or value == "never":
        return None

    match = _TOKEN_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        raise validation_error(
            f'Invalid expiration format: "{value}". '
            'Use formats like "1h", "7d", "30d", "3m", "1y", or "never".'
        )

    amount = int(match.group(1))
    unit = match.group(2)

    if amount <= 0:
        raise validation_error("Expiration amount must be greater than 0")
    if amount > _LIMITS[unit]:
        raise validation_error(
            f"Expiration too far in the future. Maximum: {_LIMITS[unit]}{unit}"
        )

    start = now or _utcnow()
    if unit == "h":
        return start + timedelta(hours=amount)
    if unit == "d":
        return start + timedelta(days=amount)
    if unit == "m":
        return add_months(start, amount)
    return add_months(start, amount * 12)


def to_iso8601(moment: datetime) -> str:
    """Render an instant the way the token API expects (UTC, second precision, Z suffix)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def is_valid_expiration_format(value: str) -> bool:
    """Syntax check only; bounds are not enforced."""
    if value == "never":
        return True
    return isinstance(value, str) and _TOKEN_RE.fullmatch(value) is not None


def _parse_instant(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _plural(amount: int, unit: str) -> str:
    return f"{amount} {unit}{'' if amount == 1 else 's'}"


def format_expiration(
    expires_on: Optional[Union[str, datetime]],
    now: Optional[datetime] = None,
) -> str:
    """
    Coarse human label for the time remaining until an expiry.

    Args:
        expires_on: Expiry as datetime or ISO 8601 string; None means never.
        now: Reference instant (defaults to the current UTC time).

    Returns:
        "Never", "Expired", or "N hour(s)" / "N day(s)" / "N month(s)" / "N year(s)".
    """
    if not expires_on:
        return "Never"

    remaining = _parse_instant(expires_on) - (now or _utcnow())
    seconds = remaining.total_seconds()
    if seconds < 0:
        return "Expired"

    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if hours < 24:
        return _plural(hours, "hour")
    if days < 30:
        return _plural(days, "day")
    months = days // 30
    if months < 12:
        return _plural(months, "month")
    return _plural(max(1, days // 365), "year")
