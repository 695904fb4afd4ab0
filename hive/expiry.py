"""
Fade expiry policy.

Expiry is derived state: a fade is visible while ``is_active`` holds and
``expires_at`` lies in the future, evaluated against "now" at query time
on the server and at render time on the client. Nothing sweeps expired
fades out of the store.
"""
import enum
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_

MAX_FADE_LIFETIME = timedelta(days=7)


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Urgency(str, enum.Enum):
    """How close a fade is to expiring, with the badge colour a UI shows for it."""

    CRITICAL = "red"
    HIGH = "orange"
    ELEVATED = "yellow"
    NORMAL = "green"

    @property
    def color(self) -> str:
        return self.value


def validate_expiry(expires_at: datetime, now: datetime | None = None) -> datetime:
    """
    Check a requested expiry against the creation window ``(now, now + 7d]``.

    Args:
        expires_at: Requested expiry. Naive values are read as UTC.
        now: Reference time, defaults to the current UTC time.

    Returns:
        datetime: The expiry as an aware UTC datetime.

    Raises:
        ValueError: If the expiry is not in the future or lies more than
            a week ahead.
    """
    now = _aware(_now(now))
    expires_at = _aware(expires_at).astimezone(timezone.utc)
    if expires_at <= now:
        raise ValueError("Expiry date must be in the future")
    if expires_at > now + MAX_FADE_LIFETIME:
        raise ValueError("Expiry date cannot be more than 1 week from now")
    return expires_at


def is_visible(is_active: bool, expires_at: datetime, now: datetime | None = None) -> bool:
    return bool(is_active) and _aware(expires_at) > _aware(_now(now))


def visible_clause(model, now: datetime | None = None):
    """SQL filter equivalent of :func:`is_visible` for a fade-like model."""
    return and_(model.is_active.is_(True), model.expires_at > _aware(_now(now)))


def _remaining(expires_at: datetime, now: datetime | None) -> timedelta:
    return _aware(expires_at) - _aware(_now(now))


def time_remaining(expires_at: datetime, now: datetime | None = None) -> str:
    """Human-readable countdown, e.g. ``"2d 3h left"`` or ``"Expired"``."""
    diff = _remaining(expires_at, now)
    if diff <= timedelta(0):
        return "Expired"

    total_minutes = int(diff.total_seconds() // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)

    if days > 0:
        return f"{days}d {hours}h left"
    if hours > 0:
        return f"{hours}h {minutes}m left"
    return f"{minutes}m left"


def expiry_urgency(expires_at: datetime, now: datetime | None = None) -> Urgency:
    hours = _remaining(expires_at, now).total_seconds() / 3600
    if hours < 1:
        return Urgency.CRITICAL
    if hours < 6:
        return Urgency.HIGH
    if hours < 24:
        return Urgency.ELEVATED
    return Urgency.NORMAL


def duration_until(expires_at: datetime, now: datetime | None = None) -> tuple[int, int]:
    """Whole ``(hours, minutes)`` left before expiry, ``(0, 0)`` once elapsed."""
    diff = _remaining(expires_at, now)
    if diff <= timedelta(0):
        return 0, 0
    total_minutes = int(diff.total_seconds() // 60)
    return divmod(total_minutes, 60)


def expiry_from_duration(hours: int, minutes: int, now: datetime | None = None) -> datetime:
    return _aware(_now(now)) + timedelta(hours=hours, minutes=minutes)
