# FILE: driftpin/messages/lifetime.py
"""
Message lifetime and visual decay.

Core rules:
    expires_at = created_at + clamp(lifetime_hours, min, max)
    on reply:   expires_at = min(max(now, expires_at) + extension, created_at + max)
    opacity   = max(min_opacity, remaining / (expires_at - created_at))
    color     = bucket(age_hours)

All datetimes are naive UTC, matching what SQLite hands back.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from driftpin.errors import MessageExpiredError
from driftpin.settings import DisplayConfig, LifetimeConfig, get_config


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _lifetime_config(config: Optional[LifetimeConfig]) -> LifetimeConfig:
    return config or get_config().lifetime


def _display_config(config: Optional[DisplayConfig]) -> DisplayConfig:
    return config or get_config().display


# =============================================================================
# EXPIRY
# =============================================================================

def clamp_lifetime_hours(
    requested: Optional[float],
    config: Optional[LifetimeConfig] = None,
) -> float:
    """Poster-chosen lifetime, defaulted and clamped to the allowed range."""
    cfg = _lifetime_config(config)
    if requested is None:
        return cfg.default_lifetime_hours
    return min(max(float(requested), cfg.min_lifetime_hours), cfg.max_lifetime_hours)


def compute_expires_at(
    created_at: datetime,
    lifetime_hours: Optional[float] = None,
    config: Optional[LifetimeConfig] = None,
) -> datetime:
    hours = clamp_lifetime_hours(lifetime_hours, config)
    return created_at + timedelta(hours=hours)


def max_expires_at(created_at: datetime, config: Optional[LifetimeConfig] = None) -> datetime:
    """Latest moment a message may live until, however many replies it gets."""
    cfg = _lifetime_config(config)
    return created_at + timedelta(hours=cfg.max_lifetime_hours)


def is_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return expires_at <= now


def hours_remaining(expires_at: datetime, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    remaining = (expires_at - now).total_seconds() / 3600
    return max(0.0, remaining)


def extend_on_reply(
    created_at: datetime,
    expires_at: datetime,
    now: Optional[datetime] = None,
    config: Optional[LifetimeConfig] = None,
) -> datetime:
    """
    New expiry after a reply lands.

    Raises:
        MessageExpiredError: the message was already gone when the reply came in
    """
    cfg = _lifetime_config(config)
    now = now or utcnow()
    if is_expired(expires_at, now):
        raise MessageExpiredError(f"Message expired at {expires_at.isoformat()}")

    extended = max(now, expires_at) + timedelta(hours=cfg.reply_extension_hours)
    return min(extended, max_expires_at(created_at, cfg))


# =============================================================================
# VISUAL DECAY
# =============================================================================

def message_opacity(
    created_at: datetime,
    expires_at: datetime,
    now: Optional[datetime] = None,
    config: Optional[DisplayConfig] = None,
) -> float:
    """
    Linear fade with the remaining share of the message's lifetime.

    1.0 when freshly posted, min_opacity once (nearly) expired.
    """
    cfg = _display_config(config)
    now = now or utcnow()
    total = (expires_at - created_at).total_seconds()
    if total <= 0:
        return cfg.min_opacity
    remaining = (expires_at - now).total_seconds()
    fraction = min(1.0, remaining / total)
    return round(max(cfg.min_opacity, fraction), 4)


def message_color(
    created_at: datetime,
    now: Optional[datetime] = None,
    config: Optional[DisplayConfig] = None,
) -> str:
    """Hex color by age: hot red for new posts, pale blue for stale ones."""
    cfg = _display_config(config)
    now = now or utcnow()
    age_hours = (now - created_at).total_seconds() / 3600
    for upper_bound, color in cfg.color_buckets:
        if age_hours < upper_bound:
            return color
    return cfg.stale_color


def heat_intensity(reply_count: int, config: Optional[DisplayConfig] = None) -> float:
    cfg = _display_config(config)
    return round(min(1.0, cfg.heat_base_intensity + reply_count * cfg.heat_per_reply), 4)


def format_age(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Compact age label: "3d", "5h" or "12m"."""
    now = now or utcnow()
    age_seconds = (now - created_at).total_seconds()
    hours_old = age_seconds / 3600
    days_old = hours_old / 24

    if days_old > 1:
        return f"{math.floor(days_old)}d"
    if hours_old > 1:
        return f"{math.floor(hours_old)}h"
    return f"{max(0, math.floor(age_seconds / 60))}m"


__all__ = [
    "utcnow",
    "clamp_lifetime_hours",
    "compute_expires_at",
    "max_expires_at",
    "is_expired",
    "hours_remaining",
    "extend_on_reply",
    "message_opacity",
    "message_color",
    "heat_intensity",
    "format_age",
]
