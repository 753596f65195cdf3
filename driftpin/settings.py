# FILE: driftpin/settings.py
"""
Driftpin configuration.

Centralized config for lifetime, decay display, query limits, storage backend
and the expiry sweep. Every knob can be overridden with a DRIFTPIN_* env var;
`load_config()` reads them, `get_config()` returns the active instance.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class LifetimeConfig:
    """
    How long a message lives.

    Every reply pushes expiry forward by reply_extension_hours, but a message
    can never outlive created_at + max_lifetime_hours.
    """
    default_lifetime_hours: float = 24.0
    min_lifetime_hours: float = 1.0
    max_lifetime_hours: float = 72.0
    reply_extension_hours: float = 2.0


@dataclass(frozen=True)
class DisplayConfig:
    """Visual decay parameters returned alongside each message."""
    min_opacity: float = 0.3

    # (age upper bound in hours, color); anything older gets stale_color
    color_buckets: Tuple[Tuple[float, str], ...] = (
        (1.0, "#ff6347"),
        (6.0, "#ffa500"),
        (24.0, "#ffd700"),
    )
    stale_color: str = "#add8e6"

    # Heatmap intensity: base + per_reply * reply_count, capped at 1.0
    heat_base_intensity: float = 0.5
    heat_per_reply: float = 0.1


@dataclass(frozen=True)
class QueryConfig:
    """Radius query bounds."""
    default_radius_km: float = 3.0
    global_radius_km: float = 20000.0
    default_limit: int = 200
    max_limit: int = 500
    viewport_buffer: float = 1.2

    header_max_length: int = 100
    content_max_length: int = 500
    reply_max_length: int = 500


@dataclass(frozen=True)
class StoreConfig:
    """Which backend holds messages."""
    backend: str = "sql"  # sql | redis
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "message:"
    redis_geo_key: str = "messageLocations"


@dataclass(frozen=True)
class SweepConfig:
    """Periodic purge of expired messages."""
    enabled: bool = True
    interval_minutes: float = 15.0
    max_purge_per_run: int = 1000


@dataclass
class DriftpinConfig:
    """
    Master configuration.
    """
    lifetime: LifetimeConfig = field(default_factory=LifetimeConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    sweep: SweepConfig = field(default_factory=SweepConfig)
    cors_origins: Tuple[str, ...] = ("*",)
    seed_samples: bool = False
    seed_center: Optional[Tuple[float, float]] = None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_center(raw: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse "lat,lng" into a tuple."""
    if not raw:
        return None
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2:
        raise ValueError(f"DRIFTPIN_SEED_CENTER must be 'lat,lng', got {raw!r}")
    return float(parts[0]), float(parts[1])


def load_config() -> DriftpinConfig:
    """Build a config from DRIFTPIN_* environment variables."""
    lifetime_defaults = LifetimeConfig()
    lifetime = LifetimeConfig(
        default_lifetime_hours=_env_float("DRIFTPIN_DEFAULT_LIFETIME_HOURS", lifetime_defaults.default_lifetime_hours),
        min_lifetime_hours=_env_float("DRIFTPIN_MIN_LIFETIME_HOURS", lifetime_defaults.min_lifetime_hours),
        max_lifetime_hours=_env_float("DRIFTPIN_MAX_LIFETIME_HOURS", lifetime_defaults.max_lifetime_hours),
        reply_extension_hours=_env_float("DRIFTPIN_REPLY_EXTENSION_HOURS", lifetime_defaults.reply_extension_hours),
    )
    if not (0 < lifetime.min_lifetime_hours <= lifetime.default_lifetime_hours <= lifetime.max_lifetime_hours):
        raise ValueError(
            "Lifetime settings must satisfy 0 < min <= default <= max "
            f"(got {lifetime.min_lifetime_hours}, {lifetime.default_lifetime_hours}, {lifetime.max_lifetime_hours})"
        )

    query_defaults = QueryConfig()
    query = QueryConfig(
        default_radius_km=_env_float("DRIFTPIN_DEFAULT_RADIUS_KM", query_defaults.default_radius_km),
        default_limit=_env_int("DRIFTPIN_DEFAULT_LIMIT", query_defaults.default_limit),
        max_limit=_env_int("DRIFTPIN_MAX_LIMIT", query_defaults.max_limit),
    )

    store_defaults = StoreConfig()
    backend = os.getenv("DRIFTPIN_STORE_BACKEND", store_defaults.backend).strip().lower()
    if backend not in ("sql", "redis"):
        raise ValueError(f"DRIFTPIN_STORE_BACKEND must be 'sql' or 'redis', got {backend!r}")
    store = StoreConfig(
        backend=backend,
        redis_url=os.getenv("DRIFTPIN_REDIS_URL", store_defaults.redis_url),
        redis_key_prefix=os.getenv("DRIFTPIN_REDIS_KEY_PREFIX", store_defaults.redis_key_prefix),
        redis_geo_key=os.getenv("DRIFTPIN_REDIS_GEO_KEY", store_defaults.redis_geo_key),
    )

    sweep_defaults = SweepConfig()
    sweep = SweepConfig(
        enabled=_env_bool("DRIFTPIN_SWEEP_ENABLED", sweep_defaults.enabled),
        interval_minutes=_env_float("DRIFTPIN_SWEEP_INTERVAL_MINUTES", sweep_defaults.interval_minutes),
        max_purge_per_run=_env_int("DRIFTPIN_SWEEP_MAX_PURGE", sweep_defaults.max_purge_per_run),
    )

    origins = os.getenv("DRIFTPIN_CORS_ORIGINS", "*")
    cors_origins = tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",)

    return DriftpinConfig(
        lifetime=lifetime,
        query=query,
        store=store,
        sweep=sweep,
        cors_origins=cors_origins,
        seed_samples=_env_bool("DRIFTPIN_SEED_SAMPLES", False),
        seed_center=_parse_center(os.getenv("DRIFTPIN_SEED_CENTER")),
    )


# Global default config instance
DEFAULT_CONFIG = DriftpinConfig()

_active_config: Optional[DriftpinConfig] = None


def get_config() -> DriftpinConfig:
    """Get the active configuration (env-derived on first call)."""
    global _active_config
    if _active_config is None:
        _active_config = load_config()
    return _active_config


def set_config(config: Optional[DriftpinConfig]) -> None:
    """Replace the active configuration. Pass None to re-read the environment."""
    global _active_config
    _active_config = config


__all__ = [
    "LifetimeConfig",
    "DisplayConfig",
    "QueryConfig",
    "StoreConfig",
    "SweepConfig",
    "DriftpinConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "get_config",
    "set_config",
]
