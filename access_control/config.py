"""
Configuration for the access control core.

Values come from the process environment (a local .env file is loaded
first). Durations are given in milliseconds.
"""

import os
from datetime import timedelta
from typing import Optional

import dotenv
from loguru import logger

dotenv.load_dotenv()

DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000
DEFAULT_SWEEP_INTERVAL_MS = 10 * 60 * 1000


def _read_ms(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer number of milliseconds, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


class AccessControlConfig:
    """Cache and token settings for the access control core"""

    def __init__(
        self,
        cache_ttl_ms: Optional[int] = None,
        sweep_interval_ms: Optional[int] = None,
        sweeper_enabled: Optional[bool] = None,
        jwt_secret: Optional[str] = None,
        jwt_algorithm: Optional[str] = None,
    ):
        if cache_ttl_ms is None:
            cache_ttl_ms = _read_ms("PERMISSION_CACHE_TTL_MS", DEFAULT_CACHE_TTL_MS)
        if sweep_interval_ms is None:
            sweep_interval_ms = _read_ms(
                "PERMISSION_CACHE_SWEEP_INTERVAL_MS", DEFAULT_SWEEP_INTERVAL_MS
            )
        self.cache_ttl_ms = cache_ttl_ms
        self.sweep_interval_ms = sweep_interval_ms
        if self.cache_ttl_ms <= 0 or self.sweep_interval_ms <= 0:
            raise ValueError("Cache TTL and sweep interval must be positive")

        if sweeper_enabled is None:
            sweeper_enabled = os.getenv("PERMISSION_CACHE_SWEEPER_ENABLED", "true").lower() == "true"
        self.sweeper_enabled = sweeper_enabled

        self.jwt_secret = jwt_secret or os.getenv("JWT_SECRET")
        self.jwt_algorithm = jwt_algorithm or os.getenv("JWT_ALGORITHM", "HS256")

        if self.jwt_secret and len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")

        logger.info(
            f"Access control config: cache_ttl_ms={self.cache_ttl_ms}, "
            f"sweep_interval_ms={self.sweep_interval_ms}, sweeper_enabled={self.sweeper_enabled}"
        )

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(milliseconds=self.cache_ttl_ms)

    @property
    def sweep_interval(self) -> timedelta:
        return timedelta(milliseconds=self.sweep_interval_ms)
