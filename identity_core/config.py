"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

import re
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_DURATION_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)

_UNIT_MS = {
    "ms": 1, "msec": 1, "msecs": 1, "millisecond": 1, "milliseconds": 1,
    "s": 1000, "sec": 1000, "secs": 1000, "second": 1000, "seconds": 1000,
    "m": 60_000, "min": 60_000, "mins": 60_000, "minute": 60_000, "minutes": 60_000,
    "h": 3_600_000, "hr": 3_600_000, "hrs": 3_600_000, "hour": 3_600_000, "hours": 3_600_000,
    "d": 86_400_000, "day": 86_400_000, "days": 86_400_000,
    "w": 604_800_000, "week": 604_800_000, "weeks": 604_800_000,
    "y": 31_557_600_000, "yr": 31_557_600_000, "yrs": 31_557_600_000,
    "year": 31_557_600_000, "years": 31_557_600_000,
}


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """
    Convert a human duration into a timedelta.

    Accepts a timedelta, a number of seconds, or strings such as
    "1 hour", "1 week", "15m" and "500ms". A bare numeric string is seconds.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration: {value!r}")

    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"invalid duration: {value!r}")

    amount, unit = match.groups()
    unit = unit.lower() or "s"
    if unit not in _UNIT_MS:
        raise ValueError(f"unknown duration unit: {unit!r}")

    return timedelta(milliseconds=float(amount) * _UNIT_MS[unit])


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./identity.db"

    # Tokens
    access_ttl: timedelta = timedelta(hours=1)
    refresh_ttl: timedelta = timedelta(weeks=1)

    # Key material
    public_access_key_path: Path = Path("keys/access.key.pub")
    private_access_key_path: Path = Path("keys/access.key")
    public_refresh_key_path: Path = Path("keys/refresh.key.pub")
    private_refresh_key_path: Path = Path("keys/refresh.key")
    key_passphrase: Optional[str] = None  # None: per-key passphrase file
    key_size: int = 4096

    # Seed administrator
    init_admin: bool = True
    admin_password: str = "admin"

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    project_name: str = "identity-core"
    version: str = "0.1.0"

    @field_validator("access_ttl", "refresh_ttl", mode="before")
    @classmethod
    def validate_ttl(cls, v):
        ttl = parse_duration(v)
        if ttl.total_seconds() <= 0:
            raise ValueError("TTL must be positive")
        return ttl

    @field_validator("key_passphrase", mode="before")
    @classmethod
    def validate_key_passphrase(cls, v):
        # Empty means "not configured": fall back to per-key passphrase files
        return v or None

    @field_validator("key_size")
    @classmethod
    def validate_key_size(cls, v: int) -> int:
        if v < 2048:
            raise ValueError("RSA key size must be at least 2048 bits")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
