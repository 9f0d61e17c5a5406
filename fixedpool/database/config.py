"""
Configuration settings for the connection pool
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

from fixedpool.database.factory import ConnectionFactory, Endpoint
from fixedpool.database.pool import ConnectionPool

load_dotenv()


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def parse_connect_params(raw: Optional[str]) -> Optional[Dict[str, str]]:
    """Parse ``key=value;key=value`` into a dict; None or blank gives None."""
    if raw is None or not raw.strip():
        return None
    params: Dict[str, str] = {}
    for pair in raw.split(";"):
        pair = pair.strip()
        if not pair:
            continue
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Malformed connection parameter {pair!r}; expected key=value")
        params[key.strip()] = value.strip()
    return params


@dataclass
class PoolConfig:
    """Configuration class for a connection pool"""

    url: str = ""
    size: int = 4
    acquire_timeout_ms: int = 5000
    connect_params: Optional[Dict[str, str]] = None

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"FIXEDPOOL_SIZE must be positive, got {self.size}")
        if self.acquire_timeout_ms < 0:
            raise ValueError(f"FIXEDPOOL_ACQUIRE_TIMEOUT_MS must be non-negative, got {self.acquire_timeout_ms}")

    @classmethod
    def from_env(cls) -> "PoolConfig":
        """Create configuration from environment variables"""
        return cls(
            url=os.getenv("FIXEDPOOL_URL", cls.url),
            size=_parse_int("FIXEDPOOL_SIZE", os.getenv("FIXEDPOOL_SIZE", str(cls.size))),
            acquire_timeout_ms=_parse_int(
                "FIXEDPOOL_ACQUIRE_TIMEOUT_MS",
                os.getenv("FIXEDPOOL_ACQUIRE_TIMEOUT_MS", str(cls.acquire_timeout_ms)),
            ),
            connect_params=parse_connect_params(os.getenv("FIXEDPOOL_CONNECT_PARAMS")),
        )

    def endpoint(self) -> Endpoint:
        if not self.url:
            raise ValueError("FIXEDPOOL_URL is required to build a connection endpoint")
        return Endpoint(self.url, self.connect_params)

    def build_pool(self, factory: ConnectionFactory) -> ConnectionPool:
        """Return a pool initialized from this configuration."""
        pool = ConnectionPool(factory)
        pool.init(self.size, self.endpoint())
        return pool
