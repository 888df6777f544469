"""
Runtime configuration for the ESG score tracker.
Values come from the environment (optionally a .env file) and can be
overridden from the command line.
"""

import os
from dataclasses import dataclass, replace
from typing import Dict, Optional

from dotenv import load_dotenv

DEFAULT_MAX_REQUESTS_PER_MINUTE = 100
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_TOP_N = 20


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class EsgConfig:
    """Settings for one ESG polling run."""
    api_url: str = ""
    max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    top_n: int = DEFAULT_TOP_N
    strict_parsing: bool = True
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    postgres_user: str = "postgres"
    postgres_password: Optional[str] = None
    postgres_database: str = "esg"
    postgres_schema: str = "esg_database"

    def __post_init__(self):
        if self.max_requests_per_minute <= 0:
            raise ValueError("max_requests_per_minute must be positive")
        if self.top_n <= 0:
            raise ValueError("top_n must be positive")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    @property
    def request_interval_ms(self) -> float:
        """Minimum wall-clock time each fetch iteration occupies."""
        return 60000 / self.max_requests_per_minute

    @classmethod
    def from_env(cls) -> "EsgConfig":
        load_dotenv()
        return cls(
            api_url=os.getenv("ESG_API_URL", ""),
            max_requests_per_minute=_env_int(
                "ESG_MAX_REQUESTS_PER_MINUTE", DEFAULT_MAX_REQUESTS_PER_MINUTE
            ),
            request_timeout=_env_float("ESG_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            top_n=_env_int("ESG_TOP_N", DEFAULT_TOP_N),
            postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
            postgres_port=os.getenv("POSTGRES_PORT", "5432"),
            postgres_user=os.getenv("POSTGRES_USER", "postgres"),
            postgres_password=os.getenv("POSTGRES_PASSWORD"),
            postgres_database=os.getenv("POSTGRES_DATABASE", "esg"),
            postgres_schema=os.getenv("POSTGRES_SCHEMA", "esg_database"),
        )

    def with_overrides(self, **overrides) -> "EsgConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def db_config(self) -> Dict[str, Optional[str]]:
        """Connection settings in the shape PostgresDatabaseManager expects."""
        return {
            "host": self.postgres_host,
            "port": self.postgres_port,
            "user": self.postgres_user,
            "password": self.postgres_password,
            "database": self.postgres_database,
            "schema": self.postgres_schema,
        }
