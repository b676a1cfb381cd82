import os
from typing import Optional
from dotenv import load_dotenv

from telemetry_ingest.errors import ConfigError

load_dotenv()


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    # trim surrounding whitespace/quotes if present in .env
    value = value.strip().strip("'\"")
    return value or default


def _env_number(name: str, default, cast):
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


class Config:
    PROJECT_NAME: str = "Machine Telemetry Ingest"

    def __init__(self):
        self.DATABASE_URL: Optional[str] = _env("DATABASE_URL")
        self.INGEST_HOST: str = _env("INGEST_HOST", "127.0.0.1")
        self.INGEST_PORT: int = _env_number("INGEST_PORT", 8000, int)
        self.DB_POOL_SIZE: int = _env_number("DB_POOL_SIZE", 5, int)
        self.DB_POOL_TIMEOUT: float = _env_number("DB_POOL_TIMEOUT", 3.0, float)
        self.MAX_CONNECTIONS: int = _env_number(
            "INGEST_MAX_CONNECTIONS", 100, int)
        self.READ_BUFFER_SIZE: int = _env_number(
            "INGEST_READ_BUFFER_SIZE", 1024, int)
        self.MAX_MESSAGE_BYTES: int = _env_number(
            "INGEST_MAX_MESSAGE_BYTES", 64 * 1024, int)
        self.LOG_LEVEL: str = _env("LOG_LEVEL", "INFO").upper()

    def require_database_url(self) -> str:
        """Return DATABASE_URL or fail; the service cannot start without a store."""
        if not self.DATABASE_URL:
            raise ConfigError("DATABASE_URL is not set")
        return self.DATABASE_URL
