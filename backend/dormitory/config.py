"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent
DEFAULT_DB_URL = f"sqlite:///{BASE / 'app.db'}"


class Settings:
    ENV: str
    DATABASE_URL: str
    DB_POOL_TIMEOUT: float
    DB_ECHO: bool
    LOG_LEVEL: str
    ALLOW_SQLITE: bool
    ALLOW_DEV_CORS: bool
    CORS_ORIGINS: list

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DB_URL)
        self.DB_POOL_TIMEOUT = self._parse_seconds("DB_POOL_TIMEOUT", "10")
        self.DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.ALLOW_SQLITE = os.getenv("ALLOW_SQLITE", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
        self._validate()

    @staticmethod
    def _parse_seconds(name, default):
        raw = os.getenv(name, default)
        try:
            return float(raw)
        except ValueError:
            raise RuntimeError(f"{name} must be a number of seconds, got {raw!r}")

    def _validate(self):
        if self.DB_POOL_TIMEOUT <= 0:
            raise RuntimeError("DB_POOL_TIMEOUT must be a positive number of seconds")
        if self.ENV != "dev" and not self.ALLOW_SQLITE and self.DATABASE_URL.startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must point at a server database in non-dev environments")


settings = Settings()
