"""
Application settings.

Settings are read from the environment (and an optional `.env` file) exactly
once at startup, frozen, and then handed to the components that need them.
Nothing in the request path re-reads the environment.
"""

import os
import re
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from email_validator import EmailNotValidError, validate_email

# Base directory of the project (parent of 'authcore')
BASE_DIR = Path(__file__).resolve().parent.parent.parent
DB_DIR = BASE_DIR / "db"

DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{DB_DIR / 'authcore.db'}"

_DURATION_RE = re.compile(r"^\s*(-?\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


class ConfigError(ValueError):
    """Raised when the environment holds an unusable configuration."""


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as "24h", "15m", "30s", "7d" or plain seconds.

    Raises:
        ConfigError: If the value is not a recognised duration
    """
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ConfigError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _DURATION_UNITS[unit])


def _env(key: str, default: str = "") -> str:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_bool(key: str, default: bool) -> bool:
    return _env(key, "true" if default else "false").lower() in ("1", "true", "yes", "on")


def _env_int(key: str, default: int) -> int:
    raw = _env(key, str(default))
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


@dataclass(frozen=True)
class Settings:
    """Immutable process-wide configuration."""

    jwt_secret: str
    app_env: str = "development"
    app_name: str = "authcore"
    access_token_ttl: timedelta = timedelta(hours=24)
    refresh_token_ttl: timedelta = timedelta(days=7)
    reset_token_ttl: timedelta = timedelta(minutes=60)
    database_url: str = DEFAULT_DATABASE_URL
    sql_debug: bool = False
    log_level: str = "INFO"
    log_json: bool = True
    enable_docs: bool = True
    cors_origins: tuple[str, ...] = ()
    admin_email: Optional[str] = None
    admin_password: Optional[str] = field(default=None, repr=False)
    admin_first_name: Optional[str] = None
    admin_last_name: Optional[str] = None
    jwt_secret_generated: bool = False

    def __repr__(self) -> str:
        # Never render the signing secret.
        return (
            f"Settings(app_env={self.app_env!r}, app_name={self.app_name!r}, "
            f"database_url={self.database_url!r})"
        )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def token_issuer(self) -> str:
        return self.app_name

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """
        Build settings from environment variables.

        Loads `.env` first (existing variables win). In production a missing
        JWT_SECRET or admin credentials are fatal; elsewhere a random secret
        is generated so a fresh clone can start.
        """
        load_dotenv(env_file)

        app_env = _env("APP_ENV", "development").lower()

        secret = _env("JWT_SECRET")
        generated = False
        if not secret:
            if app_env == "production":
                raise ConfigError("JWT_SECRET must be set in production environment")
            secret = secrets.token_urlsafe(32)
            generated = True

        cors = tuple(
            origin.strip()
            for origin in _env("CORS_ORIGINS").split(",")
            if origin.strip()
        )

        settings = cls(
            jwt_secret=secret,
            app_env=app_env,
            app_name=_env("APP_NAME", "authcore"),
            access_token_ttl=parse_duration(_env("JWT_EXPIRES_IN", "24h")),
            refresh_token_ttl=timedelta(days=_env_int("REFRESH_TOKEN_EXPIRE_DAYS", 7)),
            reset_token_ttl=timedelta(minutes=_env_int("RESET_TOKEN_EXPIRE_MINUTES", 60)),
            database_url=_env("DATABASE_URL", DEFAULT_DATABASE_URL),
            sql_debug=_env_bool("SQL_DEBUG", False),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", True),
            enable_docs=_env_bool("ENABLE_DOCS", True),
            cors_origins=cors,
            admin_email=_env("ADMIN_EMAIL") or None,
            admin_password=_env("ADMIN_PASSWORD") or None,
            admin_first_name=_env("ADMIN_FIRST_NAME") or None,
            admin_last_name=_env("ADMIN_LAST_NAME") or None,
            jwt_secret_generated=generated,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Check cross-field rules. Raises ConfigError."""
        if self.access_token_ttl <= timedelta(0):
            raise ConfigError("JWT_EXPIRES_IN must be positive")
        if self.refresh_token_ttl <= timedelta(0):
            raise ConfigError("REFRESH_TOKEN_EXPIRE_DAYS must be positive")
        if self.reset_token_ttl <= timedelta(0):
            raise ConfigError("RESET_TOKEN_EXPIRE_MINUTES must be positive")

        if self.admin_email and not is_valid_email(self.admin_email):
            raise ConfigError("ADMIN_EMAIL is not a valid email address")

        if self.is_production:
            for key, value in (
                ("ADMIN_EMAIL", self.admin_email),
                ("ADMIN_PASSWORD", self.admin_password),
                ("ADMIN_FIRST_NAME", self.admin_first_name),
                ("ADMIN_LAST_NAME", self.admin_last_name),
            ):
                if not value:
                    raise ConfigError(f"{key} must be set in production environment")
