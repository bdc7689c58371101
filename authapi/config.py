"""
Service configuration.

Settings are read once from the process environment (optionally seeded from a
.env file) and passed explicitly to every component that needs them. The
signing secret has no default: a missing JWT_SECRET is a fatal error and the
process must not start.
"""
import os
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from authapi.errors import ConfigurationError

# Lifetime of an issued access token
TOKEN_TTL = timedelta(hours=1)

DEFAULT_BCRYPT_ROUNDS = 12
DEFAULT_RATE_LIMIT_MAX_KEYS = 10_000

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime configuration for the authentication API."""
    jwt_secret: str = Field(..., repr=False)
    token_ttl: timedelta = TOKEN_TTL
    environment: str = "development"
    log_level: str = "INFO"
    database_url: Optional[str] = None
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    rate_limit_max_keys: int = DEFAULT_RATE_LIMIT_MAX_KEYS
    seed_demo_users: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("jwt_secret")
    @classmethod
    def secret_must_be_set(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("JWT_SECRET must not be empty")
        return v

    @field_validator("token_ttl")
    @classmethod
    def ttl_must_be_positive(cls, v: timedelta) -> timedelta:
        if v.total_seconds() <= 0:
            raise ValueError("token TTL must be positive")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def rounds_in_range(cls, v: int) -> int:
        # bcrypt accepts cost factors 4..31
        if not 4 <= v <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @field_validator("rate_limit_max_keys")
    @classmethod
    def max_keys_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("RATE_LIMIT_MAX_KEYS must be at least 1")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from; defaults to os.environ after
                loading a .env file from the working directory

        Returns:
            Validated Settings

        Raises:
            ConfigurationError: If JWT_SECRET is absent or any value is invalid
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        secret = environ.get("JWT_SECRET")
        if not secret or not secret.strip():
            raise ConfigurationError(
                "JWT_SECRET is not set; refusing to start without a signing secret"
            )

        values: Dict[str, Any] = {"jwt_secret": secret}
        try:
            if "ACCESS_TOKEN_EXPIRE_MINUTES" in environ:
                values["token_ttl"] = timedelta(
                    minutes=int(environ["ACCESS_TOKEN_EXPIRE_MINUTES"])
                )
            if "BCRYPT_ROUNDS" in environ:
                values["bcrypt_rounds"] = int(environ["BCRYPT_ROUNDS"])
            if "RATE_LIMIT_MAX_KEYS" in environ:
                values["rate_limit_max_keys"] = int(environ["RATE_LIMIT_MAX_KEYS"])
            if "PORT" in environ:
                values["port"] = int(environ["PORT"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric configuration value: {e}") from e

        if environ.get("APP_ENV"):
            values["environment"] = environ["APP_ENV"]
        if environ.get("LOG_LEVEL"):
            values["log_level"] = environ["LOG_LEVEL"].upper()
        if environ.get("DATABASE_URL"):
            values["database_url"] = environ["DATABASE_URL"]
        if environ.get("HOST"):
            values["host"] = environ["HOST"]
        values["seed_demo_users"] = (
            environ.get("SEED_DEMO_USERS", "false").lower() in _TRUE_VALUES
        )

        try:
            return cls(**values)
        except ValueError as e:
            # pydantic's ValidationError is a ValueError subclass
            raise ConfigurationError(str(e)) from e
