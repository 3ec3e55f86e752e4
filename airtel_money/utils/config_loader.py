"""
Configuration loader for the Airtel Money client
"""

import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from airtel_money.integrations.contracts.interfaces import ApiVersion

logger = logging.getLogger(__name__)

# Environment variable -> AirtelConfig field
_ENV_FIELDS = {
    "AIRTEL_API_BASE_URL": "base_url",
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "GRANT_TYPE": "grant_type",
    "COUNTRY": "country",
    "CURRENCY": "currency",
    "AIRTEL_API_VERSION": "api_version",
    "DEFAULT_MAX_RETRIES": "max_retries",
    "DEFAULT_POLL_MAX_ATTEMPTS": "poll_max_attempts",
    "DEFAULT_POLLING_INTERVAL_MS": "poll_interval_ms",
    "POOLING_TIMEOUT": "request_timeout_ms",
}


class ConfigError(ValueError):
    """Raised when the environment does not describe a usable gateway configuration."""


class AirtelConfig(BaseModel):
    """Airtel Money gateway configuration"""

    base_url: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1, repr=False)
    grant_type: str = "client_credentials"
    country: str = Field(default="UG", min_length=2, max_length=2)
    currency: str = Field(default="UGX", min_length=3, max_length=3)
    api_version: ApiVersion = ApiVersion.V1
    max_retries: int = Field(default=5, ge=1, le=50)
    poll_max_attempts: Optional[int] = Field(default=None, ge=1, le=100)
    poll_interval_ms: int = Field(default=5000, ge=0)
    request_timeout_ms: int = Field(default=10000, ge=1)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("country", "currency")
    @classmethod
    def upper(cls, v: str) -> str:
        return v.upper()

    @property
    def poll_attempts(self) -> int:
        return self.poll_max_attempts or self.max_retries

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0


def load_airtel_config(environ: Optional[Mapping[str, str]] = None) -> AirtelConfig:
    """
    Build and validate AirtelConfig from environment variables

    Args:
        environ: Mapping to read from. Defaults to os.environ after loading .env

    Returns:
        Validated AirtelConfig object

    Raises:
        ConfigError: If a required variable is missing or a value is invalid
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    values = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is not None and str(raw).strip() != "":
            values[field_name] = str(raw).strip()

    try:
        config = AirtelConfig(**values)
    except ValidationError as e:
        logger.error("Airtel config validation failed: %s", e)
        raise ConfigError(f"Invalid Airtel Money configuration: {e}") from e

    logger.info(
        "Loaded Airtel config base_url=%s version=%s country=%s currency=%s",
        config.base_url,
        config.api_version.value,
        config.country,
        config.currency,
    )
    return config
