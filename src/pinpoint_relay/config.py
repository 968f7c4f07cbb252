"""Plugin configuration parsing.

The host delivers every option as a string keyed by its camelCase name.
``RelayConfig.from_plugin_config`` checks the required credentials, then
pydantic clamps the numeric options into their allowed ranges.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

KILOBYTE = 1024
MEGABYTE = 1024 * 1024

REQUIRED_FIELDS = {
    "awsAccessKey": "AWS access key missing!",
    "awsSecretAccessKey": "AWS secret access key missing!",
    "awsRegion": "AWS region missing!",
    "applicationId": "ApplicationId missing!",
}


class ConfigurationError(ValueError):
    """Raised when the plugin cannot start with the given configuration."""


class DeliveryMode(str, Enum):
    BUFFERED = "buffered"
    IMMEDIATE = "immediate"


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    """Parse an int the way the host does and clamp it into [low, high]."""
    try:
        parsed = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default
    # 0 is falsy upstream and falls back to the default as well
    if not parsed:
        return default
    return max(low, min(parsed, high))


class RelayConfig(BaseModel):
    """Validated plugin configuration."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    aws_access_key: str = Field(alias="awsAccessKey")
    aws_secret_access_key: str = Field(alias="awsSecretAccessKey")
    aws_region: str = Field(alias="awsRegion")
    application_id: str = Field(alias="applicationId")

    upload_seconds: int = Field(default=1, alias="uploadSeconds")
    upload_megabytes: int | None = Field(default=None, alias="uploadMegabytes")
    upload_kilobytes: int | None = Field(default=None, alias="uploadKilobytes")
    events_to_ignore: str = Field(default="", alias="eventsToIgnore")
    max_attempts: int = Field(default=3, alias="maxAttempts")
    max_retries: int = Field(default=0, alias="maxRetries")
    delivery_mode: DeliveryMode = Field(default=DeliveryMode.BUFFERED, alias="deliveryMode")

    @classmethod
    def from_plugin_config(cls, config: Mapping[str, Any]) -> "RelayConfig":
        """Build a config from the host's raw option mapping.

        Raises:
            ConfigurationError: If a required credential is missing or blank
        """
        for key, message in REQUIRED_FIELDS.items():
            value = config.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(message)

        options = {key: value for key, value in config.items() if value is not None and value != ""}
        try:
            return cls.model_validate(options)
        except ValueError as e:
            raise ConfigurationError(f"Invalid plugin configuration: {e}") from e

    @field_validator("upload_seconds", mode="before")
    @classmethod
    def _clamp_seconds(cls, value: Any) -> int:
        return _clamp(value, 1, 60, 1)

    @field_validator("upload_megabytes", "upload_kilobytes", mode="before")
    @classmethod
    def _clamp_size(cls, value: Any) -> int | None:
        if value is None:
            return None
        return _clamp(value, 1, 100, 1)

    @field_validator("max_attempts", mode="before")
    @classmethod
    def _parse_attempts(cls, value: Any) -> int:
        try:
            attempts = int(str(value).strip())
        except (TypeError, ValueError):
            logger.warning(f"Invalid maxAttempts {value!r}, using 3")
            return 3
        return attempts if attempts > 0 else 3

    @field_validator("max_retries", mode="before")
    @classmethod
    def _clamp_retries(cls, value: Any) -> int:
        try:
            retries = int(str(value).strip())
        except (TypeError, ValueError):
            return 0
        return max(0, min(retries, 15))

    @field_validator("delivery_mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def upload_limit_bytes(self) -> int:
        """Size threshold for a buffered flush.

        ``uploadMegabytes`` wins over ``uploadKilobytes``; with neither set the
        limit is one megabyte.
        """
        if self.upload_megabytes is not None:
            return self.upload_megabytes * MEGABYTE
        if self.upload_kilobytes is not None:
            return self.upload_kilobytes * KILOBYTE
        return MEGABYTE
