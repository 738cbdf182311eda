"""Configuration management using Pydantic Settings."""

import re
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any, Optional

import httpx
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from regrab.core.exceptions import ConfigError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w)")
_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
    "w": 60 * 60 * 24 * 7,
}


def parse_duration(value: Any) -> Any:
    """Parse human durations like "30s", "10m" or "1h30m".

    A bare number such as "600" is seconds. Anything else is handed back
    unchanged so pydantic's own timedelta parsing ("HH:MM:SS", ISO 8601)
    still applies.
    """
    if not isinstance(value, str):
        return value

    text = value.strip().lower().replace(" ", "")
    try:
        return timedelta(seconds=float(text))
    except (ValueError, OverflowError):
        pass

    if not text or _DURATION_PART.sub("", text):
        return value

    seconds = sum(
        float(amount) * _DURATION_UNITS[unit]
        for amount, unit in _DURATION_PART.findall(text)
    )
    return timedelta(seconds=seconds)


def _check_url(value: str) -> str:
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError) as e:
        raise ValueError(f"invalid url {value!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"expected an absolute http(s) url, got {value!r}")
    return value.rstrip("/")


ServiceUrl = Annotated[str, AfterValidator(_check_url)]


class SonarrConfig(BaseModel):
    """Sonarr connection settings."""

    url: ServiceUrl = "http://localhost:8989"
    api_key: str = ""
    timeout: int = 30
    history_page_size: int = 1000


class QBittorrentConfig(BaseModel):
    """qBittorrent connection settings."""

    url: ServiceUrl = "http://localhost:8080"
    timeout: int = 30
    category: str = "tv-sonarr"


class ReconcileConfig(BaseModel):
    """Reconciliation loop timing."""

    check_interval: timedelta = timedelta(minutes=10)
    max_age: timedelta = timedelta(days=7)  # Freshness window for releases
    skip_window: Optional[timedelta] = timedelta(hours=12)  # None disables the skip-set

    @field_validator("check_interval", "max_age", "skip_window", mode="before")
    @classmethod
    def parse_durations(cls, value: Any) -> Any:
        return parse_duration(value)

    @field_validator("check_interval")
    @classmethod
    def positive_interval(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("check_interval must be positive")
        return value


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_output: bool = Field(default=False, alias="json")
    file: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class Settings(BaseSettings):
    """Main settings container."""

    model_config = SettingsConfigDict(
        env_prefix="REGRAB_",
        env_nested_delimiter="__",
    )

    sonarr: SonarrConfig = Field(default_factory=SonarrConfig)
    qbittorrent: QBittorrentConfig = Field(default_factory=QBittorrentConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from a YAML file."""
        import yaml

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping")

        try:
            return cls(**data) if data else cls()
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    def validate_required(self) -> None:
        """Check the fields that have no usable default."""
        if not self.sonarr.api_key:
            raise ConfigError("sonarr.api_key is required")
