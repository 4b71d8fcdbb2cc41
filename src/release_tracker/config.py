"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (RELEASE_TRACKER__API__BASE_URL=http://tracker:3001)
  2. release-tracker.yaml   (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_CONFIG_FILENAME = "release-tracker.yaml"
_DEFAULT_CONFIG_DIR = platformdirs.user_config_dir("release-tracker")


def _find_config_file() -> str | None:
    """Return the path of the first release-tracker.yaml found, or None."""
    candidates = [
        Path(_CONFIG_FILENAME),
        Path(_DEFAULT_CONFIG_DIR) / _CONFIG_FILENAME,
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ApiSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = "http://localhost:3001"
    timeout_seconds: float = Field(default=30.0, gt=0)


class QuerySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stale_time_seconds: float = Field(default=300.0, ge=0)
    gc_time_seconds: float = Field(default=600.0, gt=0)
    retry: int = Field(default=2, ge=0)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=30.0, ge=0)
    gc_interval_seconds: float = Field(default=60.0, gt=0)

    @model_validator(mode="after")
    def validate_windows(self) -> QuerySettings:
        if self.gc_time_seconds <= self.stale_time_seconds:
            raise ValueError("gc_time_seconds must be greater than stale_time_seconds")
        return self


class SearchSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    debounce_seconds: float = Field(default=0.3, ge=0)
    min_query_length: int = Field(default=2, ge=1)
    limit: int = Field(default=10, ge=1)


class ReleaseSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new_limit: int = Field(default=20, ge=1)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: RELEASE_TRACKER__QUERY__RETRY=3
        env_prefix="RELEASE_TRACKER__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    api: ApiSettings = ApiSettings()
    query: QuerySettings = QuerySettings()
    search: SearchSettings = SearchSettings()
    releases: ReleaseSettings = ReleaseSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
