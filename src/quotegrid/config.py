"""Configuration loading.

Settings are resolved in priority order (highest first):
  1. Constructor arguments   (tests, embedding)
  2. Environment variables   (QUOTEGRID__SOURCE__TIMEOUT_SECONDS=10)
  3. quotegrid.yaml          (searched in cwd, then platform config dir)
  4. Hardcoded defaults

Every field has a default, so the config file is optional.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_CONFIG_FILENAME = "quotegrid.yaml"


def _find_config_file() -> str | None:
    """Return the path of the first quotegrid.yaml found, or None."""
    candidates = [
        Path(_CONFIG_FILENAME),
        Path(platformdirs.user_config_dir("quotegrid")) / _CONFIG_FILENAME,
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    auth_enabled: bool = False
    auth_key: str = ""


class SourceSettings(BaseModel):
    base_url: str = "https://quotes.toscrape.com"
    timeout_seconds: float = Field(default=30.0, gt=0)
    # Simultaneous external fetches across all requests
    max_concurrency: int = Field(default=10, ge=1, le=50)
    user_agent: str = "quotegrid/1.0"


class PaginationSettings(BaseModel):
    walk_limit: int = Field(default=20, ge=1)
    walk_delay_seconds: float = Field(default=0.5, ge=0)
    max_pages: int = Field(default=10, ge=1)
    default_per_page: int = Field(default=10, ge=1)
    default_total_pages: int = Field(default=10, ge=1)


class CacheSettings(BaseModel):
    # None keeps every page for the whole session
    max_pages: int | None = Field(default=None, ge=1)


class StrategySettings(BaseModel):
    small_subset_max: int = Field(default=50, ge=1)
    max_count: int = Field(default=300, ge=1)
    max_range_limit: int = Field(default=100, ge=1)
    max_selection: int = Field(default=5000, ge=1)


class SchedulingSettings(BaseModel):
    initial_batch_size: int = Field(default=100, ge=1)
    batch_size: int = Field(default=100, ge=1)
    staggered_max_remaining: int = Field(default=500, ge=0)
    stagger_delay_seconds: float = Field(default=1.0, ge=0)
    scroll_debounce_seconds: float = Field(default=0.5, ge=0)
    virtual_prefetch_batches: int = Field(default=3, ge=0)
    virtual_prefetch_delay_seconds: float = Field(default=0.2, ge=0)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double underscore separates nesting: QUOTEGRID__SERVER__PORT=9090
        env_prefix="QUOTEGRID__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    source: SourceSettings = SourceSettings()
    pagination: PaginationSettings = PaginationSettings()
    cache: CacheSettings = CacheSettings()
    strategy: StrategySettings = StrategySettings()
    scheduling: SchedulingSettings = SchedulingSettings()
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
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )
