"""Configuration for fillproxy."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from fillproxy.cache import DEFAULT_CAPACITY
from fillproxy.ingestion.http import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FILLPROXY_CONFIG"
LOCAL_CONFIG_NAME = "fillproxy.toml"


class CacheConfig(BaseModel):
    """Hour cache settings."""

    capacity: int = Field(default=DEFAULT_CAPACITY, ge=1)


class SourceConfig(BaseModel):
    """Where fills come from on a cache miss."""

    kind: Literal["file", "http"] = "file"
    path: str | None = None
    url: str | None = None
    timeout: float = DEFAULT_TIMEOUT


class FillProxyConfig(BaseModel):
    """Top-level configuration."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)

    @classmethod
    def from_toml(cls, path: Path | str) -> FillProxyConfig:
        """Read a fillproxy TOML file; missing tables keep their defaults."""
        path = Path(path)
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, explicit_path: str | None = None) -> FillProxyConfig:
        """Resolve the settings for a run.

        A --config path wins, then the file named by FILLPROXY_CONFIG, then
        a fillproxy.toml in the working directory. With none of them the
        built-in cache and source defaults apply.
        """
        if explicit_path:
            logger.info("Using config file %s (--config)", explicit_path)
            return cls.from_toml(explicit_path)
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            logger.info("Using config file %s ($%s)", env_path, CONFIG_ENV_VAR)
            return cls.from_toml(env_path)
        local = Path(LOCAL_CONFIG_NAME)
        if local.is_file():
            logger.info("Using config file %s", local.resolve())
            return cls.from_toml(local)
        logger.debug("No config file found; using defaults")
        return cls()
