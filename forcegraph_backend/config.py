"""Configuration loader for the force graph backend."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "FORCEGRAPH_"


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class AppConfig(BaseModel):
    """Backend settings; every field can be overridden by a FORCEGRAPH_* variable."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = Field(8765, ge=1, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]
    )
    # New nodes appear uniformly in [-spawn_range, spawn_range] on each axis
    spawn_range: float = Field(100.0, gt=0)
    restart_alpha: float = Field(0.3, gt=0, le=1)
    layout_enabled: bool = True
    layout_interval_seconds: float = Field(1 / 30, gt=0)
    log_level: str = "INFO"
    graph_dir: Path = Field(default_factory=lambda: Path.home() / "graphs")


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build the config from environment variables.

    Raises:
        ConfigError: a variable holds a value the config rejects
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, object] = {}
    for name in AppConfig.model_fields:
        raw = env.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        overrides[name] = _split_list(raw) if name == "cors_origins" else raw

    try:
        config = AppConfig.model_validate(overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    LOGGER.debug("Loaded config: %s", config)
    return config


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Process-wide config, loaded once."""
    return load_config()


def configure_logging(config: AppConfig):
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
