"""Unified configuration schema for dc_cli.

Pydantic models for the YAML config file, with sections for the hub
connection, file locations and logging, plus the adapter that turns
them into the runtime ``Config`` dataclass.

Usage:
    from dc_cli.config_schema import build_config, to_runtime_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_runtime_config(unified, cli_overrides={"hub_id": "..."})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from .errors import FatalConfigurationError

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.amplience.net/v2/content"
DEFAULT_LOG_DIR = "~/.dc_cli/logs"
DEFAULT_MAPPING_DIR = "~/.dc_cli/mapping"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class HubConfig(BaseModel):
    """Hub connection settings.

    All fields are optional so env vars and CLI args can supply them at
    runtime instead.
    """

    api_url: str = Field(default=DEFAULT_API_URL, description="Content API base URL")
    hub_id: str | None = Field(default=None, description="Hub id")
    access_token: str | None = Field(default=None, description="Bearer token")
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent requests to the hub (1-100)",
    )
    folder_parallelism: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Folders fetched concurrently per level on export (1-100)",
    )

    model_config = {"frozen": True}


class PathsConfig(BaseModel):
    """Default locations for action logs and id mapping files."""

    log_dir: str = Field(default=DEFAULT_LOG_DIR)
    mapping_dir: str = Field(default=DEFAULT_MAPPING_DIR)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.  ``UnifiedConfig()`` is always valid."""

    hub: HubConfig = Field(default_factory=HubConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from ``load_hierarchical_config()`` output.

    Missing sections get defaults.

    Raises:
        FatalConfigurationError: If a value fails validation.
    """
    if not raw_data:
        return UnifiedConfig()
    try:
        return UnifiedConfig(**raw_data)
    except ValidationError as e:
        raise FatalConfigurationError(
            f"Invalid configuration file: {e}"
        ) from e


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> runtime Config dataclass
# ---------------------------------------------------------------------------


def to_runtime_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the ``Config`` dataclass.

    Precedence: CLI override > unified config value > default.

    CLI overrides dict keys: api_url, hub_id, access_token, insecure,
    debug, log_dir, mapping_dir.

    Returns:
        ``Config`` instance (NOT validated; run ``validate_config()``).
    """
    # Import here to avoid circular imports (config.py imports config_schema)
    from .config import Config

    overrides = cli_overrides or {}

    return Config(
        api_url=overrides.get("api_url") or unified.hub.api_url,
        hub_id=overrides.get("hub_id") or unified.hub.hub_id or "",
        access_token=overrides.get("access_token")
        or unified.hub.access_token
        or "",
        insecure=overrides.get("insecure", False) or unified.hub.insecure,
        debug=overrides.get("debug", False),
        max_parallel_requests=unified.hub.max_parallel_requests,
        folder_parallelism=unified.hub.folder_parallelism,
        log_dir=overrides.get("log_dir") or unified.paths.log_dir,
        mapping_dir=overrides.get("mapping_dir") or unified.paths.mapping_dir,
        log_level=unified.logging.level,
        diagnostics_file=unified.logging.file,
    )
