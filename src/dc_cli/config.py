"""Runtime configuration for dc-cli.

Reads hub connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    DC_API_URL: Content API base URL (optional, default: Amplience production)
    DC_HUB_ID: Hub id (required)
    DC_ACCESS_TOKEN: Bearer access token (required)
    DC_INSECURE: Skip SSL verification (optional, default: false)
    DC_MAX_PARALLEL_REQUESTS: Max parallel hub requests (optional, default: 5)
    DC_FOLDER_PARALLELISM: Folders fetched concurrently on export (optional, default: 10)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from dotenv import load_dotenv

from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import (
    DEFAULT_API_URL,
    DEFAULT_LOG_DIR,
    DEFAULT_MAPPING_DIR,
    UnifiedConfig,
    build_config,
)
from .errors import FatalConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class Config:
    hub_id: str
    access_token: str
    api_url: str = DEFAULT_API_URL
    insecure: bool = False
    debug: bool = False
    max_parallel_requests: int = 5
    folder_parallelism: int = 10
    log_dir: str = DEFAULT_LOG_DIR
    mapping_dir: str = DEFAULT_MAPPING_DIR
    log_level: str = "WARNING"
    diagnostics_file: str | None = None

    def default_log_path(self, entity_type: str, action: str) -> Path:
        """``<log_dir>/<type>-<action>-<DATE>.log``; ``<DATE>`` is filled in on write."""
        return Path(self.log_dir).expanduser() / f"{entity_type}-{action}-<DATE>.log"

    def default_mapping_path(self) -> Path:
        """``<mapping_dir>/<hub_id>.json``."""
        return Path(self.mapping_dir).expanduser() / f"{self.hub_id}.json"


def validate_config(config: Config) -> None:
    """Validate configuration values.

    Raises:
        FatalConfigurationError: If the URL is malformed or credentials are empty.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise FatalConfigurationError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )
    if not urlparse(config.api_url).hostname:
        raise FatalConfigurationError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )
    config.api_url = config.api_url.removesuffix("/")

    if not config.hub_id.strip():
        raise FatalConfigurationError(
            "Hub id cannot be empty. Set DC_HUB_ID or pass --hub-id."
        )
    if not config.access_token.strip():
        raise FatalConfigurationError(
            "Access token cannot be empty. Set DC_ACCESS_TOKEN or pass --access-token."
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _int_env(key: str, fallback: dict, field: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None:
        return int(fallback.get(field, default))
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if not (1 <= value <= 100):
        raise FatalConfigurationError(
            f"Invalid {key} '{raw}': must be a number between 1 and 100"
        )
    return value


def load_config(
    api_url: str | None = None,
    hub_id: str | None = None,
    access_token: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
    paths: dict | None = None,
    logging_settings: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` first so
    that .env values are visible through ``os.getenv()``.

    Args:
        api_url: Override API URL.
        hub_id: Override hub id.
        access_token: Override access token.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Values from the YAML ``hub`` section.
        paths: Values from the YAML ``paths`` section, plus any CLI
            ``log_dir`` / ``mapping_dir`` overrides.
        logging_settings: Values from the YAML ``logging`` section.

    Returns:
        Validated Config instance.

    Raises:
        FatalConfigurationError: If a required value is missing or invalid.
    """
    fb = yaml_fallbacks or {}
    paths = paths or {}
    logging_settings = logging_settings or {}

    final_url = api_url or os.getenv("DC_API_URL") or fb.get("api_url") or DEFAULT_API_URL

    final_hub = hub_id or os.getenv("DC_HUB_ID") or fb.get("hub_id")
    if not final_hub:
        raise FatalConfigurationError(
            "Hub id not found. Set DC_HUB_ID environment variable, "
            "pass --hub-id, or add 'hub_id' to config.yml."
        )

    final_token = access_token or os.getenv("DC_ACCESS_TOKEN") or fb.get("access_token")
    if not final_token:
        raise FatalConfigurationError(
            "Access token not found. Set DC_ACCESS_TOKEN environment variable, "
            "pass --access-token, or add 'access_token' to config.yml."
        )

    if insecure:
        final_insecure = True
    else:
        env_insecure = os.getenv("DC_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure.lower() in ("true", "1", "yes", "on")
        else:
            final_insecure = bool(fb.get("insecure", False))

    config = Config(
        api_url=final_url,
        hub_id=final_hub.strip(),
        access_token=final_token.strip(),
        insecure=final_insecure,
        debug=debug,
        max_parallel_requests=_int_env(
            "DC_MAX_PARALLEL_REQUESTS", fb, "max_parallel_requests", 5
        ),
        folder_parallelism=_int_env(
            "DC_FOLDER_PARALLELISM", fb, "folder_parallelism", 10
        ),
        log_dir=paths.get("log_dir") or DEFAULT_LOG_DIR,
        mapping_dir=paths.get("mapping_dir") or DEFAULT_MAPPING_DIR,
        log_level=logging_settings.get("level") or "WARNING",
        diagnostics_file=logging_settings.get("file"),
    )

    validate_config(config)
    return config


def load_runtime_config(overrides: dict[str, Any] | None = None) -> Config:
    """Merge .env, YAML config files, env vars and CLI *overrides* into a Config.

    .env is loaded before YAML so ``${VAR}`` interpolation sees its values.
    """
    load_dotenv()

    overrides = overrides or {}
    unified = UnifiedConfig()
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        logger.info("Configuration file: %s", config_files[0])

    yaml_fallbacks = {
        k: v for k, v in unified.hub.model_dump().items() if v is not None
    }
    paths = unified.paths.model_dump()
    for key in ("log_dir", "mapping_dir"):
        if overrides.get(key):
            paths[key] = overrides[key]

    return load_config(
        api_url=overrides.get("api_url"),
        hub_id=overrides.get("hub_id"),
        access_token=overrides.get("access_token"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
        paths=paths,
        logging_settings=unified.logging.model_dump(),
    )
