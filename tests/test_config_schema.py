"""Tests for the unified config schema and its runtime adapter.

Covers the Pydantic models in config_schema.py (UnifiedConfig, HubConfig,
PathsConfig, LoggingConfig), the build_config() factory and the
to_runtime_config() adapter.
"""

import pytest
from pydantic import ValidationError

from dc_cli.config import Config
from dc_cli.config_schema import (
    DEFAULT_API_URL,
    HubConfig,
    LoggingConfig,
    PathsConfig,
    UnifiedConfig,
    build_config,
    to_runtime_config,
)
from dc_cli.errors import FatalConfigurationError

# ---------------------------------------------------------------------------
# UnifiedConfig tests
# ---------------------------------------------------------------------------


class TestUnifiedConfig:
    """Tests for the top-level UnifiedConfig model."""

    def test_empty_produces_valid_defaults(self):
        """UnifiedConfig() is valid with all defaults."""
        config = UnifiedConfig()
        assert config.hub.api_url == DEFAULT_API_URL
        assert config.hub.hub_id is None
        assert config.hub.insecure is False
        assert config.paths.log_dir == "~/.dc_cli/logs"
        assert config.logging.level == "WARNING"

    def test_unknown_sections_ignored(self):
        """Sections this tool does not know about are dropped."""
        config = UnifiedConfig(**{"hub": {"hub_id": "h"}, "plugins": {"x": 1}})
        assert config.hub.hub_id == "h"
        assert not hasattr(config, "plugins")

    def test_frozen_model_prevents_mutation(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.hub = HubConfig(hub_id="other")


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TestHubConfig:
    """Tests for HubConfig."""

    def test_all_fields_optional_zero_config(self):
        hub = HubConfig()
        assert hub.access_token is None
        assert hub.max_parallel_requests == 5
        assert hub.folder_parallelism == 10

    @pytest.mark.parametrize("field", ["max_parallel_requests", "folder_parallelism"])
    @pytest.mark.parametrize("value", [0, 101])
    def test_parallelism_range(self, field, value):
        with pytest.raises(ValidationError):
            HubConfig(**{field: value})

    @pytest.mark.parametrize("field", ["max_parallel_requests", "folder_parallelism"])
    def test_parallelism_bounds_accepted(self, field):
        assert getattr(HubConfig(**{field: 100}), field) == 100
        assert getattr(HubConfig(**{field: 1}), field) == 1

    def test_frozen_model(self):
        with pytest.raises(ValidationError):
            HubConfig().hub_id = "x"


class TestPathsAndLogging:
    def test_paths_custom(self):
        paths = PathsConfig(log_dir="/logs", mapping_dir="/map")
        assert (paths.log_dir, paths.mapping_dir) == ("/logs", "/map")

    def test_logging_defaults(self):
        logging_config = LoggingConfig()
        assert logging_config.level == "WARNING"
        assert logging_config.file is None

    def test_logging_custom(self):
        logging_config = LoggingConfig(level="DEBUG", file="/tmp/dc.log")
        assert logging_config.file == "/tmp/dc.log"


# ---------------------------------------------------------------------------
# build_config()
# ---------------------------------------------------------------------------


class TestBuildConfig:
    """Tests for build_config()."""

    def test_empty_dict_returns_defaults(self):
        assert build_config({}) == UnifiedConfig()

    def test_partial_sections_fill_defaults(self):
        config = build_config({"paths": {"mapping_dir": "/map"}})
        assert config.paths.mapping_dir == "/map"
        assert config.paths.log_dir == "~/.dc_cli/logs"
        assert config.hub == HubConfig()

    def test_invalid_value_raises(self):
        with pytest.raises(FatalConfigurationError, match="Invalid configuration"):
            build_config({"hub": {"folder_parallelism": "lots"}})


# ---------------------------------------------------------------------------
# to_runtime_config()
# ---------------------------------------------------------------------------


class TestToRuntimeConfig:
    """Tests for the UnifiedConfig -> Config adapter."""

    def _unified(self):
        return build_config(
            {
                "hub": {
                    "api_url": "https://yaml.example.com",
                    "hub_id": "yaml-hub",
                    "access_token": "yaml-token",
                    "max_parallel_requests": 8,
                },
                "paths": {"log_dir": "/yaml/logs"},
                "logging": {"level": "INFO", "file": "/tmp/dc.log"},
            }
        )

    def test_values_carried_over(self):
        config = to_runtime_config(self._unified())
        assert isinstance(config, Config)
        assert config.api_url == "https://yaml.example.com"
        assert config.hub_id == "yaml-hub"
        assert config.max_parallel_requests == 8
        assert config.log_dir == "/yaml/logs"
        assert config.log_level == "INFO"
        assert config.diagnostics_file == "/tmp/dc.log"

    def test_cli_overrides_win_over_config(self):
        config = to_runtime_config(
            self._unified(),
            cli_overrides={"hub_id": "cli-hub", "log_dir": "/cli", "debug": True},
        )
        assert config.hub_id == "cli-hub"
        assert config.access_token == "yaml-token"
        assert config.log_dir == "/cli"
        assert config.debug is True

    def test_zero_config_leaves_credentials_empty(self):
        config = to_runtime_config(UnifiedConfig())
        assert config.hub_id == ""
        assert config.access_token == ""

    def test_insecure_override_from_cli(self):
        config = to_runtime_config(UnifiedConfig(), cli_overrides={"insecure": True})
        assert config.insecure is True
