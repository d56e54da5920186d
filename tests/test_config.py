"""Tests for dc_cli.config: env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the runtime
bootstrap path: validate_config(), load_config() and load_runtime_config().
"""

import logging
from pathlib import Path

import pytest

from dc_cli.config import Config, load_config, load_runtime_config, validate_config
from dc_cli.config_schema import DEFAULT_API_URL
from dc_cli.errors import FatalConfigurationError


def _config(**kwargs):
    defaults = dict(hub_id="hub-1", access_token="token")
    defaults.update(kwargs)
    return Config(**defaults)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config(): URL format and credential checks."""

    def test_valid_config(self):
        validate_config(_config())  # should not raise

    def test_http_url_valid(self):
        validate_config(_config(api_url="http://localhost:8080/v2/content"))

    def test_invalid_url_no_scheme(self):
        with pytest.raises(
            FatalConfigurationError, match="must start with http:// or https://"
        ):
            validate_config(_config(api_url="api.example.com"))

    def test_invalid_url_ftp_scheme(self):
        with pytest.raises(
            FatalConfigurationError, match="must start with http:// or https://"
        ):
            validate_config(_config(api_url="ftp://example.com"))

    def test_empty_host_url(self):
        """URL with scheme but no hostname should be rejected."""
        with pytest.raises(FatalConfigurationError, match="must include a hostname"):
            validate_config(_config(api_url="https://"))

    def test_empty_hub_id(self):
        with pytest.raises(FatalConfigurationError, match="Hub id cannot be empty"):
            validate_config(_config(hub_id="  "))

    def test_empty_access_token(self):
        with pytest.raises(
            FatalConfigurationError, match="Access token cannot be empty"
        ):
            validate_config(_config(access_token=""))

    def test_trailing_slash_and_whitespace_stripped(self):
        config = _config(api_url="  https://api.example.com/v2/content/  ")
        validate_config(config)
        assert config.api_url == "https://api.example.com/v2/content"

    def test_insecure_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="dc_cli.config"):
            validate_config(_config(insecure=True))
        assert "SSL verification disabled" in caplog.text

    def test_secure_no_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="dc_cli.config"):
            validate_config(_config())
        assert "SSL verification disabled" not in caplog.text


# -------------------------------------------------------------------------
# Config paths
# -------------------------------------------------------------------------


class TestDefaultPaths:
    def test_log_path(self):
        config = _config(log_dir="/var/log/dc")
        assert config.default_log_path("content-item", "archive") == Path(
            "/var/log/dc/content-item-archive-<DATE>.log"
        )

    def test_mapping_path_uses_hub_id(self):
        config = _config(mapping_dir="/tmp/mapping")
        assert config.default_mapping_path() == Path("/tmp/mapping/hub-1.json")

    def test_home_expanded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert _config().default_mapping_path() == tmp_path / ".dc_cli" / "mapping" / "hub-1.json"


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config(): env var loading, CLI overrides, boolean parsing."""

    def test_load_from_env_vars(self, monkeypatch):
        monkeypatch.setenv("DC_HUB_ID", "env-hub")
        monkeypatch.setenv("DC_ACCESS_TOKEN", "env-token")

        config = load_config()

        assert config.hub_id == "env-hub"
        assert config.access_token == "env-token"
        assert config.api_url == DEFAULT_API_URL
        assert config.max_parallel_requests == 5
        assert config.folder_parallelism == 10

    def test_cli_args_override_env(self, monkeypatch):
        monkeypatch.setenv("DC_HUB_ID", "env-hub")
        monkeypatch.setenv("DC_ACCESS_TOKEN", "env-token")
        monkeypatch.setenv("DC_API_URL", "https://env.example.com")

        config = load_config(
            api_url="https://cli.example.com",
            hub_id="cli-hub",
            access_token="cli-token",
        )

        assert config.api_url == "https://cli.example.com"
        assert config.hub_id == "cli-hub"
        assert config.access_token == "cli-token"

    def test_yaml_fallback_used_last(self, monkeypatch):
        monkeypatch.setenv("DC_ACCESS_TOKEN", "env-token")
        config = load_config(
            yaml_fallbacks={
                "hub_id": "yaml-hub",
                "access_token": "yaml-token",
                "max_parallel_requests": 7,
            }
        )
        assert config.hub_id == "yaml-hub"
        assert config.access_token == "env-token"
        assert config.max_parallel_requests == 7

    def test_missing_hub_id(self, monkeypatch):
        monkeypatch.setenv("DC_ACCESS_TOKEN", "token")
        with pytest.raises(FatalConfigurationError, match="Hub id not found"):
            load_config()

    def test_missing_access_token(self):
        with pytest.raises(FatalConfigurationError, match="Access token not found"):
            load_config(hub_id="hub")

    @pytest.mark.parametrize(
        "raw,expected",
        [("true", True), ("1", True), ("YES", True), ("on", True), ("false", False), ("0", False)],
    )
    def test_insecure_env_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("DC_INSECURE", raw)
        config = load_config(hub_id="h", access_token="t")
        assert config.insecure is expected

    def test_insecure_flag_beats_env(self, monkeypatch):
        monkeypatch.setenv("DC_INSECURE", "false")
        assert load_config(hub_id="h", access_token="t", insecure=True).insecure

    def test_parallelism_from_env(self, monkeypatch):
        monkeypatch.setenv("DC_MAX_PARALLEL_REQUESTS", "3")
        monkeypatch.setenv("DC_FOLDER_PARALLELISM", "20")
        config = load_config(hub_id="h", access_token="t")
        assert (config.max_parallel_requests, config.folder_parallelism) == (3, 20)

    @pytest.mark.parametrize("raw", ["0", "101", "many"])
    def test_parallelism_out_of_range(self, monkeypatch, raw):
        monkeypatch.setenv("DC_MAX_PARALLEL_REQUESTS", raw)
        with pytest.raises(FatalConfigurationError, match="between 1 and 100"):
            load_config(hub_id="h", access_token="t")

    def test_paths_and_logging_sections(self):
        config = load_config(
            hub_id="h",
            access_token="t",
            paths={"log_dir": "/logs", "mapping_dir": None},
            logging_settings={"level": "INFO", "file": "/tmp/dc.log"},
        )
        assert config.log_dir == "/logs"
        assert config.mapping_dir == "~/.dc_cli/mapping"
        assert config.log_level == "INFO"
        assert config.diagnostics_file == "/tmp/dc.log"

    def test_values_stripped(self):
        config = load_config(hub_id=" hub ", access_token=" tok ")
        assert (config.hub_id, config.access_token) == ("hub", "tok")


# -------------------------------------------------------------------------
# load_runtime_config()
# -------------------------------------------------------------------------


class TestLoadRuntimeConfig:
    """Tests for the YAML + env + CLI merge used by the CLI."""

    @pytest.fixture(autouse=True)
    def _isolated_dirs(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

    def _write_project_config(self, tmp_path, text):
        path = tmp_path / ".dc_cli" / "config.yml"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    def test_zero_config_uses_env(self, monkeypatch):
        monkeypatch.setenv("DC_HUB_ID", "env-hub")
        monkeypatch.setenv("DC_ACCESS_TOKEN", "env-token")
        config = load_runtime_config()
        assert config.hub_id == "env-hub"
        assert config.log_level == "WARNING"

    def test_yaml_values(self, tmp_path):
        self._write_project_config(
            tmp_path,
            "hub:\n"
            "  hub_id: yaml-hub\n"
            "  access_token: yaml-token\n"
            "  folder_parallelism: 4\n"
            "paths:\n"
            "  log_dir: /yaml/logs\n"
            "logging:\n"
            "  level: DEBUG\n",
        )
        config = load_runtime_config()
        assert config.hub_id == "yaml-hub"
        assert config.folder_parallelism == 4
        assert config.log_dir == "/yaml/logs"
        assert config.log_level == "DEBUG"

    def test_yaml_interpolates_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_TOKEN", "secret")
        self._write_project_config(
            tmp_path, "hub:\n  hub_id: h\n  access_token: ${MY_TOKEN}\n"
        )
        assert load_runtime_config().access_token == "secret"

    def test_overrides_win(self, tmp_path):
        self._write_project_config(
            tmp_path,
            "hub:\n  hub_id: yaml-hub\n  access_token: t\npaths:\n  mapping_dir: /yaml\n",
        )
        config = load_runtime_config(
            {"hub_id": "cli-hub", "mapping_dir": "/cli", "insecure": True}
        )
        assert config.hub_id == "cli-hub"
        assert config.mapping_dir == "/cli"
        assert config.insecure

    def test_invalid_yaml_value(self, tmp_path):
        self._write_project_config(
            tmp_path, "hub:\n  max_parallel_requests: 1000\n"
        )
        with pytest.raises(FatalConfigurationError, match="Invalid configuration"):
            load_runtime_config()
