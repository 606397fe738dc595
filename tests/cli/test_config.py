"""Tests for CLI configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError

from src.cli.config import (
    ENVIRONMENT_BASE_URLS,
    EndpointsConfig,
    OrderUpConfig,
    PagingConfig,
    load_config,
    resolve_env_vars,
)


@pytest.fixture
def no_config_files(tmp_path, monkeypatch):
    """Run with an empty cwd and home so no config file is discovered."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


class TestDefaults:
    """Tests for OrderUpConfig defaults."""

    def test_defaults(self):
        """Defaults point at the dev environment with the standard paths."""
        cfg = OrderUpConfig()
        assert cfg.environment == "dev"
        assert cfg.resolved_base_url == "https://betaaccount.retailcloud.com"
        assert cfg.api.timeout == 30.0
        assert cfg.paging.page_size == 20
        assert cfg.credentials.backend == "keyring"
        assert cfg.credentials.service_name == "com.orderup.app"

    def test_endpoint_defaults(self):
        endpoints = EndpointsConfig()
        assert endpoints.orders == "/console/transactions/orders"
        assert endpoints.locations == "/api/locations"
        assert endpoints.simulate_fulfillment == "/api/fulfillment/simulate"
        assert endpoints.fulfillment == "/api/fulfillment"
        assert endpoints.dashboard == "/api/dashboard"

    @pytest.mark.parametrize("env", ["dev", "uat", "prod"])
    def test_environment_presets(self, env):
        assert OrderUpConfig(environment=env).resolved_base_url == ENVIRONMENT_BASE_URLS[env]

    def test_explicit_base_url_wins(self):
        cfg = OrderUpConfig(environment="prod", api={"base_url": "http://localhost:9000/"})
        assert cfg.resolved_base_url == "http://localhost:9000"

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            OrderUpConfig(environment="staging")

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            PagingConfig(page_size=0)


class TestResolveEnvVars:
    """Tests for ${VAR} resolution in config values."""

    def test_resolves_env_var(self, monkeypatch):
        """${VAR} syntax resolves from environment."""
        monkeypatch.setenv("TEST_HOST", "api.internal")
        assert resolve_env_vars("https://${TEST_HOST}") == "https://api.internal"

    def test_missing_env_var_returns_empty(self):
        """Missing env vars resolve to empty string."""
        assert resolve_env_vars("${DEFINITELY_NOT_SET_XYZ}") == ""


class TestLoadConfig:
    """Tests for YAML config file loading."""

    def test_load_from_explicit_path(self, tmp_path, no_config_files):
        """Load config from explicit --config path."""
        config_data = {
            "environment": "uat",
            "paging": {"page_size": 50},
            "endpoints": {"orders": "/v2/orders"},
        }
        config_file = tmp_path / "custom.yaml"
        config_file.write_text(yaml.dump(config_data))

        cfg = load_config(config_path=str(config_file))
        assert cfg.environment == "uat"
        assert cfg.paging.page_size == 50
        assert cfg.endpoints.orders == "/v2/orders"
        assert cfg.endpoints.dashboard == "/api/dashboard"

    def test_missing_explicit_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path=str(tmp_path / "nope.yaml"))

    def test_defaults_when_no_config(self, no_config_files):
        """No config file yields defaults rather than None."""
        cfg = load_config()
        assert cfg == OrderUpConfig()

    def test_discovers_cwd_file(self, no_config_files):
        (no_config_files / "orderup.yaml").write_text(yaml.dump({"environment": "prod"}))
        assert load_config().environment == "prod"

    def test_discovers_home_file(self, no_config_files):
        home_dir = no_config_files / ".orderup"
        home_dir.mkdir()
        (home_dir / "config.yaml").write_text(yaml.dump({"logging": {"level": "debug"}}))
        assert load_config().logging.level == "debug"

    def test_env_var_override(self, tmp_path, no_config_files, monkeypatch):
        """ORDERUP_ env vars override YAML values."""
        config_file = tmp_path / "orderup.yaml"
        config_file.write_text(yaml.dump({"paging": {"page_size": 20}}))
        monkeypatch.setenv("ORDERUP_PAGING_PAGE_SIZE", "100")
        monkeypatch.setenv("ORDERUP_API_BASE_URL", "http://127.0.0.1:8080")
        monkeypatch.setenv("ORDERUP_API_TIMEOUT", "2.5")

        cfg = load_config(config_path=str(config_file))
        assert cfg.paging.page_size == 100
        assert cfg.resolved_base_url == "http://127.0.0.1:8080"
        assert cfg.api.timeout == 2.5

    def test_environment_override(self, no_config_files, monkeypatch):
        monkeypatch.setenv("ORDERUP_ENVIRONMENT", "PROD")
        assert load_config().environment == "prod"

    def test_dollar_var_resolution(self, tmp_path, no_config_files, monkeypatch):
        """${VAR} in YAML values resolve from environment."""
        monkeypatch.setenv("MY_BACKEND", "https://backend.example")
        config_file = tmp_path / "orderup.yaml"
        config_file.write_text(yaml.dump({"api": {"base_url": "${MY_BACKEND}"}}))

        cfg = load_config(config_path=str(config_file))
        assert cfg.api.base_url == "https://backend.example"

    def test_empty_file_is_defaults(self, tmp_path, no_config_files):
        config_file = tmp_path / "orderup.yaml"
        config_file.write_text("")
        assert load_config(config_path=str(config_file)) == OrderUpConfig()

    def test_invalid_value_raises(self, tmp_path, no_config_files):
        config_file = tmp_path / "orderup.yaml"
        config_file.write_text(yaml.dump({"credentials": {"backend": "vault"}}))
        with pytest.raises(ValidationError):
            load_config(config_path=str(config_file))
