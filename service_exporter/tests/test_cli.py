"""
Unit tests for configuration loading and the command line entry point.
"""

from unittest.mock import patch

import pytest

from service_exporter.app import cli
from shared.config import ExporterConfig
from shared.errors import ConfigurationError

ENV_VARS = [
    "FEATURE_FLAGS_API_KEY",
    "FEATURE_FLAGS_API_URL",
    "FEATURE_FLAGS_ORGANIZATION_ID",
    "FEATURE_FLAGS_PRODUCT_ID",
    "FEATURE_FLAGS_PRODUCT_NAME",
    "REQUEST_TIMEOUT",
    "SCRAPE_INTERVAL",
    "STALE_COUNT_MODE",
    "METRICS_NAMESPACE",
    "HOST",
    "PORT",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove exporter variables from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def required_env(clean_env):
    """Environment with the required settings present."""
    clean_env.setenv("FEATURE_FLAGS_API_KEY", "env-key")
    clean_env.setenv("FEATURE_FLAGS_ORGANIZATION_ID", "env-org")
    clean_env.setenv("FEATURE_FLAGS_PRODUCT_ID", "env-product")
    return clean_env


class TestLoadConfig:
    """Test cases for load_config."""

    def test_defaults(self, required_env):
        """Test defaults apply when nothing else is set."""
        config = cli.load_config([])

        assert config.api_key == "env-key"
        assert config.organization_id == "env-org"
        assert config.product_id == "env-product"
        assert config.api_url == "https://api.example.com"
        assert config.scrape_interval == 60
        assert config.request_timeout == 30.0
        assert config.port == 8080
        assert config.log_level == "info"
        assert config.stale_count_mode == "per_config"
        assert config.resolved_product_name == "product-env-product"

    def test_environment_values(self, required_env):
        """Test environment variables are read."""
        required_env.setenv("PORT", "9100")
        required_env.setenv("SCRAPE_INTERVAL", "15")
        required_env.setenv("LOG_LEVEL", "DEBUG")
        required_env.setenv("FEATURE_FLAGS_API_URL", "https://flags.internal/")

        config = cli.load_config([])

        assert config.port == 9100
        assert config.scrape_interval == 15
        assert config.log_level == "debug"
        assert config.api_url == "https://flags.internal/"

    def test_flags_override_environment(self, required_env):
        """Test explicit flags win over the environment."""
        required_env.setenv("PORT", "9100")

        config = cli.load_config([
            "--port", "9200",
            "--product-id", "cli-product",
            "--stale-count-mode", "cumulative",
        ])

        assert config.port == 9200
        assert config.product_id == "cli-product"
        assert config.api_key == "env-key"
        assert config.stale_count_mode == "cumulative"

    def test_flag_equal_to_default_does_not_override(self, required_env):
        """Test a flag left at its default value leaves the environment in charge."""
        required_env.setenv("PORT", "9100")

        config = cli.load_config(["--port", "8080"])

        assert config.port == 9100

    def test_flags_alone_are_enough(self, clean_env):
        """Test required values can come from flags only."""
        config = cli.load_config([
            "--api-key", "k",
            "--organization-id", "o",
            "--product-id", "p",
            "--product-name", "Shop",
        ])

        assert config.resolved_product_name == "Shop"

    @pytest.mark.parametrize("missing", [
        "FEATURE_FLAGS_API_KEY",
        "FEATURE_FLAGS_ORGANIZATION_ID",
        "FEATURE_FLAGS_PRODUCT_ID",
    ])
    def test_missing_required_value(self, required_env, missing):
        """Test each required value is enforced."""
        required_env.delenv(missing)

        with pytest.raises(ConfigurationError):
            cli.load_config([])

    def test_invalid_value(self, required_env):
        """Test invalid values become configuration errors."""
        required_env.setenv("SCRAPE_INTERVAL", "0")

        with pytest.raises(ConfigurationError) as exc_info:
            cli.load_config([])

        assert "scrape interval" in exc_info.value.message

    @pytest.mark.parametrize("api_url", [
        "https://api.example.com:notaport",
        "api.example.com",
        "ftp://api.example.com",
    ])
    def test_invalid_api_url(self, required_env, api_url):
        """Test an unusable API address fails at startup."""
        required_env.setenv("FEATURE_FLAGS_API_URL", api_url)

        with pytest.raises(ConfigurationError) as exc_info:
            cli.load_config([])

        assert "API URL" in exc_info.value.message


class TestExporterConfig:
    """Test cases for ExporterConfig."""

    def test_validate_required(self, clean_env):
        """Test the required check names the missing field."""
        config = ExporterConfig(api_key="k", organization_id="o")

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_required()

        assert exc_info.value.details == {"field": "product_id"}

    def test_rejects_unknown_log_format(self, clean_env):
        """Test log format validation."""
        with pytest.raises(ValueError):
            ExporterConfig(log_format="xml")


class TestMain:
    """Test cases for the CLI entry point."""

    def test_configuration_error_exit_code(self, clean_env, capsys):
        """Test startup fails with a non-zero exit code."""
        assert cli.main([]) == 1
        assert "API key is required" in capsys.readouterr().err

    def test_clean_run_exit_code(self, required_env):
        """Test a clean shutdown exits with zero."""
        with patch("service_exporter.app.main.ExporterService.run") as run:
            assert cli.main([]) == 0

        run.assert_called_once()

    def test_failure_exit_code(self, required_env):
        """Test errors from the service surface as exit code 1."""
        with patch("service_exporter.app.main.ExporterService.run", side_effect=RuntimeError("bind failed")):
            assert cli.main([]) == 1
