"""
Unit tests for configuration and logging setup.
"""

import logging

import pytest

from blobvault import configure_logging
from blobvault.config import (
    Config,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    _env_bool,
    get_config,
    storage_settings
)


class TestGetConfig:
    """Test configuration lookup."""

    def test_by_name(self):
        """Test each name maps to its class."""
        assert get_config('development') is DevelopmentConfig
        assert get_config('production') is ProductionConfig
        assert get_config('testing') is TestingConfig

    def test_default_from_environment(self, monkeypatch):
        """Test BLOBVAULT_ENV selects the configuration."""
        monkeypatch.setenv('BLOBVAULT_ENV', 'development')

        assert get_config() is DevelopmentConfig

    def test_default_without_environment(self, monkeypatch):
        """Test production is the default."""
        monkeypatch.delenv('BLOBVAULT_ENV', raising=False)

        assert get_config() is ProductionConfig

    def test_unknown_name(self):
        """Test an unknown name raises ValueError."""
        with pytest.raises(ValueError, match="Unknown configuration"):
            get_config('staging')


class TestDefaults:
    """Test default configuration values."""

    def test_schedule_defaults_to_daily_at_two(self):
        """Test the default schedule is 02:00 daily."""
        assert Config.SCHEDULE_CRON == '0 2 * * *'
        assert Config.SCHEDULER_TIMEZONE == 'UTC'

    def test_artifact_defaults(self):
        """Test artifacts are named *_encrypted.zip and kept by default."""
        assert Config.ARTIFACT_SUFFIX == '_encrypted.zip'
        assert Config.KEEP_ARTIFACT is True

    def test_env_bool(self, monkeypatch):
        """Test boolean environment parsing."""
        monkeypatch.setenv('KEEP_ARTIFACT', 'no')
        assert _env_bool('KEEP_ARTIFACT', True) is False

        monkeypatch.setenv('KEEP_ARTIFACT', 'Yes')
        assert _env_bool('KEEP_ARTIFACT', False) is True

        monkeypatch.delenv('KEEP_ARTIFACT')
        assert _env_bool('KEEP_ARTIFACT', True) is True

    def test_testing_uses_local_storage(self):
        """Test the testing config never points at a cloud provider."""
        assert TestingConfig.STORAGE_PROVIDER == 'local'
        assert TestingConfig.AES_IV is None


class TestStorageSettings:
    """Test provider settings extraction."""

    def test_azure(self, test_config):
        """Test azure settings carry the connection string."""
        test_config.AZURE_STORAGE_CONNECTION_STRING = 'conn'

        assert storage_settings(test_config, 'azure') == {'connection_string': 'conn'}

    def test_s3(self, test_config):
        """Test s3 settings carry credentials and region."""
        test_config.AWS_ACCESS_KEY_ID = 'id'
        test_config.AWS_SECRET_ACCESS_KEY = 'secret'
        test_config.AWS_REGION = 'eu-central-1'

        assert storage_settings(test_config, 's3') == {
            'access_key': 'id',
            'secret_key': 'secret',
            'region': 'eu-central-1'
        }

    def test_local_uses_config_provider(self, test_config, storage_dir):
        """Test the provider defaults to STORAGE_PROVIDER."""
        assert storage_settings(test_config) == {'base_path': str(storage_dir)}

    def test_unknown_provider(self, test_config):
        """Test an unknown provider yields no settings."""
        assert storage_settings(test_config, 'ftp') == {}


class TestConfigureLogging:
    """Test logging setup."""

    def setup_method(self):
        root = logging.getLogger()
        self._handlers = root.handlers[:]
        self._level = root.level

    def teardown_method(self):
        root = logging.getLogger()
        for handler in root.handlers[:]:
            if handler not in self._handlers:
                handler.close()
        root.handlers = self._handlers
        root.setLevel(self._level)

    def test_creates_log_file(self, test_config, tmp_path):
        """Test a rotating log file is created in LOG_DIR."""
        configure_logging(test_config)
        logging.getLogger('blobvault.test').info("hello")

        assert (tmp_path / 'logs' / 'blobvault.log').exists()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_level_falls_back(self, test_config):
        """Test an unknown LOG_LEVEL falls back to INFO."""
        test_config.LOG_LEVEL = 'chatty'

        configure_logging(test_config)

        assert logging.getLogger().level == logging.INFO

    def test_sdk_loggers_are_quieted(self, test_config):
        """Test SDK request logging is raised to WARNING."""
        configure_logging(test_config)

        assert logging.getLogger('azure').level == logging.WARNING
        assert logging.getLogger('botocore').level == logging.WARNING
