"""Tests for configuration management."""

import os
import tempfile

import pytest
import yaml
from unittest.mock import patch

from faucet_agent.config.settings import AgentSettings, RetryConfig, load_settings, substitute_env_vars
from faucet_agent.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env():
    """Keep FAUCET_AGENT_* variables from the host out of the tests."""
    saved = {key: value for key, value in os.environ.items() if key.startswith('FAUCET_AGENT_')}
    for key in saved:
        del os.environ[key]
    yield
    os.environ.update(saved)


def _write_yaml(data) -> str:
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(data, f)
        return f.name


@pytest.mark.unit
class TestAgentSettings:
    """Test AgentSettings defaults and validation."""

    def test_default_settings(self):
        settings = AgentSettings()

        assert settings.event_socket == '/run/faucet/event.sock'
        assert settings.prometheus_remote_write_uri == 'http://localhost:9090/api/v1/write'
        assert settings.log_level == 'info'
        assert settings.log_format == 'text'
        assert settings.skip_empty_writes is False
        assert settings.remote_write.timeout_seconds == 15.0
        assert settings.retry.initial_backoff_seconds == 5.0
        assert settings.retry.max_backoff_seconds == 300.0

    def test_log_level_validation(self):
        for level in ['debug', 'info', 'warn', 'warning', 'error', 'DEBUG']:
            settings = AgentSettings(log_level=level)
            assert settings.log_level == level.lower()

        with pytest.raises(ValueError, match="Log level must be"):
            AgentSettings(log_level='verbose')

    def test_log_format_validation(self):
        assert AgentSettings(log_format='JSON').log_format == 'json'

        with pytest.raises(ValueError, match="Log format must be"):
            AgentSettings(log_format='xml')

    def test_retry_bounds(self):
        with pytest.raises(ValueError, match="max_backoff_seconds"):
            RetryConfig(initial_backoff_seconds=10, max_backoff_seconds=5)

    @patch.dict('os.environ', {
        'FAUCET_AGENT_EVENT_SOCKET': '/tmp/other.sock',
        'FAUCET_AGENT_PROMETHEUS_REMOTE_WRITE_URI': 'https://prom.example.com/api/v1/write',
        'FAUCET_AGENT_LOG_LEVEL': 'warn',
        'FAUCET_AGENT_RETRY__MAX_BACKOFF_SECONDS': '60',
    })
    def test_environment_variables(self):
        settings = AgentSettings()

        assert settings.event_socket == '/tmp/other.sock'
        assert settings.prometheus_remote_write_uri == 'https://prom.example.com/api/v1/write'
        assert settings.log_level == 'warn'
        assert settings.retry.max_backoff_seconds == 60.0


@pytest.mark.unit
class TestConfigLoading:
    """Test configuration loading from files, environment and overrides."""

    def test_load_without_file(self):
        settings = load_settings()
        assert settings.event_socket == '/run/faucet/event.sock'

    def test_load_from_yaml_file(self):
        config_file = _write_yaml({
            'event_socket': '/var/run/faucet.sock',
            'log_format': 'json',
            'external_labels': {'site': 'lab'},
            'retry': {'initial_backoff_seconds': 1, 'max_backoff_seconds': 30},
        })

        settings = load_settings(config_file)

        assert settings.event_socket == '/var/run/faucet.sock'
        assert settings.log_format == 'json'
        assert settings.external_labels == {'site': 'lab'}
        assert settings.retry.max_backoff_seconds == 30.0

    def test_load_nonexistent_file(self):
        with pytest.raises(FileNotFoundError):
            load_settings('nonexistent.yaml')

    @patch.dict('os.environ', {'PROM_HOST': 'prom.internal'})
    def test_env_substitution_in_file(self):
        config_file = _write_yaml({
            'prometheus_remote_write_uri': 'http://${PROM_HOST}:9090/api/v1/write',
            'event_socket': '${FAUCET_SOCKET:-/run/faucet/event.sock}',
        })

        settings = load_settings(config_file)

        assert settings.prometheus_remote_write_uri == 'http://prom.internal:9090/api/v1/write'
        assert settings.event_socket == '/run/faucet/event.sock'

    def test_missing_required_env_var(self):
        with pytest.raises(ConfigurationError, match="NOT_SET_ANYWHERE"):
            substitute_env_vars({'a': ['${NOT_SET_ANYWHERE}']})

    @patch.dict('os.environ', {'FAUCET_AGENT_LOG_LEVEL': 'error', 'FAUCET_AGENT_EVENT_SOCKET': '/env.sock'})
    def test_overrides_take_precedence(self):
        settings = load_settings(overrides={'log_level': 'debug', 'event_socket': None})

        assert settings.log_level == 'debug'
        assert settings.event_socket == '/env.sock'

    def test_invalid_value_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            load_settings(overrides={'log_level': 'loud'})

    def test_non_mapping_file(self):
        config_file = _write_yaml(['a', 'b'])

        with pytest.raises(ConfigurationError):
            load_settings(config_file)

    def test_yaml_syntax_error(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("event_socket: [unterminated\n")

        with pytest.raises(ConfigurationError, match="Failed to read configuration file"):
            load_settings(f.name)

    def test_unreadable_path(self):
        with pytest.raises(ConfigurationError):
            load_settings(tempfile.gettempdir())
