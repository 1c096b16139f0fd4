"""Configuration settings using Pydantic for validation."""

import os
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .. import BIN_NAME, __version__
from ..errors import ConfigurationError
from ..utils.logging import LOG_LEVELS


class RemoteWriteConfig(BaseModel):
    """Remote write client configuration."""
    timeout_seconds: float = Field(default=15.0, gt=0, description="Per-request timeout")
    user_agent: str = Field(default=f"{BIN_NAME}/{__version__}", description="HTTP User-Agent")


class RetryConfig(BaseModel):
    """Event socket reconnect backoff."""
    initial_backoff_seconds: float = Field(default=5.0, ge=0, description="Base reconnect delay")
    max_backoff_seconds: float = Field(default=300.0, gt=0, description="Upper bound on reconnect delay")

    @model_validator(mode='after')
    def check_bounds(self):
        if self.max_backoff_seconds < self.initial_backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= initial_backoff_seconds")
        return self


class AgentSettings(BaseSettings):
    """Main agent settings."""

    model_config = SettingsConfigDict(
        env_prefix="FAUCET_AGENT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(default="faucet-agent", description="Service name used in logs")
    event_socket: str = Field(default="/run/faucet/event.sock", description="Path to faucet event socket")
    prometheus_remote_write_uri: str = Field(
        default="http://localhost:9090/api/v1/write",
        description="Prometheus remote write URI",
    )
    log_level: str = Field(default="info", description="Log level: debug, info, warn, error")
    log_format: str = Field(default="text", description="Log format: text or json")
    skip_empty_writes: bool = Field(default=False, description="Do not send write requests without samples")
    external_labels: Dict[str, str] = Field(default_factory=dict, description="Labels added to every series")

    remote_write: RemoteWriteConfig = Field(default_factory=RemoteWriteConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        if v.lower() not in LOG_LEVELS:
            raise ValueError("Log level must be one of: debug, info, warn, error")
        return v.lower()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ('text', 'json'):
            raise ValueError("Log format must be 'text' or 'json'")
        return v.lower()

    @field_validator('event_socket')
    @classmethod
    def validate_event_socket(cls, v):
        if not v:
            raise ValueError("Event socket path must not be empty")
        return v


def substitute_env_vars(obj: Any) -> Any:
    """
    Recursively substitute environment variables in configuration objects.

    Supports syntax:
    - ${VAR_NAME} - Required variable (raises error if not found)
    - ${VAR_NAME:-default} - Optional variable with default value
    """
    if isinstance(obj, dict):
        return {key: substitute_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        def replace_env_var(match):
            var_expr = match.group(1)

            if ':-' in var_expr:
                var_name, default_value = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default_value)

            var_name = var_expr.strip()
            value = os.getenv(var_name)
            if value is None:
                raise ConfigurationError(f"Required environment variable '{var_name}' is not set")
            return value

        return re.sub(r'\$\{([^}]+)\}', replace_env_var, obj)
    else:
        return obj


def load_settings(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> AgentSettings:
    """
    Load settings from an optional YAML file, environment variables and overrides.

    Precedence, highest first: ``overrides`` (command line), config file,
    ``FAUCET_AGENT_*`` environment variables, defaults.

    Raises:
        FileNotFoundError: If config_file is given but doesn't exist
        ConfigurationError: If the file cannot be read or parsed, or a value fails validation
    """
    config_data: Dict[str, Any] = {}

    if config_file:
        if not os.path.exists(config_file):
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        import yaml

        try:
            with open(config_file, 'r') as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read configuration file {config_file}: {e}") from e

        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"Configuration file {config_file} must contain a mapping")

        config_data = substitute_env_vars(raw_config)

    if overrides:
        config_data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return AgentSettings(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
