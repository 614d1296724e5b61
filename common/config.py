"""
Configuration Dataclasses

Type-safe configuration for the edge client. Resolved once at startup
from defaults, an optional YAML file, and SDK2_* environment variables.
The core never re-reads it.
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlsplit

import yaml

from .exceptions import ConfigError

DEFAULT_BASE_URL = "http://hcc2RestServer_0:7071"
DEFAULT_URI_PREFIX = "/api/v1"
DEFAULT_APP_NAME = "courseNetApp"

TRUTHY_VALUES = {"true", "1", "yes"}
FALSY_VALUES = {"false", "0", "no"}


@dataclass
class WebhookConfig:
    """Local webhook listener settings"""
    host: str = "0.0.0.0"
    port: int = 8100
    protocol: str = "http"
    suffix: str = "/webhook/v1/"
    test_command: str = "test"
    simple_message_command: str = "simple_message"
    set_of_messages_command: str = "set_of_messages"
    advanced_messages_command: str = "advanced_messages"
    include_optional: bool = False
    shutdown_timeout_seconds: float = 5.0

    def path(self, command: str) -> str:
        return f"{self.suffix}{command}"


@dataclass
class AppConfig:
    """Edge client configuration"""
    base_url: str = DEFAULT_BASE_URL
    uri_prefix: str = DEFAULT_URI_PREFIX
    app_name: str = DEFAULT_APP_NAME

    # Timing
    heartbeat_period_seconds: int = 10
    steady_heartbeat_period_seconds: int = 30
    retry_period_seconds: int = 5
    max_retries: int = 24  # 2 minutes with 5s retries
    provision_max_retries: int = 0  # 0 = wait indefinitely
    core_settle_seconds: float = 5.0
    request_timeout_seconds: float = 10.0

    # Webhooks
    webhook_enabled: bool = False
    callback_url: str | None = None
    webhook: WebhookConfig = field(default_factory=WebhookConfig)

    # Logging
    log_level: str = "info"
    log_format: str = "json"

    @property
    def webhook_url(self) -> str:
        """Callback address handed to the server on subscription"""
        if self.callback_url:
            return self.callback_url
        cfg = self.webhook
        return (
            f"http://{self.app_name.lower()}:{cfg.port}"
            f"{cfg.path(cfg.simple_message_command)}"
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["webhook_url"] = self.webhook_url
        return data


def split_api_url(api_url: str) -> tuple[str, str | None]:
    """
    Split an API URL into base address and path prefix.

    "http://host:7071/api/v1" -> ("http://host:7071", "/api/v1")
    "http://host:7071"        -> ("http://host:7071", None)
    """
    parts = urlsplit(api_url)
    if not parts.scheme or not parts.netloc:
        raise ConfigError(f"Invalid API URL: {api_url}")

    base = f"{parts.scheme}://{parts.netloc}"
    path = parts.path.rstrip("/")
    return base, (path or None)


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _coerce(key: str, value: Any, current: Any) -> Any:
    """
    Convert a YAML value to the type of the field it replaces.

    Raises:
        ConfigError: If the value cannot be converted
    """
    try:
        if isinstance(current, bool):
            if isinstance(value, bool):
                return value
            if isinstance(value, str) and value.strip().lower() in TRUTHY_VALUES | FALSY_VALUES:
                return value.strip().lower() in TRUTHY_VALUES
            raise ValueError(f"expected a boolean, got {value!r}")
        if isinstance(current, int):
            if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
                raise ValueError(f"expected an integer, got {value!r}")
            return int(value)
        if isinstance(current, float):
            if isinstance(value, bool):
                raise ValueError(f"expected a number, got {value!r}")
            return float(value)
        # str or optional str
        if value is None:
            return None if current is None else current
        if isinstance(value, (dict, list)):
            raise ValueError(f"expected a string, got {type(value).__name__}")
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {e}")


def _apply_file_values(config: AppConfig, data: Mapping[str, Any]) -> None:
    """Copy known keys from a YAML mapping onto the config"""
    webhook_data = data.get("webhook") or {}
    if not isinstance(webhook_data, dict):
        raise ConfigError("Expected a mapping for webhook")

    for key, value in data.items():
        if key == "webhook" or not hasattr(config, key) or key == "webhook_url":
            continue
        setattr(config, key, _coerce(key, value, getattr(config, key)))

    for key, value in webhook_data.items():
        if hasattr(config.webhook, key) and key != "path":
            current = getattr(config.webhook, key)
            setattr(config.webhook, key, _coerce(f"webhook.{key}", value, current))


def _apply_env_overrides(config: AppConfig, env: Mapping[str, str]) -> None:
    """Apply SDK2_* environment variable overrides"""
    api_url = env.get("SDK2_API_URL")
    if api_url:
        base, prefix = split_api_url(api_url)
        config.base_url = base
        if prefix:
            config.uri_prefix = prefix
        elif env.get("SDK2_URI_PREFIX"):
            config.uri_prefix = env["SDK2_URI_PREFIX"]
    elif env.get("SDK2_URI_PREFIX"):
        config.uri_prefix = env["SDK2_URI_PREFIX"]

    if env.get("SDK2_APP_NAME"):
        config.app_name = env["SDK2_APP_NAME"]

    heartbeat_period = _parse_int(env.get("SDK2_HEARTBEAT_PERIOD"))
    if heartbeat_period is not None:
        config.heartbeat_period_seconds = heartbeat_period

    retry_period = _parse_int(env.get("SDK2_RETRY_PERIOD"))
    if retry_period is not None:
        config.retry_period_seconds = retry_period

    max_retries = _parse_int(env.get("SDK2_MAX_RETRIES"))
    if max_retries is not None:
        config.max_retries = max_retries

    callback = env.get("SDK2_CALLBACK_URL")
    if callback:
        config.callback_url = f"{callback.rstrip('/')}/{config.webhook.simple_message_command}"

    use_webhooks = env.get("SDK2_USE_WEBHOOKS")
    if use_webhooks:
        config.webhook_enabled = use_webhooks.strip().lower() in TRUTHY_VALUES

    if env.get("LOG_LEVEL"):
        config.log_level = env["LOG_LEVEL"]
    if env.get("LOG_FORMAT"):
        config.log_format = env["LOG_FORMAT"].lower()


def load_config(
    config_path: str | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """
    Build the configuration.

    Args:
        config_path: Optional YAML file; a missing file is ignored
        env: Environment mapping (defaults to os.environ)

    Returns:
        Resolved AppConfig

    Raises:
        ConfigError: If the YAML file cannot be parsed, holds a value of the
            wrong type, or SDK2_API_URL is malformed
    """
    config = AppConfig()

    if config_path:
        path = Path(config_path)
        if path.exists():
            try:
                with open(path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Error parsing {config_path}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"Expected a mapping in {config_path}")
            _apply_file_values(config, data)

    _apply_env_overrides(config, os.environ if env is None else env)
    return config


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate the configuration.

    Returns:
        List of error messages (empty when valid)
    """
    errors = []

    if not config.app_name:
        errors.append("Missing app_name")

    try:
        split_api_url(config.base_url)
    except ConfigError:
        errors.append(f"Invalid base_url: {config.base_url}")

    if config.heartbeat_period_seconds <= 0:
        errors.append("heartbeat_period_seconds must be positive")
    if config.steady_heartbeat_period_seconds <= 0:
        errors.append("steady_heartbeat_period_seconds must be positive")
    if config.retry_period_seconds < 0:
        errors.append("retry_period_seconds must not be negative")
    if config.max_retries < 1:
        errors.append("max_retries must be at least 1")
    if config.provision_max_retries < 0:
        errors.append("provision_max_retries must not be negative")
    if not 0 < config.webhook.port < 65536:
        errors.append(f"Invalid webhook port: {config.webhook.port}")

    return errors
