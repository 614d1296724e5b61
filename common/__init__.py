"""
Common Utilities

Shared modules used across all services:
- config.py - Configuration dataclasses and loader
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- models.py - Data point definitions and wire shapes
- state.py - Heartbeat state shared between tasks
- topics.py - Topic catalogs and FQN maps
"""

from .config import AppConfig, WebhookConfig, load_config, validate_config
from .exceptions import (
    EdgeClientError,
    ConfigError,
    DataPointError,
    SetupError,
    SampleError,
)
from .logging_setup import LoggingContext, TRACE
from .state import HeartbeatState, HeartbeatSnapshot

__all__ = [
    # Config
    "AppConfig",
    "WebhookConfig",
    "load_config",
    "validate_config",
    # Exceptions
    "EdgeClientError",
    "ConfigError",
    "DataPointError",
    "SetupError",
    "SampleError",
    # Logging
    "LoggingContext",
    "TRACE",
    # State
    "HeartbeatState",
    "HeartbeatSnapshot",
]
