"""
Configuration Package for Service Check

This package contains all configuration-related modules including:
- Settings management with environment variable support
- The JSON service configuration models and loader
- Constants and enums used throughout the application
"""

from config.settings import (
    Settings,
    LogLevel,
    BrokerConfig,
    PayloadConfig,
    ServiceDescriptor,
    ServiceCheckConfig,
    get_settings
)

from config.constants import (
    Protocol,
    BrokerScheme,
    DEFAULT_PORTS,
    DEFAULT_PATH,
    DEFAULT_INTERVAL,
    TCP_CONNECT_TIMEOUT
)

from config.loader import (
    load_config,
    load_default_config,
    parse_config,
    read_config_file
)

__all__ = [
    # Settings
    "Settings",
    "LogLevel",
    "BrokerConfig",
    "PayloadConfig",
    "ServiceDescriptor",
    "ServiceCheckConfig",
    "get_settings",

    # Constants
    "Protocol",
    "BrokerScheme",
    "DEFAULT_PORTS",
    "DEFAULT_PATH",
    "DEFAULT_INTERVAL",
    "TCP_CONNECT_TIMEOUT",

    # Loader
    "load_config",
    "load_default_config",
    "parse_config",
    "read_config_file"
]
