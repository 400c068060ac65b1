"""
Exceptions Package for Service Check

Provides the exception hierarchy used for error handling
throughout the application.
"""

from exceptions.base import (
    ServiceCheckException,
    ConfigurationError,
    InitializationError
)

from exceptions.validation import (
    ValidationException,
    InvalidConfigError,
    InvalidServiceError
)

from exceptions.monitoring import (
    MonitoringException,
    ProbeError,
    ProbeTimeoutError,
    ProbeConnectionError,
    DNSResolutionError,
    HTTPStatusError,
    PublishError,
    BrokerConnectionError
)

__all__ = [
    # Base exceptions
    "ServiceCheckException",
    "ConfigurationError",
    "InitializationError",

    # Validation exceptions
    "ValidationException",
    "InvalidConfigError",
    "InvalidServiceError",

    # Monitoring exceptions
    "MonitoringException",
    "ProbeError",
    "ProbeTimeoutError",
    "ProbeConnectionError",
    "DNSResolutionError",
    "HTTPStatusError",
    "PublishError",
    "BrokerConnectionError"
]
