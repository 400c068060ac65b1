"""
Base Exception Classes for Service Check

Every error raised by the application derives from ``ServiceCheckException``.
Context (service name, target, topic, ...) travels in ``details`` so log
lines can show it without each subclass formatting it by hand.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceCheckException(Exception):
    """
    Base Exception Class

    Attributes:
        message: Human-readable error message
        error_code: Numeric code, grouped by subsystem (1xxx startup,
            3xxx configuration, 4xxx probes and publishing)
        details: Context given as keyword arguments; ``None`` values are
            left out
        cause: The library exception this error wraps, if any
    """

    default_error_code: int = 1000

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
        **details: Any,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self.default_error_code
        self.cause = cause
        self.details: Dict[str, Any] = {
            key: value for key, value in details.items() if value is not None
        }

    def log_format(self) -> str:
        """
        One-line description for log output.

        Returns:
            ``TypeName[code]: message (key=value, ...) <- cause``
        """
        text = f"{type(self).__name__}[{self.error_code}]: {self.message}"
        if self.details:
            context = ", ".join(f"{key}={value}" for key, value in self.details.items())
            text += f" ({context})"
        if self.cause is not None:
            text += f" <- {type(self.cause).__name__}: {self.cause}"
        return text

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class ConfigurationError(ServiceCheckException):
    """
    Configuration Error

    No usable configuration could be produced: the bundled default is
    missing or invalid.  Fatal at startup.
    """

    default_error_code = 1100


class InitializationError(ServiceCheckException):
    """
    Initialization Error

    A component could not be set up (e.g. the publisher cannot create its
    MQTT client).
    """

    default_error_code = 1200
