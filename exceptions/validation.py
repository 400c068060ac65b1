"""
Validation Exception Classes for Service Check

Raised while turning the JSON configuration document into service
descriptors that can be scheduled.  None of these stop the process: the
loader falls back to the bundled default and the scheduler skips the
offending service.
"""

from __future__ import annotations

from typing import Any, List, Optional
from exceptions.base import ServiceCheckException


class ValidationException(ServiceCheckException):
    """Parent class for configuration and service descriptor problems."""

    default_error_code = 3000


class InvalidConfigError(ValidationException):
    """
    Invalid Configuration Document

    The file is not JSON, or it is JSON that does not describe a usable
    configuration.  ``details["errors"]`` lists one ``location: problem``
    line per pydantic error.
    """

    default_error_code = 3001

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        **details: Any
    ) -> None:
        super().__init__(message, errors=errors or None, **details)

    @property
    def errors(self) -> List[str]:
        return self.details.get("errors", [])


class InvalidServiceError(ValidationException):
    """
    Invalid Service Descriptor

    A service entry that loaded fine but cannot be scheduled.
    ``details["reason"]`` is ``unknown_protocol`` or ``missing_port``.
    """

    default_error_code = 3002
