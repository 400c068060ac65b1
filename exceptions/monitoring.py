"""
Monitoring Exception Classes for Service Check

Probe failures never leave a checker: they are collapsed into a failed
CheckResult. Publish failures never leave the publisher: they are logged
and the message is dropped.

Usual ``details`` keys: ``target`` (URL, host:port or host name),
``timeout``, ``record_type``, ``status_code`` and ``topic``.
"""

from __future__ import annotations

from exceptions.base import ServiceCheckException


class MonitoringException(ServiceCheckException):
    """Parent class for probe and publish errors."""

    default_error_code = 4000


# ── Probes ────────────────────────────────────────────────────────


class ProbeError(MonitoringException):
    """A connectivity probe did not succeed."""

    default_error_code = 4100


class ProbeTimeoutError(ProbeError):
    """The probe did not complete within its timeout."""

    default_error_code = 4101


class ProbeConnectionError(ProbeError):
    """Connection refused, reset, unreachable, TLS failure and the like."""

    default_error_code = 4102


class DNSResolutionError(ProbeError):
    """The resolver returned an error for the queried name."""

    default_error_code = 4103


class HTTPStatusError(ProbeError):
    """The server answered with a status code of 400 or above."""

    default_error_code = 4104


# ── Publishing ────────────────────────────────────────────────────


class PublishError(MonitoringException):
    """A status message could not be handed to the broker."""

    default_error_code = 4200


class BrokerConnectionError(PublishError):
    """There is no usable connection to the broker."""

    default_error_code = 4201
