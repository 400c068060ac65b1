"""
============================================================================
SERVICE CHECK - MONITORING ENGINE
============================================================================
Protocol checkers and the engine that runs one probe-then-publish cycle
for a service.

Architecture
------------
MonitoringEngine          ← dispatches by protocol, publishes the outcome
├── run_check()           ← one complete cycle: probe → publish
├── check()               ← picks the checker for service.check_type
│   ├── HTTPChecker       ← single GET via httpx (HTTP and HTTPS)
│   ├── TCPChecker        ← raw asyncio connect, closed immediately
│   └── DNSChecker        ← dnspython async A-record lookup
└── StatusPublisher       ← see monitoring.publisher

Every checker turns any failure into ``CheckResult(success=False)``; the
reason is only visible in debug logs.  Checkers keep no state between
invocations.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import time
from typing import Optional, Dict, Any, List

import httpx
import dns.asyncresolver
import dns.exception
import dns.resolver

from config.constants import DNS_RECORD_TYPE, Protocol
from config.settings import ServiceDescriptor, Settings, get_settings
from exceptions import (
    DNSResolutionError,
    HTTPStatusError,
    InvalidServiceError,
    ProbeConnectionError,
    ProbeError,
    ProbeTimeoutError,
)
from utils.logger import get_logger


logger = get_logger("MonitoringEngine")


# ============================================================================
# CHECK RESULT
# ============================================================================

class CheckResult:
    """
    Value object carrying the outcome of a single check back to the engine.
    Only ``success`` is published; the rest is for logging.
    """
    __slots__ = (
        "success", "status_code", "response_time",
        "error_message", "error_type", "ip_address",
    )

    def __init__(
        self,
        success: bool = False,
        status_code: Optional[int] = None,
        response_time: Optional[float] = None,
        error_message: Optional[str] = None,
        error_type: Optional[str] = None,
        ip_address: Optional[str] = None,
    ):
        self.success = success
        self.status_code = status_code
        self.response_time = response_time
        self.error_message = error_message
        self.error_type = error_type
        self.ip_address = ip_address

    @classmethod
    def failed(cls, error: ProbeError, elapsed: float) -> "CheckResult":
        return cls(
            success=False,
            status_code=error.details.get("status_code"),
            response_time=round(elapsed, 4),
            error_message=error.message,
            error_type=type(error).__name__,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {slot: getattr(self, slot) for slot in self.__slots__}

    def __repr__(self) -> str:
        return f"CheckResult({', '.join(f'{k}={v!r}' for k, v in self.to_dict().items())})"


# ============================================================================
# HTTP CHECKER
# ============================================================================

class HTTPChecker:
    """
    Performs HTTP / HTTPS checks using the httpx async client.

    • One GET, no retry
    • Redirects are not followed: a 3xx already counts as up
    • TLS certificates are verified, a handshake failure counts as down
    • The body is read and thrown away
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    async def _get(self, url: str) -> int:
        """
        Issue the GET and return the status code.

        Raises
        ------
        HTTPStatusError       status code >= 400
        ProbeTimeoutError     connect/read/write/pool timeout
        ProbeConnectionError  any other transport problem
        """
        timeout = self.settings.http_timeout
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=False,
                verify=True,
                headers={"User-Agent": self.settings.user_agent},
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    status_code = response.status_code
                    await self._discard_body(url, response)
        except httpx.TimeoutException as e:
            raise ProbeTimeoutError(
                f"{url} timed out after {timeout}s",
                timeout=timeout,
                target=url,
                cause=e,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProbeConnectionError(
                f"{url} failed: {type(e).__name__}: {str(e)[:200]}",
                target=url,
                cause=e,
            ) from e

        if status_code >= 400:
            raise HTTPStatusError(
                f"{url} answered with status {status_code}",
                status_code=status_code,
                target=url,
            )
        return status_code

    @staticmethod
    async def _discard_body(url: str, response: httpx.Response) -> None:
        # The status line already decided the outcome.  aiter_bytes also
        # covers transports that have read the body before handing it over.
        try:
            async for _ in response.aiter_bytes():
                pass
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.debug(f"[HTTP] {url} body read aborted: {e}")

    async def check(self, service: ServiceDescriptor) -> CheckResult:
        """
        Execute an HTTP(S) check against *service*.
        """
        url = service.url
        label = service.check_type.label
        start_time = time.perf_counter()

        try:
            status_code = await self._get(url)
        except ProbeError as e:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"[{label}] {label} check for {url} failed: {e.message}")
            return CheckResult.failed(e, elapsed)

        elapsed = time.perf_counter() - start_time
        logger.debug(
            f"[{label}] {label} check for {url} returned: {status_code} "
            f"in {elapsed:.3f}s"
        )
        return CheckResult(
            success=True,
            status_code=status_code,
            response_time=round(elapsed, 4),
        )


# ============================================================================
# TCP CHECKER
# ============================================================================

class TCPChecker:
    """
    Performs a raw TCP connect check.

    Use-case: verify that a port is reachable even when no HTTP endpoint
    is exposed (SSH, MQTT, databases, game servers).  The socket is closed
    as soon as the connection is established.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    async def _connect(self, host: str, port: int) -> Optional[str]:
        """
        Open and immediately close a connection.  Returns the peer address.
        """
        timeout = self.settings.tcp_timeout
        target = f"{host}:{port}"
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ProbeTimeoutError(
                f"TCP connection to {target} timed out",
                timeout=timeout,
                target=target,
                cause=e,
            ) from e
        except OSError as e:
            raise ProbeConnectionError(
                f"TCP connection to {target} could not connect: {e.strerror or e}",
                target=target,
                cause=e,
            ) from e

        peer = writer.get_extra_info("peername")
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass  # already connected, that is all we wanted

        return peer[0] if peer else None

    async def check(self, service: ServiceDescriptor) -> CheckResult:
        """
        Connect to host:port within the TCP timeout.
        """
        host, port = service.host, service.port
        start_time = time.perf_counter()

        try:
            ip_address = await self._connect(host, port)
        except ProbeError as e:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"[TCP] TCP check for {host}:{port} failed: {e.message}")
            return CheckResult.failed(e, elapsed)

        elapsed = time.perf_counter() - start_time
        logger.debug(
            f"[TCP] TCP check for {host}:{port} connected successfully "
            f"in {elapsed:.3f}s"
        )
        return CheckResult(
            success=True,
            response_time=round(elapsed, 4),
            ip_address=ip_address,
        )


# ============================================================================
# DNS CHECKER
# ============================================================================

class DNSChecker:
    """
    Resolves a host name using the local resolver configuration.

    Success means the resolver answered without error; how many addresses
    came back does not matter.
    """

    def __init__(self, settings: Settings, resolver_factory=None):
        self.settings = settings
        self._resolver_factory = resolver_factory or dns.asyncresolver.Resolver

    async def _resolve(self, host: str) -> List[str]:
        try:
            resolver = self._resolver_factory()
            resolver.lifetime = self.settings.dns_timeout
            answer = await resolver.resolve(host, DNS_RECORD_TYPE)
        except dns.resolver.NXDOMAIN as e:
            raise DNSResolutionError(
                f"Domain {host} does not exist (NXDOMAIN)",
                record_type=DNS_RECORD_TYPE,
                target=host,
                cause=e,
            ) from e
        except dns.resolver.NoAnswer as e:
            raise DNSResolutionError(
                f"No {DNS_RECORD_TYPE} record for {host}",
                record_type=DNS_RECORD_TYPE,
                target=host,
                cause=e,
            ) from e
        except dns.exception.Timeout as e:
            raise ProbeTimeoutError(
                f"DNS resolution for {host} timed out",
                timeout=self.settings.dns_timeout,
                target=host,
                cause=e,
            ) from e
        except dns.exception.DNSException as e:
            raise DNSResolutionError(
                f"DNS resolution for {host} failed: {type(e).__name__}: {str(e)[:200]}",
                record_type=DNS_RECORD_TYPE,
                target=host,
                cause=e,
            ) from e

        return [str(rdata) for rdata in answer]

    async def check(self, service: ServiceDescriptor) -> CheckResult:
        """
        Resolve the host and return timing + result.
        """
        host = service.host
        start_time = time.perf_counter()

        try:
            addresses = await self._resolve(host)
        except ProbeError as e:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"[DNS] DNS check for '{host}' failed: {e.message}")
            return CheckResult.failed(e, elapsed)

        elapsed = time.perf_counter() - start_time
        logger.debug(
            f"[DNS] DNS check for '{host}' returned: {', '.join(addresses) or '-'} "
            f"in {elapsed:.3f}s"
        )
        return CheckResult(
            success=True,
            response_time=round(elapsed, 4),
            ip_address=addresses[0] if addresses else None,
        )


# ============================================================================
# MONITORING ENGINE
# ============================================================================

class MonitoringEngine:
    """
    Runs probe-then-publish cycles.

    The engine itself holds no per-service state; the scheduler calls
    ``run_check`` once per timer firing and every call publishes exactly
    one status message.

    Parameters
    ----------
    publisher : StatusPublisher
        Receives one ``publish_status`` call per cycle.
    settings : Settings | None
        Probe timeouts; defaults to ``get_settings()``.
    checkers : dict | None
        Override the checker used per protocol (tests).
    """

    def __init__(
        self,
        publisher: Any,
        settings: Optional[Settings] = None,
        checkers: Optional[Dict[Protocol, Any]] = None,
    ):
        self.settings = settings or get_settings()
        self.publisher = publisher

        if checkers is None:
            http_checker = HTTPChecker(self.settings)
            checkers = {
                Protocol.HTTP: http_checker,
                Protocol.HTTPS: http_checker,
                Protocol.TCP: TCPChecker(self.settings),
                Protocol.DNS: DNSChecker(self.settings),
            }
        self._checkers = checkers

        self._in_flight = 0
        self._checks_performed = 0

    @property
    def in_flight_checks(self) -> int:
        return self._in_flight

    @property
    def checks_performed(self) -> int:
        return self._checks_performed

    def topic_for(self, service: ServiceDescriptor) -> str:
        return self.publisher.broker.state_topic(service.name)

    async def check(self, service: ServiceDescriptor) -> CheckResult:
        """
        Route to the correct checker based on the service's check type.

        Raises
        ------
        InvalidServiceError
            No checker handles this protocol.
        """
        checker = self._checkers.get(service.check_type)
        if checker is None:
            raise InvalidServiceError(
                f"No checker for protocol {service.protocol!r}",
                service=service.name,
                reason="unknown_protocol",
            )
        return await checker.check(service)

    async def run_check(self, service: ServiceDescriptor) -> CheckResult:
        """
        One complete cycle: probe *service*, then publish its status.
        """
        self._in_flight += 1
        try:
            try:
                result = await self.check(service)
            except InvalidServiceError:
                raise
            except Exception as e:
                # A checker bug still has to produce this cycle's status.
                logger.exception(
                    f"[Engine] Exception checking {service.name} ({service.describe()})"
                )
                result = CheckResult(
                    success=False,
                    error_message=f"Monitoring engine internal error: {str(e)[:200]}",
                    error_type="EngineError",
                )

            self._checks_performed += 1
            self.publisher.publish_status(service.name, result.success)
            return result
        finally:
            self._in_flight -= 1
