"""
Settings Module for Service Check

Configuration management using Pydantic Settings for the process-level
knobs (timeouts, logging, queue sizes) and plain Pydantic models for the
JSON service configuration document.

The JSON document is loaded once at startup (see ``config.loader``) into an
immutable ``ServiceCheckConfig`` which is passed explicitly to every
component that needs it.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional
from enum import Enum
from urllib.parse import urlsplit

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.constants import (
    BROKER_DEFAULT_PORTS,
    DEFAULT_CONFIG_FILE,
    DEFAULT_FAILURE_PAYLOAD,
    DEFAULT_INTERVAL,
    DEFAULT_PATH,
    DEFAULT_PORTS,
    DEFAULT_SUCCESS_PAYLOAD,
    TCP_CONNECT_TIMEOUT,
    USER_AGENT,
    BrokerScheme,
    Protocol,
)


class LogLevel(str, Enum):
    """Logging level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ============================================================================
# PROCESS SETTINGS (environment / .env)
# ============================================================================

class Settings(BaseSettings):
    """
    Runtime Settings

    Read from ``SERVICECHECK_*`` environment variables or a ``.env`` file.
    Nothing here describes *what* to check; that lives in the JSON config.
    """

    model_config = SettingsConfigDict(
        env_prefix="SERVICECHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
        frozen=True,
    )

    config_file: Path = Field(
        default=Path(DEFAULT_CONFIG_FILE),
        description="Path to the JSON service configuration"
    )

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Log level used when -d is not given"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional log file; console-only when unset"
    )
    log_colorize: bool = Field(
        default=True,
        description="Colorize console output"
    )

    # Probes
    http_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Timeout in seconds for HTTP/HTTPS checks"
    )
    dns_timeout: float = Field(
        default=5.0,
        gt=0,
        le=300,
        description="Resolver lifetime in seconds for DNS checks"
    )
    tcp_timeout: float = Field(
        default=TCP_CONNECT_TIMEOUT,
        gt=0,
        le=300,
        description="Connect timeout in seconds for TCP checks"
    )
    user_agent: str = Field(
        default=USER_AGENT,
        min_length=1,
        description="User-Agent header sent by HTTP checks"
    )

    # Publishing
    publish_queue_size: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Maximum number of status messages waiting to be sent"
    )
    publish_timeout: float = Field(
        default=5.0,
        gt=0,
        le=120,
        description="Seconds to wait for a single publish to leave the client"
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Seconds to wait for the initial broker connection"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# ============================================================================
# JSON CONFIGURATION DOCUMENT
# ============================================================================

class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class PayloadConfig(_FrozenModel):
    """Strings published for the two status values."""

    success: str = DEFAULT_SUCCESS_PAYLOAD
    failure: str = DEFAULT_FAILURE_PAYLOAD

    def for_status(self, success: bool) -> str:
        return self.success if success else self.failure


class BrokerConfig(_FrozenModel):
    """
    MQTT Broker Connection

    ``topicRoot`` is also accepted under its older name ``statePrefix``.
    """

    url: str = Field(min_length=1)
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    topic_root: str = Field(
        min_length=1,
        validation_alias=AliasChoices("topicRoot", "statePrefix", "topic_root"),
    )
    discovery_prefix: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("discoveryPrefix", "discovery_prefix"),
    )
    client_id: str = Field(
        default="",
        validation_alias=AliasChoices("clientId", "client_id"),
    )
    retain: bool = False
    qos: int = Field(default=0, ge=0, le=2)
    keepalive: int = Field(default=60, ge=5, le=3600)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        scheme = urlsplit(v).scheme.lower()
        if scheme not in {s.value for s in BrokerScheme}:
            raise ValueError(
                f"unsupported broker URL scheme {scheme!r} "
                f"(expected one of: {', '.join(s.value for s in BrokerScheme)})"
            )
        if not urlsplit(v).hostname:
            raise ValueError("broker URL has no host")
        return v

    @field_validator("topic_root")
    @classmethod
    def strip_topic_root(cls, v: str) -> str:
        stripped = v.strip("/")
        if not stripped:
            raise ValueError("topicRoot must not be empty")
        return stripped

    @field_validator("discovery_prefix")
    @classmethod
    def strip_discovery_prefix(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip("/") or None

    @property
    def scheme(self) -> BrokerScheme:
        return BrokerScheme(urlsplit(self.url).scheme.lower())

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def port(self) -> int:
        return urlsplit(self.url).port or BROKER_DEFAULT_PORTS[self.scheme]

    @property
    def websocket_path(self) -> str:
        return urlsplit(self.url).path or "/mqtt"

    def state_topic(self, service_name: str) -> str:
        return f"{self.topic_root}/{service_name}"

    def discovery_topic(self, service_name: str) -> Optional[str]:
        if not self.discovery_prefix:
            return None
        return f"{self.discovery_prefix}/{self.topic_root}/{service_name}/config"


class ServiceDescriptor(_FrozenModel):
    """
    One service to probe.

    Defaults for ``port``, ``path`` and ``interval`` are filled in when the
    model is built, so consumers never see missing values for protocols
    that have a default.
    """

    name: str = Field(min_length=1)
    host: str = Field(min_length=1)
    protocol: Optional[str] = None
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    path: str = DEFAULT_PATH
    interval: int = Field(default=DEFAULT_INTERVAL, ge=0)

    @field_validator("path", mode="before")
    @classmethod
    def default_path(cls, v):
        if v is None or v == "":
            return DEFAULT_PATH
        if not isinstance(v, str):
            return v  # rejected by the str field
        return v if v.startswith("/") else f"/{v}"

    @field_validator("protocol", mode="before")
    @classmethod
    def protocol_as_text(cls, v):
        # An odd protocol only disables its own entry, see Protocol.resolve
        return None if v is None else str(v)

    @field_validator("interval", mode="before")
    @classmethod
    def default_interval(cls, v: Optional[int]) -> int:
        return v or DEFAULT_INTERVAL

    @model_validator(mode="before")
    @classmethod
    def apply_port_default(cls, data):
        if isinstance(data, dict) and not data.get("port"):
            check_type = Protocol.resolve(data.get("protocol"))
            data = {**data, "port": DEFAULT_PORTS.get(check_type)}
        return data

    @property
    def check_type(self) -> Optional[Protocol]:
        return Protocol.resolve(self.protocol)

    @property
    def url(self) -> Optional[str]:
        """The URL fetched by HTTP/HTTPS checks, None for other types."""
        check_type = self.check_type
        if check_type not in (Protocol.HTTP, Protocol.HTTPS):
            return None
        host = self.host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{check_type.value}://{host}:{self.port}{self.path}"

    def describe(self) -> str:
        """Short target description used in log lines."""
        check_type = self.check_type
        if check_type in (Protocol.HTTP, Protocol.HTTPS):
            return f"{self.host}:{self.port}{self.path}"
        if check_type == Protocol.TCP:
            return f"{self.host}:{self.port}"
        return self.host


class ServiceCheckConfig(_FrozenModel):
    """
    The whole JSON document.

    ``statusMsg`` and ``payload`` are both accepted for the payload override.
    """

    mqtt_connect: BrokerConfig = Field(
        validation_alias=AliasChoices("mqttConnect", "mqtt_connect", "broker"),
    )
    payload: PayloadConfig = Field(
        default_factory=PayloadConfig,
        validation_alias=AliasChoices("payload", "statusMsg"),
    )
    services: List[ServiceDescriptor] = Field(default_factory=list)

    @field_validator("payload", mode="before")
    @classmethod
    def empty_payload_is_default(cls, v):
        return v or {}

    @model_validator(mode="after")
    def validate_unique_names(self) -> "ServiceCheckConfig":
        seen = set()
        for service in self.services:
            if service.name in seen:
                raise ValueError(f"duplicate service name {service.name!r}")
            seen.add(service.name)
        return self

    def to_dict(self) -> dict:
        """Dump for debug logging. SecretStr keeps the password masked."""
        return self.model_dump(mode="json")
