"""
Constants Module for Service Check

Contains the protocol table, default values, and static configuration
used throughout the application.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Final, Optional


class Protocol(str, Enum):
    """
    Check Type Enumeration

    The kinds of probe a service descriptor can ask for.
    """

    DNS = "dns"
    HTTP = "http"
    HTTPS = "https"
    TCP = "tcp"

    @classmethod
    def resolve(cls, value: Optional[str]) -> Optional["Protocol"]:
        """
        Map a configured protocol string onto a check type.

        ``dns`` and ``tcp`` match anywhere in the string (so ``"dns-a"`` or
        ``"tcp4"`` still work), ``http`` and ``https`` must match exactly.
        Returns None when nothing matches.
        """
        if value is None:
            return None
        text = str(value)
        if "dns" in text:
            return cls.DNS
        if text == "http":
            return cls.HTTP
        if text == "https":
            return cls.HTTPS
        if "tcp" in text:
            return cls.TCP
        return None

    @property
    def label(self) -> str:
        return self.value.upper()


class BrokerScheme(str, Enum):
    """URL schemes accepted for the MQTT broker connection."""

    MQTT = "mqtt"
    MQTTS = "mqtts"
    TCP = "tcp"
    SSL = "ssl"
    WS = "ws"
    WSS = "wss"

    @property
    def uses_tls(self) -> bool:
        return self in (BrokerScheme.MQTTS, BrokerScheme.SSL, BrokerScheme.WSS)

    @property
    def uses_websockets(self) -> bool:
        return self in (BrokerScheme.WS, BrokerScheme.WSS)


# Ports used when a service descriptor leaves ``port`` out. TCP has none.
DEFAULT_PORTS: Final[Dict[Protocol, int]] = {
    Protocol.DNS: 53,
    Protocol.HTTP: 80,
    Protocol.HTTPS: 443,
}

BROKER_DEFAULT_PORTS: Final[Dict[BrokerScheme, int]] = {
    BrokerScheme.MQTT: 1883,
    BrokerScheme.TCP: 1883,
    BrokerScheme.MQTTS: 8883,
    BrokerScheme.SSL: 8883,
    BrokerScheme.WS: 80,
    BrokerScheme.WSS: 443,
}

DEFAULT_PATH: Final[str] = "/"
DEFAULT_INTERVAL: Final[int] = 300  # seconds

DEFAULT_SUCCESS_PAYLOAD: Final[str] = "ON"
DEFAULT_FAILURE_PAYLOAD: Final[str] = "OFF"

# Hard connect timeout for raw TCP probes.
TCP_CONNECT_TIMEOUT: Final[float] = 2.5

DNS_RECORD_TYPE: Final[str] = "A"

# Home Assistant binary_sensor device class for "is it running".
DISCOVERY_DEVICE_CLASS: Final[str] = "running"

DEFAULT_CONFIG_FILE: Final[str] = "config.json"
DEFAULT_CONFIG_RESOURCE: Final[str] = "config-default.json"

USER_AGENT: Final[str] = "ServiceCheck/1.0"
