"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import socket
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import paho.mqtt.client as mqtt
import pytest
import pytest_asyncio
from loguru import logger

from config.settings import (
    BrokerConfig, PayloadConfig, ServiceCheckConfig, ServiceDescriptor, Settings
)
from monitoring.publisher import StatusPublisher


# ── Settings / config ─────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    """Short timeouts so failing tests fail fast."""
    return Settings(
        http_timeout=2.0,
        dns_timeout=1.0,
        connect_timeout=1.0,
        publish_timeout=1.0,
        log_colorize=False,
    )


@pytest.fixture
def broker_config() -> BrokerConfig:
    return BrokerConfig.model_validate({
        "url": "mqtt://broker.local:1883",
        "username": "user",
        "password": "secret",
        "topicRoot": "servicecheck",
    })


@pytest.fixture
def payloads() -> PayloadConfig:
    return PayloadConfig()


@pytest.fixture
def make_service():
    """Build a ServiceDescriptor from keyword fields."""
    def _make(**fields: Any) -> ServiceDescriptor:
        data = {"name": "Svc", "host": "127.0.0.1"}
        data.update(fields)
        return ServiceDescriptor.model_validate(data)
    return _make


@pytest.fixture
def make_config():
    """Build a ServiceCheckConfig from service dicts and broker overrides."""
    def _make(services: List[Dict[str, Any]], **broker: Any) -> ServiceCheckConfig:
        mqtt_connect = {"url": "mqtt://broker.local", "topicRoot": "servicecheck"}
        mqtt_connect.update(broker)
        return ServiceCheckConfig.model_validate({
            "mqttConnect": mqtt_connect,
            "services": services,
        })
    return _make


# ── Logging ───────────────────────────────────────────────────────


@pytest.fixture
def log_messages():
    """Collect (level, message) tuples emitted through loguru."""
    messages: List[Tuple[str, str]] = []
    handler_id = logger.add(
        lambda m: messages.append((m.record["level"].name, m.record["message"])),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)


# ── Network helpers ───────────────────────────────────────────────


@pytest.fixture
def closed_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# ── Fake MQTT client ──────────────────────────────────────────────


class FakeMessageInfo:
    def __init__(self, rc: int = mqtt.MQTT_ERR_SUCCESS, published: bool = True):
        self.rc = rc
        self._published = published

    def wait_for_publish(self, timeout: Optional[float] = None) -> None:
        return None

    def is_published(self) -> bool:
        return self._published


class FakeMQTTClient:
    """
    Stands in for paho's Client: connects on loop_start and records
    every publish instead of sending it.
    """

    def __init__(self, connect_ok: bool = True, publish_rc: int = mqtt.MQTT_ERR_SUCCESS):
        self.connect_ok = connect_ok
        self.publish_rc = publish_rc
        self.published: List[Tuple[str, str, int, bool]] = []
        self.connect_args: Optional[Tuple[str, int, int]] = None
        self.loop_started = False
        self.disconnected = False
        self.on_connect = None
        self.on_connect_fail = None
        self.on_disconnect = None

    def connect_async(self, host: str, port: int, keepalive: int = 60) -> None:
        self.connect_args = (host, port, keepalive)

    def loop_start(self) -> None:
        self.loop_started = True
        if self.connect_ok:
            self.on_connect(self, None, {}, SimpleNamespace(is_failure=False), None)
        else:
            self.on_connect_fail(self, None)

    def loop_stop(self) -> None:
        self.loop_started = False

    def disconnect(self) -> None:
        self.disconnected = True

    def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = False):
        if self.publish_rc == mqtt.MQTT_ERR_SUCCESS:
            self.published.append((topic, payload, qos, retain))
        return FakeMessageInfo(rc=self.publish_rc)

    def messages_for(self, topic: str) -> List[str]:
        return [payload for t, payload, _, _ in self.published if t == topic]


@pytest.fixture
def fake_client() -> FakeMQTTClient:
    return FakeMQTTClient()


@pytest.fixture
def fake_client_cls():
    return FakeMQTTClient


@pytest_asyncio.fixture
async def publisher(broker_config, payloads, settings, fake_client):
    pub = StatusPublisher(
        broker_config, payloads, settings, client_factory=lambda: fake_client
    )
    await pub.start()
    yield pub
    await pub.stop()


@pytest.fixture
def wait_until():
    """Poll a predicate until it is true or the timeout elapses."""
    async def _wait(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()
    return _wait


# ── Recording publisher for engine tests ──────────────────────────


class RecordingPublisher:
    """Collects publish_status calls without any queue or broker."""

    def __init__(self, broker: BrokerConfig):
        self.broker = broker
        self.calls: List[Tuple[str, bool]] = []

    def publish_status(self, service_name: str, success: bool) -> bool:
        self.calls.append((service_name, success))
        return True


@pytest.fixture
def recording_publisher(broker_config) -> RecordingPublisher:
    return RecordingPublisher(broker_config)
