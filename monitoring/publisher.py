"""
============================================================================
SERVICE CHECK - STATUS PUBLISHER
============================================================================
Publishes up/down status messages to the MQTT broker.

One persistent paho-mqtt connection is shared by every checker.  Checkers
never touch the client directly: they enqueue a StatusMessage and a single
dispatch task drains the queue, so publishes are serialized and each check
cycle produces at most one message.

Failure policy
--------------
• Broker unreachable  → logged, message dropped (paho keeps reconnecting
                        in the background, later cycles go through)
• Queue full          → logged, message dropped
• No retry and no buffering of failed publishes

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import paho.mqtt.client as mqtt

from config.constants import DISCOVERY_DEVICE_CLASS
from config.settings import (
    BrokerConfig, PayloadConfig, ServiceDescriptor, Settings, get_settings
)
from exceptions import BrokerConnectionError, InitializationError, PublishError
from utils.logger import get_logger


logger = get_logger("Publisher")


# ============================================================================
# STATUS MESSAGE (internal queue item)
# ============================================================================

@dataclass
class StatusMessage:
    """
    One message waiting to be published.
    """
    topic: str
    payload: str
    retain: bool = False
    qos: int = 0
    enqueued_at: float = field(default_factory=time.time)


# ============================================================================
# STATUS PUBLISHER
# ============================================================================

class StatusPublisher:
    """
    Owner of the broker connection and the publish queue.

    Lifecycle
    ---------
    1.  ``await publisher.start()``  — connect and launch the dispatch loop
    2.  ``publisher.publish_status(name, success)`` from any check
    3.  ``await publisher.stop()``   — flush what is queued, disconnect

    Parameters
    ----------
    broker : BrokerConfig
        Where to connect and which topic root to publish under.
    payloads : PayloadConfig
        Strings for the success / failure status.
    settings : Settings | None
        Queue size and timeouts; defaults to ``get_settings()``.
    client_factory : Callable[[], mqtt.Client] | None
        Builds the paho client.  Tests pass a fake here.
    """

    def __init__(
        self,
        broker: BrokerConfig,
        payloads: PayloadConfig,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        self.broker = broker
        self.payloads = payloads
        self.settings = settings or get_settings()
        self._client_factory = client_factory or self._create_client

        self._client: Any = None
        self._queue: Optional[asyncio.Queue] = None
        self._connected = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._discovery: List[Tuple[str, str]] = []

        # --- lifecycle ---
        self._running = False
        self._dispatch_task: Optional[asyncio.Task] = None

        # --- counters ---
        self._published = 0
        self._dropped = 0

    # ------------------------------------------------------------------
    # CLIENT SETUP
    # ------------------------------------------------------------------

    def _create_client(self) -> mqtt.Client:
        """Build a paho client for the configured broker URL."""
        scheme = self.broker.scheme
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.broker.client_id,
            transport="websockets" if scheme.uses_websockets else "tcp",
        )
        if scheme.uses_websockets:
            client.ws_set_options(path=self.broker.websocket_path)
        if scheme.uses_tls:
            client.tls_set()  # system CA bundle
        if self.broker.username:
            password = (
                self.broker.password.get_secret_value()
                if self.broker.password else None
            )
            client.username_pw_set(self.broker.username, password or None)
        return client

    # ------------------------------------------------------------------
    # PUBLIC API
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Connect to the broker and start the dispatch loop."""
        if self._running:
            logger.warning("StatusPublisher is already running")
            return

        self._loop = asyncio.get_running_loop()
        try:
            client = self._client_factory()
            client.on_connect = self._on_connect
            client.on_connect_fail = self._on_connect_fail
            client.on_disconnect = self._on_disconnect
            client.connect_async(
                self.broker.host,
                self.broker.port,
                keepalive=self.broker.keepalive,
            )
            client.loop_start()
        except (OSError, ValueError) as e:
            raise InitializationError(
                f"Cannot set up MQTT client for {self.broker.url}: {e}",
                component="StatusPublisher",
                cause=e,
            ) from e

        self._client = client
        self._queue = asyncio.Queue(maxsize=self.settings.publish_queue_size)
        self._running = True
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())

        loop = asyncio.get_running_loop()
        connected = await loop.run_in_executor(
            None, self._connected.wait, self.settings.connect_timeout
        )
        if connected:
            logger.info(f"✓ StatusPublisher connected to {self.broker.url}")
        else:
            logger.error(
                f"Error connecting to {self.broker.url}: no answer within "
                f"{self.settings.connect_timeout}s, will keep retrying"
            )

    async def stop(self) -> None:
        """
        Stop the dispatch loop, give queued messages one last chance,
        then disconnect.
        """
        self._running = False
        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None

        flushed = 0
        if self._queue is not None:
            loop = asyncio.get_running_loop()
            while not self._queue.empty():
                message = self._queue.get_nowait()
                try:
                    await loop.run_in_executor(None, self._publish_blocking, message)
                    self._published += 1
                    flushed += 1
                except PublishError as e:
                    self._dropped += 1
                    logger.warning(f"[Publisher] Dropped on shutdown: {e.message}")
        if flushed:
            logger.info(f"[Publisher] Flushed {flushed} queued message(s) on shutdown")

        if self._client is not None:
            self._client.disconnect()
            self._client.loop_stop()
            self._client = None
        self._connected.clear()
        logger.info("✓ StatusPublisher stopped")

    def publish_status(self, service_name: str, success: bool) -> bool:
        """
        Queue the status of one service.

        Returns
        -------
        bool
            True if queued, False if dropped.
        """
        message = StatusMessage(
            topic=self.broker.state_topic(service_name),
            payload=self.payloads.for_status(success),
            retain=self.broker.retain,
            qos=self.broker.qos,
        )
        return self.enqueue(message)

    def publish_discovery(self, services: Iterable[ServiceDescriptor]) -> int:
        """
        Publish one retained Home Assistant discovery document per service.
        Does nothing unless a discovery prefix is configured.

        The documents are kept and queued again after every successful
        (re)connect, so a broker that comes up late still receives them.

        Returns the number of documents registered.
        """
        if not self.broker.discovery_prefix:
            return 0

        documents = []
        for service in services:
            topic = self.broker.discovery_topic(service.name)
            document = self.discovery_document(service)
            logger.debug(
                f"Discovery topic: {topic}\n{json.dumps(document, indent=2)}"
            )
            documents.append((topic, json.dumps(document)))
        self._discovery = documents

        if self.is_connected:
            self._queue_discovery()
        else:
            logger.info(
                f"Holding {len(documents)} discovery topic(s) until "
                f"{self.broker.url} is connected"
            )
        return len(documents)

    def _queue_discovery(self) -> None:
        """Enqueue the held discovery documents.  Runs on the event loop."""
        if not self._discovery or not self._running:
            return
        logger.info(f"Publishing discovery topics to: {self.broker.discovery_prefix}")
        for topic, payload in self._discovery:
            self.enqueue(StatusMessage(
                topic=topic,
                payload=payload,
                retain=True,
                qos=self.broker.qos,
            ))

    def discovery_document(self, service: ServiceDescriptor) -> Dict[str, str]:
        return {
            "name": service.name,
            "device_class": DISCOVERY_DEVICE_CLASS,
            "state_topic": self.broker.state_topic(service.name),
            "payload_on": self.payloads.success,
            "payload_off": self.payloads.failure,
        }

    def enqueue(self, message: StatusMessage) -> bool:
        """Non-blocking enqueue; False if the publisher is stopped or full."""
        if not self._running or self._queue is None:
            self._dropped += 1
            logger.warning(
                f"[Publisher] Not running, dropping message for {message.topic}"
            )
            return False
        try:
            self._queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                f"[Publisher] Queue is full ({self._queue.maxsize}). "
                f"Dropping message for {message.topic}"
            )
            return False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    @property
    def published_count(self) -> int:
        return self._published

    @property
    def dropped_count(self) -> int:
        return self._dropped

    async def join(self) -> None:
        """Wait until everything queued so far has been handled."""
        if self._queue is not None:
            await self._queue.join()

    # ------------------------------------------------------------------
    # DISPATCH LOOP
    # ------------------------------------------------------------------

    async def _dispatch_loop(self) -> None:
        """
        Pull messages off the queue one at a time and hand them to paho.
        Runs until self._running is False.
        """
        logger.debug("[Publisher] Dispatch loop started")
        loop = asyncio.get_running_loop()
        while self._running:
            try:
                message = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue  # loop back and check self._running
            except asyncio.CancelledError:
                break

            try:
                await loop.run_in_executor(None, self._publish_blocking, message)
                self._published += 1
            except PublishError as e:
                self._dropped += 1
                logger.error(f"Error publishing to {self.broker.url}: {e.message}")
            except asyncio.CancelledError:
                break
            except Exception:
                self._dropped += 1
                logger.exception(
                    f"[Publisher] Unhandled error publishing to {message.topic}"
                )
            finally:
                self._queue.task_done()

        logger.debug("[Publisher] Dispatch loop exited")

    def _publish_blocking(self, message: StatusMessage) -> None:
        """
        Hand one message to paho and wait until it has left the client.
        Runs in the default executor.

        Raises
        ------
        BrokerConnectionError
            No connection to the broker right now.
        PublishError
            paho refused or did not finish the publish in time.
        """
        if self._client is None or not self._connected.is_set():
            raise BrokerConnectionError(
                f"not connected, dropping {message.topic}={message.payload}",
                topic=message.topic,
            )

        info = self._client.publish(
            message.topic, message.payload, qos=message.qos, retain=message.retain
        )
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(
                f"publish to {message.topic} failed: {mqtt.error_string(info.rc)}",
                topic=message.topic,
            )

        try:
            info.wait_for_publish(timeout=self.settings.publish_timeout)
        except (ValueError, RuntimeError) as e:
            raise PublishError(
                f"publish to {message.topic} failed: {e}",
                topic=message.topic,
                cause=e,
            ) from e

        if not info.is_published():
            raise PublishError(
                f"publish to {message.topic} not completed within "
                f"{self.settings.publish_timeout}s",
                topic=message.topic,
            )

        logger.debug(
            f"Published to server: {self.broker.url}, topic: {message.topic}, "
            f"message: {message.payload} (queued {time.time() - message.enqueued_at:.3f}s)"
        )

    # ------------------------------------------------------------------
    # PAHO CALLBACKS (network thread)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            self._connected.clear()
            logger.error(f"Error connecting to {self.broker.url}: {reason_code}")
            return
        self._connected.set()
        logger.debug(f"[Publisher] Connected to {self.broker.url}")
        if self._discovery and self._loop is not None:
            try:
                self._loop.call_soon_threadsafe(self._queue_discovery)
            except RuntimeError:
                logger.debug("[Publisher] Event loop closed, discovery not re-sent")

    def _on_connect_fail(self, client, userdata) -> None:
        self._connected.clear()
        logger.error(f"Error connecting to {self.broker.url}: connection failed")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._connected.clear()
        if self._running:
            logger.warning(
                f"[Publisher] Disconnected from {self.broker.url} ({reason_code}), "
                f"reconnecting"
            )
