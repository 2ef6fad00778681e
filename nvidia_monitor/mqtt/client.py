"""
MQTT client wrapper using aiomqtt.

A background task holds one broker session at a time and reconnects
with exponential backoff when it drops. Availability is announced on
'<prefix>/status' ("online"/"offline"), with the broker's last will
covering unclean exits.

Publishing never blocks on the network. Only the latest payload per
topic is kept, so a status line produced while the broker is away is
replaced rather than queued behind stale ones.
"""

import asyncio
import json
import uuid
from typing import Any

import aiomqtt

from ..config.schema import MQTTConfig
from ..logging import get_logger


logger = get_logger("mqtt.client")

RECONNECT_MIN_DELAY = 5.0
RECONNECT_MAX_DELAY = 60.0
STOP_TIMEOUT = 5.0


class MQTTClient:
    """
    Async MQTT publisher with last-value-per-topic buffering.
    """

    def __init__(self, config: MQTTConfig, availability_topic: str | None = None):
        """
        Initialize MQTT client.

        Args:
            config: MQTT configuration
            availability_topic: Topic for availability messages (LWT)
        """
        self.config = config
        self.availability_topic = availability_topic or f"{config.topic_prefix}/status"
        self.client_id = config.client_id or f"nvidia_monitor_{uuid.uuid4().hex[:8]}"

        self._pending: dict[str, tuple[str, bool]] = {}
        self._has_pending = asyncio.Event()
        self._online = asyncio.Event()
        self._stopping = asyncio.Event()
        self._reconnect_delay = RECONNECT_MIN_DELAY
        self._task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self._online.is_set()

    @property
    def topic_prefix(self) -> str:
        return self.config.topic_prefix

    @property
    def pending(self) -> dict[str, str]:
        """Payloads waiting to be sent, by topic."""
        return {topic: payload for topic, (payload, _) in self._pending.items()}

    def _create_client(self) -> aiomqtt.Client:
        will = aiomqtt.Will(
            topic=self.availability_topic,
            payload="offline",
            qos=1,
            retain=self.config.should_retain_status(),
        )
        return aiomqtt.Client(
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            identifier=self.client_id,
            keepalive=self.config.keepalive,
            will=will,
        )

    async def publish(self, topic: str, payload: Any, retain: bool | None = None) -> None:
        """
        Schedule a message, replacing any unsent payload for the same topic.

        Args:
            topic: MQTT topic
            payload: String payload, or any JSON-serializable value
            retain: Retain flag (None = use the configured data retain mode)
        """
        if retain is None:
            retain = self.config.should_retain_data()
        if not isinstance(payload, str):
            payload = json.dumps(payload, ensure_ascii=False)

        self._pending[topic] = (payload, retain)
        self._has_pending.set()

    async def _flush(self, client: aiomqtt.Client) -> None:
        while self._pending:
            topic, message = next(iter(self._pending.items()))
            payload, retain = message
            logger.debug(f"Publishing to {topic}: {payload[:100]}")
            await client.publish(topic, payload, qos=self.config.qos, retain=retain)
            # A newer payload may have replaced this one during the await
            if self._pending.get(topic) == message:
                del self._pending[topic]

    async def _session(self) -> None:
        """Connect, then publish until stop() is requested."""
        logger.debug(f"Connecting to {self.config.host}:{self.config.port} as {self.client_id}")
        async with self._create_client() as client:
            retain_status = self.config.should_retain_status()
            await client.publish(self.availability_topic, "online", qos=1, retain=retain_status)
            self._online.set()
            self._reconnect_delay = RECONNECT_MIN_DELAY
            logger.info(f"Connected to MQTT broker at {self.config.host}:{self.config.port}")

            try:
                while True:
                    await self._has_pending.wait()
                    self._has_pending.clear()
                    await self._flush(client)
                    if self._stopping.is_set():
                        await client.publish(
                            self.availability_topic, "offline", qos=1, retain=retain_status
                        )
                        return
            finally:
                self._online.clear()

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self._session()
            except aiomqtt.MqttError as e:
                logger.error(f"MQTT connection failed, retrying in {self._reconnect_delay:.0f}s: {e}")
            else:
                break

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._reconnect_delay)
            except TimeoutError:
                pass
            self._reconnect_delay = min(self._reconnect_delay * 2, RECONNECT_MAX_DELAY)

        logger.info("Disconnected from MQTT broker")

    async def start(self) -> None:
        """Start the background connection task."""
        if self._task is not None and not self._task.done():
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("MQTT client started")

    async def stop(self) -> None:
        """Send what is pending, announce offline and disconnect."""
        if self._task is None:
            return

        self._stopping.set()
        self._has_pending.set()
        try:
            await asyncio.wait_for(self._task, timeout=STOP_TIMEOUT)
        except TimeoutError:
            logger.warning(f"MQTT client did not stop within {STOP_TIMEOUT}s, dropping {len(self._pending)} messages")
        self._task = None
        logger.info("MQTT client stopped")

    async def wait_connected(self, timeout: float = 30.0) -> bool:
        """
        Wait for the connection to be established.

        Returns:
            True if connected, False on timeout
        """
        try:
            async with asyncio.timeout(timeout):
                await self._online.wait()
        except TimeoutError:
            return False
        return True
