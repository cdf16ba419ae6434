"""MQTT connectivity: one subscribed topic in, command payloads out."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from typing import Any

import aiomqtt

from dawn_assistant.assistant_config import AssistantConfig
from dawn_assistant.errors import BusError
from dawn_assistant.metrics import MetricsCollector

# SUBACK return codes at or above this value mean the broker refused the subscription
SUBACK_FAILURE = 0x80


def subscription_rejected(granted: Iterable[Any]) -> bool:
    """True when the broker refused every requested subscription."""
    codes = [int(getattr(code, "value", code)) for code in granted]
    return bool(codes) and all(code >= SUBACK_FAILURE for code in codes)


def decode_payload(payload: bytes | bytearray | str | Any, logger: logging.Logger) -> str | None:
    if isinstance(payload, bytes | bytearray):
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as err:
            logger.warning("Dropping payload that is not valid UTF-8: %s", err)
            return None
    if isinstance(payload, str):
        return payload
    logger.warning("Unexpected payload type: %s", type(payload))
    return None


class BusAdapter:
    """Keeps the broker connection alive and feeds the dispatcher.

    Incoming messages are handled one at a time, each on a worker thread so
    slow handlers (LLM requests, joining audio workers) do not stall the
    event loop. Publishing never raises; failures are logged and counted.
    """

    def __init__(
        self,
        config: AssistantConfig,
        on_message: Callable[[str], Any],
        metrics: MetricsCollector | None = None,
        logger: logging.Logger | None = None,
        client_factory: Callable[..., aiomqtt.Client] = aiomqtt.Client,
        publish_timeout: float = 5.0,
    ) -> None:
        self.config = config
        self.metrics = metrics
        self.logger = logger or logging.getLogger(__name__)
        self.publish_timeout = publish_timeout
        self._on_message = on_message
        self._client_factory = client_factory
        self._client: aiomqtt.Client | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    # AIDEV-NOTE: Reconnect loop; a refused subscription is the only error that escapes it
    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        client = self._client_factory(
            self.config.mqtt_server_host,
            port=self.config.mqtt_server_port,
            identifier=self.config.client_id,
            keepalive=self.config.mqtt_keepalive,
            logger=self.logger,
        )
        while True:
            try:
                async with client as mqtt_client:
                    self.logger.info(
                        "Connected to MQTT broker at %s:%d", self.config.mqtt_server_host, self.config.mqtt_server_port
                    )
                    await self.setup_subscriptions(mqtt_client)
                    self._client = mqtt_client
                    await self.listen_to_messages(mqtt_client)
            except aiomqtt.MqttError:
                self.logger.error(
                    "Connection lost; reconnecting in %d seconds...", self.config.mqtt_retry_interval, exc_info=True
                )
                if self.metrics:
                    self.metrics.record_bus_event("reconnection")
                await asyncio.sleep(self.config.mqtt_retry_interval)
            finally:
                self._client = None

    async def setup_subscriptions(self, client: aiomqtt.Client) -> None:
        granted = await client.subscribe(topic=self.config.app_topic, qos=1)
        if subscription_rejected(granted):
            raise BusError(f"Broker rejected the subscription to '{self.config.app_topic}'")
        self.logger.info("Subscribed to topic: %s", self.config.app_topic)

    async def listen_to_messages(self, client: aiomqtt.Client) -> None:
        async for message in client.messages:
            if not message.topic.matches(self.config.app_topic):
                continue
            payload = decode_payload(message.payload, self.logger)
            if payload is None:
                continue
            self.logger.debug("Received on %s: %s", message.topic, payload)
            try:
                await asyncio.to_thread(self._on_message, payload)
            except Exception:
                self.logger.exception("Handler failed for payload %s", payload)

    async def publish(self, topic: str, payload: str) -> bool:
        client = self._client
        if client is None:
            self.logger.warning("Not connected, dropping message for %s: %s", topic, payload)
            self._record_publish(False)
            return False
        try:
            await asyncio.wait_for(
                client.publish(topic=topic, payload=payload, qos=1, retain=False), timeout=self.publish_timeout
            )
        except (aiomqtt.MqttError, TimeoutError) as err:
            self.logger.error("Publish to %s failed: %s", topic, err)
            self._record_publish(False)
            return False
        self.logger.info("Published on %s: %s", topic, payload)
        self._record_publish(True)
        return True

    def post(self, payload: dict[str, Any]) -> None:
        """Publish ``payload`` on the application topic from any thread."""
        if self._loop is None or self._loop.is_closed():
            self.logger.warning("Bus loop not running, dropping %s", payload)
            return
        asyncio.run_coroutine_threadsafe(self.publish(self.config.app_topic, json.dumps(payload)), self._loop)

    def _record_publish(self, success: bool) -> None:
        if self.metrics:
            self.metrics.record_bus_event("publish", success=success)
