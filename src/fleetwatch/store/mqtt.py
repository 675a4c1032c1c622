"""MQTT-backed document store.

A bridge publishes each collection's full (retained) snapshot as JSON on
``{prefix}/{collection}``::

    {"documents": [{"id": "driver1", "name": "...", ...}, ...]}

A threaded paho-mqtt runtime receives the payloads and hands them to the
asyncio loop, where filters are applied and listeners are notified.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import secrets
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from fleetwatch.config import FleetConfig
from fleetwatch.exceptions import FleetConfigError, SnapshotDecodeError, StoreConnectionError
from fleetwatch.store.base import (
    Document,
    ErrorCallback,
    FieldFilter,
    Snapshot,
    SnapshotCallback,
    Unsubscribe,
    matches_all,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MqttSnapshotMessage:
    """Decoded snapshot payload for one collection."""

    collection: str
    topic: str
    documents: tuple[Document, ...]


def decode_snapshot_payload(collection: str, payload: bytes) -> tuple[Document, ...]:
    """Decode a bridge payload into documents.

    Accepts either ``{"documents": [...]}`` or a bare list.  Documents
    without an ``id`` are dropped.
    """
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotDecodeError(f"Snapshot for {collection} is not JSON", collection=collection) from exc

    items = parsed.get("documents") if isinstance(parsed, dict) else parsed
    if not isinstance(items, list):
        raise SnapshotDecodeError(f"Snapshot for {collection} has no document list", collection=collection)

    documents: list[Document] = []
    for item in items:
        if isinstance(item, dict) and item.get("id") not in (None, ""):
            documents.append(item)
    return tuple(documents)


class MqttSnapshotRuntime:
    """Threaded paho-mqtt runtime that emits decoded snapshots onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        topic_prefix: str,
        on_message: Callable[[MqttSnapshotMessage], None],
        on_failure: Callable[[str, Exception], None],
        keepalive: int = 120,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._prefix = topic_prefix.rstrip("/")
        self._on_message = on_message
        self._on_failure = on_failure
        self._keepalive = keepalive
        self._logger = logger or _logger
        self._client: mqtt.Client | None = None
        self._running = False
        self._topics: set[str] = set()
        # Read from the paho network thread, written from the loop.
        self._topics_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    def topic_for(self, collection: str) -> str:
        return f"{self._prefix}/{collection}"

    def _collection_for(self, topic: str) -> str:
        return topic[len(self._prefix) + 1 :] if topic.startswith(f"{self._prefix}/") else topic

    def watched_topics(self) -> list[str]:
        with self._topics_lock:
            return sorted(self._topics)

    def watch(self, collection: str) -> None:
        """Subscribe to a collection topic (now if connected, otherwise on connect)."""
        topic = self.topic_for(collection)
        with self._topics_lock:
            if topic in self._topics:
                return
            self._topics.add(topic)
        client = self._client
        if client is not None and self._running:
            client.subscribe(topic, qos=1)

    def start(
        self,
        host: str,
        port: int,
        *,
        username: str | None = None,
        password: str | None = None,
        tls: bool = True,
    ) -> None:
        """Connect to the broker and start the network loop."""
        self.stop()
        client_id = f"fleetwatch-{secrets.token_hex(6)}"
        self._logger.debug("MQTT runtime start requested host=%s port=%s client_id=%s", host, port, client_id)

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if username:
            client.username_pw_set(username, password)
        if tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._report_failure(f"connect refused: {reason_code}")
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            for topic in self.watched_topics():
                c.subscribe(topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            collection = self._collection_for(msg.topic)
            try:
                documents = decode_snapshot_payload(collection, msg.payload)
            except SnapshotDecodeError as exc:
                self._logger.debug("MQTT snapshot decode failure topic=%s", msg.topic, exc_info=True)
                self._loop.call_soon_threadsafe(self._on_failure, collection, exc)
                return
            self._logger.debug("MQTT snapshot topic=%s documents=%d", msg.topic, len(documents))
            message = MqttSnapshotMessage(collection=collection, topic=msg.topic, documents=documents)
            self._loop.call_soon_threadsafe(self._on_message, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)
                self._report_failure(f"disconnected: {reason_code}")

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(host, port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def _report_failure(self, reason: str) -> None:
        for topic in self.watched_topics():
            collection = self._collection_for(topic)
            exc = StoreConnectionError(f"MQTT {reason}", collection=collection)
            self._loop.call_soon_threadsafe(self._on_failure, collection, exc)

    def stop(self) -> None:
        """Stop and disconnect the current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


@dataclass(frozen=True)
class _Listener:
    collection: str
    filters: tuple[FieldFilter, ...]
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback


class MqttDocumentStore:
    """Document store fed by an MQTT snapshot bridge.

    Usage::

        store = MqttDocumentStore(config, loop=asyncio.get_running_loop())
        store.start()
        ...
        store.stop()
    """

    def __init__(
        self,
        config: FleetConfig,
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        if not config.mqtt_host:
            raise FleetConfigError("MQTT store requires config.mqtt_host")
        self._config = config
        self._runtime = MqttSnapshotRuntime(
            loop=loop,
            topic_prefix=config.mqtt_topic_prefix,
            on_message=self._on_message,
            on_failure=self._on_failure,
            keepalive=config.mqtt_keepalive,
        )
        self._listeners: dict[int, _Listener] = {}
        self._latest: dict[str, tuple[Document, ...]] = {}
        self._ids = itertools.count(1)

    def start(self) -> None:
        host = self._config.mqtt_host
        assert host is not None  # noqa: S101
        self._runtime.start(
            host,
            self._config.mqtt_port,
            username=self._config.mqtt_username,
            password=self._config.mqtt_password,
            tls=self._config.mqtt_tls,
        )

    def stop(self) -> None:
        self._runtime.stop()

    def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        token = next(self._ids)
        listener = _Listener(collection, tuple(filters), on_snapshot, on_error)
        self._listeners[token] = listener
        self._runtime.watch(collection)

        latest = self._latest.get(collection)
        if latest is not None:
            self._deliver(listener, latest)

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def _on_message(self, message: MqttSnapshotMessage) -> None:
        self._latest[message.collection] = message.documents
        for listener in list(self._listeners.values()):
            if listener.collection == message.collection:
                self._deliver(listener, message.documents)

    def _on_failure(self, collection: str, exc: Exception) -> None:
        for listener in list(self._listeners.values()):
            if listener.collection == collection:
                listener.on_error(exc)

    @staticmethod
    def _deliver(listener: _Listener, documents: tuple[Document, ...]) -> None:
        filtered = tuple(doc for doc in documents if matches_all(doc, listener.filters))
        listener.on_snapshot(Snapshot(collection=listener.collection, documents=filtered))
