"""MQTT client adapter bridging paho-mqtt callbacks into asyncio."""

import asyncio
import logging
import ssl
import threading
from functools import partial
from typing import Any

import paho.mqtt.client as mqtt
from paho.mqtt.client import CallbackAPIVersion
from paho.mqtt.enums import MQTTErrorCode

from mqtt_blackbox.adapters.driven.mqtt.endpoint import parse_broker_url
from mqtt_blackbox.ports.broker import MessageHandler
from mqtt_blackbox.ports.errors import ConnectError, PublishTimeout, SubscribeError
from mqtt_blackbox.ports.probe import ProbeSpec

__all__ = ["MqttConnection", "connect_client"]

logger = logging.getLogger(__name__)

# paho's own logger; only shown when tracing is enabled
paho_logger = logging.getLogger("paho.mqtt.client")

KEEPALIVE_SEC = 30


class MqttConnection:
    """One paho client whose acknowledgments are awaitable from asyncio.

    paho runs its network loop in a background thread. Every callback hands
    its result to the event loop with ``call_soon_threadsafe``. An
    acknowledgment arriving before its future is registered is kept aside
    and picked up on registration. paho is never called while holding
    ``self._lock``, since paho holds its own mutexes while running callbacks.

    Auto-reconnect is disabled: a lost connection is logged and subsequent
    operations fail instead of being silently repaired.
    """

    def __init__(
        self,
        client: mqtt.Client,
        spec: ProbeSpec,
        loop: asyncio.AbstractEventLoop,
        on_message: MessageHandler | None = None,
    ) -> None:
        """Wire the paho callbacks of the given client.

        Args:
            client: Configured, not yet connected paho client.
            spec: Probe owning this connection (used for logging).
            loop: Event loop receiving callback results.
            on_message: Handler called on the loop for every inbound message.
        """
        self._client = client
        self._spec = spec
        self._loop = loop
        self._on_message = on_message
        self._lock = threading.Lock()
        self._acks: dict[int, asyncio.Future[Any]] = {}
        self._early_acks: dict[int, Any] = {}
        self._connack: asyncio.Future[Any] = loop.create_future()
        self._closing = False

        client.on_connect = self._handle_connect
        client.on_disconnect = self._handle_disconnect
        client.on_subscribe = self._handle_subscribe
        client.on_publish = self._handle_publish
        client.on_message = self._handle_message

    # -- paho callbacks (network thread) ---

    def _handle_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._call_soon(self._resolve, self._connack, reason_code)

    def _handle_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if self._closing:
            return
        if not self._connack.done():
            error = ConnectError(f"connection closed during handshake: {reason_code}")
            self._call_soon(self._fail, self._connack, error)
            return
        logger.warning(
            f"Probe {self._spec.name}: lost MQTT connection to {self._spec.broker} "
            f"error: {reason_code}"
        )

    def _handle_subscribe(self, client, userdata, mid, reason_codes, properties=None) -> None:
        self._ack(mid, reason_codes)

    def _handle_publish(self, client, userdata, mid, reason_code=None, properties=None) -> None:
        self._ack(mid, reason_code)

    def _handle_message(self, client, userdata, message: mqtt.MQTTMessage) -> None:
        handler = self._on_message
        if handler is not None:
            self._call_soon(handler, message.topic, message.payload)

    # -- thread bridging ---

    def _ack(self, mid: int, result: Any) -> None:
        with self._lock:
            future = self._acks.pop(mid, None)
            if future is None:
                self._early_acks[mid] = result
                return
        self._call_soon(self._resolve, future, result)

    def _call_soon(self, fn: Any, *args: Any) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(fn, *args)

    @staticmethod
    def _resolve(future: asyncio.Future[Any], result: Any) -> None:
        if not future.done():
            future.set_result(result)

    @staticmethod
    def _fail(future: asyncio.Future[Any], error: BaseException) -> None:
        if not future.done():
            future.set_exception(error)

    def _track(self, mid: int) -> asyncio.Future[Any]:
        future: asyncio.Future[Any] = self._loop.create_future()
        with self._lock:
            if mid in self._early_acks:
                future.set_result(self._early_acks.pop(mid))
            else:
                self._acks[mid] = future
        return future

    def _untrack(self, mid: int) -> None:
        with self._lock:
            self._acks.pop(mid, None)

    # -- operations (event loop) ---

    async def wait_connack(self, timeout: float) -> None:
        """Wait for the broker to accept the connection.

        Raises:
            ConnectError: If refused, closed, or not accepted within timeout.
        """
        try:
            reason_code = await asyncio.wait_for(self._connack, timeout)
        except asyncio.TimeoutError:
            raise ConnectError("connect timeout") from None
        if reason_code.is_failure:
            raise ConnectError(f"failed to connect client: {reason_code}")

    async def subscribe(self, topic: str, qos: int, timeout: float) -> None:
        """Subscribe to topic and wait for the SUBACK.

        Raises:
            SubscribeError: If rejected or not acknowledged within timeout.
        """
        result, mid = self._client.subscribe(topic, qos)
        if result != MQTTErrorCode.MQTT_ERR_SUCCESS:
            raise SubscribeError(f"subscribe failed: {mqtt.error_string(result)}")
        future = self._track(mid)

        try:
            reason_codes = await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise SubscribeError("subscribe timeout") from None
        finally:
            self._untrack(mid)

        rejected = [code for code in reason_codes if code.is_failure]
        if rejected:
            raise SubscribeError(f"subscription to {topic} rejected: {rejected[0]}")

    async def publish(self, topic: str, payload: str, qos: int, timeout: float) -> None:
        """Publish one message and wait until paho reports it as sent.

        For QoS 0 this is when the packet was written, for QoS 1/2 when the
        broker acknowledged it.

        Raises:
            PublishTimeout: If not accepted by the client or not acknowledged
                within timeout.
        """
        info = self._client.publish(topic, payload, qos=qos)
        if info.rc != MQTTErrorCode.MQTT_ERR_SUCCESS:
            raise PublishTimeout(f"publish not queued: {mqtt.error_string(info.rc)}")
        future = self._track(info.mid)

        try:
            await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise PublishTimeout(f"no acknowledgment for message id {info.mid}") from None
        finally:
            self._untrack(info.mid)

    async def unsubscribe(self, topic: str) -> None:
        self._client.unsubscribe(topic)

    async def close(self) -> None:
        """Disconnect and stop the network thread."""
        self._closing = True
        self._on_message = None
        self._client.disconnect()
        await asyncio.to_thread(self._client.loop_stop)


def _drop_late_connection(client: mqtt.Client, handshake: asyncio.Future[Any]) -> None:
    """Close a socket opened after its caller stopped waiting for it."""
    if handshake.cancelled() or handshake.exception() is not None:
        return
    logger.debug("Closing MQTT connection established after connect timeout")
    client.disconnect()


async def connect_client(
    spec: ProbeSpec,
    tls_context: ssl.SSLContext,
    timeout: float,
    client_id: str,
    on_message: MessageHandler | None = None,
) -> MqttConnection:
    """Open one MQTT connection for a probe run.

    The TCP (and TLS) handshake and the CONNACK together are bounded by
    timeout.

    Args:
        spec: Probe providing broker URL and credentials.
        tls_context: Used only for TLS broker schemes.
        timeout: Seconds available to establish the connection.
        client_id: Client identifier of this connection.
        on_message: Handler for inbound messages, if any.

    Returns:
        Established connection.

    Raises:
        ConnectError: On timeout, refusal, or network failure.
    """
    try:
        endpoint = parse_broker_url(spec.broker)
    except ValueError as e:
        raise ConnectError(str(e)) from e
    if timeout <= 0:
        raise ConnectError("connect timeout")

    client = mqtt.Client(
        callback_api_version=CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        transport=endpoint.transport,
        reconnect_on_failure=False,
    )
    client.enable_logger(paho_logger)
    client.connect_timeout = timeout
    if spec.username:
        client.username_pw_set(spec.username, spec.password or None)
    if endpoint.transport == "websockets":
        client.ws_set_options(path=endpoint.path)
    if endpoint.tls:
        client.tls_set_context(tls_context)

    loop = asyncio.get_running_loop()
    connection = MqttConnection(client, spec, loop, on_message=on_message)
    started = loop.time()

    # The connect thread cannot be interrupted: a socket it opens after a
    # timeout or cancellation is disconnected once the thread returns.
    handshake = asyncio.ensure_future(
        asyncio.to_thread(client.connect, endpoint.host, endpoint.port, KEEPALIVE_SEC)
    )
    try:
        await asyncio.wait_for(asyncio.shield(handshake), timeout)
    except asyncio.TimeoutError:
        handshake.add_done_callback(partial(_drop_late_connection, client))
        raise ConnectError("connect timeout") from None
    except asyncio.CancelledError:
        handshake.add_done_callback(partial(_drop_late_connection, client))
        raise
    except (OSError, ValueError) as e:
        raise ConnectError(f"failed to connect client: {e}") from e

    client.loop_start()
    try:
        await connection.wait_connack(max(0.0, timeout - (loop.time() - started)))
    except ConnectError:
        await connection.close()
        raise

    logger.debug(f"Probe {spec.name}: connected {client_id} to {spec.broker}")
    return connection
