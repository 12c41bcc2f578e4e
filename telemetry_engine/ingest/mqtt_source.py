"""Cliente MQTT para fuentes push de lecturas.

Una suscripción por fuente (`url` = broker, `broker_topic` = topic). El hilo
de red de paho solo actualiza una caché con el último mensaje por sensor; el
pipeline la lee en cada ciclo con `fetch()`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import orjson
import paho.mqtt.client as mqtt

from ..core.domain.errors import SourceFetchError
from .client_interface import ISourceClient, RawReading
from .sources import SourceConfig

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ws": 8083, "wss": 8884}
_TLS_SCHEMES = ("mqtts", "wss")
_WS_SCHEMES = ("ws", "wss")


def parse_broker_url(url: str) -> Tuple[str, int, str, bool]:
    """Devuelve (host, port, transport, tls) a partir de la URL del broker.

    Acepta `mqtt://host:1883`, `ws://host:8083/mqtt`, `host:1883` o `host`.
    """
    text = url.strip()
    if not text:
        raise ValueError("empty broker url")
    if "://" not in text:
        text = f"mqtt://{text}"
    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ValueError(f"unsupported broker scheme: {scheme}")
    if not parts.hostname:
        raise ValueError(f"broker url without host: {url}")
    port = parts.port or _DEFAULT_PORTS[scheme]
    transport = "websockets" if scheme in _WS_SCHEMES else "tcp"
    return parts.hostname, port, transport, scheme in _TLS_SCHEMES


class MqttSubscription:
    """Conexión paho para una fuente, con caché del último mensaje por sensor."""

    def __init__(self, source: SourceConfig, client_id: Optional[str] = None) -> None:
        self.source = source
        self.host, self.port, self.transport, self.tls = parse_broker_url(source.url)
        self.client_id = client_id or f"telemetry-{source.id}-{int(time.time())}"

        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._lock = threading.Lock()
        self._latest: Dict[str, RawReading] = {}
        self._received = 0
        self._invalid = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        """Arranca la conexión en segundo plano (no bloquea)."""
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            transport=self.transport,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message
        if self.tls:
            self._client.tls_set()
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)

        logger.info("[MQTT] Connecting to %s:%d (%s) for source=%s",
                    self.host, self.port, self.transport, self.source.id)
        self._client.connect_async(self.host, self.port, keepalive=60)
        self._client.loop_start()

    def disconnect(self) -> None:
        if self._client:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Disconnect error for source=%s: %s", self.source.id, e)
        self._connected = False
        with self._lock:
            self._latest.clear()

    def snapshot(self) -> List[RawReading]:
        with self._lock:
            return list(self._latest.values())

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            self._connected = True
            client.subscribe(self.source.broker_topic, qos=0)
            logger.info("[MQTT] Connected, subscribed to %s", self.source.broker_topic)
        else:
            self._connected = False
            logger.error("[MQTT] Connection failed for source=%s: rc=%s", self.source.id, reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected = False
        logger.warning("[MQTT] Disconnected source=%s (rc=%s)", self.source.id, reason_code)

    def _on_message(self, client, userdata, msg):
        """Cachea el último payload por sensor. Mensajes inválidos se ignoran."""
        try:
            data = orjson.loads(msg.payload)
        except orjson.JSONDecodeError:
            self._invalid += 1
            logger.debug("[MQTT] Invalid JSON on %s", msg.topic)
            return

        items = data if isinstance(data, list) else [data]
        with self._lock:
            for item in items:
                if not isinstance(item, dict) or item.get("id") in (None, ""):
                    self._invalid += 1
                    continue
                self._latest[str(item["id"])] = item
                self._received += 1


class MqttSourceClient(ISourceClient):
    """Gestiona una suscripción por fuente MQTT.

    La primera consulta arranca la conexión; mientras no esté arriba,
    `fetch()` lanza SourceFetchError y la fuente cuenta como fallida.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, MqttSubscription] = {}

    def fetch(self, source: SourceConfig, now: float) -> List[RawReading]:
        if not source.broker_topic:
            raise SourceFetchError(source.id, "no broker topic configured")

        sub = self._subscriptions.get(source.id)
        if sub is None:
            try:
                sub = MqttSubscription(source)
                sub.connect()
            except (ValueError, OSError) as e:
                raise SourceFetchError(source.id, f"cannot connect: {e}") from e
            self._subscriptions[source.id] = sub

        if not sub.is_connected:
            raise SourceFetchError(source.id, "broker not connected")
        return sub.snapshot()

    def close(self) -> None:
        for sub in self._subscriptions.values():
            sub.disconnect()
        self._subscriptions.clear()
