"""Configuración de fuentes de ingesta."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import orjson

logger = logging.getLogger(__name__)

KIND_HTTP = "http"
KIND_MQTT = "mqtt"
KIND_DEMO = "demo"
SUPPORTED_KINDS = (KIND_HTTP, KIND_MQTT, KIND_DEMO)


@dataclass(frozen=True)
class SourceConfig:
    """Fuente de lecturas: endpoint HTTP, topic MQTT o generador demo."""
    id: str
    name: str
    kind: str = KIND_HTTP
    url: str = ""
    broker_topic: str = ""
    api_key: Optional[str] = None
    enabled: bool = True


DEMO_SOURCE = SourceConfig(id="demo", name="Demo", kind=KIND_DEMO)


def _infer_kind(item: dict) -> str:
    kind = str(item.get("kind") or "").strip().lower()
    if kind:
        return kind
    if item.get("brokerTopic") or item.get("broker_topic"):
        return KIND_MQTT
    return KIND_HTTP


def load_sources(raw_json: str) -> Tuple[SourceConfig, ...]:
    """Parsea `TELEMETRY_SOURCES` (lista JSON).

    Formato por elemento (camelCase o snake_case):
        {"id": "lab", "name": "Lab", "url": "http://...", "apiKey": "...",
         "enabled": true, "kind": "http"}

    Sin fuentes configuradas se usa la fuente demo. Elementos inválidos se
    descartan con warning.
    """
    if not raw_json or not raw_json.strip():
        return (DEMO_SOURCE,)

    try:
        items = orjson.loads(raw_json)
    except orjson.JSONDecodeError as e:
        raise ValueError(f"TELEMETRY_SOURCES is not valid JSON: {e}") from e
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list):
        raise ValueError("TELEMETRY_SOURCES must be a JSON list")

    sources: List[SourceConfig] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("id"):
            logger.warning("[INGEST] Ignoring source without id: %r", item)
            continue
        kind = _infer_kind(item)
        if kind not in SUPPORTED_KINDS:
            logger.warning("[INGEST] Ignoring source %s with unknown kind=%s", item["id"], kind)
            continue
        sources.append(
            SourceConfig(
                id=str(item["id"]),
                name=str(item.get("name") or item["id"]),
                kind=kind,
                url=str(item.get("url") or ""),
                broker_topic=str(item.get("brokerTopic") or item.get("broker_topic") or ""),
                api_key=item.get("apiKey") or item.get("api_key") or None,
                enabled=bool(item.get("enabled", True)),
            )
        )
    return tuple(sources)
