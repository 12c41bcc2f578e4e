"""Ingestion Pipeline - fuentes HTTP / MQTT / demo → FleetSnapshot."""

from .client_interface import ISourceClient, RawReading
from .http_source import HttpSourceClient
from .mqtt_source import MqttSourceClient
from .pipeline import CycleReport, IngestionPipeline
from .simulator import DEMO_SENSORS, DemoSourceClient, simulate, time_bucket
from .sources import DEMO_SOURCE, KIND_DEMO, KIND_HTTP, KIND_MQTT, SourceConfig, load_sources
from .validators import RawSensorPayload, normalize_reading, parse_timestamp

__all__ = [
    "CycleReport",
    "DEMO_SENSORS",
    "DEMO_SOURCE",
    "DemoSourceClient",
    "HttpSourceClient",
    "ISourceClient",
    "IngestionPipeline",
    "KIND_DEMO",
    "KIND_HTTP",
    "KIND_MQTT",
    "MqttSourceClient",
    "RawReading",
    "RawSensorPayload",
    "SourceConfig",
    "load_sources",
    "normalize_reading",
    "parse_timestamp",
    "simulate",
    "time_bucket",
]
