"""Métricas Prometheus del motor.

Contadores a nivel de módulo (un registro por proceso). Las etiquetas
`instance` permiten distinguir varias instancias dentro del mismo proceso.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

INGEST_CYCLES = Counter(
    "telemetry_ingest_cycles_total",
    "Ingestion cycles run by the lease holder",
    ["status"],  # connected, empty, disconnected, no_sources
)

SOURCE_FAILURES = Counter(
    "telemetry_source_failures_total",
    "Per-source fetch failures",
    ["source"],
)

READINGS_DROPPED = Counter(
    "telemetry_readings_dropped_total",
    "Raw readings dropped by validation",
)

SNAPSHOTS_ABSORBED = Counter(
    "telemetry_snapshots_absorbed_total",
    "Snapshots absorbed from other instances",
)

ALERTS_FIRED = Counter(
    "telemetry_alerts_fired_total",
    "Danger alerts fired (rising edge, outside cooldown)",
)

SIDE_EFFECT_ERRORS = Counter(
    "telemetry_alert_side_effect_errors_total",
    "Swallowed errors from sound/notification side effects",
    ["kind"],
)

IS_PRIMARY = Gauge(
    "telemetry_is_primary",
    "1 if this instance holds the coordination lease",
    ["instance"],
)
