from __future__ import annotations

import os
import socket
import uuid
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _default_env_file() -> str:
    # .env en la raíz del repo; las variables reales del entorno tienen prioridad.
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _default_instance_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class Settings:
    redis_url: str
    store_backend: str
    broadcast_enabled: bool
    key_prefix: str
    instance_id: str

    # Coordinación (lease del "primary")
    lease_timeout_seconds: float
    heartbeat_interval_seconds: float
    takeover_poll_seconds: float

    # Ingesta
    polling_interval_seconds: float
    sources_json: str
    demo_bucket_seconds: float
    http_timeout_seconds: float

    # Agregación
    series_update_interval_seconds: float
    series_retention_seconds: float
    stats_window_seconds: float
    max_series_points: int
    follower_accumulates_stats: bool

    # Alertas
    warning_threshold: float
    danger_threshold: float
    alert_cooldown_seconds: float
    enable_sound_alert: bool
    enable_notification: bool
    max_notifications: int
    push_webhook_url: str
    internal_api_key: str


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("TELEMETRY_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    # Umbrales por defecto del dashboard (50 / 200 ADC).
    warning_threshold = float(os.getenv("THRESHOLD_WARNING", "50"))
    danger_threshold = float(os.getenv("THRESHOLD_DANGER", "200"))

    return Settings(
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        store_backend=os.getenv("TELEMETRY_STORE_BACKEND", "memory").strip().lower(),
        broadcast_enabled=_env_bool("TELEMETRY_BROADCAST_ENABLED", True),
        key_prefix=os.getenv("TELEMETRY_KEY_PREFIX", "smoke-sensor"),
        instance_id=os.getenv("TELEMETRY_INSTANCE_ID") or _default_instance_id(),
        lease_timeout_seconds=float(os.getenv("LEASE_TIMEOUT_SECONDS", "3.0")),
        heartbeat_interval_seconds=float(os.getenv("HEARTBEAT_INTERVAL_SECONDS", "1.0")),
        takeover_poll_seconds=float(os.getenv("TAKEOVER_POLL_SECONDS", "2.0")),
        polling_interval_seconds=float(os.getenv("POLLING_INTERVAL_SECONDS", "30.0")),
        sources_json=os.getenv("TELEMETRY_SOURCES", ""),
        demo_bucket_seconds=float(os.getenv("DEMO_BUCKET_SECONDS", "10")),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "5")),
        series_update_interval_seconds=float(os.getenv("SERIES_UPDATE_INTERVAL_SECONDS", "60")),
        series_retention_seconds=float(os.getenv("SERIES_RETENTION_SECONDS", "1800")),
        stats_window_seconds=float(os.getenv("STATS_WINDOW_SECONDS", "86400")),
        max_series_points=int(os.getenv("MAX_SERIES_POINTS", "500")),
        follower_accumulates_stats=_env_bool("FOLLOWER_ACCUMULATES_STATS", False),
        warning_threshold=warning_threshold,
        danger_threshold=danger_threshold,
        alert_cooldown_seconds=float(os.getenv("ALERT_COOLDOWN_SECONDS", "30")),
        enable_sound_alert=_env_bool("ENABLE_SOUND_ALERT", False),
        enable_notification=_env_bool("ENABLE_NOTIFICATION", False),
        max_notifications=int(os.getenv("MAX_NOTIFICATIONS", "100")),
        push_webhook_url=os.getenv("PUSH_WEBHOOK_URL", ""),
        internal_api_key=os.getenv("INTERNAL_API_KEY", ""),
    )
