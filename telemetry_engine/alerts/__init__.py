"""Alert Trigger - clasificación por umbral y alertas con flanco + cooldown."""

from .classification import SensorStatus, Thresholds, classify
from .notification_history import NotificationHistory, NotificationItem
from .notifiers import AlertEvent, AlertSideEffect, BellSoundPlayer, LogNotifier, WebhookNotifier
from .trigger import AlertTrigger

__all__ = [
    "AlertEvent",
    "AlertSideEffect",
    "AlertTrigger",
    "BellSoundPlayer",
    "LogNotifier",
    "NotificationHistory",
    "NotificationItem",
    "SensorStatus",
    "Thresholds",
    "WebhookNotifier",
    "classify",
]
