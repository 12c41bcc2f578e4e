"""Claves fijas del almacenamiento compartido (sin prefijo)."""

LEASE = "primary-lease"
FLEET_SERIES = "history"
LOCATION_SERIES = "individual-history"
LOCATION_STATS = "max-values"
CURRENT_SNAPSHOT = "current-snapshot"
NOTIFICATIONS = "notification-history"
