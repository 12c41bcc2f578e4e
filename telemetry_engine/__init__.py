"""Motor de ingesta y agregación de telemetría de sensores de humo."""

__version__ = "0.4.0"
