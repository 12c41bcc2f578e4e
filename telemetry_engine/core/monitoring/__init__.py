"""Monitoring - estadísticas locales de la instancia."""

from .stats import CycleStats

__all__ = ["CycleStats"]
