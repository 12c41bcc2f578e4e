"""Core del motor de telemetría: dominio, Redis y monitoring."""
