"""Simulación determinista de sensores demo.

Todas las instancias que consultan el mismo bucket de reloj (10s por defecto)
obtienen exactamente los mismos valores, sin coordinarse. Se usa un PRNG
splitmix64 explícito en lugar de `random` para que el resultado no dependa
de la versión de Python ni del estado global.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

from .client_interface import ISourceClient, RawReading
from .sources import SourceConfig

_MASK64 = (1 << 64) - 1
_GOLDEN_GAMMA = 0x9E3779B97F4A7C15

DEFAULT_BUCKET_SECONDS = 10.0
DEMO_UNIT = "ppm"

NOISE_AMPLITUDE = 30.0
SPIKE_PROBABILITY = 0.08
SPIKE_AMPLITUDE = 80.0
MIN_VALUE = 5.0
MAX_VALUE = 250.0


@dataclass(frozen=True)
class DemoSensor:
    raw_id: str
    name: str
    location: str
    base: float


DEMO_SENSORS: Tuple[DemoSensor, ...] = (
    DemoSensor("1", "Sensor Sala", "Planta 1 - Sala", 23.0),
    DemoSensor("2", "Sensor Cocina", "Planta 1 - Cocina", 45.0),
    DemoSensor("3", "Sensor Dormitorio Principal", "Planta 2 - Dormitorio Principal", 18.0),
    DemoSensor("4", "Sensor Dormitorio", "Planta 2 - Dormitorio", 32.0),
    DemoSensor("5", "Sensor Garaje", "Garaje", 28.0),
)


class SplitMix64:
    """PRNG splitmix64 (Steele, Lea & Flood). Estado de 64 bits."""

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK64

    def next_u64(self) -> int:
        self._state = (self._state + _GOLDEN_GAMMA) & _MASK64
        z = self._state
        z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & _MASK64
        z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & _MASK64
        return z ^ (z >> 31)

    def next_float(self) -> float:
        """Float uniforme en [0, 1) con 53 bits de precisión."""
        return (self.next_u64() >> 11) * (1.0 / (1 << 53))


def time_bucket(now: float, bucket_seconds: float = DEFAULT_BUCKET_SECONDS) -> int:
    return int(math.floor(now / bucket_seconds))


def _seed(sensor_index: int, bucket: int) -> int:
    return (((bucket & _MASK64) << 16) ^ (sensor_index & 0xFFFF)) & _MASK64


def simulate(sensor_index: int, bucket: int) -> float:
    """Valor simulado para el sensor `sensor_index` en el bucket `bucket`.

    value = base + (r1 - 0.5) * 30, más un pico r3 * 80 cuando r2 < 0.08,
    acotado a [5, 250] y redondeado a 0.1.
    """
    base = DEMO_SENSORS[sensor_index % len(DEMO_SENSORS)].base
    rng = SplitMix64(_seed(sensor_index, bucket))
    r1 = rng.next_float()
    r2 = rng.next_float()
    r3 = rng.next_float()

    value = base + (r1 - 0.5) * NOISE_AMPLITUDE
    if r2 < SPIKE_PROBABILITY:
        value += r3 * SPIKE_AMPLITUDE

    value = max(MIN_VALUE, min(MAX_VALUE, value))
    return round(value, 1)


class DemoSourceClient(ISourceClient):
    """Fuente demo: cinco sensores con valores deterministas por bucket."""

    def __init__(self, bucket_seconds: float = DEFAULT_BUCKET_SECONDS) -> None:
        if bucket_seconds <= 0:
            raise ValueError("bucket_seconds must be positive")
        self.bucket_seconds = float(bucket_seconds)

    def fetch(self, source: SourceConfig, now: float) -> List[RawReading]:
        bucket = time_bucket(now, self.bucket_seconds)
        return [
            {
                "id": sensor.raw_id,
                "name": sensor.name,
                "location": sensor.location,
                "value": simulate(index, bucket),
                "unit": DEMO_UNIT,
                "timestamp": now,
                "isOnline": True,
            }
            for index, sensor in enumerate(DEMO_SENSORS)
        ]
