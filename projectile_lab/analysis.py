"""Energy bookkeeping and closed-form references for drag-free flight."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable

from .simulation import PathSample


@dataclass(frozen=True, slots=True)
class EnergyReading:
    """Energy per unit mass (J/kg)."""

    kinetic: float
    potential: float

    @property
    def total(self) -> float:
        return self.kinetic + self.potential


def energy(vx: float, vy: float, y: float, gravity: float) -> EnergyReading:
    # Potential energy is measured from ground level and never goes negative.
    return EnergyReading(
        kinetic=0.5 * (vx * vx + vy * vy),
        potential=gravity * max(0.0, y),
    )


def ideal_range(speed: float, angle_degrees: float, gravity: float) -> float:
    """R = v0^2 sin(2θ) / g for a launch and landing at ground level."""
    if gravity <= 0:
        return math.inf
    return speed**2 * math.sin(2 * math.radians(angle_degrees)) / gravity


def ideal_apex(speed: float, angle_degrees: float, gravity: float) -> float:
    if gravity <= 0:
        return math.inf
    vy = speed * math.sin(math.radians(angle_degrees))
    return vy * vy / (2 * gravity)


def ideal_flight_time(speed: float, angle_degrees: float, gravity: float) -> float:
    if gravity <= 0:
        return math.inf
    return 2 * speed * math.sin(math.radians(angle_degrees)) / gravity


@dataclass(slots=True)
class FlightStats:
    range: float = 0.0
    max_height: float = 0.0
    flight_time: float = 0.0

    def observe(self, x: float, y: float, time: float) -> None:
        self.range = x
        self.max_height = max(self.max_height, y)
        self.flight_time = time

    @classmethod
    def from_samples(cls, samples: Iterable[PathSample]) -> "FlightStats":
        stats = cls()
        for sample in samples:
            stats.observe(sample.x, sample.y, sample.time)
        return stats
