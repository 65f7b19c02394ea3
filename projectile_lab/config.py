"""Central configuration for projectile_lab."""

from __future__ import annotations

from dataclasses import dataclass
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class PhysicsConfig:
    drag_coefficient: float = 0.05
    drag_min_speed: float = 0.1  # m/s, drag is skipped at or below this speed
    floor_y: float = -1000.0  # out-of-bounds floor, far below ground
    nominal_dt: float = 1.0 / 60.0
    max_step_dt: float = 0.25
    sample_interval: float = 0.05  # seconds of simulated time between path samples
    max_entities: int = 10


@dataclass(frozen=True, slots=True)
class SteppingConfig:
    substeps: int = 5
    max_frame_dt: float = 0.05
    out_of_bounds_x: float = 1000.0
    out_of_bounds_y: float = -10.0
    history_length: int = 5


@dataclass(frozen=True, slots=True)
class CollisionConfig:
    ground_margin: float = 0.0
    debounce_time: float = 0.1
    drop_margin: float = 5.0


@dataclass(frozen=True, slots=True)
class LaunchPreset:
    speed: float
    angle: float
    air_resistance: bool
    gravity: float | None = None


DISABLE_ACCEL = _env_flag("PROJECTILE_LAB_DISABLE_ACCEL", False)

PHYSICS = PhysicsConfig()
STEPPING = SteppingConfig()
COLLISION = CollisionConfig()

# m/s^2
PLANET_GRAVITY = {
    "earth": 9.81,
    "moon": 1.62,
    "mars": 3.71,
    "jupiter": 24.79,
}

# Presets leave gravity untouched unless they name one.
PRESETS = {
    "max-range": LaunchPreset(speed=30.0, angle=45.0, air_resistance=False),
    "moon-jump": LaunchPreset(speed=20.0, angle=45.0, air_resistance=False, gravity=1.62),
    "air-drag-test": LaunchPreset(speed=50.0, angle=30.0, air_resistance=True),
    "zero-g": LaunchPreset(speed=15.0, angle=10.0, air_resistance=False, gravity=0.0),
}

DEFAULT_SPEED = 20.0
DEFAULT_ANGLE = 45.0
DEFAULT_GRAVITY = PLANET_GRAVITY["earth"]
