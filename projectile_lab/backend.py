"""Integration backend contract and the pure-Python reference backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import math
from typing import Optional

import numpy as np

from .config import PHYSICS, PhysicsConfig
from .vector_math import Vector, from_polar, heading_vector, magnitude


class IntegrationBackend(ABC):
    """Advances one entity, addressed by identity, by one fixed time slice.

    Position, velocity, elapsed time and the active flag are required.
    Acceleration, fuel and heading are optional: a backend that cannot report
    them returns ``None``. Steering mutators return whether the backend acted
    on the request.
    """

    name = "abstract"

    @abstractmethod
    def init(
        self,
        identity: int,
        x: float,
        y: float,
        speed: float,
        angle_degrees: float,
        thrust: float = 0.0,
        fuel: float = 0.0,
    ) -> None:
        ...

    @abstractmethod
    def step(self, identity: int, dt: float, gravity: float, air_resistance: bool) -> None:
        ...

    @abstractmethod
    def position(self, identity: int) -> tuple[float, float]:
        ...

    @abstractmethod
    def velocity(self, identity: int) -> tuple[float, float]:
        ...

    @abstractmethod
    def elapsed(self, identity: int) -> float:
        ...

    @abstractmethod
    def is_active(self, identity: int) -> bool:
        ...

    def acceleration(self, identity: int) -> Optional[tuple[float, float]]:
        return None

    def fuel(self, identity: int) -> Optional[float]:
        return None

    def heading(self, identity: int) -> Optional[float]:
        """Current heading in radians."""
        return None

    def set_heading(self, identity: int, angle_degrees: float) -> bool:
        return False

    def set_thrust(self, identity: int, thrust: float) -> bool:
        return False

    def release(self, identity: int) -> None:
        """Forget any per-identity state."""


@dataclass(slots=True)
class BodyState:
    position: Vector
    velocity: Vector
    acceleration: Vector
    time: float = 0.0
    heading: float = 0.0  # radians
    thrust: float = 0.0
    fuel: float = 0.0
    active: bool = True


class ReferenceBackend(IntegrationBackend):
    """Self-contained semi-implicit Euler integrator."""

    name = "reference"

    def __init__(self, physics: PhysicsConfig = PHYSICS) -> None:
        self.physics = physics
        self._bodies: dict[int, BodyState] = {}

    def init(self, identity, x, y, speed, angle_degrees, thrust=0.0, fuel=0.0):
        self._bodies[identity] = BodyState(
            position=np.array([x, y], dtype=np.float64),
            velocity=from_polar(speed, angle_degrees),
            acceleration=np.zeros(2, dtype=np.float64),
            heading=math.radians(angle_degrees),
            thrust=float(thrust),
            fuel=float(fuel),
        )

    def seed(
        self,
        identity: int,
        *,
        position: tuple[float, float],
        velocity: tuple[float, float],
        time: float,
        heading: float,
        thrust: float,
        fuel: float,
    ) -> None:
        """Install an arbitrary state as a fresh initial condition."""
        self._bodies[identity] = BodyState(
            position=np.array(position, dtype=np.float64),
            velocity=np.array(velocity, dtype=np.float64),
            acceleration=np.zeros(2, dtype=np.float64),
            time=float(time),
            heading=float(heading),
            thrust=float(thrust),
            fuel=float(fuel),
        )

    def step(self, identity, dt, gravity, air_resistance):
        body = self._bodies[identity]
        if not body.active:
            return

        physics = self.physics
        with np.errstate(over="ignore", invalid="ignore"):
            acc = np.array([0.0, -gravity], dtype=np.float64)

            if body.fuel > 0 and body.thrust > 0:
                acc = acc + heading_vector(body.heading) * body.thrust
                body.fuel = max(body.fuel - dt, 0.0)

            if air_resistance:
                speed = magnitude(body.velocity)
                if speed > physics.drag_min_speed:
                    acc = acc - body.velocity * (physics.drag_coefficient * speed)

            body.acceleration = acc
            body.velocity = body.velocity + acc * dt
            body.position = body.position + body.velocity * dt
            body.time += dt

        if body.position[1] < physics.floor_y:
            body.active = False

    def position(self, identity):
        x, y = self._bodies[identity].position
        return float(x), float(y)

    def velocity(self, identity):
        vx, vy = self._bodies[identity].velocity
        return float(vx), float(vy)

    def elapsed(self, identity):
        return self._bodies[identity].time

    def is_active(self, identity):
        return self._bodies[identity].active

    def acceleration(self, identity):
        ax, ay = self._bodies[identity].acceleration
        return float(ax), float(ay)

    def fuel(self, identity):
        return self._bodies[identity].fuel

    def heading(self, identity):
        return self._bodies[identity].heading

    def set_heading(self, identity, angle_degrees):
        self._bodies[identity].heading = math.radians(angle_degrees)
        return True

    def set_thrust(self, identity, thrust):
        self._bodies[identity].thrust = float(thrust)
        return True

    def release(self, identity):
        self._bodies.pop(identity, None)
