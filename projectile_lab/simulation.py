from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Iterator, Optional

import numpy as np

from .router import BackendHandle, BackendKind, BackendRouter
from .vector_math import Vector, from_polar, is_finite, magnitude

LOGGER = logging.getLogger("projectile_lab.simulation")


@dataclass(frozen=True, slots=True)
class PathSample:
    x: float
    y: float
    vx: float
    vy: float
    ax: float
    ay: float
    time: float


@dataclass(slots=True)
class BoundingBox:
    min_x: float = math.inf
    min_y: float = math.inf
    max_x: float = -math.inf
    max_y: float = -math.inf

    @property
    def empty(self) -> bool:
        return self.min_x > self.max_x

    @property
    def width(self) -> float:
        return 0.0 if self.empty else self.max_x - self.min_x

    @property
    def height(self) -> float:
        return 0.0 if self.empty else self.max_y - self.min_y

    def include(self, x: float, y: float) -> None:
        self.min_x = min(self.min_x, x)
        self.min_y = min(self.min_y, y)
        self.max_x = max(self.max_x, x)
        self.max_y = max(self.max_y, y)


class TrajectoryPath:
    """Append-only, time-ordered record of samples with a running bounding box."""

    def __init__(self) -> None:
        self._samples: list[PathSample] = []
        self.bbox = BoundingBox()

    def append(self, sample: PathSample) -> None:
        if self._samples and sample.time < self._samples[-1].time:
            raise ValueError("Path samples must be appended in time order")
        self._samples.append(sample)
        self.bbox.include(sample.x, sample.y)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PathSample]:
        return iter(self._samples)

    def __getitem__(self, index: int) -> PathSample:
        return self._samples[index]

    @property
    def samples(self) -> tuple[PathSample, ...]:
        return tuple(self._samples)

    def as_array(self) -> np.ndarray:
        """Samples as an (n, 7) array of x, y, vx, vy, ax, ay, time."""
        if not self._samples:
            return np.empty((0, 7), dtype=np.float64)
        return np.array(
            [(s.x, s.y, s.vx, s.vy, s.ax, s.ay, s.time) for s in self._samples],
            dtype=np.float64,
        )


@dataclass(frozen=True, slots=True)
class EntitySnapshot:
    identity: int
    x: float
    y: float
    vx: float
    vy: float
    ax: float
    ay: float
    time: float
    heading: float
    fuel: float
    thrust: float
    active: bool

    @property
    def position(self) -> tuple[float, float]:
        return self.x, self.y


def _keep_finite(current: float, fresh: Optional[float]) -> float:
    if fresh is None or not math.isfinite(fresh):
        return current
    return fresh


class ProjectileEntity:
    """One simulated projectile.

    Physics is delegated to whichever backend the router handed out. Every
    value read back from the backend is checked before it replaces the
    entity's own copy, so the fields below only ever hold finite numbers. A
    non-finite position from the accelerated backend moves the entity onto a
    reference backend seeded from its last good state.
    """

    def __init__(
        self,
        router: BackendRouter,
        x: float,
        y: float,
        speed: float,
        angle_degrees: float,
        thrust: float = 0.0,
        fuel: float = 0.0,
        *,
        prefer_reference: bool = False,
    ) -> None:
        if not is_finite(x, y, speed, angle_degrees, thrust, fuel):
            raise ValueError("Launch parameters must be finite")

        self.physics = router.physics
        self._router = router
        self._handle: BackendHandle = router.select(prefer_reference=prefer_reference)
        self._handle.backend.init(self._handle.identity, x, y, speed, angle_degrees, thrust, fuel)
        self._discarded = False

        vx, vy = from_polar(speed, angle_degrees)
        self.x = float(x)
        self.y = float(y)
        self.vx = float(vx)
        self.vy = float(vy)
        self.ax = 0.0
        self.ay = 0.0
        self.time = 0.0
        self.heading = math.radians(angle_degrees)
        self.fuel = float(fuel)
        self.thrust = float(thrust)
        self.active = True

        self.path = TrajectoryPath()
        self._append_sample()

    @property
    def identity(self) -> int:
        return self._handle.identity

    @property
    def backend_kind(self) -> BackendKind:
        return self._handle.kind

    @property
    def bbox(self) -> BoundingBox:
        return self.path.bbox

    @property
    def position(self) -> Vector:
        return np.array([self.x, self.y], dtype=np.float64)

    @property
    def velocity(self) -> Vector:
        return np.array([self.vx, self.vy], dtype=np.float64)

    @property
    def acceleration(self) -> Vector:
        return np.array([self.ax, self.ay], dtype=np.float64)

    @property
    def speed(self) -> float:
        return magnitude(self.velocity)

    @property
    def heading_degrees(self) -> float:
        return math.degrees(self.heading)

    def _checked_dt(self, dt: float) -> float:
        try:
            value = float(dt)
        except (TypeError, ValueError):
            value = math.nan
        if not math.isfinite(value) or value <= 0.0 or value > self.physics.max_step_dt:
            LOGGER.debug("replacing dt=%r with nominal %.4f", dt, self.physics.nominal_dt)
            return self.physics.nominal_dt
        return value

    def _seed_state(self) -> dict[str, float]:
        return {
            "position": (self.x, self.y),
            "velocity": (self.vx, self.vy),
            "time": self.time,
            "heading": self.heading,
            "thrust": self.thrust,
            "fuel": self.fuel,
        }

    def update(self, dt: float, gravity: float, air_resistance: bool) -> None:
        if not self.active:
            return

        dt = self._checked_dt(dt)
        identity = self._handle.identity
        backend = self._handle.backend
        backend.step(identity, dt, gravity, air_resistance)

        if self._handle.kind is BackendKind.ACCELERATED and not is_finite(*backend.position(identity)):
            self._handle = self._router.fallback(self._handle, **self._seed_state())
            backend = self._handle.backend
            backend.step(identity, dt, gravity, air_resistance)

        if not is_finite(*backend.position(identity)):
            LOGGER.warning("entity %d diverged on the reference backend, terminating at t=%.3f", identity, self.time)
            self.terminate()
            return

        previous_time = self.time
        self._read_backend()
        if self.active and self._crossed_sample_boundary(previous_time):
            self._append_sample()

    def _read_backend(self) -> None:
        backend = self._handle.backend
        identity = self._handle.identity

        x, y = backend.position(identity)
        vx, vy = backend.velocity(identity)
        acceleration = backend.acceleration(identity)
        ax, ay = acceleration if acceleration is not None else (0.0, 0.0)
        fuel = backend.fuel(identity)

        self.x = _keep_finite(self.x, x)
        self.y = _keep_finite(self.y, y)
        self.vx = _keep_finite(self.vx, vx)
        self.vy = _keep_finite(self.vy, vy)
        self.ax = _keep_finite(self.ax, ax)
        self.ay = _keep_finite(self.ay, ay)
        self.time = _keep_finite(self.time, backend.elapsed(identity))
        self.fuel = _keep_finite(self.fuel, fuel if fuel is not None else 0.0)
        # Without a heading accessor the mirrored heading is the best we know.
        self.heading = _keep_finite(self.heading, backend.heading(identity))
        self.active = self.active and backend.is_active(identity)

    def _crossed_sample_boundary(self, previous_time: float) -> bool:
        interval = self.physics.sample_interval
        return math.floor(self.time / interval) > math.floor(previous_time / interval)

    def _append_sample(self) -> None:
        if not is_finite(self.x, self.y):
            return
        self.path.append(
            PathSample(
                x=self.x,
                y=self.y,
                vx=self.vx,
                vy=self.vy,
                ax=self.ax,
                ay=self.ay,
                time=self.time,
            )
        )

    def set_heading(self, angle_degrees: float) -> None:
        """Point the thrust along ``angle_degrees`` from the +x axis."""
        angle = float(angle_degrees)
        if not math.isfinite(angle):
            LOGGER.debug("ignoring non-finite heading %r", angle_degrees)
            return
        if not self._discarded:
            self._handle.backend.set_heading(self._handle.identity, angle)
        self.heading = math.radians(angle)

    def set_thrust(self, value: float) -> None:
        thrust = float(value)
        if not math.isfinite(thrust):
            LOGGER.debug("ignoring non-finite thrust %r", value)
            return
        if not self._discarded:
            self._handle.backend.set_thrust(self._handle.identity, thrust)
        self.thrust = thrust

    def terminate(self) -> None:
        """End the flight; no further physics updates are applied."""
        self.active = False

    def discard(self) -> None:
        """Terminate and give the identity back to the router."""
        self.active = False
        if not self._discarded:
            self._discarded = True
            self._router.release(self._handle)

    def snapshot(self) -> EntitySnapshot:
        return EntitySnapshot(
            identity=self.identity,
            x=self.x,
            y=self.y,
            vx=self.vx,
            vy=self.vy,
            ax=self.ax,
            ay=self.ay,
            time=self.time,
            heading=self.heading,
            fuel=self.fuel,
            thrust=self.thrust,
            active=self.active,
        )
