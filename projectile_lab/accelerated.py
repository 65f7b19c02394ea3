"""Numba-compiled integration backend.

The compiled kernels work on one shared ``(capacity, N_FIELDS)`` float64 table,
one row per entity identity. Callers never touch the kernels directly: an
``AcceleratedCapability`` compiles them, tracks whether that worked, and
publishes them as named entry points. ``AcceleratedBackend`` adapts whatever
entry points a capability resolves to the ``IntegrationBackend`` contract.
"""

from __future__ import annotations

from enum import Enum, auto
from functools import partial
import logging
import math
from typing import Callable, Mapping, Optional

import numba
from numba.core.errors import NumbaError
import numpy as np

from .backend import IntegrationBackend
from .config import PHYSICS, PhysicsConfig
from .identity import IdentitySlots

LOGGER = logging.getLogger("projectile_lab.accelerated")

# Table columns
X = 0
Y = 1
VX = 2
VY = 3
AX = 4
AY = 5
TIME = 6
THRUST = 7
FUEL = 8
HEADING = 9  # radians
ACTIVE = 10
N_FIELDS = 11

REQUIRED_ENTRY_POINTS = (
    "init_projectile",
    "update_projectile",
    "get_x",
    "get_y",
    "get_vx",
    "get_vy",
    "get_time",
    "is_active",
)
OPTIONAL_ENTRY_POINTS = (
    "get_ax",
    "get_ay",
    "get_fuel",
    "get_heading",
    "set_heading",
    "set_thrust",
    "release_projectile",
)


@numba.njit(cache=True)
def _init_projectile(table, identity, x, y, speed, angle_deg, thrust, fuel):
    if identity < 0 or identity >= table.shape[0]:
        return
    angle = angle_deg * math.pi / 180.0
    table[identity, X] = x
    table[identity, Y] = y
    table[identity, VX] = speed * math.cos(angle)
    table[identity, VY] = speed * math.sin(angle)
    table[identity, AX] = 0.0
    table[identity, AY] = 0.0
    table[identity, TIME] = 0.0
    table[identity, THRUST] = thrust
    table[identity, FUEL] = fuel
    table[identity, HEADING] = angle
    table[identity, ACTIVE] = 1.0


@numba.njit(cache=True)
def _update_projectile(table, drag_k, drag_min_speed, floor_y, identity, dt, gravity, air_resistance):
    if identity < 0 or identity >= table.shape[0] or table[identity, ACTIVE] == 0.0:
        return

    ax = 0.0
    ay = -gravity

    fuel = table[identity, FUEL]
    thrust = table[identity, THRUST]
    if fuel > 0.0 and thrust > 0.0:
        heading = table[identity, HEADING]
        ax += math.cos(heading) * thrust
        ay += math.sin(heading) * thrust
        fuel -= dt
        if fuel < 0.0:
            fuel = 0.0
        table[identity, FUEL] = fuel

    vx = table[identity, VX]
    vy = table[identity, VY]
    if air_resistance:
        v = math.sqrt(vx * vx + vy * vy)
        if v > drag_min_speed:
            ax -= vx * (drag_k * v)
            ay -= vy * (drag_k * v)

    vx += ax * dt
    vy += ay * dt
    table[identity, AX] = ax
    table[identity, AY] = ay
    table[identity, VX] = vx
    table[identity, VY] = vy
    table[identity, X] += vx * dt
    table[identity, Y] += vy * dt
    table[identity, TIME] += dt

    if table[identity, Y] < floor_y:
        table[identity, ACTIVE] = 0.0


@numba.njit(cache=True)
def _set_heading(table, identity, angle_deg):
    if identity >= 0 and identity < table.shape[0]:
        table[identity, HEADING] = angle_deg * math.pi / 180.0


@numba.njit(cache=True)
def _set_thrust(table, identity, thrust):
    if identity >= 0 and identity < table.shape[0]:
        table[identity, THRUST] = thrust


@numba.njit(cache=True)
def _release_projectile(table, identity):
    if identity >= 0 and identity < table.shape[0]:
        table[identity, :] = 0.0


def _getter(table: np.ndarray, column: int) -> Callable[[int], float]:
    def read(identity: int) -> float:
        return float(table[identity, column])

    return read


def build_entry_points(table: np.ndarray, physics: PhysicsConfig = PHYSICS) -> dict[str, Callable]:
    entry_points: dict[str, Callable] = {
        "init_projectile": partial(_init_projectile, table),
        "update_projectile": partial(
            _update_projectile,
            table,
            physics.drag_coefficient,
            physics.drag_min_speed,
            physics.floor_y,
        ),
        "set_heading": partial(_set_heading, table),
        "set_thrust": partial(_set_thrust, table),
        "release_projectile": partial(_release_projectile, table),
        "is_active": lambda identity: bool(table[identity, ACTIVE]),
    }
    for name, column in (
        ("get_x", X),
        ("get_y", Y),
        ("get_vx", VX),
        ("get_vy", VY),
        ("get_ax", AX),
        ("get_ay", AY),
        ("get_time", TIME),
        ("get_fuel", FUEL),
        ("get_heading", HEADING),
    ):
        entry_points[name] = _getter(table, column)
    return entry_points


class CapabilityState(Enum):
    NOT_LOADED = auto()
    LOADING = auto()
    READY = auto()
    FAILED = auto()


class AcceleratedCapability:
    """Readiness state and named entry points of the accelerated backend."""

    def __init__(self, capacity: int = PHYSICS.max_entities, physics: PhysicsConfig = PHYSICS) -> None:
        self.capacity = capacity
        self.physics = physics
        self.state = CapabilityState.NOT_LOADED
        self.error: str | None = None
        self._entry_points: dict[str, Callable] = {}
        # One identity ring per table; every router on this capability draws from it.
        self.slots = IdentitySlots(capacity)

    @classmethod
    def from_entry_points(
        cls,
        entry_points: Mapping[str, Callable],
        capacity: int = PHYSICS.max_entities,
    ) -> "AcceleratedCapability":
        """Wrap an externally provided set of entry points as a ready capability."""
        capability = cls(capacity=capacity)
        capability._entry_points = dict(entry_points)
        capability.state = CapabilityState.READY
        return capability

    def load(self) -> CapabilityState:
        """Compile the kernels and publish their entry points."""
        if self.state in (CapabilityState.LOADING, CapabilityState.READY):
            return self.state

        self.state = CapabilityState.LOADING
        table = np.zeros((self.capacity, N_FIELDS), dtype=np.float64)
        entry_points = build_entry_points(table, self.physics)
        try:
            # Compile with the argument types used at runtime, then clear the scratch row.
            entry_points["init_projectile"](0, 0.0, 0.0, 1.0, 45.0, 0.0, 0.0)
            entry_points["update_projectile"](0, 0.01, 9.81, True)
            entry_points["set_heading"](0, 45.0)
            entry_points["set_thrust"](0, 0.0)
            entry_points["release_projectile"](0)
        except NumbaError as exc:
            self.state = CapabilityState.FAILED
            self.error = str(exc)
            LOGGER.error("accelerated backend failed to compile: %s", exc)
            return self.state

        table[:] = 0.0
        self._entry_points = entry_points
        self.state = CapabilityState.READY
        LOGGER.debug("accelerated backend ready (capacity=%d)", self.capacity)
        return self.state

    @property
    def is_ready(self) -> bool:
        return self.state is CapabilityState.READY

    def resolve(self, name: str) -> Optional[Callable]:
        if not self.is_ready:
            return None
        return self._entry_points.get(name)

    def missing_entry_points(self) -> tuple[str, ...]:
        return tuple(name for name in REQUIRED_ENTRY_POINTS if self.resolve(name) is None)

    @property
    def usable(self) -> bool:
        return self.is_ready and not self.missing_entry_points()


class AcceleratedBackend(IntegrationBackend):
    """Adapts a capability's entry points to the backend contract."""

    name = "accelerated"

    def __init__(self, capability: AcceleratedCapability) -> None:
        missing = capability.missing_entry_points()
        if not capability.is_ready or missing:
            raise ValueError(f"Capability is not usable (state={capability.state.name}, missing={missing})")
        self.capability = capability
        self._init = capability.resolve("init_projectile")
        self._update = capability.resolve("update_projectile")
        self._get_x = capability.resolve("get_x")
        self._get_y = capability.resolve("get_y")
        self._get_vx = capability.resolve("get_vx")
        self._get_vy = capability.resolve("get_vy")
        self._get_time = capability.resolve("get_time")
        self._is_active = capability.resolve("is_active")
        self._get_ax = capability.resolve("get_ax")
        self._get_ay = capability.resolve("get_ay")
        self._get_fuel = capability.resolve("get_fuel")
        self._get_heading = capability.resolve("get_heading")
        self._set_heading = capability.resolve("set_heading")
        self._set_thrust = capability.resolve("set_thrust")
        self._release = capability.resolve("release_projectile")

        absent = [name for name in OPTIONAL_ENTRY_POINTS if capability.resolve(name) is None]
        if absent:
            LOGGER.debug("accelerated backend lacks optional entry points: %s", ", ".join(absent))

    def init(self, identity, x, y, speed, angle_degrees, thrust=0.0, fuel=0.0):
        self._init(
            int(identity),
            float(x),
            float(y),
            float(speed),
            float(angle_degrees),
            float(thrust),
            float(fuel),
        )

    def step(self, identity, dt, gravity, air_resistance):
        self._update(int(identity), float(dt), float(gravity), bool(air_resistance))

    def position(self, identity):
        return float(self._get_x(identity)), float(self._get_y(identity))

    def velocity(self, identity):
        return float(self._get_vx(identity)), float(self._get_vy(identity))

    def elapsed(self, identity):
        return float(self._get_time(identity))

    def is_active(self, identity):
        return bool(self._is_active(identity))

    def acceleration(self, identity):
        if self._get_ax is None or self._get_ay is None:
            return None
        return float(self._get_ax(identity)), float(self._get_ay(identity))

    def fuel(self, identity):
        if self._get_fuel is None:
            return None
        return float(self._get_fuel(identity))

    def heading(self, identity):
        if self._get_heading is None:
            return None
        return float(self._get_heading(identity))

    def set_heading(self, identity, angle_degrees):
        if self._set_heading is None:
            return False
        self._set_heading(int(identity), float(angle_degrees))
        return True

    def set_thrust(self, identity, thrust):
        if self._set_thrust is None:
            return False
        self._set_thrust(int(identity), float(thrust))
        return True

    def release(self, identity):
        if self._release is not None:
            self._release(int(identity))
