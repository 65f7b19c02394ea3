"""Headless flight loop: the caller side of the engine.

A session owns the current shot, an optional drag-free ghost of it, a short
history of earlier paths and a challenge engine. It turns outer frame times
into fixed sub-steps and decides when a flight is over.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import math
from typing import Optional

from .analysis import EnergyReading, FlightStats, energy
from .challenge import ChallengeEngine, ChallengeInfo, CollisionResult
from .config import (
    DEFAULT_ANGLE,
    DEFAULT_GRAVITY,
    DEFAULT_SPEED,
    PLANET_GRAVITY,
    PRESETS,
    STEPPING,
    SteppingConfig,
)
from .logging_utils import log_key_values
from .router import BackendRouter
from .simulation import EntitySnapshot, ProjectileEntity, TrajectoryPath
from .vector_math import clamp

LOGGER = logging.getLogger("projectile_lab.session")


@dataclass(frozen=True, slots=True)
class FrameResult:
    finished: bool
    hit: bool = False
    ground: bool = False
    score: Optional[int] = None
    snapshot: Optional[EntitySnapshot] = None


class FlightSession:
    def __init__(
        self,
        router: Optional[BackendRouter] = None,
        *,
        gravity: float = DEFAULT_GRAVITY,
        air_resistance: bool = False,
        challenge: Optional[ChallengeEngine] = None,
        stepping: SteppingConfig = STEPPING,
        keep_history: bool = False,
        show_ideal: bool = False,
    ) -> None:
        self.router = router if router is not None else BackendRouter.with_accelerated()
        self.challenge = challenge if challenge is not None else ChallengeEngine()
        self.stepping = stepping
        self.gravity = gravity
        self.air_resistance = air_resistance
        self.keep_history = keep_history
        self.show_ideal = show_ideal
        self.speed = DEFAULT_SPEED
        self.angle = DEFAULT_ANGLE

        self.projectile: Optional[ProjectileEntity] = None
        self.ideal: Optional[ProjectileEntity] = None
        self.history: deque[TrajectoryPath] = deque(maxlen=stepping.history_length)
        self.stats = FlightStats()
        self.energy: Optional[EnergyReading] = None
        self.is_simulating = False

    def set_planet(self, name: str) -> float:
        self.gravity = PLANET_GRAVITY[name.lower()]
        return self.gravity

    def load_preset(self, name: str) -> None:
        preset = PRESETS[name]
        self.reset()
        self.speed = preset.speed
        self.angle = preset.angle
        self.air_resistance = preset.air_resistance
        if preset.gravity is not None:
            self.gravity = preset.gravity

    def fire(
        self,
        speed: Optional[float] = None,
        angle: Optional[float] = None,
        thrust: float = 0.0,
        fuel: float = 0.0,
    ) -> ProjectileEntity:
        """Launch a new shot from the origin. A shot already in flight is left alone."""
        if self.is_simulating and self.projectile is not None:
            return self.projectile

        if speed is not None:
            self.speed = speed
        if angle is not None:
            self.angle = angle

        if not self.keep_history:
            self.history.clear()
        elif self.projectile is not None:
            self.history.append(self.projectile.path)
        self._discard_shots()

        self.projectile = ProjectileEntity(self.router, 0.0, 0.0, self.speed, self.angle, thrust, fuel)
        if self.show_ideal and self.air_resistance:
            self.ideal = ProjectileEntity(
                self.router, 0.0, 0.0, self.speed, self.angle, prefer_reference=True
            )

        self.stats = FlightStats()
        self.energy = None
        self.is_simulating = True
        return self.projectile

    def advance(self, frame_dt: float) -> FrameResult:
        """Advance the current shot by one outer frame split into fixed sub-steps."""
        projectile = self.projectile
        if not self.is_simulating or projectile is None:
            return FrameResult(finished=True)

        max_frame_dt = self.stepping.max_frame_dt
        frame_dt = clamp(frame_dt, 0.0, max_frame_dt) if math.isfinite(frame_dt) else max_frame_dt
        if frame_dt <= 0.0:
            return FrameResult(finished=False, snapshot=projectile.snapshot())

        sub_dt = frame_dt / self.stepping.substeps
        for _ in range(self.stepping.substeps):
            projectile.update(sub_dt, self.gravity, self.air_resistance)
            if self.ideal is not None:
                self.ideal.update(sub_dt, self.gravity, False)

            self.stats.observe(projectile.x, projectile.y, projectile.time)
            self.energy = energy(projectile.vx, projectile.vy, projectile.y, self.gravity)

            collision = self.challenge.check_collision(
                (projectile.x, projectile.y), projectile.time, projectile.vy
            )
            out_of_bounds = (
                projectile.y < self.stepping.out_of_bounds_y
                or projectile.x > self.stepping.out_of_bounds_x
            )
            if collision.ground or out_of_bounds or not projectile.active:
                return self._finish(collision)

        return FrameResult(finished=False, snapshot=projectile.snapshot())

    def _finish(self, collision: CollisionResult) -> FrameResult:
        projectile = self.projectile
        self.is_simulating = False
        projectile.terminate()
        if self.ideal is not None:
            self.ideal.terminate()

        score = None
        if self.challenge.is_active:
            score = self.challenge.update_score(collision.hit)

        log_key_values(
            LOGGER.name,
            {
                "range": self.stats.range,
                "max_height": self.stats.max_height,
                "time": self.stats.flight_time,
                "backend": projectile.backend_kind.value,
                "hit": collision.hit if self.challenge.is_active else None,
                "score": score,
            },
            prefix="flight",
        )
        return FrameResult(
            finished=True,
            hit=collision.hit,
            ground=collision.ground,
            score=score,
            snapshot=projectile.snapshot(),
        )

    def run_to_completion(self, frame_dt: float = 1.0 / 60.0, max_frames: int = 100_000) -> FrameResult:
        result = FrameResult(finished=not self.is_simulating)
        for _ in range(max_frames):
            result = self.advance(frame_dt)
            if result.finished:
                break
        return result

    def start_challenge(self) -> ChallengeInfo:
        info = self.challenge.start_challenge()
        self.reset()
        return info

    def stop_challenge(self) -> None:
        self.challenge.stop_challenge()

    def _discard_shots(self) -> None:
        if self.projectile is not None:
            self.projectile.discard()
            self.projectile = None
        if self.ideal is not None:
            self.ideal.discard()
            self.ideal = None

    def reset(self) -> None:
        self.is_simulating = False
        self._discard_shots()
        self.history.clear()
        self.stats = FlightStats()
        self.energy = None
