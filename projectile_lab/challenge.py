from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import math
from typing import Optional, Sequence

import numpy as np

from .config import COLLISION, CollisionConfig

LOGGER = logging.getLogger("projectile_lab.challenge")


class ChallengeType(Enum):
    NORMAL = "normal"
    HIGH_ALTITUDE = "high_altitude"
    PRECISION = "precision"


@dataclass(frozen=True, slots=True)
class TargetProfile:
    width: float
    points: int
    altitude_range: tuple[int, int] = (0, 1)  # integers drawn from [low, high)


TARGET_PROFILES = {
    ChallengeType.NORMAL: TargetProfile(width=3.0, points=10),
    ChallengeType.HIGH_ALTITUDE: TargetProfile(width=4.0, points=10, altitude_range=(10, 25)),
    ChallengeType.PRECISION: TargetProfile(width=1.5, points=20),
}


@dataclass(frozen=True, slots=True)
class ChallengePolicy:
    """How a challenge session starts and which targets it spawns."""

    reset_score_on_start: bool = True
    challenge_types: tuple[ChallengeType, ...] = (ChallengeType.NORMAL,)
    distance_range: tuple[int, int] = (20, 100)  # integers drawn from [low, high)

    def __post_init__(self) -> None:
        if not self.challenge_types:
            raise ValueError("A challenge policy needs at least one challenge type")
        low, high = self.distance_range
        if low >= high:
            raise ValueError("distance_range must be an increasing (low, high) pair")

    @classmethod
    def classic(cls) -> "ChallengePolicy":
        return cls(
            reset_score_on_start=True,
            challenge_types=(ChallengeType.NORMAL,),
            distance_range=(20, 100),
        )

    @classmethod
    def arcade(cls) -> "ChallengePolicy":
        return cls(
            reset_score_on_start=False,
            challenge_types=tuple(ChallengeType),
            distance_range=(30, 120),
        )


@dataclass(frozen=True, slots=True)
class ChallengeInfo:
    target_distance: float
    target_altitude: float
    score: int
    description: str


@dataclass(frozen=True, slots=True)
class CollisionResult:
    hit: bool
    ground: bool


@dataclass
class ChallengeEngine:
    """Target placement, collision checks and scoring for one session.

    The engine never sees an entity, only the numbers the caller hands over.
    """

    policy: ChallengePolicy = field(default_factory=ChallengePolicy.classic)
    collision: CollisionConfig = COLLISION
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    score: int = 0
    is_active: bool = False
    challenge_type: ChallengeType = ChallengeType.NORMAL
    target_distance: float = 0.0
    target_altitude: float = 0.0
    target_width: float = TARGET_PROFILES[ChallengeType.NORMAL].width

    def start_challenge(self) -> ChallengeInfo:
        self.is_active = True
        if self.policy.reset_score_on_start:
            self.score = 0
        self._next_target()
        LOGGER.debug(
            "challenge started: %s target at %.0fm (altitude %.0fm)",
            self.challenge_type.value,
            self.target_distance,
            self.target_altitude,
        )
        return self.info()

    def stop_challenge(self) -> None:
        self.is_active = False

    def info(self) -> ChallengeInfo:
        return ChallengeInfo(
            target_distance=self.target_distance,
            target_altitude=self.target_altitude,
            score=self.score,
            description=self.description,
        )

    def _next_target(self) -> None:
        types = self.policy.challenge_types
        self.challenge_type = types[int(self.rng.integers(len(types)))]
        self.spawn_target()

    def spawn_target(self) -> None:
        """Place a new target for the current challenge type."""
        profile = TARGET_PROFILES[self.challenge_type]
        self.target_distance = float(self.rng.integers(*self.policy.distance_range))
        self.target_altitude = float(self.rng.integers(*profile.altitude_range))
        self.target_width = profile.width

    def place_target(
        self,
        distance: float,
        *,
        altitude: float = 0.0,
        challenge_type: ChallengeType = ChallengeType.NORMAL,
        width: Optional[float] = None,
    ) -> None:
        """Put the target at a known spot instead of a random one."""
        self.challenge_type = challenge_type
        self.target_distance = float(distance)
        self.target_altitude = float(altitude)
        self.target_width = TARGET_PROFILES[challenge_type].width if width is None else float(width)

    @property
    def description(self) -> str:
        if self.challenge_type is ChallengeType.HIGH_ALTITUDE:
            return f"Intercept the target at {self.target_altitude:g}m altitude!"
        if self.challenge_type is ChallengeType.PRECISION:
            return (
                f"Precision Strike! Hit the tiny {self.target_width:g}m target "
                f"at {self.target_distance:g}m."
            )
        return f"Hit the target at {self.target_distance:g}m."

    def check_collision(
        self,
        position: Sequence[float],
        elapsed_time: float,
        vertical_velocity: Optional[float] = None,
    ) -> CollisionResult:
        """Evaluate a hit on the target and flight termination independently.

        ``ground`` is true once the entity is at or below the target altitude
        (less ``ground_margin``) after the launch debounce, or has dropped more
        than ``drop_margin`` below it. For targets raised above ground the
        altitude checks only apply while descending when ``vertical_velocity``
        is given; plain ground contact always counts.
        """
        x, y = float(position[0]), float(position[1])
        cfg = self.collision
        altitude = self.target_altitude

        distance = math.hypot(x - self.target_distance, y - altitude)
        hit = distance <= self.target_width / 2

        debounced = elapsed_time > cfg.debounce_time
        relative_ground = (y <= altitude - cfg.ground_margin and debounced) or (
            y < altitude - cfg.drop_margin
        )
        if altitude > 0 and vertical_velocity is not None:
            relative_ground = relative_ground and vertical_velocity <= 0
            relative_ground = relative_ground or (y <= -cfg.ground_margin and debounced)

        return CollisionResult(hit=hit, ground=relative_ground)

    def update_score(self, hit: bool) -> int:
        if hit:
            self.score += TARGET_PROFILES[self.challenge_type].points
            if self.is_active:
                self._next_target()
        return self.score
