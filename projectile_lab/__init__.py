"""Projectile flight simulation with swappable integration backends."""

from .accelerated import AcceleratedCapability, CapabilityState
from .backend import IntegrationBackend, ReferenceBackend
from .challenge import ChallengeEngine, ChallengePolicy, ChallengeType
from .identity import IdentityExhaustedError
from .router import BackendKind, BackendRouter
from .session import FlightSession
from .simulation import PathSample, ProjectileEntity

__version__ = "0.1.0"

__all__ = [
    "AcceleratedCapability",
    "BackendKind",
    "BackendRouter",
    "CapabilityState",
    "ChallengeEngine",
    "ChallengePolicy",
    "ChallengeType",
    "FlightSession",
    "IdentityExhaustedError",
    "IntegrationBackend",
    "PathSample",
    "ProjectileEntity",
    "ReferenceBackend",
]
