"""Backend selection and per-entity fallback."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional

from .accelerated import AcceleratedBackend, AcceleratedCapability
from .backend import IntegrationBackend, ReferenceBackend
from .config import DISABLE_ACCEL, PHYSICS, PhysicsConfig
from .identity import IdentitySlots

LOGGER = logging.getLogger("projectile_lab.router")


class BackendKind(Enum):
    REFERENCE = "reference"
    ACCELERATED = "accelerated"


@dataclass(frozen=True, slots=True)
class BackendHandle:
    """Which backend drives an entity, and under which identity."""

    kind: BackendKind
    backend: IntegrationBackend
    identity: int


class BackendRouter:
    """Hands out identities and backends to entities.

    The accelerated backend is chosen only when the capability is ready and
    resolves every required entry point. Otherwise entities get a private
    reference backend and the degradation is logged once per router.
    """

    def __init__(
        self,
        capability: Optional[AcceleratedCapability] = None,
        physics: PhysicsConfig = PHYSICS,
        *,
        disable_accelerated: bool = DISABLE_ACCEL,
    ) -> None:
        self.capability = capability
        self.physics = physics
        self.disable_accelerated = disable_accelerated
        if capability is not None:
            self.slots = capability.slots
        else:
            self.slots = IdentitySlots(physics.max_entities)
        self.fallback_count = 0
        self._accelerated: Optional[AcceleratedBackend] = None
        self._degradation_reported = False

    @classmethod
    def with_accelerated(cls, physics: PhysicsConfig = PHYSICS) -> "BackendRouter":
        """Build a router around a freshly compiled accelerated capability."""
        capability = AcceleratedCapability(capacity=physics.max_entities, physics=physics)
        if not DISABLE_ACCEL:
            capability.load()
        return cls(capability, physics)

    def _accelerated_backend(self) -> Optional[AcceleratedBackend]:
        if self._accelerated is None and not self.disable_accelerated:
            if self.capability is not None and self.capability.usable:
                self._accelerated = AcceleratedBackend(self.capability)
        return self._accelerated

    def _report_degradation(self) -> None:
        if self._degradation_reported:
            return
        self._degradation_reported = True
        if self.disable_accelerated:
            reason = "disabled"
        elif self.capability is None:
            reason = "no capability"
        elif not self.capability.is_ready:
            reason = f"state={self.capability.state.name}"
        else:
            reason = "missing " + ",".join(self.capability.missing_entry_points())
        LOGGER.warning("accelerated backend unavailable (%s), using reference backend", reason)

    @property
    def accelerated_available(self) -> bool:
        return self._accelerated_backend() is not None

    def select(self, *, prefer_reference: bool = False) -> BackendHandle:
        identity = self.slots.acquire()
        if not prefer_reference:
            accelerated = self._accelerated_backend()
            if accelerated is not None:
                return BackendHandle(BackendKind.ACCELERATED, accelerated, identity)
            self._report_degradation()
        return BackendHandle(BackendKind.REFERENCE, ReferenceBackend(self.physics), identity)

    def fallback(self, handle: BackendHandle, **seed: float) -> BackendHandle:
        """Replace a diverged accelerated backend with a seeded reference one."""
        self.fallback_count += 1
        LOGGER.warning(
            "entity %d produced a non-finite state on the %s backend, continuing on reference",
            handle.identity,
            handle.kind.value,
        )
        handle.backend.release(handle.identity)
        reference = ReferenceBackend(self.physics)
        reference.seed(handle.identity, **seed)
        return BackendHandle(BackendKind.REFERENCE, reference, handle.identity)

    def release(self, handle: BackendHandle) -> None:
        handle.backend.release(handle.identity)
        self.slots.release(handle.identity)
