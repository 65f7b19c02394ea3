"""Bounded identity slots for live entities."""

from __future__ import annotations


class IdentityExhaustedError(RuntimeError):
    """Raised when every identity slot is held by a live entity."""


class IdentitySlots:
    """Fixed-size ring of integer identities with explicit liveness.

    Allocation scans forward from the slot after the last one handed out and
    wraps around, so a released identity is reused only once the ring comes
    back to it (or when nothing else is free).
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("Identity capacity must be positive")
        self._live = [False] * capacity
        self._cursor = 0

    @property
    def capacity(self) -> int:
        return len(self._live)

    @property
    def live_count(self) -> int:
        return sum(self._live)

    def is_live(self, identity: int) -> bool:
        return 0 <= identity < self.capacity and self._live[identity]

    def acquire(self) -> int:
        for offset in range(self.capacity):
            identity = (self._cursor + offset) % self.capacity
            if not self._live[identity]:
                self._live[identity] = True
                self._cursor = (identity + 1) % self.capacity
                return identity
        raise IdentityExhaustedError(
            f"All {self.capacity} identity slots are in use; discard an entity first"
        )

    def release(self, identity: int) -> None:
        if not self.is_live(identity):
            raise ValueError(f"Identity {identity} is not live")
        self._live[identity] = False
