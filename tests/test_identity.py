from __future__ import annotations

import math

import pytest

from projectile_lab.identity import IdentityExhaustedError, IdentitySlots
from projectile_lab.router import BackendKind, BackendRouter
from projectile_lab.simulation import ProjectileEntity


def test_identities_unique_while_live():
    slots = IdentitySlots(4)
    taken = [slots.acquire() for _ in range(4)]
    assert sorted(taken) == [0, 1, 2, 3]
    assert slots.live_count == 4


def test_released_identity_reused_after_wrap():
    slots = IdentitySlots(3)
    a, b, c = slots.acquire(), slots.acquire(), slots.acquire()
    slots.release(b)
    assert slots.acquire() == b

    slots.release(a)
    slots.release(c)
    # Cursor sits after b, so c comes back before a.
    assert slots.acquire() == c
    assert slots.acquire() == a


def test_exhaustion_is_an_explicit_error():
    slots = IdentitySlots(2)
    slots.acquire()
    slots.acquire()
    with pytest.raises(IdentityExhaustedError):
        slots.acquire()


def test_release_requires_live_identity():
    slots = IdentitySlots(2)
    with pytest.raises(ValueError):
        slots.release(1)
    with pytest.raises(ValueError):
        IdentitySlots(0)


def test_router_frees_identity_on_discard(router):
    capacity = router.slots.capacity
    entities = [ProjectileEntity(router, 0.0, 0.0, 10.0, 45.0) for _ in range(capacity)]
    assert len({e.identity for e in entities}) == capacity

    with pytest.raises(IdentityExhaustedError):
        ProjectileEntity(router, 0.0, 0.0, 10.0, 45.0)

    freed = entities[3]
    freed.discard()
    freed.discard()
    assert not freed.active

    replacement = ProjectileEntity(router, 0.0, 0.0, 10.0, 45.0)
    assert replacement.identity == freed.identity
    assert router.slots.live_count == capacity


def test_reused_slot_starts_clean(router):
    first = ProjectileEntity(router, 0.0, 0.0, 30.0, 45.0)
    for _ in range(50):
        first.update(0.01, 9.81, False)
    first.discard()

    for _ in range(router.slots.capacity - 1):
        ProjectileEntity(router, 0.0, 0.0, 1.0, 0.0).discard()

    again = ProjectileEntity(router, 5.0, 0.0, 10.0, 0.0)
    assert again.identity == first.identity
    again.update(0.01, 0.0, False)
    assert again.x == pytest.approx(5.1)
    assert again.time == pytest.approx(0.01)


def test_routers_on_one_capability_share_identities(capability):
    first = BackendRouter(capability, disable_accelerated=False)
    second = BackendRouter(capability, disable_accelerated=False)

    a = ProjectileEntity(first, 0.0, 0.0, 20.0, 45.0)
    b = ProjectileEntity(second, 100.0, 0.0, 5.0, 0.0)
    assert a.backend_kind is BackendKind.ACCELERATED
    assert b.backend_kind is BackendKind.ACCELERATED
    assert a.identity != b.identity

    a.update(0.01, 9.81, False)
    assert a.x == pytest.approx(20.0 * math.cos(math.radians(45.0)) * 0.01)
    assert b.x == 100.0


def test_discard_clears_accelerated_row(router, capability):
    entity = ProjectileEntity(router, 3.0, 1.0, 20.0, 45.0)
    entity.update(0.01, 9.81, False)
    identity = entity.identity

    entity.discard()
    assert capability.resolve("is_active")(identity) is False
    assert capability.resolve("get_x")(identity) == 0.0
    assert capability.resolve("get_time")(identity) == 0.0


def test_steering_after_discard_on_reference(reference_router):
    entity = ProjectileEntity(reference_router, 0.0, 0.0, 20.0, 45.0)
    entity.discard()

    entity.set_heading(30.0)
    entity.set_thrust(12.0)
    assert entity.heading_degrees == pytest.approx(30.0)
    assert entity.thrust == 12.0


def test_steering_after_discard_leaves_reused_slot_alone(router):
    old = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)
    old.discard()
    for _ in range(router.slots.capacity - 1):
        ProjectileEntity(router, 0.0, 0.0, 1.0, 0.0).discard()

    new = ProjectileEntity(router, 0.0, 10.0, 10.0, 0.0, thrust=0.0, fuel=5.0)
    assert new.identity == old.identity

    old.set_heading(0.0)
    old.set_thrust(50.0)
    assert old.thrust == 50.0

    new.update(0.01, 0.0, False)
    assert new.ax == 0.0
    assert new.x == pytest.approx(0.1)
