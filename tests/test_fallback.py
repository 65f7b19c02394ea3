from __future__ import annotations

import logging
import math

import pytest

from projectile_lab.accelerated import AcceleratedCapability, CapabilityState
from projectile_lab.backend import ReferenceBackend
from projectile_lab.router import BackendKind, BackendRouter
from projectile_lab.simulation import ProjectileEntity


def observable(entity: ProjectileEntity) -> tuple[float, ...]:
    s = entity.snapshot()
    return (s.x, s.y, s.vx, s.vy, s.ax, s.ay, s.time, s.heading, s.fuel, s.thrust)


def test_unloaded_capability_selects_reference(caplog):
    router = BackendRouter(AcceleratedCapability(), disable_accelerated=False)
    with caplog.at_level(logging.WARNING, logger="projectile_lab.router"):
        first = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)
        second = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)

    assert first.backend_kind is BackendKind.REFERENCE
    assert second.backend_kind is BackendKind.REFERENCE
    warnings = [r for r in caplog.records if "unavailable" in r.getMessage()]
    assert len(warnings) == 1
    assert "NOT_LOADED" in warnings[0].getMessage()


def test_missing_required_entry_point_selects_reference(make_diverging_capability, caplog):
    capability = make_diverging_capability(after_steps=10**9, drop=("update_projectile",))
    assert capability.is_ready
    assert capability.missing_entry_points() == ("update_projectile",)

    router = BackendRouter(capability, disable_accelerated=False)
    with caplog.at_level(logging.WARNING, logger="projectile_lab.router"):
        entity = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)

    assert entity.backend_kind is BackendKind.REFERENCE
    assert not router.accelerated_available
    assert "update_projectile" in caplog.text


def test_capability_states(capability):
    fresh = AcceleratedCapability()
    assert fresh.state is CapabilityState.NOT_LOADED
    assert fresh.resolve("init_projectile") is None
    assert capability.state is CapabilityState.READY
    assert capability.load() is CapabilityState.READY
    assert capability.usable


def test_divergence_falls_back_in_same_update(make_diverging_capability, caplog):
    router = BackendRouter(make_diverging_capability(after_steps=3), disable_accelerated=False)
    entity = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)
    assert entity.backend_kind is BackendKind.ACCELERATED

    for _ in range(3):
        entity.update(0.01, 9.81, False)
    before = entity.time

    with caplog.at_level(logging.WARNING, logger="projectile_lab.router"):
        entity.update(0.01, 9.81, False)

    assert entity.backend_kind is BackendKind.REFERENCE
    assert router.fallback_count == 1
    assert entity.time == pytest.approx(before + 0.01)
    assert all(math.isfinite(v) for v in observable(entity))
    assert "non-finite" in caplog.text

    for _ in range(20):
        entity.update(0.01, 9.81, False)
    assert router.fallback_count == 1
    assert entity.backend_kind is BackendKind.REFERENCE


def test_after_fallback_matches_reference_only_run(make_diverging_capability):
    router = BackendRouter(make_diverging_capability(after_steps=5), disable_accelerated=False)
    entity = ProjectileEntity(router, 0.0, 0.0, 25.0, 60.0, thrust=8.0, fuel=0.3)
    for _ in range(5):
        entity.update(0.01, 9.81, True)
    seed = entity.snapshot()

    reference = ReferenceBackend()
    reference.seed(
        seed.identity,
        position=(seed.x, seed.y),
        velocity=(seed.vx, seed.vy),
        time=seed.time,
        heading=seed.heading,
        thrust=seed.thrust,
        fuel=seed.fuel,
    )

    for step in range(50):
        dt = 0.01 if step % 2 else 0.02
        entity.update(dt, 9.81, True)
        reference.step(seed.identity, dt, 9.81, True)
        assert entity.backend_kind is BackendKind.REFERENCE
        assert (entity.x, entity.y) == reference.position(seed.identity)
        assert (entity.vx, entity.vy) == reference.velocity(seed.identity)
        assert entity.time == reference.elapsed(seed.identity)


def test_fallback_is_entity_local(make_diverging_capability):
    capability = make_diverging_capability(after_steps=2, identity=0)
    router = BackendRouter(capability, disable_accelerated=False)
    doomed = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)
    healthy = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)
    assert doomed.identity == 0
    assert healthy.identity == 1

    for _ in range(10):
        doomed.update(0.01, 9.81, False)
        healthy.update(0.01, 9.81, False)

    assert doomed.backend_kind is BackendKind.REFERENCE
    assert healthy.backend_kind is BackendKind.ACCELERATED
    assert ProjectileEntity(router, 0.0, 0.0, 5.0, 10.0).backend_kind is BackendKind.ACCELERATED


@pytest.mark.parametrize("bad_dt", [math.nan, math.inf, -math.inf, -0.5, 0.0, 1e9, None, "fast"])
def test_malformed_dt_is_replaced(router, bad_dt):
    entity = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)
    entity.update(bad_dt, 9.81, False)

    assert entity.time == pytest.approx(router.physics.nominal_dt)
    assert all(math.isfinite(v) for v in observable(entity))
    assert entity.backend_kind is BackendKind.ACCELERATED


@pytest.mark.parametrize("router_name", ["router", "reference_router"])
def test_fields_stay_finite_under_overflow(router_name, request):
    router = request.getfixturevalue(router_name)
    entity = ProjectileEntity(router, 0.0, 0.0, 50.0, 80.0, thrust=1e300, fuel=100.0)

    previous_time = entity.time
    for _ in range(30):
        entity.update(0.25, -1e308, True)
        assert all(math.isfinite(v) for v in observable(entity))
        assert entity.time > previous_time or not entity.active
        previous_time = entity.time

    assert all(math.isfinite(s.x) and math.isfinite(s.y) for s in entity.path)


def test_missing_optional_accessors_read_as_zero(make_diverging_capability):
    capability = make_diverging_capability(
        after_steps=10**9,
        drop=("get_ax", "get_ay", "get_fuel", "get_heading", "set_heading", "set_thrust"),
    )
    router = BackendRouter(capability, disable_accelerated=False)
    entity = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0, thrust=5.0, fuel=2.0)
    assert entity.backend_kind is BackendKind.ACCELERATED

    entity.update(0.01, 9.81, False)
    assert (entity.ax, entity.ay) == (0.0, 0.0)
    assert entity.fuel == 0.0

    entity.set_heading(10.0)
    entity.set_thrust(7.0)
    entity.update(0.01, 9.81, False)
    assert entity.heading_degrees == pytest.approx(10.0)
    assert entity.thrust == 7.0


def test_disable_flag_forces_reference(capability):
    router = BackendRouter(capability, disable_accelerated=True)
    assert ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0).backend_kind is BackendKind.REFERENCE


def test_prefer_reference(router):
    ghost = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0, prefer_reference=True)
    assert ghost.backend_kind is BackendKind.REFERENCE


def test_reference_divergence_ends_flight(reference_router, caplog):
    entity = ProjectileEntity(reference_router, 0.0, 0.0, 50.0, 80.0)

    with caplog.at_level(logging.WARNING, logger="projectile_lab.simulation"):
        for _ in range(50):
            entity.update(0.25, -1e308, False)
            if not entity.active:
                break

    assert not entity.active
    assert all(math.isfinite(v) for v in observable(entity))
    assert "diverged on the reference backend" in caplog.text

    stopped_at = entity.time
    entity.update(0.25, 9.81, False)
    assert entity.time == stopped_at


def test_fallback_clears_accelerated_row(make_diverging_capability):
    capability = make_diverging_capability(after_steps=2)
    router = BackendRouter(capability, disable_accelerated=False)
    entity = ProjectileEntity(router, 0.0, 0.0, 20.0, 45.0)

    for _ in range(3):
        entity.update(0.01, 9.81, False)

    assert entity.backend_kind is BackendKind.REFERENCE
    assert entity.active
    assert capability.resolve("is_active")(entity.identity) is False
    assert capability.resolve("get_y")(entity.identity) == 0.0
