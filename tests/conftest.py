from __future__ import annotations

import numpy as np
import pytest

from projectile_lab.accelerated import (
    N_FIELDS,
    X,
    AcceleratedCapability,
    build_entry_points,
)
from projectile_lab.router import BackendRouter


@pytest.fixture
def capability():
    cap = AcceleratedCapability()
    cap.load()
    return cap


@pytest.fixture
def router(capability):
    return BackendRouter(capability, disable_accelerated=False)


@pytest.fixture
def reference_router():
    return BackendRouter(None, disable_accelerated=True)


@pytest.fixture
def make_diverging_capability():
    """Capability whose step writes NaN into x for one identity after some steps."""

    def _make(after_steps: int, identity: int | None = None, drop: tuple[str, ...] = ()):
        table = np.zeros((10, N_FIELDS), dtype=np.float64)
        entry_points = build_entry_points(table)
        real_update = entry_points["update_projectile"]
        calls: dict[int, int] = {}

        def update(ident, dt, gravity, air_resistance):
            real_update(ident, dt, gravity, air_resistance)
            calls[ident] = calls.get(ident, 0) + 1
            if (identity is None or ident == identity) and calls[ident] > after_steps:
                table[ident, X] = np.nan

        entry_points["update_projectile"] = update
        for name in drop:
            entry_points.pop(name)
        return AcceleratedCapability.from_entry_points(entry_points)

    return _make
