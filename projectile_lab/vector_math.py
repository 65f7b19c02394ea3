"""Lightweight vector helpers for 2D projectile dynamics."""
from __future__ import annotations

import math

import numpy as np

Vector = np.ndarray


def magnitude(vec: Vector) -> float:
    return float(np.linalg.norm(vec))


def heading_vector(angle_rad: float) -> Vector:
    """Unit vector pointing along a heading measured from the +x axis."""
    return np.array([math.cos(angle_rad), math.sin(angle_rad)], dtype=np.float64)


def from_polar(speed: float, angle_degrees: float) -> Vector:
    """Decompose a launch speed and angle (degrees from +x) into (vx, vy)."""
    return heading_vector(math.radians(angle_degrees)) * speed


def is_finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def clamp(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
