from __future__ import annotations

import math
from importlib.metadata import version, PackageNotFoundError

EARTH_RADIUS = 6.371e6  # m
EARTH_ROTATION_RATE = 7.292115e-5  # rad/s
GRAVITATIONAL_ACCELERATION = 9.80665  # m/s²

try:
    PACKAGE_VERSION = version("oceanrun")
except PackageNotFoundError:
    PACKAGE_VERSION = "0.0.0-dev"


def prettytime(seconds: float) -> str:
    """Format a duration in seconds with a human-friendly unit."""
    if not math.isfinite(seconds):
        return str(seconds)

    magnitude = abs(seconds)
    if magnitude < 1e-6:
        return f"{seconds * 1e9:.3f} ns"
    if magnitude < 1e-3:
        return f"{seconds * 1e6:.3f} μs"
    if magnitude < 1:
        return f"{seconds * 1e3:.3f} ms"
    if magnitude < 60:
        return f"{seconds:.3f} seconds"
    if magnitude < 3600:
        return f"{seconds / 60:.3f} minutes"
    if magnitude < 86400:
        return f"{seconds / 3600:.3f} hours"
    if magnitude < 365.25 * 86400:
        return f"{seconds / 86400:.3f} days"
    return f"{seconds / (365.25 * 86400):.3f} years"


def coriolis_parameter(latitude: float, rotation_rate: float = EARTH_ROTATION_RATE) -> float:
    """Return f = 2Ω sin(φ) for a latitude in degrees."""
    return 2 * rotation_rate * math.sin(math.radians(latitude))
