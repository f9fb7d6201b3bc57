"""
Vertical coordinate helpers. Each function returns Nz + 1 strictly increasing
face depths running from ``-depth`` (bottom) to 0 (surface).
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt


def _check(Nz: int, depth: float) -> None:
    if isinstance(Nz, bool) or not isinstance(Nz, (int, np.integer)) or Nz <= 0:
        raise ConfigurationError(f"Nz must be a positive integer, got {Nz!r}.")
    if not depth > 0:
        raise ConfigurationError(f"depth must be positive, got {depth!r}.")


def uniform_z_faces(Nz: int, depth: float) -> npt.NDArray[np.float64]:
    _check(Nz, depth)
    return np.linspace(-depth, 0.0, Nz + 1)


def exponential_z_faces(Nz: int, depth: float, scale: float) -> npt.NDArray[np.float64]:
    """
    Faces whose spacing grows exponentially with depth, with e-folding ``scale``.

    Args:
        Nz: Number of vertical cells.
        depth: Total depth (positive) in meters.
        scale: e-folding length (positive) of the spacing; smaller values
               concentrate resolution near the surface.
    """
    _check(Nz, depth)
    if not scale > 0:
        raise ConfigurationError(f"scale must be positive, got {scale!r}.")

    s = np.linspace(0.0, 1.0, Nz + 1)
    # z(s) = -depth * (exp(s r) - 1) / (exp(r) - 1) with r = depth / scale, reversed so z increases.
    # Written as exp(r (s - 1)) * expm1(-s r) / expm1(-r) so that large r cannot overflow.
    ratio = depth / scale
    faces = -depth * np.exp(ratio * (s - 1)) * np.expm1(-s * ratio) / np.expm1(-ratio)
    faces = faces[::-1].copy()
    faces[0], faces[-1] = -depth, 0.0
    if np.any(np.diff(faces) <= 0):
        raise ConfigurationError(
            f"scale={scale!r} is too small for {Nz} cells over depth {depth!r}: the surface cells vanish."
        )
    return faces


def stretched_z_faces(
    Nz: int,
    depth: float,
    stretching: float = 1.2,
    refinement: float = 0.6,
) -> npt.NDArray[np.float64]:
    """
    Faces refined near the surface with a hyperbolic-tangent stretching.

    Args:
        Nz: Number of vertical cells.
        depth: Total depth (positive) in meters.
        stretching: Strength of the stretching; larger is more stretched.
        refinement: Fraction (0, 1] controlling how much resolution moves to the surface.
    """
    _check(Nz, depth)
    if not 0 < refinement <= 1 or not stretching > 0:
        raise ConfigurationError("Need 0 < refinement <= 1 and stretching > 0.")

    s = np.linspace(0.0, 1.0, Nz + 1)
    # Spacing ∝ sech²(stretching * s): coarse at the bottom (s = 0), fine at the surface (s = 1)
    tanh_faces = -depth * (1 - np.tanh(stretching * s) / np.tanh(stretching))
    uniform_faces = -depth * (1 - s)

    # Both profiles increase monotonically, so the blend does too
    faces = refinement * tanh_faces + (1 - refinement) * uniform_faces
    faces[0], faces[-1] = -depth, 0.0
    return faces
