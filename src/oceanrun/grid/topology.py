from __future__ import annotations

from enum import StrEnum
from typing import Sequence

from oceanrun.config import ConfigurationError


class Topology(StrEnum):
    """Boundary topology of one grid axis."""
    PERIODIC = "periodic"
    BOUNDED = "bounded"
    FLAT = "flat"


def parse_topology(topology: Sequence[str | Topology]) -> tuple[Topology, Topology, Topology]:
    """
    Convert a triple of names (or Topology members) into a Topology triple.

    Raises:
        ConfigurationError: if the triple has the wrong length or names an unknown topology.
    """
    if isinstance(topology, str) or len(topology) != 3:
        raise ConfigurationError(f"Topology must list exactly three axes, got {topology!r}.")

    parsed = []
    for axis, value in zip("xyz", topology):
        try:
            parsed.append(Topology(str(value).lower()))
        except ValueError:
            raise ConfigurationError(
                f"Unknown topology '{value}' for axis {axis}. "
                f"Expected one of {[t.value for t in Topology]}."
            ) from None
    return parsed[0], parsed[1], parsed[2]
