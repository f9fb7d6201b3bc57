from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Clock:
    """Model time (s), completed iterations, the last step size and the current RK stage."""
    time: float = 0.0
    iteration: int = 0
    last_dt: float = 0.0
    stage: int = 1

    def tick(self, dt: float) -> None:
        if dt < 0:
            raise ValueError(f"Cannot tick the clock backwards (dt={dt}).")
        self.time += dt
        self.iteration += 1
        self.last_dt = dt
        self.stage = 1
