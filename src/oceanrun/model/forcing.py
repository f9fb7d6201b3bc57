from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence, Union

import numpy as np

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.grid import Grid


class AbstractForcing(ABC):
    """
    Abstract base class for volumetric source terms.
    """

    @abstractmethod
    def __call__(
        self,
        grid: Grid,
        time: float,
        fields: Mapping[str, npt.NDArray[np.float64]],
        own: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """
        Evaluate the source term at cell centers.

        Args:
            grid: The model grid.
            time: Evaluation time in seconds.
            fields: Arrays of all model fields by name.
            own: Array of the forced field.
        """
        pass


class Forcing(AbstractForcing):
    """
    Volumetric source term added to a field's tendency.

    The callable is evaluated at cell centers as ``func(x, y, z, t)``, followed
    by the arrays of ``field_dependencies`` in order and then ``parameters``
    when given.

    Example:
        >>> damping = Forcing(lambda x, y, z, t, u, p: -u / p, field_dependencies=("u",), parameters=3600.0)
    """

    def __init__(
        self,
        func: Callable[..., Any],
        parameters: Any = None,
        field_dependencies: Sequence[str] = (),
    ) -> None:
        if not callable(func):
            raise ConfigurationError(f"Forcing function must be callable, got {func!r}.")
        self.func = func
        self.parameters = parameters
        self.field_dependencies = tuple(field_dependencies)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({getattr(self.func, '__name__', self.func)})"

    def __call__(
        self,
        grid: Grid,
        time: float,
        fields: Mapping[str, npt.NDArray[np.float64]],
        own: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        x, y, z = grid.nodes()
        args = [fields[name] for name in self.field_dependencies]
        if self.parameters is not None:
            args.append(self.parameters)
        return np.asarray(self.func(x, y, z, time, *args), dtype=np.float64)


class ConstantForcing(AbstractForcing):
    def __init__(self, value: float) -> None:
        self.value = float(value)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.value})"

    def __call__(self, grid, time, fields, own):
        return np.full_like(own, self.value)


class Relaxation(AbstractForcing):
    """
    Restoring toward ``target`` at ``rate`` (1/s), weighted by ``mask``:
    F = -rate * mask(x, y, z) * (c - target(x, y, z, t)).

    ``target`` may be a constant or a callable; ``mask`` may be omitted
    (restore everywhere) or a callable returning weights in [0, 1]. A mask
    that is nonzero only near a boundary makes a sponge layer.
    """

    def __init__(
        self,
        rate: float,
        target: Union[float, Callable[..., Any]] = 0.0,
        mask: Optional[Callable[..., Any]] = None,
    ) -> None:
        if not rate >= 0:
            raise ConfigurationError(f"Relaxation rate must be non-negative, got {rate!r}.")
        self.rate = float(rate)
        self.target = target
        self.mask = mask

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rate={self.rate:.3e})"

    def __call__(self, grid, time, fields, own):
        x, y, z = grid.nodes()
        target = self.target(x, y, z, time) if callable(self.target) else self.target
        weight = self.mask(x, y, z) if self.mask is not None else 1.0
        return -self.rate * np.asarray(weight) * (own - np.asarray(target, dtype=np.float64))


def parse_forcing(value: Union[AbstractForcing, Callable[..., Any], float]) -> AbstractForcing:
    if isinstance(value, AbstractForcing):
        return value
    if callable(value):
        return Forcing(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return ConstantForcing(value)
    raise ConfigurationError(f"Cannot interpret {value!r} as a forcing.")
