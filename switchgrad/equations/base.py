"""Common interface of the sensitivity ODE models."""

from abc import ABC, abstractmethod
from numpy.typing import NDArray

from switchgrad.utils.interpolation import LinearInterpolation


class SensitivityEquations(ABC):
    """
    ODE model of one switching-time sensitivity.

    Models bind borrowed nominal arrays with ``set_data`` and read them through
    linear interpolators. The multiplier scales the equivalent-system forcing
    and is set once per integrated event segment.
    """

    def __init__(self):
        self.multiplier = 0.0

    def _interpolators(self) -> list[LinearInterpolation]:
        return [
            value for value in vars(self).values()
            if isinstance(value, LinearInterpolation)
        ]

    def reset(self) -> None:
        """Clear the multiplier and every remembered interpolation interval."""
        self.multiplier = 0.0
        for interpolator in self._interpolators():
            interpolator.reset()

    def set_multiplier(self, multiplier: float) -> None:
        self.multiplier = float(multiplier)

    @abstractmethod
    def set_data(self, *args: NDArray) -> None:
        """Bind the nominal trajectories the right-hand side depends on."""
        ...

    @abstractmethod
    def compute_flow_map(self, t: float, x: NDArray) -> NDArray:
        """Time derivative of the sensitivity state."""
        ...
