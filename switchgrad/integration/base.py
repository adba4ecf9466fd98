"""Integrator interface and cancellation."""

from abc import ABC, abstractmethod
from typing import Optional, Protocol
import threading
from numpy.typing import NDArray

from switchgrad.core.exceptions import IntegrationCancelled


class OdeSystem(Protocol):
    """Anything exposing a right-hand side dx/dt = f(t, x)."""

    def compute_flow_map(self, t: float, x: NDArray) -> NDArray:
        ...


class CancellationToken:
    """
    Per-call request to stop integrating.

    Integrators check the token once per step. A token may be shared by all
    workers of one run and cancelled from any thread. A child token is also
    cancelled when its parent is.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._parent is not None and self._parent.cancelled:
            return True
        return self._event.is_set()

    def check(self) -> None:
        """Raise IntegrationCancelled if cancellation was requested."""
        if self.cancelled:
            raise IntegrationCancelled("Integration was cancelled.")


class Integrator(ABC):
    """Integrates one ODE system through a monotone sequence of times."""

    def __init__(self, system: OdeSystem):
        self.system = system

    @abstractmethod
    def integrate(
        self,
        x0: NDArray,
        times: NDArray,
        *,
        min_time_step: float,
        abs_tol: float,
        rel_tol: float,
        max_num_steps: int,
        cancellation: Optional[CancellationToken] = None,
    ) -> NDArray:
        """
        Integrate from times[0] through every requested time.

        Args:
            x0: Value at times[0]
            times: Monotone (increasing or decreasing) output times
            min_time_step: Smallest/fixed step size
            abs_tol: Absolute tolerance (adaptive integrators)
            rel_tol: Relative tolerance (adaptive integrators)
            max_num_steps: Step budget; exceeding it raises IntegrationError
            cancellation: Optional cancellation token checked every step

        Returns:
            Values at the requested times, shape (len(times), len(x0))
        """
        ...
