"""Fixed-step explicit Runge-Kutta integration."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from switchgrad.core.exceptions import IntegrationError
from switchgrad.core.method import ButcherTableau
from switchgrad.integration.base import Integrator, OdeSystem, CancellationToken
from switchgrad.methods.runge_kutta import rk4


class ExplicitIntegrator(Integrator):
    """
    Explicit Runge-Kutta integrator with step size ``min_time_step``.

    Each interval between two requested times is split into equal substeps no
    longer than ``min_time_step``. Tolerances are ignored.
    """

    def __init__(self, system: OdeSystem, tableau: Optional[ButcherTableau] = None):
        super().__init__(system)
        tableau = rk4() if tableau is None else tableau
        if not tableau.is_explicit:
            raise NotImplementedError(
                f"{tableau.stage_type.name} tableaux need a stage solver; "
                "only explicit tableaux are supported."
            )
        self.tableau = tableau

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
        times = np.asarray(times, dtype=float)
        x = np.array(x0, dtype=float)
        trajectory = np.empty((len(times), x.size))
        if len(times) == 0:
            return trajectory
        trajectory[0] = x

        num_steps = 0
        for k in range(1, len(times)):
            interval = times[k] - times[k - 1]
            num_substeps = max(1, int(np.ceil(abs(interval) / min_time_step - 1e-9)))
            h = interval / num_substeps

            if interval != 0.0:
                for j in range(num_substeps):
                    if cancellation is not None:
                        cancellation.check()
                    if num_steps >= max_num_steps:
                        raise IntegrationError(
                            f"Maximum number of integration steps ({max_num_steps}) "
                            f"exceeded at t = {times[k - 1] + j * h:.6g}."
                        )
                    x = self._step(times[k - 1] + j * h, x, h)
                    num_steps += 1

            trajectory[k] = x

        return trajectory

    def _step(self, t: float, x: NDArray, h: float) -> NDArray:
        """One Runge-Kutta step."""
        A, b, c = self.tableau.A, self.tableau.b, self.tableau.c
        K = np.zeros((self.tableau.s, x.size))
        for i in range(self.tableau.s):
            x_stage = x + h * (A[i, :i] @ K[:i])
            K[i] = self.system.compute_flow_map(t + c[i] * h, x_stage)
        return x + h * (b @ K)
