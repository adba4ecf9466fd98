"""Adaptive Runge-Kutta integration through scipy's step-wise ODE solvers."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray
from scipy.integrate import RK45, DOP853

from switchgrad.core.exceptions import IntegrationError
from switchgrad.integration.base import Integrator, OdeSystem, CancellationToken

_SOLVERS = {
    "RK45": RK45,
    "DOP853": DOP853,
}


class AdaptiveIntegrator(Integrator):
    """
    Error-controlled integrator stepping a scipy ``OdeSolver`` by hand.

    Stepping manually, rather than calling ``solve_ivp``, lets the integrator
    enforce the step budget and check the cancellation token between steps.
    Requested times are filled from the dense output of each accepted step.
    """

    def __init__(self, system: OdeSystem, method: str = "RK45"):
        super().__init__(system)
        if method not in _SOLVERS:
            raise ValueError(
                f"Invalid method '{method}'. Choose from: {list(_SOLVERS)}"
            )
        self.method = method

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
        x0 = np.asarray(x0, dtype=float)
        trajectory = np.empty((len(times), x0.size))
        if len(times) == 0:
            return trajectory

        t0, tf = times[0], times[-1]
        trajectory[0] = x0
        span = abs(tf - t0)
        if span == 0.0:
            trajectory[:] = x0
            return trajectory

        solver = _SOLVERS[self.method](
            self.system.compute_flow_map,
            t0,
            x0,
            tf,
            rtol=rel_tol,
            atol=abs_tol,
            first_step=min(min_time_step, span),
        )
        direction = np.sign(tf - t0)

        k = 1
        num_steps = 0
        while k < len(times):
            if cancellation is not None:
                cancellation.check()
            if num_steps >= max_num_steps:
                raise IntegrationError(
                    f"Maximum number of integration steps ({max_num_steps}) "
                    f"exceeded at t = {solver.t:.6g}."
                )

            message = solver.step()
            num_steps += 1
            if solver.status == "failed":
                raise IntegrationError(
                    f"Integration failed at t = {solver.t:.6g}: {message}"
                )

            dense = None
            while k < len(times) and direction * (times[k] - solver.t) <= 0.0:
                if times[k] == solver.t:
                    trajectory[k] = solver.y
                else:
                    if dense is None:
                        dense = solver.dense_output()
                    trajectory[k] = dense(times[k])
                k += 1

            if solver.status == "finished":
                break

        # Samples within rounding of the final time
        trajectory[k:] = solver.y
        return trajectory
