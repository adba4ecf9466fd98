"""Switching-time sensitivity interface for the outer optimizer."""

from concurrent.futures import ThreadPoolExecutor, FIRST_EXCEPTION, wait
from typing import Optional
import logging
import queue
import numpy as np
from numpy.typing import NDArray

from switchgrad.core.data import DataCollector
from switchgrad.core.settings import SensitivitySettings
from switchgrad.integration.base import CancellationToken
from switchgrad.propagation.context import SensitivityContext, WorkerScratch
from switchgrad.propagation.costate import (
    calculate_rollout_costate,
    calculate_stationarity_residual,
)
from switchgrad.propagation.trajectory import EventTimeSensitivity
from switchgrad.optimization.methods import run_lq_based_method, run_sweeping_bvp_method
from switchgrad.optimization.value import value_function_derivative

log = logging.getLogger(__name__)


class SwitchingTimeSensitivity:
    """
    Provides dJ/d(event time), the sensitivity controller and dV/d(event time)
    to the outer switching-time optimizer.
    """

    def __init__(self, settings: Optional[SensitivitySettings] = None):
        """
        Allocate one scratch set of models and integrators per thread.

        Args:
            settings: Options (defaults when omitted)
        """
        self.settings = settings if settings is not None else SensitivitySettings()
        self._workers = [
            WorkerScratch.create(self.settings) for _ in range(self.settings.n_threads)
        ]
        self._context: Optional[SensitivityContext] = None
        self._sensitivities: dict[int, EventTimeSensitivity] = {}
        self._cost_derivative = np.zeros(0)

    def run(
        self,
        event_times: NDArray,
        data: DataCollector,
        cancellation: Optional[CancellationToken] = None,
    ) -> NDArray:
        """
        Compute the sensitivities of every active event time.

        Args:
            event_times: Ordered event times
            data: Nominal solution of the outer optimizer (read-only)
            cancellation: Optional token; cancelling it aborts the run

        Returns:
            Cost derivative per event time, zero for inactive event times
        """
        data.validate()
        token = CancellationToken(parent=cancellation)
        context = SensitivityContext.create(event_times, data, self.settings, token)

        if not self.settings.use_lq_for_derivatives:
            context.costate_stock = calculate_rollout_costate(data)
            context.residual_stock = calculate_stationarity_residual(
                data, context.costate_stock
            )

        if self.settings.display_info:
            log.info(
                "Calculating cost function sensitivity for event indices [%d, %d) "
                "with the %s method",
                context.active_begin,
                context.active_end,
                "LQ-based" if self.settings.use_lq_for_derivatives else "sweeping-BVP",
            )

        method = (
            run_lq_based_method
            if self.settings.use_lq_for_derivatives
            else run_sweeping_bvp_method
        )
        indices = list(context.active_indices)

        if self.settings.n_threads == 1 or len(indices) <= 1:
            sensitivities = {k: method(context, self._workers[0], k) for k in indices}
        else:
            sensitivities = self._run_parallel(method, context, indices, token)

        self._context = context
        self._sensitivities = sensitivities
        self._cost_derivative = np.zeros(len(context.event_times))
        for k, sensitivity in sensitivities.items():
            self._cost_derivative[k] = sensitivity.cost_derivative

        if self.settings.display_info:
            log.info("Cost function derivative: %s", self._cost_derivative)

        return self.cost_function_derivative()

    def _run_parallel(self, method, context, indices, token) -> dict[int, EventTimeSensitivity]:
        """Run event indices on a thread pool, each holding one worker scratch."""
        free_workers: queue.Queue = queue.Queue()
        for worker in self._workers:
            free_workers.put(worker)

        def task(k: int) -> EventTimeSensitivity:
            worker = free_workers.get()
            try:
                return method(context, worker, k)
            finally:
                free_workers.put(worker)

        with ThreadPoolExecutor(max_workers=self.settings.n_threads) as executor:
            futures = {k: executor.submit(task, k) for k in indices}
            done, _ = wait(futures.values(), return_when=FIRST_EXCEPTION)
            failed = [f for f in done if f.exception() is not None]
            if failed:
                # stop the remaining integrations, then surface the first error
                token.cancel()
                for future in futures.values():
                    future.cancel()
                raise failed[0].exception()

        return {k: future.result() for k, future in futures.items()}

    def _sensitivity(self, index: int) -> EventTimeSensitivity:
        if self._context is None:
            raise RuntimeError("run() must be called before querying sensitivities.")
        self._context.check_active(index)
        return self._sensitivities[index]

    def cost_function_derivative(self) -> NDArray:
        """dJ/d(event time) per event time; inactive event times read 0."""
        return self._cost_derivative.copy()

    def sensitivity(self, index: int) -> EventTimeSensitivity:
        """All trajectories computed for an active event index."""
        return self._sensitivity(index)

    def rollout_sensitivity(self, index: int) -> tuple[list[NDArray], list[NDArray]]:
        """State and input sensitivities (nabla_x, nabla_u) per partition."""
        sensitivity = self._sensitivity(index)
        return sensitivity.nabla_x, sensitivity.nabla_u

    def sensitivity_controller_feedforward(self, index: int) -> list[NDArray]:
        """Feedforward Lv of the sensitivity controller, for warm starting."""
        return self._sensitivity(index).Lv

    def value_function_derivative(self, index: int, time: float, state: NDArray) -> float:
        """dV/d(event time) at (time, state); needs the LQ-based method."""
        sensitivity = self._sensitivity(index)
        return value_function_derivative(self._context, sensitivity, time, np.asarray(state))

    @property
    def event_times(self) -> NDArray:
        if self._context is None:
            return np.zeros(0)
        return self._context.event_times

    @property
    def active_event_time_range(self) -> tuple[int, int]:
        if self._context is None:
            return (0, 0)
        return (self._context.active_begin, self._context.active_end)
