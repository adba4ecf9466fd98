"""Shared run context and per-worker scratch objects."""

from dataclasses import dataclass
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from switchgrad.core.data import DataCollector
from switchgrad.core.exceptions import InactiveEventError
from switchgrad.core.settings import SensitivitySettings
from switchgrad.equations.bvp import BVPSensitivityEquations, BVPSensitivityErrorEquations
from switchgrad.equations.riccati import RiccatiSensitivityEquations
from switchgrad.equations.rollout import RolloutSensitivityEquations
from switchgrad.integration.base import CancellationToken, Integrator
from switchgrad.integration.factory import create_integrator
from switchgrad.propagation.multiplier import (
    compute_equivalent_system_multiplier,
    find_active_subsystem_index,
)


@dataclass
class WorkerScratch:
    """ODE models and integrators owned by one worker at a time."""

    rollout: RolloutSensitivityEquations
    riccati: RiccatiSensitivityEquations
    bvp: BVPSensitivityEquations
    bvp_error: BVPSensitivityErrorEquations

    rollout_integrator: Integrator
    riccati_integrator: Integrator
    bvp_integrator: Integrator
    bvp_error_integrator: Integrator

    @classmethod
    def create(cls, settings: SensitivitySettings) -> "WorkerScratch":
        """Allocate one worker's models; unsupported integrators fail here."""
        rollout = RolloutSensitivityEquations()
        riccati = RiccatiSensitivityEquations()
        bvp = BVPSensitivityEquations()
        bvp_error = BVPSensitivityErrorEquations()
        return cls(
            rollout=rollout,
            riccati=riccati,
            bvp=bvp,
            bvp_error=bvp_error,
            rollout_integrator=create_integrator(settings.integrator_type, rollout),
            riccati_integrator=create_integrator(settings.integrator_type, riccati),
            bvp_integrator=create_integrator(settings.integrator_type, bvp),
            bvp_error_integrator=create_integrator(settings.integrator_type, bvp_error),
        )


@dataclass
class SensitivityContext:
    """
    Read-only inputs of one run, shared by all workers.

    The costate and stationarity residual are independent of the event index;
    the sweeping-BVP method computes them once per run.
    """

    data: DataCollector
    event_times: NDArray
    settings: SensitivitySettings
    active_begin: int
    active_end: int
    cancellation: Optional[CancellationToken] = None
    costate_stock: Optional[list[NDArray]] = None
    residual_stock: Optional[list[NDArray]] = None

    @classmethod
    def create(
        cls,
        event_times: NDArray,
        data: DataCollector,
        settings: SensitivitySettings,
        cancellation: Optional[CancellationToken] = None,
    ) -> "SensitivityContext":
        event_times = np.asarray(event_times, dtype=float)
        if np.any(np.diff(event_times) < 0.0):
            raise ValueError("Event times must be non-decreasing.")
        return cls(
            data=data,
            event_times=event_times,
            settings=settings,
            active_begin=find_active_subsystem_index(event_times, data.init_time),
            active_end=find_active_subsystem_index(event_times, data.final_time),
            cancellation=cancellation,
        )

    @property
    def active_indices(self) -> range:
        return range(self.active_begin, self.active_end)

    def check_active(self, index: int) -> None:
        """Raise InactiveEventError unless the event index is active."""
        if not self.active_begin <= index < self.active_end:
            raise InactiveEventError(index, self.active_begin, self.active_end)

    def multiplier(self, index: int, time: NDArray) -> float:
        """Equivalent-system multiplier of the segment spanning ``time``."""
        mid_time = 0.5 * (time[0] + time[-1])
        active_subsystem = find_active_subsystem_index(self.event_times, mid_time)
        return compute_equivalent_system_multiplier(
            index,
            active_subsystem,
            self.event_times,
            self.data.init_time,
            self.data.final_time,
        )

    def integration_options(self, time: NDArray) -> dict:
        """Keyword options of ``Integrator.integrate`` for one partition grid."""
        span = float(time[-1] - time[0]) if len(time) else 0.0
        settings = self.settings
        return dict(
            min_time_step=settings.min_time_step,
            abs_tol=settings.abs_tol_ode,
            rel_tol=settings.rel_tol_ode,
            max_num_steps=int(settings.max_num_steps_per_second * max(1.0, span)),
            cancellation=self.cancellation,
        )
