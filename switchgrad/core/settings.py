"""Options for switching-time sensitivity computation."""

from dataclasses import dataclass
from enum import Enum, auto


class IntegratorType(Enum):
    """Integrators available for the sensitivity equations."""
    ODE45 = auto()            # scipy RK45, adaptive
    DOP853 = auto()           # scipy DOP853, adaptive
    RK4 = auto()              # classic Runge-Kutta, fixed step
    ADAMS_BASHFORTH = auto()  # not supported for sensitivity equations


@dataclass
class SensitivitySettings:
    """Plain options structure for ``SwitchingTimeSensitivity``."""

    # Algorithm selection: LQ-based fixed point or sweeping BVP
    use_lq_for_derivatives: bool = False
    max_num_lq_iterations: int = 3

    # Integration
    integrator_type: IntegratorType = IntegratorType.ODE45
    max_num_steps_per_second: int = 5000
    min_time_step: float = 1e-3
    abs_tol_ode: float = 1e-9
    rel_tol_ode: float = 1e-6

    # Diagnostics and parallelism
    check_numerical_stability: bool = True
    n_threads: int = 1
    display_info: bool = False

    def __post_init__(self):
        if self.max_num_lq_iterations < 1:
            raise ValueError("max_num_lq_iterations must be at least 1.")
        if self.max_num_steps_per_second < 1:
            raise ValueError("max_num_steps_per_second must be at least 1.")
        if self.min_time_step <= 0.0:
            raise ValueError("min_time_step must be positive.")
        if self.abs_tol_ode <= 0.0 or self.rel_tol_ode <= 0.0:
            raise ValueError("ODE tolerances must be positive.")
        if self.n_threads < 1:
            raise ValueError("n_threads must be at least 1.")
