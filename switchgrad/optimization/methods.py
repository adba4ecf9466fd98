"""The two algorithms computing switching-time derivatives for one event index."""

import logging
import numpy as np
from numpy.typing import NDArray

from switchgrad.propagation.bvp import solve_sensitivity_bvp
from switchgrad.propagation.context import SensitivityContext, WorkerScratch
from switchgrad.propagation.controller import (
    calculate_bvp_sensitivity_controller_forward,
    calculate_lq_sensitivity_controller_forward,
)
from switchgrad.propagation.costate import (
    calculate_rollout_costate,
    calculate_stationarity_residual,
)
from switchgrad.propagation.riccati import solve_sensitivity_riccati_equations
from switchgrad.propagation.rollout import propagate_rollout_sensitivity
from switchgrad.propagation.trajectory import EventTimeSensitivity
from switchgrad.optimization.cost import calculate_cost_derivative
from switchgrad.optimization.lq_sensitivity import (
    approximate_nominal_heuristics_sensitivity,
    approximate_nominal_lq_sensitivity,
)
from switchgrad.optimization.value import value_function_derivative

log = logging.getLogger(__name__)


def _zero_feedforward(context: SensitivityContext) -> list[NDArray]:
    data = context.data
    return [
        np.zeros((p.num_riccati_samples, p.input_dim)) if data.is_active(i) else np.zeros(0)
        for i, p in enumerate(data.partitions)
    ]


def run_lq_based_method(
    context: SensitivityContext,
    worker: WorkerScratch,
    index: int,
) -> EventTimeSensitivity:
    """
    Fixed-point LQ iteration for the derivative with respect to event ``index``.

    Each of the ``max_num_lq_iterations`` iterations:
        1. propagates the rollout sensitivity with the current feedforward
        2. expands the cost along it (nabla_q, nabla_Qv, nabla_Rv)
        3. solves the Riccati sensitivity backward with learning rate 0
        4. updates the sensitivity controller feedforward
    The cost derivative is the value function derivative at the initial
    time and state.
    """
    context.check_active(index)
    data = context.data
    sensitivity = EventTimeSensitivity.empty(index, data.num_partitions)
    sensitivity.method = "lq"

    Lv_stock = _zero_feedforward(context)
    for iteration in range(context.settings.max_num_lq_iterations):
        nabla_x_stock, nabla_u_stock = propagate_rollout_sensitivity(
            context, worker, index, Lv_stock
        )
        approximate_nominal_lq_sensitivity(data, nabla_x_stock, nabla_u_stock, sensitivity)

        nabla_x_final = nabla_x_stock[data.final_active_partition][-1]
        nabla_s_final, nabla_Sv_final, nabla_Sm_final = (
            approximate_nominal_heuristics_sensitivity(data, nabla_x_final)
        )
        solve_sensitivity_riccati_equations(
            context, worker, index, 0.0,
            nabla_s_final, nabla_Sv_final, nabla_Sm_final,
            sensitivity,
        )

        Lv_stock = calculate_lq_sensitivity_controller_forward(
            context, index, sensitivity, Lv_stock
        )
        sensitivity.Lv = Lv_stock

        sensitivity.cost_derivative = value_function_derivative(
            context, sensitivity, data.init_time, data.init_state
        )
        log.debug(
            "event %d, LQ iteration %d: dJ/dt = %.8g",
            index, iteration, sensitivity.cost_derivative,
        )

    return sensitivity


def run_sweeping_bvp_method(
    context: SensitivityContext,
    worker: WorkerScratch,
    index: int,
) -> EventTimeSensitivity:
    """
    Sweeping boundary-value method for the derivative with respect to event ``index``.

    Solves Mv and Mve backward from zero terminal values, forms the
    feedforward in closed form, propagates the rollout sensitivity once and
    integrates the cost derivative directly.
    """
    context.check_active(index)
    data = context.data
    sensitivity = EventTimeSensitivity.empty(index, data.num_partitions)
    sensitivity.method = "bvp"

    costate_stock = context.costate_stock
    residual_stock = context.residual_stock
    if costate_stock is None:
        costate_stock = calculate_rollout_costate(data)
    if residual_stock is None:
        residual_stock = calculate_stationarity_residual(data, costate_stock)

    n = len(data.init_state)
    Mv_stock, Mve_stock = solve_sensitivity_bvp(
        context, worker, index, np.zeros(n), np.zeros(n), costate_stock, residual_stock
    )
    sensitivity.Mv = Mv_stock
    sensitivity.Mve = Mve_stock

    sensitivity.Lv = calculate_bvp_sensitivity_controller_forward(
        context, index, Mv_stock, Mve_stock, residual_stock
    )

    nabla_x_stock, nabla_u_stock = propagate_rollout_sensitivity(
        context, worker, index, sensitivity.Lv
    )
    sensitivity.nabla_x = nabla_x_stock
    sensitivity.nabla_u = nabla_u_stock

    sensitivity.cost_derivative = calculate_cost_derivative(
        context, index, nabla_x_stock, nabla_u_stock
    )
    log.debug("event %d, BVP: dJ/dt = %.8g", index, sensitivity.cost_derivative)

    return sensitivity
