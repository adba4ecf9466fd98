"""Backward sweep of the boundary-value sensitivity method."""

import numpy as np
from numpy.typing import NDArray

from switchgrad.integration.segmented import integrate_segmented
from switchgrad.propagation.context import SensitivityContext, WorkerScratch
from switchgrad.utils.numerics import assert_all_finite


def solve_sensitivity_bvp(
    context: SensitivityContext,
    worker: WorkerScratch,
    index: int,
    Mv_final: NDArray,
    Mve_final: NDArray,
    costate_stock: list[NDArray],
    residual_stock: list[NDArray],
) -> tuple[list[NDArray], list[NDArray]]:
    """
    Integrate the sweeping terms Mv and Mve backward on the Riccati grids.

    The costate sensitivity is nabla_lambda = Sm nabla_x + Mv + Mve. The jump
    of Sm at an event already carries the event's terminal Hessian, so Mv and
    Mve are continuous across events and partition boundaries.

    Args:
        context: Run context
        worker: Worker scratch used exclusively by this call
        index: Active event time index
        Mv_final: Terminal value of Mv at the final time
        Mve_final: Terminal value of Mve at the final time
        costate_stock: Nominal costate per partition (nominal grid)
        residual_stock: Stationarity residual per partition (nominal grid)

    Returns:
        Mv_stock, Mve_stock: Sweeping terms per partition (NS, n)
    """
    context.check_active(index)
    data = context.data

    Mv = np.array(Mv_final, dtype=float)
    Mve = np.array(Mve_final, dtype=float)
    Mv_stock: list[NDArray] = [np.zeros(0)] * data.num_partitions
    Mve_stock: list[NDArray] = [np.zeros(0)] * data.num_partitions

    for i in range(data.num_partitions - 1, -1, -1):
        if not data.is_active(i):
            continue

        partition = data.partitions[i]
        costate = costate_stock[i]
        residual = residual_stock[i]
        options = context.integration_options(partition.riccati_time)

        def before_bvp_segment(j: int, begin: int, end: int) -> None:
            b, e = partition.segments[j]
            worker.bvp.reset()
            worker.bvp.set_data(
                partition.time[b:e],
                partition.Am[b:e],
                partition.Bm[b:e],
                partition.Qv[b:e],
                partition.flow_map[b:e],
                costate[b:e],
                partition.riccati_time[begin:end],
                partition.Sm[begin:end],
                partition.feedback_gain[begin:end],
            )
            worker.bvp.set_multiplier(
                context.multiplier(index, partition.riccati_time[begin:end])
            )

        def before_error_segment(j: int, begin: int, end: int) -> None:
            b, e = partition.segments[j]
            worker.bvp_error.reset()
            worker.bvp_error.set_data(
                partition.time[b:e],
                partition.Am[b:e],
                partition.Bm[b:e],
                partition.Pm[b:e],
                partition.Rm_inv[b:e],
                residual[b:e],
                partition.riccati_time[begin:end],
                partition.Sm[begin:end],
            )
            worker.bvp_error.set_multiplier(
                context.multiplier(index, partition.riccati_time[begin:end])
            )

        Mv_trajectory, Mv = integrate_segmented(
            worker.bvp_integrator,
            Mv,
            partition.riccati_time,
            partition.riccati_segments,
            before_segment=before_bvp_segment,
            reverse=True,
            **options,
        )
        Mve_trajectory, Mve = integrate_segmented(
            worker.bvp_error_integrator,
            Mve,
            partition.riccati_time,
            partition.riccati_segments,
            before_segment=before_error_segment,
            reverse=True,
            **options,
        )

        if context.settings.check_numerical_stability:
            assert_all_finite("Mv", partition.riccati_time, Mv_trajectory)
            assert_all_finite("Mve", partition.riccati_time, Mve_trajectory)

        Mv_stock[i] = Mv_trajectory
        Mve_stock[i] = Mve_trajectory

    return Mv_stock, Mve_stock
