"""Backward propagation of the Riccati sensitivities."""

import numpy as np
from numpy.typing import NDArray

from switchgrad.equations.riccati import convert_to_matrix, convert_to_vector
from switchgrad.integration.segmented import integrate_segmented
from switchgrad.propagation.context import SensitivityContext, WorkerScratch
from switchgrad.propagation.trajectory import EventTimeSensitivity
from switchgrad.utils.numerics import assert_all_finite


def solve_sensitivity_riccati_equations(
    context: SensitivityContext,
    worker: WorkerScratch,
    index: int,
    learning_rate: float,
    nabla_s_final: float,
    nabla_Sv_final: NDArray,
    nabla_Sm_final: NDArray,
    sensitivity: EventTimeSensitivity,
) -> None:
    """
    Integrate the Riccati sensitivity (nabla_Sm, nabla_Sv, nabla_s) backward.

    Partitions are swept from the last active one to the first, each partition
    from its last event segment to its first. Crossing event e of a partition
    adds its terminal cost sensitivity (0, nabla_Qv_final[e], nabla_q_final[e]).
    The LQ expansion sensitivities (nabla_q, nabla_Qv, nabla_Rv and their event
    counterparts) must already be stored in ``sensitivity``; the results are
    written to its nabla_s, nabla_Sv and nabla_Sm stocks.

    Args:
        context: Run context
        worker: Worker scratch used exclusively by this call
        index: Active event time index
        learning_rate: Feedforward step of the nominal controller
        nabla_s_final: Terminal value of nabla_s at the final time
        nabla_Sv_final: Terminal value of nabla_Sv
        nabla_Sm_final: Terminal value of nabla_Sm
        sensitivity: Sensitivity storage of event ``index``
    """
    context.check_active(index)
    data = context.data
    equations = worker.riccati
    equations.learning_rate = learning_rate
    n = len(data.init_state)

    x = convert_to_vector(nabla_Sm_final, nabla_Sv_final, nabla_s_final)

    for i in range(data.num_partitions - 1, -1, -1):
        if not data.is_active(i):
            sensitivity.nabla_s[i] = np.zeros(0)
            sensitivity.nabla_Sv[i] = np.zeros(0)
            sensitivity.nabla_Sm[i] = np.zeros(0)
            continue

        partition = data.partitions[i]
        nabla_q = sensitivity.nabla_q[i]
        nabla_Qv = sensitivity.nabla_Qv[i]
        nabla_Rv = sensitivity.nabla_Rv[i]
        nabla_q_final = sensitivity.nabla_q_final[i]
        nabla_Qv_final = sensitivity.nabla_Qv_final[i]

        def before_segment(j: int, begin: int, end: int) -> None:
            b, e = partition.segments[j]
            equations.reset()
            equations.set_data(
                partition.time[b:e],
                partition.Am[b:e],
                partition.Bm[b:e],
                partition.q[b:e],
                partition.Qv[b:e],
                partition.Qm[b:e],
                partition.Rv[b:e],
                partition.Rm[b:e],
                partition.Rm_inv[b:e],
                partition.Pm[b:e],
                nabla_q[b:e],
                nabla_Qv[b:e],
                nabla_Rv[b:e],
                partition.riccati_time[begin:end],
                partition.Sm[begin:end],
                partition.Sv[begin:end],
            )
            equations.set_multiplier(
                context.multiplier(index, partition.riccati_time[begin:end])
            )

        def jump_map(event: int, x: NDArray) -> NDArray:
            Sm, Sv, s = convert_to_matrix(x, n)
            return convert_to_vector(
                Sm, Sv + nabla_Qv_final[event], s + nabla_q_final[event]
            )

        trajectory, x = integrate_segmented(
            worker.riccati_integrator,
            x,
            partition.riccati_time,
            partition.riccati_segments,
            before_segment=before_segment,
            jump_map=jump_map,
            reverse=True,
            **context.integration_options(partition.riccati_time),
        )

        if context.settings.check_numerical_stability:
            assert_all_finite("Riccati sensitivity", partition.riccati_time, trajectory)

        NS = partition.num_riccati_samples
        nabla_Sm = np.zeros((NS, n, n))
        nabla_Sv = np.zeros((NS, n))
        nabla_s = np.zeros(NS)
        for k in range(NS):
            nabla_Sm[k], nabla_Sv[k], nabla_s[k] = convert_to_matrix(trajectory[k], n)

        sensitivity.nabla_s[i] = nabla_s
        sensitivity.nabla_Sv[i] = nabla_Sv
        sensitivity.nabla_Sm[i] = nabla_Sm
