"""Forward propagation of the state and input sensitivities."""

import numpy as np
from numpy.typing import NDArray

from switchgrad.core.data import PartitionData
from switchgrad.equations.rollout import RolloutSensitivityEquations
from switchgrad.integration.segmented import integrate_segmented
from switchgrad.propagation.context import SensitivityContext, WorkerScratch
from switchgrad.utils.numerics import assert_all_finite


def _bind_segment(
    equations: RolloutSensitivityEquations,
    partition: PartitionData,
    Lv: NDArray,
    j: int,
) -> None:
    """Bind the nominal and controller data of event segment j."""
    b, e = partition.segments[j]
    rb, re = partition.riccati_segments[j]
    equations.reset()
    equations.set_data(
        partition.time[b:e],
        partition.Am[b:e],
        partition.Bm[b:e],
        partition.flow_map[b:e],
        partition.riccati_time[rb:re],
        Lv[rb:re],
        partition.feedback_gain[rb:re],
    )


def propagate_rollout_sensitivity(
    context: SensitivityContext,
    worker: WorkerScratch,
    index: int,
    Lv_stock: list[NDArray],
) -> tuple[list[NDArray], list[NDArray]]:
    """
    Integrate d(nabla_x)/dt forward over all active partitions.

    The state sensitivity starts at zero, is carried unchanged across events
    and partition boundaries, and is driven by the equivalent-system forcing of
    the two subsystems adjacent to event ``index``. The input sensitivity
    follows from the sensitivity controller (k, Lv).

    Args:
        context: Run context
        worker: Worker scratch used exclusively by this call
        index: Active event time index
        Lv_stock: Feedforward of the sensitivity controller per partition

    Returns:
        nabla_x_stock: State sensitivity per partition (N, n)
        nabla_u_stock: Input sensitivity per partition (N, m)
    """
    context.check_active(index)
    data = context.data
    equations = worker.rollout

    nabla_x_stock: list[NDArray] = []
    nabla_u_stock: list[NDArray] = []
    nabla_x = np.zeros(len(data.init_state))

    for i, partition in enumerate(data.partitions):
        if not data.is_active(i):
            nabla_x_stock.append(np.zeros(0))
            nabla_u_stock.append(np.zeros(0))
            continue

        Lv = Lv_stock[i]

        def before_segment(j: int, begin: int, end: int) -> None:
            _bind_segment(equations, partition, Lv, j)
            equations.set_multiplier(context.multiplier(index, partition.time[begin:end]))

        trajectory, nabla_x = integrate_segmented(
            worker.rollout_integrator,
            nabla_x,
            partition.time,
            partition.segments,
            before_segment=before_segment,
            **context.integration_options(partition.time),
        )

        inputs = np.zeros((partition.num_samples, partition.input_dim))
        for j, (b, e) in enumerate(partition.segments):
            if e == b:
                continue
            _bind_segment(equations, partition, Lv, j)
            for k in range(b, e):
                inputs[k] = equations.compute_input(partition.time[k], trajectory[k])

        if context.settings.check_numerical_stability:
            assert_all_finite("nabla_x", partition.time, trajectory)
            assert_all_finite("nabla_u", partition.time, inputs)

        nabla_x_stock.append(trajectory)
        nabla_u_stock.append(inputs)

    return nabla_x_stock, nabla_u_stock
