"""Total cost derivative with respect to one switching time."""

import numpy as np
from numpy.typing import NDArray
from scipy.integrate import trapezoid

from switchgrad.propagation.context import SensitivityContext


def calculate_cost_derivative(
    context: SensitivityContext,
    index: int,
    nabla_x_stock: list[NDArray],
    nabla_u_stock: list[NDArray],
) -> float:
    """
    dJ/d(event time) from the state and input sensitivities.

        dJ = sum over segments of the trapezoid of (m q + Qv . nabla_x + Rv . nabla_u)
             + sum over events of Qv_final . nabla_x(event)
             + Sv_heuristics . nabla_x(final time)

    where m is the equivalent-system multiplier of each event segment.
    """
    context.check_active(index)
    data = context.data

    derivative = 0.0
    for i in data.active_partitions:
        partition = data.partitions[i]
        nabla_x, nabla_u = nabla_x_stock[i], nabla_u_stock[i]

        for b, e in partition.segments:
            if e - b < 2:
                continue
            time = partition.time[b:e]
            multiplier = context.multiplier(index, time)
            integrand = (
                multiplier * partition.q[b:e]
                + np.einsum("kn,kn->k", partition.Qv[b:e], nabla_x[b:e])
                + np.einsum("ki,ki->k", partition.Rv[b:e], nabla_u[b:e])
            )
            derivative += trapezoid(integrand, time)

        for event, past_the_end in enumerate(partition.events_past_the_end):
            derivative += partition.Qv_final[event] @ nabla_x[int(past_the_end) - 1]

    nabla_x_final = nabla_x_stock[data.final_active_partition][-1]
    derivative += data.Sv_heuristics @ nabla_x_final
    return float(derivative)
