"""Feedforward term of the sensitivity controller."""

import numpy as np
from numpy.typing import NDArray

from switchgrad.propagation.context import SensitivityContext
from switchgrad.propagation.trajectory import EventTimeSensitivity
from switchgrad.utils.interpolation import LinearInterpolation


def _nominal_on_riccati_grid(partition, arrays, j: int) -> list[NDArray]:
    """Interpolate nominal-grid arrays at the Riccati times of segment j."""
    b, e = partition.segments[j]
    rb, re = partition.riccati_segments[j]
    funcs = [LinearInterpolation(partition.time[b:e], array[b:e]) for array in arrays]

    values = [np.zeros((re - rb,) + array.shape[1:]) for array in arrays]
    for k in range(rb, re):
        index = None
        for func, value in zip(funcs, values):
            value[k - rb], index = func.interpolate(partition.riccati_time[k], index)
    return values


def calculate_lq_sensitivity_controller_forward(
    context: SensitivityContext,
    index: int,
    sensitivity: EventTimeSensitivity,
    Lv_stock: list[NDArray],
) -> list[NDArray]:
    """
    Update the feedforward with the LQ step nabla_Lv = -R^-1 (nabla_Rv + B' nabla_Sv).

    ``nabla_Rv`` is the input gradient of the current sensitivity rollout, so
    the step vanishes once the sensitivity controller is stationary.

    Returns:
        Updated Lv per partition on the Riccati grid (NS, m)
    """
    context.check_active(index)
    data = context.data

    updated = []
    for i, partition in enumerate(data.partitions):
        if not data.is_active(i):
            updated.append(np.zeros(0))
            continue

        Lv = np.array(Lv_stock[i], dtype=float)
        for j, (rb, re) in enumerate(partition.riccati_segments):
            b, e = partition.segments[j]
            if re == rb or e == b:
                continue
            Bm, Rinv, nabla_Rv = _nominal_on_riccati_grid(
                partition, (partition.Bm, partition.Rm_inv, sensitivity.nabla_Rv[i]), j
            )
            nabla_Sv = sensitivity.nabla_Sv[i][rb:re]
            step = nabla_Rv + np.einsum("kni,kn->ki", Bm, nabla_Sv)
            Lv[rb:re] -= np.einsum("kij,kj->ki", Rinv, step)
        updated.append(Lv)

    return updated


def calculate_bvp_sensitivity_controller_forward(
    context: SensitivityContext,
    index: int,
    Mv_stock: list[NDArray],
    Mve_stock: list[NDArray],
    residual_stock: list[NDArray],
) -> list[NDArray]:
    """
    Closed-form feedforward Lv = -R^-1 B' (Mv + Mve) - ev, ev = multiplier R^-1 r.

    Returns:
        Lv per partition on the Riccati grid (NS, m)
    """
    context.check_active(index)
    data = context.data

    Lv_stock = []
    for i, partition in enumerate(data.partitions):
        if not data.is_active(i):
            Lv_stock.append(np.zeros(0))
            continue

        Lv = np.zeros((partition.num_riccati_samples, partition.input_dim))
        for j, (rb, re) in enumerate(partition.riccati_segments):
            b, e = partition.segments[j]
            if re == rb or e == b:
                continue
            Bm, Rinv, residual = _nominal_on_riccati_grid(
                partition, (partition.Bm, partition.Rm_inv, residual_stock[i]), j
            )
            multiplier = context.multiplier(index, partition.riccati_time[rb:re])

            M = Mv_stock[i][rb:re] + Mve_stock[i][rb:re]
            gradient = np.einsum("kni,kn->ki", Bm, M) + multiplier * residual
            Lv[rb:re] = -np.einsum("kij,kj->ki", Rinv, gradient)
        Lv_stock.append(Lv)

    return Lv_stock
