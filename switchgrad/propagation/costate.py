"""Nominal costate and stationarity residual on the nominal grid."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from switchgrad.core.data import DataCollector, PartitionData
from switchgrad.utils.interpolation import LinearInterpolation


def _costate(partition: PartitionData, state: NDArray, learning_rate: float) -> NDArray:
    costate = np.zeros((partition.num_samples, partition.state_dim))
    Sm_func = LinearInterpolation()
    Sv_func = LinearInterpolation()

    for (b, e), (rb, re) in zip(partition.segments, partition.riccati_segments):
        if e == b:
            continue
        Sm_func.set_time_stamp(partition.riccati_time[rb:re])
        Sm_func.set_data(partition.Sm[rb:re])
        Sv_func.set_time_stamp(partition.riccati_time[rb:re])
        Sv_func.set_data(partition.Sv[rb:re])
        for k in range(b, e):
            Sv, index = Sv_func.interpolate(partition.time[k])
            Sm, _ = Sm_func.interpolate(partition.time[k], index)
            costate[k] = Sv + learning_rate * Sm @ (state[k] - partition.state[k])
    return costate


def calculate_rollout_costate(
    data: DataCollector,
    state_stock: Optional[list[NDArray]] = None,
    learning_rate: float = 0.0,
) -> list[NDArray]:
    """
    Costate lambda = Sv + learning_rate Sm (x - x_nominal) at every nominal sample.

    Args:
        data: Nominal solution
        state_stock: Optional rollout states per partition; the nominal state
            is used when omitted, giving lambda = Sv
        learning_rate: Weight of the state deviation term

    Returns:
        Costate per partition (N, n); empty for inactive partitions
    """
    costate_stock = []
    for i, partition in enumerate(data.partitions):
        if not data.is_active(i):
            costate_stock.append(np.zeros(0))
            continue
        state = partition.state if state_stock is None else state_stock[i]
        costate_stock.append(_costate(partition, state, learning_rate))
    return costate_stock


def calculate_stationarity_residual(
    data: DataCollector,
    costate_stock: list[NDArray],
) -> list[NDArray]:
    """Residual r = Rv + B' lambda of the input stationarity condition."""
    residual_stock = []
    for i, partition in enumerate(data.partitions):
        if not data.is_active(i):
            residual_stock.append(np.zeros(0))
            continue
        residual_stock.append(
            partition.Rv + np.einsum("kni,kn->ki", partition.Bm, costate_stock[i])
        )
    return residual_stock
