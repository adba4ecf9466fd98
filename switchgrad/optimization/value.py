"""Value function derivative queries."""

from numpy.typing import NDArray

from switchgrad.propagation.context import SensitivityContext
from switchgrad.propagation.multiplier import find_active_partition_index
from switchgrad.propagation.trajectory import EventTimeSensitivity
from switchgrad.utils.interpolation import LinearInterpolation


def value_function_derivative(
    context: SensitivityContext,
    sensitivity: EventTimeSensitivity,
    time: float,
    state: NDArray,
) -> float:
    """
    Second-order estimate of dV/d(event time) at (time, state).

        nabla_s + dx . nabla_Sv + 0.5 dx . nabla_Sm dx,   dx = state - x_nominal(time)

    Args:
        context: Run context
        sensitivity: Riccati sensitivities of one event index (LQ method)
        time: Query time inside the horizon
        state: Query state

    Returns:
        Value function derivative
    """
    context.check_active(sensitivity.event_time_index)
    data = context.data
    i = find_active_partition_index(data.partitioning_times, time)
    if not data.is_active(i):
        # a time on the boundary of the first active partition belongs to it
        i = find_active_partition_index(data.partitioning_times, time, ceiling=False)
    if not data.is_active(i):
        raise ValueError(f"Time {time} lies in the inactive partition {i}.")
    if len(sensitivity.nabla_s[i]) == 0:
        raise RuntimeError(
            "Riccati sensitivities are not available; run the LQ-based method."
        )

    partition = data.partitions[i]
    x_nominal, _ = LinearInterpolation(partition.time, partition.state).interpolate(time)

    nabla_s, index = LinearInterpolation(
        partition.riccati_time, sensitivity.nabla_s[i]
    ).interpolate(time)
    nabla_Sv, _ = LinearInterpolation(
        partition.riccati_time, sensitivity.nabla_Sv[i]
    ).interpolate(time, index)
    nabla_Sm, _ = LinearInterpolation(
        partition.riccati_time, sensitivity.nabla_Sm[i]
    ).interpolate(time, index)

    dx = state - x_nominal
    return float(nabla_s + dx @ nabla_Sv + 0.5 * dx @ nabla_Sm @ dx)
