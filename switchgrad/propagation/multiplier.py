"""Equivalent-system multiplier and subsystem/partition lookup."""

import numpy as np
from numpy.typing import ArrayLike

from switchgrad.utils.interval import find_active_interval_index, WEAK_EPSILON


def find_active_subsystem_index(
    event_times: ArrayLike,
    time: float,
    ceiling: bool = True,
) -> int:
    """
    Index of the subsystem active at ``time``.

    Subsystem k lies between event k-1 and event k; the first and last
    subsystems extend to minus and plus infinity. With ``ceiling`` a time equal
    to an event belongs to the subsystem before it, otherwise to the one after.
    """
    boundaries = np.concatenate(([-np.inf], np.asarray(event_times, dtype=float), [np.inf]))
    epsilon = WEAK_EPSILON if ceiling else -WEAK_EPSILON
    return find_active_interval_index(boundaries, time, 0, epsilon)


def find_active_partition_index(
    partitioning_times: ArrayLike,
    time: float,
    ceiling: bool = True,
) -> int:
    """
    Index of the partition containing ``time``.

    Raises:
        ValueError: if the time lies outside the partitioning times
    """
    epsilon = WEAK_EPSILON if ceiling else -WEAK_EPSILON
    index = find_active_interval_index(partitioning_times, time, 0, epsilon)

    if index < 0:
        raise ValueError(
            f"Given time is less than the start time: {time} < {partitioning_times[0]}"
        )
    if index == len(partitioning_times) - 1:
        raise ValueError(
            f"Given time is greater than the final time: {partitioning_times[-1]} < {time}"
        )
    return index


def compute_equivalent_system_multiplier(
    event_time_index: int,
    active_subsystem: int,
    event_times: ArrayLike,
    init_time: float,
    final_time: float,
) -> float:
    """
    Multiplier of the flow map in the switching-time sensitivity equations.

    In the equivalent system every subsystem runs over a unit normalized time,
    scaled by its duration T. Moving event k stretches subsystem k by +1 and
    shrinks subsystem k+1 by -1, hence a forcing of +1/T before the event,
    -1/T after it and none elsewhere.

    Args:
        event_time_index: Index k of the perturbed event
        active_subsystem: Subsystem whose segment is being integrated
        event_times: Ordered event times
        init_time: Initial time of the horizon
        final_time: Final time of the horizon

    Returns:
        -1/T right after the event, +1/T right before it, 0 otherwise
    """
    num_events = len(event_times)

    if active_subsystem == event_time_index + 1:
        if active_subsystem == num_events:
            if final_time < event_times[event_time_index]:
                raise ValueError("Final time is smaller than the last triggered event time.")
            time_period = final_time - event_times[event_time_index]
        else:
            time_period = event_times[event_time_index + 1] - event_times[event_time_index]
        sign = -1.0

    elif active_subsystem == event_time_index:
        if active_subsystem == 0:
            if init_time > event_times[event_time_index]:
                raise ValueError("Initial time is greater than the first triggered event time.")
            time_period = event_times[event_time_index] - init_time
        else:
            time_period = event_times[event_time_index] - event_times[event_time_index - 1]
        sign = 1.0

    else:
        return 0.0

    if time_period <= 0.0:
        raise ValueError(
            f"Subsystem {active_subsystem} has a non-positive duration ({time_period})."
        )
    return sign / time_period
