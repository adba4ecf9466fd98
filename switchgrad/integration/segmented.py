"""Piecewise integration across event segments of one partition."""

from typing import Callable, Optional
import numpy as np
from numpy.typing import NDArray

from switchgrad.integration.base import Integrator


def integrate_segmented(
    integrator: Integrator,
    x0: NDArray,
    times: NDArray,
    segments: list[tuple[int, int]],
    *,
    before_segment: Optional[Callable[[int, int, int], None]] = None,
    jump_map: Optional[Callable[[int, NDArray], NDArray]] = None,
    reverse: bool = False,
    **options,
) -> tuple[NDArray, NDArray]:
    """
    Integrate a partition segment by segment, strictly in time order.

    Each event segment is integrated independently. The value leaving one
    segment, passed through ``jump_map``, is the initial value of the next.
    Forward integration starts from the first segment at times[0]; reverse
    integration starts from the last segment at times[-1].

    Args:
        integrator: Integrator of the ODE system
        x0: Initial value (forward) or terminal value (reverse)
        times: Partition time grid (N,), events appear twice
        segments: Half-open (begin, end) sample ranges, one per segment
        before_segment: Called as before_segment(j, begin, end) ahead of
            segment j; binds the segment's data and multiplier
        jump_map: Called as jump_map(e, x) when crossing event e; identity
            when omitted
        reverse: Integrate backward in time
        **options: Forwarded to ``Integrator.integrate``

    Returns:
        trajectory: Values on the time grid in forward order (N, dim)
        x_out: Value after the last integrated segment
    """
    x = np.array(x0, dtype=float)
    trajectory = np.zeros((len(times), x.size))

    order = range(len(segments) - 1, -1, -1) if reverse else range(len(segments))
    for j in order:
        begin, end = segments[j]
        if end > begin:
            if before_segment is not None:
                before_segment(j, begin, end)
            if reverse:
                values = integrator.integrate(x, times[begin:end][::-1], **options)
                trajectory[begin:end] = values[::-1]
                x = values[-1]
            else:
                values = integrator.integrate(x, times[begin:end], **options)
                trajectory[begin:end] = values
                x = values[-1]

        # crossing event j-1 backward or event j forward
        event = j - 1 if reverse else j
        if jump_map is not None and 0 <= event < len(segments) - 1:
            x = jump_map(event, x)

    return trajectory, x
