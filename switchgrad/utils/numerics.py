"""Finiteness checks for propagated trajectories."""

import logging
import numpy as np
from numpy.typing import NDArray

from switchgrad.core.exceptions import NumericalInstabilityError

log = logging.getLogger(__name__)


def assert_all_finite(
    name: str,
    time: NDArray,
    values: NDArray,
    window: int = 10,
) -> None:
    """
    Sweep a trajectory backward in time and raise at the first non-finite sample.

    The offending time and the norms of the following ``window`` samples are
    logged before raising.

    Args:
        name: Trajectory name used in the report
        time: Time stamps (N,)
        values: Samples (N, ...)
        window: Number of neighbouring samples reported

    Raises:
        NumericalInstabilityError: carrying the offending time and name
    """
    values = np.asarray(values)
    if values.size == 0:
        return

    flat = values.reshape(len(values), -1)
    finite = np.all(np.isfinite(flat), axis=1)
    if finite.all():
        return

    k = int(np.flatnonzero(~finite)[-1])
    lines = []
    for j in range(k, min(k + window, len(values))):
        lines.append(f"  t = {time[j]:.6g}  |{name}| = {np.linalg.norm(flat[j]):.6g}")
    log.error(
        "%s is not finite at time %.6g; the next samples are:\n%s",
        name, time[k], "\n".join(lines),
    )
    raise NumericalInstabilityError(
        f"{name} is not finite at time {time[k]:.6g}.", time=float(time[k]), name=name
    )
