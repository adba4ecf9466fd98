"""Piecewise linear interpolation of time-indexed trajectories."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from switchgrad.utils.interval import find_active_interval_index


class LinearInterpolation:
    """
    Linear interpolation over a borrowed (time, data) pair.

    The interpolator keeps references to the arrays, it does not copy them, so
    the caller must keep them alive and unmodified while interpolating. The
    last bracketing interval is remembered to speed up neighbouring queries;
    ``reset`` forgets it. At duplicated time stamps (event times) the sample
    before the event is returned.
    """

    def __init__(self, time: Optional[NDArray] = None, data: Optional[NDArray] = None):
        self._time = time
        self._data = data
        self._index = 0

    def set_time_stamp(self, time: NDArray) -> None:
        self._time = time
        self._index = 0

    def set_data(self, data: NDArray) -> None:
        self._data = data

    def reset(self) -> None:
        self._index = 0

    @property
    def time(self) -> Optional[NDArray]:
        return self._time

    def interpolate(self, t: float, index: Optional[int] = None) -> tuple[NDArray, int]:
        """
        Evaluate the trajectory at time t.

        Args:
            t: Query time
            index: Optional interval hint, e.g. the index returned by another
                interpolator on the same time grid

        Returns:
            value: Interpolated sample, clamped to the end samples outside the range
            index: Greatest sample index whose time stamp is <= t; at duplicated
                time stamps, the index of the pre-event sample
        """
        time, data = self._time, self._data
        if time is None or data is None:
            raise ValueError("Time stamp and data must be set before interpolating.")

        n = len(time)
        if n == 0:
            raise ValueError("Cannot interpolate an empty trajectory.")
        if len(data) != n:
            raise ValueError(
                f"Time stamp ({n}) and data ({len(data)}) lengths do not match."
            )
        if n == 1:
            return data[0], 0

        guess = self._index if index is None else index
        guess = min(max(guess, 0), n - 2)
        i = find_active_interval_index(time, t, guess)

        if i < 0:
            self._index = 0
            return data[0], 0
        if i >= n - 1:
            self._index = n - 2
            return data[n - 1], n - 1

        self._index = i
        if t >= time[i + 1]:
            return data[i + 1], i + 1
        dt = time[i + 1] - time[i]
        if dt <= 0.0:
            return data[i], i

        alpha = min(max((t - time[i]) / dt, 0.0), 1.0)
        return (1.0 - alpha) * data[i] + alpha * data[i + 1], i
