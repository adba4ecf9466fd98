"""Locating the interval of a boundary sequence that contains a query time."""

from numpy.typing import ArrayLike

WEAK_EPSILON = 1e-6


def find_active_interval_index(
    time_intervals: ArrayLike,
    enquiry_time: float,
    guessed_index: int,
    epsilon: float = WEAK_EPSILON,
) -> int:
    """
    Find the interval of a non-decreasing boundary sequence containing a time.

    For n boundaries there are n-1 intervals indexed 0..n-2. The enquiry time is
    in interval i if ``t[i] < enquiry_time <= t[i+1]``, equality taken in the
    epsilon vicinity. As an exceptional case a time equal to the first boundary
    belongs to interval 0. Times before the first boundary give -1 and times
    after the last boundary give n-1, which is not a valid interval.

    A negative epsilon flips the equality sense, giving ``t[i] <= enquiry_time
    < t[i+1]``; the last boundary then belongs to interval n-2.

    Args:
        time_intervals: Non-decreasing boundary times (n >= 2)
        enquiry_time: Query time
        guessed_index: Starting point of the search, in [0, n-2]
        epsilon: Vicinity used for equality

    Returns:
        Active interval index in [-1, n-1]
    """
    num_intervals = len(time_intervals) - 1

    if num_intervals < 1:
        raise ValueError("The time interval array should have at least 2 elements.")

    if guessed_index < 0 or guessed_index > num_intervals - 1:
        raise ValueError(
            f"The guessed index (i.e. {guessed_index}) is out of range "
            f"[0, {num_intervals - 1}]."
        )

    index = -1
    time_minus = enquiry_time - epsilon

    if time_minus < time_intervals[guessed_index]:
        # search backward
        for i in range(guessed_index, -1, -1):
            if time_intervals[i] <= time_minus:
                index = i
                break
    else:
        # search forward
        for i in range(guessed_index, num_intervals + 1):
            index = i
            if time_minus < time_intervals[i]:
                index -= 1
                break

    if index == -1 and epsilon > 0:
        if enquiry_time >= time_intervals[0] - epsilon:
            index = 0

    if index == num_intervals and epsilon < 0:
        if enquiry_time <= time_intervals[-1] - epsilon:
            index = num_intervals - 1

    return index


class ActiveIntervalFinder:
    """
    Interval lookup that remembers the last result as the next guess.

    Monotone query sequences are resolved in near-constant time. The remembered
    guess is mutable state: an instance must not be shared between threads.
    Concurrent callers use ``find_active_interval_index`` with their own guess.
    """

    def __init__(self, epsilon: float = WEAK_EPSILON):
        self.epsilon = epsilon
        self._guessed_index = 0

    def reset(self) -> None:
        """Forget the remembered guess."""
        self._guessed_index = 0

    def __call__(self, time_intervals: ArrayLike, enquiry_time: float) -> int:
        guess = min(self._guessed_index, max(len(time_intervals) - 2, 0))
        index = find_active_interval_index(
            time_intervals, enquiry_time, guess, self.epsilon
        )
        self._guessed_index = max(index, 0)
        return index
