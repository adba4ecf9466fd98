"""Tests for the interval locator."""

import numpy as np
import pytest

from switchgrad.utils.interval import (
    ActiveIntervalFinder,
    WEAK_EPSILON,
    find_active_interval_index,
)


def test_query_inside_range_is_bracketed():
    """B[i] < q <= B[i+1] for every query strictly inside the range."""
    rng = np.random.default_rng(0)
    for _ in range(20):
        boundaries = np.sort(rng.uniform(-5.0, 5.0, size=rng.integers(2, 12)))
        boundaries = boundaries[np.concatenate(([True], np.diff(boundaries) > 1e-3))]
        if len(boundaries) < 2:
            continue
        queries = rng.uniform(boundaries[0] + 1e-3, boundaries[-1], size=30)
        for q in queries:
            for guess in (0, len(boundaries) - 2):
                i = find_active_interval_index(boundaries, q, guess)
                assert 0 <= i <= len(boundaries) - 2
                assert boundaries[i] < q <= boundaries[i + 1] + WEAK_EPSILON


def test_out_of_range_sentinels():
    """-1 below the first boundary, len-1 above the last."""
    boundaries = np.array([0.0, 1.0, 2.0, 3.0])

    assert find_active_interval_index(boundaries, -0.5, 2) == -1
    assert find_active_interval_index(boundaries, 3.5, 0) == 3


def test_first_boundary_belongs_to_first_interval():
    boundaries = np.array([0.0, 1.0, 2.0])

    assert find_active_interval_index(boundaries, 0.0, 1) == 0
    assert find_active_interval_index(boundaries, 0.5 * WEAK_EPSILON, 0) == 0


def test_boundary_belongs_to_interval_on_its_left():
    """Ceiling sense: a time equal to a boundary closes the interval before it."""
    boundaries = np.array([0.0, 1.0, 2.0])

    assert find_active_interval_index(boundaries, 1.0, 0) == 0
    assert find_active_interval_index(boundaries, 1.0 + 0.5 * WEAK_EPSILON, 1) == 0
    assert find_active_interval_index(boundaries, 2.0, 0) == 1


def test_negative_epsilon_gives_floor_lookup():
    """Floor sense: a time equal to a boundary opens the interval after it."""
    boundaries = np.array([0.0, 1.0, 2.0])

    assert find_active_interval_index(boundaries, 1.0, 0, -WEAK_EPSILON) == 1
    assert find_active_interval_index(boundaries, 0.0, 0, -WEAK_EPSILON) == 0
    # final boundary maps to the last interval
    assert find_active_interval_index(boundaries, 2.0, 0, -WEAK_EPSILON) == 1


def test_duplicated_boundaries():
    """Event times appear twice in trajectories; the query resolves before them."""
    boundaries = np.array([0.0, 0.5, 0.5, 1.0])

    assert find_active_interval_index(boundaries, 0.5, 0) == 0
    assert find_active_interval_index(boundaries, 0.5, 2) == 0
    assert find_active_interval_index(boundaries, 0.75, 0) == 2


def test_invalid_inputs_raise():
    with pytest.raises(ValueError):
        find_active_interval_index(np.array([1.0]), 1.0, 0)

    with pytest.raises(ValueError):
        find_active_interval_index(np.array([0.0, 1.0, 2.0]), 1.0, 2)

    with pytest.raises(ValueError):
        find_active_interval_index(np.array([0.0, 1.0, 2.0]), 1.0, -1)


def test_stateful_finder_matches_explicit_guess():
    boundaries = np.linspace(0.0, 1.0, 11)
    finder = ActiveIntervalFinder()

    queries = np.concatenate((np.linspace(0.0, 1.0, 37), np.linspace(1.0, 0.0, 23)))
    for q in queries:
        assert finder(boundaries, q) == find_active_interval_index(boundaries, q, 0)

    # the remembered guess is clamped to a valid index
    assert finder(boundaries, -1.0) == -1
    assert finder(boundaries, 0.55) == 5


def test_stateful_finder_reset():
    boundaries = np.linspace(0.0, 1.0, 11)
    finder = ActiveIntervalFinder()

    finder(boundaries, 0.95)
    finder.reset()
    assert finder(np.array([0.0, 1.0]), 0.5) == 0
