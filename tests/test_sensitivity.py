"""End-to-end switching-time derivatives on the switched LQ problem.

The optimal cost of the switched LQ problem is 0.5 x0'S(t0)x0, so finite
differences of the Riccati solution give the exact derivative to compare with.
"""

import dataclasses
import logging
import numpy as np
import pytest

from switched_lq import SwitchedLQ
from switchgrad import (
    CancellationToken,
    InactiveEventError,
    IntegrationCancelled,
    IntegratorType,
    NumericalInstabilityError,
    SensitivitySettings,
    SwitchingTimeSensitivity,
)
from switchgrad.core.data import DataCollector


def lq_settings(**kwargs):
    return SensitivitySettings(use_lq_for_derivatives=True, **kwargs)


@pytest.mark.parametrize("use_lq", [False, True])
def test_single_event_matches_finite_difference(use_lq):
    problem = SwitchedLQ()
    event_times = np.array([0.4])

    solver = SwitchingTimeSensitivity(SensitivitySettings(use_lq_for_derivatives=use_lq))
    derivative = solver.run(event_times, problem.nominal(event_times))

    expected = problem.finite_difference(event_times, 0)
    assert derivative.shape == (1,)
    assert derivative[0] == pytest.approx(expected, rel=2e-2, abs=1e-3)


@pytest.mark.parametrize("use_lq", [False, True])
def test_event_cost_and_partitions(use_lq):
    """Terminal cost at the event and a partition boundary away from it."""
    problem = SwitchedLQ(H=0.5 * np.eye(2))
    event_times = np.array([0.35])
    data = problem.nominal(event_times, partitioning_times=[0.0, 0.5, 1.0])

    solver = SwitchingTimeSensitivity(SensitivitySettings(use_lq_for_derivatives=use_lq))
    derivative = solver.run(event_times, data)

    expected = problem.finite_difference(event_times, 0)
    assert derivative[0] == pytest.approx(expected, rel=2e-2, abs=1e-3)


def test_lq_and_bvp_methods_agree():
    problem = SwitchedLQ(x0=(-0.5, 1.0))
    event_times = np.array([0.3, 0.65])
    data = problem.nominal(event_times)

    bvp = SwitchingTimeSensitivity().run(event_times, data)
    lq = SwitchingTimeSensitivity(lq_settings()).run(event_times, data)

    assert np.allclose(lq, bvp, rtol=1e-2, atol=1e-4)
    for k in range(2):
        assert bvp[k] == pytest.approx(problem.finite_difference(event_times, k), rel=2e-2, abs=1e-3)


def test_value_function_derivative_is_quadratic():
    """dV/dt at (t0, x) equals 0.5 x' dS(t0)/dt x for the LQ problem."""
    problem = SwitchedLQ()
    event_times = np.array([0.4])
    data = problem.nominal(event_times)

    solver = SwitchingTimeSensitivity(lq_settings())
    solver.run(event_times, data)
    dS = problem.riccati_derivative(event_times, 0)

    assert np.allclose(solver.sensitivity(0).nabla_Sm[0][0], dS, rtol=2e-2, atol=1e-3)

    for dx in (np.zeros(2), np.array([0.2, -0.1]), np.array([-0.3, 0.4])):
        x = problem.x0 + dx
        value = solver.value_function_derivative(0, problem.init_time, x)
        assert value == pytest.approx(0.5 * x @ dS @ x, rel=2e-2, abs=1e-3)


def test_lq_iterations_reach_a_fixed_point():
    problem = SwitchedLQ()
    event_times = np.array([0.4])
    data = problem.nominal(event_times)

    one = SwitchingTimeSensitivity(lq_settings(max_num_lq_iterations=1)).run(event_times, data)
    three = SwitchingTimeSensitivity(lq_settings(max_num_lq_iterations=3)).run(event_times, data)

    assert np.allclose(one, three, rtol=1e-3, atol=1e-6)


def test_accessors():
    problem = SwitchedLQ()
    event_times = np.array([0.4])
    data = problem.nominal(event_times)
    solver = SwitchingTimeSensitivity()

    with pytest.raises(RuntimeError):
        solver.sensitivity(0)
    assert solver.active_event_time_range == (0, 0)

    solver.run(event_times, data)
    assert solver.active_event_time_range == (0, 1)
    assert np.allclose(solver.event_times, event_times)

    nabla_x, nabla_u = solver.rollout_sensitivity(0)
    partition = data.partitions[0]
    assert nabla_x[0].shape == (partition.num_samples, 2)
    assert nabla_u[0].shape == (partition.num_samples, 1)
    # the state sensitivity starts at zero
    assert np.allclose(nabla_x[0][0], 0.0)

    Lv = solver.sensitivity_controller_feedforward(0)
    assert Lv[0].shape == (partition.num_riccati_samples, 1)
    assert solver.sensitivity(0).method == "bvp"

    # the costate sweep is not available from the BVP method
    with pytest.raises(RuntimeError):
        solver.value_function_derivative(0, 0.0, problem.x0)


def test_inactive_event_time():
    """An event beyond the final time reads zero and rejects queries."""
    problem = SwitchedLQ()
    data = problem.nominal(np.array([0.4]))
    event_times = np.array([0.4, 1.2])

    solver = SwitchingTimeSensitivity()
    derivative = solver.run(event_times, data)

    assert solver.active_event_time_range == (0, 1)
    assert derivative.shape == (2,)
    assert np.isfinite(derivative[0])
    assert derivative[1] == 0.0

    with pytest.raises(InactiveEventError):
        solver.sensitivity(1)
    with pytest.raises(InactiveEventError):
        solver.rollout_sensitivity(1)


def test_inactive_partition_is_never_read():
    """Data of a partition past the final active one may be garbage."""
    problem = SwitchedLQ()
    event_times = np.array([0.4])
    data = problem.nominal(event_times, partitioning_times=[0.0, 0.5, 1.0])
    last = data.partitions[-1]

    garbage = dataclasses.replace(
        last,
        time=last.time + 0.5,
        riccati_time=last.riccati_time + 0.5,
        state=np.full_like(last.state, np.nan),
        Sm=np.full_like(last.Sm, np.nan),
        Qv=np.full_like(last.Qv, np.nan),
    )
    padded = dataclasses.replace(
        data,
        partitions=data.partitions + [garbage],
        partitioning_times=np.array([0.0, 0.5, 1.0, 1.5]),
    )
    assert padded.final_active_partition == 1

    for use_lq in (False, True):
        solver = SwitchingTimeSensitivity(SensitivitySettings(use_lq_for_derivatives=use_lq))
        derivative = solver.run(event_times, padded)
        assert derivative[0] == pytest.approx(problem.finite_difference(event_times, 0), rel=2e-2, abs=1e-3)

        nabla_x, _ = solver.rollout_sensitivity(0)
        assert len(nabla_x) == 3
        assert nabla_x[2].size == 0


@pytest.mark.parametrize("use_lq", [False, True])
def test_leading_inactive_partition(use_lq):
    """The initial time on a partition boundary belongs to the first active partition."""
    problem = SwitchedLQ(init_time=0.3)
    event_times = np.array([0.6])
    data = problem.nominal(event_times)
    first = data.partitions[0]

    garbage = dataclasses.replace(
        first,
        time=first.time - 0.7,
        riccati_time=first.riccati_time - 0.7,
        state=np.full_like(first.state, np.nan),
        Sm=np.full_like(first.Sm, np.nan),
    )
    padded = dataclasses.replace(
        data,
        partitions=[garbage] + data.partitions,
        partitioning_times=np.array([-0.4, 0.3, 1.0]),
        init_active_partition=1,
        final_active_partition=1,
    )

    solver = SwitchingTimeSensitivity(SensitivitySettings(use_lq_for_derivatives=use_lq))
    derivative = solver.run(event_times, padded)
    assert derivative[0] == pytest.approx(problem.finite_difference(event_times, 0), rel=2e-2, abs=1e-3)

    nabla_x, _ = solver.rollout_sensitivity(0)
    assert nabla_x[0].size == 0
    assert np.allclose(nabla_x[1][0], 0.0)

    if use_lq:
        value = solver.value_function_derivative(0, 0.3, problem.x0)
        assert value == pytest.approx(derivative[0])


def nan_data(problem, event_times, t_nan):
    data = problem.nominal(event_times)
    partition = data.partitions[0]
    k = int(np.argmin(np.abs(partition.time - t_nan)))
    Qv = partition.Qv.copy()
    Qv[k] = np.nan
    return dataclasses.replace(data, partitions=[dataclasses.replace(partition, Qv=Qv)])


def test_non_finite_trajectory_is_reported(caplog):
    problem = SwitchedLQ()
    event_times = np.array([0.4])
    data = nan_data(problem, event_times, 0.7)
    settings = lq_settings(integrator_type=IntegratorType.RK4, min_time_step=0.01)

    solver = SwitchingTimeSensitivity(settings)
    with caplog.at_level(logging.ERROR, logger="switchgrad.utils.numerics"):
        with pytest.raises(NumericalInstabilityError) as error:
            solver.run(event_times, data)

    assert error.value.time == pytest.approx(0.7, abs=0.02)
    assert error.value.name == "Riccati sensitivity"
    assert "not finite" in caplog.text


def test_non_finite_trajectory_passes_through_when_unchecked():
    problem = SwitchedLQ()
    event_times = np.array([0.4])
    data = nan_data(problem, event_times, 0.7)
    settings = lq_settings(
        integrator_type=IntegratorType.RK4, min_time_step=0.01,
        check_numerical_stability=False,
    )

    with np.errstate(invalid="ignore"):
        derivative = SwitchingTimeSensitivity(settings).run(event_times, data)
    assert np.isnan(derivative[0])


@pytest.mark.parametrize("use_lq", [False, True])
def test_threads_match_serial(use_lq):
    problem = SwitchedLQ()
    event_times = np.array([0.3, 0.65])
    data = problem.nominal(event_times)

    serial = SwitchingTimeSensitivity(
        SensitivitySettings(use_lq_for_derivatives=use_lq)
    ).run(event_times, data)
    parallel = SwitchingTimeSensitivity(
        SensitivitySettings(use_lq_for_derivatives=use_lq, n_threads=2)
    ).run(event_times, data)

    assert np.allclose(parallel, serial, rtol=1e-12, atol=1e-14)


@pytest.mark.parametrize("n_threads", [1, 2])
def test_cancelled_run(n_threads):
    problem = SwitchedLQ()
    event_times = np.array([0.3, 0.65])
    data = problem.nominal(event_times)

    token = CancellationToken()
    token.cancel()

    solver = SwitchingTimeSensitivity(SensitivitySettings(n_threads=n_threads))
    with pytest.raises(IntegrationCancelled):
        solver.run(event_times, data, cancellation=token)


def test_display_info_logs(caplog):
    problem = SwitchedLQ()
    event_times = np.array([0.4])
    data = problem.nominal(event_times)

    solver = SwitchingTimeSensitivity(SensitivitySettings(display_info=True))
    with caplog.at_level(logging.INFO, logger="switchgrad.optimization.interface"):
        solver.run(event_times, data)

    assert "sweeping-BVP" in caplog.text
    assert "Cost function derivative" in caplog.text


def test_invalid_inputs():
    problem = SwitchedLQ()
    data = problem.nominal(np.array([0.4]))
    solver = SwitchingTimeSensitivity()

    empty = DataCollector(
        partitions=[],
        partitioning_times=np.array([0.0]),
        init_time=0.0,
        final_time=1.0,
        init_state=problem.x0,
        init_active_partition=0,
        final_active_partition=0,
        Sv_heuristics=np.zeros(2),
        Sm_heuristics=np.zeros((2, 2)),
    )
    with pytest.raises(ValueError):
        solver.run(np.array([0.4]), empty)

    with pytest.raises(ValueError):
        solver.run(np.array([0.6, 0.4]), data)

    with pytest.raises(ValueError):
        SensitivitySettings(n_threads=0)
    with pytest.raises(ValueError):
        SensitivitySettings(min_time_step=0.0)
    with pytest.raises(ValueError):
        SensitivitySettings(max_num_lq_iterations=0)

    with pytest.raises(NotImplementedError):
        SwitchingTimeSensitivity(SensitivitySettings(integrator_type=IntegratorType.ADAMS_BASHFORTH))
