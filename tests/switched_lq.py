"""Switched linear-quadratic test problem with an exact optimal nominal solution."""

import numpy as np
from scipy.integrate import solve_ivp

from switchgrad.core.data import DataCollector, PartitionData


class SwitchedLQ:
    """
    2 states, 1 input, subsystems alternating between (A0, B0) and (A1, B1).

    J = int 0.5 x'Qx + 0.5 u'Ru dt + sum over events 0.5 x'Hx + 0.5 x(T)'QF x(T)

    The optimal solution is u = -R^-1 B'S x with the Riccati matrix S, which
    jumps by H at every event. The optimal cost is 0.5 x0'S(t0) x0.
    """

    A = (
        np.array([[0.0, 1.0], [-2.0, -0.5]]),
        np.array([[0.5, 1.0], [-1.0, 0.0]]),
    )
    B = (
        np.array([[0.0], [1.0]]),
        np.array([[1.0], [0.5]]),
    )
    Q = np.diag([1.0, 0.5])
    R = np.array([[0.2]])
    QF = np.diag([2.0, 1.0])

    def __init__(self, x0=(1.0, -0.5), init_time=0.0, final_time=1.0, H=None):
        self.x0 = np.asarray(x0, dtype=float)
        self.init_time = init_time
        self.final_time = final_time
        self.H = np.zeros((2, 2)) if H is None else np.asarray(H, dtype=float)
        self.Rinv = np.linalg.inv(self.R)

    def _system(self, sigma):
        return self.A[sigma % 2], self.B[sigma % 2]

    def _bounds(self, event_times):
        return np.concatenate(([self.init_time], event_times, [self.final_time]))

    def solve_riccati(self, event_times):
        """Dense Riccati solution of every subsystem, swept backward."""
        bounds = self._bounds(event_times)
        num_subsystems = len(bounds) - 1
        solutions = [None] * num_subsystems

        S_end = self.QF
        for sigma in range(num_subsystems - 1, -1, -1):
            A, B = self._system(sigma)

            def rhs(t, s, A=A, B=B):
                S = s.reshape(2, 2)
                dS = -(self.Q + A.T @ S + S @ A - S @ B @ self.Rinv @ B.T @ S)
                return dS.ravel()

            sol = solve_ivp(
                rhs, (bounds[sigma + 1], bounds[sigma]), S_end.ravel(),
                method="DOP853", rtol=1e-11, atol=1e-12, dense_output=True,
            )
            solutions[sigma] = sol.sol
            S_end = sol.y[:, -1].reshape(2, 2) + self.H

        return solutions

    def riccati_at_init(self, event_times):
        S = self.solve_riccati(np.asarray(event_times, dtype=float))[0]
        return S(self.init_time).reshape(2, 2)

    def optimal_cost(self, event_times):
        return 0.5 * self.x0 @ self.riccati_at_init(event_times) @ self.x0

    def nominal(self, event_times, partitioning_times=None, samples_per_second=400):
        """DataCollector of the optimal solution for the given event times."""
        event_times = np.asarray(event_times, dtype=float)
        if partitioning_times is None:
            partitioning_times = [self.init_time, self.final_time]
        partitioning_times = np.asarray(partitioning_times, dtype=float)

        riccati = self.solve_riccati(event_times)
        bounds = self._bounds(event_times)

        # closed-loop state per subsystem
        states = []
        x = self.x0
        for sigma in range(len(bounds) - 1):
            A, B = self._system(sigma)
            S = riccati[sigma]

            def closed_loop(t, x, A=A, B=B, S=S):
                K = -self.Rinv @ B.T @ S(t).reshape(2, 2)
                return (A + B @ K) @ x

            sol = solve_ivp(
                closed_loop, (bounds[sigma], bounds[sigma + 1]), x,
                method="DOP853", rtol=1e-11, atol=1e-12, dense_output=True,
            )
            states.append(sol.sol)
            x = sol.y[:, -1]

        partitions = []
        for p in range(len(partitioning_times) - 1):
            partitions.append(
                self._partition(
                    partitioning_times[p], partitioning_times[p + 1],
                    bounds, riccati, states, samples_per_second,
                )
            )

        x_final = states[-1](self.final_time)
        return DataCollector(
            partitions=partitions,
            partitioning_times=partitioning_times,
            init_time=self.init_time,
            final_time=self.final_time,
            init_state=self.x0.copy(),
            init_active_partition=0,
            final_active_partition=len(partitions) - 1,
            Sv_heuristics=self.QF @ x_final,
            Sm_heuristics=self.QF.copy(),
        )

    def _partition(self, t_begin, t_end, bounds, riccati, states, samples_per_second):
        pieces = []
        for sigma in range(len(bounds) - 1):
            a, b = max(bounds[sigma], t_begin), min(bounds[sigma + 1], t_end)
            if b - a > 1e-12:
                num = max(2, int(np.ceil((b - a) * samples_per_second)) + 1)
                pieces.append((sigma, np.linspace(a, b, num)))

        time, sigmas, events_past_the_end = [], [], []
        for j, (sigma, t) in enumerate(pieces):
            if j > 0:
                events_past_the_end.append(len(time))
            time.extend(t)
            sigmas.extend([sigma] * len(t))
        time = np.array(time)
        N = len(time)

        state = np.zeros((N, 2))
        inputs = np.zeros((N, 1))
        flow_map = np.zeros((N, 2))
        Am = np.zeros((N, 2, 2))
        Bm = np.zeros((N, 2, 1))
        Sm = np.zeros((N, 2, 2))
        K = np.zeros((N, 1, 2))
        for k, (t, sigma) in enumerate(zip(time, sigmas)):
            A, B = self._system(sigma)
            Sm[k] = riccati[sigma](t).reshape(2, 2)
            Sm[k] = 0.5 * (Sm[k] + Sm[k].T)
            K[k] = -self.Rinv @ B.T @ Sm[k]
            state[k] = states[sigma](t)
            inputs[k] = K[k] @ state[k]
            flow_map[k] = A @ state[k] + B @ inputs[k]
            Am[k], Bm[k] = A, B

        event_samples = np.array(events_past_the_end, dtype=int) - 1
        x_event = state[event_samples]

        return PartitionData(
            time=time,
            state=state,
            input=inputs,
            flow_map=flow_map,
            Am=Am,
            Bm=Bm,
            q=0.5 * np.einsum("kn,nl,kl->k", state, self.Q, state)
            + 0.5 * np.einsum("ki,ij,kj->k", inputs, self.R, inputs),
            Qv=state @ self.Q.T,
            Qm=np.repeat(self.Q[None], N, axis=0),
            Rv=inputs @ self.R.T,
            Rm=np.repeat(self.R[None], N, axis=0),
            Pm=np.zeros((N, 1, 2)),
            riccati_time=time.copy(),
            Sm=Sm,
            Sv=np.einsum("knl,kl->kn", Sm, state),
            s=0.5 * np.einsum("kn,knl,kl->k", state, Sm, state),
            feedback_gain=K,
            events_past_the_end=np.array(events_past_the_end, dtype=int),
            riccati_events_past_the_end=np.array(events_past_the_end, dtype=int),
            q_final=0.5 * np.einsum("en,nl,el->e", x_event, self.H, x_event),
            Qv_final=x_event @ self.H.T,
            Qm_final=np.repeat(self.H[None], len(x_event), axis=0),
        )

    def finite_difference(self, event_times, index, eps=1e-4):
        """Centered difference of the optimal cost in one event time."""
        plus = np.array(event_times, dtype=float)
        minus = np.array(event_times, dtype=float)
        plus[index] += eps
        minus[index] -= eps
        return (self.optimal_cost(plus) - self.optimal_cost(minus)) / (2.0 * eps)

    def riccati_derivative(self, event_times, index, eps=1e-4):
        """Centered difference of S(t0) in one event time."""
        plus = np.array(event_times, dtype=float)
        minus = np.array(event_times, dtype=float)
        plus[index] += eps
        minus[index] -= eps
        return (self.riccati_at_init(plus) - self.riccati_at_init(minus)) / (2.0 * eps)
