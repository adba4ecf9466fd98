"""Backward sensitivity of the Riccati solution (Sm, Sv, s)."""

import numpy as np
from numpy.typing import NDArray

from switchgrad.equations.base import SensitivityEquations
from switchgrad.utils.interpolation import LinearInterpolation


def convert_to_vector(Sm: NDArray, Sv: NDArray, s: float) -> NDArray:
    """Pack (Sm, Sv, s) with the upper triangle of the symmetric Sm."""
    rows, cols = np.triu_indices(Sm.shape[0])
    return np.concatenate((Sm[rows, cols], Sv, [s]))


def convert_to_matrix(vector: NDArray, state_dim: int) -> tuple[NDArray, NDArray, float]:
    """Unpack a vector produced by ``convert_to_vector``."""
    rows, cols = np.triu_indices(state_dim)
    num_upper = len(rows)

    Sm = np.zeros((state_dim, state_dim))
    Sm[rows, cols] = vector[:num_upper]
    Sm[cols, rows] = vector[:num_upper]
    Sv = vector[num_upper:num_upper + state_dim]
    s = float(vector[num_upper + state_dim])
    return Sm, Sv, s


def riccati_vector_size(state_dim: int) -> int:
    return state_dim * (state_dim + 1) // 2 + state_dim + 1


class RiccatiSensitivityEquations(SensitivityEquations):
    """
    Sensitivity of the Riccati solution with respect to one switching time.

    With Lm = -R^-1 (P + B'Sm), Lv = -R^-1 (Rv + B'Sv), Acl = A + B Lm and the
    learning rate a:

        -d(nabla_Sm)/dt = m (Q + A'Sm + Sm A - Lm'R Lm) + Acl' nabla_Sm + nabla_Sm Acl
        -d(nabla_Sv)/dt = m (Qv + A'Sv + Lm'(Rv + B'Sv)) + nabla_Qv + Acl' nabla_Sv
                          + Lm' nabla_Rv + nabla_Sm B Lv
        -d(nabla_s)/dt  = m (q - (a - a^2/2) Lv'R Lv) + nabla_q - (2a - a^2) Lv'R nabla_Lv

    where nabla_Lv = -R^-1 (nabla_Rv + B' nabla_Sv). The state is the packed
    vector of ``convert_to_vector``.
    """

    def __init__(self, learning_rate: float = 0.0):
        super().__init__()
        self.state_dim = 0
        self.learning_rate = learning_rate

        # nominal grid
        self.Am_func = LinearInterpolation()
        self.Bm_func = LinearInterpolation()
        self.q_func = LinearInterpolation()
        self.Qv_func = LinearInterpolation()
        self.Qm_func = LinearInterpolation()
        self.Rv_func = LinearInterpolation()
        self.Rm_func = LinearInterpolation()
        self.Rm_inverse_func = LinearInterpolation()
        self.Pm_func = LinearInterpolation()
        self.nabla_q_func = LinearInterpolation()
        self.nabla_Qv_func = LinearInterpolation()
        self.nabla_Rv_func = LinearInterpolation()

        # Riccati grid
        self.Sm_func = LinearInterpolation()
        self.Sv_func = LinearInterpolation()

    def set_data(
        self,
        time: NDArray,
        Am: NDArray,
        Bm: NDArray,
        q: NDArray,
        Qv: NDArray,
        Qm: NDArray,
        Rv: NDArray,
        Rm: NDArray,
        Rm_inverse: NDArray,
        Pm: NDArray,
        nabla_q: NDArray,
        nabla_Qv: NDArray,
        nabla_Rv: NDArray,
        riccati_time: NDArray,
        Sm: NDArray,
        Sv: NDArray,
    ) -> None:
        nominal = (
            (self.Am_func, Am), (self.Bm_func, Bm),
            (self.q_func, q), (self.Qv_func, Qv), (self.Qm_func, Qm),
            (self.Rv_func, Rv), (self.Rm_func, Rm), (self.Rm_inverse_func, Rm_inverse),
            (self.Pm_func, Pm),
            (self.nabla_q_func, nabla_q), (self.nabla_Qv_func, nabla_Qv),
            (self.nabla_Rv_func, nabla_Rv),
        )
        for func, data in nominal:
            func.set_time_stamp(time)
            func.set_data(data)

        self.state_dim = Sm.shape[-1]
        for func, data in ((self.Sm_func, Sm), (self.Sv_func, Sv)):
            func.set_time_stamp(riccati_time)
            func.set_data(data)

    def compute_flow_map(self, t: float, x: NDArray) -> NDArray:
        nabla_Sm, nabla_Sv, nabla_s = convert_to_matrix(x, self.state_dim)

        Sm, index = self.Sm_func.interpolate(t)
        Sv, _ = self.Sv_func.interpolate(t, index)

        A, index = self.Am_func.interpolate(t)
        B, _ = self.Bm_func.interpolate(t, index)
        q, _ = self.q_func.interpolate(t, index)
        Qv, _ = self.Qv_func.interpolate(t, index)
        Qm, _ = self.Qm_func.interpolate(t, index)
        Rv, _ = self.Rv_func.interpolate(t, index)
        Rm, _ = self.Rm_func.interpolate(t, index)
        Rinv, _ = self.Rm_inverse_func.interpolate(t, index)
        Pm, _ = self.Pm_func.interpolate(t, index)
        nabla_q, _ = self.nabla_q_func.interpolate(t, index)
        nabla_Qv, _ = self.nabla_Qv_func.interpolate(t, index)
        nabla_Rv, _ = self.nabla_Rv_func.interpolate(t, index)

        Lm = -Rinv @ (Pm + B.T @ Sm)
        Lv = -Rinv @ (Rv + B.T @ Sv)
        Acl = A + B @ Lm
        nabla_Lv = -Rinv @ (nabla_Rv + B.T @ nabla_Sv)

        a = self.learning_rate
        m = self.multiplier

        # negative time derivatives
        rhs_Sm = Acl.T @ nabla_Sm + nabla_Sm @ Acl
        rhs_Sv = nabla_Qv + Acl.T @ nabla_Sv + Lm.T @ nabla_Rv + nabla_Sm @ B @ Lv
        rhs_s = nabla_q - (2.0 * a - a**2) * (Lv @ Rm @ nabla_Lv)

        if m != 0.0:
            rhs_Sm = rhs_Sm + m * (Qm + A.T @ Sm + Sm @ A - Lm.T @ Rm @ Lm)
            rhs_Sv = rhs_Sv + m * (Qv + A.T @ Sv + Lm.T @ (Rv + B.T @ Sv))
            rhs_s = rhs_s + m * (q - (a - 0.5 * a**2) * (Lv @ Rm @ Lv))

        return -convert_to_vector(rhs_Sm, rhs_Sv, rhs_s)
