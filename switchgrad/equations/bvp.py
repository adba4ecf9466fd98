"""Backward sweeping equations of the boundary-value sensitivity method."""

from numpy.typing import NDArray

from switchgrad.equations.base import SensitivityEquations
from switchgrad.utils.interpolation import LinearInterpolation


class BVPSensitivityEquations(SensitivityEquations):
    """
    Sweeping term Mv of the costate sensitivity nabla_lambda = Sm nabla_x + Mv + Mve:

        -dMv/dt = (A + B k)' Mv + multiplier * (Qv + A' lambda + Sm f)
    """

    def __init__(self):
        super().__init__()
        self.Am_func = LinearInterpolation()
        self.Bm_func = LinearInterpolation()
        self.Qv_func = LinearInterpolation()
        self.flow_map_func = LinearInterpolation()
        self.costate_func = LinearInterpolation()
        self.Sm_func = LinearInterpolation()
        self.k_func = LinearInterpolation()

    def set_data(
        self,
        time: NDArray,
        Am: NDArray,
        Bm: NDArray,
        Qv: NDArray,
        flow_map: NDArray,
        costate: NDArray,
        riccati_time: NDArray,
        Sm: NDArray,
        k: NDArray,
    ) -> None:
        nominal = (
            (self.Am_func, Am), (self.Bm_func, Bm), (self.Qv_func, Qv),
            (self.flow_map_func, flow_map), (self.costate_func, costate),
        )
        for func, data in nominal:
            func.set_time_stamp(time)
            func.set_data(data)
        for func, data in ((self.Sm_func, Sm), (self.k_func, k)):
            func.set_time_stamp(riccati_time)
            func.set_data(data)

    def compute_flow_map(self, t: float, Mv: NDArray) -> NDArray:
        A, index = self.Am_func.interpolate(t)
        B, _ = self.Bm_func.interpolate(t, index)
        k, riccati_index = self.k_func.interpolate(t)

        rhs = (A + B @ k).T @ Mv

        if self.multiplier != 0.0:
            Qv, _ = self.Qv_func.interpolate(t, index)
            f, _ = self.flow_map_func.interpolate(t, index)
            costate, _ = self.costate_func.interpolate(t, index)
            Sm, _ = self.Sm_func.interpolate(t, riccati_index)
            rhs = rhs + self.multiplier * (Qv + A.T @ costate + Sm @ f)

        return -rhs


class BVPSensitivityErrorEquations(SensitivityEquations):
    """
    Correction Mve for a nominal solution that is not exactly stationary:

        -dMve/dt = (A + B Lm)' Mve - (P' + Sm B) ev,   ev = multiplier * R^-1 r

    with Lm = -R^-1 (P + B'Sm) and the stationarity residual r = Rv + B' lambda.
    """

    def __init__(self):
        super().__init__()
        self.Am_func = LinearInterpolation()
        self.Bm_func = LinearInterpolation()
        self.Pm_func = LinearInterpolation()
        self.Rm_inverse_func = LinearInterpolation()
        self.residual_func = LinearInterpolation()
        self.Sm_func = LinearInterpolation()

    def set_data(
        self,
        time: NDArray,
        Am: NDArray,
        Bm: NDArray,
        Pm: NDArray,
        Rm_inverse: NDArray,
        residual: NDArray,
        riccati_time: NDArray,
        Sm: NDArray,
    ) -> None:
        nominal = (
            (self.Am_func, Am), (self.Bm_func, Bm), (self.Pm_func, Pm),
            (self.Rm_inverse_func, Rm_inverse), (self.residual_func, residual),
        )
        for func, data in nominal:
            func.set_time_stamp(time)
            func.set_data(data)
        self.Sm_func.set_time_stamp(riccati_time)
        self.Sm_func.set_data(Sm)

    def compute_flow_map(self, t: float, Mve: NDArray) -> NDArray:
        A, index = self.Am_func.interpolate(t)
        B, _ = self.Bm_func.interpolate(t, index)
        P, _ = self.Pm_func.interpolate(t, index)
        Rinv, _ = self.Rm_inverse_func.interpolate(t, index)
        Sm, _ = self.Sm_func.interpolate(t)

        Lm = -Rinv @ (P + B.T @ Sm)
        rhs = (A + B @ Lm).T @ Mve

        if self.multiplier != 0.0:
            r, _ = self.residual_func.interpolate(t, index)
            ev = self.multiplier * (Rinv @ r)
            rhs = rhs - (P.T + Sm @ B) @ ev

        return -rhs
