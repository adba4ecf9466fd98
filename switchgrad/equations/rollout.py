"""Forward sensitivity of the state rollout."""

from numpy.typing import NDArray

from switchgrad.equations.base import SensitivityEquations
from switchgrad.utils.interpolation import LinearInterpolation


class RolloutSensitivityEquations(SensitivityEquations):
    """
    d(nabla_x)/dt = A nabla_x + B nabla_u + multiplier * f

    with the affine sensitivity controller nabla_u = k nabla_x + Lv.
    """

    def __init__(self):
        super().__init__()
        self.Am_func = LinearInterpolation()
        self.Bm_func = LinearInterpolation()
        self.flow_map_func = LinearInterpolation()
        self.k_func = LinearInterpolation()
        self.Lv_func = LinearInterpolation()

    def set_data(
        self,
        time: NDArray,
        Am: NDArray,
        Bm: NDArray,
        flow_map: NDArray,
        controller_time: NDArray,
        Lv: NDArray,
        k: NDArray,
    ) -> None:
        """
        Args:
            time: Nominal time stamps
            Am, Bm, flow_map: Linearized dynamics and nominal flow map on ``time``
            controller_time: Time stamps of the sensitivity controller
            Lv: Feedforward of the sensitivity controller
            k: Feedback gain of the nominal controller
        """
        for func, data in ((self.Am_func, Am), (self.Bm_func, Bm), (self.flow_map_func, flow_map)):
            func.set_time_stamp(time)
            func.set_data(data)
        for func, data in ((self.k_func, k), (self.Lv_func, Lv)):
            func.set_time_stamp(controller_time)
            func.set_data(data)

    def compute_input(self, t: float, nabla_x: NDArray) -> NDArray:
        """Input sensitivity from the sensitivity controller."""
        k, index = self.k_func.interpolate(t)
        Lv, _ = self.Lv_func.interpolate(t, index)
        return k @ nabla_x + Lv

    def compute_flow_map(self, t: float, nabla_x: NDArray) -> NDArray:
        A, index = self.Am_func.interpolate(t)
        B, _ = self.Bm_func.interpolate(t, index)

        derivative = A @ nabla_x + B @ self.compute_input(t, nabla_x)

        if abs(self.multiplier) > 1e-9:
            f, _ = self.flow_map_func.interpolate(t, index)
            derivative = derivative + self.multiplier * f

        return derivative
