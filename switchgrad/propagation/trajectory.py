"""Storage of the sensitivities of one event time."""

from dataclasses import dataclass, field
import numpy as np
from numpy.typing import NDArray


def _empty_stock(num_partitions: int) -> list[NDArray]:
    return [np.zeros(0) for _ in range(num_partitions)]


@dataclass
class EventTimeSensitivity:
    """
    Per-partition sensitivity trajectories with respect to one event time.

    Every list holds one array per partition; inactive partitions hold empty
    arrays. Rollout quantities live on the nominal grid, Riccati and BVP
    quantities on the Riccati grid.
    """

    event_time_index: int

    # Rollout (nominal grid)
    nabla_x: list[NDArray]          # (N, n)
    nabla_u: list[NDArray]          # (N, m)

    # LQ expansion along the sensitivity rollout
    nabla_q: list[NDArray]          # (N,)
    nabla_Qv: list[NDArray]         # (N, n)
    nabla_Rv: list[NDArray]         # (N, m)
    nabla_q_final: list[NDArray]    # (NE,)
    nabla_Qv_final: list[NDArray]   # (NE, n)

    # Riccati sensitivity (Riccati grid, LQ method)
    nabla_s: list[NDArray]          # (NS,)
    nabla_Sv: list[NDArray]         # (NS, n)
    nabla_Sm: list[NDArray]         # (NS, n, n)

    # Sweeping terms (Riccati grid, BVP method)
    Mv: list[NDArray]               # (NS, n)
    Mve: list[NDArray]              # (NS, n)

    # Feedforward of the sensitivity controller (Riccati grid)
    Lv: list[NDArray]               # (NS, m)

    cost_derivative: float = 0.0
    method: str = field(default="")

    @classmethod
    def empty(cls, event_time_index: int, num_partitions: int) -> "EventTimeSensitivity":
        return cls(
            event_time_index=event_time_index,
            **{
                name: _empty_stock(num_partitions)
                for name in (
                    "nabla_x", "nabla_u", "nabla_q", "nabla_Qv", "nabla_Rv",
                    "nabla_q_final", "nabla_Qv_final",
                    "nabla_s", "nabla_Sv", "nabla_Sm", "Mv", "Mve", "Lv",
                )
            },
        )

    @property
    def num_partitions(self) -> int:
        return len(self.nabla_x)
