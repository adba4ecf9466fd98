"""LQ expansion of the cost along the sensitivity rollout."""

import numpy as np
from numpy.typing import NDArray

from switchgrad.core.data import DataCollector
from switchgrad.propagation.trajectory import EventTimeSensitivity


def approximate_nominal_lq_sensitivity(
    data: DataCollector,
    nabla_x_stock: list[NDArray],
    nabla_u_stock: list[NDArray],
    sensitivity: EventTimeSensitivity,
) -> None:
    """
    Chain rule of the nominal LQ expansion through (nabla_x, nabla_u).

        nabla_q  = Qv . nabla_x + Rv . nabla_u
        nabla_Qv = Qm nabla_x + Pm' nabla_u
        nabla_Rv = Pm nabla_x + Rm nabla_u

    At each event the terminal expansion is evaluated with the state
    sensitivity of the last pre-event sample:

        nabla_q_final  = Qv_final . nabla_x
        nabla_Qv_final = Qm_final nabla_x

    Results are stored in ``sensitivity`` along with the rollout itself.
    """
    for i, partition in enumerate(data.partitions):
        sensitivity.nabla_x[i] = nabla_x_stock[i]
        sensitivity.nabla_u[i] = nabla_u_stock[i]

        if not data.is_active(i):
            for stock in (
                sensitivity.nabla_q, sensitivity.nabla_Qv, sensitivity.nabla_Rv,
                sensitivity.nabla_q_final, sensitivity.nabla_Qv_final,
            ):
                stock[i] = np.zeros(0)
            continue

        nabla_x, nabla_u = nabla_x_stock[i], nabla_u_stock[i]

        sensitivity.nabla_q[i] = (
            np.einsum("kn,kn->k", partition.Qv, nabla_x)
            + np.einsum("ki,ki->k", partition.Rv, nabla_u)
        )
        sensitivity.nabla_Qv[i] = (
            np.einsum("knl,kl->kn", partition.Qm, nabla_x)
            + np.einsum("kin,ki->kn", partition.Pm, nabla_u)
        )
        sensitivity.nabla_Rv[i] = (
            np.einsum("kin,kn->ki", partition.Pm, nabla_x)
            + np.einsum("kij,kj->ki", partition.Rm, nabla_u)
        )

        event_samples = np.asarray(partition.events_past_the_end, dtype=int) - 1
        nabla_x_event = nabla_x[event_samples]
        sensitivity.nabla_q_final[i] = np.einsum("en,en->e", partition.Qv_final, nabla_x_event)
        sensitivity.nabla_Qv_final[i] = np.einsum("enl,el->en", partition.Qm_final, nabla_x_event)


def approximate_nominal_heuristics_sensitivity(
    data: DataCollector,
    nabla_x_final: NDArray,
) -> tuple[float, NDArray, NDArray]:
    """
    Terminal Riccati sensitivity from the final value-function heuristics.

    Returns:
        nabla_s = Sv_heuristics . nabla_x, nabla_Sv = Sm_heuristics nabla_x, nabla_Sm = 0
    """
    n = len(nabla_x_final)
    nabla_s = float(data.Sv_heuristics @ nabla_x_final)
    nabla_Sv = data.Sm_heuristics @ nabla_x_final
    return nabla_s, nabla_Sv, np.zeros((n, n))
