"""Nominal solution data consumed by sensitivity propagation."""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional
import numpy as np
from numpy.typing import NDArray


def segment_bounds(events_past_the_end: NDArray, num_samples: int) -> list[tuple[int, int]]:
    """
    Split a partition grid into half-open event segments.

    Args:
        events_past_the_end: For each event, index one past its last pre-event sample
        num_samples: Length of the time grid

    Returns:
        (begin, end) sample ranges, one per segment (number of events + 1)
    """
    cuts = [int(k) for k in events_past_the_end]
    begins = [0] + cuts
    ends = cuts + [num_samples]
    return list(zip(begins, ends))


@dataclass
class PartitionData:
    """
    Nominal trajectories and LQ approximation of one time partition.

    All arrays are owned by the outer optimizer and treated as read-only.
    Shapes use N nominal samples, NS Riccati samples, NE events inside the
    partition, state dimension n and input dimension m.
    """

    # Nominal rollout (N samples)
    time: NDArray        # (N,)
    state: NDArray       # (N, n)
    input: NDArray       # (N, m)
    flow_map: NDArray    # (N, n) nominal f(x, u)

    # Linearized dynamics
    Am: NDArray          # (N, n, n)
    Bm: NDArray          # (N, n, m)

    # Quadratic intermediate cost expansion
    q: NDArray           # (N,)
    Qv: NDArray          # (N, n)
    Qm: NDArray          # (N, n, n)
    Rv: NDArray          # (N, m)
    Rm: NDArray          # (N, m, m)
    Pm: NDArray          # (N, m, n)

    # Riccati solution (NS samples)
    riccati_time: NDArray  # (NS,)
    Sm: NDArray            # (NS, n, n)
    Sv: NDArray            # (NS, n)
    s: NDArray             # (NS,)
    feedback_gain: NDArray  # (NS, m, n)

    # Event segmentation and terminal cost at each event
    events_past_the_end: Optional[NDArray] = None          # (NE,)
    riccati_events_past_the_end: Optional[NDArray] = None  # (NE,)
    q_final: Optional[NDArray] = None                      # (NE,)
    Qv_final: Optional[NDArray] = None                     # (NE, n)
    Qm_final: Optional[NDArray] = None                     # (NE, n, n)

    Rm_inverse: Optional[NDArray] = field(default=None, repr=False)

    def __post_init__(self):
        n = self.state.shape[-1] if self.state.ndim == 2 else 0
        if self.events_past_the_end is None:
            self.events_past_the_end = np.zeros(0, dtype=int)
        if self.riccati_events_past_the_end is None:
            self.riccati_events_past_the_end = np.zeros(0, dtype=int)
        if self.q_final is None:
            self.q_final = np.zeros(0)
        if self.Qv_final is None:
            self.Qv_final = np.zeros((0, n))
        if self.Qm_final is None:
            self.Qm_final = np.zeros((0, n, n))

    @property
    def num_samples(self) -> int:
        return len(self.time)

    @property
    def num_riccati_samples(self) -> int:
        return len(self.riccati_time)

    @property
    def num_events(self) -> int:
        return len(self.events_past_the_end)

    @property
    def state_dim(self) -> int:
        return self.state.shape[1]

    @property
    def input_dim(self) -> int:
        return self.input.shape[1]

    @cached_property
    def segments(self) -> list[tuple[int, int]]:
        """Event segments of the nominal grid."""
        return segment_bounds(self.events_past_the_end, self.num_samples)

    @cached_property
    def riccati_segments(self) -> list[tuple[int, int]]:
        """Event segments of the Riccati grid."""
        return segment_bounds(self.riccati_events_past_the_end, self.num_riccati_samples)

    @cached_property
    def Rm_inv(self) -> NDArray:
        """Inverse input Hessian, computed once when not supplied."""
        if self.Rm_inverse is not None:
            return self.Rm_inverse
        return np.linalg.inv(self.Rm)

    def validate(self) -> None:
        """Check array lengths against the two time grids."""
        N, NS = self.num_samples, self.num_riccati_samples
        if N == 0 or NS == 0:
            raise ValueError("An active partition must contain nominal and Riccati samples.")

        for name in ("state", "input", "flow_map", "Am", "Bm", "q", "Qv", "Qm", "Rv", "Rm", "Pm"):
            if len(getattr(self, name)) != N:
                raise ValueError(
                    f"'{name}' has {len(getattr(self, name))} samples, expected {N}."
                )
        for name in ("Sm", "Sv", "s", "feedback_gain"):
            if len(getattr(self, name)) != NS:
                raise ValueError(
                    f"'{name}' has {len(getattr(self, name))} samples, expected {NS}."
                )

        NE = self.num_events
        if len(self.riccati_events_past_the_end) != NE:
            raise ValueError(
                "Nominal and Riccati grids must contain the same number of events."
            )
        for name in ("q_final", "Qv_final", "Qm_final"):
            if len(getattr(self, name)) != NE:
                raise ValueError(f"'{name}' must hold one entry per event ({NE}).")

        for cuts, length in (
            (self.events_past_the_end, N),
            (self.riccati_events_past_the_end, NS),
        ):
            if NE and (np.any(np.diff(cuts) < 0) or cuts[0] < 1 or cuts[-1] > length):
                raise ValueError(
                    "Event indices must be non-decreasing and inside the grid, "
                    "with at least one pre-event sample."
                )


@dataclass
class DataCollector:
    """Read-only snapshot of the outer optimizer's nominal solution."""

    partitions: list[PartitionData]
    partitioning_times: NDArray  # (P+1,)
    init_time: float
    final_time: float
    init_state: NDArray          # (n,)
    init_active_partition: int
    final_active_partition: int

    # Final value function gradient and Hessian
    Sv_heuristics: NDArray       # (n,)
    Sm_heuristics: NDArray       # (n, n)

    @property
    def num_partitions(self) -> int:
        return len(self.partitions)

    @property
    def active_partitions(self) -> range:
        return range(self.init_active_partition, self.final_active_partition + 1)

    def is_active(self, partition: int) -> bool:
        return self.init_active_partition <= partition <= self.final_active_partition

    def validate(self) -> None:
        """Raise ValueError when the snapshot is malformed."""
        if self.num_partitions == 0:
            raise ValueError("The data collector holds zero partitions.")
        if len(self.partitioning_times) != self.num_partitions + 1:
            raise ValueError(
                f"Expected {self.num_partitions + 1} partitioning times, "
                f"got {len(self.partitioning_times)}."
            )
        if not (
            0 <= self.init_active_partition
            <= self.final_active_partition
            < self.num_partitions
        ):
            raise ValueError(
                f"Active partition range [{self.init_active_partition}, "
                f"{self.final_active_partition}] is invalid for "
                f"{self.num_partitions} partitions."
            )
        if self.final_time < self.init_time:
            raise ValueError("The final time precedes the initial time.")

        for i in self.active_partitions:
            try:
                self.partitions[i].validate()
            except ValueError as error:
                raise ValueError(f"Partition {i}: {error}") from error
