"""Per-event propagation passes."""

from switchgrad.propagation.context import SensitivityContext, WorkerScratch
from switchgrad.propagation.multiplier import (
    compute_equivalent_system_multiplier,
    find_active_partition_index,
    find_active_subsystem_index,
)
from switchgrad.propagation.trajectory import EventTimeSensitivity

__all__ = [
    "SensitivityContext",
    "WorkerScratch",
    "compute_equivalent_system_multiplier",
    "find_active_partition_index",
    "find_active_subsystem_index",
    "EventTimeSensitivity",
]
