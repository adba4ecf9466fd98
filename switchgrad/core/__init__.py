"""Core data model, settings and errors."""

from switchgrad.core.data import DataCollector, PartitionData, segment_bounds
from switchgrad.core.method import ButcherTableau, StageType
from switchgrad.core.settings import IntegratorType, SensitivitySettings

__all__ = [
    "DataCollector",
    "PartitionData",
    "segment_bounds",
    "ButcherTableau",
    "StageType",
    "IntegratorType",
    "SensitivitySettings",
]
