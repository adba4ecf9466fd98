"""
Switchgrad: switching-time sensitivities of hybrid optimal control problems.

Given the nominal optimal solution of an SLQ-type trajectory optimizer, this
library computes, for every switching (event) time:
- The derivative of the optimal cost
- State and input sensitivity trajectories
- The feedforward of the sensitivity controller
- The value function derivative at any (time, state)
"""

__version__ = "0.1.0"

from switchgrad.core.data import DataCollector, PartitionData
from switchgrad.core.exceptions import (
    InactiveEventError,
    IntegrationCancelled,
    IntegrationError,
    NumericalInstabilityError,
)
from switchgrad.core.settings import IntegratorType, SensitivitySettings
from switchgrad.integration.base import CancellationToken
from switchgrad.optimization.interface import SwitchingTimeSensitivity

__all__ = [
    "DataCollector",
    "PartitionData",
    "InactiveEventError",
    "IntegrationCancelled",
    "IntegrationError",
    "NumericalInstabilityError",
    "IntegratorType",
    "SensitivitySettings",
    "CancellationToken",
    "SwitchingTimeSensitivity",
]
