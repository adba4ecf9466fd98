"""Sensitivity ODE models."""

from switchgrad.equations.base import SensitivityEquations
from switchgrad.equations.rollout import RolloutSensitivityEquations
from switchgrad.equations.riccati import RiccatiSensitivityEquations
from switchgrad.equations.bvp import (
    BVPSensitivityEquations,
    BVPSensitivityErrorEquations,
)

__all__ = [
    "SensitivityEquations",
    "RolloutSensitivityEquations",
    "RiccatiSensitivityEquations",
    "BVPSensitivityEquations",
    "BVPSensitivityErrorEquations",
]
