"""Derivative assembly and the interface for the outer optimizer."""

from switchgrad.optimization.interface import SwitchingTimeSensitivity
from switchgrad.optimization.methods import run_lq_based_method, run_sweeping_bvp_method

__all__ = [
    "SwitchingTimeSensitivity",
    "run_lq_based_method",
    "run_sweeping_bvp_method",
]
