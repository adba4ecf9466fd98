"""Integration of the sensitivity equations."""

from switchgrad.integration.base import CancellationToken, Integrator
from switchgrad.integration.factory import create_integrator
from switchgrad.integration.segmented import integrate_segmented

__all__ = [
    "CancellationToken",
    "Integrator",
    "create_integrator",
    "integrate_segmented",
]
