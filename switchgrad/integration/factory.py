"""Integrator factory and dispatch logic."""

from switchgrad.core.settings import IntegratorType
from switchgrad.integration.base import Integrator, OdeSystem
from switchgrad.integration.adaptive import AdaptiveIntegrator
from switchgrad.integration.explicit import ExplicitIntegrator
from switchgrad.methods.runge_kutta import rk4


def create_integrator(integrator_type: IntegratorType, system: OdeSystem) -> Integrator:
    """
    Build the integrator selected in the settings for one ODE system.

    Called when the per-worker scratch is allocated, so unsupported choices
    fail at setup rather than in the middle of a run.

    Args:
        integrator_type: Requested integrator
        system: ODE system to integrate

    Returns:
        Integrator bound to the system
    """
    if integrator_type == IntegratorType.ODE45:
        return AdaptiveIntegrator(system, method="RK45")

    if integrator_type == IntegratorType.DOP853:
        return AdaptiveIntegrator(system, method="DOP853")

    if integrator_type == IntegratorType.RK4:
        return ExplicitIntegrator(system, rk4())

    raise NotImplementedError(
        f"Integrator {integrator_type.name} is not supported for the sensitivity equations."
    )
