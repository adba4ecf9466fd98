"""Error types raised by sensitivity propagation."""

from typing import Optional


class InactiveEventError(IndexError):
    """An event index outside the active range was requested."""

    def __init__(self, index: int, begin: int, end: int):
        self.index = index
        self.begin = begin
        self.end = end
        super().__init__(
            f"Event time index {index} is not in the active range [{begin}, {end})."
        )


class NumericalInstabilityError(ArithmeticError):
    """A propagated trajectory contains non-finite values."""

    def __init__(self, message: str, time: Optional[float] = None, name: str = ""):
        self.time = time
        self.name = name
        super().__init__(message)


class IntegrationError(RuntimeError):
    """The ODE integration could not reach the requested times."""


class IntegrationCancelled(IntegrationError):
    """The integration was interrupted through its cancellation token."""
