"""Runge-Kutta method definition."""

from dataclasses import dataclass
from functools import cached_property
from enum import Enum, auto
import numpy as np
from numpy.typing import NDArray


class StageType(Enum):
    """Classification of stage matrix structure."""
    EXPLICIT = auto()   # A strictly lower triangular
    DIAGONAL = auto()   # A lower triangular with nonzero diagonal
    IMPLICIT = auto()   # A dense


@dataclass(frozen=True)
class ButcherTableau:
    """Runge-Kutta tableau."""

    A: NDArray  # (s, s) stage coefficients
    b: NDArray  # (s,)   weights
    c: NDArray  # (s,)   abscissae

    @cached_property
    def s(self) -> int:
        """Number of stages."""
        return self.A.shape[0]

    @cached_property
    def stage_type(self) -> StageType:
        """Classify the stage matrix structure."""
        return _classify_stage_structure(self.A)

    @cached_property
    def is_explicit(self) -> bool:
        return self.stage_type == StageType.EXPLICIT


def _classify_stage_structure(A: NDArray) -> StageType:
    """Classify stage matrix structure."""
    if np.allclose(A, np.tril(A, -1)):
        return StageType.EXPLICIT

    if np.allclose(A, np.tril(A)):
        return StageType.DIAGONAL

    return StageType.IMPLICIT
