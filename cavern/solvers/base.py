# cavern/solvers/base.py
"""The interface the engine drives a solver through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from cavern.views import FindView, ScramView


class Solver(ABC):
    """Decision logic for both phases.

    The engine calls each method at most once per game, possibly in a
    separate process and always under a deadline. Anything the solver keeps
    on ``self`` during one phase is not guaranteed to survive into the next.
    """

    @abstractmethod
    def explore_for_target(self, state: "FindView") -> None:
        """Walk to the target and return while standing on it.

        Only the current node's id, its neighbours' ids and Manhattan
        distances to the target are known. Fewer moves earn a larger bonus.
        """

    @abstractmethod
    def scram_to_exit(self, state: "ScramView") -> None:
        """Walk to the exit before the step budget runs out, collecting gold.

        The whole cavern is visible. Returning anywhere but the exit, or
        running out of steps, fails the phase; gold already picked up still
        counts toward the score.
        """
