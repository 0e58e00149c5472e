"""Solvers the engine can drive.

Solvers are looked up by name so the command line can pick one without
importing it directly.
"""

from __future__ import annotations

from typing import Callable, Dict

import structlog

from cavern.errors import ConfigurationError
from cavern.solvers.base import Solver
from cavern.solvers.reference import ReferenceSolver

log = structlog.get_logger()

# Mapping from solver name to a factory for a fresh solver instance.
SOLVERS: Dict[str, Callable[[], Solver]] = {
    "reference": ReferenceSolver,
}


def get_solver(name: str) -> Solver:
    """Return a new instance of the solver registered under *name*."""
    try:
        factory = SOLVERS[name]
    except KeyError:
        known = ", ".join(sorted(SOLVERS))
        raise ConfigurationError(f"Unknown solver '{name}' (known: {known})") from None
    log.debug("Solver selected", solver=name)
    return factory()


__all__ = ["SOLVERS", "Solver", "ReferenceSolver", "get_solver"]
