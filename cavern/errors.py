"""Exception hierarchy for the cavern engine.

Every error the engine raises on purpose derives from :class:`CavernError`.
Most also derive from the builtin they refine (``ValueError`` for bad input,
``RuntimeError`` for calls made at the wrong time) so callers that only know
the builtins still catch them.
"""

from __future__ import annotations


class CavernError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(CavernError, ValueError):
    """Bad seed, count or configuration value supplied at the boundary."""


class CavernFormatError(CavernError, ValueError):
    """A serialized cavern could not be parsed."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class IllegalPhaseError(CavernError, RuntimeError):
    """A phase-restricted operation was called outside its phase."""


class IllegalMoveError(CavernError, ValueError):
    """A move was requested to a node that is not adjacent to the agent."""


class OutOfStepsError(CavernError):
    """A SCRAM move would cost more steps than remain in the budget."""

    def __init__(self, needed: int, remaining: int) -> None:
        self.needed = needed
        self.remaining = remaining
        super().__init__(f"move needs {needed} steps but only {remaining} remain")


class UnreachableError(CavernError):
    """No path exists between the two requested nodes."""


class InvalidSnapshotError(CavernError):
    """A state update from the solver process does not follow from a legal move."""


__all__ = [
    "CavernError",
    "ConfigurationError",
    "CavernFormatError",
    "IllegalPhaseError",
    "IllegalMoveError",
    "OutOfStepsError",
    "UnreachableError",
    "InvalidSnapshotError",
]
