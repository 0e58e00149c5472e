# cavern/views.py
"""Per-phase views handed to solver code.

A solver never sees :class:`~cavern.game_state.GameState` itself. During
FIND it gets a :class:`FindView`, which only knows node ids and Manhattan
distances; during SCRAM it gets a :class:`ScramView`, which exposes the
whole cavern but only one way to change anything: :meth:`ScramView.move_to`.
Every call on a view raises :class:`~cavern.errors.IllegalPhaseError` once
its phase is no longer running.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Tuple

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from cavern.game_state import GameState
    from cavern.world.graph import Node


@dataclass(frozen=True)
class NodeStatus:
    """A FIND-phase neighbour: its id and its Manhattan distance to the target.

    Sorts by distance, then id.
    """

    node_id: int
    distance: int

    def __lt__(self, other: "NodeStatus") -> bool:
        if not isinstance(other, NodeStatus):
            return NotImplemented
        return (self.distance, self.node_id) < (other.distance, other.node_id)


class FindView:
    """What a solver may see and do while searching for the target."""

    __slots__ = ("_state",)

    def __init__(self, state: "GameState") -> None:
        self._state = state

    def current_location(self) -> int:
        """Id of the node the agent is standing on."""
        return self._state._find_position().id

    def neighbors(self) -> List[NodeStatus]:
        """Ids of the adjacent nodes, each with its distance to the target.

        Distances ignore walls and edge weights.
        """
        position = self._state._find_position()
        return [
            NodeStatus(n.id, self._state._manhattan_to_target(n))
            for n in position.neighbors
        ]

    def distance_to_target(self) -> int:
        """Manhattan distance from here to the target; 0 exactly on the target."""
        return self._state._manhattan_to_target(self._state._find_position())

    def move_to(self, node_id: int) -> None:
        """Move to the adjacent node with id *node_id*."""
        self._state._find_move(node_id)


class ScramView:
    """What a solver may see and do while escaping with the gold.

    The nodes handed out are the cavern's own objects. In a timed run they
    live in the solver process's copy, so nothing done to them reaches the
    engine except through :meth:`move_to`. An untimed run
    (:meth:`GameState.run`) plays in-process with no such isolation: a solver
    that calls ``node.tile.take_gold()`` changes the engine's cavern directly.
    """

    __slots__ = ("_state",)

    def __init__(self, state: "GameState") -> None:
        self._state = state

    def current_node(self) -> "Node":
        return self._state._scram_position()

    def exit_node(self) -> "Node":
        self._state._scram_position()
        return self._state.scram_cavern.target

    def all_nodes(self) -> Tuple["Node", ...]:
        """Every node of the SCRAM cavern, in row-major tile order."""
        self._state._scram_position()
        return self._state.scram_cavern.nodes

    def steps_remaining(self) -> int:
        self._state._scram_position()
        return self._state.steps_remaining

    def move_to(self, node: "Node") -> None:
        """Move to adjacent *node*, paying the connecting edge's length.

        Raises :class:`~cavern.errors.OutOfStepsError` without moving when the
        edge is longer than the remaining budget. Gold on the destination is
        picked up automatically.
        """
        self._state._scram_move(node)


__all__ = ["NodeStatus", "FindView", "ScramView"]
