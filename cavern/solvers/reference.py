# cavern/solvers/reference.py
"""Reference solver.

FIND: depth-first walk that tries neighbours closest to the target first and
backtracks out of dead ends.

SCRAM: repeatedly heads for the gold tile with the best gold-per-step ratio
that can still be reached with enough budget left to get to the exit, then
walks the shortest path out.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Set

import structlog

from cavern.solvers.base import Solver
from cavern.systems.pathfinding import dijkstra, shortest_path

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from cavern.views import FindView, ScramView
    from cavern.world.graph import Node

log = structlog.get_logger()


class ReferenceSolver(Solver):
    def explore_for_target(self, state: "FindView") -> None:
        visited: Set[int] = set()
        self._dfs_walk(state, visited)

    def _dfs_walk(self, state: "FindView", visited: Set[int]) -> bool:
        """Explore from the current node; True once standing on the target.

        Iterative so deep caverns cannot hit the recursion limit.
        """
        if state.distance_to_target() == 0:
            return True
        # Each frame: (node id, neighbours still to try, node we came from)
        start = state.current_location()
        visited.add(start)
        stack = [(start, sorted(state.neighbors()), None)]
        while stack:
            here, options, came_from = stack[-1]
            moved = False
            while options:
                option = options.pop(0)
                if option.node_id in visited:
                    continue
                state.move_to(option.node_id)
                visited.add(option.node_id)
                if state.distance_to_target() == 0:
                    return True
                stack.append((option.node_id, sorted(state.neighbors()), here))
                moved = True
                break
            if moved:
                continue
            stack.pop()
            if came_from is not None:
                state.move_to(came_from)
        return False

    def scram_to_exit(self, state: "ScramView") -> None:
        exit_node = state.exit_node()
        # distance from every node to the exit; the graph is undirected
        to_exit, _ = dijkstra(exit_node)

        while True:
            current = state.current_node()
            from_here, _ = dijkstra(current)
            best = self._best_gold(state, current, from_here, to_exit)
            if best is None:
                break
            log.debug("Heading for gold", gold=best.tile.gold, distance=from_here[best])
            self._move_along(state, shortest_path(current, best))

        self._move_along(state, shortest_path(state.current_node(), exit_node))

    @staticmethod
    def _best_gold(
        state: "ScramView",
        current: "Node",
        from_here: Dict["Node", int],
        to_exit: Dict["Node", int],
    ) -> Optional["Node"]:
        budget = state.steps_remaining()
        best: Optional["Node"] = None
        best_ratio = 0.0
        for node in state.all_nodes():
            gold = node.tile.gold
            if gold <= 0 or node is current:
                continue
            if node not in from_here or node not in to_exit:
                continue
            if from_here[node] + to_exit[node] > budget:
                continue
            ratio = gold / from_here[node]
            if ratio > best_ratio:
                best, best_ratio = node, ratio
        return best

    @staticmethod
    def _move_along(state: "ScramView", path: List["Node"]) -> None:
        for node in path[1:]:
            state.move_to(node)
