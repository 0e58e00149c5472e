# cavern/systems/pathfinding.py
"""Shortest paths over a cavern graph.

Dijkstra with a binary heap; every edge length is a positive integer so the
first time a node is popped its distance is final. Ties are broken by the
order nodes were first reached, which follows each node's edge order, so a
given cavern always yields the same path.
"""

from __future__ import annotations

import heapq
import itertools
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import structlog

from cavern.errors import UnreachableError

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from cavern.world.graph import Node

log = structlog.get_logger(__name__)


def dijkstra(
    source: "Node", goal: Optional["Node"] = None
) -> Tuple[Dict["Node", int], Dict["Node", "Node"]]:
    """Run Dijkstra from *source*.

    Returns ``(distances, previous)``. When *goal* is given the search stops
    as soon as the goal's distance is settled, so distances to nodes further
    away may be missing.
    """
    distances: Dict["Node", int] = {source: 0}
    previous: Dict["Node", "Node"] = {}
    settled = set()
    counter = itertools.count()
    pq: List[Tuple[int, int, "Node"]] = [(0, next(counter), source)]

    while pq:
        cost, _, node = heapq.heappop(pq)
        if node in settled:
            continue
        settled.add(node)
        if node is goal:
            break

        for edge in node.edges:
            neighbor = edge.other(node)
            if neighbor in settled:
                continue
            new_cost = cost + edge.length
            if new_cost < distances.get(neighbor, new_cost + 1):
                distances[neighbor] = new_cost
                previous[neighbor] = node
                heapq.heappush(pq, (new_cost, next(counter), neighbor))

    return distances, previous


def shortest_path(start: "Node", end: "Node") -> List["Node"]:
    """Return a minimum-weight path from *start* to *end*, both included.

    ``shortest_path(a, a)`` is ``[a]``. Raises :class:`UnreachableError` when
    the two nodes are not connected.
    """
    if start is end:
        return [start]
    distances, previous = dijkstra(start, goal=end)
    if end not in distances:
        log.warning("No path between nodes", start=start.id, end=end.id)
        raise UnreachableError(f"node {end.id} is unreachable from node {start.id}")

    path = [end]
    node = end
    while node is not start:
        node = previous[node]
        path.append(node)
    path.reverse()
    return path


def path_weight(path: Sequence["Node"]) -> int:
    """Sum of the edge lengths along *path*.

    Consecutive nodes must be adjacent; an empty or one-node path weighs 0.
    """
    return sum(a.edge_to(b).length for a, b in zip(path, path[1:]))


def min_path_length(start: "Node", end: "Node") -> int:
    """Minimum total edge weight between *start* and *end*."""
    if start is end:
        return 0
    distances, _ = dijkstra(start, goal=end)
    try:
        return distances[end]
    except KeyError:
        raise UnreachableError(
            f"node {end.id} is unreachable from node {start.id}"
        ) from None


__all__ = ["dijkstra", "shortest_path", "path_weight", "min_path_length"]
