# cavern/world/graph.py
"""Graph model for a cavern: tiles, weighted edges, nodes and the cavern itself.

A :class:`Cavern` owns a rectangular grid of tiles. Open tiles carry a
:class:`Node`; walls carry nothing. Nodes are joined by undirected weighted
:class:`Edge` objects between orthogonally adjacent open tiles.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import numpy as np
import structlog

from cavern.constants import MAX_EDGE_WEIGHT, TILE_ID_FLOOR, TILE_ID_WALL
from cavern.errors import IllegalMoveError

log = structlog.get_logger()


class Tile:
    """Coordinates and gold of one open tile.

    Coordinates are fixed at construction. Gold can only go down, and only
    to zero, through :meth:`take_gold`.
    """

    __slots__ = ("_row", "_column", "_gold")

    def __init__(self, row: int, column: int, gold: int = 0) -> None:
        if gold < 0:
            raise ValueError("gold must be non-negative")
        self._row = row
        self._column = column
        self._gold = gold

    @property
    def row(self) -> int:
        return self._row

    @property
    def column(self) -> int:
        return self._column

    @property
    def gold(self) -> int:
        return self._gold

    def take_gold(self) -> int:
        """Remove and return all gold on this tile."""
        taken = self._gold
        self._gold = 0
        return taken

    def __repr__(self) -> str:
        return f"Tile(row={self._row}, column={self._column}, gold={self._gold})"


class Edge:
    """Undirected weighted connection between two nodes."""

    __slots__ = ("first", "second", "length")

    def __init__(self, first: "Node", second: "Node", length: int) -> None:
        if first is second:
            raise ValueError("an edge must join two distinct nodes")
        if not 1 <= length <= MAX_EDGE_WEIGHT:
            raise ValueError(f"edge length must be in [1, {MAX_EDGE_WEIGHT}], got {length}")
        self.first = first
        self.second = second
        self.length = length

    def other(self, node: "Node") -> "Node":
        """Return the endpoint that is not *node*."""
        if node is self.first:
            return self.second
        if node is self.second:
            return self.first
        raise ValueError("node is not an endpoint of this edge")

    def __repr__(self) -> str:
        return f"Edge({self.first.id} <-> {self.second.id}, length={self.length})"


class Node:
    """A vertex of the cavern graph.

    Equality and hashing are identity based. ``id`` is the only handle the
    FIND phase hands out, so it never encodes the tile's position.
    """

    __slots__ = ("_id", "_tile", "_edges")

    def __init__(self, node_id: int, tile: Tile) -> None:
        self._id = node_id
        self._tile = tile
        # neighbour -> edge, in insertion order
        self._edges: Dict[Node, Edge] = {}

    @property
    def id(self) -> int:
        return self._id

    @property
    def tile(self) -> Tile:
        return self._tile

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return tuple(self._edges.values())

    @property
    def neighbors(self) -> Tuple["Node", ...]:
        return tuple(self._edges)

    def is_adjacent(self, other: "Node") -> bool:
        return other in self._edges

    def edge_to(self, other: "Node") -> Edge:
        """Return the edge joining this node to *other*."""
        try:
            return self._edges[other]
        except KeyError:
            raise IllegalMoveError(
                f"node {other.id} is not adjacent to node {self._id}"
            ) from None

    def _attach(self, edge: Edge) -> None:
        self._edges[edge.other(self)] = edge

    def __repr__(self) -> str:
        return f"Node(id={self._id}, row={self._tile.row}, column={self._tile.column})"


class Cavern:
    """A weighted cavern graph laid out on a ``rows x cols`` grid.

    Built incrementally with :meth:`add_node` and :meth:`connect`; the
    entrance and target are designated once all nodes exist.
    """

    def __init__(self, rows: int, cols: int) -> None:
        if rows <= 0 or cols <= 0:
            log.error("Invalid cavern dimensions", rows=rows, cols=cols)
            raise ValueError("Cavern rows and cols must be positive integers.")
        self._rows = rows
        self._cols = cols
        self.tiles: np.ndarray = np.full(
            (rows, cols), fill_value=TILE_ID_WALL, dtype=np.uint8, order="C"
        )
        self._grid: Dict[Tuple[int, int], Node] = {}
        self._by_id: Dict[int, Node] = {}
        self._edges: List[Edge] = []
        self._entrance: Optional[Node] = None
        self._target: Optional[Node] = None

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------
    def add_node(self, node_id: int, row: int, column: int, gold: int = 0) -> Node:
        """Open the tile at (row, column) and place a new node on it."""
        if not self.in_bounds(row, column):
            raise ValueError(f"tile ({row}, {column}) is outside the cavern")
        if (row, column) in self._grid:
            raise ValueError(f"tile ({row}, {column}) is already open")
        if node_id in self._by_id:
            raise ValueError(f"node id {node_id} is already in use")
        node = Node(node_id, Tile(row, column, gold))
        self._grid[(row, column)] = node
        self._by_id[node_id] = node
        self.tiles[row, column] = TILE_ID_FLOOR
        return node

    def connect(self, first: Node, second: Node, length: int) -> Edge:
        """Join two orthogonally adjacent nodes with an edge of the given length."""
        if first.is_adjacent(second):
            raise ValueError(f"nodes {first.id} and {second.id} are already connected")
        manhattan = abs(first.tile.row - second.tile.row) + abs(
            first.tile.column - second.tile.column
        )
        if manhattan != 1:
            raise ValueError("edges may only join orthogonally adjacent tiles")
        edge = Edge(first, second, length)
        first._attach(edge)
        second._attach(edge)
        self._edges.append(edge)
        return edge

    def set_entrance(self, node: Node) -> None:
        self._require_member(node)
        self._entrance = node

    def set_target(self, node: Node) -> None:
        self._require_member(node)
        self._target = node

    def _require_member(self, node: Node) -> None:
        if self._by_id.get(node.id) is not node:
            raise ValueError(f"node {node.id} does not belong to this cavern")

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def entrance(self) -> Node:
        if self._entrance is None:
            raise RuntimeError("cavern has no entrance")
        return self._entrance

    @property
    def target(self) -> Node:
        if self._target is None:
            raise RuntimeError("cavern has no target")
        return self._target

    @property
    def nodes(self) -> Tuple[Node, ...]:
        """All nodes in row-major tile order."""
        return tuple(self._grid[key] for key in sorted(self._grid))

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return tuple(self._edges)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, node: object) -> bool:
        return isinstance(node, Node) and self._by_id.get(node.id) is node

    def in_bounds(self, row: int, column: int) -> bool:
        return 0 <= row < self._rows and 0 <= column < self._cols

    def is_open(self, row: int, column: int) -> bool:
        return self.in_bounds(row, column) and self.tiles[row, column] == TILE_ID_FLOOR

    def node_at(self, row: int, column: int) -> Optional[Node]:
        """Return the node on tile (row, column), or None for a wall."""
        return self._grid.get((row, column))

    def node_by_id(self, node_id: int) -> Optional[Node]:
        return self._by_id.get(node_id)

    def num_open_tiles(self) -> int:
        return int(np.count_nonzero(self.tiles == TILE_ID_FLOOR))

    def total_gold(self) -> int:
        return sum(node.tile.gold for node in self._by_id.values())

    def min_path_length_to_target(self, start: Node) -> int:
        """Minimum total edge weight from *start* to the cavern's target."""
        from cavern.systems.pathfinding import min_path_length

        return min_path_length(start, self.target)

    def __repr__(self) -> str:
        return f"Cavern(rows={self._rows}, cols={self._cols}, nodes={len(self._by_id)})"


__all__ = ["Tile", "Edge", "Node", "Cavern"]
