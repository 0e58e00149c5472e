# cavern/world/serialization.py
"""Line-oriented text format for caverns.

::

    size <rows> <cols>
    entrance <row> <col>
    target <row> <col>
    tiles
    <rows lines of <cols> tokens: "#" for a wall, "<id>:<gold>" for an open tile>
    edges
    <row1> <col1> <row2> <col2> <weight>

The size may not exceed ``MAX_ROWS x MAX_COLS``. Blank lines are ignored.
:func:`load_graph` either returns a complete, connected :class:`Cavern` or
raises :class:`CavernFormatError`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import structlog

from cavern.constants import MAX_COLS, MAX_EDGE_WEIGHT, MAX_ROWS
from cavern.errors import CavernFormatError, UnreachableError
from cavern.systems.pathfinding import min_path_length
from cavern.world.graph import Cavern

log = structlog.get_logger()

WALL_TOKEN = "#"

_Line = Tuple[int, str]  # (1-based line number, stripped text)


def _numbered(lines: Iterable[str]) -> Iterator[_Line]:
    for number, raw in enumerate(lines, start=1):
        text = raw.strip()
        if text:
            yield number, text


def _ints(fields: Sequence[str], count: int, line_number: int, what: str) -> List[int]:
    if len(fields) != count:
        raise CavernFormatError(
            f"{what} needs {count} integers, got {len(fields)}", line_number
        )
    try:
        return [int(f) for f in fields]
    except ValueError:
        raise CavernFormatError(f"{what} values must be integers", line_number) from None


class _Reader:
    def __init__(self, lines: Iterable[str]) -> None:
        self._lines = list(_numbered(lines))
        self._index = 0

    def next(self, expecting: str) -> _Line:
        if self._index >= len(self._lines):
            last = self._lines[-1][0] if self._lines else None
            raise CavernFormatError(f"unexpected end of input, expected {expecting}", last)
        line = self._lines[self._index]
        self._index += 1
        return line

    def keyword(self, name: str, count: int) -> Tuple[List[int], int]:
        number, text = self.next(f"'{name}'")
        fields = text.split()
        if fields[0] != name:
            raise CavernFormatError(f"expected '{name}', got '{fields[0]}'", number)
        return _ints(fields[1:], count, number, name), number

    def remaining(self) -> List[_Line]:
        rest = self._lines[self._index:]
        self._index = len(self._lines)
        return rest


def _parse_tile(token: str, line_number: int) -> Optional[Tuple[int, int]]:
    """Return (id, gold) for an open tile token, None for a wall."""
    if token == WALL_TOKEN:
        return None
    node_id, sep, gold = token.partition(":")
    if not sep:
        raise CavernFormatError(f"bad tile token '{token}'", line_number)
    try:
        parsed = int(node_id), int(gold)
    except ValueError:
        raise CavernFormatError(f"bad tile token '{token}'", line_number) from None
    if parsed[0] < 0 or parsed[1] < 0:
        raise CavernFormatError(f"negative value in tile token '{token}'", line_number)
    return parsed


def load_graph(lines: Iterable[str]) -> Cavern:
    """Deserialize a cavern from the lines of its text form."""
    reader = _Reader(lines)

    (rows, cols), size_line = reader.keyword("size", 2)
    if rows <= 0 or cols <= 0:
        raise CavernFormatError("size must be positive", size_line)
    if rows > MAX_ROWS or cols > MAX_COLS:
        raise CavernFormatError(
            f"size {rows}x{cols} exceeds the {MAX_ROWS}x{MAX_COLS} maximum", size_line
        )
    entrance_pos, entrance_line = reader.keyword("entrance", 2)
    target_pos, target_line = reader.keyword("target", 2)

    number, text = reader.next("'tiles'")
    if text != "tiles":
        raise CavernFormatError(f"expected 'tiles', got '{text}'", number)

    cavern = Cavern(rows, cols)
    for row in range(rows):
        number, text = reader.next(f"tile row {row}")
        if text == "edges":
            raise CavernFormatError(f"only {row} of {rows} tile rows present", number)
        tokens = text.split()
        if len(tokens) != cols:
            raise CavernFormatError(
                f"tile row {row} has {len(tokens)} tiles, expected {cols}", number
            )
        for col, token in enumerate(tokens):
            tile = _parse_tile(token, number)
            if tile is None:
                continue
            node_id, gold = tile
            if cavern.node_by_id(node_id) is not None:
                raise CavernFormatError(f"duplicate node id {node_id}", number)
            cavern.add_node(node_id, row, col, gold)

    number, text = reader.next("'edges'")
    if text != "edges":
        raise CavernFormatError(f"expected 'edges', got '{text}'", number)

    for number, text in reader.remaining():
        r1, c1, r2, c2, weight = _ints(text.split(), 5, number, "edge")
        first, second = cavern.node_at(r1, c1), cavern.node_at(r2, c2)
        if first is None or second is None:
            raise CavernFormatError("edge endpoint is not an open tile", number)
        if abs(r1 - r2) + abs(c1 - c2) != 1:
            raise CavernFormatError("edge endpoints are not adjacent", number)
        if not 1 <= weight <= MAX_EDGE_WEIGHT:
            raise CavernFormatError(
                f"edge weight {weight} outside [1, {MAX_EDGE_WEIGHT}]", number
            )
        if first.is_adjacent(second):
            raise CavernFormatError("duplicate edge", number)
        cavern.connect(first, second, weight)

    entrance = cavern.node_at(*entrance_pos)
    if entrance is None:
        raise CavernFormatError("entrance is not an open tile", entrance_line)
    target = cavern.node_at(*target_pos)
    if target is None:
        raise CavernFormatError("target is not an open tile", target_line)
    cavern.set_entrance(entrance)
    cavern.set_target(target)

    try:
        min_path_length(entrance, target)
    except UnreachableError:
        raise CavernFormatError("target is unreachable from the entrance", target_line) from None

    log.debug("Cavern loaded", rows=rows, cols=cols, nodes=len(cavern))
    return cavern


def load_graph_file(path: Path) -> Cavern:
    """Read and deserialize a cavern file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        lines = f.read().splitlines()
    try:
        cavern = load_graph(lines)
    except CavernFormatError as e:
        log.error("Malformed cavern file", path=str(path), error=str(e))
        raise
    log.info("Cavern file loaded", path=str(path), nodes=len(cavern))
    return cavern


def dump_graph(cavern: Cavern) -> List[str]:
    """Serialize *cavern* to the lines accepted by :func:`load_graph`."""
    entrance, target = cavern.entrance.tile, cavern.target.tile
    lines = [
        f"size {cavern.rows} {cavern.cols}",
        f"entrance {entrance.row} {entrance.column}",
        f"target {target.row} {target.column}",
        "tiles",
    ]
    for row in range(cavern.rows):
        tokens = []
        for col in range(cavern.cols):
            node = cavern.node_at(row, col)
            tokens.append(WALL_TOKEN if node is None else f"{node.id}:{node.tile.gold}")
        lines.append(" ".join(tokens))
    lines.append("edges")
    for edge in cavern.edges:
        a, b = edge.first.tile, edge.second.tile
        lines.append(f"{a.row} {a.column} {b.row} {b.column} {edge.length}")
    return lines


__all__ = ["load_graph", "load_graph_file", "dump_graph"]
