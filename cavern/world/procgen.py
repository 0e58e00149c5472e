# cavern/world/procgen.py
"""Procedural cavern digging.

A cavern is dug outward from a starting tile with a growing-tree walk: each
step picks an already open tile (usually the newest, sometimes a random one)
and opens a wall next to it. Every opened tile is linked to the tile it was
dug from, so the dig is a spanning tree of the open tiles and the cavern is
connected by construction. A few extra links between adjacent open tiles
then add loops.
"""

from __future__ import annotations

from typing import List, Optional, Set, Tuple

import structlog

from cavern.config import DigConfig
from cavern.constants import MAX_COLS, MAX_EDGE_WEIGHT, MAX_ROWS, MIN_COLS, MIN_ROWS
from cavern.utils.game_rng import GameRNG
from cavern.world.graph import Cavern

log = structlog.get_logger()

GridPosition = Tuple[int, int]  # (row, col)
Link = Tuple[GridPosition, GridPosition]
Dimensions = Tuple[int, int]  # (rows, cols)

DIRECTIONS_4: Tuple[GridPosition, ...] = ((-1, 0), (0, 1), (1, 0), (0, -1))

# Chance of continuing from the newest open tile rather than a random one.
# Higher values give longer corridors.
NEWEST_TILE_BIAS = 0.75


def _neighbors(pos: GridPosition, rows: int, cols: int) -> List[GridPosition]:
    row, col = pos
    return [
        (row + dr, col + dc)
        for dr, dc in DIRECTIONS_4
        if 0 <= row + dr < rows and 0 <= col + dc < cols
    ]


def _dig(
    start: GridPosition,
    rows: int,
    cols: int,
    target_open: int,
    rng: GameRNG,
    opened: List[GridPosition],
    open_set: Set[GridPosition],
    links: List[Link],
    corridors_only: bool,
) -> None:
    """Grow the open region until it holds *target_open* tiles or cannot grow.

    With *corridors_only* a wall is only dug when at most one of its
    neighbours is already open, which keeps passages one tile wide.
    """
    active: List[GridPosition] = list(opened) if opened else [start]
    if not opened:
        opened.append(start)
        open_set.add(start)

    while active and len(opened) < target_open:
        if rng.chance(NEWEST_TILE_BIAS):
            index = len(active) - 1
        else:
            index = rng.get_int(0, len(active) - 1)
        cell = active[index]

        candidates = []
        for nxt in _neighbors(cell, rows, cols):
            if nxt in open_set:
                continue
            if corridors_only:
                open_around = sum(1 for n in _neighbors(nxt, rows, cols) if n in open_set)
                if open_around > 1:
                    continue
            candidates.append(nxt)

        if not candidates:
            active.pop(index)
            continue

        nxt = rng.choice(candidates)
        opened.append(nxt)
        open_set.add(nxt)
        active.append(nxt)
        links.append((cell, nxt))


def _add_loops(
    rows: int,
    cols: int,
    open_set: Set[GridPosition],
    links: List[Link],
    rng: GameRNG,
    loop_probability: float,
) -> int:
    """Join some adjacent open tiles the dig left unlinked. Returns the count added."""
    linked = {frozenset(link) for link in links}
    added = 0
    for row in range(rows):
        for col in range(cols):
            if (row, col) not in open_set:
                continue
            # right and down neighbours only, so each pair is seen once
            for other in ((row, col + 1), (row + 1, col)):
                if other not in open_set or frozenset(((row, col), other)) in linked:
                    continue
                if rng.chance(loop_probability):
                    links.append(((row, col), other))
                    added += 1
    return added


def _pick_target(
    start: GridPosition, opened: List[GridPosition], rows: int, cols: int, rng: GameRNG
) -> GridPosition:
    """Pick a target tile, preferring tiles far (in Manhattan terms) from start."""
    candidates = [pos for pos in sorted(opened) if pos != start]
    min_spread = (rows + cols) // 3
    far = [
        pos
        for pos in candidates
        if abs(pos[0] - start[0]) + abs(pos[1] - start[1]) >= min_spread
    ]
    return rng.choice(far or candidates)


def dig_cavern(
    rows: int,
    cols: int,
    rng: GameRNG,
    start: Optional[GridPosition] = None,
    config: Optional[DigConfig] = None,
) -> Cavern:
    """Dig a connected weighted cavern.

    Args:
        rows, cols: grid dimensions, within the MIN/MAX bounds in
            :mod:`cavern.constants`.
        rng: seeded generator; the same seed, dimensions and start dig the
            same cavern.
        start: (row, col) of the entrance. Drawn from *rng* when omitted.
            The SCRAM cavern is dug from the FIND target's coordinates.
        config: digging knobs, defaults to :class:`DigConfig`.

    Returns:
        A :class:`Cavern` whose entrance is the start tile and whose target
        is another open tile reachable from it.
    """
    if not MIN_ROWS <= rows <= MAX_ROWS:
        raise ValueError(f"rows must be in [{MIN_ROWS}, {MAX_ROWS}], got {rows}")
    if not MIN_COLS <= cols <= MAX_COLS:
        raise ValueError(f"cols must be in [{MIN_COLS}, {MAX_COLS}], got {cols}")
    config = config or DigConfig()

    if start is None:
        start = (rng.get_int(0, rows - 1), rng.get_int(0, cols - 1))
    elif not (0 <= start[0] < rows and 0 <= start[1] < cols):
        raise ValueError(f"start tile {start} is outside a {rows}x{cols} cavern")
    start = (int(start[0]), int(start[1]))

    target_open = max(2, int(rows * cols * config.open_fraction))
    opened: List[GridPosition] = []
    open_set: Set[GridPosition] = set()
    links: List[Link] = []

    _dig(start, rows, cols, target_open, rng, opened, open_set, links, corridors_only=True)
    if len(opened) < target_open:
        # Corridors alone could not reach the requested density; widen them.
        log.debug("Corridor dig stalled, widening", opened=len(opened), wanted=target_open)
        _dig(start, rows, cols, target_open, rng, opened, open_set, links, corridors_only=False)
    loops = _add_loops(rows, cols, open_set, links, rng, config.loop_probability)

    # Node ids are shuffled so they reveal nothing about tile positions.
    ids = list(range(1, len(opened) + 1))
    rng.shuffle(ids)
    target_pos = _pick_target(start, opened, rows, cols, rng)

    cavern = Cavern(rows, cols)
    for node_id, pos in zip(ids, sorted(opened)):
        gold = 0
        if pos != start and rng.chance(config.gold_probability):
            gold = rng.get_int(1, config.max_gold)
        cavern.add_node(int(node_id), pos[0], pos[1], gold)

    for first, second in links:
        cavern.connect(
            cavern.node_at(*first),
            cavern.node_at(*second),
            rng.get_int(1, MAX_EDGE_WEIGHT),
        )

    cavern.set_entrance(cavern.node_at(*start))
    cavern.set_target(cavern.node_at(*target_pos))

    log.info(
        "Cavern dug",
        rows=rows,
        cols=cols,
        open_tiles=len(opened),
        edges=len(links),
        loops=loops,
        entrance=start,
        target=target_pos,
        gold=cavern.total_gold(),
    )
    return cavern


def draw_dimensions(rng: GameRNG) -> Dimensions:
    """Draw (rows, cols) for a new game from *rng*."""
    rows = rng.get_int(MIN_ROWS, MAX_ROWS)
    cols = rng.get_int(MIN_COLS, MAX_COLS)
    return rows, cols


def dig_game_caverns(
    rng: GameRNG, config: Optional[DigConfig] = None
) -> Tuple[Cavern, Cavern]:
    """Dig the FIND and SCRAM caverns for one game.

    Both share the same dimensions; the SCRAM cavern is rooted at the FIND
    target's coordinates so the agent starts SCRAM where FIND ended.
    """
    rows, cols = draw_dimensions(rng)
    find_cavern = dig_cavern(rows, cols, rng, config=config)
    target_tile = find_cavern.target.tile
    scram_cavern = dig_cavern(
        rows, cols, rng, start=(target_tile.row, target_tile.column), config=config
    )
    return find_cavern, scram_cavern


__all__ = ["dig_cavern", "draw_dimensions", "dig_game_caverns"]
