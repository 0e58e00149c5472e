"""Fixed game constants shared by the cavern generator, engine and scoring."""

from typing import Final

# Cavern dimensions
MIN_ROWS: Final[int] = 8
MAX_ROWS: Final[int] = 25
MIN_COLS: Final[int] = 12
MAX_COLS: Final[int] = 40

# Edge weights are drawn uniformly from [1, MAX_EDGE_WEIGHT]
MAX_EDGE_WEIGHT: Final[int] = 15

# Tile ids for the cavern's numpy tile grid
TILE_ID_FLOOR: Final[int] = 0
TILE_ID_WALL: Final[int] = 1

# Seconds before each phase is abandoned
FIND_TIMEOUT: Final[float] = 10.0
SCRAM_TIMEOUT: Final[float] = 15.0

# Scoring
MIN_BONUS: Final[float] = 1.0
MAX_BONUS: Final[float] = 1.3
# Bonus reaches MIN_BONUS once the FIND walk is this many times optimal
NO_BONUS_LENGTH: Final[float] = 3.0

# Bigger is nicer: slack added to the SCRAM budget, per open tile
EXTRA_STEPS_FACTOR: Final[float] = 0.3

__all__ = [
    "MIN_ROWS",
    "MAX_ROWS",
    "MIN_COLS",
    "MAX_COLS",
    "MAX_EDGE_WEIGHT",
    "TILE_ID_FLOOR",
    "TILE_ID_WALL",
    "FIND_TIMEOUT",
    "SCRAM_TIMEOUT",
    "MIN_BONUS",
    "MAX_BONUS",
    "NO_BONUS_LENGTH",
    "EXTRA_STEPS_FACTOR",
]
