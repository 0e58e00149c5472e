# cavern/runner.py
"""Play one or more complete games and report their scores."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional

import structlog

from cavern.config import GameConfig
from cavern.display import DisplaySink
from cavern.errors import ConfigurationError
from cavern.game_state import GameState, PhaseOutcome
from cavern.solvers import get_solver
from cavern.utils.game_rng import GameRNG

log = structlog.get_logger()

DisplayFactory = Callable[[], DisplaySink]


@dataclass(frozen=True)
class GameReport:
    seed: Optional[int]
    score: int
    gold_collected: int
    bonus_factor: float
    find: PhaseOutcome
    scram: PhaseOutcome


def _report(state: GameState) -> GameReport:
    return GameReport(
        seed=state.seed,
        score=state.score,
        gold_collected=state.gold_collected,
        bonus_factor=state.bonus_factor,
        find=state.find_outcome,
        scram=state.scram_outcome,
    )


def run_new_game(
    seed: int,
    solver_name: str = "reference",
    *,
    config: Optional[GameConfig] = None,
    display: Optional[DisplaySink] = None,
    logger: Any = None,
    timed: bool = True,
) -> GameReport:
    """Dig a game from *seed* (0 = random), play it and return its report."""
    logger = logger or log
    state = GameState.from_seed(
        seed, get_solver(solver_name), config=config, display=display, logger=logger
    )
    logger.info("Game starting", seed=state.seed)
    if timed:
        state.run_with_time_limit()
    else:
        state.run()
    return _report(state)


def run_loaded_game(
    find_path: Path,
    scram_path: Path,
    solver_name: str = "reference",
    *,
    config: Optional[GameConfig] = None,
    display: Optional[DisplaySink] = None,
    logger: Any = None,
    timed: bool = True,
) -> GameReport:
    """Play a game on two serialized caverns."""
    state = GameState.from_files(
        find_path,
        scram_path,
        get_solver(solver_name),
        config=config,
        display=display,
        logger=logger,
    )
    if timed:
        state.run_with_time_limit()
    else:
        state.run()
    return _report(state)


def run_games(
    seed: int,
    count: int,
    solver_name: str = "reference",
    *,
    config: Optional[GameConfig] = None,
    display_factory: Optional[DisplayFactory] = None,
    logger: Any = None,
    timed: bool = True,
) -> List[GameReport]:
    """Play *count* games.

    With a non-zero *seed* the series is reproducible: each game after the
    first is dug from a seed derived from the previous game's seed. With seed
    0 every game gets a fresh random seed.
    """
    if count < 1:
        raise ConfigurationError(f"game count must be at least 1, got {count}")
    logger = logger or log

    reports: List[GameReport] = []
    for _ in range(count):
        display = display_factory() if display_factory else None
        report = run_new_game(
            seed,
            solver_name,
            config=config,
            display=display,
            logger=logger,
            timed=timed,
        )
        reports.append(report)
        logger.info("Game score", seed=report.seed, score=report.score)
        if seed != 0:
            seed = GameRNG(seed).next_seed()

    logger.info("Average score", average=average_score(reports), games=len(reports))
    return reports


def average_score(reports: List[GameReport]) -> int:
    """Integer mean of the scores, 0 for no games."""
    if not reports:
        return 0
    return sum(r.score for r in reports) // len(reports)


__all__ = ["GameReport", "run_new_game", "run_loaded_game", "run_games", "average_score"]
