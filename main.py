# main.py
"""Command line entry point: play cavern games and report their scores.

    python main.py                 # one game with a random seed
    python main.py -s 42 -n 5      # five chained games starting from seed 42
    python main.py --find F --scram S   # play two saved caverns
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from cavern.config import GameConfig, load_config
from cavern.display import ConsoleDisplay
from cavern.errors import CavernFormatError, ConfigurationError
from cavern.runner import run_games, run_loaded_game
from cavern.solvers import SOLVERS
from cavern.utils.logging_utils import setup_logging

# --- Paths relative to this script's location ---
SCRIPT_DIR = Path(__file__).parent.resolve()
CONFIG_DIR = SCRIPT_DIR / "config"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

log = structlog.get_logger()


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {text!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a solver through FIND and SCRAM caverns and print its score."
    )
    parser.add_argument(
        "-s", "--seed", type=int, default=0, help="game seed; 0 picks a random one"
    )
    parser.add_argument(
        "-n", "--count", type=_positive_int, default=1, help="number of games to play"
    )
    parser.add_argument(
        "--display", action="store_true", help="print each cavern and log every move"
    )
    parser.add_argument(
        "--config", type=Path, default=None, help=f"YAML config (default {CONFIG_FILE})"
    )
    parser.add_argument(
        "--solver", default="reference", choices=sorted(SOLVERS), help="solver to run"
    )
    parser.add_argument("--find", type=Path, help="saved FIND cavern to play")
    parser.add_argument("--scram", type=Path, help="saved SCRAM cavern to play")
    parser.add_argument(
        "--no-timeout",
        action="store_true",
        help="run solvers in-process: no deadline and no isolation from engine state",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging level",
    )
    return parser


def _load_game_config(path: Optional[Path]) -> GameConfig:
    if path is not None:
        return load_config(path)
    if CONFIG_FILE.is_file():
        return load_config(CONFIG_FILE)
    log.info("No config file, using defaults", path=str(CONFIG_FILE))
    return GameConfig()


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, play the requested games and return an exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if (args.find is None) != (args.scram is None):
        parser.error("--find and --scram must be given together")

    setup_logging(getattr(logging, args.log_level))
    display_factory = ConsoleDisplay if args.display else None

    try:
        config = _load_game_config(args.config)
        if args.find is not None:
            report = run_loaded_game(
                args.find,
                args.scram,
                args.solver,
                config=config,
                display=display_factory() if display_factory else None,
                timed=not args.no_timeout,
            )
            log.info("Game score", score=report.score)
        else:
            run_games(
                args.seed,
                args.count,
                args.solver,
                config=config,
                display_factory=display_factory,
                timed=not args.no_timeout,
            )
    except ConfigurationError as e:
        log.critical("Configuration error", error=str(e))
        sys.exit(f"Configuration failed: {e}")
    except CavernFormatError as e:
        log.critical("Cavern file error", error=str(e))
        sys.exit(f"Loading cavern failed: {e}")
    except FileNotFoundError as e:
        log.critical("File not found", error=str(e))
        sys.exit(f"Initialization failed: File not found - {e}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
