# cavern/game_state.py
"""The state of one game: the FIND phase followed by the SCRAM phase.

:class:`GameState` owns both caverns, the agent's position and the
counters that feed the score. Solver code only ever reaches it through a
:class:`~cavern.views.FindView` or :class:`~cavern.views.ScramView`.

Timed runs execute each solver callback in a child process (see
:mod:`cavern.systems.executor`). The child plays the phase on its own copy of
this object and sends a :class:`StateSnapshot` after every move. The engine
copy changes only by replaying those snapshots, each of which must be exactly
what one legal move produces; anything else fails the phase as errored.
Untimed runs play in-process with no such isolation.
"""

from __future__ import annotations

import enum
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Tuple

import structlog

from cavern.config import GameConfig
from cavern.constants import MAX_EDGE_WEIGHT
from cavern.display import DisplaySink, NullDisplay
from cavern.errors import (
    IllegalMoveError,
    IllegalPhaseError,
    InvalidSnapshotError,
    OutOfStepsError,
)
from cavern.systems.executor import Channel, ExecutionResult, PhaseExecutor
from cavern.systems.scoring import bonus_factor, compute_score
from cavern.utils.game_rng import GameRNG
from cavern.views import FindView, ScramView
from cavern.world.graph import Cavern, Node
from cavern.world.procgen import dig_game_caverns
from cavern.world.serialization import load_graph_file

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from cavern.solvers.base import Solver

log = structlog.get_logger()


class Phase(enum.Enum):
    FIND = "find"
    SCRAM = "scram"


class PhaseEnd(enum.Enum):
    """How a solver callback that returned normally left the agent."""

    AT_GOAL = "at_goal"
    WRONG_LOCATION = "wrong_location"
    OUT_OF_STEPS = "out_of_steps"


@dataclass
class PhaseOutcome:
    """Result flags for one phase. At most one of the failure flags is set."""

    started: bool = False
    succeeded: bool = False
    errored: bool = False
    timed_out: bool = False
    out_of_steps: bool = False
    wrong_location: bool = False


@dataclass(frozen=True)
class StateSnapshot:
    """Everything a move can change, as sent from the solver process."""

    phase: Phase
    position_id: int
    steps_taken: int
    steps_remaining: Optional[int]
    gold_collected: int
    # (row, col) of a tile whose gold was just picked up
    gold_taken_from: Optional[Tuple[int, int]] = None


class GameState:
    """One game: a FIND cavern, a SCRAM cavern and a solver to drive through them.

    Args:
        find_cavern: cavern searched during FIND, from entrance to target.
        scram_cavern: cavern escaped during SCRAM; its entrance sits on the
            FIND target's coordinates and its target is the exit.
        solver: object implementing ``explore_for_target(FindView)`` and
            ``scram_to_exit(ScramView)``.
        seed: seed the caverns were dug from, reported with the score.
        config: timeouts and budget tunables.
        display: optional event sink; defaults to :class:`NullDisplay`.
        logger: structlog logger for operator-facing reports.
    """

    def __init__(
        self,
        find_cavern: Cavern,
        scram_cavern: Cavern,
        solver: "Solver",
        *,
        seed: Optional[int] = None,
        config: Optional[GameConfig] = None,
        display: Optional[DisplaySink] = None,
        logger: Any = None,
    ) -> None:
        self.find_cavern = find_cavern
        self.scram_cavern = scram_cavern
        self.solver = solver
        self.seed = seed
        self.config = config or GameConfig()
        self.display: DisplaySink = display or NullDisplay()
        self.log = logger or log

        self.min_steps_to_find: int = find_cavern.min_path_length_to_target(
            find_cavern.entrance
        )

        self._phase = Phase.FIND
        # Phase whose solver callback is currently allowed to act
        self._active_phase: Optional[Phase] = None
        self._position: Node = find_cavern.entrance
        self._steps_taken = 0
        self._steps_remaining: Optional[int] = None
        self._gold_collected = 0
        # Set only inside the solver process during a timed run
        self._channel: Optional[Channel] = None

        self.find_outcome = PhaseOutcome()
        self.scram_outcome = PhaseOutcome()

        # Diagnostics filled in as the phases run
        self.min_find_distance = 0
        self.min_scram_distance = 0
        self.find_steps_left = 0
        self.scram_steps_left = 0

    # ------------------------------------------------------------------
    # construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_seed(
        cls,
        seed: int,
        solver: "Solver",
        *,
        config: Optional[GameConfig] = None,
        display: Optional[DisplaySink] = None,
        logger: Any = None,
    ) -> "GameState":
        """Dig a fresh pair of caverns from *seed*; 0 picks a random seed."""
        config = config or GameConfig()
        rng = GameRNG(seed if seed != 0 else None)
        find_cavern, scram_cavern = dig_game_caverns(rng, config.dig)
        return cls(
            find_cavern,
            scram_cavern,
            solver,
            seed=rng.initial_seed,
            config=config,
            display=display,
            logger=logger,
        )

    @classmethod
    def from_files(
        cls,
        find_path: Path,
        scram_path: Path,
        solver: "Solver",
        *,
        config: Optional[GameConfig] = None,
        display: Optional[DisplaySink] = None,
        logger: Any = None,
    ) -> "GameState":
        """Load both caverns from serialized files."""
        return cls(
            load_graph_file(find_path),
            load_graph_file(scram_path),
            solver,
            config=config,
            display=display,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # read-only state
    # ------------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def position(self) -> Node:
        return self._position

    @property
    def steps_taken(self) -> int:
        return self._steps_taken

    @property
    def steps_remaining(self) -> Optional[int]:
        """SCRAM budget left; None before SCRAM starts."""
        return self._steps_remaining

    @property
    def gold_collected(self) -> int:
        return self._gold_collected

    @property
    def bonus_factor(self) -> float:
        return bonus_factor(self._steps_taken, self.min_steps_to_find)

    @property
    def score(self) -> int:
        return compute_score(self.bonus_factor, self._gold_collected)

    # ------------------------------------------------------------------
    # run modes
    # ------------------------------------------------------------------
    def run_with_time_limit(self) -> int:
        """Play FIND then, only if FIND succeeded, SCRAM; both under deadlines.

        Returns the score.
        """
        self.run_find_with_time_limit()
        if not self.find_outcome.succeeded:
            self.scram_steps_left = self.scram_cavern.min_path_length_to_target(
                self.scram_cavern.entrance
            )
            return self.score
        self.run_scram_with_time_limit()
        return self.score

    def run(self) -> int:
        """Play both phases in-process with no deadline. Returns the score."""
        self._play_untimed(Phase.FIND)
        if not self.find_outcome.succeeded:
            self.find_steps_left = self.find_cavern.min_path_length_to_target(self._position)
            self.scram_steps_left = self.scram_cavern.min_path_length_to_target(
                self.scram_cavern.entrance
            )
            return self.score
        self._play_untimed(Phase.SCRAM)
        if not self.scram_outcome.succeeded:
            self.scram_steps_left = self.scram_cavern.min_path_length_to_target(self._position)
        return self.score

    def run_find_with_time_limit(self) -> None:
        """Play only FIND, under the FIND deadline."""
        self._play_timed(Phase.FIND, self.config.find_timeout)
        if not self.find_outcome.succeeded:
            self.find_steps_left = self.find_cavern.min_path_length_to_target(self._position)

    def run_scram_with_time_limit(self) -> None:
        """Play only SCRAM, under the SCRAM deadline.

        May be called without a FIND run, starting the agent on the SCRAM
        cavern's entrance, but never after a FIND run that failed.
        """
        self._play_timed(Phase.SCRAM, self.config.scram_timeout)
        if not self.scram_outcome.succeeded:
            self.scram_steps_left = self.scram_cavern.min_path_length_to_target(self._position)

    # ------------------------------------------------------------------
    # phase driving
    # ------------------------------------------------------------------
    def _play_untimed(self, phase: Phase) -> None:
        self._begin(phase)
        try:
            end = self._play(phase)
        except Exception:
            self._record_fault(phase, traceback.format_exc())
        else:
            self._finish(phase, end)
        finally:
            self._active_phase = None

    def _play_timed(self, phase: Phase, timeout: float) -> None:
        self._begin(phase)

        def body(channel: Channel) -> PhaseEnd:
            # Runs in the solver process, on that process's copy of self.
            self._channel = channel
            return self._play(phase)

        try:
            result: ExecutionResult = PhaseExecutor(timeout).run(body, on_event=self._apply)
        except InvalidSnapshotError as e:
            # The executor has already torn the solver process down.
            self.log.error("Rejected state update from solver process", reason=str(e))
            self._record_fault(phase, f"rejected state update: {e}")
            return
        finally:
            self._active_phase = None

        self.log.debug(
            "Phase callback returned",
            phase=phase.value,
            status=result.status.value,
            elapsed=round(result.elapsed, 3),
        )
        if result.completed:
            self._finish(phase, result.value)
        elif result.faulted:
            self._record_fault(phase, result.error or "")
        else:
            self._record_timeout(phase, timeout)

    def _begin(self, phase: Phase) -> None:
        if phase is Phase.FIND:
            self._begin_find()
        else:
            self._begin_scram()
        self._active_phase = phase

    def _begin_find(self) -> None:
        if self.find_outcome.started:
            raise IllegalPhaseError("the FIND phase can only be played once")
        if self.scram_outcome.started:
            raise IllegalPhaseError("FIND cannot follow SCRAM")
        self.find_outcome.started = True
        self._phase = Phase.FIND
        self._position = self.find_cavern.entrance
        self._steps_taken = 0
        self.min_find_distance = self.find_cavern.min_path_length_to_target(self._position)
        self.log.info("Find phase starting", seed=self.seed, min_distance=self.min_find_distance)
        self.display.cavern_changed(self.find_cavern, None)
        self.display.phase_changed("Finding")
        self.display.moved(self._position.tile.row, self._position.tile.column)

    def _begin_scram(self) -> None:
        if self.scram_outcome.started:
            raise IllegalPhaseError("the SCRAM phase can only be played once")
        if self.find_outcome.started and not self.find_outcome.succeeded:
            raise IllegalPhaseError("SCRAM requires a successful FIND")
        self.scram_outcome.started = True
        self._phase = Phase.SCRAM
        self._position = self.scram_cavern.entrance
        self.min_scram_distance = self.scram_cavern.min_path_length_to_target(self._position)
        self._steps_remaining = self.compute_steps_to_scram()
        self.log.info(
            "Scram phase starting",
            min_distance=self.min_scram_distance,
            steps=self._steps_remaining,
        )
        self.display.phase_changed("Scramming")
        self.display.cavern_changed(self.scram_cavern, self._steps_remaining)
        self.display.moved(self._position.tile.row, self._position.tile.column)

    def compute_steps_to_scram(self) -> int:
        """SCRAM budget: the bare minimum plus slack proportional to cavern size."""
        min_scram_steps = self.scram_cavern.min_path_length_to_target(self.scram_cavern.entrance)
        slack = (
            self.config.extra_steps_factor
            * (MAX_EDGE_WEIGHT + 1)
            * self.scram_cavern.num_open_tiles()
            / 2
        )
        return int(min_scram_steps + slack)

    def _play(self, phase: Phase) -> PhaseEnd:
        """Hand control to the solver and report where it left the agent."""
        if phase is Phase.FIND:
            self.solver.explore_for_target(FindView(self))
            at_goal = self._position is self.find_cavern.target
        else:
            try:
                if self._position.tile.gold > 0:
                    self._grab_gold()
                self.solver.scram_to_exit(ScramView(self))
            except OutOfStepsError as e:
                self.log.debug("Scram move refused", needed=e.needed, remaining=e.remaining)
                return PhaseEnd.OUT_OF_STEPS
            at_goal = self._position is self.scram_cavern.target
        return PhaseEnd.AT_GOAL if at_goal else PhaseEnd.WRONG_LOCATION

    def _finish(self, phase: Phase, end: PhaseEnd) -> None:
        outcome = self._outcome(phase)
        name = phase.value
        if end is PhaseEnd.AT_GOAL:
            outcome.succeeded = True
            self.log.info(f"{name.capitalize()} phase succeeded", steps_taken=self._steps_taken)
            if phase is Phase.SCRAM:
                self.display.phase_changed("Scram Succeeded")
        elif end is PhaseEnd.OUT_OF_STEPS:
            outcome.out_of_steps = True
            self._report_error(f"Your solution to {name} ran out of steps before returning!")
        else:
            outcome.wrong_location = True
            self._report_error(f"Your solution to {name} returned at the wrong location.")
        if phase is Phase.SCRAM:
            self._report_score()

    def _record_fault(self, phase: Phase, error: str) -> None:
        self._outcome(phase).errored = True
        self.log.error(f"Solver raised during the {phase.value} phase", traceback=error)
        self.display.error(
            f"Your code errored during the {phase.value} phase. Please see console output."
        )
        if phase is Phase.SCRAM:
            self._report_score()

    def _record_timeout(self, phase: Phase, timeout: float) -> None:
        self._outcome(phase).timed_out = True
        self._report_error(f"Your solution to {phase.value} timed out after {timeout:g} seconds.")
        if phase is Phase.SCRAM:
            self._report_score()

    def _report_error(self, message: str) -> None:
        self.log.warning(message)
        self.display.error(message)

    def _report_score(self) -> None:
        self.log.info(
            "Game finished",
            seed=self.seed,
            gold_collected=self._gold_collected,
            bonus=f"{self.bonus_factor:.2f}",
            score=self.score,
        )

    def _outcome(self, phase: Phase) -> PhaseOutcome:
        return self.find_outcome if phase is Phase.FIND else self.scram_outcome

    # ------------------------------------------------------------------
    # operations behind the views
    # ------------------------------------------------------------------
    def _find_position(self) -> Node:
        if self._active_phase is not Phase.FIND:
            raise IllegalPhaseError("FIND operations can only be called while exploring")
        return self._position

    def _scram_position(self) -> Node:
        if self._active_phase is not Phase.SCRAM:
            raise IllegalPhaseError("SCRAM operations can only be called while scramming")
        return self._position

    def _manhattan_to_target(self, node: Node) -> int:
        target = self.find_cavern.target.tile
        return abs(node.tile.row - target.row) + abs(node.tile.column - target.column)

    def _find_move(self, node_id: int) -> None:
        position = self._find_position()
        for neighbor in position.neighbors:
            if neighbor.id == node_id:
                self._position = neighbor
                self._steps_taken += 1
                self._publish()
                return
        raise IllegalMoveError(f"moveTo: node {node_id} is not adjacent to the current position")

    def _scram_move(self, node: Node) -> None:
        position = self._scram_position()
        if not isinstance(node, Node):
            raise IllegalMoveError(f"moveTo: expected a Node, got {type(node).__name__}")
        distance = position.edge_to(node).length
        if distance > self._steps_remaining:
            raise OutOfStepsError(distance, self._steps_remaining)

        self._position = node
        self._steps_remaining -= distance
        if node.tile.gold > 0:
            self._grab_gold()
        else:
            self._publish()

    def _grab_gold(self) -> None:
        tile = self._position.tile
        self._gold_collected += tile.take_gold()
        self._publish(gold_taken_from=(tile.row, tile.column))

    # ------------------------------------------------------------------
    # snapshots
    # ------------------------------------------------------------------
    def _snapshot(self, gold_taken_from: Optional[Tuple[int, int]] = None) -> StateSnapshot:
        return StateSnapshot(
            phase=self._phase,
            position_id=self._position.id,
            steps_taken=self._steps_taken,
            steps_remaining=self._steps_remaining,
            gold_collected=self._gold_collected,
            gold_taken_from=gold_taken_from,
        )

    def _publish(self, gold_taken_from: Optional[Tuple[int, int]] = None) -> None:
        snapshot = self._snapshot(gold_taken_from)
        if self._channel is not None:
            self._channel.send(snapshot)
        else:
            self._notify(snapshot)

    def _apply(self, snapshot: StateSnapshot) -> None:
        """Replay a snapshot sent by the solver process against the engine's own caverns.

        A snapshot is accepted only if it is exactly what one legal move (or
        the gold pickup on the SCRAM entrance) produces from the engine's
        current state. Anything else raises :class:`InvalidSnapshotError`,
        leaving the engine state untouched.
        """
        if not isinstance(snapshot, StateSnapshot):
            raise InvalidSnapshotError(f"expected a StateSnapshot, got {type(snapshot).__name__}")
        if snapshot.phase is not self._phase or self._active_phase is not self._phase:
            raise InvalidSnapshotError("snapshot is not for the phase being played")

        if snapshot.phase is Phase.FIND:
            node = self._check_find_move(snapshot)
        else:
            node = self._check_scram_move(snapshot)

        self._position = node
        self._steps_taken = snapshot.steps_taken
        self._steps_remaining = snapshot.steps_remaining
        if snapshot.gold_taken_from is not None:
            self._gold_collected += node.tile.take_gold()
        self._notify(snapshot)

    def _check_find_move(self, snapshot: StateSnapshot) -> Node:
        node = self._adjacent_node(self.find_cavern, snapshot.position_id)
        if snapshot.steps_taken != self._steps_taken + 1:
            raise InvalidSnapshotError(
                f"FIND move must take exactly one step, got {snapshot.steps_taken} "
                f"after {self._steps_taken}"
            )
        if (
            snapshot.steps_remaining is not None
            or snapshot.gold_collected != self._gold_collected
            or snapshot.gold_taken_from is not None
        ):
            raise InvalidSnapshotError("FIND moves cannot change the budget or gold")
        return node

    def _check_scram_move(self, snapshot: StateSnapshot) -> Node:
        if snapshot.steps_taken != self._steps_taken:
            raise InvalidSnapshotError("SCRAM moves cannot change the FIND step count")
        if snapshot.position_id == self._position.id:
            # Pickup on the entrance before the first move
            node, cost = self._position, 0
        else:
            node = self._adjacent_node(self.scram_cavern, snapshot.position_id)
            cost = self._position.edge_to(node).length
        expected_budget = self._steps_remaining - cost
        if expected_budget < 0 or snapshot.steps_remaining != expected_budget:
            raise InvalidSnapshotError(
                f"budget {snapshot.steps_remaining} does not follow from "
                f"{self._steps_remaining} minus {cost}"
            )

        gold = node.tile.gold
        if gold > 0:
            expected_from: Optional[Tuple[int, int]] = (node.tile.row, node.tile.column)
        else:
            expected_from = None
        if cost == 0 and expected_from is None:
            raise InvalidSnapshotError("snapshot neither moves nor picks up gold")
        if (
            snapshot.gold_taken_from != expected_from
            or snapshot.gold_collected != self._gold_collected + gold
        ):
            raise InvalidSnapshotError(
                f"gold {snapshot.gold_collected} does not match the {gold} on the tile"
            )
        return node

    def _adjacent_node(self, cavern: Cavern, node_id: int) -> Node:
        node = cavern.node_by_id(node_id) if isinstance(node_id, int) else None
        if node is None or not self._position.is_adjacent(node):
            raise InvalidSnapshotError(
                f"node {node_id} is not adjacent to node {self._position.id}"
            )
        return node

    def _notify(self, snapshot: StateSnapshot) -> None:
        self.display.moved(self._position.tile.row, self._position.tile.column)
        if snapshot.phase is Phase.FIND:
            self.display.bonus_changed(self.bonus_factor)
        else:
            self.display.steps_changed(snapshot.steps_remaining)
            if snapshot.gold_taken_from is not None:
                self.display.gold_changed(self._gold_collected, self.score)


__all__ = ["GameState", "Phase", "PhaseEnd", "PhaseOutcome", "StateSnapshot"]
