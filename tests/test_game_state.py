import time

import pytest

from cavern.config import GameConfig
from cavern.display import DisplaySink
from cavern.errors import IllegalPhaseError
from cavern.game_state import GameState, Phase, StateSnapshot
from cavern.solvers.base import Solver
from cavern.solvers.reference import ReferenceSolver
from cavern.world.serialization import dump_graph
from conftest import build_find_cavern, build_scram_cavern


def _node(state, row, col):
    for node in state.all_nodes():
        if (node.tile.row, node.tile.column) == (row, col):
            return node
    raise LookupError((row, col))


class IdleSolver(Solver):
    def explore_for_target(self, state):
        pass

    def scram_to_exit(self, state):
        pass


class RaisingSolver(IdleSolver):
    def explore_for_target(self, state):
        raise RuntimeError("solver bug")


class JumpingSolver(IdleSolver):
    def explore_for_target(self, state):
        state.move_to(12)  # two tiles away


class SpinningFindSolver(IdleSolver):
    def explore_for_target(self, state):
        while True:
            time.sleep(0.01)


class PocketSolver(ReferenceSolver):
    """Goes for the far pocket of gold regardless of the budget."""

    def scram_to_exit(self, state):
        state.move_to(_node(state, 0, 1))
        state.move_to(_node(state, 1, 1))
        state.move_to(_node(state, 0, 1))
        state.move_to(_node(state, 0, 0))


class SpinningScramSolver(ReferenceSolver):
    def scram_to_exit(self, state):
        state.move_to(_node(state, 0, 1))
        while True:
            state.steps_remaining()
            time.sleep(0.01)


class IdMoveSolver(ReferenceSolver):
    def scram_to_exit(self, state):
        state.move_to(2)


class CrossPhaseSolver(ReferenceSolver):
    def explore_for_target(self, state):
        self.find_view = state
        super().explore_for_target(state)

    def scram_to_exit(self, state):
        self.find_view.neighbors()


class ForgingFindSolver(IdleSolver):
    """Claims to have reached the target in one step without moving."""

    def explore_for_target(self, state):
        state._state._channel.send(StateSnapshot(Phase.FIND, 12, 1, None, 0))


class ForgingScramSolver(ReferenceSolver):
    """Claims to be on the exit with a huge haul and a negative budget."""

    def scram_to_exit(self, state):
        exit_node = state.exit_node()
        state._state._channel.send(StateSnapshot(Phase.SCRAM, exit_node.id, 2, -5, 10**9))
        super().scram_to_exit(state)


class InflatedGoldSolver(ReferenceSolver):
    """Makes a legal first move but reports more gold than the tile holds."""

    def scram_to_exit(self, state):
        state._state._channel.send(StateSnapshot(Phase.SCRAM, 2, 2, 10, 10**9, (0, 1)))
        super().scram_to_exit(state)


class TileTamperingSolver(ReferenceSolver):
    """Empties every tile it can see before scramming."""

    def scram_to_exit(self, state):
        for node in state.all_nodes():
            node.tile.take_gold()
        super().scram_to_exit(state)


class BouncingSolver(ReferenceSolver):
    """Walks back and forth over the gold at (0, 1) before leaving."""

    def scram_to_exit(self, state):
        middle = _node(state, 0, 1)
        entrance = state.current_node()
        state.move_to(middle)
        state.move_to(entrance)
        state.move_to(middle)
        state.move_to(_node(state, 0, 0))


class RecordingDisplay(DisplaySink):
    def __init__(self):
        self.events = []

    def cavern_changed(self, cavern, steps_remaining):
        self.events.append(("cavern", len(cavern), steps_remaining))

    def phase_changed(self, label):
        self.events.append(("phase", label))

    def moved(self, row, column):
        self.events.append(("moved", row, column))

    def bonus_changed(self, bonus):
        self.events.append(("bonus", bonus))

    def steps_changed(self, steps):
        self.events.append(("steps", steps))

    def gold_changed(self, gold, score):
        self.events.append(("gold", gold, score))

    def error(self, message):
        self.events.append(("error", message))

    def of(self, kind):
        return [e for e in self.events if e[0] == kind]


def make_state(solver, config=None, display=None):
    return GameState(
        build_find_cavern(),
        build_scram_cavern(),
        solver,
        seed=1,
        config=config or GameConfig(find_timeout=2.0, scram_timeout=2.0),
        display=display,
    )


def test_initial_state():
    state = make_state(IdleSolver())
    assert state.phase is Phase.FIND
    assert state.position is state.find_cavern.entrance
    assert state.min_steps_to_find == 5
    assert state.steps_remaining is None
    assert state.score == 0


def test_scram_budget():
    state = make_state(IdleSolver())
    # 2 + 0.3 * 16 * 4 / 2, truncated
    assert state.compute_steps_to_scram() == 11
    tight = make_state(IdleSolver(), GameConfig(extra_steps_factor=0.0))
    assert tight.compute_steps_to_scram() == 2


def test_reference_solver_untimed():
    state = make_state(ReferenceSolver())
    assert state.run() == 204
    assert state.find_outcome.succeeded
    assert state.scram_outcome.succeeded
    assert state.steps_taken == 2
    assert state.gold_collected == 157
    assert state.steps_remaining == 1
    assert state.position is state.scram_cavern.target
    assert state.scram_cavern.total_gold() == 0


def test_reference_solver_timed():
    state = make_state(ReferenceSolver())
    assert state.run_with_time_limit() == 204
    assert state.find_outcome.succeeded
    assert state.scram_outcome.succeeded
    # the engine copy only changes through the solver process's snapshots
    assert state.gold_collected == 157
    assert state.steps_remaining == 1
    assert state.position is state.scram_cavern.target
    assert state.scram_cavern.total_gold() == 0


def test_find_wrong_location_skips_scram():
    state = make_state(IdleSolver())
    assert state.run() == 0
    assert state.find_outcome.wrong_location
    assert not state.find_outcome.succeeded
    assert not state.find_outcome.errored
    assert not state.scram_outcome.started
    assert state.find_steps_left == 5
    assert state.scram_steps_left == 2


def test_solver_exception_marks_errored():
    display = RecordingDisplay()
    state = make_state(RaisingSolver(), display=display)
    state.run_with_time_limit()
    assert state.find_outcome.errored
    assert not state.find_outcome.timed_out
    assert not state.scram_outcome.started
    assert display.of("error") == [
        ("error", "Your code errored during the find phase. Please see console output.")
    ]


def test_non_adjacent_move_errors():
    state = make_state(JumpingSolver())
    state.run()
    assert state.find_outcome.errored
    assert state.position is state.find_cavern.entrance
    assert state.steps_taken == 0


def test_find_timeout_is_not_an_error():
    state = make_state(SpinningFindSolver(), GameConfig(find_timeout=0.5))
    state.run_with_time_limit()
    assert state.find_outcome.timed_out
    assert not state.find_outcome.errored
    assert not state.find_outcome.succeeded
    assert not state.scram_outcome.started
    assert state.find_steps_left == 5


def test_scram_timeout_keeps_progress():
    state = make_state(SpinningScramSolver(), GameConfig(scram_timeout=0.5))
    state.run_with_time_limit()
    assert state.find_outcome.succeeded
    assert state.scram_outcome.timed_out
    assert not state.scram_outcome.errored
    assert not state.scram_outcome.succeeded
    middle = state.scram_cavern.node_at(0, 1)
    assert state.position is middle
    assert state.gold_collected == 57
    assert middle.tile.gold == 0
    assert state.scram_steps_left == 1


def test_out_of_steps_refuses_move():
    state = make_state(PocketSolver(), GameConfig(extra_steps_factor=0.0))
    state.run()
    outcome = state.scram_outcome
    assert outcome.out_of_steps
    assert not outcome.succeeded and not outcome.errored
    # the refused move changed nothing
    assert state.position is state.scram_cavern.node_at(0, 1)
    assert state.steps_remaining == 1
    assert state.gold_collected == 57
    assert state.scram_cavern.node_at(1, 1).tile.gold == 100


def test_out_of_steps_timed():
    state = make_state(
        PocketSolver(), GameConfig(extra_steps_factor=0.0, scram_timeout=2.0)
    )
    state.run_with_time_limit()
    assert state.scram_outcome.out_of_steps
    assert state.steps_remaining == 1


def test_scram_move_requires_node():
    state = make_state(IdMoveSolver())
    state.run()
    assert state.scram_outcome.errored


def test_view_unusable_outside_its_phase():
    solver = CrossPhaseSolver()
    state = make_state(solver)
    state.run()
    assert state.find_outcome.succeeded
    assert state.scram_outcome.errored
    with pytest.raises(IllegalPhaseError):
        solver.find_view.current_location()


def test_gold_collected_once():
    state = make_state(BouncingSolver())
    state.run()
    assert state.scram_outcome.succeeded
    assert state.gold_collected == 57


def test_phases_play_once_and_in_order():
    state = make_state(ReferenceSolver())
    state.run_find_with_time_limit()
    with pytest.raises(IllegalPhaseError):
        state.run_find_with_time_limit()
    state.run_scram_with_time_limit()
    with pytest.raises(IllegalPhaseError):
        state.run_scram_with_time_limit()


def test_find_cannot_follow_scram():
    state = make_state(ReferenceSolver())
    state.run_scram_with_time_limit()
    assert state.scram_outcome.succeeded
    with pytest.raises(IllegalPhaseError):
        state.run_find_with_time_limit()


def test_scram_only_run():
    state = make_state(ReferenceSolver())
    state.run_scram_with_time_limit()
    assert not state.find_outcome.started
    assert state.gold_collected == 157
    assert state.score == 204


def test_scram_refused_after_failed_find():
    state = make_state(IdleSolver())
    state.run_find_with_time_limit()
    assert state.find_outcome.wrong_location
    with pytest.raises(IllegalPhaseError):
        state.run_scram_with_time_limit()


@pytest.mark.parametrize("timed", [False, True])
def test_display_events(timed):
    display = RecordingDisplay()
    state = make_state(ReferenceSolver(), display=display)
    if timed:
        state.run_with_time_limit()
    else:
        state.run()
    assert [e[1] for e in display.of("phase")] == ["Finding", "Scramming", "Scram Succeeded"]
    assert display.of("cavern") == [("cavern", 3, None), ("cavern", 4, 11)]
    assert display.of("gold")[-1] == ("gold", 157, 204)
    assert display.of("moved")[-1] == ("moved", 0, 0)
    assert display.of("steps")[-1] == ("steps", 1)
    assert display.of("error") == []


def test_from_seed_is_reproducible():
    first = GameState.from_seed(4242, ReferenceSolver())
    second = GameState.from_seed(4242, ReferenceSolver())
    assert first.seed == 4242
    assert dump_graph(first.find_cavern) == dump_graph(second.find_cavern)
    assert dump_graph(first.scram_cavern) == dump_graph(second.scram_cavern)


def test_random_seed_is_recorded():
    state = GameState.from_seed(0, ReferenceSolver())
    assert state.seed != 0


def test_from_files(tmp_path):
    find_path = tmp_path / "find.txt"
    scram_path = tmp_path / "scram.txt"
    find_path.write_text("\n".join(dump_graph(build_find_cavern())), encoding="utf-8")
    scram_path.write_text("\n".join(dump_graph(build_scram_cavern())), encoding="utf-8")
    state = GameState.from_files(find_path, scram_path, ReferenceSolver())
    assert state.run() == 204


def test_forged_find_snapshot_rejected():
    state = make_state(ForgingFindSolver())
    state.run_with_time_limit()
    assert state.find_outcome.errored
    assert not state.find_outcome.succeeded
    assert state.position is state.find_cavern.entrance
    assert state.steps_taken == 0
    assert not state.scram_outcome.started


def test_forged_scram_snapshot_rejected():
    display = RecordingDisplay()
    state = make_state(ForgingScramSolver(), display=display)
    state.run_with_time_limit()
    assert state.find_outcome.succeeded
    assert state.scram_outcome.errored
    assert not state.scram_outcome.succeeded
    # only the legal pickup on the entrance was applied
    assert state.position is state.scram_cavern.entrance
    assert state.gold_collected == 7
    assert state.steps_remaining == 11
    assert state.score == 9
    assert display.of("error") == [
        ("error", "Your code errored during the scram phase. Please see console output.")
    ]


def test_inflated_gold_snapshot_rejected():
    state = make_state(InflatedGoldSolver())
    state.run_with_time_limit()
    assert state.scram_outcome.errored
    assert state.gold_collected == 7
    assert state.steps_remaining == 11
    assert state.scram_cavern.node_at(0, 1).tile.gold == 50


def test_timed_solver_cannot_touch_engine_tiles():
    state = make_state(TileTamperingSolver())
    state.run_with_time_limit()
    # the solver's emptied tiles disagree with the engine's, so its first move is refused
    assert state.scram_outcome.errored
    assert state.gold_collected == 7
    assert state.scram_cavern.node_at(0, 1).tile.gold == 50
    assert state.scram_cavern.node_at(1, 1).tile.gold == 100
