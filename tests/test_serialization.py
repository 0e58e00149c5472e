import pytest

from cavern.errors import CavernFormatError
from cavern.utils.game_rng import GameRNG
from cavern.world.procgen import dig_cavern
from cavern.world.serialization import dump_graph, load_graph, load_graph_file

SMALL = [
    "size 2 3",
    "entrance 0 2",
    "target 0 0",
    "tiles",
    "1:0 2:50 3:7",
    "# 4:100 #",
    "edges",
    "0 0 0 1 1",
    "0 1 0 2 1",
    "0 1 1 1 4",
]


def test_load_small_cavern():
    cavern = load_graph(SMALL)
    assert (cavern.rows, cavern.cols) == (2, 3)
    assert cavern.entrance.id == 3
    assert cavern.target.id == 1
    assert cavern.node_at(1, 1).tile.gold == 100
    assert cavern.node_at(1, 0) is None
    assert cavern.min_path_length_to_target(cavern.entrance) == 2


def test_dump_matches_fixture(scram_cavern):
    assert dump_graph(scram_cavern) == SMALL


def test_dug_cavern_survives_reload():
    cavern = dig_cavern(9, 14, GameRNG(21))
    lines = dump_graph(cavern)
    reloaded = load_graph(lines)
    assert dump_graph(reloaded) == lines
    assert reloaded.min_path_length_to_target(reloaded.entrance) == (
        cavern.min_path_length_to_target(cavern.entrance)
    )


def test_blank_lines_ignored():
    lines = [""] + SMALL[:4] + ["   "] + SMALL[4:]
    assert dump_graph(load_graph(lines)) == SMALL


def test_load_from_file(tmp_path):
    path = tmp_path / "cave.txt"
    path.write_text("\n".join(SMALL) + "\n", encoding="utf-8")
    assert len(load_graph_file(path)) == 4


def _replace(index, text):
    lines = list(SMALL)
    lines[index] = text
    return lines


@pytest.mark.parametrize(
    "lines, fragment",
    [
        (_replace(4, "1:0 2:50"), "has 2 tiles, expected 3"),
        (_replace(0, "size 2"), "size needs 2 integers"),
        (_replace(0, "size 2000000 2000000"), "exceeds the 25x40 maximum"),
        (_replace(0, "size 2 41"), "exceeds the 25x40 maximum"),
        (_replace(3, "tilez"), "expected 'tiles'"),
        (_replace(5, "# 3:100 #"), "duplicate node id 3"),
        (_replace(4, "1:0 2:x 3:7"), "bad tile token"),
        (_replace(9, "0 1 1 1 99"), "outside [1,"),
        (_replace(9, "0 0 1 0 2"), "not an open tile"),
        (_replace(9, "0 0 1 1 2"), "not adjacent"),
        (_replace(9, "0 0 0 1 1"), "duplicate edge"),
        (_replace(1, "entrance 1 0"), "entrance is not an open tile"),
        (SMALL[:5], "unexpected end of input"),
        (SMALL[:8], "target is unreachable"),
    ],
)
def test_malformed_input_rejected(lines, fragment):
    with pytest.raises(CavernFormatError) as excinfo:
        load_graph(lines)
    assert fragment in str(excinfo.value)


def test_error_carries_line_number():
    with pytest.raises(CavernFormatError) as excinfo:
        load_graph(_replace(4, "1:0 2:50"))
    assert excinfo.value.line_number == 5
    assert str(excinfo.value).startswith("line 5:")


def test_empty_input_rejected():
    with pytest.raises(CavernFormatError):
        load_graph([])
