import pytest

from cavern.world.graph import Cavern


def build_find_cavern() -> Cavern:
    """Three tiles in a row: 10 -(2)- 11 -(3)- 12, entrance 10, target 12."""
    cavern = Cavern(1, 3)
    a = cavern.add_node(10, 0, 0)
    b = cavern.add_node(11, 0, 1)
    c = cavern.add_node(12, 0, 2)
    cavern.connect(a, b, 2)
    cavern.connect(b, c, 3)
    cavern.set_entrance(a)
    cavern.set_target(c)
    return cavern


def build_scram_cavern() -> Cavern:
    """Entrance (0, 2) with 7 gold, exit (0, 0), gold 50 at (0, 1), 100 at (1, 1).

        (0,0) -1- (0,1) -1- (0,2)
                    |4
                  (1,1)
    """
    cavern = Cavern(2, 3)
    exit_node = cavern.add_node(1, 0, 0)
    middle = cavern.add_node(2, 0, 1, gold=50)
    entrance = cavern.add_node(3, 0, 2, gold=7)
    pocket = cavern.add_node(4, 1, 1, gold=100)
    cavern.connect(exit_node, middle, 1)
    cavern.connect(middle, entrance, 1)
    cavern.connect(middle, pocket, 4)
    cavern.set_entrance(entrance)
    cavern.set_target(exit_node)
    return cavern


@pytest.fixture
def find_cavern():
    return build_find_cavern()


@pytest.fixture
def scram_cavern():
    return build_scram_cavern()
