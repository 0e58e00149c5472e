import pytest

from cavern.config import DigConfig, GameConfig, load_config
from cavern.constants import EXTRA_STEPS_FACTOR, FIND_TIMEOUT, SCRAM_TIMEOUT
from cavern.errors import ConfigurationError


def test_defaults():
    config = GameConfig()
    assert config.find_timeout == FIND_TIMEOUT
    assert config.scram_timeout == SCRAM_TIMEOUT
    assert config.extra_steps_factor == EXTRA_STEPS_FACTOR
    assert config.dig == DigConfig()


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "find_timeout: 3\nscram_timeout: 4.5\ndig:\n  gold_probability: 0.5\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.find_timeout == 3
    assert config.scram_timeout == 4.5
    assert config.extra_steps_factor == EXTRA_STEPS_FACTOR
    assert config.dig.gold_probability == 0.5
    assert config.dig.max_gold == DigConfig().max_gold


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == GameConfig()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("find_timeout: [1, 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


@pytest.mark.parametrize(
    "data",
    [
        {"find_timout": 3},
        {"dig": {"open_fraction": 0.5, "walls": 2}},
        {"find_timeout": "soon"},
        {"find_timeout": True},
        {"find_timeout": 0},
        {"extra_steps_factor": -1},
        {"dig": {"open_fraction": 1.5}},
        {"dig": {"max_gold": 0}},
        {"dig": [1, 2]},
        ["not", "a", "mapping"],
    ],
)
def test_bad_values_rejected(data):
    with pytest.raises(ConfigurationError):
        GameConfig.from_dict(data)


def test_shipped_config_loads():
    from main import CONFIG_FILE

    config = load_config(CONFIG_FILE)
    assert config.find_timeout == FIND_TIMEOUT
    assert config.scram_timeout == SCRAM_TIMEOUT
