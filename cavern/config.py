# cavern/config.py
"""YAML configuration for the engine.

Only tunables live here; the rules of the game (dimension bounds, edge
weights, bonus range) are fixed in :mod:`cavern.constants`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import structlog
import yaml

from cavern.constants import EXTRA_STEPS_FACTOR, FIND_TIMEOUT, SCRAM_TIMEOUT
from cavern.errors import ConfigurationError

log = structlog.get_logger()


@dataclass(frozen=True)
class DigConfig:
    """Knobs for :func:`cavern.world.procgen.dig_cavern`."""

    # Share of the grid that is dug open
    open_fraction: float = 0.6
    # Chance that two adjacent open tiles not joined by the dig get an edge anyway
    loop_probability: float = 0.1
    # Chance that an open tile (other than the entrance) holds gold
    gold_probability: float = 0.2
    max_gold: int = 1000

    def __post_init__(self) -> None:
        if not 0.0 < self.open_fraction <= 1.0:
            raise ConfigurationError("open_fraction must be in (0, 1]")
        for name in ("loop_probability", "gold_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be in [0, 1]")
        if self.max_gold < 1:
            raise ConfigurationError("max_gold must be at least 1")


@dataclass(frozen=True)
class GameConfig:
    find_timeout: float = FIND_TIMEOUT
    scram_timeout: float = SCRAM_TIMEOUT
    extra_steps_factor: float = EXTRA_STEPS_FACTOR
    dig: DigConfig = field(default_factory=DigConfig)

    def __post_init__(self) -> None:
        if self.find_timeout <= 0 or self.scram_timeout <= 0:
            raise ConfigurationError("phase timeouts must be positive")
        if self.extra_steps_factor < 0:
            raise ConfigurationError("extra_steps_factor must be non-negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameConfig":
        """Build a config from a parsed mapping, rejecting unknown keys."""
        if not isinstance(data, dict):
            raise ConfigurationError("configuration root must be a mapping")
        data = dict(data)
        dig_data = data.pop("dig", None) or {}
        if not isinstance(dig_data, dict):
            raise ConfigurationError("'dig' must be a mapping")
        _check_keys(cls, data, "game")
        _check_keys(DigConfig, dig_data, "dig")
        try:
            dig = DigConfig(**{k: _number(k, v) for k, v in dig_data.items()})
            return cls(dig=dig, **{k: _number(k, v) for k, v in data.items()})
        except TypeError as e:
            raise ConfigurationError(str(e)) from e


def _check_keys(cls: type, data: Dict[str, Any], section: str) -> None:
    known = {f.name for f in fields(cls)} - {"dig"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {section} config keys: {', '.join(unknown)}")


def _number(key: str, value: Any) -> float | int:
    # bool is an int subclass; "true" is never a sensible timeout
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{key} must be a number, got {value!r}")
    return value


def load_config(config_path: Path) -> GameConfig:
    """Load a :class:`GameConfig` from a YAML file."""
    config_path = Path(config_path)
    if not config_path.is_file():
        log.error("Config file not found", path=str(config_path))
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        log.error("Error parsing YAML config", path=str(config_path), error=str(e))
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    if config_data is None:
        log.warning("Config file is empty, using defaults", path=str(config_path))
        return GameConfig()
    config = GameConfig.from_dict(config_data)
    log.info("Config loaded", path=str(config_path))
    return config


__all__ = ["DigConfig", "GameConfig", "load_config"]
