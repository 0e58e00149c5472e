# cavern/display.py
"""Optional display collaborator.

The engine reports what happens through a :class:`DisplaySink`. The base
class ignores every event, so a game without a display simply uses
:class:`NullDisplay`. :class:`ConsoleDisplay` is a small text sink for
watching games from a terminal.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Optional, TextIO

import structlog

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from cavern.world.graph import Cavern

log = structlog.get_logger()


class DisplaySink:
    """Receives game events. Every hook is a no-op here."""

    def cavern_changed(self, cavern: "Cavern", steps_remaining: Optional[int]) -> None:
        pass

    def phase_changed(self, label: str) -> None:
        pass

    def moved(self, row: int, column: int) -> None:
        pass

    def bonus_changed(self, bonus: float) -> None:
        pass

    def steps_changed(self, steps: int) -> None:
        pass

    def gold_changed(self, gold: int, score: int) -> None:
        pass

    def error(self, message: str) -> None:
        pass


class NullDisplay(DisplaySink):
    """No display attached."""


class ConsoleDisplay(DisplaySink):
    """Prints the cavern on each phase change and logs every other event."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout
        self._log = log.bind(sink="console")

    def cavern_changed(self, cavern: "Cavern", steps_remaining: Optional[int]) -> None:
        self.stream.write(render_cavern(cavern) + "\n")
        self.stream.flush()
        self._log.info("Cavern shown", nodes=len(cavern), steps_remaining=steps_remaining)

    def phase_changed(self, label: str) -> None:
        self._log.info("Phase", label=label)

    def moved(self, row: int, column: int) -> None:
        self._log.debug("Moved", row=row, column=column)

    def bonus_changed(self, bonus: float) -> None:
        self._log.debug("Bonus", bonus=round(bonus, 2))

    def steps_changed(self, steps: int) -> None:
        self._log.debug("Steps left", steps=steps)

    def gold_changed(self, gold: int, score: int) -> None:
        self._log.info("Gold", gold=gold, score=score)

    def error(self, message: str) -> None:
        self._log.error(message)


def render_cavern(cavern: "Cavern") -> str:
    """ASCII picture of *cavern*.

    ``#`` wall, ``.`` open, ``$`` gold, ``E`` entrance, ``T`` target.
    """
    entrance, target = cavern.entrance, cavern.target
    rows = []
    for row in range(cavern.rows):
        chars = []
        for col in range(cavern.cols):
            node = cavern.node_at(row, col)
            if node is None:
                chars.append("#")
            elif node is entrance:
                chars.append("E")
            elif node is target:
                chars.append("T")
            elif node.tile.gold > 0:
                chars.append("$")
            else:
                chars.append(".")
        rows.append("".join(chars))
    return "\n".join(rows)


__all__ = ["DisplaySink", "NullDisplay", "ConsoleDisplay", "render_cavern"]
