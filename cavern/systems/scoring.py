# cavern/systems/scoring.py
"""Bonus multiplier and final score."""

from __future__ import annotations

import math

from cavern.constants import MAX_BONUS, MIN_BONUS, NO_BONUS_LENGTH


def bonus_factor(steps_taken: int, min_steps_to_find: int) -> float:
    """Bonus multiplier for a FIND walk of *steps_taken* moves.

    MAX_BONUS when the walk is no longer than the optimal weighted distance,
    then falling linearly to MIN_BONUS once the excess reaches NO_BONUS_LENGTH
    times the optimum.
    """
    if min_steps_to_find <= 0:
        # Started on the target: any move at all is unboundedly worse.
        return MAX_BONUS if steps_taken <= 0 else MIN_BONUS
    hunt_diff = (steps_taken - min_steps_to_find) / min_steps_to_find
    if hunt_diff <= 0:
        return MAX_BONUS
    mult_diff = MAX_BONUS - MIN_BONUS
    return max(MIN_BONUS, MAX_BONUS - hunt_diff / NO_BONUS_LENGTH * mult_diff)


def compute_score(bonus: float, gold_collected: int) -> int:
    """Final score: the collected gold scaled by the bonus, rounded down."""
    return math.floor(bonus * gold_collected)


__all__ = ["bonus_factor", "compute_score"]
