"""
Automatic Difficulty Adaptation

Adjusts question difficulty based on the last three graded answers.
A change only happens when the window is full and unanimous, so a single
lucky or unlucky answer never moves the level.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from slide_socratic_tutor.session_state import (
    DIFFICULTY_NAMES,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    WINDOW_SIZE,
    Quality,
)

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    NONE = "none"
    INCREMENT = "increment"
    DECREMENT = "decrement"


def decide(window: Iterable[Quality], current_difficulty: int) -> Decision:
    """
    Map a window of graded outcomes to a difficulty decision.

    Args:
        window: Most recent qualities (oldest first)
        current_difficulty: Current level in [1, 4]

    Returns:
        Decision.INCREMENT, Decision.DECREMENT or Decision.NONE
    """
    outcomes = list(window)
    if len(outcomes) != WINDOW_SIZE:
        return Decision.NONE

    if all(q == Quality.STRONG for q in outcomes) and current_difficulty < MAX_DIFFICULTY:
        return Decision.INCREMENT
    if all(q == Quality.NEEDS_WORK for q in outcomes) and current_difficulty > MIN_DIFFICULTY:
        return Decision.DECREMENT
    return Decision.NONE


@dataclass
class DifficultyAdjustment:
    """Result of difficulty adjustment check."""
    should_adjust: bool
    direction: Optional[str]  # "increase", "decrease", or None
    reason: str
    new_difficulty: Optional[int] = None
    notice: Optional[str] = None  # Message shown to the learner


class DifficultyAdapter:
    """
    Wraps the window decision in an adjustment the controller can apply.

    Algorithm:
    - Wait until the last 3 grades are known
    - All 3 "strong" -> one level harder
    - All 3 "needs_work" -> one level easier
    - Otherwise keep the current level
    """

    INCREASE_NOTICE = "Excellent! Moving to harder questions..."
    DECREASE_NOTICE = "Let's try a simpler approach..."

    def check_adjustment(
        self,
        current_difficulty: int,
        recent_outcomes: Iterable[Quality],
    ) -> DifficultyAdjustment:
        outcomes = list(recent_outcomes)
        if len(outcomes) < WINDOW_SIZE:
            return DifficultyAdjustment(
                should_adjust=False,
                direction=None,
                reason=f"Need {WINDOW_SIZE} graded answers (have {len(outcomes)})"
            )

        decision = decide(outcomes, current_difficulty)

        if decision == Decision.INCREMENT:
            return DifficultyAdjustment(
                should_adjust=True,
                direction="increase",
                reason="Three strong answers in a row",
                new_difficulty=current_difficulty + 1,
                notice=self.INCREASE_NOTICE,
            )

        if decision == Decision.DECREMENT:
            return DifficultyAdjustment(
                should_adjust=True,
                direction="decrease",
                reason="Three answers in a row need work",
                new_difficulty=current_difficulty - 1,
                notice=self.DECREASE_NOTICE,
            )

        return DifficultyAdjustment(
            should_adjust=False,
            direction=None,
            reason=f"Mixed or bounded results (difficulty={current_difficulty})"
        )

    def apply_adjustment(self, state, adjustment: DifficultyAdjustment) -> bool:
        """
        Apply difficulty adjustment to session state.

        Clears the outcome window so the same grades never count toward
        two separate adjustments.

        Returns:
            True if adjustment was applied, False otherwise
        """
        state.difficulty_changed = False
        if not adjustment.should_adjust or adjustment.new_difficulty is None:
            return False

        old_difficulty = state.difficulty
        state.difficulty = adjustment.new_difficulty
        state.recent_outcomes.clear()
        state.difficulty_changed = True
        state.last_adjustment = adjustment

        logger.info(
            "Difficulty adjusted: %s -> %s (%s)",
            DIFFICULTY_NAMES[old_difficulty],
            DIFFICULTY_NAMES[adjustment.new_difficulty],
            adjustment.reason,
        )
        return True
