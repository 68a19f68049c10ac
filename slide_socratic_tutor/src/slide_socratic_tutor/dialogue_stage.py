"""
Dialogue Stage Management

Explicit stages and allowed transitions for a tutoring session.
"""

from enum import Enum
from typing import Dict, FrozenSet

from slide_socratic_tutor.errors import InvalidTransitionError


class DialogueStage(Enum):
    """Controller stages."""
    IDLE = "idle"
    INTRO_PENDING = "intro_pending"
    AWAITING_QUESTION = "awaiting_question"
    AWAITING_ANSWER = "awaiting_answer"
    GRADING = "grading"
    EXPLAINING = "explaining"
    HINTING = "hinting"
    ADVANCING = "advancing"


TRANSITIONS: Dict[DialogueStage, FrozenSet[DialogueStage]] = {
    DialogueStage.IDLE: frozenset({DialogueStage.INTRO_PENDING}),
    DialogueStage.INTRO_PENDING: frozenset({DialogueStage.AWAITING_QUESTION}),
    DialogueStage.AWAITING_QUESTION: frozenset({DialogueStage.AWAITING_ANSWER}),
    DialogueStage.AWAITING_ANSWER: frozenset({DialogueStage.GRADING, DialogueStage.HINTING}),
    DialogueStage.GRADING: frozenset({DialogueStage.EXPLAINING, DialogueStage.AWAITING_ANSWER}),
    DialogueStage.EXPLAINING: frozenset({DialogueStage.ADVANCING, DialogueStage.AWAITING_ANSWER}),
    DialogueStage.HINTING: frozenset({DialogueStage.AWAITING_ANSWER}),
    DialogueStage.ADVANCING: frozenset({DialogueStage.AWAITING_QUESTION}),
}


def can_transition(current: DialogueStage, target: DialogueStage) -> bool:
    """Reset to IDLE is always allowed."""
    if target == DialogueStage.IDLE:
        return True
    return target in TRANSITIONS[current]


def check_transition(current: DialogueStage, target: DialogueStage):
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move from {current.value} to {target.value}"
        )
