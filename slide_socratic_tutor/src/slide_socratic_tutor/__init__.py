"""Socratic tutoring over uploaded lecture slides."""

from slide_socratic_tutor.dialogue_controller import DialogueController, ErrorNotice
from slide_socratic_tutor.dialogue_stage import DialogueStage
from slide_socratic_tutor.difficulty_adapter import DifficultyAdapter, DifficultyAdjustment, decide
from slide_socratic_tutor.session_state import GradingOutcome, Quality, SessionState
from slide_socratic_tutor.transcript_log import TranscriptLog

__all__ = [
    "DialogueController",
    "DialogueStage",
    "DifficultyAdapter",
    "DifficultyAdjustment",
    "ErrorNotice",
    "GradingOutcome",
    "Quality",
    "SessionState",
    "TranscriptLog",
    "decide",
]
