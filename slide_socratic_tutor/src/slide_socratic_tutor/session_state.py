"""
Session State Data Model

Defines the SessionState dataclass for one learning session and the
grading value objects it consumes.
"""

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Deque, List, Optional, Set


if TYPE_CHECKING:
    from slide_socratic_tutor.difficulty_adapter import DifficultyAdjustment


MAX_ATTEMPTS = 3
MAX_HINTS = 3
WINDOW_SIZE = 3
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 4
MIN_ANSWER_LENGTH = 20

DIFFICULTY_NAMES = {
    1: "Basic",
    2: "Foundational",
    3: "Intermediate",
    4: "Advanced",
}


class Quality(str, Enum):
    """Grading classification for one submitted answer."""
    STRONG = "strong"
    PARTIAL = "partial"
    NEEDS_WORK = "needs_work"


@dataclass(frozen=True)
class GradingOutcome:
    """Result returned by the grading collaborator."""
    quality: Quality
    feedback: str = ""


@dataclass
class DocumentAnalysis:
    """Extracted text plus the topic/concept list of an uploaded deck."""
    extracted_text: str
    topics: List[str] = field(default_factory=list)
    concepts: List[str] = field(default_factory=list)


def topic_hint_for(question_number: int, topics: List[str]) -> Optional[str]:
    """
    Pick the topic the next question should target.

    Cycles through topics roughly every three questions and sticks to the
    last topic once the list is exhausted.

    Returns:
        The topic label, or None when there are no topics.
    """
    if not topics:
        return None
    index = min(max(question_number - 1, 0) // 3, len(topics) - 1)
    return topics[index]


@dataclass
class SessionState:
    """State of one learning session. Held in memory only."""
    document_text: str = ""
    topics: List[str] = field(default_factory=list)
    concepts: List[str] = field(default_factory=list)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    question_number: int = 1
    attempts: int = 0
    hints_used: int = 0
    difficulty: int = MIN_DIFFICULTY
    recent_outcomes: Deque[Quality] = field(default_factory=lambda: deque(maxlen=WINDOW_SIZE))
    explored_topics: Set[str] = field(default_factory=set)
    current_question: str = ""
    # Set when the last grading changed difficulty, for the front end to announce it
    difficulty_changed: bool = False
    last_adjustment: Optional["DifficultyAdjustment"] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def difficulty_name(self) -> str:
        return DIFFICULTY_NAMES[self.difficulty]

    @property
    def has_active_question(self) -> bool:
        return bool(self.current_question)

    @property
    def hints_remaining(self) -> int:
        return MAX_HINTS - self.hints_used

    def record_outcome(self, quality: Quality) -> bool:
        """
        Push a quality into the sliding window.

        Returns:
            True if the window is now full
        """
        self.recent_outcomes.append(quality)
        return len(self.recent_outcomes) == WINDOW_SIZE

    def current_topic_hint(self) -> Optional[str]:
        return topic_hint_for(self.question_number, self.topics)

    def mark_explored(self, topic: Optional[str]):
        if topic:
            self.explored_topics.add(topic)

    def begin_next_question(self):
        """Bookkeeping when a question is resolved and the next one is due."""
        self.attempts = 0
        self.hints_used = 0
        self.question_number += 1
        self.current_question = ""
