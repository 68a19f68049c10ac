"""
Transcript Log

Append-only record of the messages exchanged in a session. Used both for
display and as conversational context for the content collaborator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Tuple


class Role(str, Enum):
    TUTOR = "tutor"
    LEARNER = "learner"


class Kind(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    EXPLANATION = "explanation"


@dataclass(frozen=True)
class TranscriptEntry:
    role: Role
    kind: Kind
    text: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, str]:
        return {
            "role": self.role.value,
            "kind": self.kind.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }


def to_chat_messages(entries: Iterable[TranscriptEntry]) -> List[Dict[str, str]]:
    """
    Render transcript entries as chat-completion messages.

    Tutor entries become "assistant" turns, learner entries "user" turns.
    """
    return [
        {
            "role": "assistant" if entry.role == Role.TUTOR else "user",
            "content": entry.text,
        }
        for entry in entries
    ]


class TranscriptLog:
    """
    Ordered, append-only message log.

    Entries are never edited, removed or reordered. The whole log is
    discarded only when the session is reset (by dropping the instance).
    """

    def __init__(self):
        self._entries: List[TranscriptEntry] = []

    def append(self, entry: TranscriptEntry) -> TranscriptEntry:
        self._entries.append(entry)
        return entry

    def add(self, role: Role, kind: Kind, text: str) -> TranscriptEntry:
        """Shortcut for append(TranscriptEntry(...))."""
        return self.append(TranscriptEntry(role=role, kind=kind, text=text))

    def all(self) -> Tuple[TranscriptEntry, ...]:
        # Read-only snapshot
        return tuple(self._entries)

    def as_messages(self) -> List[Dict[str, str]]:
        return to_chat_messages(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(self.all())
