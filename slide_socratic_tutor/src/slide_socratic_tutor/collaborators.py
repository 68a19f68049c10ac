"""
Collaborator Contracts

Abstract interfaces for the external services the dialogue controller
depends on. Concrete implementations live in content_service.py,
grading_service.py and pdf_storage.py.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from slide_socratic_tutor.session_state import DocumentAnalysis, GradingOutcome
from slide_socratic_tutor.transcript_log import TranscriptEntry


class ContentService(ABC):
    """Turns a document into text/topics and generates tutoring content."""

    @abstractmethod
    async def analyze(self, document_bytes: bytes) -> DocumentAnalysis:
        """Raises ExtractionError on unreadable or corrupt input."""

    @abstractmethod
    async def introduce(
        self,
        document_text: str,
        difficulty: int,
        topic_hint: Optional[str] = None,
    ) -> str:
        ...

    @abstractmethod
    async def next_question(
        self,
        document_text: str,
        difficulty: int,
        transcript: Sequence[TranscriptEntry],
        topic_hint: Optional[str] = None,
    ) -> str:
        ...

    @abstractmethod
    async def explain(
        self,
        question: str,
        answer: str,
        document_text: str,
        difficulty: int,
    ) -> str:
        ...

    @abstractmethod
    async def hint(
        self,
        question: str,
        draft_answer: str,
        hint_ordinal: int,
        document_text: str,
        difficulty: int,
    ) -> str:
        ...


class GradingService(ABC):
    """Scores a free-text answer against a question."""

    @abstractmethod
    async def evaluate(
        self,
        question: str,
        answer: str,
        document_text: str,
        difficulty: int,
    ) -> GradingOutcome:
        ...


@dataclass
class PDFUpload:
    """A file handed to the persistence service."""
    file_name: str
    data: bytes
    topics: List[str] = field(default_factory=list)

    @property
    def file_size(self) -> int:
        return len(self.data)


@dataclass
class PDFRecord:
    """Row of the user_pdfs table."""
    user_id: str
    file_name: str
    file_path: str
    file_size: int
    topics: List[str] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[str] = None


class PersistenceService(ABC):
    """Stores, lists and deletes uploaded PDFs. Raises StorageError/NotFoundError."""

    @abstractmethod
    async def store(self, user_id: str, upload: PDFUpload) -> PDFRecord:
        ...

    @abstractmethod
    async def list(self, user_id: str) -> List[PDFRecord]:
        ...

    @abstractmethod
    async def get(self, user_id: str, record_id: str) -> PDFRecord:
        """Raises NotFoundError if the user has no such record."""

    @abstractmethod
    async def fetch_url(self, record: PDFRecord) -> str:
        ...

    @abstractmethod
    async def delete(self, record: PDFRecord) -> bool:
        ...


class DictationProvider(ABC):
    """
    Speech-to-text capability for the answer input.

    Providers report interim text through on_partial_result callbacks and
    settled text through on_final_result callbacks.
    """

    @abstractmethod
    def start(self):
        ...

    @abstractmethod
    def stop(self):
        ...

    @abstractmethod
    def on_partial_result(self, callback: Callable[[str], None]):
        ...

    @abstractmethod
    def on_final_result(self, callback: Callable[[str], None]):
        ...

    def on_end(self, callback: Callable[[], None]):
        """Optional: called when the provider stops listening on its own."""
