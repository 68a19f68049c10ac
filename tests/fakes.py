"""
In-memory collaborators for tests.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from slide_socratic_tutor.collaborators import (
    ContentService,
    GradingService,
    PDFRecord,
    PDFUpload,
    PersistenceService,
)
from slide_socratic_tutor.errors import NotFoundError
from slide_socratic_tutor.session_state import DocumentAnalysis, GradingOutcome, Quality


class _Scripted:
    """Records calls, raises queued errors and can hold calls until released."""

    def __init__(self):
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._failures: Dict[str, List[Exception]] = {}
        self._gates: Dict[str, asyncio.Event] = {}

    def fail_next(self, method: str, error: Exception):
        self._failures.setdefault(method, []).append(error)

    def hold(self, method: str):
        self._gates[method] = asyncio.Event()

    def release(self, method: str):
        gate = self._gates.pop(method, None)
        if gate is not None:
            gate.set()

    def called(self, method: str) -> List[Tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    async def _enter(self, method: str, *args):
        self.calls.append((method, args))
        gate = self._gates.get(method)
        if gate is not None:
            await gate.wait()
        queued = self._failures.get(method)
        if queued:
            raise queued.pop(0)


class FakeContentService(_Scripted, ContentService):

    def __init__(self, topics: Optional[List[str]] = None):
        super().__init__()
        self.topics = topics if topics is not None else ["Tokenization", "Embeddings"]
        self.questions_asked = 0

    async def analyze(self, document_bytes: bytes) -> DocumentAnalysis:
        await self._enter("analyze", document_bytes)
        return DocumentAnalysis(
            extracted_text="Slide 1: Tokenization splits text. Slide 2: Embeddings map tokens to vectors.",
            topics=list(self.topics),
            concepts=["tokens", "vectors"],
        )

    async def introduce(self, document_text, difficulty, topic_hint=None) -> str:
        await self._enter("introduce", document_text, difficulty, topic_hint)
        return f"Welcome! Today we look at {topic_hint or 'your slides'}."

    async def next_question(self, document_text, difficulty, transcript, topic_hint=None) -> str:
        await self._enter("next_question", document_text, difficulty, transcript, topic_hint)
        self.questions_asked += 1
        return f"Question {self.questions_asked} about {topic_hint}?"

    async def explain(self, question, answer, document_text, difficulty) -> str:
        await self._enter("explain", question, answer, document_text, difficulty)
        return "Exactly right, and here is why it matters."

    async def hint(self, question, draft_answer, hint_ordinal, document_text, difficulty) -> str:
        await self._enter("hint", question, draft_answer, hint_ordinal, document_text, difficulty)
        return f"Think about slide {hint_ordinal}."


class FakeGradingService(_Scripted, GradingService):
    """Returns queued qualities in order; partial once the queue is empty."""

    def __init__(self, *qualities: Quality):
        super().__init__()
        self.queue: List[Quality] = list(qualities)

    def queue_outcomes(self, *qualities: Quality):
        self.queue.extend(qualities)

    async def evaluate(self, question, answer, document_text, difficulty) -> GradingOutcome:
        await self._enter("evaluate", question, answer, document_text, difficulty)
        quality = self.queue.pop(0) if self.queue else Quality.PARTIAL
        return GradingOutcome(quality, f"Feedback ({quality.value})")


class FakePDFStorage(PersistenceService):

    def __init__(self):
        self.records: Dict[str, PDFRecord] = {}
        self._next_id = 1

    async def store(self, user_id: str, upload: PDFUpload) -> PDFRecord:
        record = PDFRecord(
            id=str(self._next_id),
            user_id=user_id,
            file_name=upload.file_name,
            file_path=f"{user_id}/{self._next_id}.pdf",
            file_size=upload.file_size,
            topics=list(upload.topics),
            created_at=f"2024-01-0{self._next_id}T00:00:00",
        )
        self.records[record.id] = record
        self._next_id += 1
        return record

    async def list(self, user_id: str) -> List[PDFRecord]:
        owned = [r for r in self.records.values() if r.user_id == user_id]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)

    async def get(self, user_id: str, record_id: str) -> PDFRecord:
        record = self.records.get(record_id)
        if record is None or record.user_id != user_id:
            raise NotFoundError(f"PDF {record_id} not found")
        return record

    async def fetch_url(self, record: PDFRecord) -> str:
        return f"https://storage.example/{record.file_path}?token=signed"

    async def delete(self, record: PDFRecord) -> bool:
        del self.records[record.id]
        return True


async def wait_until(predicate, attempts: int = 200):
    """Yield to the event loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class FakeChat:
    """Stands in for ChatModel: returns canned replies in order."""

    def __init__(self, *replies: str, error: Optional[Exception] = None):
        self.replies = list(replies)
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    async def complete(self, messages, **kwargs) -> str:
        self.requests.append({"messages": messages, **kwargs})
        if self.error is not None:
            raise self.error
        return self.replies.pop(0)
