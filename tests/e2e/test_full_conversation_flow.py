"""
End-to-End Tests for Full Conversation Flow

Drives the FastAPI backend through complete learner journeys:
- PDF upload, listing, signed URL and deletion
- Session start → answers → difficulty change → hints → reset
- Error mapping (rate limits, extraction failures, invalid requests)
- Per-user isolation and logout teardown

Authentication and collaborators are replaced via dependency overrides.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "slide_socratic_tutor", "src"))
sys.path.insert(0, os.path.join(project_root, "backend"))
sys.path.insert(0, os.path.join(project_root, "tests"))

from fastapi.testclient import TestClient

from fakes import FakeContentService, FakeGradingService, FakePDFStorage

import main
from lib.auth import UserContext, get_current_user
from lib.sessions import SessionRegistry
from slide_socratic_tutor.config import TutorSettings
from slide_socratic_tutor.errors import (
    RATE_LIMIT_MESSAGE,
    ExtractionError,
    GradingError,
    RateLimitedError,
    StorageError,
)
from slide_socratic_tutor.session_state import Quality

SLIDES = "Slide 1: Tokenization splits text into tokens. Slide 2: Embeddings map tokens to vectors."
ANSWER = "Tokens are the pieces a tokenizer splits text into."
PDF_BYTES = b"%PDF-1.4 lecture slides"


class FailingStorage(FakePDFStorage):
    async def store(self, user_id, upload):
        raise StorageError("PDF processed but failed to save: Bucket not found")


class Harness:
    """Wires fake collaborators into the app and tracks the acting user."""

    def __init__(self):
        self.user = UserContext(id="user-1", email="learner@example.com")
        self.content = FakeContentService()
        self.grading = FakeGradingService()
        self.storage = FakePDFStorage()
        self.registry = SessionRegistry()
        self.settings = TutorSettings(advance_delay=0, intro_delay=0, collaborator_timeout=5.0)

    def install(self):
        overrides = main.app.dependency_overrides
        overrides[get_current_user] = lambda: self.user
        overrides[main.get_content_service] = lambda: self.content
        overrides[main.get_grading_service] = lambda: self.grading
        overrides[main.get_pdf_storage] = lambda: self.storage
        overrides[main.get_registry] = lambda: self.registry
        overrides[main.get_settings] = lambda: self.settings


@pytest.fixture
def harness():
    h = Harness()
    h.install()
    yield h
    main.app.dependency_overrides.clear()


@pytest.fixture
def client(harness):
    return TestClient(main.app)


def start(client, **body):
    payload = {"document_text": SLIDES, "topics": ["Tokenization", "Embeddings"]}
    payload.update(body)
    response = client.post("/api/sessions", json=payload)
    assert response.status_code == 200
    return response.json()["session"]


def answer(client, session_id, text=ANSWER):
    response = client.post(f"/api/sessions/{session_id}/answer", json={"answer": text})
    assert response.status_code == 200
    return response.json()


class TestPdfFlow:

    def test_health(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_upload_analyzes_and_saves(self, client, harness):
        response = client.post(
            "/api/pdfs",
            files={"file": ("lecture.pdf", PDF_BYTES, "application/pdf")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["analysis"]["topics"] == ["Tokenization", "Embeddings"]
        assert data["record"]["file_name"] == "lecture.pdf"
        assert data["record"]["file_size"] == len(PDF_BYTES)
        assert data["storage_error"] is None
        assert harness.content.called("analyze")[0][0] == PDF_BYTES

    def test_upload_rejects_non_pdf(self, client):
        response = client.post("/api/pdfs", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert response.status_code == 400

    def test_upload_rejects_large_file(self, client, harness):
        harness.settings.max_upload_bytes = 10

        response = client.post(
            "/api/pdfs",
            files={"file": ("lecture.pdf", PDF_BYTES, "application/pdf")},
        )

        assert response.status_code == 413

    def test_unreadable_pdf(self, client, harness):
        harness.content.fail_next("analyze", ExtractionError())

        response = client.post(
            "/api/pdfs",
            files={"file": ("lecture.pdf", PDF_BYTES, "application/pdf")},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Failed to process PDF. Please try again."

    def test_storage_failure_keeps_analysis(self, client, harness):
        harness.storage = FailingStorage()

        response = client.post(
            "/api/pdfs",
            files={"file": ("lecture.pdf", PDF_BYTES, "application/pdf")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["record"] is None
        assert "failed to save" in data["storage_error"]
        assert data["analysis"]["extracted_text"]

    def test_list_url_delete(self, client, harness):
        for name in ("one.pdf", "two.pdf"):
            client.post("/api/pdfs", files={"file": (name, PDF_BYTES, "application/pdf")})

        pdfs = client.get("/api/pdfs").json()["pdfs"]
        assert [p["file_name"] for p in pdfs] == ["two.pdf", "one.pdf"]

        pdf_id = pdfs[0]["id"]
        url = client.get(f"/api/pdfs/{pdf_id}/url").json()["url"]
        assert "signed" in url

        assert client.delete(f"/api/pdfs/{pdf_id}").status_code == 200
        assert [p["file_name"] for p in client.get("/api/pdfs").json()["pdfs"]] == ["one.pdf"]

    def test_other_users_pdf_not_found(self, client, harness):
        client.post("/api/pdfs", files={"file": ("one.pdf", PDF_BYTES, "application/pdf")})
        harness.user = UserContext(id="user-2")

        assert client.get("/api/pdfs").json()["pdfs"] == []
        assert client.get("/api/pdfs/1/url").status_code == 404
        assert client.delete("/api/pdfs/1").status_code == 404


class TestTutoringFlow:

    def test_complete_session(self, client, harness):
        """
        Start → short answer ignored → three strong answers → harder
        questions → hints → reset.
        """
        session = start(client)
        session_id = session["session_id"]
        assert session["stage"] == "awaiting_answer"
        assert [e["kind"] for e in session["transcript"]] == ["explanation", "question"]

        short = answer(client, session_id, "too short")
        assert short["submitted"] == False
        assert len(short["session"]["transcript"]) == 2

        harness.grading.queue_outcomes(Quality.STRONG, Quality.STRONG, Quality.STRONG)
        for _ in range(3):
            result = answer(client, session_id)
            assert result["ok"] == True
            assert result["submitted"] == True

        session = result["session"]
        assert session["difficulty"] == 2
        assert session["difficulty_name"] == "Foundational"
        assert session["difficulty_changed"] == True
        assert session["recent_outcomes"] == []
        assert session["question_number"] == 4
        assert session["notice"] == "Excellent! Moving to harder questions..."
        assert "Embeddings" in session["current_question"]

        client.put(f"/api/sessions/{session_id}/draft", json={"text": "vectors?"})
        hint = client.post(f"/api/sessions/{session_id}/hint").json()
        assert hint["session"]["transcript"][-1]["text"].startswith("Hint 1/3:")
        assert hint["session"]["hints_remaining"] == 2
        assert harness.content.called("hint")[0][1] == "vectors?"

        assert client.delete(f"/api/sessions/{session_id}").status_code == 400
        assert client.delete(f"/api/sessions/{session_id}?confirm=true").status_code == 200
        assert client.get(f"/api/sessions/{session_id}").status_code == 404

    def test_session_id_is_stable(self, client, harness):
        session = start(client)
        session_id = session["session_id"]

        assert harness.registry.sessions_for(harness.user) == [session_id]
        response = client.get(f"/api/sessions/{session_id}")
        assert response.status_code == 200
        assert response.json()["session"]["session_id"] == session_id

    def test_http_sessions_skip_display_pauses(self, client, harness):
        harness.settings = TutorSettings(advance_delay=30, intro_delay=30, collaborator_timeout=5.0)
        session_id = start(client)["session_id"]
        harness.grading.queue_outcomes(Quality.STRONG)

        result = answer(client, session_id)

        assert result["ok"] == True
        assert result["session"]["question_number"] == 2
        controller = harness.registry.get(harness.user, session_id)
        assert controller.settings.advance_delay == 0
        assert controller.settings.intro_delay == 0
        assert harness.settings.advance_delay == 30

    def test_attempts_then_advance(self, client, harness):
        session_id = start(client)["session_id"]
        harness.grading.queue_outcomes(Quality.NEEDS_WORK, Quality.PARTIAL, Quality.NEEDS_WORK)

        first = answer(client, session_id)["session"]
        assert first["attempts"] == 1
        second = answer(client, session_id)["session"]
        assert second["attempts"] == 2
        third = answer(client, session_id)["session"]

        assert third["attempts"] == 0
        assert third["question_number"] == 2
        assert third["difficulty"] == 1

    def test_answer_from_saved_draft(self, client, harness):
        session_id = start(client)["session_id"]
        client.put(f"/api/sessions/{session_id}/draft", json={"text": ANSWER})

        response = client.post(f"/api/sessions/{session_id}/answer", json={})

        assert response.json()["submitted"] == True
        assert harness.grading.called("evaluate")[0][1] == ANSWER

    def test_empty_document_rejected(self, client):
        response = client.post("/api/sessions", json={"document_text": "   "})
        assert response.status_code == 422

    def test_hint_limit(self, client):
        session_id = start(client)["session_id"]
        for _ in range(3):
            assert client.post(f"/api/sessions/{session_id}/hint").json()["ok"] == True

        response = client.post(f"/api/sessions/{session_id}/hint")

        assert response.status_code == 409


class TestErrorHandling:

    def test_rate_limited_question_then_retry(self, client, harness):
        harness.content.fail_next("next_question", RateLimitedError("429"))

        session = start(client)

        assert session["stage"] == "awaiting_question"
        assert session["error"] == {
            "message": RATE_LIMIT_MESSAGE,
            "retryable": True,
            "rate_limited": True,
        }

        retried = client.post(f"/api/sessions/{session['session_id']}/retry").json()
        assert retried["ok"] == True
        assert retried["session"]["stage"] == "awaiting_answer"
        assert retried["session"]["error"] is None

    def test_grading_failure_is_not_retryable(self, client, harness):
        session_id = start(client)["session_id"]
        harness.grading.fail_next("evaluate", GradingError())

        result = answer(client, session_id)

        assert result["ok"] == False
        assert result["session"]["error"]["retryable"] == False
        assert result["session"]["stage"] == "awaiting_answer"
        assert client.post(f"/api/sessions/{session_id}/retry").status_code == 409

    def test_cancel_with_nothing_running(self, client):
        session_id = start(client)["session_id"]

        response = client.post(f"/api/sessions/{session_id}/cancel")

        assert response.json()["cancelled"] == False


class TestUsers:

    def test_requires_authentication(self, client):
        main.app.dependency_overrides.pop(get_current_user)

        assert client.get("/api/pdfs").status_code == 401
        response = client.get("/api/pdfs", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_sessions_are_per_user(self, client, harness):
        session_id = start(client)["session_id"]
        harness.user = UserContext(id="user-2")

        assert client.get(f"/api/sessions/{session_id}").status_code == 404

    def test_logout_discards_sessions(self, client, harness):
        first = start(client)["session_id"]
        start(client)

        response = client.post("/api/auth/logout")

        assert response.json()["sessions_discarded"] == 2
        assert client.get(f"/api/sessions/{first}").status_code == 404


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
