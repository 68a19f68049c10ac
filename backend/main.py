"""
FastAPI Backend for Slide Socratic Tutor

Provides REST API endpoints with:
- Supabase JWT authentication
- PDF upload, analysis and storage (Supabase Storage + user_pdfs table)
- Adaptive Socratic tutoring sessions held in memory per user
"""

import os
import sys
import time
import logging
import signal
from dataclasses import asdict, replace
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Add the slide_socratic_tutor package to Python path (when not pip-installed)
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)
package_src = os.path.join(project_root, 'slide_socratic_tutor', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.logger import setup_logging, get_logger
from lib.supabase_client import get_supabase_client
from lib.auth import UserContext, get_current_user
from lib.sessions import SessionRegistry

from slide_socratic_tutor.collaborators import (
    ContentService,
    GradingService,
    PDFUpload,
    PersistenceService,
)
from slide_socratic_tutor.config import TutorSettings
from slide_socratic_tutor.content_service import OpenAIContentService
from slide_socratic_tutor.dialogue_controller import DialogueController
from slide_socratic_tutor.errors import (
    ControllerBusyError,
    ExtractionError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    TutorError,
)
from slide_socratic_tutor.grading_service import OpenAIGradingService
from slide_socratic_tutor.pdf_storage import SupabasePDFStorage

setup_logging(level=logging.INFO, use_colors=True)
logger = get_logger("backend.main")

app = FastAPI(
    title="Slide Socratic Tutor API",
    description="Upload lecture slides and practice with an adaptive Socratic tutor",
    version="1.0.0"
)

# CORS middleware for the browser front end
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== Pydantic Models ====================


class StartSessionRequest(BaseModel):
    document_text: str
    topics: List[str] = []
    concepts: List[str] = []


class AnswerRequest(BaseModel):
    answer: Optional[str] = None  # Defaults to the saved draft


class DraftRequest(BaseModel):
    text: str


# ==================== Dependencies ====================


@lru_cache(maxsize=1)
def get_settings() -> TutorSettings:
    return TutorSettings.from_env()


@lru_cache(maxsize=1)
def get_content_service() -> ContentService:
    return OpenAIContentService(get_settings())


@lru_cache(maxsize=1)
def get_grading_service() -> GradingService:
    return OpenAIGradingService(get_settings())


def get_pdf_storage() -> PersistenceService:
    return SupabasePDFStorage(get_supabase_client())


_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return _registry


# ==================== Error Mapping ====================

ERROR_STATUS = [
    (ControllerBusyError, 409),
    (InvalidTransitionError, 409),
    (NotFoundError, 404),
    (ExtractionError, 422),
    (StorageError, 502),
]


@app.exception_handler(TutorError)
async def tutor_error_handler(request: Request, exc: TutorError):
    status = 502
    for error_cls, code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            status = code
            break
    if exc.rate_limited:
        status = 429
    logger.warning("Request failed", data={
        "path": request.url.path,
        "status": status,
        "error": f"{type(exc).__name__}: {exc}",
    })
    return JSONResponse(status_code=status, content={"detail": exc.user_message})


# ==================== Helpers ====================


def session_payload(controller: DialogueController, **extra: Any) -> Dict[str, Any]:
    payload = {"session": controller.snapshot()}
    payload.update(extra)
    return payload


def request_pacing(settings: TutorSettings) -> TutorSettings:
    """
    Settings for sessions driven over HTTP.

    The intro and advance pauses are for front ends that render each step
    as it happens; a request only answers once the whole step is done, so
    they are dropped here and the client paces its own display.
    """
    return replace(settings, intro_delay=0, advance_delay=0)


# ==================== API Endpoints ====================


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Slide Socratic Tutor API",
        "version": "1.0.0",
    }


@app.post("/api/pdfs")
async def upload_pdf(
    file: UploadFile = File(...),
    user: UserContext = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
    storage: PersistenceService = Depends(get_pdf_storage),
    settings: TutorSettings = Depends(get_settings),
):
    """
    Analyze an uploaded PDF and save it for the user.

    A storage failure does not discard the analysis: the learner can still
    start a session, and the response carries `storage_error`.
    """
    start_time = time.time()
    logger.request("POST", "/api/pdfs", user_id=user.id, data={"file_name": file.filename})

    if file.content_type != "application/pdf":
        raise HTTPException(status_code=400, detail="Please upload a PDF file")

    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise HTTPException(status_code=413, detail=f"File size must be less than {limit_mb}MB")

    analysis = await content.analyze(data)

    record = None
    storage_error = None
    try:
        record = await storage.store(
            user.id,
            PDFUpload(file_name=file.filename or "slides.pdf", data=data, topics=analysis.topics),
        )
        logger.success("PDF saved", data={"id": record.id, "topics": analysis.topics})
    except StorageError as e:
        logger.error("PDF processed but not saved", error=e)
        storage_error = e.user_message

    logger.response(200, "/api/pdfs", duration=time.time() - start_time, data={
        "text_length": len(analysis.extracted_text),
        "topics": len(analysis.topics),
    })
    return {
        "analysis": asdict(analysis),
        "record": asdict(record) if record else None,
        "storage_error": storage_error,
    }


@app.get("/api/pdfs")
async def list_pdfs(
    user: UserContext = Depends(get_current_user),
    storage: PersistenceService = Depends(get_pdf_storage),
):
    records = await storage.list(user.id)
    return {"pdfs": [asdict(r) for r in records]}


@app.get("/api/pdfs/{pdf_id}/url")
async def pdf_url(
    pdf_id: str,
    user: UserContext = Depends(get_current_user),
    storage: PersistenceService = Depends(get_pdf_storage),
):
    record = await storage.get(user.id, pdf_id)
    return {"url": await storage.fetch_url(record)}


@app.delete("/api/pdfs/{pdf_id}")
async def delete_pdf(
    pdf_id: str,
    user: UserContext = Depends(get_current_user),
    storage: PersistenceService = Depends(get_pdf_storage),
):
    record = await storage.get(user.id, pdf_id)
    await storage.delete(record)
    return {"status": "deleted", "id": pdf_id}


@app.post("/api/sessions")
async def start_session(
    body: StartSessionRequest,
    user: UserContext = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
    grading: GradingService = Depends(get_grading_service),
    settings: TutorSettings = Depends(get_settings),
    registry: SessionRegistry = Depends(get_registry),
):
    """Create a session, show the intro and ask the first question."""
    if not body.document_text.strip():
        raise HTTPException(status_code=422, detail="document_text must not be empty")

    controller = DialogueController(content, grading, settings=request_pacing(settings))
    registry.add(user, controller)
    logger.section("SESSION START", {
        "user_id": user.id,
        "session_id": controller.state.session_id,
        "topics": body.topics,
    })
    await controller.start_session(body.document_text, body.topics, body.concepts)
    return session_payload(controller)


@app.get("/api/sessions/{session_id}")
async def get_session(
    session_id: str,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    return session_payload(registry.get(user, session_id))


@app.post("/api/sessions/{session_id}/question")
async def next_question(
    session_id: str,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = registry.get(user, session_id)
    ok = await controller.request_next_question()
    return session_payload(controller, ok=ok)


@app.put("/api/sessions/{session_id}/draft")
async def save_draft(
    session_id: str,
    body: DraftRequest,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = registry.get(user, session_id)
    controller.draft.set(body.text)
    return session_payload(controller)


@app.post("/api/sessions/{session_id}/answer")
async def submit_answer(
    session_id: str,
    body: AnswerRequest,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Grade an answer. Answers under 20 characters are ignored
    (`submitted` is false and nothing changes).
    """
    controller = registry.get(user, session_id)
    before = len(controller.transcript)
    ok = await controller.submit_answer(body.answer)
    submitted = len(controller.transcript) > before
    return session_payload(controller, ok=ok, submitted=submitted)


@app.post("/api/sessions/{session_id}/hint")
async def request_hint(
    session_id: str,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = registry.get(user, session_id)
    ok = await controller.request_hint()
    return session_payload(controller, ok=ok)


@app.post("/api/sessions/{session_id}/retry")
async def retry(
    session_id: str,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = registry.get(user, session_id)
    ok = await controller.retry()
    return session_payload(controller, ok=ok)


@app.post("/api/sessions/{session_id}/cancel")
async def cancel(
    session_id: str,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = registry.get(user, session_id)
    return session_payload(controller, cancelled=controller.cancel())


@app.delete("/api/sessions/{session_id}")
async def reset_session(
    session_id: str,
    confirm: bool = False,
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    """Discard a session. Requires ?confirm=true since progress is lost."""
    if not confirm:
        raise HTTPException(
            status_code=400,
            detail="This will clear all progress and conversation history. Pass confirm=true to proceed."
        )
    registry.remove(user, session_id)
    return {"status": "reset", "session_id": session_id}


@app.post("/api/auth/logout")
async def logout(
    user: UserContext = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
):
    """Tear down the user's in-memory sessions. Token revocation happens client-side."""
    discarded = registry.teardown(user)
    return {"status": "logged_out", "sessions_discarded": discarded}


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.section("SERVER SHUTDOWN", {"reason": "signal received"})
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    try:
        uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
