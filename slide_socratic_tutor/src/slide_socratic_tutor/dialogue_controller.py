"""
Adaptive Dialogue Controller

Drives one Socratic tutoring session over an uploaded slide deck:
- Intro explanation, then a question per topic (about 3 questions per topic)
- Answer grading with up to 3 attempts per question
- Up to 3 hints per question
- Difficulty moves up/down after 3 unanimous grades in a row

Only one collaborator call is in flight at a time. Every call is bounded
by a timeout and can be cancelled; a reset discards the session and makes
any interrupted operation unwind without touching the new state.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Type

from slide_socratic_tutor.collaborators import ContentService, DictationProvider, GradingService
from slide_socratic_tutor.config import TutorSettings
from slide_socratic_tutor.dialogue_stage import DialogueStage, check_transition
from slide_socratic_tutor.dictation import AnswerDraft
from slide_socratic_tutor.difficulty_adapter import DifficultyAdapter
from slide_socratic_tutor.errors import (
    CollaboratorTimeoutError,
    ControllerBusyError,
    GenerationError,
    GradingError,
    InvalidTransitionError,
    SessionCancelledError,
    TutorError,
)
from slide_socratic_tutor.session_state import (
    MAX_ATTEMPTS,
    MAX_HINTS,
    MIN_ANSWER_LENGTH,
    GradingOutcome,
    Quality,
    SessionState,
)
from slide_socratic_tutor.transcript_log import Kind, Role, TranscriptLog

logger = logging.getLogger(__name__)

STRONG_NOTICE = "Great job! Moving to the next question..."
TIMEOUT_FEEDBACK = (
    "I couldn't finish grading that answer in time. "
    "Let's treat it as a draft: try expanding on your reasoning."
)

_USE_SETTINGS = object()


@dataclass
class ErrorNotice:
    """User-facing error with an optional bound retry action."""
    message: str
    retry: Optional[Callable[[], Awaitable[bool]]] = None
    rate_limited: bool = False

    @property
    def retryable(self) -> bool:
        return self.retry is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "retryable": self.retryable,
            "rate_limited": self.rate_limited,
        }


class DialogueController:
    """
    State machine for one learning session.

    Public operations return True when the step completed, False when a
    collaborator failure (see `error`) or a cancellation stopped it.
    Precondition violations raise InvalidTransitionError; calls made while
    another operation is in flight raise ControllerBusyError.
    """

    def __init__(
        self,
        content: ContentService,
        grading: GradingService,
        settings: Optional[TutorSettings] = None,
        dictation: Optional[DictationProvider] = None,
        adapter: Optional[DifficultyAdapter] = None,
    ):
        self.content = content
        self.grading = grading
        self.settings = settings or TutorSettings()
        self.adapter = adapter or DifficultyAdapter()
        self.draft = AnswerDraft(dictation)

        self.state = SessionState()
        self.transcript = TranscriptLog()
        self.stage = DialogueStage.IDLE
        self.error: Optional[ErrorNotice] = None
        self.notice: Optional[str] = None

        # Bumped on every reset; operations started under an older value are stale
        self._generation = 0
        self._busy = False
        self._inflight: Optional[asyncio.Future] = None
        self._cancel_requested = False

    # ==================== Properties ====================

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def hint_available(self) -> bool:
        return (
            self.stage == DialogueStage.AWAITING_ANSWER
            and self.state.has_active_question
            and self.state.hints_used < MAX_HINTS
        )

    # ==================== Public operations ====================

    async def start_session(
        self,
        document_text: str,
        topics: Iterable[str] = (),
        concepts: Iterable[str] = (),
    ) -> bool:
        """
        Start a session over an analyzed document.

        Shows an intro explanation for the first topic, then asks the
        first question.

        Raises:
            ValueError: if document_text is empty
        """
        if not document_text or not document_text.strip():
            raise ValueError("document_text must not be empty")

        async def begin() -> bool:
            check_transition(self.stage, DialogueStage.INTRO_PENDING)
            self.state = SessionState(
                session_id=self.state.session_id,
                document_text=document_text,
                topics=[t for t in topics if t],
                concepts=list(concepts),
            )
            self.transcript = TranscriptLog()
            self.notice = None
            self._set_stage(DialogueStage.INTRO_PENDING)
            logger.info(
                "Session %s started (%d chars, %d topics)",
                self.state.session_id, len(document_text), len(self.state.topics),
            )
            return await self._show_intro()

        return await self._run(begin)

    async def request_next_question(self) -> bool:
        async def ask() -> bool:
            if self.stage != DialogueStage.AWAITING_QUESTION:
                raise InvalidTransitionError(f"Cannot request a question while {self.stage.value}")
            return await self._request_next_question()

        return await self._run(ask)

    async def submit_answer(self, text: Optional[str] = None) -> bool:
        """
        Grade an answer to the current question.

        Args:
            text: Answer text. Defaults to the current draft.

        Returns:
            False without doing anything if the answer is shorter than
            20 characters, otherwise whether grading completed.
        """
        answer = self.draft.clean_text if text is None else text
        if len(answer.strip()) < MIN_ANSWER_LENGTH:
            return False

        async def grade() -> bool:
            if not self.state.has_active_question:
                raise InvalidTransitionError("No question is waiting for an answer")
            self._set_stage(DialogueStage.GRADING)
            self.draft.clear()
            return await self._grade(answer)

        return await self._run(grade)

    async def request_hint(self) -> bool:
        return await self._run(self._hint)

    async def retry(self) -> bool:
        """Re-run the step that failed, if it registered a retry."""
        if self.error is None or self.error.retry is None:
            raise InvalidTransitionError("Nothing to retry")
        action = self.error.retry
        logger.info("Retrying failed step for session %s", self.state.session_id)
        return await self._run(action)

    def cancel(self) -> bool:
        """
        Cancel the in-flight collaborator call, keeping the session.

        Returns:
            True if a call was cancelled
        """
        if self._inflight is None or self._inflight.done():
            return False
        self._cancel_requested = True
        self._inflight.cancel()
        return True

    def reset_session(self, confirmed: bool = False) -> bool:
        """
        Discard all progress and conversation history.

        Destructive, so nothing happens unless `confirmed` is True.
        Safe to call repeatedly and from any stage.
        """
        if not confirmed:
            return False

        self._generation += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        self._busy = False

        self.state = SessionState()
        self.transcript = TranscriptLog()
        self.draft.clear()
        self.stage = DialogueStage.IDLE
        self.error = None
        self.notice = None
        logger.info("Session reset")
        return True

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict view of the session for rendering."""
        state = self.state
        return {
            "session_id": state.session_id,
            "stage": self.stage.value,
            "busy": self._busy,
            "question_number": state.question_number,
            "attempts": state.attempts,
            "hints_used": state.hints_used,
            "hints_remaining": state.hints_remaining,
            "hint_available": self.hint_available,
            "difficulty": state.difficulty,
            "difficulty_name": state.difficulty_name,
            "difficulty_changed": state.difficulty_changed,
            "recent_outcomes": [q.value for q in state.recent_outcomes],
            "topics": list(state.topics),
            "explored_topics": sorted(state.explored_topics),
            "current_question": state.current_question,
            "draft": self.draft.text,
            "notice": self.notice,
            "error": self.error.to_dict() if self.error else None,
            "transcript": [entry.to_dict() for entry in self.transcript.all()],
        }

    # ==================== Steps ====================

    async def _show_intro(self) -> bool:
        self.error = None
        state = self.state
        first_topic = state.topics[0] if state.topics else None
        try:
            intro = await self._call(
                "intro",
                self.content.introduce(state.document_text, state.difficulty, first_topic),
            )
        except TutorError as e:
            self._fail("Failed to generate introduction", e, retry=self._show_intro)
            return False

        self.transcript.add(Role.TUTOR, Kind.EXPLANATION, intro)
        self._set_stage(DialogueStage.AWAITING_QUESTION)
        await self._pause(self.settings.intro_delay)
        return await self._request_next_question()

    async def _request_next_question(self) -> bool:
        self.error = None
        state = self.state
        topic = state.current_topic_hint()
        state.mark_explored(topic)
        try:
            question = await self._call(
                "question",
                self.content.next_question(
                    state.document_text,
                    state.difficulty,
                    self.transcript.all(),
                    topic,
                ),
            )
        except TutorError as e:
            self._fail("Failed to generate question", e, retry=self._request_next_question)
            return False

        state.current_question = question
        self.transcript.add(Role.TUTOR, Kind.QUESTION, question)
        self._set_stage(DialogueStage.AWAITING_ANSWER)
        logger.info(
            "Question %d asked (difficulty=%s, topic=%s)",
            state.question_number, state.difficulty_name, topic,
        )
        return True

    async def _grade(self, answer: str) -> bool:
        self.error = None
        self.notice = None
        state = self.state
        question = state.current_question
        difficulty = state.difficulty
        self.transcript.add(Role.LEARNER, Kind.ANSWER, answer)

        try:
            outcome = await self._call(
                "grading",
                self.grading.evaluate(question, answer, state.document_text, difficulty),
                wrap=GradingError,
            )
        except CollaboratorTimeoutError:
            logger.warning("Grading timed out for question %d, treating as needs_work", state.question_number)
            outcome = GradingOutcome(Quality.NEEDS_WORK, TIMEOUT_FEEDBACK)
        except TutorError as e:
            self._fail("Failed to evaluate answer", e)
            self._set_stage(DialogueStage.AWAITING_ANSWER)
            return False

        self._track_outcome(outcome.quality)
        self._set_stage(DialogueStage.EXPLAINING)

        if outcome.quality == Quality.STRONG:
            try:
                explanation = await self._call(
                    "explanation",
                    self.content.explain(question, answer, state.document_text, difficulty),
                )
            except TutorError as e:
                self._fail("Failed to generate explanation", e)
                self._set_stage(DialogueStage.AWAITING_ANSWER)
                return False
            self.transcript.add(Role.TUTOR, Kind.EXPLANATION, explanation)
            self.notice = self.notice or STRONG_NOTICE
            return await self._advance()

        self.transcript.add(Role.TUTOR, Kind.EXPLANATION, outcome.feedback)
        attempts = state.attempts + 1
        if attempts >= MAX_ATTEMPTS:
            logger.info("Question %d exhausted after %d attempts, moving on", state.question_number, attempts)
            return await self._advance()
        state.attempts = attempts
        self._set_stage(DialogueStage.AWAITING_ANSWER)
        return True

    async def _hint(self) -> bool:
        state = self.state
        if self.stage != DialogueStage.AWAITING_ANSWER or not state.has_active_question:
            raise InvalidTransitionError("No active question to hint")
        if state.hints_used >= MAX_HINTS:
            raise InvalidTransitionError("No hints left for this question")

        self._set_stage(DialogueStage.HINTING)
        self.error = None
        ordinal = state.hints_used + 1
        try:
            hint = await self._call(
                "hint",
                self.content.hint(
                    state.current_question,
                    self.draft.clean_text,
                    ordinal,
                    state.document_text,
                    state.difficulty,
                ),
            )
        except TutorError as e:
            self._fail("Failed to generate hint", e)
            self._set_stage(DialogueStage.AWAITING_ANSWER)
            return False

        self.transcript.add(Role.TUTOR, Kind.EXPLANATION, f"Hint {ordinal}/{MAX_HINTS}: {hint}")
        state.hints_used = ordinal
        self._set_stage(DialogueStage.AWAITING_ANSWER)
        return True

    async def _advance(self) -> bool:
        self._set_stage(DialogueStage.ADVANCING)
        self.state.begin_next_question()
        await self._pause(self.settings.advance_delay)
        self._set_stage(DialogueStage.AWAITING_QUESTION)
        return await self._request_next_question()

    def _track_outcome(self, quality: Quality):
        state = self.state
        state.record_outcome(quality)
        adjustment = self.adapter.check_adjustment(state.difficulty, state.recent_outcomes)
        if self.adapter.apply_adjustment(state, adjustment):
            self.notice = adjustment.notice

    # ==================== Plumbing ====================

    def _set_stage(self, stage: DialogueStage):
        check_transition(self.stage, stage)
        self.stage = stage

    def _fail(self, context: str, error: TutorError, retry: Optional[Callable[[], Awaitable[bool]]] = None):
        logger.error("%s: %s: %s", context, type(error).__name__, error)
        self.error = ErrorNotice(
            message=error.user_message,
            retry=retry,
            rate_limited=error.rate_limited,
        )

    @contextmanager
    def _operation(self):
        if self._busy:
            raise ControllerBusyError()
        self._busy = True
        token = self._generation
        try:
            yield token
        finally:
            # A reset in the meantime already released the slot
            if token == self._generation:
                self._busy = False

    async def _run(self, action: Callable[[], Awaitable[bool]]) -> bool:
        with self._operation() as token:
            try:
                return await action()
            except SessionCancelledError:
                if token == self._generation:
                    self._settle_after_cancel()
                return False

    def _settle_after_cancel(self):
        """Put the controller back into a resting stage after cancel()."""
        stage = self.stage
        if stage == DialogueStage.INTRO_PENDING:
            retry = self._show_intro
        elif stage in (DialogueStage.ADVANCING, DialogueStage.AWAITING_QUESTION):
            self.stage = DialogueStage.AWAITING_QUESTION
            retry = self._request_next_question
        else:
            self.stage = DialogueStage.AWAITING_ANSWER
            retry = None
        self.error = ErrorNotice(message="Request cancelled.", retry=retry)
        logger.info("Operation cancelled, resting in %s", self.stage.value)

    async def _pause(self, delay: float):
        await self._call("pause", asyncio.sleep(max(delay, 0)), timeout=None)

    async def _call(
        self,
        label: str,
        awaitable: Awaitable[Any],
        timeout: Any = _USE_SETTINGS,
        wrap: Type[TutorError] = GenerationError,
    ) -> Any:
        """
        Await a collaborator call with timeout and cancellation support.

        Raises:
            CollaboratorTimeoutError: the call exceeded the timeout
            SessionCancelledError: cancel() or reset_session() interrupted it
            TutorError: collaborator failures (unknown exceptions wrapped in `wrap`)
        """
        if timeout is _USE_SETTINGS:
            timeout = self.settings.collaborator_timeout

        generation = self._generation
        self._cancel_requested = False
        task = asyncio.ensure_future(asyncio.wait_for(awaitable, timeout))
        self._inflight = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancel_requested or generation != self._generation:
                raise SessionCancelledError(label)
            raise
        except Exception as e:
            if generation != self._generation:
                raise SessionCancelledError(label) from e
            if isinstance(e, asyncio.TimeoutError):
                raise CollaboratorTimeoutError(f"The tutor took too long to respond ({label}).") from e
            if isinstance(e, TutorError):
                raise
            raise wrap(str(e) or None) from e
        finally:
            if self._inflight is task:
                self._inflight = None

        if generation != self._generation:
            raise SessionCancelledError(label)
        return result
