"""
Error Taxonomy

Typed errors raised by collaborators and the dialogue controller.
Every error carries a user-facing message so the front end never has to
guess what to show.
"""

from typing import Optional


RATE_LIMIT_MESSAGE = "API rate limit reached. Please wait a moment and try again."


class TutorError(Exception):
    """Base class for all tutor errors."""

    rate_limited = False
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        if self.rate_limited:
            return RATE_LIMIT_MESSAGE
        return str(self)


class ExtractionError(TutorError):
    """The uploaded document could not be read or contains no text."""
    default_message = "Failed to process PDF. Please try again."


class GenerationError(TutorError):
    """The content collaborator failed to produce text."""
    default_message = "Failed to generate content."


class RateLimitedError(GenerationError):
    """Rate limit or quota reached. Recoverable by waiting."""
    rate_limited = True


class CollaboratorTimeoutError(GenerationError):
    """A collaborator call did not finish within the configured timeout."""
    default_message = "The tutor took too long to respond."


class GradingError(TutorError):
    """The grading collaborator failed to evaluate an answer."""
    default_message = "Failed to evaluate answer"

    def __init__(self, message: Optional[str] = None, rate_limited: bool = False):
        super().__init__(message)
        self.rate_limited = rate_limited


class StorageError(TutorError):
    """The persistence collaborator failed."""
    default_message = "Storage request failed."


class NotFoundError(StorageError):
    default_message = "Record not found."


class ControllerBusyError(TutorError):
    """Another controller operation is still in flight."""
    default_message = "Still working on the previous request."


class InvalidTransitionError(TutorError):
    """An operation was invoked from a stage that does not allow it."""


class SessionCancelledError(Exception):
    """The in-flight operation was cancelled or its session was reset."""
