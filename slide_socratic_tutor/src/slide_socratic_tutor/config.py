"""
Tutor configuration loaded from environment variables (.env supported).
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass
class TutorSettings:
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    collaborator_timeout: Optional[float] = 60.0  # seconds, None disables
    advance_delay: float = 2.0  # pause before the next question (in-process front ends)
    intro_delay: float = 0.5  # pause between intro and first question (in-process front ends)
    max_document_chars: int = 30000  # document text sent to the model
    max_upload_bytes: int = 10 * 1024 * 1024

    @classmethod
    def from_env(cls) -> "TutorSettings":
        timeout = _float_env("TUTOR_COLLABORATOR_TIMEOUT", 60.0)
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            collaborator_timeout=timeout if timeout > 0 else None,
            advance_delay=_float_env("TUTOR_ADVANCE_DELAY", 2.0),
            intro_delay=_float_env("TUTOR_INTRO_DELAY", 0.5),
            max_document_chars=_int_env("TUTOR_MAX_DOCUMENT_CHARS", 30000),
            max_upload_bytes=_int_env("TUTOR_MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
        )
