"""
OpenAI Content Service

Extracts slide text from uploaded PDFs and generates the tutor's
introductions, Socratic questions, explanations and hints.
"""

import asyncio
import logging
import os
import tempfile
from typing import Dict, List, Optional, Sequence

from langchain_community.document_loaders import PyPDFLoader

from slide_socratic_tutor.collaborators import ContentService
from slide_socratic_tutor.config import TutorSettings
from slide_socratic_tutor.errors import ExtractionError
from slide_socratic_tutor.llm_client import ChatModel, extract_json
from slide_socratic_tutor.session_state import DIFFICULTY_NAMES, DocumentAnalysis
from slide_socratic_tutor.transcript_log import TranscriptEntry, to_chat_messages

logger = logging.getLogger(__name__)

DIFFICULTY_GUIDANCE = {
    1: "Ask about definitions and key facts stated directly on the slides.",
    2: "Ask the learner to explain a concept in their own words.",
    3: "Ask the learner to apply or compare concepts from the slides.",
    4: "Ask the learner to analyze trade-offs, critique or synthesize ideas across slides.",
}

TUTOR_SYSTEM = """You are a Socratic tutor helping a student study their lecture slides.
Never lecture at length. Guide the student to think for themselves.
Only rely on the lecture material provided."""


def extract_pdf_text(document_bytes: bytes) -> str:
    """
    Load every page of a PDF and join its text.

    Raises:
        ExtractionError: if the file cannot be parsed or holds no text
    """
    if not document_bytes:
        raise ExtractionError("The uploaded file is empty.")

    with tempfile.NamedTemporaryFile(suffix=".pdf", delete=False) as tmp:
        tmp.write(document_bytes)
        path = tmp.name
    try:
        pages = PyPDFLoader(path).load()
    except Exception as e:
        raise ExtractionError(f"Could not read PDF: {e}") from e
    finally:
        os.unlink(path)

    text = "\n\n".join(page.page_content.strip() for page in pages if page.page_content.strip())
    if not text:
        raise ExtractionError("No text could be extracted from this PDF.")
    logger.info("Extracted %d chars from %d pages", len(text), len(pages))
    return text


def _clean_list(values) -> List[str]:
    if not isinstance(values, list):
        return []
    cleaned = []
    for value in values:
        if isinstance(value, str) and value.strip() and value.strip() not in cleaned:
            cleaned.append(value.strip())
    return cleaned


class OpenAIContentService(ContentService):
    """ContentService backed by OpenAI chat completions."""

    def __init__(self, settings: Optional[TutorSettings] = None, chat: Optional[ChatModel] = None):
        self.settings = settings or TutorSettings.from_env()
        self.chat = chat or ChatModel(self.settings)

    def _material(self, document_text: str) -> str:
        return document_text[: self.settings.max_document_chars]

    def _level(self, difficulty: int) -> str:
        return f"Difficulty level {difficulty}/4 ({DIFFICULTY_NAMES[difficulty]}). {DIFFICULTY_GUIDANCE[difficulty]}"

    async def analyze(self, document_bytes: bytes) -> DocumentAnalysis:
        text = await asyncio.to_thread(extract_pdf_text, document_bytes)

        prompt = f"""Analyze these lecture slides.

Slides:
{self._material(text)}

Return ONLY a JSON object with this exact format:
{{"topics": ["main topic", ...], "concepts": ["key concept", ...]}}

List 3-8 topics in the order the slides present them, and up to 15 concepts."""

        reply = await self.chat.complete(
            [
                {"role": "system", "content": "You are an educational content analyst. Return only valid JSON."},
                {"role": "user", "content": prompt},
            ],
            temperature=0.2,
            max_tokens=500,
            json_mode=True,
        )
        try:
            data = extract_json(reply)
        except ValueError as e:
            logger.warning("Topic analysis unparseable, continuing without topics: %s", e)
            data = {}

        return DocumentAnalysis(
            extracted_text=text,
            topics=_clean_list(data.get("topics")),
            concepts=_clean_list(data.get("concepts")),
        )

    async def introduce(
        self,
        document_text: str,
        difficulty: int,
        topic_hint: Optional[str] = None,
    ) -> str:
        focus = f"Focus on the topic: {topic_hint}." if topic_hint else "Cover the overall theme of the slides."
        prompt = f"""Write a short, friendly introduction (3-5 sentences) to these lecture slides
before we start practicing with questions. {focus}
{self._level(difficulty)}

Slides:
{self._material(document_text)}"""

        return await self.chat.complete(
            [
                {"role": "system", "content": TUTOR_SYSTEM},
                {"role": "user", "content": prompt},
            ],
            max_tokens=400,
        )

    async def next_question(
        self,
        document_text: str,
        difficulty: int,
        transcript: Sequence[TranscriptEntry],
        topic_hint: Optional[str] = None,
    ) -> str:
        focus = f"Target the topic: {topic_hint}." if topic_hint else ""
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": f"{TUTOR_SYSTEM}\n\nSlides:\n{self._material(document_text)}"},
        ]
        messages.extend(to_chat_messages(transcript))
        messages.append({
            "role": "user",
            "content": (
                f"Ask me exactly one new open-ended question about the slides. {focus}\n"
                f"{self._level(difficulty)}\n"
                "Do not repeat a question already asked. Reply with the question only."
            ),
        })
        return await self.chat.complete(messages, max_tokens=200)

    async def explain(
        self,
        question: str,
        answer: str,
        document_text: str,
        difficulty: int,
    ) -> str:
        prompt = f"""The student answered this question well.

Question: {question}
Student answer: {answer}

Affirm what they got right, then add one or two insights from the slides that deepen
their understanding. Keep it under 120 words.
{self._level(difficulty)}

Slides:
{self._material(document_text)}"""

        return await self.chat.complete(
            [
                {"role": "system", "content": TUTOR_SYSTEM},
                {"role": "user", "content": prompt},
            ],
            max_tokens=300,
        )

    async def hint(
        self,
        question: str,
        draft_answer: str,
        hint_ordinal: int,
        document_text: str,
        difficulty: int,
    ) -> str:
        # Later hints are more direct
        strength = {1: "a gentle nudge", 2: "a clearer pointer to the relevant slide idea"}.get(
            hint_ordinal, "a strong hint that nearly gives the answer away"
        )
        draft = draft_answer.strip() or "(nothing yet)"
        prompt = f"""Give {strength} for this question without stating the full answer.
This is hint {hint_ordinal} of 3.

Question: {question}
Student's draft answer: {draft}
{self._level(difficulty)}

Slides:
{self._material(document_text)}

Reply with the hint only, in one or two sentences."""

        return await self.chat.complete(
            [
                {"role": "system", "content": TUTOR_SYSTEM},
                {"role": "user", "content": prompt},
            ],
            max_tokens=150,
        )
