"""
Answer Grading

Hybrid approach for grading student answers:
1. Fast heuristic for obvious non-answers ("I don't know", no content)
2. LLM grading against the question and the slides for everything else

Produces a GradingOutcome of strong / partial / needs_work plus feedback.
"""

import logging
from typing import Optional

from slide_socratic_tutor.collaborators import GradingService
from slide_socratic_tutor.config import TutorSettings
from slide_socratic_tutor.errors import GradingError
from slide_socratic_tutor.llm_client import ChatModel, extract_json
from slide_socratic_tutor.session_state import DIFFICULTY_NAMES, GradingOutcome, Quality

logger = logging.getLogger(__name__)

EVASIVE_PHRASES = [
    "i don't know", "i dont know", "idk", "no idea", "not sure",
    "no clue", "i have no idea", "can't remember", "cannot remember",
]

DEFAULT_FEEDBACK = {
    Quality.STRONG: "Well reasoned.",
    Quality.PARTIAL: "You're on the right track. What's missing from your explanation?",
    Quality.NEEDS_WORK: "Let's look at this again. Which part of the slides relates to the question?",
}

EVASIVE_FEEDBACK = (
    "It's okay not to know yet! Take a guess based on what the slides say. "
    "What do you remember about this topic?"
)


def heuristic_outcome(answer: str) -> Optional[GradingOutcome]:
    """
    Grade obvious non-answers without an LLM call.

    Returns:
        A needs_work outcome for evasive or contentless answers, else None
    """
    text = answer.lower().strip()
    words = text.split()
    if not words:
        return GradingOutcome(Quality.NEEDS_WORK, EVASIVE_FEEDBACK)

    evasive = any(phrase in text for phrase in EVASIVE_PHRASES)
    if evasive and len(words) < 8:
        return GradingOutcome(Quality.NEEDS_WORK, EVASIVE_FEEDBACK)

    # Same word repeated, e.g. "test test test test test"
    if len(set(words)) <= 2 and len(words) >= 4:
        return GradingOutcome(Quality.NEEDS_WORK, DEFAULT_FEEDBACK[Quality.NEEDS_WORK])

    return None


def parse_outcome(content: str) -> GradingOutcome:
    """
    Parse the model's JSON grading reply.

    Raises:
        GradingError: if the reply has no recognizable quality
    """
    try:
        data = extract_json(content)
    except ValueError as e:
        raise GradingError(f"Unreadable grading reply: {e}") from e

    raw_quality = str(data.get("quality", "")).strip().lower().replace(" ", "_").replace("-", "_")
    try:
        quality = Quality(raw_quality)
    except ValueError as e:
        raise GradingError(f"Unknown grading quality: {raw_quality!r}") from e

    feedback = data.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        feedback = DEFAULT_FEEDBACK[quality]
    return GradingOutcome(quality=quality, feedback=feedback.strip())


class OpenAIGradingService(GradingService):
    """GradingService backed by OpenAI chat completions."""

    def __init__(self, settings: Optional[TutorSettings] = None, chat: Optional[ChatModel] = None):
        self.settings = settings or TutorSettings.from_env()
        self.chat = chat or ChatModel(self.settings)

    async def evaluate(
        self,
        question: str,
        answer: str,
        document_text: str,
        difficulty: int,
    ) -> GradingOutcome:
        quick = heuristic_outcome(answer)
        if quick is not None:
            logger.debug("Heuristic grade: %s", quick.quality.value)
            return quick

        prompt = f"""Evaluate this student answer to a question about their lecture slides.

Question: {question}
Student answer: {answer}
Expected depth: level {difficulty}/4 ({DIFFICULTY_NAMES[difficulty]})

Grade it:
- "strong": correct and shows understanding at the expected depth
- "partial": on the right track but incomplete or imprecise
- "needs_work": incorrect, off-topic or missing the key idea

If not strong, the feedback must be a Socratic nudge (a guiding question),
never the full answer.

Return ONLY a JSON object with this exact format:
{{"quality": "strong" | "partial" | "needs_work", "feedback": "2-3 sentences for the student"}}

Slides:
{document_text[: self.settings.max_document_chars]}"""

        content = await self.chat.complete(
            [
                {"role": "system", "content": "You are an educational evaluator. Return only valid JSON."},
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
            max_tokens=300,
            json_mode=True,
            error_cls=GradingError,
        )
        outcome = parse_outcome(content)
        logger.info("Answer graded %s", outcome.quality.value)
        return outcome
