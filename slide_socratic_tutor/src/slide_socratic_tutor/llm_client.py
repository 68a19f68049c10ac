"""
Thin wrapper around the OpenAI chat completions API.

Maps OpenAI failures onto the tutor error taxonomy so callers only deal
with RateLimitedError / GenerationError (or the error class they ask for).
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Type

from openai import AsyncOpenAI, OpenAIError, RateLimitError

from slide_socratic_tutor.config import TutorSettings
from slide_socratic_tutor.errors import GenerationError, GradingError, RateLimitedError, TutorError

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json(content: str) -> Dict[str, Any]:
    """
    Pull the first JSON object out of a model reply.

    Raises:
        ValueError: if no valid JSON object is found
    """
    content = content.strip()
    match = _JSON_OBJECT.search(content)
    json_str = match.group(0) if match else content
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model reply is not valid JSON: {content[:80]}") from e
    if not isinstance(data, dict):
        raise ValueError("Model reply is not a JSON object")
    return data


class ChatModel:
    """Async chat-completion client configured from TutorSettings."""

    def __init__(self, settings: TutorSettings, client: Optional[AsyncOpenAI] = None):
        self.model = settings.openai_model
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 600,
        json_mode: bool = False,
        error_cls: Type[TutorError] = GenerationError,
    ) -> str:
        """
        Run one chat completion and return the reply text.

        Raises:
            RateLimitedError / GradingError(rate_limited=True): on 429 or quota errors
            error_cls: on any other API failure or an empty reply
        """
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except RateLimitError as e:
            logger.warning("OpenAI rate limit hit: %s", e)
            if error_cls is GradingError:
                raise GradingError(str(e), rate_limited=True) from e
            raise RateLimitedError(str(e)) from e
        except OpenAIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise error_cls(str(e)) from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise error_cls("The model returned an empty reply.")
        return content.strip()
