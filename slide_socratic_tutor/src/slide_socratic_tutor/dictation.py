"""
Answer Draft and Dictation

Holds the learner's in-progress answer. A DictationProvider can be attached
so spoken input flows into the draft without the controller knowing about
any platform speech API.
"""

import logging
import re
from typing import Optional

from slide_socratic_tutor.collaborators import DictationProvider

logger = logging.getLogger(__name__)

LISTENING_MARKER = "[Listening...]"
_MARKER_PATTERN = re.compile(r" ?\[Listening\.\.\.\]$")


class AnswerDraft:
    """
    The answer text the learner is composing.

    Interim dictation results show a trailing "[Listening...]" marker;
    final results are appended with a trailing space. The marker is
    stripped when dictation ends.
    """

    def __init__(self, provider: Optional[DictationProvider] = None):
        self.text = ""
        self.listening = False
        self.provider: Optional[DictationProvider] = None
        if provider is not None:
            self.attach(provider)

    def attach(self, provider: DictationProvider):
        self.provider = provider
        provider.on_partial_result(self._on_partial)
        provider.on_final_result(self._on_final)
        provider.on_end(self._on_end)

    def set(self, text: str):
        self.text = text

    def clear(self):
        self.text = ""

    @property
    def clean_text(self) -> str:
        return _MARKER_PATTERN.sub("", self.text)

    def toggle_dictation(self) -> bool:
        """
        Start or stop listening.

        Returns:
            True if dictation is now active

        Raises:
            RuntimeError: if no provider is attached
        """
        if self.provider is None:
            raise RuntimeError("Speech recognition is not supported here.")

        if self.listening:
            self.provider.stop()
            self._on_end()
        else:
            self.provider.start()
            self.listening = True
        return self.listening

    def _on_partial(self, transcript: str):
        if not transcript:
            return
        self.text = _MARKER_PATTERN.sub("", self.text) + " " + LISTENING_MARKER

    def _on_final(self, transcript: str):
        self.text = _MARKER_PATTERN.sub("", self.text) + transcript + " "

    def _on_end(self):
        self.listening = False
        self.text = _MARKER_PATTERN.sub("", self.text)
        logger.debug("Dictation ended (%d chars)", len(self.text))
