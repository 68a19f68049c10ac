"""
Unit Tests for Session State and Transcript Log
"""

import pytest
import sys
import os

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "slide_socratic_tutor", "src"))

from slide_socratic_tutor.session_state import Quality, SessionState, topic_hint_for
from slide_socratic_tutor.transcript_log import Kind, Role, TranscriptLog, to_chat_messages


class TestTopicHint:

    def test_no_topics(self):
        assert topic_hint_for(1, []) is None
        assert topic_hint_for(10, []) is None

    def test_three_questions_per_topic(self):
        topics = ["Tokenization", "Embeddings", "Attention"]
        assert [topic_hint_for(n, topics) for n in range(1, 8)] == [
            "Tokenization", "Tokenization", "Tokenization",
            "Embeddings", "Embeddings", "Embeddings",
            "Attention",
        ]

    def test_sticks_to_last_topic(self):
        topics = ["Tokenization", "Embeddings"]
        assert topic_hint_for(7, topics) == "Embeddings"
        assert topic_hint_for(100, topics) == "Embeddings"

    def test_single_topic(self):
        assert topic_hint_for(5, ["Only"]) == "Only"


class TestSessionState:

    def test_defaults(self):
        state = SessionState()

        assert state.question_number == 1
        assert state.attempts == 0
        assert state.hints_used == 0
        assert state.difficulty == 1
        assert state.difficulty_name == "Basic"
        assert state.hints_remaining == 3
        assert state.has_active_question == False
        assert len(state.recent_outcomes) == 0

    def test_session_ids_are_unique(self):
        assert SessionState().session_id != SessionState().session_id

    def test_window_keeps_last_three(self):
        state = SessionState()
        assert state.record_outcome(Quality.STRONG) == False
        assert state.record_outcome(Quality.PARTIAL) == False
        assert state.record_outcome(Quality.NEEDS_WORK) == True
        state.record_outcome(Quality.STRONG)

        assert list(state.recent_outcomes) == [Quality.PARTIAL, Quality.NEEDS_WORK, Quality.STRONG]

    def test_begin_next_question(self):
        state = SessionState(current_question="What is a token?", attempts=2, hints_used=3)
        state.record_outcome(Quality.PARTIAL)

        state.begin_next_question()

        assert state.question_number == 2
        assert state.attempts == 0
        assert state.hints_used == 0
        assert state.current_question == ""
        # The window spans questions
        assert list(state.recent_outcomes) == [Quality.PARTIAL]

    def test_mark_explored_ignores_empty(self):
        state = SessionState()
        state.mark_explored(None)
        state.mark_explored("")
        state.mark_explored("Embeddings")

        assert state.explored_topics == {"Embeddings"}


class TestTranscriptLog:

    def test_append_order(self):
        log = TranscriptLog()
        log.add(Role.TUTOR, Kind.EXPLANATION, "Welcome")
        log.add(Role.TUTOR, Kind.QUESTION, "What is a token?")
        log.add(Role.LEARNER, Kind.ANSWER, "A unit of text produced by a tokenizer")

        assert len(log) == 3
        assert [e.kind for e in log] == [Kind.EXPLANATION, Kind.QUESTION, Kind.ANSWER]
        assert log.all()[-1].role == Role.LEARNER

    def test_all_is_a_snapshot(self):
        log = TranscriptLog()
        log.add(Role.TUTOR, Kind.QUESTION, "Q1")
        snapshot = log.all()
        log.add(Role.LEARNER, Kind.ANSWER, "A1")

        assert len(snapshot) == 1
        assert isinstance(snapshot, tuple)

    def test_chat_messages(self):
        log = TranscriptLog()
        log.add(Role.TUTOR, Kind.QUESTION, "Q1")
        log.add(Role.LEARNER, Kind.ANSWER, "A1")

        assert log.as_messages() == [
            {"role": "assistant", "content": "Q1"},
            {"role": "user", "content": "A1"},
        ]
        assert to_chat_messages([]) == []

    def test_to_dict(self):
        log = TranscriptLog()
        entry = log.add(Role.TUTOR, Kind.EXPLANATION, "Hint 1/3: look at slide 2")
        data = entry.to_dict()

        assert data["role"] == "tutor"
        assert data["kind"] == "explanation"
        assert data["text"] == "Hint 1/3: look at slide 2"
        assert "timestamp" in data


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
