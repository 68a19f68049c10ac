"""
In-memory registry of live tutoring sessions, grouped per user.

Sessions are ephemeral: a server restart or a logout discards them.
"""
from typing import Dict, List

from slide_socratic_tutor.dialogue_controller import DialogueController
from slide_socratic_tutor.errors import NotFoundError

from .auth import UserContext
from .logger import get_logger

logger = get_logger("backend.sessions")


class SessionRegistry:
    """Owns one DialogueController per (user, session id)."""

    def __init__(self):
        self._sessions: Dict[str, Dict[str, DialogueController]] = {}

    def add(self, user: UserContext, controller: DialogueController) -> str:
        session_id = controller.state.session_id
        self._sessions.setdefault(user.id, {})[session_id] = controller
        logger.info("Session registered", data={"user_id": user.id, "session_id": session_id})
        return session_id

    def get(self, user: UserContext, session_id: str) -> DialogueController:
        """
        Raises:
            NotFoundError: if the user has no such session
        """
        controller = self._sessions.get(user.id, {}).get(session_id)
        if controller is None:
            raise NotFoundError(f"Session {session_id} not found")
        return controller

    def remove(self, user: UserContext, session_id: str) -> DialogueController:
        controller = self.get(user, session_id)
        controller.reset_session(confirmed=True)
        del self._sessions[user.id][session_id]
        return controller

    def sessions_for(self, user: UserContext) -> List[str]:
        return list(self._sessions.get(user.id, {}))

    def teardown(self, user: UserContext) -> int:
        """Discard every session of a user (on logout)."""
        controllers = self._sessions.pop(user.id, {})
        for controller in controllers.values():
            controller.reset_session(confirmed=True)
        logger.info("User context torn down", data={"user_id": user.id, "sessions": len(controllers)})
        return len(controllers)
