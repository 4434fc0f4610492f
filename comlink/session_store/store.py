"""
Per-user installed tool sets.
"""

import logging
from typing import Dict, List, Set

from comlink.session_store.models import SessionAction, SessionMutation


logger = logging.getLogger(__name__)


class SessionStore:
    """
    Tracks which tools each user has installed.

    A user's set is created on first reference and never expires. Ids are not
    checked against the registry: a tool may be installed but no longer cached.
    """

    def __init__(self):
        self._sessions: Dict[str, Set[str]] = {}

    def get(self, user_id: str) -> Set[str]:
        """Return a snapshot of the user's installed tool ids."""
        return set(self._sessions.setdefault(user_id, set()))

    def add(self, user_id: str, tool_id: str) -> None:
        self._sessions.setdefault(user_id, set()).add(tool_id)
        logger.info(f"Installed {tool_id} for user {user_id}")

    def remove(self, user_id: str, tool_id: str) -> bool:
        """Remove a tool from the user's set; returns False if it was not installed."""
        installed = self._sessions.setdefault(user_id, set())
        if tool_id not in installed:
            return False
        installed.discard(tool_id)
        logger.info(f"Uninstalled {tool_id} for user {user_id}")
        return True

    def apply(self, user_id: str, mutation: SessionMutation) -> None:
        """Apply a mutation reported by a successful install or uninstall."""
        if mutation.action == SessionAction.ADD:
            self.add(user_id, mutation.tool_id)
        else:
            self.remove(user_id, mutation.tool_id)

    def users(self) -> List[str]:
        return list(self._sessions)
