"""
Session Store component.

Keep the per-user set of installed tools.
"""

from comlink.session_store.store import SessionStore
from comlink.session_store.models import SessionAction, SessionMutation

__all__ = ["SessionStore", "SessionAction", "SessionMutation"]
