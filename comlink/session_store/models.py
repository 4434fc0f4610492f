"""
Data models for the Session Store component.
"""

from enum import Enum

from pydantic import BaseModel


class SessionAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"


class SessionMutation(BaseModel):
    """An installed-set change to apply once an install/uninstall has succeeded."""
    action: SessionAction
    tool_id: str
