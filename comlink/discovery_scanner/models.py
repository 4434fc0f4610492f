"""
Data models for the Discovery Scanner component.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from comlink.tool_registry.models import ToolRecord


class ScanStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"  # registry was fresh and the scan was not forced
    IN_PROGRESS = "in_progress"  # rejected because another scan was running


class ScanResult(BaseModel):
    """
    Outcome of a discovery scan.
    """
    tools_found: int = 0
    new_tools: List[ToolRecord] = Field(default_factory=list)
    updated_tools: List[ToolRecord] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    status: ScanStatus = ScanStatus.COMPLETED


class FeedPost(BaseModel):
    """A post from the social feed that may mention tools."""
    uri: str
    author: str
    text: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class ToolMetadata(BaseModel):
    """Descriptive metadata published by a tool's author."""
    description: Optional[str] = None
    capabilities: List[str] = Field(default_factory=list)
    version: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    homepage: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None
    output_schema: Optional[Dict[str, Any]] = None
