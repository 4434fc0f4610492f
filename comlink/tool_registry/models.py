"""
Data models for the Tool Registry component.
"""

from datetime import datetime
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field


class ToolRecord(BaseModel):
    """Represents a discoverable tool in the registry."""
    id: str = Field(frozen=True)  # e.g. "comlink.giphy"
    name: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    repo: Optional[str] = None
    last_seen: datetime = Field(default_factory=datetime.now)
    capabilities: Optional[List[str]] = Field(default_factory=list)
    tags: Optional[List[str]] = Field(default_factory=list)
    version: str = "1.0.0"
    homepage: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None
    output_schema: Optional[Dict[str, Any]] = None


class ToolSearchResult(BaseModel):
    """Ranked search result; total counts every match, not just those returned."""
    tools: List[ToolRecord] = Field(default_factory=list)
    total: int = 0
    query: Optional[str] = None


class RegistryStats(BaseModel):
    total: int
    last_scan_time: Optional[datetime] = None


class RegistrySnapshot(BaseModel):
    """Whole registry state, exportable for persistence."""
    tools: List[ToolRecord] = Field(default_factory=list)
    last_scan_time: Optional[datetime] = None
