"""
Tool Registry component.

Maintain a searchable registry of discoverable tools with freshness bookkeeping.
"""

from comlink.tool_registry.registry import ToolRegistry
from comlink.tool_registry.models import (
    RegistrySnapshot, RegistryStats, ToolRecord, ToolSearchResult
)

__all__ = ["ToolRegistry", "ToolRecord", "ToolSearchResult", "RegistryStats", "RegistrySnapshot"]
