"""
Tool Registry implementation for maintaining the set of discoverable tools.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from comlink.config import settings
from comlink.tool_registry.models import (
    RegistrySnapshot, RegistryStats, ToolRecord, ToolSearchResult
)
from comlink.utils.error_handling import ValidationError


logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    In-memory keyed store of tool records with ranked search and freshness bookkeeping.
    """

    def __init__(self, scan_interval_seconds: int = settings.scan_interval_seconds):
        """
        Initialize the Tool Registry.

        Args:
            scan_interval_seconds: Age after which the registry needs a new discovery scan
        """
        self._tools: Dict[str, ToolRecord] = {}
        self._last_scan_time: Optional[datetime] = None
        self._scan_interval = timedelta(seconds=scan_interval_seconds)

    def upsert(self, record: ToolRecord) -> ToolRecord:
        """
        Insert or replace a tool by id, stamping it as seen now.

        Args:
            record: Tool record to store

        Returns:
            The stored record
        """
        existing = self._tools.get(record.id)
        last_seen = datetime.now()
        if existing is not None and existing.last_seen > last_seen:
            last_seen = existing.last_seen

        stored = record.model_copy(update={"last_seen": last_seen}, deep=True)
        self._tools[stored.id] = stored

        logger.debug(f"{'Updated' if existing else 'Added'} tool {stored.id}")
        return stored

    def get(self, tool_id: str) -> Optional[ToolRecord]:
        """Retrieve a tool by id, or None if it is not cached."""
        return self._tools.get(tool_id)

    def touch(self, tool_id: str) -> Optional[ToolRecord]:
        """
        Record a fresh observation of a cached tool.

        Args:
            tool_id: Id of the tool

        Returns:
            The tool, or None if it is not cached
        """
        tool = self._tools.get(tool_id)
        if tool is None:
            return None

        now = datetime.now()
        if now > tool.last_seen:
            tool.last_seen = now
        return tool

    def search(self, query: Any, limit: int = 10) -> ToolSearchResult:
        """
        Search tools by name, description, tags and id.

        Ranking: 3 points for an exact name match, 2 when the description
        contains the query, 1 when any tag does. Equal scores keep insertion
        order.

        Args:
            query: Case-insensitive substring to look for
            limit: Maximum number of tools to return; anything but a non-negative int means 10

        Returns:
            Ranked search result
        """
        if not isinstance(query, str):
            return ToolSearchResult(tools=[], total=0, query=None)

        lower_query = query.strip().lower()
        if not lower_query:
            return ToolSearchResult(tools=[], total=0, query=query)

        scored = []
        for tool in self._tools.values():
            name = (tool.name or "").lower()
            description = (tool.description or "").lower()
            tag_match = any(lower_query in tag.lower() for tag in self._tags_of(tool))

            matches_name = lower_query in name
            matches_description = lower_query in description
            matches_id = lower_query in tool.id.lower()

            if not (matches_name or matches_description or tag_match or matches_id):
                continue

            score = 0
            if name == lower_query:
                score += 3
            if matches_description:
                score += 2
            if tag_match:
                score += 1
            scored.append((score, tool))

        # sort is stable, so ties stay in encounter order
        scored.sort(key=lambda item: item[0], reverse=True)

        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
            limit = 10

        return ToolSearchResult(
            tools=[tool for _, tool in scored[:limit]],
            total=len(scored),
            query=query,
        )

    def by_capability(self, capability: str) -> List[ToolRecord]:
        """Find tools declaring the given capability tag."""
        return [tool for tool in self._tools.values() if capability in (tool.capabilities or [])]

    def all_tools(self) -> List[ToolRecord]:
        return list(self._tools.values())

    def remove(self, tool_id: str) -> bool:
        """Remove a tool; returns True if something was removed."""
        return self._tools.pop(tool_id, None) is not None

    def clear(self) -> None:
        """Drop every tool and forget the last scan."""
        self._tools.clear()
        self._last_scan_time = None

    def stats(self) -> RegistryStats:
        return RegistryStats(total=len(self._tools), last_scan_time=self._last_scan_time)

    def needs_refresh(self) -> bool:
        """True if no scan has happened yet or the last one is older than the scan interval."""
        if self._last_scan_time is None:
            return True
        return datetime.now() - self._last_scan_time > self._scan_interval

    def set_scan_interval(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValidationError(f"Scan interval must be positive, got {seconds}", component="tool_registry")
        self._scan_interval = timedelta(seconds=seconds)

    def mark_scanned(self) -> None:
        """Stamp the time of the last completed scan."""
        self._last_scan_time = datetime.now()

    def export_snapshot(self) -> RegistrySnapshot:
        """Export the whole registry state for persistence."""
        return RegistrySnapshot(
            tools=[tool.model_copy(deep=True) for tool in self._tools.values()],
            last_scan_time=self._last_scan_time,
        )

    def import_snapshot(self, snapshot: RegistrySnapshot) -> None:
        """
        Replace the registry state with a previously exported snapshot.

        Args:
            snapshot: Snapshot to load
        """
        self._tools = {tool.id: tool.model_copy(deep=True) for tool in snapshot.tools}
        self._last_scan_time = snapshot.last_scan_time
        logger.info(f"Imported {len(self._tools)} tools into the registry")

    @staticmethod
    def _tags_of(tool: ToolRecord) -> List[str]:
        # capability tags and topical tags both count as tags for search
        return [tag for tag in (tool.capabilities or []) + (tool.tags or []) if isinstance(tag, str)]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_id: str) -> bool:
        return tool_id in self._tools
