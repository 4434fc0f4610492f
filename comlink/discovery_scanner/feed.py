"""
Interfaces of the external collaborators the Discovery Scanner reads from.

Transport to the actual social network is provided by the caller; anything
implementing these protocols can be passed to DiscoveryScanner.
"""

from typing import List, Optional, Protocol, runtime_checkable

from comlink.discovery_scanner.models import FeedPost, ToolMetadata


@runtime_checkable
class FeedClient(Protocol):
    """Social feed that can be searched for tool mentions."""

    async def search_posts(self, query: str, limit: int) -> List[FeedPost]:
        """Return recent posts matching the query."""
        ...

    async def get_author_feed(self, author: str, limit: int) -> List[FeedPost]:
        """Return the recent posts of a single account."""
        ...


@runtime_checkable
class ProfileFetcher(Protocol):
    """Resolves the metadata an account publishes for one of its tools."""

    async def fetch_tool_metadata(self, tool_id: str, author: str) -> Optional[ToolMetadata]:
        """Return the tool's metadata, or None if the account does not publish it."""
        ...
