"""
Built-in tool directory and in-process feed/profile collaborators backed by it.

These let the engine run without any network access: the CLI and the tests use
them in place of a real social feed client.
"""

import logging
from typing import Dict, Iterable, List, Optional

from comlink.config import settings
from comlink.discovery_scanner.models import FeedPost, ToolMetadata

logger = logging.getLogger(__name__)

CATALOG_AUTHOR = "did:plc:comlink-catalog"

BUILTIN_CATALOG: Dict[str, ToolMetadata] = {
    "giphy": ToolMetadata(
        description="Search and attach GIFs from Giphy",
        capabilities=["search", "media"],
        tags=["gif", "media", "entertainment"],
        version="1.0.0",
        homepage="https://giphy.com",
        input_schema={
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
    ),
    "weather": ToolMetadata(
        description="Get weather information for a location",
        capabilities=["search", "location"],
        tags=["weather", "data", "location"],
        version="1.0.0",
        input_schema={
            "type": "object",
            "properties": {"location": {"type": "string"}},
            "required": ["location"],
        },
    ),
    "maps": ToolMetadata(
        description="Get directions and location information",
        capabilities=["search", "location"],
        tags=["maps", "directions", "location"],
        version="1.0.0",
    ),
}


class StaticFeed:
    """
    Feed client over a fixed list of posts.
    """

    def __init__(self, posts: Optional[Iterable[FeedPost]] = None):
        self.posts: List[FeedPost] = list(posts or [])

    @classmethod
    def announcing(cls, names: Iterable[str], namespace: str = settings.namespace,
                   author: str = CATALOG_AUTHOR) -> "StaticFeed":
        """Build a feed with one announcement post per tool name."""
        posts = [
            FeedPost(
                uri=f"at://{author}/post/{name}",
                author=author,
                text=f"New on the catalog: {namespace}.{name} - install {name} to try it",
            )
            for name in names
        ]
        return cls(posts)

    async def search_posts(self, query: str, limit: int) -> List[FeedPost]:
        lower_query = query.lower()
        return [post for post in self.posts if lower_query in post.text.lower()][:limit]

    async def get_author_feed(self, author: str, limit: int) -> List[FeedPost]:
        return [post for post in self.posts if post.author == author][:limit]


class CatalogProfileFetcher:
    """
    Profile fetcher answering from a directory of known tools.
    """

    def __init__(self, catalog: Optional[Dict[str, ToolMetadata]] = None,
                 namespace: str = settings.namespace):
        self.catalog = dict(BUILTIN_CATALOG if catalog is None else catalog)
        self.namespace = namespace

    async def fetch_tool_metadata(self, tool_id: str, author: str) -> Optional[ToolMetadata]:
        prefix = f"{self.namespace}."
        name = tool_id[len(prefix):] if tool_id.startswith(prefix) else tool_id
        metadata = self.catalog.get(name.lower())
        if metadata is None:
            logger.debug(f"No catalog entry for {tool_id} (author {author})")
            return None
        return metadata.model_copy(deep=True)
