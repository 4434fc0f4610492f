"""
Discovery Scanner implementation.

Populates the Tool Registry from a social feed: posts are searched for tool
mentions, unknown tools are verified against their author's published metadata,
and verified discoveries are merged into the registry.
"""

import asyncio
import logging
import re
import threading
import time
from enum import Enum
from typing import Any, Awaitable, Iterable, List, Optional, Set

from comlink.config import settings
from comlink.discovery_scanner.feed import FeedClient, ProfileFetcher
from comlink.discovery_scanner.models import FeedPost, ScanResult, ToolMetadata
from comlink.tool_registry import ToolRecord, ToolRegistry
from comlink.utils.analytics import track_scan
from comlink.utils.error_handling import AsyncErrorContext, DiscoveryError, ScanInProgressError

logger = logging.getLogger(__name__)

INSTALL_MENTION_PATTERN = re.compile(r"install\s+([a-zA-Z0-9_-]+)", re.IGNORECASE)


class ScanState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class DiscoveryScanner:
    """
    Searches the feed for tools and keeps the registry populated.

    Only one scan may run at a time; an overlapping scan() call fails
    immediately with ScanInProgressError.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        feed: FeedClient,
        profiles: ProfileFetcher,
        namespace: str = settings.namespace,
        timeout_seconds: float = settings.discovery_timeout_seconds,
        known_accounts: Optional[Iterable[str]] = None,
        feed_limit: int = settings.feed_scan_limit,
        author_feed_limit: int = settings.author_feed_limit,
        live_search_limit: int = settings.live_search_limit,
    ):
        """
        Initialize the Discovery Scanner.

        Args:
            registry: Registry to populate
            feed: Social feed client
            profiles: Fetcher for the metadata an author publishes for a tool
            namespace: Namespace tool ids are qualified with
            timeout_seconds: Bound on every feed or profile call
            known_accounts: Publisher accounts whose own posts are scanned too
            feed_limit: Posts requested per feed search
            author_feed_limit: Posts requested per known account
            live_search_limit: Posts requested by a single-tool live search
        """
        self.registry = registry
        self.feed = feed
        self.profiles = profiles
        self.namespace = namespace
        self.timeout_seconds = timeout_seconds
        self.feed_limit = feed_limit
        self.author_feed_limit = author_feed_limit
        self.live_search_limit = live_search_limit
        self.known_accounts: Set[str] = set(known_accounts or [])

        self._tool_pattern = re.compile(re.escape(namespace) + r"\.[a-zA-Z0-9_-]+")
        self._state = ScanState.IDLE
        self._state_lock = threading.Lock()

    async def scan(self) -> ScanResult:
        """
        Run a full discovery scan.

        Returns:
            Scan result; per-candidate failures are listed in its errors

        Raises:
            ScanInProgressError: If another scan has not completed yet
        """
        self._begin_scan()
        result = ScanResult()
        start_time = time.time()

        try:
            logger.info(f"Starting discovery scan for {self.namespace} tools")
            attempted: Set[str] = set()

            try:
                await self._scan_feed(result, attempted)
                await self._scan_known_accounts(result, attempted)
            except Exception as e:
                result.errors.append(f"Scan failed: {e}")
                logger.error(f"Discovery scan failed: {e}")

            result.new_tools = [self.registry.upsert(tool) for tool in result.new_tools]
            self.registry.mark_scanned()

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"Scan complete: found {result.tools_found} tools "
                f"({len(result.new_tools)} new, {len(result.errors)} errors) in {duration_ms:.0f}ms"
            )
            track_scan(result.tools_found, len(result.new_tools), len(result.errors), duration_ms)
        finally:
            self._end_scan()

        return result

    def is_scanning(self) -> bool:
        with self._state_lock:
            return self._state is ScanState.RUNNING

    async def search_for_tool(self, query: str) -> List[ToolRecord]:
        """
        Find tools matching a query, looking at the registry before the feed.

        Only when the registry has no match is the feed searched for
        mentions of "<namespace>.<query>"; verified hits are merged into the
        registry before being returned.

        Args:
            query: Tool name or search text

        Returns:
            Matching tools, best first

        Raises:
            DiscoveryError: If the live feed lookup fails
        """
        if not isinstance(query, str) or not query.strip():
            return []

        cached = self.registry.search(query)
        if cached.tools:
            return cached.tools

        query = query.strip()
        logger.info(f"No cached tool matches '{query}', searching the feed")

        async with AsyncErrorContext("discovery_scanner", f"Live search for '{query}' failed", DiscoveryError):
            posts = await self._bounded(self.feed.search_posts(f"{self.namespace}.{query}", self.live_search_limit))

        result = ScanResult()
        attempted: Set[str] = set()
        lower_query = query.lower()
        for post in posts:
            for tool_id in self.extract_tool_mentions(post.text):
                if lower_query in tool_id.lower():
                    await self._investigate(tool_id, post.author, result, attempted)

        for error in result.errors:
            logger.warning(error)

        new_tools = [self.registry.upsert(tool) for tool in result.new_tools]
        return new_tools + result.updated_tools

    def extract_tool_mentions(self, text: Any) -> List[str]:
        """
        Extract tool ids mentioned in a post.

        Both fully qualified ids and "install <name>" phrases are recognised.
        Names are lowercased, so the result is deduplicated regardless of case
        and keeps first-mention order.
        """
        if not isinstance(text, str):
            return []

        prefix_length = len(self.namespace) + 1
        mentions = [f"{self.namespace}.{mention[prefix_length:].lower()}" for mention in self._tool_pattern.findall(text)]
        mentions.extend(f"{self.namespace}.{name.lower()}" for name in INSTALL_MENTION_PATTERN.findall(text))

        return list(dict.fromkeys(mentions))

    def add_known_account(self, account: str) -> None:
        self.known_accounts.add(account)

    def remove_known_account(self, account: str) -> None:
        self.known_accounts.discard(account)

    def _begin_scan(self) -> None:
        with self._state_lock:
            if self._state is ScanState.RUNNING:
                raise ScanInProgressError()
            self._state = ScanState.RUNNING

    def _end_scan(self) -> None:
        with self._state_lock:
            self._state = ScanState.IDLE

    async def _bounded(self, call: Awaitable) -> Any:
        return await asyncio.wait_for(call, timeout=self.timeout_seconds)

    async def _scan_feed(self, result: ScanResult, attempted: Set[str]) -> None:
        """Scan recent feed posts mentioning the namespace."""
        try:
            posts = await self._bounded(self.feed.search_posts(self.namespace, self.feed_limit))
        except Exception as e:
            result.errors.append(f"Feed scan failed: {_describe(e)}")
            return

        await self._process_posts(posts, result, attempted)

    async def _scan_known_accounts(self, result: ScanResult, attempted: Set[str]) -> None:
        """Scan the recent posts of every known publisher account."""
        for account in sorted(self.known_accounts):
            try:
                posts = await self._bounded(self.feed.get_author_feed(account, self.author_feed_limit))
            except Exception as e:
                result.errors.append(f"Error scanning account {account}: {_describe(e)}")
                continue

            await self._process_posts(posts, result, attempted)

    async def _process_posts(self, posts: List[FeedPost], result: ScanResult, attempted: Set[str]) -> None:
        for post in posts:
            try:
                for tool_id in self.extract_tool_mentions(post.text):
                    await self._investigate(tool_id, post.author, result, attempted)
            except Exception as e:
                result.errors.append(f"Error processing post {post.uri}: {e}")

    async def _investigate(self, tool_id: str, author: str, result: ScanResult, attempted: Set[str]) -> None:
        """
        Classify a mentioned tool as updated (already cached) or new (verified now).

        Args:
            tool_id: Mentioned tool id
            author: Account that mentioned it, asked for the tool's metadata
            result: Result collecting discoveries and errors
            attempted: Ids already investigated during this pass
        """
        if tool_id in attempted:
            return
        attempted.add(tool_id)

        existing = self.registry.touch(tool_id)
        if existing is not None:
            result.updated_tools.append(existing)
            result.tools_found += 1
            return

        try:
            metadata = await self._bounded(self.profiles.fetch_tool_metadata(tool_id, author))
        except Exception as e:
            result.errors.append(f"Error investigating tool {tool_id}: {_describe(e)}")
            return

        if metadata is None:
            result.errors.append(f"Could not verify tool {tool_id}: no metadata published by {author}")
            return

        result.new_tools.append(self._build_record(tool_id, author, metadata))
        result.tools_found += 1

    def _build_record(self, tool_id: str, author: str, metadata: ToolMetadata) -> ToolRecord:
        return ToolRecord(
            id=tool_id,
            name=tool_id[len(self.namespace) + 1:],
            description=metadata.description or "No description available",
            author=author,
            repo=f"{author}/{self.namespace}",
            capabilities=list(metadata.capabilities),
            version=metadata.version or "1.0.0",
            tags=list(metadata.tags),
            homepage=metadata.homepage,
            input_schema=metadata.input_schema,
            output_schema=metadata.output_schema,
        )


def _describe(error: Exception) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "timed out"
    return str(error) or error.__class__.__name__
