"""
Tests for the Discovery Scanner component.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from comlink.discovery_scanner import (
    BUILTIN_CATALOG, CatalogProfileFetcher, DiscoveryScanner, FeedPost, ScanStatus, StaticFeed,
    ToolMetadata,
)
from comlink.tool_registry import ToolRegistry
from comlink.utils.analytics import dashboard
from comlink.utils.error_handling import DiscoveryError, ScanInProgressError


class BlockingFeed(StaticFeed):
    """Static feed whose searches wait until released."""

    def __init__(self, posts):
        super().__init__(posts)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def search_posts(self, query, limit):
        self.started.set()
        await self.release.wait()
        return await super().search_posts(query, limit)


class FailingProfiles(CatalogProfileFetcher):
    """Profile fetcher that fails for one tool."""

    def __init__(self, failing_id):
        super().__init__(namespace="comlink")
        self.failing_id = failing_id

    async def fetch_tool_metadata(self, tool_id, author):
        if tool_id == self.failing_id:
            raise ConnectionError("profile service unavailable")
        return await super().fetch_tool_metadata(tool_id, author)


class SlowProfiles:
    async def fetch_tool_metadata(self, tool_id, author):
        await asyncio.sleep(1)
        return ToolMetadata(description="too late")


@pytest.mark.asyncio
async def test_scan_discovers_catalog_tools(scanner, registry):
    """Test that a scan verifies announced tools and merges them into the registry."""
    result = await scanner.scan()

    assert result.status == ScanStatus.COMPLETED
    assert result.errors == []
    assert result.tools_found == 3
    assert sorted(tool.id for tool in result.new_tools) == ["comlink.giphy", "comlink.maps", "comlink.weather"]
    assert result.updated_tools == []

    giphy = registry.get("comlink.giphy")
    assert giphy.name == "giphy"
    assert giphy.capabilities == ["search", "media"]
    assert giphy.author == "did:plc:comlink-catalog"
    assert registry.stats().last_scan_time is not None
    assert registry.needs_refresh() is False


@pytest.mark.asyncio
async def test_rescan_reports_updated_tools(scanner, registry):
    """Test that already cached tools are updated, not re-verified."""
    await scanner.scan()
    scanner.profiles = MagicMock()
    scanner.profiles.fetch_tool_metadata = AsyncMock()

    result = await scanner.scan()

    assert result.new_tools == []
    assert len(result.updated_tools) == 3
    assert result.tools_found == 3
    scanner.profiles.fetch_tool_metadata.assert_not_awaited()


@pytest.mark.asyncio
async def test_scan_is_tracked(scanner):
    await scanner.scan()

    metrics = dashboard.get_metrics()
    assert metrics.total_scans == 1


def test_extract_tool_mentions(scanner):
    """Test that both mention forms are found and deduplicated."""
    text = "Try comlink.giphy today! Just install giphy, or install weather."

    assert scanner.extract_tool_mentions(text) == ["comlink.giphy", "comlink.weather"]


def test_extract_tool_mentions_ignores_case(scanner):
    text = "comlink.Giphy and comlink.giphy, then INSTALL GIPHY"

    assert scanner.extract_tool_mentions(text) == ["comlink.giphy"]


def test_extract_tool_mentions_ignores_other_text(scanner):
    assert scanner.extract_tool_mentions("nothing to see here") == []
    assert scanner.extract_tool_mentions(None) == []


@pytest.mark.asyncio
async def test_unverifiable_tool_does_not_abort_scan(registry, profiles):
    """Test that a tool without metadata is reported and the others still merge."""
    feed = StaticFeed.announcing(["giphy", "ghost"], namespace="comlink")
    scanner = DiscoveryScanner(registry, feed, profiles, namespace="comlink", timeout_seconds=1)

    result = await scanner.scan()

    assert [tool.id for tool in result.new_tools] == ["comlink.giphy"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Could not verify tool comlink.ghost")
    assert "comlink.ghost" not in registry


@pytest.mark.asyncio
async def test_profile_failure_is_collected(registry, feed):
    scanner = DiscoveryScanner(registry, feed, FailingProfiles("comlink.weather"),
                               namespace="comlink", timeout_seconds=1)

    result = await scanner.scan()

    assert sorted(tool.id for tool in result.new_tools) == ["comlink.giphy", "comlink.maps"]
    assert result.errors == ["Error investigating tool comlink.weather: profile service unavailable"]


@pytest.mark.asyncio
async def test_profile_timeout_is_collected(registry):
    feed = StaticFeed.announcing(["giphy"], namespace="comlink")
    scanner = DiscoveryScanner(registry, feed, SlowProfiles(), namespace="comlink", timeout_seconds=0.05)

    result = await scanner.scan()

    assert result.new_tools == []
    assert result.errors == ["Error investigating tool comlink.giphy: timed out"]


@pytest.mark.asyncio
async def test_feed_failure_still_completes_scan(registry, profiles):
    """Test that a failing feed is reported and the scan is still stamped."""
    feed = MagicMock()
    feed.search_posts = AsyncMock(side_effect=ConnectionError("feed down"))
    feed.get_author_feed = AsyncMock(return_value=[])
    scanner = DiscoveryScanner(registry, feed, profiles, namespace="comlink", timeout_seconds=1)

    result = await scanner.scan()

    assert result.errors == ["Feed scan failed: feed down"]
    assert result.tools_found == 0
    assert registry.stats().last_scan_time is not None
    assert scanner.is_scanning() is False


@pytest.mark.asyncio
async def test_known_accounts_are_scanned(registry, profiles):
    post = FeedPost(uri="at://publisher/post/1", author="did:plc:publisher", text="Now live: comlink.maps")
    feed = MagicMock()
    feed.search_posts = AsyncMock(return_value=[])
    feed.get_author_feed = AsyncMock(return_value=[post])
    scanner = DiscoveryScanner(registry, feed, profiles, namespace="comlink", timeout_seconds=1,
                               known_accounts=["did:plc:publisher"])

    result = await scanner.scan()

    assert [tool.id for tool in result.new_tools] == ["comlink.maps"]
    assert registry.get("comlink.maps").author == "did:plc:publisher"
    feed.get_author_feed.assert_awaited_once_with("did:plc:publisher", scanner.author_feed_limit)


def test_known_account_management(scanner):
    scanner.add_known_account("did:plc:a")
    scanner.add_known_account("did:plc:a")
    assert scanner.known_accounts == {"did:plc:a"}

    scanner.remove_known_account("did:plc:a")
    scanner.remove_known_account("did:plc:missing")
    assert scanner.known_accounts == set()


@pytest.mark.asyncio
async def test_concurrent_scan_is_rejected(registry, profiles):
    """Test that a second scan fails while the first is outstanding, and succeeds afterwards."""
    feed = BlockingFeed(StaticFeed.announcing(BUILTIN_CATALOG, namespace="comlink").posts)
    scanner = DiscoveryScanner(registry, feed, profiles, namespace="comlink", timeout_seconds=5)

    first = asyncio.create_task(scanner.scan())
    await feed.started.wait()
    assert scanner.is_scanning() is True

    with pytest.raises(ScanInProgressError, match="Scan already in progress"):
        await scanner.scan()

    feed.release.set()
    first_result = await first
    assert first_result.tools_found == 3
    assert scanner.is_scanning() is False

    second_result = await scanner.scan()
    assert len(second_result.updated_tools) == 3


@pytest.mark.asyncio
async def test_search_for_tool_prefers_registry(registry, giphy_tool, profiles):
    registry.upsert(giphy_tool)
    feed = MagicMock()
    feed.search_posts = AsyncMock(return_value=[])
    scanner = DiscoveryScanner(registry, feed, profiles, namespace="comlink", timeout_seconds=1)

    tools = await scanner.search_for_tool("giphy")

    assert [tool.id for tool in tools] == ["comlink.giphy"]
    feed.search_posts.assert_not_awaited()


@pytest.mark.asyncio
async def test_search_for_tool_live_lookup_merges(scanner, registry):
    """Test that a registry miss falls through to the feed and caches the hit."""
    tools = await scanner.search_for_tool("weather")

    assert [tool.id for tool in tools] == ["comlink.weather"]
    assert "comlink.weather" in registry
    assert "comlink.giphy" not in registry


@pytest.mark.asyncio
async def test_search_for_tool_without_hits(scanner):
    assert await scanner.search_for_tool("nonexistent") == []
    assert await scanner.search_for_tool("   ") == []
    assert await scanner.search_for_tool(None) == []


@pytest.mark.asyncio
async def test_search_for_tool_feed_failure_raises(registry, profiles):
    feed = MagicMock()
    feed.search_posts = AsyncMock(side_effect=ConnectionError("feed down"))
    scanner = DiscoveryScanner(registry, feed, profiles, namespace="comlink", timeout_seconds=1)

    with pytest.raises(DiscoveryError, match="feed down"):
        await scanner.search_for_tool("giphy")


@pytest.mark.asyncio
async def test_catalog_profile_fetcher(profiles):
    metadata = await profiles.fetch_tool_metadata("comlink.giphy", "someone")

    assert metadata.description == "Search and attach GIFs from Giphy"
    assert await profiles.fetch_tool_metadata("comlink.ghost", "someone") is None
