"""
Shared fixtures for the Comlink tests.
"""

import pytest

from comlink.discovery_scanner import BUILTIN_CATALOG, CatalogProfileFetcher, DiscoveryScanner, StaticFeed
from comlink.engine import ResolutionEngine
from comlink.intent_resolver import IntentResolver
from comlink.session_store import SessionStore
from comlink.tool_registry import ToolRecord, ToolRegistry
from comlink.utils.analytics import dashboard


@pytest.fixture(autouse=True)
def reset_dashboard():
    """Start every test with empty analytics."""
    dashboard.reset()
    yield
    dashboard.reset()


@pytest.fixture
def giphy_tool():
    return ToolRecord(
        id="comlink.giphy",
        name="giphy",
        description="Search and attach GIFs from Giphy",
        capabilities=["search", "media"],
        tags=["gif", "media", "entertainment"],
    )


@pytest.fixture
def weather_tool():
    return ToolRecord(
        id="comlink.weather",
        name="weather",
        description="Get weather information for a location",
        capabilities=["search", "location"],
        tags=["weather", "data", "location"],
    )


@pytest.fixture
def registry():
    return ToolRegistry(scan_interval_seconds=3600)


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def feed():
    return StaticFeed.announcing(BUILTIN_CATALOG, namespace="comlink")


@pytest.fixture
def profiles():
    return CatalogProfileFetcher(namespace="comlink")


@pytest.fixture
def scanner(registry, feed, profiles):
    return DiscoveryScanner(registry, feed, profiles, namespace="comlink", timeout_seconds=1)


@pytest.fixture
def resolver(registry, scanner):
    return IntentResolver(registry, scanner, classifier=None, namespace="comlink",
                          builtin_media_tool="giphy", classifier_timeout_seconds=1)


@pytest.fixture
def engine(registry, sessions, scanner, resolver):
    return ResolutionEngine(registry, sessions, scanner, resolver)
