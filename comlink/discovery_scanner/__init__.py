"""
Discovery Scanner component.

Search the social feed for tool mentions, verify them and merge them into the
Tool Registry.
"""

from comlink.discovery_scanner.scanner import DiscoveryScanner
from comlink.discovery_scanner.models import FeedPost, ScanResult, ScanStatus, ToolMetadata
from comlink.discovery_scanner.feed import FeedClient, ProfileFetcher
from comlink.discovery_scanner.catalog import BUILTIN_CATALOG, CatalogProfileFetcher, StaticFeed

__all__ = [
    "DiscoveryScanner",
    "ScanResult",
    "ScanStatus",
    "FeedPost",
    "ToolMetadata",
    "FeedClient",
    "ProfileFetcher",
    "StaticFeed",
    "CatalogProfileFetcher",
    "BUILTIN_CATALOG",
]
