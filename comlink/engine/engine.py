"""
Resolution Engine.

In-process facade composing the tool registry, session store, discovery
scanner and intent resolver into the operations callers use.
"""

import logging
import time
from typing import List, Optional, Union

from comlink.config import settings
from comlink.discovery_scanner import (
    BUILTIN_CATALOG, CatalogProfileFetcher, DiscoveryScanner, FeedClient, ProfileFetcher,
    ScanResult, ScanStatus, StaticFeed,
)
from comlink.intent_resolver import (
    ExecutionResult, IntentClassifier, IntentResolver, InstallIntent, OpenAIIntentClassifier,
    ToolNameParameters, UninstallIntent,
)
from comlink.session_store import SessionStore
from comlink.tool_registry import RegistryStats, ToolRecord, ToolRegistry, ToolSearchResult
from comlink.utils.analytics import track_intent
from comlink.utils.error_handling import ScanInProgressError, timer

logger = logging.getLogger(__name__)


class ResolutionEngine:
    """
    Resolves user requests to tools and keeps per-user installed sets.

    Every operation returns a value; failures in the resolution path are
    reported as unsuccessful results rather than raised.
    """

    def __init__(self, registry: ToolRegistry, sessions: SessionStore,
                 scanner: DiscoveryScanner, resolver: IntentResolver):
        self.registry = registry
        self.sessions = sessions
        self.scanner = scanner
        self.resolver = resolver

    @timer("engine")
    async def resolve_and_execute(self, user_id: str, text: str) -> ExecutionResult:
        """
        Classify a user's message, execute it and apply the resulting session change.

        Args:
            user_id: User the message comes from
            text: Natural-language request

        Returns:
            The execution result
        """
        start_time = time.time()

        try:
            installed = self.sessions.get(user_id)
            intent = await self.resolver.classify(text, installed)
            result = await self.resolver.execute(intent, installed)
            self._apply_session_effect(user_id, result)

            duration_ms = (time.time() - start_time) * 1000
            track_intent(
                intent.type.value,
                intent.confidence,
                intent.source.value,
                user_id=str(user_id),
                duration_ms=duration_ms,
                metadata={"success": result.success},
            )
            logger.info(
                f"User {user_id}: {intent.type.value} ({intent.confidence:.2f}, {intent.source.value}) "
                f"-> {'ok' if result.success else 'failed'}"
            )
        except Exception as e:
            logger.error(f"Error resolving message for user {user_id}: {e}")
            return ExecutionResult(
                success=False,
                content="Something went wrong while handling that request.",
                error=str(e),
            )

        return result

    @timer("engine")
    def search_tools(self, query: str, limit: int = 10) -> ToolSearchResult:
        return self.registry.search(query, limit)

    async def scan_for_tools(self, force: bool = False) -> ScanResult:
        """
        Run a discovery scan when the registry is stale or the scan is forced.

        Args:
            force: Scan even if the registry is still fresh

        Returns:
            The scan result; status tells a skipped or rejected scan from a completed one
        """
        if not force and not self.registry.needs_refresh():
            logger.info("Registry is fresh, skipping discovery scan")
            return ScanResult(status=ScanStatus.SKIPPED)

        try:
            return await self.scanner.scan()
        except ScanInProgressError as e:
            logger.warning(f"Scan rejected: {e}")
            return ScanResult(status=ScanStatus.IN_PROGRESS, errors=[str(e)])

    def list_installed(self, user_id: str) -> List[Union[ToolRecord, str]]:
        """Installed tools of a user; ids of tools no longer cached are returned bare."""
        return [self.registry.get(tool_id) or tool_id for tool_id in sorted(self.sessions.get(user_id))]

    def cache_stats(self) -> RegistryStats:
        return self.registry.stats()

    async def install_tool(self, user_id: str, name_or_id: str) -> ExecutionResult:
        """
        Install a tool by name or id without going through classification.

        Args:
            user_id: User to install the tool for
            name_or_id: Bare tool name ("giphy") or qualified id ("comlink.giphy")

        Returns:
            The execution result of the install
        """
        tool_name = self._tool_name(name_or_id)
        intent = InstallIntent(
            confidence=1.0,
            tool_id=self.resolver.rules.qualify(tool_name),
            parameters=ToolNameParameters(tool_name=tool_name),
            original_text=f"install {tool_name}",
            reasoning="Direct install",
        )
        return await self._execute_direct(user_id, intent)

    async def uninstall_tool(self, user_id: str, name_or_id: str) -> ExecutionResult:
        """
        Uninstall a tool by name or id; fails when the tool is not installed.
        """
        tool_name = self._tool_name(name_or_id)
        intent = UninstallIntent(
            confidence=1.0,
            tool_id=self.resolver.rules.qualify(tool_name),
            parameters=ToolNameParameters(tool_name=tool_name),
            original_text=f"uninstall {tool_name}",
            reasoning="Direct uninstall",
        )
        return await self._execute_direct(user_id, intent)

    async def _execute_direct(self, user_id: str, intent: Union[InstallIntent, UninstallIntent]) -> ExecutionResult:
        result = await self.resolver.execute(intent, self.sessions.get(user_id))
        self._apply_session_effect(user_id, result)
        return result

    def _apply_session_effect(self, user_id: str, result: ExecutionResult) -> None:
        if result.success and result.session_effect is not None:
            self.sessions.apply(user_id, result.session_effect)

    def _tool_name(self, name_or_id: str) -> str:
        if not isinstance(name_or_id, str):
            return ""
        prefix = f"{self.resolver.namespace}."
        name_or_id = name_or_id.strip()
        return name_or_id[len(prefix):] if name_or_id.startswith(prefix) else name_or_id


def create_engine(
    feed: Optional[FeedClient] = None,
    profiles: Optional[ProfileFetcher] = None,
    classifier: Optional[IntentClassifier] = None,
    use_ai_classifier: Optional[bool] = None,
) -> ResolutionEngine:
    """
    Build an engine wired from settings.

    Without a feed or profile fetcher the built-in catalog is used. The OpenAI
    classifier is only attached when enabled and an API key is configured.

    Args:
        feed: Social feed client
        profiles: Tool metadata fetcher
        classifier: Explicit classifier, overriding the OpenAI one
        use_ai_classifier: Override for settings.enable_ai_classifier

    Returns:
        A ready engine with an empty registry
    """
    registry = ToolRegistry(scan_interval_seconds=settings.scan_interval_seconds)
    sessions = SessionStore()

    scanner = DiscoveryScanner(
        registry,
        feed or StaticFeed.announcing(BUILTIN_CATALOG, namespace=settings.namespace),
        profiles or CatalogProfileFetcher(namespace=settings.namespace),
        namespace=settings.namespace,
        known_accounts=settings.known_account_list(),
    )

    if use_ai_classifier is None:
        use_ai_classifier = settings.enable_ai_classifier

    if classifier is None and use_ai_classifier:
        if settings.openai_api_key:
            classifier = OpenAIIntentClassifier(namespace=settings.namespace)
        else:
            logger.info("No OpenAI API key configured, using pattern rules only")

    resolver = IntentResolver(registry, scanner, classifier, namespace=settings.namespace)
    return ResolutionEngine(registry, sessions, scanner, resolver)
