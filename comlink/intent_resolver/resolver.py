"""
Intent Resolver implementation.

Turns free text into a typed intent and executes intents against the tool
registry. Classification tries the external classifier first and falls back
to deterministic pattern rules on any failure; both paths produce the same
Intent union.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError

from comlink.config import settings
from comlink.discovery_scanner import DiscoveryScanner
from comlink.intent_resolver.classifier import IntentClassifier
from comlink.intent_resolver.models import (
    ClassifierVerdict, EmptyParameters, ExecuteIntent, ExecuteParameters, ExecutionResult,
    HelpIntent, InstallIntent, Intent, IntentSource, IntentType, ListIntent, MediaItem,
    SearchIntent, SearchParameters, ToolInvocation, ToolNameParameters, UninstallIntent,
    UnknownIntent,
)
from comlink.intent_resolver.rules import PatternRules, has_media_keyword
from comlink.session_store import SessionAction, SessionMutation
from comlink.tool_registry import ToolRecord, ToolRegistry
from comlink.utils.error_handling import AsyncErrorContext, ClassifierError, DiscoveryError, timer

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_QUERY = "something fun"
DEFAULT_SEARCH_QUERY = "tools"

HELP_TEXT = """Available commands:

• install <tool> - Install a tool (e.g., "install giphy")
• uninstall <tool> - Remove a tool
• list - Show installed tools
• search <query> - Find available tools
• help - Show this help

Examples:
• "install giphy"
• "happy birthday with a gif"
• "what's the weather in San Francisco"
• "list installed tools\""""


class IntentResolver:
    """
    Classifies user text and executes the resulting intents.

    The resolver never mutates a user's installed set: a successful install or
    uninstall reports the change in ExecutionResult.session_effect and the
    caller applies it.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        scanner: DiscoveryScanner,
        classifier: Optional[IntentClassifier] = None,
        namespace: str = settings.namespace,
        builtin_media_tool: str = settings.builtin_media_tool,
        classifier_timeout_seconds: float = settings.classifier_timeout_seconds,
        match_threshold: float = settings.match_threshold,
    ):
        """
        Initialize the Intent Resolver.

        Args:
            registry: Registry tools are looked up in
            scanner: Scanner used to find tools on install and search
            classifier: Optional external classifier; pattern rules are used without one
            namespace: Namespace tool ids are qualified with
            builtin_media_tool: Name of the media tool that needs no install
            classifier_timeout_seconds: Bound on a single classifier call
            match_threshold: Score an installed tool must exceed to be selected
        """
        self.registry = registry
        self.scanner = scanner
        self.classifier = classifier
        self.namespace = namespace
        self.builtin_media_tool_id = f"{namespace}.{builtin_media_tool}"
        self.classifier_timeout_seconds = classifier_timeout_seconds
        self.rules = PatternRules(registry, namespace, self.builtin_media_tool_id, match_threshold)

        self._handlers: Dict[IntentType, Callable[[Any, Set[str]], Awaitable[ExecutionResult]]] = {
            IntentType.INSTALL: self._execute_install,
            IntentType.UNINSTALL: self._execute_uninstall,
            IntentType.EXECUTE: self._execute_tool,
            IntentType.SEARCH: self._execute_search,
            IntentType.LIST: self._execute_list,
            IntentType.HELP: self._execute_help,
        }

    @timer("intent_resolver")
    async def classify(self, text: Any, installed: Optional[Iterable[str]] = None) -> Intent:
        """
        Classify user text into an intent.

        Args:
            text: User message; anything but a non-blank string is an unknown intent
            installed: Ids of the tools the user has installed

        Returns:
            The classified intent
        """
        if not isinstance(text, str) or not text.strip():
            return UnknownIntent(
                confidence=0.0,
                original_text=text if isinstance(text, str) else "",
                reasoning="Empty or invalid message",
            )

        installed = set(installed or ())

        if self.classifier is not None:
            try:
                return await self._classify_with_model(text, installed)
            except ClassifierError as e:
                logger.warning(f"Falling back to pattern rules: {e}")

        return self.rules.classify(text, installed)

    async def execute(self, intent: Intent, installed: Optional[Iterable[str]] = None) -> ExecutionResult:
        """
        Execute an intent.

        Args:
            intent: Intent to execute
            installed: Ids of the tools the user has installed

        Returns:
            The execution result; failures are reported with success=False
        """
        installed = set(installed or ())
        handler = self._handlers.get(intent.type)
        if handler is None:
            return ExecutionResult(
                success=False,
                content="I'm not sure what you want to do. Try 'help' for available commands.",
            )

        try:
            return await handler(intent, installed)
        except Exception as e:
            logger.error(f"Error executing {intent.type.value} intent: {e}")
            return ExecutionResult(
                success=False,
                content=f"Failed to {intent.type.value}: {e}",
                error=str(e),
            )

    async def _classify_with_model(self, text: str, installed: Set[str]) -> Intent:
        async with AsyncErrorContext("intent_resolver", "Intent classification failed", ClassifierError):
            raw = await asyncio.wait_for(
                self.classifier.classify(text, installed),
                timeout=self.classifier_timeout_seconds,
            )

        if not isinstance(raw, dict):
            raise ClassifierError(
                f"Classifier returned {type(raw).__name__} instead of an object",
                component="intent_resolver",
            )

        try:
            verdict = ClassifierVerdict.model_validate(raw)
            intent = self._intent_from_verdict(text, verdict, installed)
        except PydanticValidationError as e:
            raise ClassifierError(
                f"Invalid classifier verdict: {e.error_count()} validation errors",
                component="intent_resolver",
                details={"verdict": raw},
            ) from e

        if intent is None:
            raise ClassifierError(
                f"Classifier verdict '{verdict.type.value}' is missing its tool",
                component="intent_resolver",
                details={"verdict": raw},
            )

        logger.debug(f"Classifier verdict: {intent.type.value} ({intent.confidence:.2f})")
        return intent

    def _intent_from_verdict(self, text: str, verdict: ClassifierVerdict,
                             installed: Set[str]) -> Optional[Intent]:
        """Map a validated verdict onto an intent variant; None when it cannot be used."""
        common = {
            "confidence": verdict.confidence,
            "original_text": text,
            "reasoning": verdict.reasoning or "Classified by external model",
            "source": IntentSource.CLASSIFIER,
        }
        parameters = dict(verdict.parameters)

        if verdict.type in (IntentType.INSTALL, IntentType.UNINSTALL):
            tool_name = parameters.get("tool_name") or parameters.get("toolName")
            if not isinstance(tool_name, str) or not tool_name.strip():
                return None
            tool_name = self._strip_namespace(tool_name.strip())
            intent_class = InstallIntent if verdict.type == IntentType.INSTALL else UninstallIntent
            return intent_class(
                tool_id=self.rules.qualify(tool_name),
                parameters=ToolNameParameters(tool_name=tool_name),
                **common,
            )

        if verdict.type == IntentType.EXECUTE:
            tool_id = parameters.pop("tool_id", None)
            alias = parameters.pop("toolId", None)
            tool_id = tool_id or alias
            if isinstance(tool_id, str) and tool_id.strip():
                tool_id = self.rules.qualify(tool_id.strip())
            else:
                tool, _ = self.rules.select_tool(text, installed)
                if tool is not None:
                    tool_id = tool.id
                elif has_media_keyword(text.lower()):
                    tool_id = self.builtin_media_tool_id
                else:
                    return None
            return ExecuteIntent(tool_id=tool_id, parameters=ExecuteParameters(**parameters), **common)

        if verdict.type == IntentType.SEARCH:
            query = parameters.get("query")
            return SearchIntent(
                parameters=SearchParameters(query=query if isinstance(query, str) else ""),
                **common,
            )

        intent_class = {
            IntentType.LIST: ListIntent,
            IntentType.HELP: HelpIntent,
            IntentType.UNKNOWN: UnknownIntent,
        }[verdict.type]
        return intent_class(parameters=EmptyParameters(**parameters), **common)

    async def _execute_install(self, intent: InstallIntent, installed: Set[str]) -> ExecutionResult:
        tool_name = intent.parameters.tool_name.strip()
        if not tool_name:
            return ExecutionResult(
                success=False,
                content='No tool name specified. Usage: "install [tool_name]"',
            )

        try:
            tools = await self.scanner.search_for_tool(tool_name)
        except DiscoveryError as e:
            return ExecutionResult(
                success=False,
                content=f"Failed to install {tool_name}: {e}",
                error=str(e),
            )

        if not tools:
            return ExecutionResult(
                success=False,
                content=f'Couldn\'t find a tool called "{tool_name}". Try searching for available tools.',
            )

        tool = next((candidate for candidate in tools if candidate.id.lower() == intent.tool_id.lower()), tools[0])
        logger.info(f"Resolved install of '{tool_name}' to {tool.id}")

        return ExecutionResult(
            success=True,
            content=f"Installed {tool.name} ({tool.id}) - {tool.description}",
            session_effect=SessionMutation(action=SessionAction.ADD, tool_id=tool.id),
        )

    async def _execute_uninstall(self, intent: UninstallIntent, installed: Set[str]) -> ExecutionResult:
        tool_name = intent.parameters.tool_name
        tool_id = _find_installed(intent.tool_id, installed)
        if tool_id is None:
            return ExecutionResult(success=False, content=f"{tool_name} is not installed.")

        return ExecutionResult(
            success=True,
            content=f"Uninstalled {tool_name}",
            session_effect=SessionMutation(action=SessionAction.REMOVE, tool_id=tool_id),
        )

    async def _execute_tool(self, intent: ExecuteIntent, installed: Set[str]) -> ExecutionResult:
        if intent.tool_id.lower() == self.builtin_media_tool_id.lower():
            return self._execute_media_search(intent)

        tool_id = _find_installed(intent.tool_id, installed)
        if tool_id is None:
            return ExecutionResult(
                success=False,
                content=f'Tool not installed. Try "install {self._strip_namespace(intent.tool_id)}" first.',
            )

        tool = self.registry.get(tool_id)
        if tool is None:
            return ExecutionResult(success=False, content=f"Tool {intent.tool_id} not found in cache.")

        arguments = intent.parameters.arguments()
        return ExecutionResult(
            success=True,
            content=f"Executed {tool.name} with parameters: {json.dumps(arguments)}",
            invocation=ToolInvocation(tool_id=tool.id, arguments=arguments),
        )

    def _execute_media_search(self, intent: ExecuteIntent) -> ExecutionResult:
        query = intent.parameters.query or DEFAULT_MEDIA_QUERY
        url = f"https://giphy.com/search/{quote(query.replace(' ', '-'))}"

        return ExecutionResult(
            success=True,
            content=f'Searching for GIFs: "{query}"',
            media=[MediaItem(type="gif", url=url, title=f"{query} GIF",
                             description=f"A fun {query} GIF from Giphy")],
            invocation=ToolInvocation(tool_id=intent.tool_id, arguments={"query": query}),
        )

    async def _execute_search(self, intent: SearchIntent, installed: Set[str]) -> ExecutionResult:
        query = intent.parameters.query.strip() or DEFAULT_SEARCH_QUERY

        try:
            tools = await self.scanner.search_for_tool(query)
        except DiscoveryError as e:
            return ExecutionResult(success=False, content=f"Search failed: {e}", error=str(e))

        if not tools:
            return ExecutionResult(success=True, content=f'No tools found matching "{query}".')

        return ExecutionResult(
            success=True,
            content=f"Found {len(tools)} tools:\n{_format_tools(tools)}",
        )

    async def _execute_list(self, intent: ListIntent, installed: Set[str]) -> ExecutionResult:
        if not installed:
            return ExecutionResult(
                success=True,
                content='No tools installed. Try "install giphy" to get started!',
            )

        lines = []
        for tool_id in sorted(installed):
            tool = self.registry.get(tool_id)
            lines.append(f"• {tool.name} ({tool.id})" if tool is not None else f"• {tool_id}")

        return ExecutionResult(success=True, content="Installed tools:\n" + "\n".join(lines))

    async def _execute_help(self, intent: HelpIntent, installed: Set[str]) -> ExecutionResult:
        return ExecutionResult(success=True, content=HELP_TEXT)

    def _strip_namespace(self, tool_id: str) -> str:
        prefix = f"{self.namespace}."
        return tool_id[len(prefix):] if tool_id.startswith(prefix) else tool_id


def _format_tools(tools: List[ToolRecord]) -> str:
    return "\n".join(f"• {tool.name} ({tool.id}) - {tool.description}" for tool in tools)


def _find_installed(tool_id: str, installed: Set[str]) -> Optional[str]:
    """Installed id matching tool_id regardless of letter case, as stored in the session."""
    if tool_id in installed:
        return tool_id
    lower_id = tool_id.lower()
    return next((candidate for candidate in sorted(installed) if candidate.lower() == lower_id), None)
