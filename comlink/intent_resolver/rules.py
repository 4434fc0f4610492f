"""
Deterministic pattern rules used when no classifier is available or it fails.

Rules are tried in a fixed order: install, uninstall, list, search, help,
best matching installed tool, unknown.
"""

import re
from typing import Iterable, Optional, Tuple

from comlink.tool_registry import ToolRecord, ToolRegistry
from comlink.intent_resolver.models import (
    ExecuteIntent, ExecuteParameters, HelpIntent, InstallIntent, Intent, IntentSource,
    ListIntent, SearchIntent, SearchParameters, ToolNameParameters, UninstallIntent,
    UnknownIntent,
)

INSTALL_KEYWORDS = ("install", "add", "get")
UNINSTALL_KEYWORDS = ("uninstall", "remove", "delete")
MEDIA_KEYWORDS = ("gif", "giphy")

INSTALL_CONFIDENCE = 0.9
UNINSTALL_CONFIDENCE = 0.9
HELP_CONFIDENCE = 0.9
LIST_CONFIDENCE = 0.8
SEARCH_CONFIDENCE = 0.8
MEDIA_FALLBACK_CONFIDENCE = 0.7

_ADD_OR_GET = re.compile(r"\b(?:add|get)\s")
_REMOVE_OR_DELETE = re.compile(r"\b(?:remove|delete)\s")
_SEARCH_WORDS = re.compile(r"(?:search|find|discover)\s+(?:for\s+)?(.+)", re.IGNORECASE)

_QUOTED = re.compile(r'"([^"]+)"')
_SEARCH_QUERY = re.compile(r"(?:search|find|get)\s+(.+?)(?:\s+with|\s+from|$)", re.IGNORECASE)
_LOCATION = re.compile(r"\b(?:in|at|to|from)\s+([A-Za-z\s,]+?)(?:\s+with|\s+from|\s+to|$)", re.IGNORECASE)
_MEDIA_QUERY = re.compile(r"(?:gif|giphy|image|picture|photo)\s+(?:of\s+)?(.+?)(?:\s+with|\s+from|$)", re.IGNORECASE)


def is_install_phrase(lower_message: str) -> bool:
    return lower_message.startswith("install ") or bool(_ADD_OR_GET.search(lower_message))


def is_uninstall_phrase(lower_message: str) -> bool:
    return lower_message.startswith("uninstall ") or bool(_REMOVE_OR_DELETE.search(lower_message))


def is_list_phrase(lower_message: str) -> bool:
    if "list" in lower_message:
        return True
    if "installed" in lower_message and ("what" in lower_message or "show" in lower_message):
        return True
    return "show" in lower_message and "tools" in lower_message


def is_search_phrase(lower_message: str) -> bool:
    return any(word in lower_message for word in ("search", "find", "discover"))


def is_help_phrase(lower_message: str) -> bool:
    return any(word in lower_message for word in ("help", "?", "commands"))


def has_media_keyword(lower_message: str) -> bool:
    return any(keyword in lower_message for keyword in MEDIA_KEYWORDS)


def extract_tool_name(message: str, keywords: Iterable[str]) -> str:
    """
    Tool name following the first install/uninstall keyword.

    The first run of word characters after the keyword wins; failing that,
    the remaining text after the keyword, trimmed.
    """
    keywords = tuple(keywords)
    pattern = re.compile(r"\b(?:%s)\s+([a-zA-Z0-9_-]+)" % "|".join(keywords), re.IGNORECASE)
    match = pattern.search(message)
    if match:
        return match.group(1)

    lower_message = message.lower()
    for keyword in keywords:
        index = lower_message.find(keyword)
        if index >= 0:
            return message[index + len(keyword):].strip()
    return message.strip()


def extract_search_query(message: str) -> str:
    match = _SEARCH_WORDS.search(message)
    return match.group(1).strip() if match else ""


def extract_media_query(message: str) -> Optional[str]:
    match = _MEDIA_QUERY.search(message)
    return match.group(1).strip() if match else None


def tool_match_confidence(message: str, tool: ToolRecord) -> float:
    """
    Score how well a message addresses a tool.

    0.4 if the tool's name appears, 0.2 per capability, 0.1 per tag and 0.05
    per description word longer than three characters; capped at 1.0.
    """
    lower_message = message.lower()
    confidence = 0.0

    if tool.name and tool.name.lower() in lower_message:
        confidence += 0.4

    for capability in tool.capabilities or []:
        if capability and capability.lower() in lower_message:
            confidence += 0.2

    for tag in tool.tags or []:
        if tag and tag.lower() in lower_message:
            confidence += 0.1

    if tool.description:
        for word in tool.description.lower().split():
            if len(word) > 3 and word in lower_message:
                confidence += 0.05

    # rounding keeps 0.1 + 0.2 from creeping over a 0.3 threshold
    return min(round(confidence, 4), 1.0)


def extract_parameters(message: str, tool: ToolRecord) -> ExecuteParameters:
    """
    Best-effort extraction of call arguments, driven by the tool's capabilities and tags.

    Parameters that cannot be found are left unset.
    """
    capabilities = tool.capabilities or []
    tags = tool.tags or []
    parameters = ExecuteParameters()

    if "search" in capabilities:
        match = _QUOTED.search(message) or _SEARCH_QUERY.search(message)
        if match:
            parameters.query = match.group(1).strip()

    if "location" in capabilities or "weather" in tags or "maps" in tags:
        match = _LOCATION.search(message)
        if match:
            parameters.location = match.group(1).strip()

    if "media" in capabilities or "gif" in tags:
        query = extract_media_query(message)
        if query:
            parameters.query = query

    return parameters


class PatternRules:
    """
    Pattern-matching intent classification.
    """

    def __init__(self, registry: ToolRegistry, namespace: str, builtin_media_tool_id: str,
                 match_threshold: float = 0.3):
        self.registry = registry
        self.namespace = namespace
        self.builtin_media_tool_id = builtin_media_tool_id
        self.match_threshold = match_threshold

    def classify(self, message: str, installed: Iterable[str] = ()) -> Intent:
        """
        Classify a message with the fixed rule order.

        Args:
            message: User text
            installed: Ids of the tools the user has installed

        Returns:
            The first intent whose rule fires, or an unknown intent
        """
        lower_message = message.lower().strip()

        if is_install_phrase(lower_message):
            tool_name = extract_tool_name(message, INSTALL_KEYWORDS)
            return InstallIntent(
                confidence=INSTALL_CONFIDENCE,
                tool_id=self.qualify(tool_name),
                parameters=ToolNameParameters(tool_name=tool_name),
                original_text=message,
                reasoning="Pattern matched: install phrase",
            )

        if is_uninstall_phrase(lower_message):
            tool_name = extract_tool_name(message, UNINSTALL_KEYWORDS)
            return UninstallIntent(
                confidence=UNINSTALL_CONFIDENCE,
                tool_id=self.qualify(tool_name),
                parameters=ToolNameParameters(tool_name=tool_name),
                original_text=message,
                reasoning="Pattern matched: uninstall phrase",
            )

        if is_list_phrase(lower_message):
            return ListIntent(confidence=LIST_CONFIDENCE, original_text=message,
                              reasoning="Pattern matched: list phrase")

        if is_search_phrase(lower_message):
            return SearchIntent(
                confidence=SEARCH_CONFIDENCE,
                parameters=SearchParameters(query=extract_search_query(message)),
                original_text=message,
                reasoning="Pattern matched: search phrase",
            )

        if is_help_phrase(lower_message):
            return HelpIntent(confidence=HELP_CONFIDENCE, original_text=message,
                              reasoning="Pattern matched: help phrase")

        execution = self.match_execution(message, installed)
        if execution is not None:
            return execution

        return UnknownIntent(confidence=0.0, original_text=message,
                             reasoning="No rule matched")

    def match_execution(self, message: str, installed: Iterable[str]) -> Optional[ExecuteIntent]:
        """
        Execute intent for the best matching installed tool, or the built-in media tool.

        Returns None when no installed tool clears the match threshold and the
        message has no media keyword.
        """
        tool, confidence = self.select_tool(message, installed)
        if tool is not None and confidence > self.match_threshold:
            return ExecuteIntent(
                confidence=confidence,
                tool_id=tool.id,
                parameters=extract_parameters(message, tool),
                original_text=message,
                reasoning=f"Matched installed tool {tool.id}",
                source=IntentSource.FALLBACK,
            )

        if has_media_keyword(message.lower()):
            return ExecuteIntent(
                confidence=MEDIA_FALLBACK_CONFIDENCE,
                tool_id=self.builtin_media_tool_id,
                parameters=ExecuteParameters(query=extract_media_query(message)),
                original_text=message,
                reasoning="Media keyword routed to the built-in media tool",
            )

        return None

    def select_tool(self, message: str, installed: Iterable[str]) -> Tuple[Optional[ToolRecord], float]:
        """Highest scoring installed tool; ties go to the first id in sorted order."""
        best_match: Optional[ToolRecord] = None
        best_confidence = 0.0

        for tool_id in sorted(installed):
            tool = self.registry.get(tool_id)
            if tool is None:
                continue

            confidence = tool_match_confidence(message, tool)
            if confidence > best_confidence:
                best_confidence = confidence
                best_match = tool

        return best_match, best_confidence

    def qualify(self, tool_name: str) -> str:
        """Namespace-qualify a bare tool name; already qualified ids pass through."""
        if tool_name.startswith(f"{self.namespace}."):
            return tool_name
        return f"{self.namespace}.{tool_name}"
