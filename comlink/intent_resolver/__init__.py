"""
Intent Resolver component.

Classify free text into typed intents and execute them against the tool
registry.
"""

from comlink.intent_resolver.resolver import IntentResolver
from comlink.intent_resolver.classifier import IntentClassifier, OpenAIIntentClassifier
from comlink.intent_resolver.rules import PatternRules, extract_parameters, tool_match_confidence
from comlink.intent_resolver.models import (
    ClassifierVerdict,
    ExecuteIntent,
    ExecuteParameters,
    ExecutionResult,
    HelpIntent,
    InstallIntent,
    Intent,
    IntentSource,
    IntentType,
    ListIntent,
    MediaItem,
    SearchIntent,
    SearchParameters,
    ToolInvocation,
    ToolNameParameters,
    UninstallIntent,
    UnknownIntent,
)

__all__ = [
    "IntentResolver",
    "IntentClassifier",
    "OpenAIIntentClassifier",
    "PatternRules",
    "extract_parameters",
    "tool_match_confidence",
    "ClassifierVerdict",
    "ExecuteIntent",
    "ExecuteParameters",
    "ExecutionResult",
    "HelpIntent",
    "InstallIntent",
    "Intent",
    "IntentSource",
    "IntentType",
    "ListIntent",
    "MediaItem",
    "SearchIntent",
    "SearchParameters",
    "ToolInvocation",
    "ToolNameParameters",
    "UninstallIntent",
    "UnknownIntent",
]
