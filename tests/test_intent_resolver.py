"""
Tests for the Intent Resolver component.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from comlink.intent_resolver import (
    ExecuteIntent, ExecuteParameters, HelpIntent, IntentResolver, IntentSource, IntentType,
    ListIntent, SearchIntent, SearchParameters, UnknownIntent, extract_parameters,
    tool_match_confidence,
)
from comlink.session_store import SessionAction
from comlink.tool_registry import ToolRecord
from comlink.utils.analytics import dashboard
from comlink.utils.error_handling import DiscoveryError


class FakeClassifier:
    """Classifier answering with a fixed verdict."""

    def __init__(self, verdict):
        self.verdict = verdict
        self.calls = []

    async def classify(self, text, installed=()):
        self.calls.append((text, set(installed)))
        if isinstance(self.verdict, Exception):
            raise self.verdict
        return self.verdict


class SlowClassifier:
    async def classify(self, text, installed=()):
        await asyncio.sleep(1)
        return {"type": "help", "confidence": 1.0}


def make_resolver(registry, scanner, classifier, timeout=1):
    return IntentResolver(registry, scanner, classifier=classifier, namespace="comlink",
                          builtin_media_tool="giphy", classifier_timeout_seconds=timeout)


# Pattern rules

@pytest.mark.asyncio
async def test_classify_install(resolver):
    """Test that "install giphy" is an install intent for comlink.giphy."""
    intent = await resolver.classify("install giphy")

    assert intent.type == IntentType.INSTALL
    assert intent.confidence == 0.9
    assert intent.tool_id == "comlink.giphy"
    assert intent.parameters.tool_name == "giphy"
    assert intent.source == IntentSource.FALLBACK
    assert intent.original_text == "install giphy"


@pytest.mark.asyncio
@pytest.mark.parametrize("text,tool_name", [
    ("add weather", "weather"),
    ("can you get maps for me", "maps"),
    ("Install Giphy", "Giphy"),
])
async def test_classify_install_variants(resolver, text, tool_name):
    intent = await resolver.classify(text)

    assert intent.type == IntentType.INSTALL
    assert intent.parameters.tool_name == tool_name
    assert intent.tool_id == f"comlink.{tool_name}"


@pytest.mark.asyncio
@pytest.mark.parametrize("text,tool_name", [
    ("uninstall weather", "weather"),
    ("please remove maps", "maps"),
    ("delete giphy now", "giphy"),
])
async def test_classify_uninstall(resolver, text, tool_name):
    intent = await resolver.classify(text)

    assert intent.type == IntentType.UNINSTALL
    assert intent.confidence == 0.9
    assert intent.tool_id == f"comlink.{tool_name}"
    assert intent.parameters.tool_name == tool_name


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["list", "list installed tools", "what's installed?", "show my tools"])
async def test_classify_list(resolver, text):
    intent = await resolver.classify(text)

    assert intent.type == IntentType.LIST
    assert intent.confidence == 0.8


@pytest.mark.asyncio
@pytest.mark.parametrize("text,query", [
    ("search for weather", "weather"),
    ("find maps", "maps"),
    ("discover new tools", "new tools"),
])
async def test_classify_search(resolver, text, query):
    intent = await resolver.classify(text)

    assert intent.type == IntentType.SEARCH
    assert intent.confidence == 0.8
    assert intent.parameters.query == query


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["help", "what can you do?", "show commands"])
async def test_classify_help(resolver, text):
    intent = await resolver.classify(text)

    assert intent.type == IntentType.HELP
    assert intent.confidence == 0.9


@pytest.mark.asyncio
async def test_classify_media_without_installed_tools(resolver):
    """Test that a gif request with nothing installed goes to the built-in media tool."""
    intent = await resolver.classify("show me a gif of cats", set())

    assert intent.type == IntentType.EXECUTE
    assert intent.confidence == 0.7
    assert intent.tool_id == "comlink.giphy"
    assert intent.parameters.query == "cats"


@pytest.mark.asyncio
async def test_classify_media_without_query(resolver):
    intent = await resolver.classify("happy birthday with a gif")

    assert intent.type == IntentType.EXECUTE
    assert intent.tool_id == "comlink.giphy"
    assert intent.parameters.query is None


@pytest.mark.asyncio
async def test_classify_installed_tool_match(resolver, registry, weather_tool):
    """Test that the best matching installed tool is selected with extracted parameters."""
    registry.upsert(weather_tool)

    intent = await resolver.classify("what's the weather in San Francisco", {"comlink.weather"})

    assert intent.type == IntentType.EXECUTE
    assert intent.tool_id == "comlink.weather"
    assert intent.confidence == pytest.approx(0.55)
    assert intent.parameters.arguments() == {"location": "San Francisco"}


@pytest.mark.asyncio
async def test_classify_weak_match_is_unknown(resolver, registry, weather_tool):
    registry.upsert(weather_tool)

    intent = await resolver.classify("tell me about data", {"comlink.weather"})

    assert intent.type == IntentType.UNKNOWN
    assert intent.confidence == 0.0


@pytest.mark.asyncio
async def test_classify_ignores_uncached_installed_tools(resolver):
    intent = await resolver.classify("what's the weather in Paris", {"comlink.weather"})

    assert intent.type == IntentType.UNKNOWN


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", None, 42])
async def test_classify_invalid_text(resolver, text):
    intent = await resolver.classify(text)

    assert intent.type == IntentType.UNKNOWN
    assert intent.confidence == 0.0


@pytest.mark.asyncio
async def test_classify_unrecognised_text(resolver):
    intent = await resolver.classify("the quick brown fox")

    assert isinstance(intent, UnknownIntent)
    assert intent.confidence == 0.0


def test_tool_match_confidence(giphy_tool, weather_tool):
    assert tool_match_confidence("show me a gif of cats", giphy_tool) == pytest.approx(0.1)
    # name, "search" capability, and the description words "search" and "giphy"
    assert tool_match_confidence("giphy search", giphy_tool) == pytest.approx(0.7)
    assert tool_match_confidence("nothing relevant", weather_tool) == 0.0


def test_tool_match_confidence_is_clamped():
    tool = ToolRecord(
        id="comlink.everything",
        name="everything",
        capabilities=["alpha", "beta", "gamma", "delta"],
        tags=["alpha", "beta"],
    )

    assert tool_match_confidence("everything alpha beta gamma delta", tool) == 1.0


def test_tool_match_confidence_threshold_is_exclusive():
    tool = ToolRecord(id="comlink.pair", name="pair", capabilities=["alpha"], tags=["beta"])

    # 0.2 + 0.1 must not exceed the 0.3 threshold through float error
    assert tool_match_confidence("alpha beta", tool) == 0.3


def test_extract_parameters(giphy_tool, weather_tool):
    assert extract_parameters('search "dancing cats" please', giphy_tool).query == "dancing cats"
    assert extract_parameters("a picture of sunsets", giphy_tool).query == "sunsets"
    assert extract_parameters("weather in Oslo", weather_tool).location == "Oslo"
    assert extract_parameters("nothing here", weather_tool).arguments() == {}


# Classifier path

@pytest.mark.asyncio
async def test_classifier_verdict_is_used(registry, scanner):
    classifier = FakeClassifier({"type": "search", "confidence": 0.95,
                                 "parameters": {"query": "maps"}, "reasoning": "wants maps"})
    resolver = make_resolver(registry, scanner, classifier)

    intent = await resolver.classify("anything with maps", {"comlink.giphy"})

    assert isinstance(intent, SearchIntent)
    assert intent.confidence == 0.95
    assert intent.parameters.query == "maps"
    assert intent.source == IntentSource.CLASSIFIER
    assert intent.reasoning == "wants maps"
    assert classifier.calls == [("anything with maps", {"comlink.giphy"})]


@pytest.mark.asyncio
async def test_classifier_install_verdict_is_qualified(registry, scanner):
    classifier = FakeClassifier({"type": "install", "confidence": 0.8,
                                 "parameters": {"tool_name": "comlink.weather"}})
    resolver = make_resolver(registry, scanner, classifier)

    intent = await resolver.classify("I'd like the forecast tool")

    assert intent.type == IntentType.INSTALL
    assert intent.tool_id == "comlink.weather"
    assert intent.parameters.tool_name == "weather"


@pytest.mark.asyncio
async def test_classifier_confidence_is_clamped(registry, scanner):
    resolver = make_resolver(registry, scanner, FakeClassifier({"type": "help", "confidence": 1.7}))

    intent = await resolver.classify("hmm")

    assert isinstance(intent, HelpIntent)
    assert intent.confidence == 1.0


@pytest.mark.asyncio
async def test_classifier_execute_verdict_selects_installed_tool(registry, scanner, weather_tool):
    registry.upsert(weather_tool)
    classifier = FakeClassifier({"type": "execute", "confidence": 0.9,
                                 "parameters": {"location": "Lisbon"}})
    resolver = make_resolver(registry, scanner, classifier)

    intent = await resolver.classify("weather for Lisbon", {"comlink.weather"})

    assert isinstance(intent, ExecuteIntent)
    assert intent.tool_id == "comlink.weather"
    assert intent.parameters.arguments() == {"location": "Lisbon"}
    assert intent.source == IntentSource.CLASSIFIER


@pytest.mark.asyncio
@pytest.mark.parametrize("verdict", [
    RuntimeError("service unavailable"),
    "not a dict",
    ["help"],
    {"type": "dance", "confidence": 0.9},
    {"confidence": 0.9},
    {"type": "install", "confidence": 0.9, "parameters": {}},
    {"type": "install", "confidence": 0.9, "parameters": {"tool_name": "   "}},
    {"type": "execute", "confidence": 0.9, "parameters": {"query": ["not", "a", "string"], "tool_id": "giphy"}},
])
async def test_classifier_failures_fall_back(registry, scanner, verdict):
    """Test that any classifier failure yields the pattern-rule intent."""
    resolver = make_resolver(registry, scanner, FakeClassifier(verdict))

    intent = await resolver.classify("install giphy")

    assert intent.type == IntentType.INSTALL
    assert intent.confidence == 0.9
    assert intent.tool_id == "comlink.giphy"
    assert intent.source == IntentSource.FALLBACK


@pytest.mark.asyncio
async def test_classifier_execute_without_tool_falls_back(registry, scanner):
    classifier = FakeClassifier({"type": "execute", "confidence": 0.9, "parameters": {}})
    resolver = make_resolver(registry, scanner, classifier)

    intent = await resolver.classify("do the thing")

    assert intent.type == IntentType.UNKNOWN
    assert intent.source == IntentSource.FALLBACK


@pytest.mark.asyncio
async def test_classifier_timeout_falls_back(registry, scanner):
    resolver = make_resolver(registry, scanner, SlowClassifier(), timeout=0.05)

    intent = await resolver.classify("show me a gif of dogs")

    assert intent.type == IntentType.EXECUTE
    assert intent.parameters.query == "dogs"
    assert intent.source == IntentSource.FALLBACK


@pytest.mark.asyncio
async def test_classifier_failure_is_tracked(registry, scanner):
    resolver = make_resolver(registry, scanner, FakeClassifier(RuntimeError("boom")))

    await resolver.classify("help")

    assert dashboard.get_component_metrics("intent_resolver").errors == 1


# Execution

@pytest.mark.asyncio
async def test_execute_install(resolver):
    """Test that install succeeds and reports the session change without applying it."""
    installed = set()
    intent = await resolver.classify("install giphy")

    result = await resolver.execute(intent, installed)

    assert result.success is True
    assert result.content == "Installed giphy (comlink.giphy) - Search and attach GIFs from Giphy"
    assert result.session_effect.action == SessionAction.ADD
    assert result.session_effect.tool_id == "comlink.giphy"
    assert installed == set()


@pytest.mark.asyncio
async def test_execute_install_unknown_tool(resolver):
    intent = await resolver.classify("install ghost")

    result = await resolver.execute(intent)

    assert result.success is False
    assert result.content == 'Couldn\'t find a tool called "ghost". Try searching for available tools.'
    assert result.session_effect is None


@pytest.mark.asyncio
async def test_execute_install_discovery_failure(resolver, scanner):
    scanner.search_for_tool = AsyncMock(side_effect=DiscoveryError("feed down", component="discovery_scanner"))
    intent = await resolver.classify("install giphy")

    result = await resolver.execute(intent)

    assert result.success is False
    assert result.content == "Failed to install giphy: feed down"
    assert result.error == "feed down"


@pytest.mark.asyncio
async def test_execute_uninstall(resolver):
    intent = await resolver.classify("uninstall giphy")

    result = await resolver.execute(intent, {"comlink.giphy"})

    assert result.success is True
    assert result.content == "Uninstalled giphy"
    assert result.session_effect.action == SessionAction.REMOVE
    assert result.session_effect.tool_id == "comlink.giphy"


@pytest.mark.asyncio
async def test_execute_uninstall_not_installed(resolver):
    intent = await resolver.classify("uninstall weather")

    result = await resolver.execute(intent, set())

    assert result.success is False
    assert result.content == "weather is not installed."
    assert result.session_effect is None


@pytest.mark.asyncio
async def test_execute_tool_not_installed(resolver, registry, weather_tool):
    """Test that executing an uninstalled tool asks the user to install it first."""
    registry.upsert(weather_tool)
    intent = ExecuteIntent(confidence=0.6, tool_id="comlink.weather",
                           parameters=ExecuteParameters(location="Oslo"))

    result = await resolver.execute(intent, set())

    assert result.success is False
    assert result.content == 'Tool not installed. Try "install weather" first.'


@pytest.mark.asyncio
async def test_execute_tool_not_cached(resolver):
    intent = ExecuteIntent(confidence=0.6, tool_id="comlink.weather")

    result = await resolver.execute(intent, {"comlink.weather"})

    assert result.success is False
    assert result.content == "Tool comlink.weather not found in cache."


@pytest.mark.asyncio
async def test_execute_installed_tool(resolver, registry, weather_tool):
    registry.upsert(weather_tool)
    intent = await resolver.classify("what's the weather in San Francisco", {"comlink.weather"})

    result = await resolver.execute(intent, {"comlink.weather"})

    assert result.success is True
    assert result.invocation.tool_id == "comlink.weather"
    assert result.invocation.arguments == {"location": "San Francisco"}
    assert result.content == 'Executed weather with parameters: {"location": "San Francisco"}'


@pytest.mark.asyncio
async def test_execute_builtin_media_tool(resolver):
    """Test that the built-in media tool runs without being installed."""
    intent = await resolver.classify("show me a gif of cats")

    result = await resolver.execute(intent, set())

    assert result.success is True
    assert result.media[0].type == "gif"
    assert result.media[0].url == "https://giphy.com/search/cats"
    assert result.invocation.arguments == {"query": "cats"}


@pytest.mark.asyncio
async def test_execute_builtin_media_default_query(resolver):
    intent = ExecuteIntent(confidence=0.7, tool_id="comlink.giphy")

    result = await resolver.execute(intent)

    assert result.content == 'Searching for GIFs: "something fun"'
    assert result.media[0].url == "https://giphy.com/search/something-fun"


@pytest.mark.asyncio
async def test_execute_search(resolver):
    intent = await resolver.classify("search for weather")

    result = await resolver.execute(intent)

    assert result.success is True
    assert result.content == "Found 1 tools:\n• weather (comlink.weather) - Get weather information for a location"


@pytest.mark.asyncio
async def test_execute_search_without_results(resolver):
    result = await resolver.execute(SearchIntent(confidence=0.8, parameters=SearchParameters(query="teleport")))

    assert result.success is True
    assert result.content == 'No tools found matching "teleport".'


@pytest.mark.asyncio
async def test_execute_list(resolver, registry, giphy_tool):
    registry.upsert(giphy_tool)

    result = await resolver.execute(ListIntent(confidence=0.8), {"comlink.giphy", "comlink.gone"})

    assert result.success is True
    assert result.content == "Installed tools:\n• giphy (comlink.giphy)\n• comlink.gone"


@pytest.mark.asyncio
async def test_execute_list_empty(resolver):
    result = await resolver.execute(ListIntent(confidence=0.8), set())

    assert result.content == 'No tools installed. Try "install giphy" to get started!'


@pytest.mark.asyncio
async def test_execute_help(resolver):
    result = await resolver.execute(HelpIntent(confidence=0.9))

    assert result.success is True
    assert "install <tool>" in result.content


@pytest.mark.asyncio
async def test_execute_unknown(resolver):
    result = await resolver.execute(UnknownIntent(confidence=0.0))

    assert result.success is False
    assert result.content == "I'm not sure what you want to do. Try 'help' for available commands."


@pytest.mark.asyncio
async def test_execute_handler_error_becomes_result(resolver, scanner):
    scanner.search_for_tool = AsyncMock(side_effect=RuntimeError("boom"))

    result = await resolver.execute(SearchIntent(confidence=0.8, parameters=SearchParameters(query="x")))

    assert result.success is False
    assert result.error == "boom"
    assert result.content == "Failed to search: boom"
