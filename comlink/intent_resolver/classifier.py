"""
External intent classifiers.

A classifier turns user text into a raw verdict dictionary of the form
{"type", "confidence", "parameters", "reasoning"}. The resolver validates the
verdict and falls back to pattern rules whenever it cannot be used.
"""

import logging
from typing import Any, Dict, Iterable, Protocol, runtime_checkable

from comlink.config import settings
from comlink.intent_resolver.models import IntentType
from comlink.utils.error_handling import ClassifierError
from comlink.utils.openai_client import get_json_completion

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "You are an AI assistant that helps users interact with tools through natural language. "
    "Analyze the user message and determine their intent. Always answer with a JSON object."
)


@runtime_checkable
class IntentClassifier(Protocol):
    """Anything that can produce a raw intent verdict for a message."""

    async def classify(self, text: str, installed: Iterable[str] = ()) -> Dict[str, Any]:
        ...


class OpenAIIntentClassifier:
    """
    Intent classifier backed by an OpenAI chat model in JSON mode.
    """

    def __init__(self, namespace: str = settings.namespace, model: str = settings.openai_model,
                 temperature: float = settings.openai_temperature,
                 max_tokens: int = settings.openai_max_tokens):
        self.namespace = namespace
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def classify(self, text: str, installed: Iterable[str] = ()) -> Dict[str, Any]:
        """
        Ask the model for a verdict.

        Args:
            text: User message
            installed: Ids of the tools the user has installed

        Returns:
            The raw verdict dictionary

        Raises:
            ClassifierError: If the model answers with something other than a JSON object
        """
        prompt = self.build_prompt(text, installed)
        logger.debug(f"Classifying message with {self.model}: {text}")

        verdict = await get_json_completion(
            prompt=prompt,
            system_message=SYSTEM_MESSAGE,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            model=self.model,
        )

        if not isinstance(verdict, dict):
            raise ClassifierError(
                f"Classifier returned {type(verdict).__name__} instead of an object",
                component="intent_resolver",
            )

        return verdict

    def build_prompt(self, text: str, installed: Iterable[str] = ()) -> str:
        intent_types = "\n".join(f"- {intent_type.value}" for intent_type in IntentType)
        installed_list = "\n".join(f"- {tool_id}" for tool_id in sorted(installed)) or "- (none)"

        return f"""Analyze this user message and determine their intent:

Message: "{text}"

Available intent types:
{intent_types}

Installed tools:
{installed_list}

Parameters by intent type:
- install / uninstall: {{"tool_name": "<name without the {self.namespace}. prefix>"}}
- execute: {{"tool_id": "<one of the installed tools>", plus any call arguments such as "query" or "location"}}
- search: {{"query": "<what to look for>"}}
- list / help / unknown: {{}}

Respond in JSON format:
{{
  "type": "intent_type",
  "confidence": 0.0-1.0,
  "reasoning": "brief explanation",
  "parameters": {{}}
}}"""
