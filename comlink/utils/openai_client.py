"""
OpenAI client utilities.

This module provides the JSON completion helper used by the intent classifier.
"""

from typing import Dict, Optional
import json
import logging

from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from comlink.config import settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    """Return the shared OpenAI client, creating it on first use."""
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.openai_api_key)
    return _client


@retry(
    wait=wait_exponential(min=0.5, max=4),
    stop=stop_after_attempt(max(settings.max_retries, 1)),
    retry=retry_if_exception_type(Exception),
    reraise=True,
)
async def get_json_completion(
    prompt: str,
    system_message: str = "You are a helpful AI assistant.",
    temperature: float = settings.openai_temperature,
    max_tokens: int = settings.openai_max_tokens,
    model: str = settings.openai_model,
) -> Dict:
    """
    Get a JSON completion from the OpenAI API with retry logic.

    Args:
        prompt: The user prompt
        system_message: The system message
        temperature: Controls randomness (0-1)
        max_tokens: Maximum number of tokens to generate
        model: The OpenAI model to use

    Returns:
        The generated JSON as a Python dictionary
    """
    try:
        response = await get_client().chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": prompt}
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"}
        )

        content = response.choices[0].message.content
        if not content:
            raise ValueError("Empty response from OpenAI")
        return json.loads(content)
    except Exception as e:
        logger.error(f"Error calling OpenAI API for JSON completion: {e}")
        raise
