"""
Configuration settings for Comlink.

This module provides a centralized configuration for the tool resolution engine.
"""

import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """
    Application settings.

    Load configuration from environment variables or .env file.
    """
    # Tool namespace used to qualify identifiers ("comlink.giphy")
    namespace: str = os.getenv("COMLINK_NAMESPACE", "comlink")
    builtin_media_tool: str = os.getenv("COMLINK_BUILTIN_MEDIA_TOOL", "giphy")

    # Registry freshness
    scan_interval_seconds: int = int(os.getenv("COMLINK_SCAN_INTERVAL_SECONDS", "3600"))

    # Discovery settings
    discovery_timeout_seconds: float = float(os.getenv("COMLINK_DISCOVERY_TIMEOUT_SECONDS", "10"))
    feed_scan_limit: int = int(os.getenv("COMLINK_FEED_SCAN_LIMIT", "100"))
    author_feed_limit: int = int(os.getenv("COMLINK_AUTHOR_FEED_LIMIT", "50"))
    live_search_limit: int = int(os.getenv("COMLINK_LIVE_SEARCH_LIMIT", "20"))
    known_accounts: str = os.getenv("COMLINK_KNOWN_ACCOUNTS", "")

    # Intent classification
    enable_ai_classifier: bool = os.getenv("COMLINK_ENABLE_AI_CLASSIFIER", "True").lower() == "true"
    classifier_timeout_seconds: float = float(os.getenv("COMLINK_CLASSIFIER_TIMEOUT_SECONDS", "8"))
    match_threshold: float = float(os.getenv("COMLINK_MATCH_THRESHOLD", "0.3"))

    # OpenAI API configuration
    openai_api_key: str = os.getenv("COMLINK_OPENAI_API_KEY", os.getenv("OPENAI_API_KEY", ""))
    openai_model: str = os.getenv("COMLINK_OPENAI_MODEL", "gpt-4o-mini")
    openai_max_tokens: int = int(os.getenv("COMLINK_OPENAI_MAX_TOKENS", "500"))
    openai_temperature: float = float(os.getenv("COMLINK_OPENAI_TEMPERATURE", "0.1"))
    max_retries: int = int(os.getenv("COMLINK_MAX_RETRIES", "2"))

    # Development mode
    debug: bool = os.getenv("COMLINK_DEBUG", "False").lower() == "true"

    # Logging settings
    log_level: str = os.getenv("COMLINK_LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("COMLINK_LOG_FILE", None)
    enable_file_logging: bool = os.getenv("COMLINK_ENABLE_FILE_LOGGING", "False").lower() == "true"

    model_config = SettingsConfigDict(
        env_prefix="COMLINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def known_account_list(self) -> List[str]:
        """Known publisher accounts, parsed from the comma separated setting."""
        return [account.strip() for account in self.known_accounts.split(",") if account.strip()]

    def validate_settings(self) -> Dict[str, str]:
        """
        Validate all settings and return any warnings or errors.

        Returns:
            Dictionary of validation messages
        """
        validation_messages = {}

        if self.enable_ai_classifier and not self.openai_api_key:
            validation_messages["classifier"] = (
                "AI classifier is enabled, but no OpenAI API key provided; "
                "pattern matching will be used"
            )

        if not self.namespace.strip("."):
            validation_messages["namespace"] = "Tool namespace must not be empty"

        if self.scan_interval_seconds <= 0:
            validation_messages["scan_interval"] = "Scan interval must be positive"

        if not 0.0 <= self.match_threshold <= 1.0:
            validation_messages["match_threshold"] = "Match threshold must be between 0 and 1"

        if self.classifier_timeout_seconds <= 0 or self.discovery_timeout_seconds <= 0:
            validation_messages["timeouts"] = "External call timeouts must be positive"

        return validation_messages

    def configure_logging(self) -> None:
        """Configure logging based on settings."""
        import logging

        # Set log level
        log_level = getattr(logging, self.log_level.upper(), logging.INFO)
        if self.debug:
            log_level = logging.DEBUG

        logging_config = {
            'level': log_level,
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S',
        }

        # Add file handler if enabled
        if self.enable_file_logging and self.log_file:
            logging_config['filename'] = self.log_file
            logging_config['filemode'] = 'a'

        logging.basicConfig(**logging_config)

        # Reduce noise from the HTTP stack used by the OpenAI client
        logging.getLogger("openai").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)


# Create a global settings instance
settings = Settings()

# Automatically configure logging
settings.configure_logging()


def print_settings(include_secrets: bool = False) -> str:
    """
    Render the current settings as text.

    Args:
        include_secrets: Whether to show secret values in clear text

    Returns:
        Formatted settings
    """
    lines = ["Current settings:"]
    for name, value in settings.model_dump().items():
        if not include_secrets and "key" in name and value:
            value = value[:4] + "..." if len(value) > 4 else "***"
        lines.append(f"  {name}: {value}")

    messages = settings.validate_settings()
    if messages:
        lines.append("Warnings:")
        for message in messages.values():
            lines.append(f"  - {message}")

    return "\n".join(lines)
