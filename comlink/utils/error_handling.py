"""
Error handling for Comlink.

This module provides the exception hierarchy shared by all components, a timing
decorator and an async context manager that wraps foreign exceptions.
"""

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Dict, Optional, Type

from comlink.utils.analytics import track_error, track_method_timing

logger = logging.getLogger(__name__)


class ComlinkError(Exception):
    """Base exception class for all Comlink errors."""
    def __init__(self, message: str, component: str = "unknown", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.component = component
        self.details = details or {}
        self.timestamp = time.time()

        # Track the error
        track_error(component, self.__class__.__name__, message, metadata=dict(self.details))


class ScanInProgressError(ComlinkError):
    """Raised when a discovery scan is requested while another one is running."""

    def __init__(self, message: str = "Scan already in progress", component: str = "discovery_scanner",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, component, details)


class DiscoveryError(ComlinkError):
    """Error when reading the discovery feed or verifying a tool."""
    pass


class ClassifierError(ComlinkError):
    """Error when the external intent classifier fails or answers nonsense."""
    pass


class ValidationError(ComlinkError):
    """Error when validating data or parameters."""
    pass


def timer(component: str, method_name: Optional[str] = None,
          track_analytics: bool = True) -> Callable:
    """
    Decorator to time function execution.

    Args:
        component: Component name for tracking
        method_name: Optional method name override
        track_analytics: Whether to track timing in analytics

    Returns:
        Decorated function
    """
    def decorator(func):
        def _record(start_time: float) -> None:
            duration_ms = (time.time() - start_time) * 1000
            func_name = method_name or func.__name__

            logger.debug(f"{component}.{func_name} executed in {duration_ms:.2f}ms")

            if track_analytics:
                track_method_timing(component, func_name, duration_ms)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                _record(start_time)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                _record(start_time)

        # Return the appropriate wrapper based on whether the function is async
        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


class AsyncErrorContext:
    """
    Async context manager that logs failures and re-raises them as Comlink errors.

    Example:
        async with AsyncErrorContext("discovery_scanner", "Live search failed", DiscoveryError):
            posts = await feed.search_posts(query, limit)
    """

    def __init__(self, component: str, message: str,
                 error_class: Type[ComlinkError] = ComlinkError):
        """
        Initialize the async error context.

        Args:
            component: Component name
            message: Error message prefix
            error_class: Comlink error class to raise
        """
        self.component = component
        self.message = message
        self.error_class = error_class

    async def __aenter__(self):
        """Enter the context."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit the context, wrapping any foreign error."""
        if exc_type is None:
            return False

        logger.error(f"Error in {self.component}: {self.message} - {exc_val}")

        # Comlink errors already tracked themselves, let them through as is
        if isinstance(exc_val, ComlinkError):
            return False

        if isinstance(exc_val, asyncio.TimeoutError):
            detail = "timed out"
        else:
            detail = str(exc_val) or exc_type.__name__

        raise self.error_class(
            message=f"{self.message}: {detail}",
            component=self.component,
            details={"original_error": exc_type.__name__}
        ) from exc_val
