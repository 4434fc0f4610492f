"""
Usage analytics for Comlink.

This module provides in-memory tracking of intents, scans, method timings and
errors so the CLI and callers can inspect how the engine is being used.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class UsageEvent(BaseModel):
    """
    Represents a single usage event in the system.
    """
    event_type: str  # e.g., "intent", "scan", "method_timing", "error"
    timestamp: datetime = Field(default_factory=datetime.now)
    user_id: Optional[str] = None
    component: str
    duration_ms: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ComponentMetrics(BaseModel):
    """
    Metrics for a specific component.
    """
    component: str
    calls: int = 0
    errors: int = 0
    avg_duration_ms: float = 0
    last_duration_ms: float = 0
    last_called: Optional[datetime] = None


class UsageMetrics(BaseModel):
    """
    Overall usage metrics for the system.
    """
    total_intents: int = 0
    total_scans: int = 0
    total_errors: int = 0
    fallback_classifications: int = 0
    intents_by_type: Dict[str, int] = Field(default_factory=dict)
    components: Dict[str, ComponentMetrics] = Field(default_factory=dict)
    session_start: datetime = Field(default_factory=datetime.now)


class AnalyticsDashboard:
    """
    Tracks usage events and keeps running metrics.
    """

    def __init__(self, max_recent_events: int = 100):
        self.metrics = UsageMetrics()
        self.recent_events: List[UsageEvent] = []
        self.max_recent_events = max_recent_events
        self.lock = threading.RLock()

    def track_event(self, event: UsageEvent) -> None:
        """
        Track a usage event.

        Args:
            event: The event to track
        """
        with self.lock:
            self.recent_events.append(event)
            if len(self.recent_events) > self.max_recent_events:
                self.recent_events.pop(0)

            self._update_metrics(event)

    def get_metrics(self) -> UsageMetrics:
        """Get current usage metrics."""
        with self.lock:
            return self.metrics

    def get_recent_events(self, limit: int = 10) -> List[UsageEvent]:
        """Get the most recent events, oldest first."""
        if limit <= 0:
            return []
        with self.lock:
            return self.recent_events[-limit:]

    def get_component_metrics(self, component: str) -> Optional[ComponentMetrics]:
        """Get metrics for a specific component, or None if it was never tracked."""
        with self.lock:
            return self.metrics.components.get(component)

    def reset(self) -> None:
        """Drop all events and metrics."""
        with self.lock:
            self.metrics = UsageMetrics()
            self.recent_events.clear()

    def _update_metrics(self, event: UsageEvent) -> None:
        """Update metrics based on an event."""
        if event.event_type == "intent":
            self.metrics.total_intents += 1
            intent_type = event.metadata.get("intent_type", "unknown")
            self.metrics.intents_by_type[intent_type] = self.metrics.intents_by_type.get(intent_type, 0) + 1
            if event.metadata.get("source") == "fallback":
                self.metrics.fallback_classifications += 1
        elif event.event_type == "scan":
            self.metrics.total_scans += 1
        elif event.event_type == "error":
            self.metrics.total_errors += 1

        if event.component not in self.metrics.components:
            self.metrics.components[event.component] = ComponentMetrics(component=event.component)

        component_metrics = self.metrics.components[event.component]
        component_metrics.calls += 1
        component_metrics.last_called = event.timestamp

        if event.event_type == "error":
            component_metrics.errors += 1

        if event.duration_ms:
            total_duration = component_metrics.avg_duration_ms * (component_metrics.calls - 1)
            component_metrics.avg_duration_ms = (total_duration + event.duration_ms) / component_metrics.calls
            component_metrics.last_duration_ms = event.duration_ms


# Create a dashboard instance
dashboard = AnalyticsDashboard()


def track_intent(intent_type: str, confidence: float, source: str,
                 user_id: Optional[str] = None, duration_ms: Optional[float] = None,
                 metadata: Optional[Dict[str, Any]] = None) -> None:
    """
    Track a classified intent.

    Args:
        intent_type: Type of the classified intent
        confidence: Confidence of the classification
        source: Which path produced the intent ("classifier" or "fallback")
        user_id: Optional user ID
        duration_ms: Resolution duration in milliseconds
        metadata: Additional metadata
    """
    if metadata is None:
        metadata = {}

    metadata["intent_type"] = intent_type
    metadata["confidence"] = confidence
    metadata["source"] = source

    dashboard.track_event(UsageEvent(
        event_type="intent",
        user_id=user_id,
        component="intent_resolver",
        duration_ms=duration_ms,
        metadata=metadata
    ))


def track_scan(tools_found: int, new_tools: int, errors: int,
               duration_ms: Optional[float] = None) -> None:
    """Track a completed discovery scan."""
    dashboard.track_event(UsageEvent(
        event_type="scan",
        component="discovery_scanner",
        duration_ms=duration_ms,
        metadata={"tools_found": tools_found, "new_tools": new_tools, "errors": errors}
    ))


def track_method_timing(component: str, method_name: str, duration_ms: float,
                        metadata: Optional[Dict[str, Any]] = None) -> None:
    """
    Track method execution timing.

    Args:
        component: Component name
        method_name: Method name
        duration_ms: Duration in milliseconds
        metadata: Additional metadata
    """
    if metadata is None:
        metadata = {}

    metadata["method"] = method_name

    dashboard.track_event(UsageEvent(
        event_type="method_timing",
        component=component,
        duration_ms=duration_ms,
        metadata=metadata
    ))


def track_error(component: str, error_type: str, error_message: str,
                user_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
    """
    Track an error event.

    Args:
        component: Component where the error occurred
        error_type: Type of error
        error_message: Error message
        user_id: Optional user ID
        metadata: Additional metadata
    """
    if metadata is None:
        metadata = {}

    metadata["error_type"] = error_type
    metadata["error_message"] = error_message

    dashboard.track_event(UsageEvent(
        event_type="error",
        user_id=user_id,
        component=component,
        metadata=metadata
    ))
