"""
Event sinks for ledger domain events.

Publishing is best effort: callers submit ``publish`` through a detached
runner, so a sink signals failure by raising and never retries.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog

from ..config import Settings

logger = structlog.get_logger()


class Topics:
    """Domain event topics, before the configured prefix is applied."""

    INTENT_CREATED = "intent.created"
    INTENT_TRANSITIONED = "intent.transitioned"
    DECISION_COMMITTED = "decision.committed"
    DECISION_SUPERSEDED = "decision.superseded"
    PROPOSAL_REVIEWED = "proposal.reviewed"
    ASSUMPTION_INVALIDATED = "assumption.invalidated"
    RISK_MITIGATED = "risk.mitigated"
    TASK_COMPLETED = "task.completed"


class EventSink(ABC):
    """Accepts ``(topic, payload)`` publishes."""

    name = "abstract"

    @abstractmethod
    def publish(
        self,
        topic: str,
        payload: Dict[str, Any],
        correlation_id: Optional[str] = None,
    ) -> None:
        """Publish one event. Raises on delivery failure."""

    def close(self) -> None:
        pass


class NullEventSink(EventSink):
    """Drops every event. Used when no bridge is configured."""

    name = "null"

    def publish(
        self,
        topic: str,
        payload: Dict[str, Any],
        correlation_id: Optional[str] = None,
    ) -> None:
        logger.debug("event_dropped", topic=topic)


class BridgeEventSink(EventSink):
    """
    Posts events to an event bridge at ``<base_url>/api/events``.
    """

    name = "bridge"

    def __init__(
        self,
        base_url: str,
        app_id: str,
        topic_prefix: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.app_id = app_id
        self.topic_prefix = topic_prefix
        self.client = client or httpx.Client(timeout=timeout)

    def publish(
        self,
        topic: str,
        payload: Dict[str, Any],
        correlation_id: Optional[str] = None,
    ) -> None:
        full_topic = f"{self.topic_prefix}{topic}"
        body: Dict[str, Any] = {"topic": full_topic, "payload": payload}
        if correlation_id:
            body["correlationId"] = correlation_id

        response = self.client.post(
            f"{self.base_url}/api/events",
            json=body,
            headers={"X-App-Id": self.app_id},
        )
        response.raise_for_status()
        logger.info("event_published", topic=full_topic)

    def close(self) -> None:
        self.client.close()


def build_event_sink(settings: Settings) -> EventSink:
    """Bridge sink when BRIDGE_URL is set, otherwise a null sink."""
    if not settings.bridge_url:
        return NullEventSink()
    return BridgeEventSink(
        base_url=settings.bridge_url,
        app_id=settings.bridge_app_id,
        topic_prefix=settings.event_topic_prefix,
        timeout=settings.http_timeout_seconds,
    )
