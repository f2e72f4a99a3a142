"""
LedgerContext: the collaborators a service needs beyond its database session.

One context is built per application and injected into every service, so
tests and alternative deployments can swap the event sink, provider or runner
without touching module state.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog

from ..config import Settings
from ..integrations.events import EventSink, NullEventSink, build_event_sink
from ..integrations.providers import AiProvider, NullProvider, build_provider
from .detached import DetachedRunner, InlineDetachedRunner, ThreadPoolDetachedRunner

logger = structlog.get_logger()


@dataclass
class LedgerContext:
    events: EventSink = field(default_factory=NullEventSink)
    provider: AiProvider = field(default_factory=NullProvider)
    runner: DetachedRunner = field(default_factory=InlineDetachedRunner)

    @classmethod
    def null(cls) -> "LedgerContext":
        """Context that drops events, has no AI and runs side effects inline."""
        return cls()

    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        """Publish an event as a detached task."""
        self._submit(f"emit:{topic}", self.events.publish, topic, payload)

    def remember(
        self,
        scope_id: str,
        title: str,
        content: str,
        bucket_id: Optional[str] = None,
    ) -> None:
        """Mirror a record into long-term memory as a detached task."""
        self._submit(
            "store_memory",
            self.provider.store_memory,
            scope_id,
            title,
            content,
            bucket_id,
        )

    def _submit(self, name: str, fn, *args) -> None:
        try:
            self.runner.submit(name, fn, *args)
        except RuntimeError as e:
            # Runner already shut down
            logger.warning("detached_task_dropped", task=name, error=str(e))

    def close(self) -> None:
        self.runner.shutdown(wait=True)
        self.events.close()
        self.provider.close()


def build_context(settings: Settings) -> LedgerContext:
    """Assemble the configured event sink, provider and thread-pool runner."""
    return LedgerContext(
        events=build_event_sink(settings),
        provider=build_provider(settings),
        runner=ThreadPoolDetachedRunner(max_workers=settings.side_effect_workers),
    )
