"""
Outbound collaborators: the event sink and the AI / memory provider.
"""

from .events import BridgeEventSink, EventSink, NullEventSink, Topics, build_event_sink
from .providers import (
    AiProvider,
    BrainProvider,
    Completion,
    MemoryContext,
    NullProvider,
    ProviderError,
    StandaloneProvider,
    build_provider,
)

__all__ = [
    "AiProvider",
    "BrainProvider",
    "BridgeEventSink",
    "Completion",
    "EventSink",
    "MemoryContext",
    "NullEventSink",
    "NullProvider",
    "ProviderError",
    "StandaloneProvider",
    "Topics",
    "build_event_sink",
    "build_provider",
]
