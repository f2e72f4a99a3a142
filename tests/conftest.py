"""Test configuration and fixtures."""

from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from intent_ledger.api import create_app
from intent_ledger.config import Settings
from intent_ledger.core.context import LedgerContext
from intent_ledger.core.detached import InlineDetachedRunner
from intent_ledger.db import audit_models, models  # noqa: F401
from intent_ledger.db.base import Base, get_db
from intent_ledger.integrations.events import EventSink
from intent_ledger.integrations.providers import (
    AiProvider,
    Completion,
    MemoryContext,
    ProviderError,
)

TENANT = "tenant-1"
USER = "user-1"


class RecordingEventSink(EventSink):
    """Keeps every published event in memory."""

    name = "recording"

    def __init__(self, fail: bool = False):
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.fail = fail

    def publish(
        self,
        topic: str,
        payload: Dict[str, Any],
        correlation_id: Optional[str] = None,
    ) -> None:
        if self.fail:
            raise RuntimeError("bridge unavailable")
        self.events.append((topic, payload))

    def topics(self) -> List[str]:
        return [topic for topic, _ in self.events]


class RecordingProvider(AiProvider):
    """Scripted provider that records prompts and stored memories."""

    name = "recording"

    def __init__(
        self,
        response: str = '{"extractions": []}',
        model: str = "test-model",
        context: str = "",
        fail_complete: bool = False,
        fail_store: bool = False,
    ):
        self.response = response
        self.model = model
        self.context = context
        self.fail_complete = fail_complete
        self.fail_store = fail_store
        self.prompts: List[Dict[str, Any]] = []
        self.context_queries: List[Tuple[str, str]] = []
        self.memories: List[Dict[str, Any]] = []

    def is_available(self) -> bool:
        return True

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        self.prompts.append(
            {"prompt": prompt, "system_prompt": system_prompt, "context": context}
        )
        if self.fail_complete:
            raise ProviderError("model offline")
        return Completion(content=self.response, provider=self.name, model=self.model)

    def get_context(
        self,
        query: str,
        scope_id: str,
        max_chars: int = 8000,
        max_memories: int = 10,
    ) -> MemoryContext:
        self.context_queries.append((query, scope_id))
        return MemoryContext(context=self.context)

    def store_memory(
        self,
        scope_id: str,
        title: str,
        content: str,
        bucket_id: Optional[str] = None,
    ) -> Optional[str]:
        if self.fail_store:
            raise RuntimeError("memory store down")
        self.memories.append({"scope_id": scope_id, "title": title, "content": content})
        return f"mem-{len(self.memories)}"


@pytest.fixture
def engine():
    """Fresh in-memory database shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def ctx(sink, provider) -> LedgerContext:
    return LedgerContext(events=sink, provider=provider, runner=InlineDetachedRunner())


@pytest.fixture
def settings() -> Settings:
    return Settings(
        dev_tenant_id=TENANT,
        dev_user_id=USER,
        log_level="WARNING",
        ai_provider_mode="none",
    )


@pytest.fixture
def client(db_session, ctx, settings):
    """API client bound to the test session and recording context."""
    app = create_app(settings=settings, context=ctx)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
