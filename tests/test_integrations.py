"""
Tests for the event bridge sink and the AI providers.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

import json

import httpx
import pytest

from intent_ledger.config import Settings
from intent_ledger.integrations.events import (
    BridgeEventSink,
    NullEventSink,
    build_event_sink,
)
from intent_ledger.integrations.providers import (
    BrainProvider,
    NullProvider,
    ProviderError,
    StandaloneProvider,
    build_provider,
)


def _client(handler, **kwargs) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), **kwargs)


class TestBridgeEventSink:
    def test_publish_posts_prefixed_topic(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202)

        sink = BridgeEventSink(
            "http://bridge.local/",
            app_id="intent-ledger",
            topic_prefix="pm.",
            client=_client(handler),
        )
        sink.publish("decision.committed", {"decision_id": "d1"}, correlation_id="c-1")

        request = requests[0]
        assert str(request.url) == "http://bridge.local/api/events"
        assert request.headers["X-App-Id"] == "intent-ledger"
        assert json.loads(request.content) == {
            "topic": "pm.decision.committed",
            "payload": {"decision_id": "d1"},
            "correlationId": "c-1",
        }

    def test_publish_raises_on_error_status(self):
        sink = BridgeEventSink(
            "http://bridge.local",
            app_id="intent-ledger",
            client=_client(lambda request: httpx.Response(500)),
        )
        with pytest.raises(httpx.HTTPStatusError):
            sink.publish("intent.created", {})

    def test_build_event_sink(self):
        assert isinstance(build_event_sink(Settings(bridge_url=None)), NullEventSink)
        sink = build_event_sink(Settings(bridge_url="http://bridge.local"))
        assert isinstance(sink, BridgeEventSink)
        assert sink.topic_prefix == "pm."
        sink.close()


class TestBrainProvider:
    def test_complete(self):
        def handler(request):
            assert request.url.path == "/ai/complete"
            body = json.loads(request.content)
            assert body["prompt"].startswith("Context:\nprior\n\n---\n\n")
            assert body["system_prompt"] == "be terse"
            return httpx.Response(200, json={"content": "{}", "model": "brain-1"})

        provider = BrainProvider("http://brain.local", client=_client(handler))
        completion = provider.complete("hi", system_prompt="be terse", context="prior")

        assert completion.content == "{}"
        assert completion.provider == "brain"
        assert completion.model == "brain-1"

    def test_complete_failure(self):
        provider = BrainProvider(
            "http://brain.local", client=_client(lambda request: httpx.Response(503))
        )
        with pytest.raises(ProviderError):
            provider.complete("hi")

    def test_complete_html_body(self):
        provider = BrainProvider(
            "http://brain.local",
            client=_client(lambda request: httpx.Response(200, text="<html>gateway</html>")),
        )
        with pytest.raises(ProviderError, match="non-JSON"):
            provider.complete("hi")

    def test_complete_non_object_body(self):
        provider = BrainProvider(
            "http://brain.local",
            client=_client(lambda request: httpx.Response(200, json=["content"])),
        )
        with pytest.raises(ProviderError, match="expected an object"):
            provider.complete("hi")

    def test_get_context(self):
        def handler(request):
            assert request.url.path == "/api/v1/context"
            assert json.loads(request.content)["scope_id"] == "intent-1"
            return httpx.Response(
                200,
                json={"data": {"context": "notes", "memory_ids": ["m1"], "memory_count": 1}},
            )

        provider = BrainProvider("http://brain.local", client=_client(handler))
        memory = provider.get_context("query", scope_id="intent-1")

        assert memory.context == "notes"
        assert memory.memory_ids == ["m1"]
        assert memory.memory_count == 1

    def test_get_context_failure_is_empty(self):
        provider = BrainProvider(
            "http://brain.local", client=_client(lambda request: httpx.Response(500))
        )
        assert provider.get_context("query", scope_id="intent-1").context == ""

    def test_get_context_html_body_is_empty(self):
        provider = BrainProvider(
            "http://brain.local",
            client=_client(lambda request: httpx.Response(200, text="<html>gateway</html>")),
        )
        memory = provider.get_context("query", scope_id="intent-1")

        assert memory.context == ""
        assert memory.memory_ids == []

    def test_store_memory(self):
        def handler(request):
            assert request.url.path == "/api/v1/memories"
            return httpx.Response(201, json={"data": {"id": "mem-7"}})

        provider = BrainProvider("http://brain.local", client=_client(handler))
        assert provider.store_memory("intent-1", "Decision: x", "body") == "mem-7"

    def test_store_memory_failure_raises(self):
        provider = BrainProvider(
            "http://brain.local", client=_client(lambda request: httpx.Response(500))
        )
        with pytest.raises(httpx.HTTPStatusError):
            provider.store_memory("intent-1", "t", "c")

    def test_is_available(self):
        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        up = BrainProvider("http://brain.local", client=_client(lambda r: httpx.Response(200)))
        down = BrainProvider("http://brain.local", client=_client(refused))
        assert up.is_available() is True
        assert down.is_available() is False


class TestStandaloneProvider:
    def test_requires_api_key(self):
        provider = StandaloneProvider("http://llm.local", api_key=None, model="m")
        assert provider.is_available() is False
        with pytest.raises(ProviderError):
            provider.complete("hi")

    def test_complete(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "gpt-test",
                    "choices": [{"message": {"content": "answer"}}],
                    "usage": {"total_tokens": 12},
                },
            )

        provider = StandaloneProvider(
            "http://llm.local",
            api_key="sk-test",
            model="gpt-test",
            client=_client(handler, headers={"Authorization": "Bearer sk-test"}),
        )
        completion = provider.complete("hi", system_prompt="sys", temperature=0.1)

        assert completion.content == "answer"
        assert completion.tokens_used == 12
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]
        assert seen["body"]["temperature"] == 0.1
        assert "max_tokens" not in seen["body"]

    def test_no_choices(self):
        provider = StandaloneProvider(
            "http://llm.local",
            api_key="sk-test",
            model="m",
            client=_client(lambda request: httpx.Response(200, json={"choices": []})),
        )
        with pytest.raises(ProviderError):
            provider.complete("hi")

    def test_html_body(self):
        provider = StandaloneProvider(
            "http://llm.local",
            api_key="sk-test",
            model="m",
            client=_client(lambda request: httpx.Response(200, text="<html>gateway</html>")),
        )
        with pytest.raises(ProviderError, match="non-JSON"):
            provider.complete("hi")

    def test_no_memory(self):
        provider = StandaloneProvider("http://llm.local", api_key="sk", model="m")
        assert provider.get_context("q", scope_id="i").context == ""
        assert provider.store_memory("i", "t", "c") is None
        provider.close()


class TestBuildProvider:
    def test_modes(self):
        assert isinstance(build_provider(Settings(ai_provider_mode="none")), NullProvider)
        assert isinstance(
            build_provider(Settings(ai_provider_mode="standalone")), StandaloneProvider
        )
        assert isinstance(
            build_provider(Settings(ai_provider_mode="BRAIN", brain_url="http://brain.local")),
            BrainProvider,
        )

    def test_brain_requires_url(self):
        with pytest.raises(ValueError):
            build_provider(Settings(ai_provider_mode="brain", brain_url=None))

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            build_provider(Settings(ai_provider_mode="oracle"))
