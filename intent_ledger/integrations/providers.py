"""
AI and long-term memory providers.

A provider is chosen per application (``build_provider``) and handed to
services through ``LedgerContext``; nothing here is a process-wide singleton.

Modes:
    brain       completion and organizational memory from a Brain server
    standalone  completion from an OpenAI-compatible endpoint, no memory
    none        no AI at all
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog

from ..config import Settings

logger = structlog.get_logger()


class ProviderError(Exception):
    """Raised when a provider cannot complete a request."""


@dataclass
class Completion:
    content: str
    provider: str
    model: Optional[str] = None
    tokens_used: Optional[int] = None


@dataclass
class MemoryContext:
    context: str = ""
    memory_ids: List[str] = field(default_factory=list)
    memory_count: int = 0


def _with_context(prompt: str, context: Optional[str]) -> str:
    if not context:
        return prompt
    return f"Context:\n{context}\n\n---\n\n{prompt}"


def _json_object(response: httpx.Response, what: str) -> Dict[str, Any]:
    """Decode a JSON object body, or raise ProviderError."""
    try:
        data = response.json()
    except ValueError as e:
        raise ProviderError(f"{what} returned a non-JSON body") from e
    if not isinstance(data, dict):
        raise ProviderError(f"{what} returned {type(data).__name__}, expected an object")
    return data


class AiProvider(ABC):
    """Capability object for completion and memory."""

    name = "abstract"

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the provider can currently serve requests."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        """Run a completion. Raises ProviderError on failure."""

    @abstractmethod
    def get_context(
        self,
        query: str,
        scope_id: str,
        max_chars: int = 8000,
        max_memories: int = 10,
    ) -> MemoryContext:
        """Fetch memories relevant to ``query`` within ``scope_id``."""

    @abstractmethod
    def store_memory(
        self,
        scope_id: str,
        title: str,
        content: str,
        bucket_id: Optional[str] = None,
    ) -> Optional[str]:
        """Persist a memory; returns its id, or None when memory is unsupported."""

    def close(self) -> None:
        pass


class NullProvider(AiProvider):
    """No AI configured: memory is a no-op and completion always fails."""

    name = "none"

    def is_available(self) -> bool:
        return False

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        raise ProviderError("No AI provider configured (AI_PROVIDER_MODE=none)")

    def get_context(
        self,
        query: str,
        scope_id: str,
        max_chars: int = 8000,
        max_memories: int = 10,
    ) -> MemoryContext:
        return MemoryContext()

    def store_memory(
        self,
        scope_id: str,
        title: str,
        content: str,
        bucket_id: Optional[str] = None,
    ) -> Optional[str]:
        return None


class BrainProvider(AiProvider):
    """Delegates completion and memory to a Brain server."""

    name = "brain"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"X-API-Key": api_key} if api_key else {}
        self.client = client or httpx.Client(timeout=timeout, headers=headers)

    def is_available(self) -> bool:
        try:
            response = self.client.get(f"{self.base_url}/health", timeout=3.0)
        except httpx.HTTPError:
            return False
        return response.is_success

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        try:
            response = self.client.post(
                f"{self.base_url}/ai/complete",
                json={
                    "prompt": _with_context(prompt, context),
                    "system_prompt": system_prompt,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"Brain completion failed: {e}") from e

        data = _json_object(response, "Brain completion")
        return Completion(
            content=data.get("content") or data.get("response") or "",
            provider=self.name,
            model=data.get("model"),
            tokens_used=data.get("tokens_used"),
        )

    def get_context(
        self,
        query: str,
        scope_id: str,
        max_chars: int = 8000,
        max_memories: int = 10,
    ) -> MemoryContext:
        try:
            response = self.client.post(
                f"{self.base_url}/api/v1/context",
                json={
                    "scope_id": scope_id,
                    "query": query,
                    "max_chars": max_chars,
                    "max_memories": max_memories,
                },
            )
            response.raise_for_status()
            payload = _json_object(response, "Brain context")
        except (httpx.HTTPError, ProviderError) as e:
            logger.warning("brain_context_failed", scope_id=scope_id, error=str(e))
            return MemoryContext()

        result = payload.get("data")
        if not isinstance(result, dict):
            result = payload
        return MemoryContext(
            context=result.get("context") or "",
            memory_ids=list(result.get("memory_ids") or []),
            memory_count=result.get("memory_count") or 0,
        )

    def store_memory(
        self,
        scope_id: str,
        title: str,
        content: str,
        bucket_id: Optional[str] = None,
    ) -> Optional[str]:
        response = self.client.post(
            f"{self.base_url}/api/v1/memories",
            json={
                "scope_id": scope_id,
                "title": title,
                "content": content,
                "bucket_id": bucket_id,
            },
        )
        response.raise_for_status()
        data = _json_object(response, "Brain memory store").get("data")
        memory_id = data.get("id") if isinstance(data, dict) else None
        logger.info("memory_stored", scope_id=scope_id, memory_id=memory_id)
        return memory_id

    def close(self) -> None:
        self.client.close()


class StandaloneProvider(AiProvider):
    """Completion via an OpenAI-compatible chat endpoint. No memory."""

    name = "standalone"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        model: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = client or httpx.Client(timeout=timeout, headers=headers)

    def is_available(self) -> bool:
        return bool(self.api_key)

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        if not self.is_available():
            raise ProviderError("No LLM API key configured. Set LLM_API_KEY.")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": _with_context(prompt, context)})

        body: Dict[str, Any] = {"model": self.model, "messages": messages}
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if temperature is not None:
            body["temperature"] = temperature

        try:
            response = self.client.post(f"{self.base_url}/chat/completions", json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"LLM completion failed: {e}") from e

        data = _json_object(response, "LLM completion")
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("LLM returned no choices") from e

        usage = data.get("usage")
        return Completion(
            content=content,
            provider=self.name,
            model=data.get("model") or self.model,
            tokens_used=usage.get("total_tokens") if isinstance(usage, dict) else None,
        )

    def get_context(
        self,
        query: str,
        scope_id: str,
        max_chars: int = 8000,
        max_memories: int = 10,
    ) -> MemoryContext:
        # Standalone mode has no organizational memory
        return MemoryContext()

    def store_memory(
        self,
        scope_id: str,
        title: str,
        content: str,
        bucket_id: Optional[str] = None,
    ) -> Optional[str]:
        return None

    def close(self) -> None:
        self.client.close()


def build_provider(settings: Settings) -> AiProvider:
    """Select a provider from AI_PROVIDER_MODE."""
    mode = settings.ai_provider_mode.lower()

    if mode == "brain":
        if not settings.brain_url:
            raise ValueError("AI_PROVIDER_MODE=brain requires BRAIN_URL")
        return BrainProvider(
            base_url=settings.brain_url,
            api_key=settings.brain_api_key,
            timeout=settings.http_timeout_seconds,
        )
    if mode == "standalone":
        return StandaloneProvider(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout=settings.http_timeout_seconds,
        )
    if mode == "none":
        return NullProvider()

    raise ValueError(f"Unknown AI_PROVIDER_MODE: {settings.ai_provider_mode}")
