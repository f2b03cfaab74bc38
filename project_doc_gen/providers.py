"""Transports for the generative model providers behind the gateway."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from .config import (
    AI_PROVIDER,
    ANTHROPIC_API_KEY,
    CLAUDE_MODEL,
    OLLAMA_ENDPOINT,
    OLLAMA_MODEL,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    TEMPERATURE,
)
from .models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)


class ContentPolicyError(RuntimeError):
    """Raised by a provider when the model refuses on policy grounds."""


class ModelProvider(Protocol):
    """Anything that can complete an ordered message sequence."""

    name: str

    async def complete(self, messages: Sequence[ChatMessage], max_tokens: int) -> Any:
        ...


def split_system_messages(messages: Sequence[ChatMessage]) -> Tuple[str, List[Dict[str, str]]]:
    """Join system messages into one prompt and keep the rest in order."""

    system_parts = [m.content for m in messages if m.role == MessageRole.SYSTEM]
    conversation = [m.as_dict() for m in messages if m.role != MessageRole.SYSTEM]
    return "\n\n".join(system_parts), conversation


class AnthropicProvider:
    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = CLAUDE_MODEL,
        temperature: float = TEMPERATURE,
    ) -> None:
        self.api_key = api_key or ANTHROPIC_API_KEY
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not found. Please set it in .env file")
        # Retries and timeouts are owned by the gateway
        self.client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        self.model = model
        self.temperature = temperature

    async def complete(self, messages: Sequence[ChatMessage], max_tokens: int) -> Any:
        system_prompt, conversation = split_system_messages(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "messages": conversation,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        response = await self.client.messages.create(**kwargs)

        stop_reason = getattr(response, "stop_reason", None)
        if stop_reason == "refusal":
            raise ContentPolicyError("Claude refused to generate the document (content policy)")
        if stop_reason == "max_tokens":
            logger.warning("Response hit max_tokens limit (%s); output may be incomplete", max_tokens)
        return response


class OpenAIProvider:
    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = OPENAI_MODEL,
        base_url: Optional[str] = OPENAI_BASE_URL,
        temperature: float = TEMPERATURE,
    ) -> None:
        self.api_key = api_key or OPENAI_API_KEY
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not found. Please set it in .env file")
        self.client = AsyncOpenAI(api_key=self.api_key, base_url=base_url, max_retries=0)
        self.model = model
        self.temperature = temperature

    async def complete(self, messages: Sequence[ChatMessage], max_tokens: int) -> Any:
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[m.as_dict() for m in messages],
            max_tokens=max_tokens,
            temperature=self.temperature,
        )
        if not completion.choices:
            return ""
        choice = completion.choices[0]
        if getattr(choice, "finish_reason", None) == "content_filter":
            raise ContentPolicyError("OpenAI content filter rejected the request")
        return choice.message


class OllamaProvider:
    name = "ollama"

    def __init__(
        self,
        endpoint: str = OLLAMA_ENDPOINT,
        *,
        model: str = OLLAMA_MODEL,
        temperature: float = TEMPERATURE,
    ) -> None:
        if not endpoint or not endpoint.startswith("http"):
            raise ValueError("OLLAMA_ENDPOINT must be a valid URL")
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.temperature = temperature

    async def complete(self, messages: Sequence[ChatMessage], max_tokens: int) -> Any:
        payload = {
            "model": self.model,
            "messages": [m.as_dict() for m in messages],
            "stream": False,
            "options": {"temperature": self.temperature, "num_predict": max_tokens},
        }
        # Overall deadline is enforced by the gateway
        async with httpx.AsyncClient(timeout=httpx.Timeout(None, connect=10.0)) as client:
            response = await client.post(f"{self.endpoint}/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        return data.get("message") or {}


def create_provider(name: Optional[str] = None) -> ModelProvider:
    """Instantiate the configured provider (``AI_PROVIDER`` by default)."""

    choice = (name or AI_PROVIDER).strip().lower()
    if choice == "anthropic":
        return AnthropicProvider()
    if choice == "openai":
        return OpenAIProvider()
    if choice == "ollama":
        return OllamaProvider()
    raise ValueError(f"Unsupported AI provider: {choice}")
