"""Single mediator for every generative model call.

The gateway owns token accounting, the shared retry policy, rate
bookkeeping and response normalization, so document processors never
talk to a provider SDK directly. Construct one per process (see
``create_gateway``) and pass it to each processor.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import anthropic
import httpx
import openai

from .config import (
    AI_BACKOFF_BASE,
    AI_BACKOFF_MAX,
    AI_FALLBACK_PROVIDERS,
    AI_MAX_RETRIES,
    AI_TIMEOUT,
    CHARS_PER_TOKEN_EST,
    CONTEXT_TOKEN_LIMIT,
    DEFAULT_RESPONSE_TOKENS,
    MAX_TOKENS,
    RATE_LIMIT_RPM,
)
from .errors import ErrorKind, GenerationError
from .models import ChatMessage, MessageRole
from .providers import ContentPolicyError, ModelProvider, create_provider

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]
MessageLike = Union[ChatMessage, Mapping[str, str]]

TRANSIENT_STATUS_CODES = {408, 409, 429}

_TIMEOUT_ERRORS = (
    asyncio.TimeoutError,
    httpx.TimeoutException,
    anthropic.APITimeoutError,
    openai.APITimeoutError,
)
_CONNECTION_ERRORS = (
    ConnectionError,
    httpx.TransportError,
    anthropic.APIConnectionError,
    openai.APIConnectionError,
)


def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_failure(exc: BaseException) -> Optional[ErrorKind]:
    """Map a provider exception to an error kind, or None if it is not a provider failure."""

    if isinstance(exc, _TIMEOUT_ERRORS):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ContentPolicyError):
        return ErrorKind.FATAL
    if isinstance(exc, _CONNECTION_ERRORS):
        return ErrorKind.TRANSIENT
    status = _status_code(exc)
    if status is None:
        return None
    if status in TRANSIENT_STATUS_CODES or status >= 500:
        return ErrorKind.TRANSIENT
    if 400 <= status < 500:
        return ErrorKind.FATAL
    return None


def _block_text(block: Any) -> Optional[str]:
    if isinstance(block, str):
        return block
    if isinstance(block, Mapping):
        if block.get("type", "text") == "text":
            return block.get("text")
        return None
    if getattr(block, "type", "text") == "text":
        text = getattr(block, "text", None)
        return text if isinstance(text, str) else None
    return None


def normalize_content(response: Any) -> str:
    """Reduce any supported provider response shape to plain text."""

    if response is None:
        return ""
    if isinstance(response, str):
        return response
    if isinstance(response, (list, tuple)):
        parts = [_block_text(block) for block in response]
        return "\n".join(part for part in parts if part)
    if isinstance(response, Mapping):
        if "content" in response:
            return normalize_content(response["content"])
        if "text" in response:
            return normalize_content(response["text"])
        raise TypeError(f"Unrecognised model response mapping keys: {sorted(response)}")
    if hasattr(response, "content"):
        return normalize_content(response.content)
    raise TypeError(f"Unrecognised model response type: {type(response).__name__}")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN_EST)


def _coerce_messages(messages: Iterable[MessageLike]) -> List[ChatMessage]:
    coerced: List[ChatMessage] = []
    for message in messages:
        if isinstance(message, ChatMessage):
            coerced.append(message)
        else:
            coerced.append(ChatMessage(role=message["role"], content=message["content"]))
    return coerced


@dataclass
class GatewayStats:
    requests: int = 0
    successes: int = 0
    retries: int = 0
    failures: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    fallbacks: int = 0
    served_by: Dict[str, int] = field(default_factory=dict)

    def snapshot(self) -> "GatewayStats":
        return replace(self, served_by=dict(self.served_by))


@dataclass(frozen=True)
class ModelResponse:
    """Normalized text plus the metadata of the call that produced it."""

    content: str
    provider: str
    response_time: float
    input_tokens: int
    output_tokens: int
    attempts: int


class RateLimiter:
    """Sliding one-minute request window shared by every caller of a gateway."""

    def __init__(self, requests_per_minute: int, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._window: Deque[float] = deque()
        self._lock = asyncio.Lock()

    async def acquire(self, sleep: SleepFn) -> None:
        if self.requests_per_minute <= 0:
            return
        while True:
            async with self._lock:
                now = self._clock()
                while self._window and now - self._window[0] >= 60.0:
                    self._window.popleft()
                if len(self._window) < self.requests_per_minute:
                    self._window.append(now)
                    return
                wait = 60.0 - (now - self._window[0])
            # Never sleep while holding the lock
            logger.info("Request rate limit of %s/min reached; waiting %.1fs", self.requests_per_minute, wait)
            await sleep(max(wait, 0.0))


def _provider_name(provider: ModelProvider) -> str:
    return getattr(provider, "name", type(provider).__name__)


class ModelGateway:
    """Owns the credentialed channel to the model providers.

    ``provider`` is tried first. When it exhausts its retries on transient
    failures or timeouts, each of ``fallback_providers`` is tried in order
    with a fresh retry budget. Fatal rejections never fail over.
    """

    def __init__(
        self,
        provider: ModelProvider,
        *,
        fallback_providers: Sequence[ModelProvider] = (),
        default_max_tokens: int = DEFAULT_RESPONSE_TOKENS,
        max_tokens_cap: int = MAX_TOKENS,
        context_token_limit: int = CONTEXT_TOKEN_LIMIT,
        max_retries: int = AI_MAX_RETRIES,
        backoff_base: float = AI_BACKOFF_BASE,
        backoff_max: float = AI_BACKOFF_MAX,
        timeout: Optional[float] = AI_TIMEOUT,
        requests_per_minute: int = RATE_LIMIT_RPM,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.provider = provider
        self.providers: List[ModelProvider] = [provider, *fallback_providers]
        self.default_max_tokens = default_max_tokens
        self.max_tokens_cap = max_tokens_cap
        self.context_token_limit = context_token_limit
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.timeout = timeout
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._rate_limiter = RateLimiter(requests_per_minute)
        self._stats = GatewayStats()
        self._stats_lock = asyncio.Lock()

    @property
    def stats(self) -> GatewayStats:
        return self._stats.snapshot()

    @staticmethod
    def create_messages(system_prompt: str, user_prompt: str) -> List[ChatMessage]:
        return [
            ChatMessage(role=MessageRole.SYSTEM, content=system_prompt),
            ChatMessage(role=MessageRole.USER, content=user_prompt),
        ]

    def resolve_max_tokens(self, max_tokens: Optional[int]) -> int:
        requested = self.default_max_tokens if max_tokens is None else max_tokens
        if requested <= 0:
            raise ValueError("max_tokens must be positive")
        if requested > self.max_tokens_cap:
            logger.info("Clamping max_tokens from %s to the %s ceiling", requested, self.max_tokens_cap)
            return self.max_tokens_cap
        return requested

    def backoff_delay(self, attempt: int) -> float:
        return min(self.backoff_max, self.backoff_base * (2 ** attempt))

    async def _record(self, served_by: Optional[str] = None, **increments: int) -> None:
        async with self._stats_lock:
            for name, value in increments.items():
                setattr(self._stats, name, getattr(self._stats, name) + value)
            if served_by is not None:
                self._stats.served_by[served_by] = self._stats.served_by.get(served_by, 0) + 1

    async def call(
        self,
        messages: Sequence[MessageLike],
        max_tokens: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """Send an ordered message sequence and return the response text."""

        response = await self.call_with_metadata(messages, max_tokens, timeout=timeout)
        return response.content

    async def call_with_metadata(
        self,
        messages: Sequence[MessageLike],
        max_tokens: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> ModelResponse:
        chat_messages = _coerce_messages(messages)
        if not chat_messages:
            raise ValueError("At least one message is required")

        response_tokens = self.resolve_max_tokens(max_tokens)
        prompt_tokens = estimate_tokens("".join(m.content for m in chat_messages))
        if prompt_tokens + response_tokens > self.context_token_limit:
            raise GenerationError(
                ErrorKind.FATAL,
                f"Prompt of ~{prompt_tokens} tokens plus {response_tokens} response tokens "
                f"exceeds the {self.context_token_limit} token context limit",
                details={"prompt_tokens": prompt_tokens, "max_tokens": response_tokens},
            )

        deadline = self.timeout if timeout is None else timeout
        tried: List[str] = []
        for index, provider in enumerate(self.providers):
            tried.append(_provider_name(provider))
            try:
                return await self._call_provider(
                    provider, chat_messages, response_tokens, prompt_tokens, deadline
                )
            except GenerationError as exc:
                exc.details["providers_tried"] = list(tried)
                if exc.kind is ErrorKind.FATAL or index == len(self.providers) - 1:
                    raise
                next_name = _provider_name(self.providers[index + 1])
                logger.warning(
                    "%s unavailable (%s); falling back to %s", tried[-1], exc.kind.value, next_name
                )
                await self._record(fallbacks=1)

    async def _call_provider(
        self,
        provider: ModelProvider,
        chat_messages: List[ChatMessage],
        response_tokens: int,
        prompt_tokens: int,
        deadline: Optional[float],
    ) -> ModelResponse:
        provider_name = _provider_name(provider)
        attempt = 0
        while True:
            await self._rate_limiter.acquire(self._sleep)
            await self._record(requests=1, input_tokens=prompt_tokens)
            started = time.monotonic()
            try:
                raw = await asyncio.wait_for(
                    provider.complete(chat_messages, response_tokens), deadline
                )
            except Exception as exc:
                kind = classify_failure(exc)
                if kind is None:
                    await self._record(failures=1)
                    raise
                if kind is ErrorKind.FATAL:
                    await self._record(failures=1)
                    logger.error("%s rejected the request (not retried): %s", provider_name, exc)
                    raise GenerationError(
                        ErrorKind.FATAL,
                        f"Model provider rejected the request: {exc}",
                        attempts=attempt + 1,
                        details={"status_code": _status_code(exc), "provider": provider_name},
                    ) from exc
                if attempt >= self.max_retries:
                    await self._record(failures=1)
                    logger.error(
                        "%s call failed after %s attempt(s) (%s): %s",
                        provider_name, attempt + 1, kind.value, exc,
                    )
                    raise GenerationError(
                        kind,
                        f"Model call failed after {attempt + 1} attempt(s): {str(exc) or type(exc).__name__}",
                        attempts=attempt + 1,
                        details={"status_code": _status_code(exc), "provider": provider_name},
                    ) from exc
                wait = self.backoff_delay(attempt)
                logger.warning(
                    "%s %s failure; retrying in %.1fs (attempt %s/%s): %s",
                    provider_name, kind.value, wait, attempt + 1, self.max_retries, exc,
                )
                await self._record(retries=1)
                await self._sleep(wait)
                attempt += 1
                continue

            elapsed = time.monotonic() - started
            content = normalize_content(raw)
            output_tokens = estimate_tokens(content)
            await self._record(served_by=provider_name, successes=1, output_tokens=output_tokens)
            logger.info(
                "%s call completed in %.2fs (max_tokens=%s, response length=%s)",
                provider_name, elapsed, response_tokens, len(content),
            )
            return ModelResponse(
                content=content,
                provider=provider_name,
                response_time=elapsed,
                input_tokens=prompt_tokens,
                output_tokens=output_tokens,
                attempts=attempt + 1,
            )


def _configured_fallbacks() -> List[ModelProvider]:
    fallbacks: List[ModelProvider] = []
    for name in AI_FALLBACK_PROVIDERS:
        try:
            fallbacks.append(create_provider(name))
        except ValueError as exc:
            logger.warning("Skipping fallback provider %s: %s", name, exc)
    return fallbacks


def create_gateway(
    provider: Optional[ModelProvider] = None,
    fallback_providers: Optional[Sequence[ModelProvider]] = None,
    **overrides: Any,
) -> ModelGateway:
    """Build the process-wide gateway from configuration.

    Without explicit fallbacks, ``AI_FALLBACK_PROVIDERS`` is read; providers
    that cannot be constructed (missing credentials) are skipped.
    """

    if fallback_providers is None:
        fallback_providers = _configured_fallbacks()
    return ModelGateway(provider or create_provider(), fallback_providers=fallback_providers, **overrides)
