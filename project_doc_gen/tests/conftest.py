"""Shared fixtures: a scripted provider stands in for the network."""

from typing import Any, List, Sequence

import pytest

from project_doc_gen.catalog import FewShotCatalog
from project_doc_gen.gateway import ModelGateway
from project_doc_gen.models import ChatMessage, FewShotExample


class ScriptedProvider:
    """Returns (or raises) the queued outcomes in order; repeats the last one."""

    name = "scripted"

    def __init__(self, *outcomes: Any, name: str = "scripted") -> None:
        self.name = name
        self.outcomes: List[Any] = list(outcomes)
        self.calls: List[dict] = []

    async def complete(self, messages: Sequence[ChatMessage], max_tokens: int) -> Any:
        self.calls.append({"messages": list(messages), "max_tokens": max_tokens})
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class StatusError(Exception):
    """Minimal provider error carrying an HTTP status code."""

    def __init__(self, status_code: int, message: str = "provider error") -> None:
        super().__init__(message)
        self.status_code = status_code


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_gateway(sleep):
    def _make(provider, **kwargs) -> ModelGateway:
        kwargs.setdefault("max_retries", 3)
        kwargs.setdefault("requests_per_minute", 0)
        kwargs.setdefault("timeout", 5.0)
        kwargs.setdefault("default_max_tokens", 4000)
        kwargs.setdefault("max_tokens_cap", 8000)
        kwargs.setdefault("context_token_limit", 100000)
        return ModelGateway(provider, sleep=sleep, **kwargs)

    return _make


@pytest.fixture
def catalog() -> FewShotCatalog:
    return FewShotCatalog(
        [
            FewShotExample("project-charter", "first charter", "req one", "# Charter One", 800),
            FewShotExample("project-charter", "second charter", "req two", "# Charter Two", 800),
            FewShotExample("risk-management-plan", "risk plan", "req risk", "# Risk", 800),
            FewShotExample("project-charter", "third charter", "req three", "# Charter Three", 800),
        ]
    )
