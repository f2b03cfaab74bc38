"""Immutable records shared across the generation pipeline."""

from __future__ import annotations

import copy
import math
from collections import abc
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional

from .config import CHARS_PER_TOKEN_EST


_NAME_KEYS = ("projectName", "project_name", "name")
_TYPE_KEYS = ("projectType", "project_type")
_DESCRIPTION_KEYS = ("description", "projectDescription", "project_description")
_SIZE_KEYS = ("projectSize", "project_size", "size")
_KNOWN_SIZES = ("small", "medium", "large")


def _first_present(data: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


class FrozenDict(abc.Mapping):
    """Read-only, hashable mapping used for nested context data."""

    __slots__ = ("_data", "_hash")

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(data or {})
        self._hash: Optional[int] = None

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._data.items()))
        return self._hash

    def __reduce__(self):
        return (FrozenDict, (self._data,))

    def __repr__(self) -> str:
        return f"FrozenDict({self._data!r})"


def freeze(value: Any) -> Any:
    """Recursively convert dicts, lists and sets into immutable equivalents."""

    if isinstance(value, FrozenDict):
        return value
    if isinstance(value, Mapping):
        return FrozenDict({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(item) for item in value)
    return copy.deepcopy(value)


def thaw(value: Any) -> Any:
    """Inverse of ``freeze``: plain dicts and lists the caller may modify."""

    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    if isinstance(value, frozenset):
        return set(value)
    return value


@dataclass(frozen=True)
class ProjectContext:
    """Read-only description of the project a document is generated for."""

    project_name: str
    project_type: Optional[str] = None
    description: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.project_name, str) or not self.project_name.strip():
            raise ValueError("project_name is required and cannot be empty")
        # Nested containers are frozen too, so no reference into extra is writable
        object.__setattr__(self, "extra", freeze(dict(self.extra)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProjectContext":
        """Build a context from intake data using camelCase or snake_case keys."""

        consumed = set(_NAME_KEYS) | set(_TYPE_KEYS) | set(_DESCRIPTION_KEYS)
        extra = {key: value for key, value in data.items() if key not in consumed}
        return cls(
            project_name=_first_present(data, _NAME_KEYS) or "",
            project_type=_first_present(data, _TYPE_KEYS),
            description=_first_present(data, _DESCRIPTION_KEYS),
            extra=extra,
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.extra.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Plain, mutable copy of the context in snake_case form."""

        data = thaw(self.extra)
        data.update(
            project_name=self.project_name,
            project_type=self.project_type,
            description=self.description,
        )
        return data

    @property
    def project_size(self) -> Optional[str]:
        raw = _first_present(self.extra, _SIZE_KEYS)
        if not isinstance(raw, str):
            return None
        normalized = raw.strip().lower()
        return normalized if normalized in _KNOWN_SIZES else None


@dataclass(frozen=True)
class FewShotExample:
    document_type: str
    description: str
    request: str
    response: str
    approx_tokens: int = 0

    def __post_init__(self) -> None:
        if self.approx_tokens <= 0:
            estimate = math.ceil(len(self.request + self.response) / CHARS_PER_TOKEN_EST)
            object.__setattr__(self, "approx_tokens", max(1, estimate))


@dataclass(frozen=True)
class FewShotConfig:
    """Controls whether and how many worked examples are injected."""

    max_examples: int = 2
    enabled: bool = True
    example_token_budget: float = 0.4
    min_token_limit_for_examples: int = 2000
    random_selection: bool = False
    priority_document_types: FrozenSet[str] = frozenset()
    excluded_document_types: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if self.max_examples < 0:
            raise ValueError("max_examples must be >= 0")
        if not 0.0 <= self.example_token_budget <= 1.0:
            raise ValueError("example_token_budget must be between 0 and 1")
        if self.min_token_limit_for_examples < 0:
            raise ValueError("min_token_limit_for_examples must be >= 0")
        object.__setattr__(self, "priority_document_types", frozenset(self.priority_document_types))
        object.__setattr__(self, "excluded_document_types", frozenset(self.excluded_document_types))

    def merged(self, overrides: Optional[Mapping[str, Any]]) -> "FewShotConfig":
        """Return a copy with the given fields replaced; unknown keys are rejected."""

        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown few-shot config fields: {sorted(unknown)}")
        return replace(self, **dict(overrides))

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    role: MessageRole
    content: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", MessageRole(self.role))

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class DocumentOutput:
    title: str
    content: str
