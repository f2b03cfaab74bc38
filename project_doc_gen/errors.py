"""Classified failures raised by the document generation pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    TRANSIENT = "transient"
    TIMEOUT = "timeout"
    FATAL = "fatal"
    INTERNAL = "internal"


_RETRYABLE = {ErrorKind.VALIDATION, ErrorKind.TRANSIENT, ErrorKind.TIMEOUT}


class GenerationError(RuntimeError):
    """Raised when a document cannot be produced.

    Callers branch on ``kind`` rather than on the exception class:

    * ``VALIDATION`` - the model answered but the content was rejected.
    * ``TRANSIENT`` / ``TIMEOUT`` - the provider kept failing after retries;
      the whole document can be retried later.
    * ``FATAL`` - the provider rejected the request (auth, bad request,
      policy); retrying will not help.
    * ``INTERNAL`` - a bug or unexpected runtime failure.
    """

    def __init__(
        self,
        kind: ErrorKind,
        reason: str,
        *,
        document_type: Optional[str] = None,
        attempts: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(reason)
        self.kind = ErrorKind(kind)
        self.reason = reason
        self.document_type = document_type
        self.attempts = attempts
        self.details: Dict[str, Any] = dict(details or {})

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE

    def with_document_type(self, document_type: str) -> "GenerationError":
        if self.document_type is None:
            self.document_type = document_type
        return self

    def __repr__(self) -> str:
        return (
            f"GenerationError(kind={self.kind.value!r}, reason={self.reason!r}, "
            f"document_type={self.document_type!r}, attempts={self.attempts})"
        )
