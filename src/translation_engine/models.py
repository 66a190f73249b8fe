# SPDX-License-Identifier: Apache-2.0
"""Data models shared by the translators and the translation service."""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from translation_engine.languages import LanguageCode


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class BackendType(str, Enum):
    """Built-in backend types.

    Backend types are plain strings elsewhere so that callers can register
    additional backends under their own names.
    """

    OPENAI = "openai"
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


class TranslationStatus(str, Enum):
    """Outcome of a single translation."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class BatchStatus(str, Enum):
    """Lifecycle of a batch task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED)


@dataclass(frozen=True)
class TranslationRequest:
    """A request to translate one piece of text.

    Attributes:
        text: Text to translate.
        source_lang: Source language code, or ``LanguageCode.AUTO``.
        target_lang: Target language code.
        backend_type: Backend to use. Empty means the configured default.
        max_tokens: Optional completion token limit for LLM backends.
    """

    text: str
    source_lang: str = LanguageCode.AUTO.value
    target_lang: str = LanguageCode.EN.value
    backend_type: str = ""
    max_tokens: int | None = None


@dataclass
class TranslationResponse:
    """Result of a translation request.

    ``status`` tells "no result" (``error``) apart from an empty translation.
    """

    original_text: str
    translated_text: str
    source_lang: str
    target_lang: str
    backend_type: str
    status: TranslationStatus = TranslationStatus.SUCCESS
    error: str | None = None
    timestamp: int = field(default_factory=now_ms)

    @property
    def ok(self) -> bool:
        return self.status == TranslationStatus.SUCCESS

    @classmethod
    def failure(
        cls,
        text: str,
        source_lang: str,
        target_lang: str,
        backend_type: str,
        error: str,
    ) -> TranslationResponse:
        """Build an error response carrying ``error`` as its message."""
        return cls(
            original_text=text,
            translated_text="",
            source_lang=str(source_lang),
            target_lang=str(target_lang),
            backend_type=str(backend_type),
            status=TranslationStatus.ERROR,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class CacheEntry:
    """A cached translation, keyed by its fingerprint."""

    fingerprint: str
    original_text: str
    translated_text: str
    source_lang: str
    target_lang: str
    backend_type: str
    timestamp: int = field(default_factory=now_ms)

    def to_response(self) -> TranslationResponse:
        """Reconstruct a successful response with a fresh timestamp."""
        return TranslationResponse(
            original_text=self.original_text,
            translated_text=self.translated_text,
            source_lang=self.source_lang,
            target_lang=self.target_lang,
            backend_type=self.backend_type,
            status=TranslationStatus.SUCCESS,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        return cls(
            fingerprint=str(data["fingerprint"]),
            original_text=str(data["original_text"]),
            translated_text=str(data["translated_text"]),
            source_lang=str(data["source_lang"]),
            target_lang=str(data["target_lang"]),
            backend_type=str(data["backend_type"]),
            timestamp=int(data.get("timestamp", now_ms())),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """One past translation in the history log."""

    original_text: str
    translated_text: str
    source_lang: str
    target_lang: str
    backend_type: str
    timestamp: int = field(default_factory=now_ms)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_response(cls, response: TranslationResponse) -> HistoryEntry:
        return cls(
            original_text=response.original_text,
            translated_text=response.translated_text,
            source_lang=response.source_lang,
            target_lang=response.target_lang,
            backend_type=response.backend_type,
            timestamp=response.timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        return cls(
            id=str(data["id"]),
            original_text=str(data["original_text"]),
            translated_text=str(data["translated_text"]),
            source_lang=str(data["source_lang"]),
            target_lang=str(data["target_lang"]),
            backend_type=str(data["backend_type"]),
            timestamp=int(data.get("timestamp", now_ms())),
        )


@dataclass
class BatchProgress:
    """Snapshot of a batch task returned to pollers."""

    progress: float
    status: BatchStatus
    results: list[TranslationResponse]
    errors: list[str]


@dataclass
class BatchTask:
    """A multi-chunk translation job.

    ``results[i]`` always corresponds to ``texts[i]``; failed chunks hold a
    response with ``status=error``.
    """

    id: str
    texts: list[str]
    source_lang: str
    target_lang: str
    backend_type: str
    progress: float = 0.0
    status: BatchStatus = BatchStatus.PENDING
    results: list[TranslationResponse] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    start_time: int | None = None
    end_time: int | None = None
    cancel_requested: bool = False

    def snapshot(self) -> BatchProgress:
        return BatchProgress(
            progress=self.progress,
            status=self.status,
            results=list(self.results),
            errors=list(self.errors),
        )
