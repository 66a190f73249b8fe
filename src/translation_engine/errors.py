# SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy and error-code classification."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes attached to failed translations."""

    INVALID_API_KEY = "INVALID_API_KEY"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    UNSUPPORTED_LANGUAGE = "UNSUPPORTED_LANGUAGE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class TranslatorError(Exception):
    """Base exception for the translation engine.

    Attributes:
        code: Error code, filled in by the translator core when missing.
        details: Request context (backend type, text, languages).
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code.value if self.code else None,
            "details": self.details,
        }


class ConfigurationError(TranslatorError):
    """Missing or malformed backend configuration.

    Not retryable - fix the configuration first.
    """


class NotRegisteredError(TranslatorError):
    """Unknown backend type."""

    def __init__(self, backend_type: str) -> None:
        super().__init__(f"Backend type '{backend_type}' is not registered")
        self.backend_type = backend_type


class NotInitializedError(TranslatorError):
    """A translator was used before ``initialize()`` succeeded."""


class ValidationError(TranslatorError):
    """Bad request: empty text, unknown, unsupported or identical languages."""


class BackendError(TranslatorError):
    """Failure reported by a translation provider (auth, quota, bad payload)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.status = status


class UnknownError(TranslatorError):
    """Any other failure raised while translating."""


# Substring heuristics, checked in order against the lower-cased message.
# Adapters can bypass them by setting ``code`` on the exception they raise.
_CODE_KEYWORDS: tuple[tuple[tuple[str, ...], ErrorCode], ...] = (
    (("api key", "unauthorized"), ErrorCode.INVALID_API_KEY),
    (("network", "fetch", "timeout", "timed out", "connect"), ErrorCode.NETWORK_ERROR),
    (("rate limit",), ErrorCode.RATE_LIMIT_EXCEEDED),
    (("quota",), ErrorCode.QUOTA_EXCEEDED),
    (("language",), ErrorCode.UNSUPPORTED_LANGUAGE),
)


def classify_error(error: BaseException | str) -> ErrorCode:
    """Map an error (or its message) to an ErrorCode.

    An ErrorCode already attached to a TranslatorError wins over the
    message heuristics.
    """
    if isinstance(error, TranslatorError) and error.code is not None:
        return error.code
    message = str(error).lower()
    for keywords, code in _CODE_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return code
    return ErrorCode.UNKNOWN_ERROR
