# SPDX-License-Identifier: Apache-2.0
"""Protocol for translation backend adapters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from translation_engine.config import BackendConfig
from translation_engine.errors import (
    BackendError,
    ConfigurationError,
    ErrorCode,
    NotInitializedError,
    NotRegisteredError,
    TranslatorError,
    UnknownError,
    ValidationError,
    classify_error,
)

__all__ = [
    "BackendAdapter",
    "BackendError",
    "ConfigurationError",
    "ErrorCode",
    "NotInitializedError",
    "NotRegisteredError",
    "TranslatorError",
    "UnknownError",
    "ValidationError",
    "classify_error",
]


@runtime_checkable
class BackendAdapter(Protocol):
    """Provider-specific half of a translator.

    An adapter only shapes requests and parses responses. Validation,
    preprocessing, error enrichment and lifecycle are handled by
    ``TranslatorCore``, which wraps exactly one adapter.
    """

    type: str
    display_name: str
    config_model: type[BackendConfig]

    @property
    def config(self) -> BackendConfig:
        """Current configuration (settable)."""
        ...

    @config.setter
    def config(self, value: BackendConfig) -> None: ...

    def get_supported_languages(self) -> list[str]:
        """Language codes accepted as source or target."""
        ...

    def validate_config(self) -> bool:
        """Return True if the current configuration is usable."""
        ...

    async def translate_raw(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> str:
        """Translate already-validated text.

        Args:
            text: Normalized text.
            source_lang: Source language code, possibly ``auto``.
            target_lang: Target language code.

        Returns:
            Translated text as returned by the provider.

        Raises:
            TranslatorError: On provider or transport failure.
        """
        ...

    async def setup(self) -> None:
        """Hook run by ``initialize()`` after validation."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
