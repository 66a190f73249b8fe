# SPDX-License-Identifier: Apache-2.0
"""Shared request lifecycle wrapped around a backend adapter."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any

import pydantic

from translation_engine.config import BackendConfig
from translation_engine.errors import (
    ConfigurationError,
    NotInitializedError,
    TranslatorError,
    UnknownError,
    ValidationError,
    classify_error,
)
from translation_engine.languages import LanguageCode
from translation_engine.models import TranslationRequest, TranslationResponse
from translation_engine.translators.base import BackendAdapter
from translation_engine.validation import (
    normalize_text,
    validate_language_code,
    validate_text,
)

logger = logging.getLogger(__name__)

# Changing any of these invalidates a previous initialize().
_CONNECTION_KEYS = frozenset({"api_key", "api_url", "base_url", "endpoint"})


class TranslatorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


def coerce_config(
    config_model: type[BackendConfig],
    config: BackendConfig | dict[str, Any],
) -> BackendConfig:
    """Validate ``config`` into ``config_model``.

    Raises:
        ConfigurationError: If the configuration does not validate.
    """
    data = config.model_dump() if isinstance(config, pydantic.BaseModel) else dict(config)
    try:
        return config_model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"Invalid backend configuration: {exc}") from exc


class TranslatorCore:
    """Validates, preprocesses and wraps calls to one BackendAdapter.

    The core owns the ``uninitialized -> initialized -> uninitialized``
    lifecycle. In-flight translations are counted so that ``destroy()`` only
    closes the adapter once they have finished.

    Example:
        >>> core = TranslatorCore(OpenAIAdapter(OpenAIConfig(api_key="sk-...")))
        >>> await core.initialize()
        >>> response = await core.translate(TranslationRequest("Hello", "en", "ja"))
    """

    def __init__(self, adapter: BackendAdapter) -> None:
        self._adapter = adapter
        self._state = TranslatorState.UNINITIALIZED
        self._active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def adapter(self) -> BackendAdapter:
        return self._adapter

    @property
    def type(self) -> str:
        return self._adapter.type

    @property
    def name(self) -> str:
        return self._adapter.display_name

    @property
    def state(self) -> TranslatorState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state == TranslatorState.INITIALIZED

    @property
    def active_requests(self) -> int:
        return self._active

    def get_supported_languages(self) -> list[str]:
        return self._adapter.get_supported_languages()

    async def initialize(self, config: BackendConfig | dict[str, Any] | None = None) -> None:
        """Validate the configuration and prepare the adapter.

        Args:
            config: Replacement configuration. Keeps the current one if None.

        Raises:
            ConfigurationError: If validation fails. The translator stays
                uninitialized.
        """
        self._state = TranslatorState.UNINITIALIZED
        logger.info("Initializing %s translator", self.name)
        try:
            if config is not None:
                self._adapter.config = coerce_config(self._adapter.config_model, config)
            self._check_config()
            await self._adapter.setup()
        except Exception:
            logger.error("Failed to initialize %s translator", self.name)
            raise
        self._state = TranslatorState.INITIALIZED
        logger.info("%s translator initialized", self.name)

    def _check_config(self) -> None:
        config = self._adapter.config
        if config.timeout <= 0:
            raise ConfigurationError("Timeout must be greater than 0")
        if config.retry_count < 0:
            raise ConfigurationError("Retry count must not be negative")
        if not self._adapter.validate_config():
            raise ConfigurationError("Configuration validation failed")

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        """Translate one request through the adapter.

        Raises:
            NotInitializedError: If called before ``initialize()``.
            ValidationError: On empty text or bad, identical or
                unsupported language codes. The adapter is not called.
            TranslatorError: Any adapter or transport failure, with ``code``
                and ``details`` filled in.
        """
        if not self.is_initialized:
            raise NotInitializedError("Translator not initialized")

        start = time.perf_counter()
        self._enter()
        try:
            self._validate_request(request)
            text = normalize_text(request.text)
            translated = await self._adapter.translate_raw(
                text, request.source_lang, request.target_lang
            )
            translated = translated.strip()
        except TranslatorError as exc:
            self._enrich(exc, request)
            logger.error("Translation failed on %s: %s", self.type, exc)
            raise
        except Exception as exc:
            error = UnknownError(str(exc) or exc.__class__.__name__)
            self._enrich(error, request)
            logger.error("Translation failed on %s: %s", self.type, exc)
            raise error from exc
        finally:
            self._leave()

        logger.debug(
            "Translated %d chars with %s in %.2fms",
            len(request.text),
            self.type,
            (time.perf_counter() - start) * 1000,
        )
        return TranslationResponse(
            original_text=request.text,
            translated_text=translated,
            source_lang=str(request.source_lang),
            target_lang=str(request.target_lang),
            backend_type=self.type,
        )

    def _validate_request(self, request: TranslationRequest) -> None:
        if not validate_text(request.text):
            raise ValidationError("Invalid text for translation")
        if not validate_language_code(request.source_lang):
            raise ValidationError("Invalid source language code")
        if not validate_language_code(request.target_lang):
            raise ValidationError("Invalid target language code")
        if str(request.source_lang) == str(request.target_lang):
            raise ValidationError("Source and target languages cannot be the same")

        supported = {str(code) for code in self.get_supported_languages()}
        if str(request.source_lang) not in supported:
            raise ValidationError(f"Source language {request.source_lang} is not supported")
        if str(request.target_lang) not in supported:
            raise ValidationError(f"Target language {request.target_lang} is not supported")

    def _enrich(self, error: TranslatorError, request: TranslationRequest) -> None:
        error.code = classify_error(error)
        error.details.update(
            {
                "backend_type": self.type,
                "original_text": request.text,
                "source_lang": str(request.source_lang),
                "target_lang": str(request.target_lang),
            }
        )

    def _enter(self) -> None:
        self._active += 1
        self._idle.clear()

    def _leave(self) -> None:
        self._active -= 1
        if self._active == 0:
            self._idle.set()

    async def is_available(self) -> bool:
        """Run a real "test" translation and report whether it succeeded."""
        if not self.is_initialized:
            return False
        try:
            await self._adapter.translate_raw(
                "test", LanguageCode.EN.value, LanguageCode.ZH_CN.value
            )
        except Exception as exc:
            logger.warning("Availability check failed for %s: %s", self.type, exc)
            return False
        return True

    def update_config(self, **changes: Any) -> None:
        """Merge ``changes`` into the configuration.

        Changing credentials or endpoints requires a new ``initialize()``.

        Raises:
            ConfigurationError: If the merged configuration does not validate.
        """
        current = self._adapter.config
        merged = coerce_config(
            self._adapter.config_model, {**current.model_dump(), **changes}
        )
        self._adapter.config = merged
        logger.info("Configuration updated for %s", self.type)
        for key in _CONNECTION_KEYS & changes.keys():
            if getattr(current, key, None) != changes[key]:
                self._state = TranslatorState.UNINITIALIZED
                break

    def get_config(self) -> BackendConfig:
        return self._adapter.config.model_copy(deep=True)

    async def destroy(self) -> None:
        """Wait for in-flight translations, then close the adapter."""
        logger.info("Destroying %s translator", self.name)
        self._state = TranslatorState.UNINITIALIZED
        await self._idle.wait()
        await self._adapter.close()
        logger.info("%s translator destroyed", self.name)

    def get_stats(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "is_initialized": self.is_initialized,
            "active_requests": self._active,
            "supported_languages": self.get_supported_languages(),
        }
