# SPDX-License-Identifier: Apache-2.0
"""Engine settings and per-backend configuration models."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from translation_engine.errors import ConfigurationError
from translation_engine.languages import LanguageCode
from translation_engine.models import BackendType
from translation_engine.storage import JsonStore

logger = logging.getLogger(__name__)


class BackendConfig(BaseModel):
    """Settings shared by every backend type.

    Unknown keys are kept so that backend-specific fields survive a round
    trip through the generic model.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    name: str = ""
    enabled: bool = False
    api_key: str | None = None
    api_url: str | None = None
    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    timeout: float = 30.0  # seconds per attempt
    retry_count: int = 3
    custom_headers: dict[str, str] = Field(default_factory=dict)


class OpenAIConfig(BackendConfig):
    """Chat-completion backend settings."""

    type: str = BackendType.OPENAI.value
    name: str = "OpenAI"
    temperature: float = 0.3
    max_tokens: int = 128000
    base_url: str = "https://api.openai.com/v1"


class CustomConfig(BackendConfig):
    """Generic HTTP backend settings.

    ``request_template`` is a JSON document (or raw string) with
    ``{{text}}``, ``{{from}}``, ``{{to}}`` and ``{{apiKey}}`` placeholders.
    ``result_field``/``error_field`` are dotted paths into the response,
    e.g. ``choices.0.text``.
    """

    type: str = BackendType.CUSTOM.value
    name: str = "Custom"
    endpoint: str = ""
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    request_template: str = ""
    response_template: str = ""
    text_field: str = "text"
    from_field: str = "from"
    to_field: str = "to"
    result_field: str = "result"
    error_field: str = "error"
    supported_languages: list[str] | None = None


class AdvancedSettings(BaseModel):
    """Caching, history and request limits."""

    enable_cache: bool = True
    enable_history: bool = True
    cache_size: int = Field(default=1000, gt=0)
    history_size: int = Field(default=1000, gt=0)
    max_tokens: int = Field(default=128000, gt=0)
    log_level: str = "info"


def _default_backends() -> dict[str, BackendConfig]:
    return {
        BackendType.OPENAI.value: OpenAIConfig(),
        BackendType.CUSTOM.value: CustomConfig(),
    }


class EngineSettings(BaseModel):
    """Top-level settings document."""

    default_backend: str = BackendType.OPENAI.value
    default_target_lang: str = LanguageCode.ZH_CN.value
    # SerializeAsAny keeps subclass fields (base_url, endpoint, ...) when dumping.
    backends: dict[str, SerializeAsAny[BackendConfig]] = Field(default_factory=_default_backends)
    advanced: AdvancedSettings = Field(default_factory=AdvancedSettings)


SettingsListener = Callable[[EngineSettings], None]


def merge_settings(base: dict[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``changes`` into a copy of ``base``.

    Nested mappings are merged key by key; any other value replaces the old one.
    """
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            merged[key] = merge_settings(current, value)
        else:
            merged[key] = value
    return merged


class SettingsManager:
    """Owns the current EngineSettings and persists them through a JsonStore.

    Without a store the settings live in memory only.
    """

    DOCUMENT = "settings"

    def __init__(
        self,
        store: JsonStore | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or EngineSettings()
        self._listeners: list[SettingsListener] = []

    def load_settings(self) -> EngineSettings:
        """Load settings from the store, creating the default document if absent.

        Raises:
            ConfigurationError: If the stored document is malformed.
        """
        if self._store is None:
            return self.get_settings()

        data = self._store.read(self.DOCUMENT)
        if data is None:
            self._settings = EngineSettings()
            self._save()
            logger.info("Created default settings document")
            return self.get_settings()

        try:
            self._settings = EngineSettings.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ConfigurationError(f"Invalid settings document: {exc}") from exc
        logger.info("Settings loaded")
        return self.get_settings()

    def get_settings(self) -> EngineSettings:
        """Return a deep copy of the current settings."""
        return self._settings.model_copy(deep=True)

    def save_settings(self, settings: EngineSettings) -> None:
        self._settings = settings.model_copy(deep=True)
        self._save()
        self._notify()

    def update_settings(self, **changes: Any) -> EngineSettings:
        """Merge ``changes`` into the settings and validate the result.

        Nested sections such as ``advanced`` or ``backends`` are merged key by
        key, so a partial update keeps the sibling values.

        Raises:
            ConfigurationError: If the merged settings do not validate.
        """
        merged = merge_settings(self._settings.model_dump(), changes)
        try:
            settings = EngineSettings.model_validate(merged)
        except pydantic.ValidationError as exc:
            raise ConfigurationError(f"Invalid settings: {exc}") from exc
        self.save_settings(settings)
        return self.get_settings()

    def reset_settings(self) -> None:
        self.save_settings(EngineSettings())
        logger.info("Settings reset to defaults")

    def get_backend_config(self, backend_type: str) -> BackendConfig | None:
        config = self._settings.backends.get(str(backend_type))
        return config.model_copy(deep=True) if config is not None else None

    def update_backend_config(
        self,
        backend_type: str,
        config: BackendConfig | Mapping[str, Any],
    ) -> None:
        if not isinstance(config, BackendConfig):
            try:
                config = BackendConfig.model_validate({"type": str(backend_type), **config})
            except pydantic.ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid configuration for backend {backend_type}: {exc}"
                ) from exc
        self._settings.backends[str(backend_type)] = config.model_copy(deep=True)
        self._save()
        self._notify()
        logger.info("Backend config updated for %s", backend_type)

    def remove_backend_config(self, backend_type: str) -> None:
        if self._settings.backends.pop(str(backend_type), None) is None:
            return
        self._save()
        self._notify()
        logger.info("Backend config removed for %s", backend_type)

    def on_change(self, listener: SettingsListener) -> Callable[[], None]:
        """Register a listener called after every change; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _save(self) -> None:
        if self._store is None:
            return
        self._store.write(self.DOCUMENT, self._settings.model_dump(mode="json"))

    def _notify(self) -> None:
        snapshot = self.get_settings()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Settings listener failed")
