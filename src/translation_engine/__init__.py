# SPDX-License-Identifier: Apache-2.0
"""Translation orchestration engine.

Translates text through pluggable HTTP backends with retries, caching,
history and batch jobs.

Usage:
    from translation_engine import (
        SettingsManager,
        TranslationRequest,
        TranslationService,
        create_default_registry,
    )

    settings = SettingsManager()
    settings.update_backend_config("openai", {"enabled": True, "api_key": "sk-..."})
    service = TranslationService(create_default_registry(), settings)
    await service.initialize()
    response = await service.translate_text(TranslationRequest("Hello", "auto", "ja"))
"""

from translation_engine.config import (
    AdvancedSettings,
    BackendConfig,
    CustomConfig,
    EngineSettings,
    OpenAIConfig,
    SettingsManager,
)
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
from translation_engine.languages import LanguageCode, detect_language, get_language_name
from translation_engine.models import (
    BackendType,
    BatchProgress,
    BatchStatus,
    BatchTask,
    CacheEntry,
    HistoryEntry,
    TranslationRequest,
    TranslationResponse,
    TranslationStatus,
)
from translation_engine.pipeline import PipelineError, TranslationService
from translation_engine.storage import FileJsonStore, JsonStore, MemoryJsonStore
from translation_engine.translators import (
    BackendRegistry,
    TranslatorCore,
    create_default_registry,
)
from translation_engine.transport import Transport, TransportError, TransportResponse

__version__ = "0.1.0"

__all__ = [
    # Service
    "TranslationService",
    "PipelineError",
    # Backends
    "BackendRegistry",
    "TranslatorCore",
    "create_default_registry",
    "Transport",
    "TransportResponse",
    # Settings and storage
    "AdvancedSettings",
    "BackendConfig",
    "CustomConfig",
    "EngineSettings",
    "OpenAIConfig",
    "SettingsManager",
    "JsonStore",
    "FileJsonStore",
    "MemoryJsonStore",
    # Models
    "BackendType",
    "BatchProgress",
    "BatchStatus",
    "BatchTask",
    "CacheEntry",
    "HistoryEntry",
    "LanguageCode",
    "TranslationRequest",
    "TranslationResponse",
    "TranslationStatus",
    "detect_language",
    "get_language_name",
    # Exceptions
    "TranslatorError",
    "ConfigurationError",
    "NotRegisteredError",
    "NotInitializedError",
    "ValidationError",
    "TransportError",
    "BackendError",
    "UnknownError",
    "ErrorCode",
    "classify_error",
]
