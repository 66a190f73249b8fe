# SPDX-License-Identifier: Apache-2.0
"""Translation backends.

A backend is a ``BackendAdapter`` (request shaping and response parsing)
wrapped in a ``TranslatorCore`` (validation, preprocessing, lifecycle).
Instances are created through a ``BackendRegistry``.

Usage:
    from translation_engine.translators import create_default_registry

    registry = create_default_registry()
    translator = await registry.create_default_instance("openai", api_key="sk-...")
    response = await translator.translate(TranslationRequest("Hello", "en", "ja"))
"""

from translation_engine.translators.base import (
    BackendAdapter,
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
from translation_engine.translators.core import TranslatorCore, TranslatorState
from translation_engine.translators.custom import CustomAdapter
from translation_engine.translators.openai import OpenAIAdapter
from translation_engine.translators.registry import (
    BackendRegistration,
    BackendRegistry,
    InstanceSpec,
    create_default_registry,
)

__all__ = [
    # Protocol and core
    "BackendAdapter",
    "TranslatorCore",
    "TranslatorState",
    # Adapters
    "OpenAIAdapter",
    "CustomAdapter",
    # Registry
    "BackendRegistration",
    "BackendRegistry",
    "InstanceSpec",
    "create_default_registry",
    # Exceptions
    "TranslatorError",
    "ConfigurationError",
    "NotRegisteredError",
    "NotInitializedError",
    "ValidationError",
    "BackendError",
    "UnknownError",
    "ErrorCode",
    "classify_error",
]
