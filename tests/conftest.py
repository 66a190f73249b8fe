# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: a scriptable backend adapter and aiohttp mocks."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from translation_engine.config import BackendConfig, OpenAIConfig, SettingsManager
from translation_engine.errors import BackendError
from translation_engine.languages import LanguageCode
from translation_engine.storage import MemoryJsonStore
from translation_engine.translators.registry import BackendRegistry


class FakeAdapter:
    """BackendAdapter double that records calls.

    Texts listed in ``fail_texts`` raise BackendError. When ``gate`` is set,
    every call waits on it before answering.
    """

    def __init__(
        self,
        config: BackendConfig | None = None,
        backend_type: str = "openai",
        reply: Callable[[str, str, str], str] | None = None,
        fail_texts: tuple[str, ...] = (),
        languages: list[str] | None = None,
        config_model: type[BackendConfig] = OpenAIConfig,
    ) -> None:
        self.type = backend_type
        self.display_name = f"Fake {backend_type}"
        self.config_model = config_model
        self.config = config or config_model()
        self.reply = reply or (lambda text, source, target: f"[{target}] {text}")
        self.fail_texts = set(fail_texts)
        self.languages = languages
        self.valid = True
        self.gate: asyncio.Event | None = None
        self.close_error: Exception | None = None
        self.calls: list[tuple[str, str, str]] = []
        self.setup_calls = 0
        self.close_calls = 0

    def factory(self, config: BackendConfig) -> FakeAdapter:
        """Adapter factory for a registry that always hands out this adapter."""
        self.config = config
        return self

    def get_supported_languages(self) -> list[str]:
        if self.languages is not None:
            return list(self.languages)
        return [code.value for code in LanguageCode]

    def validate_config(self) -> bool:
        return self.valid

    async def translate_raw(self, text: str, source_lang: str, target_lang: str) -> str:
        self.calls.append((text, source_lang, target_lang))
        if self.gate is not None:
            await self.gate.wait()
        if text in self.fail_texts:
            raise BackendError(f"Backend rejected {text}")
        return self.reply(text, source_lang, target_lang)

    async def setup(self) -> None:
        self.setup_calls += 1

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


def make_response(
    status: int = 200,
    data: Any = None,
    text: str | None = None,
    content_type: str = "application/json",
    reason: str = "OK",
) -> MagicMock:
    """Build the async context manager returned by ``session.request``."""
    if text is None:
        text = json.dumps(data) if data is not None else ""

    response = MagicMock()
    response.status = status
    response.reason = reason
    response.headers = {"Content-Type": content_type}
    response.text = AsyncMock(return_value=text)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=None)
    return context


def make_session(*responses: Any) -> MagicMock:
    """Session whose successive ``request`` calls return or raise ``responses``."""
    session = MagicMock()
    session.request = MagicMock(side_effect=list(responses))
    session.close = AsyncMock()
    return session


async def wait_for(condition: Callable[[], bool], attempts: int = 1000) -> None:
    """Yield to the event loop until ``condition`` holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def registry(fake_adapter: FakeAdapter) -> BackendRegistry:
    registry = BackendRegistry()
    registry.register_backend("openai", fake_adapter.factory, "Fake OpenAI")
    return registry


@pytest.fixture
def store() -> MemoryJsonStore:
    return MemoryJsonStore()


@pytest.fixture
def settings_manager(store: MemoryJsonStore) -> SettingsManager:
    manager = SettingsManager(store)
    manager.load_settings()
    manager.update_backend_config("openai", {"enabled": True, "api_key": "sk-test"})
    return manager
