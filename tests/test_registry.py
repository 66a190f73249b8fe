# SPDX-License-Identifier: Apache-2.0
"""Tests for backend registration and instance management."""

from __future__ import annotations

import asyncio
import re

import pytest

from translation_engine.config import BackendConfig
from translation_engine.errors import (
    ConfigurationError,
    NotRegisteredError,
    TranslatorError,
)
from translation_engine.models import TranslationRequest
from translation_engine.translators import CustomAdapter, OpenAIAdapter
from translation_engine.translators.registry import (
    BackendRegistry,
    InstanceSpec,
    create_default_registry,
)

from conftest import FakeAdapter, wait_for


class TestRegistration:
    """Tests for registering backend types."""

    def test_register_and_query(self, registry: BackendRegistry) -> None:
        assert registry.is_supported("openai")
        assert not registry.is_supported("deepl")
        assert registry.get_supported_types() == ["openai"]
        registration = registry.get_registration("openai")
        assert registration is not None
        assert registration.display_name == "Fake OpenAI"

    def test_overwrite_replaces_registration(
        self, registry: BackendRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Registering a type twice keeps the second one and warns."""
        other = FakeAdapter()
        registry.register_backend("openai", other.factory, "Other")

        assert registry.get_registration("openai").display_name == "Other"
        assert len(registry.get_all_registrations()) == 1
        assert "already registered" in caplog.text

    def test_config_model_comes_from_adapter_class(self) -> None:
        registry = create_default_registry()
        assert registry.get_registration("openai").config_model is OpenAIAdapter.config_model
        assert registry.get_registration("custom").config_model is CustomAdapter.config_model

    def test_config_model_falls_back_to_base(self, registry: BackendRegistry) -> None:
        assert registry.get_registration("openai").config_model is BackendConfig

    def test_default_registry(self) -> None:
        registry = create_default_registry()
        assert registry.get_supported_types() == ["openai", "custom"]


class TestCreateInstance:
    """Tests for BackendRegistry.create_instance."""

    @pytest.mark.asyncio
    async def test_unknown_type(self, registry: BackendRegistry) -> None:
        with pytest.raises(NotRegisteredError, match="'deepl' is not registered"):
            await registry.create_instance("deepl", {"api_key": "k"})

    @pytest.mark.asyncio
    async def test_creates_initialized_instance(
        self, registry: BackendRegistry, fake_adapter: FakeAdapter
    ) -> None:
        instance = await registry.create_instance("openai", {"api_key": "k"})

        assert instance.is_initialized
        assert fake_adapter.setup_calls == 1
        assert fake_adapter.config.type == "openai"
        ids = list(registry.get_all_instances())
        assert len(ids) == 1
        assert re.fullmatch(r"openai_\d+_[a-z0-9]{5}", ids[0])
        assert registry.get_instance(ids[0]) is instance
        assert registry.get_instance_type(ids[0]) == "openai"

    @pytest.mark.asyncio
    async def test_type_is_forced_to_registered_type(
        self, registry: BackendRegistry, fake_adapter: FakeAdapter
    ) -> None:
        await registry.create_instance("openai", {"type": "custom", "api_key": "k"})
        assert fake_adapter.config.type == "openai"

    @pytest.mark.asyncio
    async def test_invalid_config(self, registry: BackendRegistry) -> None:
        with pytest.raises(ConfigurationError):
            await registry.create_instance("openai", {"timeout": "never"})
        assert registry.get_all_instances() == {}

    @pytest.mark.asyncio
    async def test_initialize_failure_closes_adapter(
        self, registry: BackendRegistry, fake_adapter: FakeAdapter
    ) -> None:
        """A rejected instance is closed and never stored."""
        fake_adapter.valid = False

        with pytest.raises(ConfigurationError, match="Configuration validation failed"):
            await registry.create_instance("openai", {"api_key": "k"}, "main")

        assert registry.get_instance("main") is None
        assert fake_adapter.close_calls == 1

    @pytest.mark.asyncio
    async def test_same_id_replaces_instance(self, registry: BackendRegistry) -> None:
        first_adapter = FakeAdapter()
        second_adapter = FakeAdapter()
        adapters = iter([first_adapter, second_adapter])
        registry.register_backend("openai", lambda config: next(adapters), "Fake")

        first = await registry.create_instance("openai", {"api_key": "k"}, "main")
        second = await registry.create_instance("openai", {"api_key": "k"}, "main")

        assert first is not second
        assert registry.get_instance("main") is second
        assert not first.is_initialized
        assert first_adapter.close_calls == 1
        assert second_adapter.close_calls == 0

    @pytest.mark.asyncio
    async def test_replacing_busy_instance_does_not_block_other_ids(self) -> None:
        """Draining one id for a replacement leaves other ids free to create."""
        busy = FakeAdapter()
        busy.gate = asyncio.Event()
        adapters = iter([busy, FakeAdapter(), FakeAdapter()])
        registry = BackendRegistry()
        registry.register_backend("openai", lambda config: next(adapters), "Fake")
        first = await registry.create_instance("openai", {"api_key": "k"}, "main")
        translating = asyncio.create_task(first.translate(TranslationRequest("Hello", "en", "ja")))
        await wait_for(lambda: len(busy.calls) == 1)

        replacing = asyncio.create_task(
            registry.create_instance("openai", {"api_key": "k"}, "main")
        )
        await wait_for(lambda: not first.is_initialized)
        other = await asyncio.wait_for(
            registry.create_instance("openai", {"api_key": "k"}, "other"), timeout=1.0
        )

        assert other.is_initialized
        assert not replacing.done()
        busy.gate.set()
        assert (await translating).translated_text == "[ja] Hello"
        assert registry.get_instance("main") is await replacing
        assert busy.close_calls == 1

    @pytest.mark.asyncio
    async def test_create_default_instance(self, fake_adapter: FakeAdapter) -> None:
        registry = BackendRegistry()
        registry.register_backend("openai", fake_adapter.factory, "Fake")

        await registry.create_default_instance("openai", "sk-default", model="gpt-4o")

        config = fake_adapter.config
        assert config.enabled is True
        assert config.api_key == "sk-default"
        assert config.timeout == 30.0
        assert config.retry_count == 3
        assert config.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_create_multiple_instances_skips_failures(
        self, registry: BackendRegistry
    ) -> None:
        created = await registry.create_multiple_instances(
            [
                InstanceSpec("openai", {"api_key": "a"}, "first"),
                InstanceSpec("deepl", {"api_key": "b"}, "broken"),
                InstanceSpec("openai", {"api_key": "c"}, "second"),
            ]
        )

        assert list(created) == ["first", "second"]
        assert registry.get_instance("broken") is None


class TestDestroy:
    """Tests for destroying instances and types."""

    @pytest.mark.asyncio
    async def test_destroy_instance(
        self, registry: BackendRegistry, fake_adapter: FakeAdapter
    ) -> None:
        await registry.create_instance("openai", {"api_key": "k"}, "main")

        assert await registry.destroy_instance("main") is True
        assert registry.get_instance("main") is None
        assert fake_adapter.close_calls == 1

    @pytest.mark.asyncio
    async def test_destroy_unknown_instance(self, registry: BackendRegistry) -> None:
        assert await registry.destroy_instance("missing") is False

    @pytest.mark.asyncio
    async def test_destroy_failure_still_removes(
        self, registry: BackendRegistry, fake_adapter: FakeAdapter
    ) -> None:
        await registry.create_instance("openai", {"api_key": "k"}, "main")
        fake_adapter.close_error = RuntimeError("socket already closed")

        assert await registry.destroy_instance("main") is False
        assert registry.get_instance("main") is None

    @pytest.mark.asyncio
    async def test_destroy_all_continues_after_failure(self) -> None:
        failing = FakeAdapter()
        failing.close_error = RuntimeError("boom")
        healthy = FakeAdapter()
        adapters = iter([failing, healthy])
        registry = BackendRegistry()
        registry.register_backend("openai", lambda config: next(adapters), "Fake")
        await registry.create_instance("openai", {"api_key": "k"}, "a")
        await registry.create_instance("openai", {"api_key": "k"}, "b")

        await registry.destroy_all()

        assert registry.get_all_instances() == {}
        assert healthy.close_calls == 1

    @pytest.mark.asyncio
    async def test_unregister_destroys_instances_of_type(self) -> None:
        openai_adapter = FakeAdapter()
        custom_adapter = FakeAdapter(backend_type="custom")
        registry = BackendRegistry()
        registry.register_backend("openai", openai_adapter.factory, "Fake OpenAI")
        registry.register_backend("custom", custom_adapter.factory, "Fake Custom")
        await registry.create_instance("openai", {"api_key": "k"}, "o")
        await registry.create_instance("custom", {"api_key": "k"}, "c")

        await registry.unregister_backend("openai")

        assert not registry.is_supported("openai")
        assert registry.get_instance("o") is None
        assert registry.get_instance("c") is not None
        assert openai_adapter.close_calls == 1
        assert custom_adapter.close_calls == 0

    @pytest.mark.asyncio
    async def test_unregister_unknown_is_noop(self, registry: BackendRegistry) -> None:
        await registry.unregister_backend("deepl")
        assert registry.is_supported("openai")

    @pytest.mark.asyncio
    async def test_cleanup(self, registry: BackendRegistry) -> None:
        await registry.create_instance("openai", {"api_key": "k"})

        await registry.cleanup()

        assert registry.get_all_instances() == {}
        assert registry.get_supported_types() == []


class TestQueries:
    """Tests for availability, reinitialization and stats."""

    @pytest.mark.asyncio
    async def test_available_instances(self) -> None:
        good = FakeAdapter()
        bad = FakeAdapter(fail_texts=("test",))
        adapters = iter([good, bad])
        registry = BackendRegistry()
        registry.register_backend("openai", lambda config: next(adapters), "Fake")
        await registry.create_instance("openai", {"api_key": "k"}, "good")
        await registry.create_instance("openai", {"api_key": "k"}, "bad")

        available = await registry.get_available_instances()

        assert list(available) == ["good"]

    @pytest.mark.asyncio
    async def test_reinitialize_instance(
        self, registry: BackendRegistry, fake_adapter: FakeAdapter
    ) -> None:
        instance = await registry.create_instance("openai", {"api_key": "old"}, "main")

        await registry.reinitialize_instance("main", {"api_key": "new"})

        assert instance.is_initialized
        assert instance.get_config().api_key == "new"
        assert fake_adapter.close_calls == 1
        assert fake_adapter.setup_calls == 2

    @pytest.mark.asyncio
    async def test_reinitialize_unknown_instance(self, registry: BackendRegistry) -> None:
        with pytest.raises(TranslatorError, match="Instance missing not found"):
            await registry.reinitialize_instance("missing")

    @pytest.mark.asyncio
    async def test_stats(self) -> None:
        registry = BackendRegistry()
        registry.register_backend("openai", lambda config: FakeAdapter(config), "Fake")
        registry.register_backend(
            "custom", lambda config: FakeAdapter(config, backend_type="custom"), "Fake"
        )
        await registry.create_instance("openai", {"api_key": "k"})
        await registry.create_instance("openai", {"api_key": "k"}, "second")
        await registry.create_instance("custom", {"api_key": "k"})

        assert registry.get_stats() == {
            "registered_types": 2,
            "active_instances": 3,
            "instances_by_type": {"openai": 2, "custom": 1},
        }
