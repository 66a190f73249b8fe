# SPDX-License-Identifier: Apache-2.0
"""Backend registration and live translator instances."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import string
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from translation_engine.config import BackendConfig
from translation_engine.errors import NotRegisteredError, TranslatorError
from translation_engine.models import BackendType, now_ms
from translation_engine.translators.base import BackendAdapter
from translation_engine.translators.core import TranslatorCore, coerce_config
from translation_engine.translators.custom import CustomAdapter
from translation_engine.translators.openai import OpenAIAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[BackendConfig], BackendAdapter]

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class BackendRegistration:
    """How to build adapters for one backend type."""

    type: str
    adapter_cls: AdapterFactory
    display_name: str
    description: str = ""

    @property
    def config_model(self) -> type[BackendConfig]:
        return getattr(self.adapter_cls, "config_model", BackendConfig)


@dataclass(frozen=True)
class InstanceSpec:
    """Arguments for one ``create_multiple_instances`` entry."""

    type: str
    config: BackendConfig | Mapping[str, Any]
    instance_id: str | None = None


class BackendRegistry:
    """Maps backend types to adapters and owns live TranslatorCore instances.

    Instances are keyed by an id, ``<type>_<ms>_<random>`` unless the caller
    supplies one. Work on one id is serialized with a lock per id, so replacing
    an instance (destroy, then create) is atomic while instances under other
    ids stay usable.
    """

    def __init__(self) -> None:
        self._registrations: dict[str, BackendRegistration] = {}
        self._instances: dict[str, TranslatorCore] = {}
        self._instance_types: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def register_backend(
        self,
        backend_type: str,
        adapter_cls: AdapterFactory,
        display_name: str,
        description: str = "",
    ) -> None:
        """Register (or overwrite) a backend type."""
        backend_type = str(backend_type)
        if backend_type in self._registrations:
            logger.warning("Backend %s is already registered, overwriting", backend_type)
        self._registrations[backend_type] = BackendRegistration(
            type=backend_type,
            adapter_cls=adapter_cls,
            display_name=display_name,
            description=description,
        )
        logger.info("Backend registered: %s (%s)", display_name, backend_type)

    async def unregister_backend(self, backend_type: str) -> None:
        """Destroy every instance of ``backend_type``, then forget the type."""
        backend_type = str(backend_type)
        if backend_type not in self._registrations:
            logger.warning("Backend %s is not registered", backend_type)
            return
        for instance_id in self._ids_of_type(backend_type):
            await self.destroy_instance(instance_id)
        self._registrations.pop(backend_type, None)
        logger.info("Backend unregistered: %s", backend_type)

    async def create_instance(
        self,
        backend_type: str,
        config: BackendConfig | Mapping[str, Any],
        instance_id: str | None = None,
    ) -> TranslatorCore:
        """Create and initialize a translator for ``backend_type``.

        An existing instance with the same id is destroyed first.

        Args:
            backend_type: Registered backend type.
            config: Backend configuration, validated into the adapter's
                config model.
            instance_id: Id to store the instance under.

        Returns:
            The initialized translator.

        Raises:
            NotRegisteredError: If ``backend_type`` is unknown.
            ConfigurationError: If the configuration does not validate.
        """
        _, instance = await self._create(backend_type, config, instance_id)
        return instance

    async def _create(
        self,
        backend_type: str,
        config: BackendConfig | Mapping[str, Any],
        instance_id: str | None,
    ) -> tuple[str, TranslatorCore]:
        backend_type = str(backend_type)
        registration = self._registrations.get(backend_type)
        if registration is None:
            raise NotRegisteredError(backend_type)

        data = config.model_dump() if isinstance(config, BackendConfig) else dict(config)
        typed_config = coerce_config(registration.config_model, {**data, "type": backend_type})

        instance_id = instance_id or self._generate_instance_id(backend_type)
        async with self._instance_lock(instance_id):
            if instance_id in self._instances:
                logger.warning("Instance %s already exists, destroying old instance", instance_id)
                await self._destroy_locked(instance_id)

            instance = TranslatorCore(registration.adapter_cls(typed_config))
            try:
                await instance.initialize()
            except Exception:
                logger.error("Failed to create %s instance %s", backend_type, instance_id)
                await instance.adapter.close()
                raise

            self._instances[instance_id] = instance
            self._instance_types[instance_id] = backend_type

        logger.info("Instance created: %s (%s)", registration.display_name, instance_id)
        return instance_id, instance

    def get_instance(self, instance_id: str) -> TranslatorCore | None:
        return self._instances.get(instance_id)

    def get_instance_type(self, instance_id: str) -> str | None:
        return self._instance_types.get(instance_id)

    def get_all_instances(self) -> dict[str, TranslatorCore]:
        return dict(self._instances)

    async def destroy_instance(self, instance_id: str) -> bool:
        """Destroy one instance.

        Returns:
            True if the instance existed and closed cleanly. Failures are
            logged, and the instance is dropped either way.
        """
        async with self._instance_lock(instance_id):
            return await self._destroy_locked(instance_id)

    async def _destroy_locked(self, instance_id: str) -> bool:
        instance = self._instances.pop(instance_id, None)
        self._instance_types.pop(instance_id, None)
        if instance is None:
            logger.warning("Instance %s not found", instance_id)
            return False
        try:
            await instance.destroy()
        except Exception:
            logger.exception("Failed to destroy instance %s", instance_id)
            return False
        logger.info("Instance destroyed: %s", instance_id)
        return True

    async def destroy_all(self) -> None:
        """Destroy every instance; one failure does not stop the rest."""
        for instance_id in list(self._instances):
            await self.destroy_instance(instance_id)
        logger.info("All instances destroyed")

    def get_supported_types(self) -> list[str]:
        return list(self._registrations)

    def get_registration(self, backend_type: str) -> BackendRegistration | None:
        return self._registrations.get(str(backend_type))

    def get_all_registrations(self) -> list[BackendRegistration]:
        return list(self._registrations.values())

    def is_supported(self, backend_type: str) -> bool:
        return str(backend_type) in self._registrations

    async def create_default_instance(
        self,
        backend_type: str,
        api_key: str,
        **options: Any,
    ) -> TranslatorCore:
        """Create an enabled instance with default timeout and retries."""
        config = {
            "type": str(backend_type),
            "name": str(backend_type),
            "enabled": True,
            "api_key": api_key,
            "timeout": 30.0,
            "retry_count": 3,
            **options,
        }
        return await self.create_instance(backend_type, config)

    async def create_multiple_instances(
        self,
        specs: Iterable[InstanceSpec],
    ) -> dict[str, TranslatorCore]:
        """Create several instances, skipping (and logging) the ones that fail."""
        created: dict[str, TranslatorCore] = {}
        failures = 0
        for spec in specs:
            try:
                instance_id, instance = await self._create(
                    spec.type, spec.config, spec.instance_id
                )
            except TranslatorError as exc:
                failures += 1
                logger.error("Failed to create %s instance: %s", spec.type, exc)
                continue
            created[instance_id] = instance
        if failures:
            logger.warning("%d instance(s) failed to create", failures)
        return created

    async def get_available_instances(self) -> dict[str, TranslatorCore]:
        """Return the instances whose availability check succeeds."""
        available: dict[str, TranslatorCore] = {}
        for instance_id, instance in list(self._instances.items()):
            try:
                if await instance.is_available():
                    available[instance_id] = instance
            except Exception:
                logger.warning("Availability check failed for %s", instance_id, exc_info=True)
        return available

    async def reinitialize_instance(
        self,
        instance_id: str,
        config: BackendConfig | Mapping[str, Any] | None = None,
    ) -> None:
        """Destroy and initialize an instance in place.

        Raises:
            TranslatorError: If the instance does not exist.
            ConfigurationError: If the new configuration is rejected.
        """
        async with self._instance_lock(instance_id):
            instance = self._instances.get(instance_id)
            if instance is None:
                raise TranslatorError(f"Instance {instance_id} not found")
            await instance.destroy()
            await instance.initialize(config)
        logger.info("Instance %s reinitialized", instance_id)

    def get_stats(self) -> dict[str, Any]:
        instances_by_type: dict[str, int] = {}
        for backend_type in self._instance_types.values():
            instances_by_type[backend_type] = instances_by_type.get(backend_type, 0) + 1
        return {
            "registered_types": len(self._registrations),
            "active_instances": len(self._instances),
            "instances_by_type": instances_by_type,
        }

    async def cleanup(self) -> None:
        """Destroy all instances and drop all registrations."""
        logger.info("Cleaning up backend registry")
        await self.destroy_all()
        self._registrations.clear()

    @contextlib.asynccontextmanager
    async def _instance_lock(self, instance_id: str) -> AsyncIterator[None]:
        """Hold the lock for ``instance_id``; it is dropped once nobody waits on it."""
        lock = self._locks.setdefault(instance_id, asyncio.Lock())
        self._lock_users[instance_id] = self._lock_users.get(instance_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[instance_id] -= 1
            if not self._lock_users[instance_id]:
                del self._lock_users[instance_id]
                del self._locks[instance_id]

    def _ids_of_type(self, backend_type: str) -> list[str]:
        return [
            instance_id
            for instance_id, instance_type in self._instance_types.items()
            if instance_type == backend_type
        ]

    @staticmethod
    def _generate_instance_id(backend_type: str) -> str:
        suffix = "".join(random.choices(_ID_ALPHABET, k=5))
        return f"{backend_type}_{now_ms()}_{suffix}"


def create_default_registry() -> BackendRegistry:
    """Return a registry with the built-in OpenAI and custom backends."""
    registry = BackendRegistry()
    registry.register_backend(
        BackendType.OPENAI,
        OpenAIAdapter,
        "OpenAI",
        "OpenAI-compatible chat completion API",
    )
    registry.register_backend(
        BackendType.CUSTOM,
        CustomAdapter,
        "Custom",
        "User-configured HTTP translation API",
    )
    return registry
