# SPDX-License-Identifier: Apache-2.0
"""Translation service: caching, history and batch jobs over the registry."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from translation_engine.config import BackendConfig, EngineSettings, SettingsManager
from translation_engine.errors import ConfigurationError
from translation_engine.languages import LanguageCode, detect_language
from translation_engine.models import (
    BatchProgress,
    BatchStatus,
    BatchTask,
    CacheEntry,
    HistoryEntry,
    TranslationRequest,
    TranslationResponse,
    now_ms,
)
from translation_engine.pipeline.cache import (
    TranslationCache,
    TranslationHistory,
    fingerprint,
)
from translation_engine.pipeline.document import (
    extract_translatable_text,
    reassemble_document,
)
from translation_engine.pipeline.errors import (
    BatchFailedError,
    BatchTimeoutError,
    PipelineError,
)
from translation_engine.pipeline.progress import ProgressCallback
from translation_engine.storage import JsonStore
from translation_engine.translators.core import TranslatorCore
from translation_engine.translators.registry import BackendRegistry
from translation_engine.validation import sanitize_html

logger = logging.getLogger(__name__)

HISTORY_DOCUMENT = "translation-history"
CACHE_DOCUMENT = "translation-cache"
CANCELLED_MESSAGE = "Translation cancelled by caller"


class TranslationService:
    """Entry point for translating text.

    ``translate_text`` never raises: failures come back as responses with
    ``status=error``. Identical concurrent requests share one backend call.
    Batch jobs run as asyncio tasks and are observed by polling.

    Example:
        >>> service = TranslationService(create_default_registry(), SettingsManager(store), store)
        >>> await service.initialize()
        >>> response = await service.translate_text(TranslationRequest("Hello", "auto", "ja"))
        >>> await service.destroy()
    """

    # Finished batch tasks kept for polling before the oldest are dropped.
    MAX_FINISHED_TASKS = 100

    def __init__(
        self,
        registry: BackendRegistry,
        settings_manager: SettingsManager,
        store: JsonStore | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize TranslationService.

        Args:
            registry: Registry used to create backend instances.
            settings_manager: Source of backend configs and cache/history flags.
            store: Where history and cache are persisted. Nothing is
                persisted when omitted.
            progress_callback: Notified after every batch chunk.
        """
        self._registry = registry
        self._settings_manager = settings_manager
        self._store = store
        self._progress_callback = progress_callback

        advanced = settings_manager.get_settings().advanced
        self._cache = TranslationCache(advanced.cache_size)
        self._history = TranslationHistory(advanced.history_size)

        self._tasks: dict[str, BatchTask] = {}
        self._runners: dict[str, asyncio.Task[None]] = {}
        self._in_flight: dict[str, asyncio.Future[TranslationResponse]] = {}
        self._instance_locks: dict[str, asyncio.Lock] = {}
        self._instance_configs: dict[str, BackendConfig] = {}
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def cache(self) -> TranslationCache:
        return self._cache

    @property
    def history(self) -> TranslationHistory:
        return self._history

    async def initialize(self) -> None:
        """Load history and cache. Unreadable documents start empty."""
        self._load_state()
        self._initialized = True
        logger.info(
            "Translation service initialized (%d cached, %d history entries)",
            len(self._cache),
            len(self._history),
        )

    async def destroy(self) -> None:
        """Stop batch jobs, persist state and release backend instances."""
        for task in self._tasks.values():
            if not task.status.is_terminal:
                task.cancel_requested = True
        runners = list(self._runners.values())
        if runners:
            await asyncio.gather(*runners, return_exceptions=True)

        self.save_state()
        self._cache.clear()
        self._history.clear()
        self._tasks.clear()

        for backend_type in list(self._instance_configs):
            await self._registry.destroy_instance(self._service_instance_id(backend_type))
        self._instance_configs.clear()
        self._initialized = False
        logger.info("Translation service destroyed")

    # Single requests

    async def translate_text(self, request: TranslationRequest) -> TranslationResponse:
        """Translate one request, consulting the cache first.

        Returns:
            A success response, or an error response carrying the message.
        """
        settings = self._settings_manager.get_settings()
        backend_type = str(request.backend_type or settings.default_backend)
        source_lang = str(request.source_lang or LanguageCode.AUTO.value)
        target_lang = str(request.target_lang)

        if not self._initialized:
            return TranslationResponse.failure(
                request.text, source_lang, target_lang, backend_type,
                "Service not initialized",
            )

        key = fingerprint(request.text, source_lang, target_lang, backend_type)
        if settings.advanced.enable_cache:
            entry = self._cache.get(key)
            if entry is not None:
                logger.debug("Cache hit for %s", key[:12])
                return entry.to_response()

        while (pending := self._in_flight.get(key)) is not None:
            try:
                response = await asyncio.shield(pending)
            except asyncio.CancelledError:
                # The leading call was cancelled; take over unless we were.
                if pending.cancelled():
                    continue
                raise
            return dataclasses.replace(response)

        future: asyncio.Future[TranslationResponse] = (
            asyncio.get_running_loop().create_future()
        )
        self._in_flight[key] = future
        try:
            response = await self._translate_uncached(
                request, settings, key, backend_type, source_lang, target_lang
            )
        except BaseException:
            future.cancel()
            raise
        finally:
            self._in_flight.pop(key, None)
        future.set_result(response)
        return response

    async def _translate_uncached(
        self,
        request: TranslationRequest,
        settings: EngineSettings,
        key: str,
        backend_type: str,
        source_lang: str,
        target_lang: str,
    ) -> TranslationResponse:
        max_tokens = request.max_tokens or settings.advanced.max_tokens
        try:
            instance = await self._acquire_instance(backend_type, settings, max_tokens)
            response = await instance.translate(
                TranslationRequest(
                    text=sanitize_html(request.text),
                    source_lang=source_lang,
                    target_lang=target_lang,
                    backend_type=backend_type,
                    max_tokens=max_tokens,
                )
            )
        except Exception as exc:
            logger.error("Translation failed with %s: %s", backend_type, exc)
            return TranslationResponse.failure(
                request.text, source_lang, target_lang, backend_type, str(exc)
            )

        response.original_text = request.text
        if settings.advanced.enable_cache:
            self._cache.put(
                CacheEntry(
                    fingerprint=key,
                    original_text=request.text,
                    translated_text=response.translated_text,
                    source_lang=source_lang,
                    target_lang=target_lang,
                    backend_type=backend_type,
                )
            )
        if settings.advanced.enable_history:
            self._history.add(HistoryEntry.from_response(response))
        logger.info("Translation completed: %.50s", request.text)
        return response

    async def batch_translate(
        self,
        requests: Iterable[TranslationRequest],
    ) -> list[TranslationResponse]:
        """Translate requests one after another; failures stay in place."""
        return [await self.translate_text(request) for request in requests]

    @staticmethod
    def _service_instance_id(backend_type: str) -> str:
        return f"{backend_type}_service"

    async def _acquire_instance(
        self,
        backend_type: str,
        settings: EngineSettings,
        max_tokens: int,
        instance_id: str | None = None,
    ) -> TranslatorCore:
        """Return an initialized instance for ``backend_type``.

        The service keeps one instance per backend type and recreates it when
        the effective configuration changes. Acquisition is serialized per
        backend type, so recreating one backend never blocks the others.

        Raises:
            ConfigurationError: If the backend is not configured or disabled.
        """
        config = settings.backends.get(backend_type)
        if config is None:
            raise ConfigurationError(f"Backend {backend_type} is not configured")
        if not config.enabled:
            raise ConfigurationError(f"Backend {backend_type} is disabled")
        effective = config.model_copy(update={"max_tokens": max_tokens})

        if instance_id is not None:
            return await self._registry.create_instance(backend_type, effective, instance_id)

        instance_id = self._service_instance_id(backend_type)
        lock = self._instance_locks.setdefault(backend_type, asyncio.Lock())
        async with lock:
            instance = self._registry.get_instance(instance_id)
            if (
                instance is not None
                and instance.is_initialized
                and self._instance_configs.get(backend_type) == effective
            ):
                return instance
            instance = await self._registry.create_instance(backend_type, effective, instance_id)
            self._instance_configs[backend_type] = effective
            return instance

    # Batch jobs

    def start_batch_translation(
        self,
        texts: Sequence[str],
        source_lang: str = LanguageCode.AUTO.value,
        target_lang: str | None = None,
        backend_type: str | None = None,
    ) -> str:
        """Schedule a batch job and return its task id at once.

        Must be called from a running event loop.
        """
        settings = self._settings_manager.get_settings()
        task = BatchTask(
            id=str(uuid.uuid4()),
            texts=list(texts),
            source_lang=str(source_lang or LanguageCode.AUTO.value),
            target_lang=str(target_lang or settings.default_target_lang),
            backend_type=str(backend_type or settings.default_backend),
        )
        self._prune_finished_tasks()
        self._tasks[task.id] = task
        runner = asyncio.create_task(self._execute_batch(task), name=f"batch-{task.id}")
        self._runners[task.id] = runner
        runner.add_done_callback(lambda _: self._runners.pop(task.id, None))
        logger.info("Batch %s started with %d chunks", task.id, len(task.texts))
        return task.id

    async def _execute_batch(self, task: BatchTask) -> None:
        task.status = BatchStatus.RUNNING
        task.start_time = now_ms()
        instance_id = f"{task.backend_type}_batch_{task.id}"
        instance: TranslatorCore | None = None
        try:
            settings = self._settings_manager.get_settings()
            instance = await self._acquire_instance(
                task.backend_type, settings, settings.advanced.max_tokens, instance_id
            )
            cancelled = await self._run_chunks(task, instance)
        except asyncio.CancelledError:
            self._finish(task, BatchStatus.FAILED, CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            logger.error("Batch %s failed: %s", task.id, exc)
            self._finish(task, BatchStatus.FAILED, str(exc))
        else:
            if cancelled:
                logger.info("Batch %s cancelled after %d chunks", task.id, len(task.results))
                self._finish(task, BatchStatus.FAILED, CANCELLED_MESSAGE)
            else:
                logger.info(
                    "Batch %s completed: %d chunks, %d errors",
                    task.id, len(task.texts), len(task.errors),
                )
                self._finish(task, BatchStatus.COMPLETED)
        finally:
            if instance is not None:
                await self._registry.destroy_instance(instance_id)

    async def _run_chunks(self, task: BatchTask, instance: TranslatorCore) -> bool:
        """Translate chunks in order; returns True if cancellation stopped the loop."""
        total = len(task.texts)
        for index, text in enumerate(task.texts):
            if task.cancel_requested:
                return True
            try:
                response = await instance.translate(
                    TranslationRequest(
                        text=sanitize_html(text),
                        source_lang=task.source_lang,
                        target_lang=task.target_lang,
                        backend_type=task.backend_type,
                    )
                )
                response.original_text = text
            except Exception as exc:
                logger.warning("Batch %s chunk %d failed: %s", task.id, index, exc)
                task.errors.append(str(exc))
                response = TranslationResponse.failure(
                    text, task.source_lang, task.target_lang, task.backend_type, str(exc)
                )
            task.results.append(response)
            task.progress = (index + 1) / total * 100
            self._notify("batch", index + 1, total, task.id)
        return False

    @staticmethod
    def _finish(task: BatchTask, status: BatchStatus, error: str | None = None) -> None:
        if error is not None:
            task.errors.append(error)
        if status == BatchStatus.COMPLETED:
            task.progress = 100.0
        task.status = status
        task.end_time = now_ms()

    def get_batch_task(self, task_id: str) -> BatchTask | None:
        return self._tasks.get(task_id)

    def get_batch_progress(self, task_id: str) -> BatchProgress | None:
        task = self._tasks.get(task_id)
        return task.snapshot() if task is not None else None

    def cancel_batch_translation(self, task_id: str) -> bool:
        """Ask a batch job to stop before its next chunk.

        Returns:
            False if the task is unknown or already finished.
        """
        task = self._tasks.get(task_id)
        if task is None or task.status.is_terminal:
            return False
        task.cancel_requested = True
        logger.info("Cancellation requested for batch %s", task_id)
        return True

    def remove_batch_task(self, task_id: str) -> bool:
        """Forget a finished batch task.

        Returns:
            False if the task is unknown or still running.
        """
        task = self._tasks.get(task_id)
        if task is None or not task.status.is_terminal:
            return False
        del self._tasks[task_id]
        return True

    def _prune_finished_tasks(self) -> None:
        """Drop the oldest finished tasks beyond MAX_FINISHED_TASKS."""
        finished = [task_id for task_id, task in self._tasks.items() if task.status.is_terminal]
        for task_id in finished[: max(0, len(finished) - self.MAX_FINISHED_TASKS)]:
            del self._tasks[task_id]

    async def wait_for_batch_completion(
        self,
        task_id: str,
        poll_interval: float = 1.0,
        timeout: float | None = None,
    ) -> BatchTask:
        """Poll until the task is completed or failed.

        Raises:
            PipelineError: If the task is unknown.
            BatchTimeoutError: If ``timeout`` seconds pass first.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        while True:
            task = self._tasks.get(task_id)
            if task is None:
                raise PipelineError(f"Batch task {task_id} not found", stage="batch")
            if task.status.is_terminal:
                return task
            if deadline is not None and loop.time() >= deadline:
                raise BatchTimeoutError(
                    f"Batch task {task_id} did not finish within {timeout}s",
                    stage="batch",
                )
            await asyncio.sleep(poll_interval)

    async def translate_document(
        self,
        content: str,
        target_lang: str | None = None,
        backend_type: str | None = None,
        poll_interval: float = 1.0,
    ) -> str:
        """Translate the prose lines of a Markdown document.

        Raises:
            BatchFailedError: If the underlying batch job fails.
        """
        blocks = extract_translatable_text(content)
        if not blocks:
            return content

        task_id = self.start_batch_translation(
            [block.text for block in blocks],
            LanguageCode.AUTO.value,
            target_lang,
            backend_type,
        )
        task = await self.wait_for_batch_completion(task_id, poll_interval)
        self.remove_batch_task(task_id)
        if task.status != BatchStatus.COMPLETED:
            detail = task.errors[-1] if task.errors else "unknown error"
            raise BatchFailedError(
                f"Batch translation failed: {detail}", stage="document"
            )
        return reassemble_document(content, blocks, task.results)

    # History, cache and persistence

    def get_history(self, limit: int | None = None) -> list[HistoryEntry]:
        return self._history.get(limit)

    def clear_cache(self) -> None:
        self._cache.clear()
        self._save_document(CACHE_DOCUMENT, self._cache.to_list())
        logger.info("Translation cache cleared")

    def clear_history(self) -> None:
        self._history.clear()
        self._save_document(HISTORY_DOCUMENT, self._history.to_list())
        logger.info("Translation history cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        return self._cache.stats()

    @staticmethod
    def detect_language(text: str) -> LanguageCode:
        return detect_language(text)

    def save_state(self) -> None:
        """Persist history and cache. Failures are logged."""
        self._save_document(HISTORY_DOCUMENT, self._history.to_list())
        self._save_document(CACHE_DOCUMENT, self._cache.to_list())

    def _load_state(self) -> None:
        history = self._load_document(HISTORY_DOCUMENT)
        if history is not None:
            self._history.load(history)
        cache = self._load_document(CACHE_DOCUMENT)
        if cache is not None:
            self._cache.load(cache)

    def _load_document(self, name: str) -> list[Any] | None:
        if self._store is None:
            return None
        try:
            data = self._store.read(name)
        except Exception:
            logger.exception("Failed to load %s, starting empty", name)
            return None
        if data is None:
            return None
        if not isinstance(data, list):
            logger.error("Ignoring %s: expected a list, got %s", name, type(data).__name__)
            return None
        return data

    def _save_document(self, name: str, data: list[dict[str, Any]]) -> None:
        if self._store is None:
            return
        try:
            self._store.write(name, data)
        except Exception:
            logger.exception("Failed to save %s", name)
        else:
            logger.debug("Saved %s (%d entries)", name, len(data))

    def _notify(self, stage: str, current: int, total: int, message: str = "") -> None:
        if self._progress_callback is None:
            return
        try:
            self._progress_callback(stage, current, total, message)
        except Exception:
            logger.exception("Progress callback failed")
