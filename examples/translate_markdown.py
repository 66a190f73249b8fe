#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
"""Markdown translation example.

Shows the basic use of translation-engine: configure a backend, translate a
single sentence, then translate a Markdown document as a batch job.

Usage:
    cd examples
    python translate_markdown.py

Environment variables (read from .env automatically):
    OPENAI_API_KEY: required for the openai backend
    OPENAI_MODEL: model override (default: gpt-3.5-turbo)
    CUSTOM_ENDPOINT: required for the custom backend
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")


# =============================================================================
# Settings
# =============================================================================

# Backend: "openai" | "custom"
BACKEND = "openai"

TARGET_LANG = "ja"

# Keep cache and history under this directory between runs. None keeps
# everything in memory.
STATE_DIR: Path | None = Path(__file__).parent / "state"

SAMPLE_TEXT = "Translation engines hide provider differences behind one interface."

SAMPLE_DOCUMENT = """\
# Release notes

The cache now survives restarts.

- Batch jobs can be cancelled.
- Failed chunks keep their position.

```python
print("code blocks are left alone")
```
"""


# =============================================================================
# Main
# =============================================================================


def backend_config(backend: str) -> dict[str, object]:
    """Build the backend config from the environment."""
    if backend == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            print("Error: OPENAI_API_KEY environment variable is not set")
            sys.exit(1)
        return {"enabled": True, "api_key": api_key}

    if backend == "custom":
        endpoint = os.environ.get("CUSTOM_ENDPOINT")
        if not endpoint:
            print("Error: CUSTOM_ENDPOINT environment variable is not set")
            sys.exit(1)
        return {"enabled": True, "endpoint": endpoint}

    print(f"Error: Unknown backend: {backend}")
    print("Available options: openai, custom")
    sys.exit(1)


def print_progress(stage: str, current: int, total: int, message: str) -> None:
    print(f"  [{stage}] {current}/{total} {message}")


async def main() -> None:
    from translation_engine import (
        FileJsonStore,
        MemoryJsonStore,
        SettingsManager,
        TranslationRequest,
        TranslationService,
        create_default_registry,
    )

    store = FileJsonStore(STATE_DIR) if STATE_DIR else MemoryJsonStore()
    settings = SettingsManager(store)
    settings.load_settings()
    settings.update_settings(default_backend=BACKEND, default_target_lang=TARGET_LANG)
    settings.update_backend_config(BACKEND, backend_config(BACKEND))

    service = TranslationService(
        create_default_registry(), settings, store, progress_callback=print_progress
    )
    await service.initialize()

    print("=" * 60)
    print(f"Backend: {BACKEND}  Target: {TARGET_LANG}")
    print("=" * 60)

    try:
        response = await service.translate_text(
            TranslationRequest(SAMPLE_TEXT, "auto", TARGET_LANG, BACKEND)
        )
        if response.error:
            print(f"Error: {response.error}")
        else:
            print(response.translated_text)

        print("\nTranslating document...")
        translated = await service.translate_document(SAMPLE_DOCUMENT, poll_interval=0.2)
        print(translated)

        stats = service.get_cache_stats()
        print(f"Cache entries: {stats['size']}/{stats['max_size']}")
    finally:
        await service.destroy()


if __name__ == "__main__":
    asyncio.run(main())
