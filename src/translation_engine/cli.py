# SPDX-License-Identifier: Apache-2.0
"""
Translation Engine - CLI Tool

Translates text through the configured backends, with caching and history
kept in a settings directory.

Usage:
    translation-engine translate <text> [options]
    translation-engine batch <file> [options]
    translation-engine languages

Examples:
    translation-engine translate "Hello" --to ja
    translation-engine translate "Bonjour" --from fr --to en --backend custom
    translation-engine batch chapters.txt --to zh-CN
    translation-engine batch README.md --markdown --to ja
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

from dotenv import load_dotenv

from translation_engine.config import SettingsManager
from translation_engine.errors import TranslatorError
from translation_engine.languages import LANGUAGE_NAMES, LanguageCode
from translation_engine.models import BackendType, BatchStatus, TranslationRequest
from translation_engine.pipeline import PipelineError, TranslationService
from translation_engine.storage import FileJsonStore, JsonStore, MemoryJsonStore
from translation_engine.translators import create_default_registry

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument Namespace.
    """
    parser = argparse.ArgumentParser(
        prog="translation-engine",
        description="Translate text through pluggable translation backends",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  OPENAI_API_KEY   OpenAI API key (used when --api-key is not given)
  OPENAI_MODEL     OpenAI model (used when --model is not given)
""",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-f",
        "--from",
        dest="source",
        default=LanguageCode.AUTO.value,
        help="Source language code (default: auto)",
    )
    common.add_argument(
        "-t",
        "--to",
        dest="target",
        default=None,
        help="Target language code (default: from settings)",
    )
    common.add_argument(
        "-b",
        "--backend",
        default=None,
        help="Backend type (default: from settings)",
    )
    common.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory holding settings, cache and history (default: in memory)",
    )
    common.add_argument(
        "--api-key",
        default=None,
        help="API key for the selected backend",
    )
    common.add_argument(
        "--model",
        default=None,
        help="Model for the OpenAI backend",
    )
    common.add_argument(
        "--endpoint",
        default=None,
        help="Endpoint URL for the custom backend",
    )
    common.add_argument(
        "--max-tokens",
        type=int,
        default=None,
        help="Completion token limit for LLM backends",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    translate_parser = subparsers.add_parser(
        "translate", parents=[common], help="Translate a single text"
    )
    translate_parser.add_argument("text", help="Text to translate")

    batch_parser = subparsers.add_parser(
        "batch", parents=[common], help="Translate a file line by line"
    )
    batch_parser.add_argument("input", type=Path, help="Input text file")
    batch_parser.add_argument(
        "--markdown",
        action="store_true",
        help="Treat the input as Markdown and print the translated document",
    )
    batch_parser.add_argument(
        "--poll-interval",
        type=float,
        default=1.0,
        help="Seconds between progress checks (default: 1.0)",
    )

    subparsers.add_parser("languages", help="List supported language codes")

    return parser.parse_args(argv)


def create_store(config_dir: Path | None) -> JsonStore:
    if config_dir is None:
        return MemoryJsonStore()
    return FileJsonStore(config_dir)


def apply_overrides(settings_manager: SettingsManager, args: argparse.Namespace) -> str | None:
    """Fold command line and environment credentials into the settings.

    Returns:
        An error message if the selected backend cannot be used.
    """
    settings = settings_manager.get_settings()
    backend_type = args.backend or settings.default_backend
    config = settings_manager.get_backend_config(backend_type)
    if config is None:
        return f"Backend {backend_type} is not configured"

    changes: dict[str, object] = {}
    if backend_type == BackendType.OPENAI.value:
        api_key = args.api_key or config.api_key or os.environ.get("OPENAI_API_KEY", "")
        if not api_key:
            return (
                "OpenAI API key is required for --backend openai.\n"
                "  Set --api-key option or OPENAI_API_KEY environment variable."
            )
        changes["api_key"] = api_key
        if args.model:
            changes["model"] = args.model
    elif backend_type == BackendType.CUSTOM.value:
        endpoint = args.endpoint or getattr(config, "endpoint", "")
        if not endpoint:
            return "Endpoint is required for --backend custom. Set --endpoint option."
        changes["endpoint"] = endpoint
        if args.api_key:
            changes["api_key"] = args.api_key
    elif args.api_key:
        changes["api_key"] = args.api_key

    changes["enabled"] = True
    settings_manager.update_backend_config(
        backend_type, {**config.model_dump(), **changes}
    )
    return None


def print_progress(stage: str, current: int, total: int, message: str = "") -> None:
    print(f"\r[{stage}] {current}/{total}", end="", file=sys.stderr, flush=True)
    if current == total:
        print(file=sys.stderr)


async def run(args: argparse.Namespace) -> int:
    """Execute the selected command.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0: success, 1: failure).
    """
    if args.command == "languages":
        for code in LanguageCode:
            print(f"{code.value}\t{LANGUAGE_NAMES.get(code.value, code.value)}")
        return 0

    store = create_store(args.config_dir)
    settings_manager = SettingsManager(store)
    try:
        settings = settings_manager.load_settings()
    except TranslatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.config_dir is not None and not args.verbose:
        logging.getLogger().setLevel(settings.advanced.log_level.upper())

    error = apply_overrides(settings_manager, args)
    if error:
        print(f"Error: {error}", file=sys.stderr)
        return 1

    backend_type = args.backend or settings.default_backend
    target = args.target or settings.default_target_lang

    service = TranslationService(
        create_default_registry(),
        settings_manager,
        store,
        progress_callback=print_progress,
    )
    await service.initialize()
    try:
        if args.command == "translate":
            return await _run_translate(service, args, backend_type, target)
        return await _run_batch(service, args, backend_type, target)
    finally:
        await service.destroy()


async def _run_translate(
    service: TranslationService,
    args: argparse.Namespace,
    backend_type: str,
    target: str,
) -> int:
    response = await service.translate_text(
        TranslationRequest(
            text=args.text,
            source_lang=args.source,
            target_lang=target,
            backend_type=backend_type,
            max_tokens=args.max_tokens,
        )
    )
    if not response.ok:
        print(f"Error: Translation failed: {response.error}", file=sys.stderr)
        return 1
    print(response.translated_text)
    return 0


async def _run_batch(
    service: TranslationService,
    args: argparse.Namespace,
    backend_type: str,
    target: str,
) -> int:
    input_path: Path = args.input
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1
    content = input_path.read_text(encoding="utf-8")

    if args.markdown:
        try:
            translated = await service.translate_document(
                content, target, backend_type, poll_interval=args.poll_interval
            )
        except PipelineError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(translated)
        return 0

    texts = [line.strip() for line in content.splitlines() if line.strip()]
    if not texts:
        print(f"Error: No text found in {input_path}", file=sys.stderr)
        return 1

    task_id = service.start_batch_translation(texts, args.source, target, backend_type)
    task = await service.wait_for_batch_completion(task_id, args.poll_interval)
    for result in task.results:
        if result.ok:
            print(result.translated_text)
        else:
            print(f"[error] {result.error}")

    if task.status != BatchStatus.COMPLETED:
        print(f"Error: Batch failed: {task.errors[-1]}", file=sys.stderr)
        return 1
    if task.errors:
        print(f"Warning: {len(task.errors)} chunk(s) failed", file=sys.stderr)
    return 0


def main() -> NoReturn:
    """Main entry point."""
    load_dotenv()
    args = parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    exit_code = asyncio.run(run(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
