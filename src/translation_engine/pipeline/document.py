# SPDX-License-Identifier: Apache-2.0
"""Markdown text-block extraction and reassembly."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from translation_engine.models import TranslationResponse

_FENCE_PREFIX = "```"
# Lines starting with these are never translated.
_SKIP_PREFIXES = ("![", "[", "#")
_MARKER_PATTERN = re.compile(r"^(\s*(?:(?:[-*+]|\d+[.)])\s+|>\s*)*)(.*)$")
_BOLD_PATTERN = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_PATTERN = re.compile(r"\*(.*?)\*")
_CODE_PATTERN = re.compile(r"`(.*?)`")


@dataclass(frozen=True)
class TextBlock:
    """One translatable line of a Markdown document.

    Attributes:
        line: Zero-based line number in the source document.
        prefix: Indentation and list or quote markers kept verbatim.
        text: Line content with inline emphasis and code markup removed.
    """

    line: int
    prefix: str
    text: str


def strip_inline_markup(text: str) -> str:
    text = _BOLD_PATTERN.sub(r"\1", text)
    text = _ITALIC_PATTERN.sub(r"\1", text)
    text = _CODE_PATTERN.sub(r"\1", text)
    return text.strip()


def extract_translatable_text(content: str) -> list[TextBlock]:
    """Collect the prose lines of a Markdown document.

    Headings, link and image lines, blank lines and fenced code blocks are
    skipped.
    """
    blocks: list[TextBlock] = []
    in_fence = False
    for index, line in enumerate(content.split("\n")):
        stripped = line.strip()
        if stripped.startswith(_FENCE_PREFIX):
            in_fence = not in_fence
            continue
        if in_fence or not stripped or stripped.startswith(_SKIP_PREFIXES):
            continue

        match = _MARKER_PATTERN.match(line)
        prefix, body = (match.group(1), match.group(2)) if match else ("", line)
        text = strip_inline_markup(body)
        if text:
            blocks.append(TextBlock(line=index, prefix=prefix, text=text))
    return blocks


def reassemble_document(
    content: str,
    blocks: Sequence[TextBlock],
    results: Sequence[TranslationResponse],
) -> str:
    """Put translations back in place of their source lines.

    ``results[i]`` belongs to ``blocks[i]``. Lines whose translation failed
    keep their original text.
    """
    lines = content.split("\n")
    for block, result in zip(blocks, results):
        if result.ok and 0 <= block.line < len(lines):
            lines[block.line] = f"{block.prefix}{result.translated_text}"
    return "\n".join(lines)
