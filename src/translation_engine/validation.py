# SPDX-License-Identifier: Apache-2.0
"""Input validation and sanitizing helpers."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from translation_engine.languages import is_language_code

_WORD_PATTERN = re.compile(r"[\w\u4e00-\u9fff\u3040-\u309f\u30a0-\u30ff]")
_SCRIPT_TAG_PATTERN = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_EVENT_ATTR_PATTERN = re.compile(
    r"""\son\w+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE
)
_JS_URL_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
_WHITESPACE_PATTERN = re.compile(r"\s+")
_ZERO_WIDTH_PATTERN = re.compile(r"[\u200b-\u200d\ufeff]")


def validate_text(text: object) -> bool:
    """Return True if ``text`` is a non-blank string with real content.

    Strings made only of punctuation or symbols are rejected.
    """
    if not text or not isinstance(text, str):
        return False
    trimmed = text.strip()
    if not trimmed:
        return False
    return _WORD_PATTERN.search(trimmed) is not None


def validate_language_code(code: object) -> bool:
    """Return True if ``code`` is a known language code."""
    return is_language_code(code)


def validate_url(url: object) -> bool:
    """Return True for absolute http(s) URLs."""
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def sanitize_html(html: str) -> str:
    """Strip script blocks, inline event handlers and javascript: URLs."""
    if not html or not isinstance(html, str):
        return ""
    cleaned = _SCRIPT_TAG_PATTERN.sub("", html)
    cleaned = _EVENT_ATTR_PATTERN.sub("", cleaned)
    cleaned = _JS_URL_PATTERN.sub("", cleaned)
    return cleaned.strip()


def normalize_text(text: str) -> str:
    """Trim, collapse runs of whitespace and drop zero-width characters."""
    processed = _WHITESPACE_PATTERN.sub(" ", text.strip())
    return _ZERO_WIDTH_PATTERN.sub("", processed)
