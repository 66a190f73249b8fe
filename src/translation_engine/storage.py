# SPDX-License-Identifier: Apache-2.0
"""JSON document storage used for settings, history and cache."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class JsonStore(Protocol):
    """Reads and writes named JSON documents.

    ``read`` returns None for a document that does not exist yet, so that
    callers can start empty on first use.
    """

    def read(self, name: str) -> Any | None: ...

    def write(self, name: str, data: Any) -> None: ...

    def exists(self, name: str) -> bool: ...


class FileJsonStore:
    """JsonStore keeping each document in ``<root>/<name>.json``."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, name: str) -> Path:
        return self._root / f"{name}.json"

    def read(self, name: str) -> Any | None:
        path = self._path(name)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return json.loads(text)

    def write(self, name: str, data: Any) -> None:
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        tmp_path.replace(path)

    def exists(self, name: str) -> bool:
        return self._path(name).exists()


class MemoryJsonStore:
    """In-process JsonStore; documents are deep-copied through JSON."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def read(self, name: str) -> Any | None:
        raw = self._documents.get(name)
        return None if raw is None else json.loads(raw)

    def write(self, name: str, data: Any) -> None:
        self._documents[name] = json.dumps(data, ensure_ascii=False)

    def exists(self, name: str) -> bool:
        return name in self._documents
