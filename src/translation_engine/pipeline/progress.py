# SPDX-License-Identifier: Apache-2.0
"""Progress callback protocol for batch translation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ProgressCallback(Protocol):
    """Progress callback protocol.

    Batch tasks report ``("batch", done_chunks, total_chunks, task_id)``
    after every chunk.
    """

    def __call__(
        self,
        stage: str,
        current: int,
        total: int,
        message: str = "",
    ) -> None: ...
