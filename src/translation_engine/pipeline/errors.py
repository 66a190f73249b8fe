# SPDX-License-Identifier: Apache-2.0
"""Service error definitions."""

from __future__ import annotations


class PipelineError(Exception):
    """Failure of a service-level operation, tagged with the stage it hit."""

    def __init__(
        self,
        message: str,
        stage: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class BatchFailedError(PipelineError):
    """A batch task ended in the failed state."""


class BatchTimeoutError(PipelineError):
    """Waiting for a batch task exceeded its deadline."""
