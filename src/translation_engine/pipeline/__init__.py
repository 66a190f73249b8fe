# SPDX-License-Identifier: Apache-2.0
"""Translation service package."""

from .cache import TranslationCache, TranslationHistory, fingerprint
from .document import TextBlock, extract_translatable_text, reassemble_document
from .errors import BatchFailedError, BatchTimeoutError, PipelineError
from .progress import ProgressCallback
from .service import TranslationService

__all__ = [
    "BatchFailedError",
    "BatchTimeoutError",
    "PipelineError",
    "ProgressCallback",
    "TextBlock",
    "TranslationCache",
    "TranslationHistory",
    "TranslationService",
    "extract_translatable_text",
    "fingerprint",
    "reassemble_document",
]
