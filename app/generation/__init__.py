# FILE: app/generation/__init__.py
"""
Generation module exports.

Intent -> provider stream -> file extraction -> additive merge.
"""

# ============== PIPELINE EXPORTS ==============

from app.generation.extractor import parse_files_from_markdown, iter_file_blocks
from app.generation.merger import HISTORY_FILE, MergeResult, merge_generated_files

# ============== SERVICE EXPORTS ==============

from app.generation.service import (
    GenerationService,
    GenerationResult,
    GenerationError,
    GenerationInProgressError,
    InvalidIntentError,
    get_generation_service,
)

__all__ = [
    "parse_files_from_markdown",
    "iter_file_blocks",
    "HISTORY_FILE",
    "MergeResult",
    "merge_generated_files",
    "GenerationService",
    "GenerationResult",
    "GenerationError",
    "GenerationInProgressError",
    "InvalidIntentError",
    "get_generation_service",
]
