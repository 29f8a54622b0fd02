# FILE: app/generation/merger.py
"""
Project file merger.

Folds one turn's extracted files into the live set:
- extracted files insert or overwrite by name
- files the turn did not mention are kept as they are
- the user's request is appended to the hidden HISTORY_FILE transcript
  (created on first use)

Nothing is ever removed by a merge.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from app.projects.schemas import ProjectFile

HISTORY_FILE = ".conversation_history"
HISTORY_LANGUAGE = "text"


@dataclass
class MergeResult:
    files: List[ProjectFile]
    extracted_count: int


def history_entry(intent: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    return f"\n\n--- {stamp} ---\nUSER: {intent}\n"


def merge_generated_files(
    current: Iterable[ProjectFile],
    extracted: Iterable[ProjectFile],
    intent: str,
    now: Optional[datetime] = None,
) -> MergeResult:
    """
    Merge extracted files into `current` and log `intent` to the transcript.

    Inputs are not mutated; the result holds fresh ProjectFile objects.
    Display order: existing files first (in their order), then new ones.
    """
    merged: Dict[str, ProjectFile] = {f.name: f.model_copy() for f in current}

    count = 0
    for f in extracted:
        merged[f.name] = f.model_copy()
        count += 1

    history = merged.get(HISTORY_FILE)
    previous = history.content if history else ""
    merged[HISTORY_FILE] = ProjectFile(
        name=HISTORY_FILE,
        content=previous + history_entry(intent, now),
        language=HISTORY_LANGUAGE,
    )

    return MergeResult(files=list(merged.values()), extracted_count=count)
