# FILE: app/generation/extractor.py
"""
Stream-to-file extractor.

Recovers file records from a markdown document written in the fixed
generation convention:

    **File: path/to/file.ext**
    ```language
    <content>
    ```

Rules:
- marker is case-sensitive ("**FILE:" is not recognized); whitespace around
  the path is ignored
- only blank lines may sit between the marker and the opening fence
- a fence without a language tag yields language "text"
- the closing fence is a line of backticks at least as long as the opener;
  tagged fences inside a ``` block nest (e.g. a README with shell snippets)
- a marker or block that is not finished yet (buffer still growing) is
  ignored, along with everything after it
- the same path twice: last content wins, first position kept

Pure and idempotent. Never raises on odd input; no match means [].
"""
from __future__ import annotations

import re
from typing import Dict, Iterator, List, Optional, Tuple

from app.projects.schemas import ProjectFile

DEFAULT_LANGUAGE = "text"

_MARKER = re.compile(r"\*\*File:\s*(?P<path>[^*\n]+?)\s*\*\*\s*$")
_FENCE_OPEN = re.compile(r"^\s*(?P<ticks>`{3,})(?P<lang>[^`\s]*)[^`]*$")
_FENCE_BARE = re.compile(r"^\s*(?P<ticks>`{3,})\s*$")


def _find_closing_fence(lines: List[str], start: int, ticks: int) -> Optional[int]:
    """Index of the line closing a fence opened with `ticks` backticks, or None."""
    depth = 0
    for idx in range(start, len(lines)):
        line = lines[idx]
        bare = _FENCE_BARE.match(line)
        if bare:
            if len(bare.group("ticks")) < ticks:
                continue
            if depth:
                depth -= 1
                continue
            return idx
        if ticks == 3:
            inner = _FENCE_OPEN.match(line)
            if inner and inner.group("lang") and len(inner.group("ticks")) == 3:
                depth += 1
    return None


def iter_file_blocks(text: str) -> Iterator[Tuple[str, str, str]]:
    """Yield (path, language, content) for each complete block, in document order."""
    lines = (text or "").replace("\r\n", "\n").split("\n")
    total = len(lines)
    i = 0
    while i < total:
        marker = _MARKER.search(lines[i])
        if not marker:
            i += 1
            continue

        path = marker.group("path").strip()
        j = i + 1
        while j < total and not lines[j].strip():
            j += 1
        if j >= total:
            return

        fence = _FENCE_OPEN.match(lines[j])
        if not fence or not path:
            # Not a file block; rescan from here (the line may be a marker itself)
            i = j
            continue

        ticks = len(fence.group("ticks"))
        end = _find_closing_fence(lines, j + 1, ticks)
        if end is None:
            return

        yield path, fence.group("lang") or DEFAULT_LANGUAGE, "\n".join(lines[j + 1:end])
        i = end + 1


def parse_files_from_markdown(text: str) -> List[ProjectFile]:
    files: Dict[str, ProjectFile] = {}
    for path, language, content in iter_file_blocks(text):
        files[path] = ProjectFile(name=path, content=content, language=language)
    return list(files.values())
