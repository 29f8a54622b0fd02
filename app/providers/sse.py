# FILE: app/providers/sse.py
"""
Decoder for OpenAI-style chat-completion event streams.

Wire shape (newline-delimited):

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

Network chunks do not respect line boundaries, so the trailing partial line
of every chunk is held back and prepended to the next one. Lines that are
not valid JSON are skipped; one bad line never ends the stream.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_LINE = "data: [DONE]"


def delta_content(payload: Any) -> Optional[str]:
    """Return choices[0].delta.content from a decoded payload, if present."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class EventStreamDecoder:
    """Incremental `data: <json>` line decoder.

    feed() returns the text deltas completed by the given chunk; close()
    decodes whatever is still held back once the transport is exhausted.
    After the terminal `[DONE]` line, `done` is True and further input is
    ignored.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self.done = False
        self.skipped_lines = 0

    def feed(self, chunk: str) -> List[str]:
        if self.done or not chunk:
            return []
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._decode_lines(lines)

    def close(self) -> List[str]:
        if self.done:
            return []
        rest, self._buffer = self._buffer, ""
        return self._decode_lines([rest]) if rest else []

    def _decode_lines(self, lines: List[str]) -> List[str]:
        out: List[str] = []
        for line in lines:
            clean = line.strip()
            if not clean:
                continue
            if clean == DONE_LINE:
                self.done = True
                break
            if not clean.startswith(DATA_PREFIX):
                continue
            try:
                payload = json.loads(clean[len(DATA_PREFIX):])
            except ValueError:
                self.skipped_lines += 1
                logger.debug("[sse] Skipping malformed event line: %.80s", clean)
                continue
            text = delta_content(payload)
            if text:
                out.append(text)
        return out
