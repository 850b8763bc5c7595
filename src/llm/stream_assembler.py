"""
Reassembles a chat-completion response streamed as server-sent events.

Every line is handled on its own; blank-line framing is not required. A line
contributes a token when it reads ``data: {json}`` and the JSON carries a
non-empty string at ``choices[0].delta.content``. ``data: [DONE]``, blank
lines and anything without the ``data: `` prefix are skipped; a data line
with broken JSON is logged and skipped without ending the stream.
"""

from __future__ import annotations

import codecs
import json
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Union

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

ProgressCallback = Callable[[str, str], Any]


class StreamState(str, Enum):
    STREAMING = "streaming"
    DRAINING = "draining"
    DONE = "done"


def extract_delta_content(payload: Any) -> Optional[str]:
    """Return choices[0].delta.content when it is a non-empty string."""
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


class StreamResponseAssembler:
    def __init__(self, on_progress: Optional[ProgressCallback] = None):
        self.on_progress = on_progress
        self.state = StreamState.STREAMING
        self.full_content = ""
        self.tokens: List[str] = []
        self.malformed_lines = 0
        self._buffer = ""
        # keeps a multi-byte character split across chunks until it completes
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Consume one network chunk; returns the tokens it completed."""
        if self.state is not StreamState.STREAMING:
            raise RuntimeError(f"cannot feed a stream in state {self.state.value}")
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        emitted: List[str] = []
        for line in lines:
            token = self._process_line(line)
            if token is not None:
                emitted.append(token)
        return emitted

    def finish(self) -> str:
        """Transport reached end-of-stream: drain the tail and return the text."""
        if self.state is StreamState.DONE:
            return self.full_content
        self.state = StreamState.DRAINING
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        if tail.strip():
            self._process_line(tail)
        self.state = StreamState.DONE
        return self.full_content

    def _process_line(self, line: str) -> Optional[str]:
        line = line.strip()
        if not line or not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):]
        if data == DONE_SENTINEL:
            return None
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            self.malformed_lines += 1
            logger.warning(f"Failed to parse streaming line: {data[:100]} ({e})")
            return None

        token = extract_delta_content(payload)
        if token is None:
            return None
        self.tokens.append(token)
        self.full_content += token
        if self.on_progress is not None:
            self.on_progress(token, self.full_content)
        return token
