"""Line buffering over arbitrary network chunk boundaries.

The transport delivers chunks of any size; SSE is line oriented. The
ChunkBuffer keeps the trailing partial line of every chunk and prefixes
it onto the next one, so callers only ever see complete lines.
"""

from __future__ import annotations

import codecs
import logging

logger = logging.getLogger(__name__)


class ChunkBuffer:
    """Turns a sequence of chunks into a sequence of complete lines.

    Accepts ``str`` chunks or UTF-8 ``bytes``; a multi-byte character split
    across two byte chunks is decoded once both halves have arrived. Lines
    are returned without their ``\\n`` (and without a trailing ``\\r``).
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""
        self._closed = False

    @property
    def pending(self) -> str:
        """The partial line retained for the next chunk."""
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, chunk: str | bytes) -> list[str]:
        """Add a chunk and return every line it completed.

        Returns an empty list once the buffer is closed.
        """
        if self._closed:
            logger.debug("Chunk pushed after close; ignoring %d chars", len(chunk))
            return []

        # str chunks go through the decoder too so bytes held back from a
        # split character keep their place when chunk types are mixed
        if isinstance(chunk, str):
            chunk = chunk.encode(self._encoding)
        text = self._decoder.decode(chunk)
        if not text:
            return []

        parts = (self._pending + text).split("\n")
        # Last element is the (possibly empty) unterminated remainder
        self._pending = parts.pop()
        return [part.removesuffix("\r") for part in parts]

    def close(self) -> str:
        """Close the buffer and return the discarded partial line.

        A final line without a terminating newline is never emitted as a
        line; it is dropped here and handed back for diagnostics.
        """
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        self._closed = True
        if tail:
            logger.debug("Discarding unterminated trailing line (%d chars)", len(tail))
        return tail
