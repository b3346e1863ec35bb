"""Per-response decode pipeline.

A StreamSession owns the ChunkBuffer, EventDecoder and TagStateMachine
for one in-flight response and runs them synchronously, in order, for
every chunk the transport delivers. It is push driven: the transport
calls :meth:`StreamSession.feed` from its delivery callback, or hands an
async chunk iterator to :meth:`StreamSession.aconsume`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Callable, Iterable
from typing import Any

from chatstream.errors import TransportError
from chatstream.parsing.segmenter import SegmentParser
from chatstream.schemas.config import EngineConfig
from chatstream.schemas.deltas import ContentFragment, Delta, RequestIdAnnounced
from chatstream.schemas.segments import Segment
from chatstream.settings import default_engine_config
from chatstream.streaming.buffer import ChunkBuffer
from chatstream.streaming.decoder import EventDecoder
from chatstream.streaming.tags import AssembledMessage, TagStateMachine

logger = logging.getLogger(__name__)

# Listener callback types
RequestIdListener = Callable[[str], Any]
UpdateListener = Callable[[AssembledMessage], Any]


class StreamSession:
    """Decode pipeline for one response.

    Listeners are plain callables. Their exceptions are logged and never
    propagate into the transport.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        on_request_id: RequestIdListener | None = None,
        on_update: UpdateListener | None = None,
    ) -> None:
        self._config = config or default_engine_config()
        self._buffer = ChunkBuffer()
        self._decoder = EventDecoder(self._config.decoder)
        self._tags = TagStateMachine(self._config.markup)
        self._parser = SegmentParser(self._config.markup)
        self._on_request_id = on_request_id
        self._on_update = on_update

    @property
    def message(self) -> AssembledMessage:
        return self._tags.message

    @property
    def text(self) -> str:
        return self._tags.text

    @property
    def frozen(self) -> bool:
        return self._tags.message.frozen

    def feed(self, chunk: str | bytes) -> list[Delta]:
        """Process one transport chunk.

        Returns:
            The Deltas that were applied to the message. Deltas decoded
            after the message froze (including the rest of this chunk) are
            dropped and not returned.
        """
        if self.frozen:
            logger.debug("Chunk received after message froze; ignoring")
            return []

        applied: list[Delta] = []
        for line in self._buffer.push(chunk):
            for delta in self._decoder.decode_line(line):
                if not self._tags.apply(delta):
                    continue
                applied.append(delta)
                if isinstance(delta, RequestIdAnnounced):
                    self._notify(self._on_request_id, delta.request_id)
            if self.frozen:
                self._buffer.close()
                break

        if applied:
            self._notify(self._on_update, self.message)
        return applied

    def finish(self) -> None:
        """The transport reached end-of-stream.

        A trailing line without a newline is discarded, any open reasoning
        region is closed, and the message freezes.
        """
        if not self._buffer.closed:
            self._buffer.close()
        self._freeze_with(self._tags.freeze)

    def cancel(self) -> None:
        """Out-of-band cancellation; same auto-close as a normal end."""
        self.finish()

    def fail(self, message: str) -> None:
        """The transport failed; append the inline error marker and freeze."""
        if not self._buffer.closed:
            self._buffer.close()
        self._freeze_with(lambda: self._tags.fail(message))

    def segments(self) -> list[Segment]:
        """Segment the current text; Running is possible until frozen."""
        return self._parser.parse(self.text, is_actively_streaming=not self.frozen)

    async def aconsume(self, chunks: AsyncIterable[str | bytes]) -> AssembledMessage:
        """Drive the session from an async chunk iterator.

        Raises:
            TransportError: If the iterator raised; the message is frozen
                with an error marker first.
            asyncio.CancelledError: Re-raised after the message is frozen.
        """
        try:
            async for chunk in chunks:
                self.feed(chunk)
                if self.frozen:
                    break
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as exc:
            self.fail(str(exc) or type(exc).__name__)
            raise TransportError(str(exc), request_id=self.message.request_id) from exc
        self.finish()
        return self.message

    def _freeze_with(self, action: Callable[[], None]) -> None:
        if self.frozen:
            return
        action()
        self._notify(self._on_update, self.message)

    @staticmethod
    def _notify(listener: Callable[..., Any] | None, payload: Any) -> None:
        if listener is None:
            return
        try:
            listener(payload)
        except Exception:
            logger.exception("Stream listener error")


def collect_answer(
    chunks: Iterable[str | bytes], config: EngineConfig | None = None
) -> str:
    """Collect only the answer text of a stream, discarding reasoning.

    Used for short side-channel completions where reasoning is never
    shown. The termination sentinel does not stop collection, any
    trailing partial line is dropped, and unparseable nested content
    carrying any of ``answer_leak_markers`` is suppressed.
    """
    config = config or default_engine_config()
    buffer = ChunkBuffer()
    decoder = EventDecoder(config.decoder, leak_markers=config.decoder.answer_leak_markers)
    parts: list[str] = []
    for chunk in chunks:
        for line in buffer.push(chunk):
            for delta in decoder.decode_line(line):
                if isinstance(delta, ContentFragment):
                    parts.append(delta.text)
    buffer.close()
    return "".join(parts)
