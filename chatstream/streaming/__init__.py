"""Stream consumer: chunk buffering, SSE decoding and reasoning tag tracking."""

from chatstream.streaming.buffer import ChunkBuffer
from chatstream.streaming.decoder import EventDecoder
from chatstream.streaming.session import StreamSession, collect_answer
from chatstream.streaming.tags import AssembledMessage, MessageState, TagStateMachine

__all__ = [
    "AssembledMessage",
    "ChunkBuffer",
    "EventDecoder",
    "MessageState",
    "StreamSession",
    "TagStateMachine",
    "collect_answer",
]
