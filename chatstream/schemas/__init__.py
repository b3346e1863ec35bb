"""chatstream schema definitions.

All Pydantic v2 models shared by the decoder, the tag state machine and
the segment parser.
"""

from chatstream.schemas.config import DecoderConfig, EngineConfig, MarkupConfig
from chatstream.schemas.deltas import (
    ContentFragment,
    Delta,
    DeltaKind,
    ReasoningFragment,
    RequestIdAnnounced,
    StreamEnd,
    StreamError,
)
from chatstream.schemas.segments import (
    GroupState,
    InvocationParam,
    ParamParseResult,
    PlainText,
    RawInvocation,
    Reasoning,
    Segment,
    SegmentKind,
    ToolCallGroup,
    ToolKind,
)

__all__ = [
    "ContentFragment",
    "DecoderConfig",
    "Delta",
    "DeltaKind",
    "EngineConfig",
    "GroupState",
    "InvocationParam",
    "MarkupConfig",
    "ParamParseResult",
    "PlainText",
    "RawInvocation",
    "Reasoning",
    "ReasoningFragment",
    "RequestIdAnnounced",
    "Segment",
    "SegmentKind",
    "StreamEnd",
    "StreamError",
    "ToolCallGroup",
    "ToolKind",
]
