"""Delta schemas for the stream decoder.

A Delta is one atomic unit of newly arrived stream content. The
EventDecoder emits them per SSE line; the TagStateMachine folds them
into the assembled message text and then discards them.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class DeltaKind(StrEnum):
    """Discriminator for the Delta variants."""

    REASONING = "reasoning"
    CONTENT = "content"
    REQUEST_ID = "request_id"
    END = "end"
    ERROR = "error"


class Delta(BaseModel):
    """Base class for every decoded stream delta. Immutable."""

    model_config = ConfigDict(frozen=True)

    kind: DeltaKind = Field(description="Which variant this delta is")


class ReasoningFragment(Delta):
    """A piece of the model's intermediate reasoning output."""

    kind: DeltaKind = DeltaKind.REASONING
    text: str = Field(description="Reasoning text, appended verbatim")


class ContentFragment(Delta):
    """A piece of the user-facing answer."""

    kind: DeltaKind = DeltaKind.CONTENT
    text: str = Field(description="Answer text, appended verbatim")


class RequestIdAnnounced(Delta):
    """The backend identified the response (used later for cancellation)."""

    kind: DeltaKind = DeltaKind.REQUEST_ID
    request_id: str = Field(description="Request or message identifier")


class StreamEnd(Delta):
    """The termination sentinel was received."""

    kind: DeltaKind = DeltaKind.END


class StreamError(Delta):
    """The backend or transport reported an error for this response."""

    kind: DeltaKind = DeltaKind.ERROR
    message: str = Field(description="Human-readable error description")
