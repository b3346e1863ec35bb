"""Segment schemas produced by the SegmentParser.

A Segment is one classified, orderable piece of an assembled message:
plain markdown text, a reasoning block, or a group of adjacent tool
invocations sharing the same name and kind. Every segment keeps the
exact source slice it was cut from so renderers can map back into the
assembled text.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class SegmentKind(StrEnum):
    """Discriminator for the Segment variants."""

    TEXT = "text"
    REASONING = "reasoning"
    TOOL_GROUP = "tool_group"


class ToolKind(StrEnum):
    """Origin of a tool invocation, read from its ``type`` attribute."""

    SKILL = "skill"
    EXTERNAL_TOOL = "externalTool"
    BUILTIN = "builtin"


class GroupState(StrEnum):
    """Execution state of a tool-call group."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class InvocationParam(BaseModel):
    """One parameter element inside a tool invocation body."""

    name: str = Field(description="Element tag name")
    attributes: dict[str, str] = Field(
        default_factory=dict, description="Element attributes, in source order"
    )
    value: str = Field(default="", description="Text content of the element")


class ParamParseResult(BaseModel):
    """Outcome of extracting parameters from one invocation.

    Exactly one of ``params`` (possibly empty) or ``error`` is meaningful:
    when ``error`` is set the params list is always empty.
    """

    params: list[InvocationParam] = Field(default_factory=list)
    error: str | None = Field(
        default=None, description="Parse failure description, None on success"
    )

    @property
    def ok(self) -> bool:
        return self.error is None


class RawInvocation(BaseModel):
    """A single tool invocation, kept as its raw source.

    Parameters are only extracted on demand (e.g. when a UI expands the
    call log), see :meth:`parse_params`.
    """

    source: str = Field(description="Raw invocation markup, as received")
    tag: str | None = Field(
        default=None,
        description="Element name the segmenter matched; None accepts the configured tool tags",
    )

    def parse_params(self) -> ParamParseResult:
        """Extract the invocation parameters. Never raises."""
        from chatstream.parsing.invocation import parse_invocation_params

        tool_tags = (self.tag,) if self.tag else None
        return parse_invocation_params(self.source, tool_tags)


class Segment(BaseModel):
    """Base class for all segments."""

    kind: SegmentKind = Field(description="Which variant this segment is")
    start: int = Field(ge=0, description="Offset of the first source character")
    end: int = Field(ge=0, description="Offset one past the last source character")
    source: str = Field(description="Exact slice of the assembled text")


class PlainText(Segment):
    """Markdown text outside any reasoning or tool region."""

    kind: SegmentKind = SegmentKind.TEXT

    @property
    def text(self) -> str:
        return self.source


class Reasoning(Segment):
    """A reasoning region; ``content`` excludes the delimiters."""

    kind: SegmentKind = SegmentKind.REASONING
    content: str = Field(description="Inner markdown source")
    closed: bool = Field(
        default=True, description="False while the closing delimiter is missing"
    )


class ToolCallGroup(Segment):
    """Adjacent invocations sharing ``(name, tool_kind)``."""

    kind: SegmentKind = SegmentKind.TOOL_GROUP
    name: str = Field(description="Declared tool name")
    tool_kind: ToolKind = Field(default=ToolKind.EXTERNAL_TOOL)
    invocations: list[RawInvocation] = Field(default_factory=list)
    state: GroupState = Field(default=GroupState.COMPLETED)

    @property
    def count(self) -> int:
        """Number of invocations folded into this group."""
        return len(self.invocations)
