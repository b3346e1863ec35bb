"""Engine configuration schemas.

Every wire-format and markup constant the decoder and segmenter rely on
lives here, so that backends with slightly different conventions can be
supported from ``defaults.toml`` without code changes.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class DecoderConfig(BaseModel):
    """SSE framing and envelope field names."""

    data_prefix: str = Field(default="data:", description="SSE data line prefix")
    done_sentinel: str = Field(
        default="[DONE]", description="Payload that terminates the stream"
    )
    reasoning_fields: list[str] = Field(
        default_factory=lambda: ["reasoning_content", "reasoning"],
        description="Delta keys carrying reasoning text, in priority order",
    )
    content_field: str = Field(default="content", description="Delta key for answer text")
    id_fields: list[str] = Field(
        default_factory=lambda: ["id"],
        description="Envelope keys carrying the request identifier",
    )
    error_field: str = Field(default="error", description="Envelope key for backend errors")
    leak_marker: str = Field(
        default='"reasoning_content"',
        description="Substring that marks unparseable content as leaked wire JSON",
    )
    answer_leak_markers: list[str] = Field(
        default_factory=lambda: ['"reasoning_content"', '"content"'],
        description="Stricter leak markers used when collecting answer text only",
    )


class MarkupConfig(BaseModel):
    """Synthetic markup written into and read back from assembled text."""

    reasoning_open: str = Field(default="<thinking>")
    reasoning_close: str = Field(default="</thinking>")
    tool_tags: list[str] = Field(
        default_factory=lambda: ["tool_action", "action"],
        description="Element names recognised as tool invocations",
    )
    default_tool_name: str = Field(default="Unknown")
    failure_markers: list[str] = Field(
        default_factory=lambda: ["error", "failed", "failure"],
        description="Case-insensitive substrings that mark an invocation as failed",
    )
    error_template: str = Field(
        default="\n[Error: {message}]",
        description="Inline marker appended when a stream fails",
    )


class EngineConfig(BaseModel):
    """Top-level configuration for the decode and segmentation engine."""

    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    markup: MarkupConfig = Field(default_factory=MarkupConfig)
