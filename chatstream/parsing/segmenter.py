"""Segmentation of assembled message text.

Splits the (possibly still growing) text of one message into an ordered
list of PlainText, Reasoning and ToolCallGroup segments. The parser is a
pure function of ``(text, is_actively_streaming)`` and is meant to be
re-run on every render, so an unterminated reasoning or tool region at
the end of the text is accepted as-is.

Adjacent tool invocations that share ``(name, kind)`` collapse into a
single group with a repeat count. The grouping accumulator is threaded
through the scan as a plain value; nothing survives between calls.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import NamedTuple

from chatstream.schemas.config import MarkupConfig
from chatstream.schemas.segments import (
    GroupState,
    PlainText,
    RawInvocation,
    Reasoning,
    Segment,
    ToolCallGroup,
    ToolKind,
)
from chatstream.settings import default_engine_config

logger = logging.getLogger(__name__)

# Attribute pairs inside an opening tag: name="x" or name='x'
_ATTR_RE = re.compile(r"""([A-Za-z_][\w:.-]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")

_KIND_ALIASES: dict[str, ToolKind] = {
    "skill": ToolKind.SKILL,
    "skills": ToolKind.SKILL,
    "externaltool": ToolKind.EXTERNAL_TOOL,
    "external_tool": ToolKind.EXTERNAL_TOOL,
    "external": ToolKind.EXTERNAL_TOOL,
    "tool": ToolKind.EXTERNAL_TOOL,
    "mcp": ToolKind.EXTERNAL_TOOL,
    "builtin": ToolKind.BUILTIN,
    "built-in": ToolKind.BUILTIN,
    "built_in": ToolKind.BUILTIN,
    "internal": ToolKind.BUILTIN,
}


@lru_cache(maxsize=16)
def _region_pattern(
    reasoning_open: str, reasoning_close: str, tool_tags: tuple[str, ...]
) -> re.Pattern[str]:
    """Build the alternation matching reasoning or tool regions.

    Both branches run to end-of-string when the closing tag is missing.
    A self-closing invocation ends at its own ``/>``.
    """
    # Longest first so "tool_action" is never shadowed by a shorter alias
    tags = "|".join(re.escape(t) for t in sorted(tool_tags, key=len, reverse=True))
    return re.compile(
        rf"(?P<reasoning>{re.escape(reasoning_open)}.*?(?:{re.escape(reasoning_close)}|\Z))"
        rf"|(?P<tool><(?P<tag>{tags})(?=[\s/>]|\Z)(?:[^<>]*?/>|.*?(?:</(?P=tag)\s*>|\Z)))",
        re.IGNORECASE | re.DOTALL,
    )


def read_tool_attributes(source: str) -> dict[str, str]:
    """Return the attributes of an invocation's opening tag, keys lowercased.

    Works on a partial opening tag as well (mid-stream).
    """
    end = source.find(">")
    opening = source if end == -1 else source[:end]
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(opening):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attrs.setdefault(match.group(1).lower(), value)
    return attrs


def resolve_tool_kind(raw: str | None) -> ToolKind:
    """Map a declared ``type`` attribute onto a ToolKind."""
    if not raw:
        return ToolKind.EXTERNAL_TOOL
    kind = _KIND_ALIASES.get(raw.strip().lower())
    if kind is None:
        logger.debug("Unknown tool type %r; treating as external tool", raw)
        return ToolKind.EXTERNAL_TOOL
    return kind


class _PendingGroup(NamedTuple):
    """ToolCallGrouper accumulator: invocations waiting to be flushed."""

    name: str
    tool_kind: ToolKind
    spans: tuple[tuple[int, int, str], ...]


class SegmentParser:
    """Converts annotated message text into an ordered Segment list."""

    def __init__(self, config: MarkupConfig | None = None) -> None:
        self._config = config or default_engine_config().markup
        self._pattern = _region_pattern(
            self._config.reasoning_open,
            self._config.reasoning_close,
            tuple(self._config.tool_tags),
        )
        self._failure_markers = tuple(m.lower() for m in self._config.failure_markers if m)

    def parse(self, text: str, is_actively_streaming: bool = False) -> list[Segment]:
        """Segment ``text``.

        Args:
            text: Full assembled text, possibly partial.
            is_actively_streaming: True only for the last message of the
                currently open response. Enables the Running state for a
                trailing tool group.

        Returns:
            Segments in source order.
        """
        segments: list[Segment] = []
        pending: _PendingGroup | None = None
        pos = 0

        for match in self._pattern.finditer(text):
            gap_start, gap_end = pos, match.start()
            pos = match.end()

            if text[gap_start:gap_end].strip():
                self._flush_into(segments, pending, text, final=False, streaming=False)
                pending = None
                segments.append(
                    PlainText(start=gap_start, end=gap_end, source=text[gap_start:gap_end])
                )

            if match.group("tool") is not None:
                pending = self._add_invocation(segments, pending, text, match)
            else:
                self._flush_into(segments, pending, text, final=False, streaming=False)
                pending = None
                segments.append(self._reasoning(text, match.start(), match.end()))

        if text[pos:].strip():
            self._flush_into(segments, pending, text, final=False, streaming=False)
            pending = None
            segments.append(PlainText(start=pos, end=len(text), source=text[pos:]))

        self._flush_into(segments, pending, text, final=True, streaming=is_actively_streaming)
        return segments

    def _add_invocation(
        self,
        segments: list[Segment],
        pending: _PendingGroup | None,
        text: str,
        match: re.Match[str],
    ) -> _PendingGroup:
        start, end = match.span()
        span = (start, end, match.group("tag"))
        attrs = read_tool_attributes(text[start:end])
        name = attrs.get("name") or self._config.default_tool_name
        kind = resolve_tool_kind(attrs.get("type"))

        if pending is not None and (pending.name, pending.tool_kind) != (name, kind):
            self._flush_into(segments, pending, text, final=False, streaming=False)
            pending = None
        if pending is None:
            return _PendingGroup(name=name, tool_kind=kind, spans=(span,))
        return pending._replace(spans=(*pending.spans, span))

    def _flush_into(
        self,
        segments: list[Segment],
        pending: _PendingGroup | None,
        text: str,
        *,
        final: bool,
        streaming: bool,
    ) -> None:
        """Emit the pending group, if any. The caller resets its accumulator."""
        if pending is None:
            return

        invocations = [
            RawInvocation(source=text[s:e], tag=tag) for s, e, tag in pending.spans
        ]
        if final and streaming:
            state = GroupState.RUNNING
        elif any(self._is_failed(inv.source) for inv in invocations):
            state = GroupState.FAILED
        else:
            state = GroupState.COMPLETED

        start, end = pending.spans[0][0], pending.spans[-1][1]
        segments.append(
            ToolCallGroup(
                start=start,
                end=end,
                source=text[start:end],
                name=pending.name,
                tool_kind=pending.tool_kind,
                invocations=invocations,
                state=state,
            )
        )

    def _reasoning(self, text: str, start: int, end: int) -> Reasoning:
        source = text[start:end]
        opening, closing = self._config.reasoning_open, self._config.reasoning_close
        inner = source[len(opening):]
        closed = inner.lower().endswith(closing.lower())
        if closed:
            inner = inner[: len(inner) - len(closing)]
        return Reasoning(start=start, end=end, source=source, content=inner, closed=closed)

    def _is_failed(self, source: str) -> bool:
        lowered = source.lower()
        return any(marker in lowered for marker in self._failure_markers)


def parse_segments(
    text: str,
    is_actively_streaming: bool = False,
    *,
    config: MarkupConfig | None = None,
) -> list[Segment]:
    """Segment assembled message text. See SegmentParser.parse."""
    return SegmentParser(config).parse(text, is_actively_streaming)


def reasoning_blocks(segments: list[Segment]) -> list[str]:
    """Inner text of every Reasoning segment, in order."""
    return [seg.content for seg in segments if isinstance(seg, Reasoning)]
