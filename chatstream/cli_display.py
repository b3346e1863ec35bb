"""Rich rendering helpers for the chatstream CLI.

Turns Segment lists and assembled messages into tables and panels for
terminal inspection. Used only by the CLI; applications bring their own
renderer.
"""

from __future__ import annotations

from rich.console import Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chatstream.schemas.segments import (
    GroupState,
    PlainText,
    Reasoning,
    Segment,
    ToolCallGroup,
)
from chatstream.streaming.tags import AssembledMessage, MessageState

_STATE_MARKUP: dict[GroupState, str] = {
    GroupState.RUNNING: "[bold cyan]◉ running[/bold cyan]",
    GroupState.COMPLETED: "[bold green]● completed[/bold green]",
    GroupState.FAILED: "[bold red]✗ failed[/bold red]",
}

_MESSAGE_STYLE: dict[MessageState, str] = {
    MessageState.EMPTY: "dim",
    MessageState.GROWING: "cyan",
    MessageState.FROZEN: "green",
}

_PREVIEW_CHARS = 60


def _preview(text: str, limit: int = _PREVIEW_CHARS) -> str:
    """Single-line preview of a source span."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 1] + "…"


def render_message_panel(message: AssembledMessage) -> Panel:
    """Panel showing the assembled text and its lifecycle state."""
    style = _MESSAGE_STYLE[message.state]
    subtitle = f"request {message.request_id}" if message.request_id else None
    return Panel(
        Text(message.text or "(empty)"),
        title=f"[{style}]Assembled message · {message.state}[/{style}]",
        subtitle=subtitle,
        border_style=style,
    )


def render_segments_table(segments: list[Segment], *, show_params: bool = False) -> Table:
    """Table with one row per segment.

    With ``show_params`` each tool group row lists the parsed parameters of
    every invocation, or the parse error for that invocation.
    """
    table = Table(title=f"Segments ({len(segments)})", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind", style="bold")
    table.add_column("Span", justify="right", style="dim")
    table.add_column("Detail")

    for idx, seg in enumerate(segments, 1):
        span = f"{seg.start}-{seg.end}"
        if isinstance(seg, PlainText):
            table.add_row(str(idx), "text", span, Text(_preview(seg.text)))
        elif isinstance(seg, Reasoning):
            detail = Text(_preview(seg.content))
            if not seg.closed:
                detail.append(" (open)", style="yellow")
            table.add_row(str(idx), "reasoning", span, detail)
        elif isinstance(seg, ToolCallGroup):
            table.add_row(str(idx), "tool", span, _render_group(seg, show_params))
    return table


def _render_group(group: ToolCallGroup, show_params: bool) -> Group | str:
    header = f"[bold]{escape(group.name)}[/bold] [dim]({group.tool_kind})[/dim]"
    if group.count > 1:
        header += f" x{group.count}"
    header += f"  {_STATE_MARKUP[group.state]}"
    if not show_params:
        return header

    lines: list[Text | str] = [header]
    for call_no, invocation in enumerate(group.invocations, 1):
        result = invocation.parse_params()
        if result.error:
            lines.append(Text(f"  Call #{call_no}: {result.error}", style="red"))
            continue
        if not result.params:
            lines.append(f"  Call #{call_no}: [dim italic]No parameters[/dim italic]")
            continue
        lines.append(f"  Call #{call_no}:")
        for param in result.params:
            attrs = " ".join(f'{k}="{v}"' for k, v in param.attributes.items())
            line = Text(f"    {param.name}", style="blue")
            if attrs:
                line.append(f" {attrs}", style="magenta")
            if param.value:
                line.append(f" = {_preview(param.value)}")
            lines.append(line)
    return Group(*lines)
