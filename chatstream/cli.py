"""chatstream CLI — Typer + Rich terminal interface.

Commands: decode, segment, config show.
Used to replay captured SSE streams through the decoder and to inspect
how assembled message text is segmented.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from chatstream import __version__
from chatstream.cli_display import render_message_panel, render_segments_table
from chatstream.parsing.segmenter import SegmentParser
from chatstream.schemas.config import EngineConfig
from chatstream.settings import load_engine_config
from chatstream.streaming.session import StreamSession

console = Console()

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="chatstream",
    help="Decode LLM token streams and segment assembled messages.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Show engine configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"chatstream {__version__}")
        raise typer.Exit()


# ── App Callback ────────────────────────────────────────────────


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """chatstream — incremental SSE decoder and segmentation engine."""


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(path: Path | None) -> EngineConfig:
    """Load engine config, exit on error."""
    try:
        return load_engine_config(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _read_input(path: Path) -> bytes:
    """Read an input file, exit on error."""
    try:
        return path.read_bytes()
    except OSError as e:
        console.print(f"[red]Cannot read {path}:[/red] {e}")
        raise typer.Exit(1) from None


def _split_chunks(data: bytes, chunk_size: int) -> list[bytes]:
    if chunk_size <= 0:
        return [data]
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def decode(
    path: Path = typer.Argument(..., help="Captured SSE stream (raw response body)"),
    chunk_size: int = typer.Option(
        0, "--chunk-size", "-c",
        help="Replay the capture in chunks of N bytes (0 = one chunk)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
    config_path: Path = typer.Option(None, "--config", help="Engine config TOML"),
) -> None:
    """Replay a captured SSE stream and show the assembled message."""
    config = _load_config(config_path)
    data = _read_input(path)

    session = StreamSession(config)
    for chunk in _split_chunks(data, chunk_size):
        session.feed(chunk)
    session.finish()

    segments = session.segments()
    if as_json:
        payload = {
            "text": session.text,
            "state": str(session.message.state),
            "request_id": session.message.request_id,
            "error": session.message.error,
            "segments": [seg.model_dump(mode="json") for seg in segments],
        }
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    console.print(render_message_panel(session.message))
    console.print(render_segments_table(segments))


@app.command()
def segment(
    path: Path = typer.Argument(..., help="File holding assembled message text"),
    streaming: bool = typer.Option(
        False, "--streaming", "-s",
        help="Treat the text as the still-streaming last message",
    ),
    params: bool = typer.Option(False, "--params", "-p", help="Expand tool parameters"),
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
    config_path: Path = typer.Option(None, "--config", help="Engine config TOML"),
) -> None:
    """Segment assembled message text into text, reasoning and tool groups."""
    config = _load_config(config_path)
    text = _read_input(path).decode("utf-8", errors="replace")

    segments = SegmentParser(config.markup).parse(text, is_actively_streaming=streaming)
    if as_json:
        typer.echo(
            json.dumps(
                [seg.model_dump(mode="json") for seg in segments],
                ensure_ascii=False,
                indent=2,
            )
        )
        return

    console.print(render_segments_table(segments, show_params=params))


@config_app.command("show")
def config_show(
    config_path: Path = typer.Option(None, "--path", help="Engine config TOML"),
) -> None:
    """Show the effective engine configuration."""
    config = _load_config(config_path)

    for section_name, section in (("Decoder", config.decoder), ("Markup", config.markup)):
        table = Table(title=section_name, show_header=False, show_lines=True)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for field_name, value in section.model_dump().items():
            shown = ", ".join(value) if isinstance(value, list) else repr(value)
            table.add_row(field_name, shown)
        console.print(table)
