"""Segmentation of assembled message text into render-ready segments."""

from chatstream.parsing.invocation import parse_invocation_params
from chatstream.parsing.segmenter import SegmentParser, parse_segments, reasoning_blocks

__all__ = [
    "SegmentParser",
    "parse_invocation_params",
    "parse_segments",
    "reasoning_blocks",
]
