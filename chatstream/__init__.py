"""chatstream — incremental SSE decoder and message segmentation engine."""

__version__ = "0.1.0"

from chatstream.parsing.segmenter import SegmentParser, parse_segments
from chatstream.streaming.session import StreamSession, collect_answer

__all__ = ["SegmentParser", "StreamSession", "collect_answer", "parse_segments"]
