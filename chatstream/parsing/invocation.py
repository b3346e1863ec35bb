"""Parameter extraction for raw tool invocations.

An invocation body is treated as permissive XML: every immediate child
of the invocation element is one parameter. Bodies are often cut off
mid-stream, so a missing closing tag is synthesized once before giving
up. Failures come back as a ParamParseResult with ``error`` set.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from functools import lru_cache

from chatstream.schemas.segments import InvocationParam, ParamParseResult
from chatstream.settings import default_engine_config

logger = logging.getLogger(__name__)

# Bare ampersands (not already an entity reference) break strict XML parsing
_BARE_AMP_RE = re.compile(r"&(?!#\d+;|#x[0-9a-fA-F]+;|[A-Za-z][A-Za-z0-9]*;)")

_OPEN_TAG_RE = re.compile(r"<\s*([A-Za-z_][\w.-]*)")


def parse_invocation_params(
    source: str, tool_tags: tuple[str, ...] | None = None
) -> ParamParseResult:
    """Extract ``(name, attributes, value)`` parameters from an invocation.

    Args:
        source: Raw invocation markup, possibly unterminated.
        tool_tags: Accepted root element names. Defaults to the configured tags.

    Returns:
        ParamParseResult with the parameters, or with ``error`` set.
    """
    if tool_tags is None:
        tool_tags = tuple(default_engine_config().markup.tool_tags)
    return _parse_cached(source, tuple(t.lower() for t in tool_tags)).model_copy(deep=True)


@lru_cache(maxsize=512)
def _parse_cached(source: str, tool_tags: tuple[str, ...]) -> ParamParseResult:
    match = _OPEN_TAG_RE.match(source.lstrip())
    if match is None or match.group(1).lower() not in tool_tags:
        return ParamParseResult(error="Invalid markup: not a tool invocation")
    tag = match.group(1)

    markup = _BARE_AMP_RE.sub("&amp;", source.strip())
    try:
        root = ET.fromstring(markup)
    except ET.ParseError:
        try:
            root = ET.fromstring(markup + f"</{tag}>")
        except ET.ParseError as e:
            logger.debug("Invocation markup not parseable: %s", e)
            return ParamParseResult(error=f"Parsing Error: {e}")

    if root.tag.lower() not in tool_tags:
        return ParamParseResult(error="Invalid markup: unexpected root element")

    params = [
        InvocationParam(
            name=child.tag,
            attributes=dict(child.attrib),
            value="".join(child.itertext()),
        )
        for child in root
    ]
    return ParamParseResult(params=params)
