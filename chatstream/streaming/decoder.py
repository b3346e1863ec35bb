"""SSE event decoder.

Parses ``data:`` lines into JSON envelopes and turns each envelope into
zero or more Deltas. Handles the OpenAI-compatible chunk shape
(``choices[0].delta``) as well as flattened envelopes, and repairs
backends that double-encode the delta as a JSON string inside
``content``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from chatstream.schemas.config import DecoderConfig
from chatstream.schemas.deltas import (
    ContentFragment,
    Delta,
    ReasoningFragment,
    RequestIdAnnounced,
    StreamEnd,
    StreamError,
)
from chatstream.settings import default_engine_config

logger = logging.getLogger(__name__)


def _extract_delta(envelope: dict[str, Any]) -> dict[str, Any]:
    """Return the delta mapping of an envelope, or the envelope itself."""
    choices = envelope.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict):
            return delta
    return envelope


def _as_text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class EventDecoder:
    """Stateful decoder for one response stream.

    The only state carried between lines is whether the request id has
    already been announced.

    ``leak_markers`` overrides the configured ``leak_marker``; any one of
    them marks unparseable nested content as leaked wire JSON.
    """

    def __init__(
        self,
        config: DecoderConfig | None = None,
        *,
        leak_markers: list[str] | None = None,
    ) -> None:
        self._config = config or default_engine_config().decoder
        if leak_markers is None:
            leak_markers = [self._config.leak_marker]
        self._leak_markers = tuple(m for m in leak_markers if m)
        self._request_id_announced = False

    @property
    def request_id_announced(self) -> bool:
        return self._request_id_announced

    def decode_line(self, line: str) -> list[Delta]:
        """Decode one complete line into Deltas.

        Lines without the data prefix, blank payloads and payloads that are
        not JSON objects yield nothing.
        """
        payload = self._payload(line)
        if payload is None:
            return []

        if payload == self._config.done_sentinel:
            return [StreamEnd()]

        try:
            envelope = json.loads(payload)
        except json.JSONDecodeError:
            # Partial chunks and keep-alive noise land here routinely
            logger.debug("Dropping undecodable SSE payload: %.80s", payload)
            return []
        if not isinstance(envelope, dict):
            logger.debug("Dropping non-object SSE payload: %.80s", payload)
            return []

        return self.decode_envelope(envelope)

    def decode_envelope(self, envelope: dict[str, Any]) -> list[Delta]:
        """Turn an already-parsed JSON envelope into Deltas."""
        deltas: list[Delta] = []

        request_id = self._find_request_id(envelope)
        if request_id is not None and not self._request_id_announced:
            self._request_id_announced = True
            deltas.append(RequestIdAnnounced(request_id=request_id))

        error = envelope.get(self._config.error_field)
        if error:
            deltas.append(StreamError(message=self._error_message(error)))
            return deltas

        delta = _extract_delta(envelope)
        reasoning = self._reasoning_of(delta)
        content = _as_text(delta.get(self._config.content_field))
        reasoning, content = self._repair_nested(reasoning, content)

        if reasoning:
            deltas.append(ReasoningFragment(text=reasoning))
        if content:
            deltas.append(ContentFragment(text=content))
        return deltas

    def _payload(self, line: str) -> str | None:
        stripped = line.strip()
        prefix = self._config.data_prefix
        if not stripped.startswith(prefix):
            return None
        payload = stripped[len(prefix):].strip()
        return payload or None

    def _find_request_id(self, envelope: dict[str, Any]) -> str | None:
        for key in self._config.id_fields:
            value = envelope.get(key)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and value != "":
                return str(value)
        return None

    def _reasoning_of(self, mapping: dict[str, Any]) -> str | None:
        for key in self._config.reasoning_fields:
            value = _as_text(mapping.get(key))
            if value is not None:
                return value
        return None

    def _has_nested_keys(self, mapping: dict[str, Any]) -> bool:
        keys = [*self._config.reasoning_fields, self._config.content_field]
        return any(key in mapping for key in keys)

    def _repair_nested(
        self, reasoning: str | None, content: str | None
    ) -> tuple[str | None, str | None]:
        """Unwrap a delta that was JSON-encoded into the content field.

        If the nested JSON cannot be parsed but carries the reasoning field
        marker, the content is suppressed rather than shown as raw JSON.
        """
        if content is None or not content.strip().startswith("{"):
            return reasoning, content

        try:
            nested = json.loads(content)
        except json.JSONDecodeError:
            if any(marker in content for marker in self._leak_markers):
                logger.debug("Suppressing apparent leaked JSON delta: %.80s", content)
                return reasoning, ""
            return reasoning, content

        if isinstance(nested, dict) and self._has_nested_keys(nested):
            return (
                self._reasoning_of(nested),
                _as_text(nested.get(self._config.content_field)),
            )
        return reasoning, content

    @staticmethod
    def _error_message(error: Any) -> str:
        if isinstance(error, dict):
            message = error.get("message") or error.get("detail")
            if message:
                return str(message)
            return json.dumps(error, ensure_ascii=False)
        return str(error)
