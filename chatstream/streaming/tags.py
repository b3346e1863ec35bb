"""Reasoning tag state machine and the assembled message it writes.

Backends deliver reasoning and answer text as separate delta fields; the
renderer works from one linear text. The TagStateMachine folds Deltas
into that text, wrapping reasoning runs in synthetic delimiters and
guaranteeing the delimiters are balanced once the message is frozen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from chatstream.schemas.config import MarkupConfig
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


class MessageState(StrEnum):
    """Lifecycle of an assembled message."""

    EMPTY = "empty"
    GROWING = "growing"
    FROZEN = "frozen"


@dataclass
class AssembledMessage:
    """The text of one response built up so far."""

    text: str = ""
    inside_reasoning: bool = False
    state: MessageState = MessageState.EMPTY
    request_id: str | None = None
    error: str | None = None

    @property
    def frozen(self) -> bool:
        return self.state == MessageState.FROZEN


class TagStateMachine:
    """Folds Deltas into an AssembledMessage.

    Once the message is frozen every further Delta is ignored.
    """

    def __init__(self, config: MarkupConfig | None = None) -> None:
        self._config = config or default_engine_config().markup
        self._message = AssembledMessage()

    @property
    def message(self) -> AssembledMessage:
        return self._message

    @property
    def text(self) -> str:
        return self._message.text

    def apply(self, delta: Delta) -> bool:
        """Fold one Delta into the message.

        Returns:
            False if the message was already frozen and the delta dropped.
        """
        msg = self._message
        if msg.frozen:
            logger.debug("Ignoring %s delta for frozen message", delta.kind)
            return False

        if msg.state == MessageState.EMPTY:
            msg.state = MessageState.GROWING

        if isinstance(delta, ReasoningFragment):
            if not msg.inside_reasoning:
                msg.text += self._config.reasoning_open
                msg.inside_reasoning = True
            msg.text += delta.text
        elif isinstance(delta, ContentFragment):
            self._close_reasoning()
            msg.text += delta.text
        elif isinstance(delta, RequestIdAnnounced):
            msg.request_id = delta.request_id
        elif isinstance(delta, StreamEnd):
            self.freeze()
        elif isinstance(delta, StreamError):
            self.fail(delta.message)
        return True

    def freeze(self) -> None:
        """Auto-close any open reasoning region and freeze the message.

        Used for normal termination and for cancellation. Idempotent.
        """
        if self._message.frozen:
            return
        self._close_reasoning()
        self._message.state = MessageState.FROZEN

    def fail(self, message: str) -> None:
        """Close reasoning, append the inline error marker and freeze."""
        if self._message.frozen:
            logger.debug("Ignoring failure for frozen message: %s", message)
            return
        self._close_reasoning()
        self._message.text += self._config.error_template.format(message=message)
        self._message.error = message
        self._message.state = MessageState.FROZEN

    def _close_reasoning(self) -> None:
        if self._message.inside_reasoning:
            self._message.text += self._config.reasoning_close
            self._message.inside_reasoning = False
