"""Tests for chatstream.streaming.session — the full decode pipeline."""

from __future__ import annotations

import asyncio
import json

import pytest

from chatstream.errors import TransportError
from chatstream.schemas.deltas import ContentFragment, ReasoningFragment, RequestIdAnnounced
from chatstream.schemas.segments import GroupState, PlainText, Reasoning, ToolCallGroup
from chatstream.streaming.session import StreamSession, collect_answer
from chatstream.streaming.tags import MessageState


def _event(**delta) -> str:
    return "data: " + json.dumps({"choices": [{"delta": delta}]}) + "\n\n"


def _event_with_id(request_id: str, **delta) -> str:
    return "data: " + json.dumps({"id": request_id, "choices": [{"delta": delta}]}) + "\n\n"


_DONE = "data: [DONE]\n\n"

_FULL_STREAM = (
    _event_with_id("req-7", reasoning_content="Let me check. ")
    + _event(reasoning_content="Reading the file.")
    + _event(content="Here it is:\n")
    + _event(content='<tool_action name="read" type="builtin"><path>a.txt</path></tool_action>')
    + _event(content="\nDone.")
    + _DONE
)

_FULL_TEXT = (
    "<thinking>Let me check. Reading the file.</thinking>Here it is:\n"
    '<tool_action name="read" type="builtin"><path>a.txt</path></tool_action>'
    "\nDone."
)


async def _agen(chunks, exc: BaseException | None = None):
    for chunk in chunks:
        yield chunk
        await asyncio.sleep(0)
    if exc is not None:
        raise exc


# ══════════════════════════════════════════════════════════════════
# Synchronous feeding
# ══════════════════════════════════════════════════════════════════


class TestFeed:
    def test_end_to_end_three_chunks(self):
        session = StreamSession()
        session.feed('data: {"choices":[{"delta":{"reasoning_content":"thinking.."}}]}\n\n')
        session.feed('data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n')
        session.feed("data: [DONE]\n\n")

        assert session.text == "<thinking>thinking..</thinking>Hi"
        assert session.frozen
        segments = session.segments()
        assert isinstance(segments[0], Reasoning)
        assert segments[0].content == "thinking.."
        assert isinstance(segments[1], PlainText)
        assert segments[1].text == "Hi"

    def test_feed_returns_applied_deltas(self):
        session = StreamSession()
        deltas = session.feed(_event(reasoning_content="a", content="b"))
        assert deltas == [ReasoningFragment(text="a"), ContentFragment(text="b")]

    def test_full_stream(self):
        session = StreamSession()
        session.feed(_FULL_STREAM)
        assert session.text == _FULL_TEXT
        assert session.message.request_id == "req-7"
        assert session.message.state == MessageState.FROZEN

    def test_byte_chunk_size_invariance(self):
        data = _FULL_STREAM.encode("utf-8")
        for size in (1, 3, 17, 64, len(data)):
            session = StreamSession()
            for i in range(0, len(data), size):
                session.feed(data[i:i + size])
            assert session.text == _FULL_TEXT, f"chunk size {size}"
            assert session.frozen

    def test_chunks_after_done_ignored(self):
        session = StreamSession()
        session.feed(_event(content="a") + _DONE + _event(content="late"))
        assert session.feed(_event(content="later")) == []
        assert session.text == "a"

    def test_partial_line_waits_for_newline(self):
        session = StreamSession()
        line = _event(content="Hi")
        assert session.feed(line[:10]) == []
        assert session.text == ""
        assert session.feed(line[10:]) == [ContentFragment(text="Hi")]


# ══════════════════════════════════════════════════════════════════
# Lifecycle
# ══════════════════════════════════════════════════════════════════


class TestLifecycle:
    def test_finish_discards_partial_line(self):
        session = StreamSession()
        session.feed(_event(content="kept") + 'data: {"choices":[{"delta":{"content":"lost"}}]}')
        session.finish()
        assert session.text == "kept"
        assert session.frozen

    def test_finish_closes_open_reasoning(self):
        session = StreamSession()
        session.feed(_event(reasoning_content="half"))
        session.finish()
        assert session.text == "<thinking>half</thinking>"

    def test_cancel_mid_reasoning(self):
        session = StreamSession()
        session.feed(_event(reasoning_content="thinking"))
        session.cancel()
        assert session.text == "<thinking>thinking</thinking>"
        assert session.frozen
        assert session.feed(_event(content="late")) == []

    def test_fail_appends_marker(self):
        session = StreamSession()
        session.feed(_event(content="partial"))
        session.fail("connection reset")
        assert session.text == "partial\n[Error: connection reset]"
        assert session.message.error == "connection reset"

    def test_fail_after_finish_ignored(self):
        session = StreamSession()
        session.feed(_event(content="ok") + _DONE)
        session.fail("late")
        assert session.text == "ok"

    def test_error_envelope_freezes_with_marker(self):
        session = StreamSession()
        session.feed(_event(content="a") + 'data: {"error": {"message": "overloaded"}}\n\n')
        assert session.frozen
        assert session.text == "a\n[Error: overloaded]"

    def test_running_then_completed(self):
        session = StreamSession()
        session.feed(_event(content='<tool_action name="search"><q>cats</q>'))
        group = session.segments()[-1]
        assert isinstance(group, ToolCallGroup)
        assert group.state == GroupState.RUNNING

        session.finish()
        group = session.segments()[-1]
        assert group.state == GroupState.COMPLETED


# ══════════════════════════════════════════════════════════════════
# Listeners
# ══════════════════════════════════════════════════════════════════


class TestListeners:
    def test_request_id_fires_once(self):
        seen: list[str] = []
        session = StreamSession(on_request_id=seen.append)
        session.feed(_event_with_id("first", content="a"))
        session.feed(_event_with_id("second", content="b"))
        assert seen == ["first"]

    def test_update_fires_per_applied_chunk(self):
        updates: list[str] = []
        session = StreamSession(on_update=lambda msg: updates.append(msg.text))
        session.feed(_event(content="a"))
        session.feed(_event(content="b")[:5])
        session.feed(_event(content="b")[5:])
        assert updates == ["a", "ab"]

    def test_update_fires_on_finish(self):
        states: list[MessageState] = []
        session = StreamSession(on_update=lambda msg: states.append(msg.state))
        session.feed(_event(content="a"))
        session.finish()
        session.finish()
        assert states == [MessageState.GROWING, MessageState.FROZEN]

    def test_listener_exception_swallowed(self, caplog):
        def boom(_):
            raise RuntimeError("listener broke")

        session = StreamSession(on_request_id=boom, on_update=boom)
        session.feed(_event_with_id("r", content="still decoded"))
        assert session.text == "still decoded"
        assert "Stream listener error" in caplog.text

    def test_request_id_delta_returned(self):
        session = StreamSession()
        deltas = session.feed(_event_with_id("r1", content="x"))
        assert deltas[0] == RequestIdAnnounced(request_id="r1")


# ══════════════════════════════════════════════════════════════════
# Async consumption
# ══════════════════════════════════════════════════════════════════


class TestAsyncConsume:
    @pytest.mark.asyncio
    async def test_consume_full_stream(self):
        session = StreamSession()
        message = await session.aconsume(_agen([_FULL_STREAM[:40], _FULL_STREAM[40:]]))
        assert message.text == _FULL_TEXT
        assert message.frozen

    @pytest.mark.asyncio
    async def test_consume_without_done_freezes_on_exhaustion(self):
        session = StreamSession()
        message = await session.aconsume(_agen([_event(reasoning_content="r")]))
        assert message.text == "<thinking>r</thinking>"
        assert message.frozen

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        session = StreamSession()
        chunks = _agen([_event_with_id("req-9", content="partial")], ConnectionError("connection reset"))
        with pytest.raises(TransportError) as exc_info:
            await session.aconsume(chunks)

        assert exc_info.value.request_id == "req-9"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert session.text == "partial\n[Error: connection reset]"
        assert session.frozen

    @pytest.mark.asyncio
    async def test_cancellation_freezes_and_reraises(self):
        session = StreamSession()
        chunks = _agen([_event(reasoning_content="r")], asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await session.aconsume(chunks)

        assert session.text == "<thinking>r</thinking>"
        assert session.message.error is None


# ══════════════════════════════════════════════════════════════════
# Answer-only collection
# ══════════════════════════════════════════════════════════════════


class TestCollectAnswer:
    def test_reasoning_discarded(self):
        chunks = [_event(reasoning_content="hidden"), _event(content="Hello"), _DONE]
        assert collect_answer(chunks) == "Hello"

    def test_continues_past_done(self):
        chunks = [_event(content="a"), _DONE, _event(content="b")]
        assert collect_answer(chunks) == "ab"

    def test_trailing_partial_line_dropped(self):
        chunks = [_event(content="a"), 'data: {"choices":[{"delta":{"content":"b"}}]}']
        assert collect_answer(chunks) == "a"

    def test_byte_chunks(self):
        data = (_event(content="café") + _DONE).encode("utf-8")
        chunks = [data[i:i + 3] for i in range(0, len(data), 3)]
        assert collect_answer(chunks) == "café"

    def test_split_content_json_suppressed(self):
        leaked = 'data: {"choices":[{"delta":{"content":"{\\"content\\": \\"hel"}}]}\n\n'
        chunks = [leaked, _event(content="Hi"), _DONE]
        assert collect_answer(chunks) == "Hi"

    def test_main_session_keeps_brace_text_without_reasoning_marker(self):
        session = StreamSession()
        session.feed(_event(content='{"content": "hel'))
        assert session.text == '{"content": "hel'
