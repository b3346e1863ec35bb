"""Exceptions raised by chatstream.

Almost nothing in the stream path raises: malformed lines are dropped and
unparseable invocations become structured results. The only failure that
crosses the package boundary is a transport error surfaced by
StreamSession.aconsume.
"""


class ChatStreamError(Exception):
    """Base exception for all chatstream errors."""
    pass


class TransportError(ChatStreamError):
    """The transport feeding a StreamSession failed mid-stream.

    The affected message is frozen with an inline error marker before this
    is raised.
    """

    def __init__(self, message: str, request_id: str | None = None) -> None:
        super().__init__(message)
        self.request_id = request_id
