"""Re-frame an agent run's text stream as Server-Sent-Events bytes."""

from __future__ import annotations

import enum
import json
import logging
from typing import Dict, FrozenSet, Iterator, Optional

from .agent import RunResultStreaming

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
SSE_MEDIA_TYPE = "text/plain; charset=utf-8"
DONE_EVENT = b"data: [DONE]\n\n"


def format_event(payload: Dict[str, object]) -> bytes:
    data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return f"data: {data}\n\n".encode("utf-8")


class StreamState(str, enum.Enum):
    STREAMING = "streaming"
    COMPLETING = "completing"
    ERRORED = "errored"
    CLOSED = "closed"


_TRANSITIONS: Dict[StreamState, FrozenSet[StreamState]] = {
    StreamState.STREAMING: frozenset({StreamState.COMPLETING, StreamState.ERRORED, StreamState.CLOSED}),
    StreamState.COMPLETING: frozenset({StreamState.ERRORED, StreamState.CLOSED}),
    StreamState.ERRORED: frozenset(),
    StreamState.CLOSED: frozenset(),
}


class SSEStreamWriter:
    """Single-use iterator of SSE frames for one agent run.

    Every text fragment becomes ``data: {"content": ...}``. Once the run's
    text stream is exhausted the writer waits on the run's completion signal
    and emits ``data: [DONE]``. Upstream errors are re-raised, so the client
    sees the connection break rather than a structured error event. Closing
    the writer before it finishes cancels the run, even if no frame has been
    produced yet.
    """

    def __init__(self, run: RunResultStreaming) -> None:
        self.run = run
        self.state = StreamState.STREAMING
        self._frame_iter: Optional[Iterator[bytes]] = None

    def __iter__(self) -> "SSEStreamWriter":
        if self._frame_iter is not None:
            raise RuntimeError("SSEStreamWriter can only be iterated once")
        self._frame_iter = self._frames()
        return self

    def __next__(self) -> bytes:
        if self._frame_iter is None:
            self._frame_iter = self._frames()
        return next(self._frame_iter)

    def close(self) -> None:
        if self._frame_iter is not None:
            self._frame_iter.close()
        if self.state is StreamState.STREAMING:
            logger.info("Agent stream closed before its first frame; cancelling run")
            self.run.cancel()
            self._transition(StreamState.CLOSED)

    def _transition(self, target: StreamState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid SSE stream transition {self.state.value} -> {target.value}")
        logger.debug("SSE stream %s -> %s", self.state.value, target.value)
        self.state = target

    def _frames(self) -> Iterator[bytes]:
        try:
            for fragment in self.run.stream_text():
                yield format_event({"content": fragment})

            self._transition(StreamState.COMPLETING)
            self.run.completed()
            yield DONE_EVENT
            self._transition(StreamState.CLOSED)
        except GeneratorExit:
            if self.state is not StreamState.CLOSED:
                logger.info("Client stopped reading the agent stream; cancelling run")
                self.run.cancel()
                self._transition(StreamState.CLOSED)
            raise
        except Exception:
            logger.exception("Streaming error")
            self._transition(StreamState.ERRORED)
            raise
