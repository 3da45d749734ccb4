"""Client wrapper for streaming chat-completions requests with tool calling."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union

import requests

from .config import ChatLLMConfig

logger = logging.getLogger(__name__)


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


@dataclass
class TextDelta:
    """A fragment of assistant text."""

    text: str


@dataclass
class ToolCall:
    """A tool call requested by the model, assembled from streamed deltas."""

    id: str
    name: str
    arguments: str = ""

    def to_message_part(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments or "{}"},
        }


@dataclass
class StreamFinish:
    """Terminal event of one completion stream."""

    finish_reason: str = "unknown"
    usage: Usage = field(default_factory=Usage)


StreamEvent = Union[TextDelta, ToolCall, StreamFinish]


class CompletionStream:
    """Iterator over one streamed completion that owns its HTTP response.

    ``close()`` releases the response even when no event has been read yet.
    """

    def __init__(self, response: requests.Response, events: Iterator[StreamEvent]) -> None:
        self.response = response
        self._events = events

    def __iter__(self) -> "CompletionStream":
        return self

    def __next__(self) -> StreamEvent:
        return next(self._events)

    def close(self) -> None:
        try:
            self._events.close()
        finally:
            self.response.close()


class ChatLLMClient:
    """Thin wrapper around a chat-completions endpoint with streaming support."""

    def __init__(self, config: ChatLLMConfig) -> None:
        self.config = config

    def stream_completion(
        self,
        messages: List[Dict[str, object]],
        *,
        tools: Optional[List[Dict[str, object]]] = None,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> CompletionStream:
        """Open a streaming completion and return an iterator over its events.

        The HTTP request is sent before this method returns, so connection and
        status errors are raised here rather than on first iteration. Text
        deltas are yielded as they arrive; tool calls are yielded once the
        provider has finished streaming them, followed by a single
        :class:`StreamFinish`.
        """
        payload: Dict[str, object] = {
            "model": self.config.model,
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            payload["tools"] = tools
        if model_kwargs:
            payload.update(model_kwargs)

        logger.info(
            "Streaming chat completion to %s using model %s (%d message(s), %d tool(s))",
            self.config.endpoint,
            self.config.model,
            len(messages),
            len(tools or []),
        )
        response = requests.post(
            self.config.endpoint,
            json=payload,
            headers=self._headers(),
            stream=True,
            timeout=self.config.request_timeout,
        )
        try:
            response.raise_for_status()
        except requests.HTTPError:
            response.close()
            raise
        return CompletionStream(response, self._iter_events(response))

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _iter_events(self, response: requests.Response) -> Iterator[StreamEvent]:
        pending: Dict[int, ToolCall] = {}
        finish_reason = "unknown"
        usage = Usage()
        try:
            for raw_line in response.iter_lines():
                if not raw_line:
                    continue
                line = raw_line.decode("utf-8").strip()
                if line.startswith("data:"):
                    line = line[5:].strip()
                if not line or line == "[DONE]":
                    continue

                try:
                    chunk = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Skipping non-JSON stream line: %s", line)
                    continue

                if chunk.get("usage"):
                    usage = self._extract_usage(chunk["usage"])

                choices = chunk.get("choices") or []
                if not choices:
                    continue
                choice = choices[0]
                delta = choice.get("delta") or {}

                content = delta.get("content")
                if content:
                    yield TextDelta(str(content))

                for fragment in delta.get("tool_calls") or []:
                    self._merge_tool_call(pending, fragment)

                if choice.get("finish_reason"):
                    finish_reason = str(choice["finish_reason"])
        finally:
            response.close()

        for index in sorted(pending):
            yield pending[index]
        yield StreamFinish(finish_reason=finish_reason.replace("_", "-"), usage=usage)

    @staticmethod
    def _merge_tool_call(pending: Dict[int, ToolCall], fragment: Dict[str, object]) -> None:
        index = int(fragment.get("index", 0) or 0)
        function = fragment.get("function") or {}
        call = pending.get(index)
        if call is None:
            call = ToolCall(id=str(fragment.get("id") or f"call_{index}"), name="")
            pending[index] = call
        elif fragment.get("id"):
            call.id = str(fragment["id"])
        if function.get("name"):
            call.name += str(function["name"])
        if function.get("arguments"):
            call.arguments += str(function["arguments"])

    @staticmethod
    def _extract_usage(payload: Dict[str, object]) -> Usage:
        return Usage(
            prompt_tokens=int(payload.get("prompt_tokens") or 0),
            completion_tokens=int(payload.get("completion_tokens") or 0),
        )
