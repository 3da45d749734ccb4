"""Chat-completion handler: full-history chat with tools, framed as a data stream."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterator, List, Optional

from retrieval.service import RetrievalFactory

from . import data_stream
from .config import ChatConfig
from .llm_client import ChatLLMClient, StreamFinish, TextDelta, ToolCall, Usage
from .tools import GetCurrentDateTool, GetSourcesTool, ToolSet

logger = logging.getLogger(__name__)


def to_provider_messages(messages: List[Dict[str, object]]) -> List[Dict[str, object]]:
    """Convert caller messages into chat-completions messages.

    Assistant turns that carry completed ``toolInvocations`` are replayed as an
    assistant ``tool_calls`` message followed by one ``tool`` message per
    result. The caller's dictionaries are left untouched.
    """
    converted: List[Dict[str, object]] = []
    for message in messages:
        role = message.get("role")
        content = message.get("content", "")
        invocations = [
            inv for inv in (message.get("toolInvocations") or []) if inv.get("state") == "result"
        ]
        if role != "assistant" or not invocations:
            converted.append({"role": role, "content": content})
            continue

        converted.append(
            {
                "role": "assistant",
                "content": content or None,
                "tool_calls": [
                    ToolCall(
                        id=str(inv.get("toolCallId")),
                        name=str(inv.get("toolName")),
                        arguments=ToolSet.serialise_result(inv.get("args") or {}),
                    ).to_message_part()
                    for inv in invocations
                ],
            }
        )
        for inv in invocations:
            converted.append(
                {
                    "role": "tool",
                    "tool_call_id": str(inv.get("toolCallId")),
                    "content": ToolSet.serialise_result(inv.get("result")),
                }
            )
    return converted


class ChatService:
    """Streams chat completions over the caller's full message history."""

    def __init__(
        self,
        config: Optional[ChatConfig] = None,
        *,
        retrieval_factory: RetrievalFactory,
        client: Optional[ChatLLMClient] = None,
    ) -> None:
        self.config = config or ChatConfig()
        self.client = client or ChatLLMClient(self.config.llm)
        self.retrieval_factory = retrieval_factory

    def build_tools(self) -> ToolSet:
        return ToolSet([GetSourcesTool(self.retrieval_factory), GetCurrentDateTool()])

    def stream_chat(self, messages: List[Dict[str, object]]) -> Iterator[str]:
        """Return a generator of data-stream parts for one assistant reply."""
        if not messages:
            raise ValueError("messages must not be empty")

        prompt: List[Dict[str, object]] = [{"role": "system", "content": self.config.system_prompt}]
        prompt.extend(to_provider_messages(messages))
        tools = self.build_tools()
        max_steps = max(1, self.config.max_steps)

        def generator() -> Iterator[str]:
            total_usage = Usage()
            finish_reason = "unknown"
            try:
                for step in range(max_steps):
                    yield data_stream.start_step(f"msg-{uuid.uuid4().hex}")
                    calls: List[ToolCall] = []
                    text = ""
                    step_usage = Usage()
                    events = self.client.stream_completion(
                        prompt,
                        tools=tools.definitions(),
                        model_kwargs=self.config.model_kwargs,
                    )
                    for event in events:
                        if isinstance(event, TextDelta):
                            text += event.text
                            yield data_stream.text(event.text)
                        elif isinstance(event, ToolCall):
                            calls.append(event)
                            yield data_stream.tool_call(event, tools.arguments(event))
                        elif isinstance(event, StreamFinish):
                            finish_reason = event.finish_reason
                            step_usage = event.usage
                            total_usage = total_usage + event.usage

                    results = []
                    for call in calls:
                        result = tools.execute(call)
                        results.append(result)
                        yield data_stream.tool_result(call, result)

                    yield data_stream.finish_step(finish_reason, step_usage)
                    if not calls or step + 1 >= max_steps:
                        break

                    logger.debug("Continuing to step %d after %d tool call(s)", step + 2, len(calls))
                    prompt.append(
                        {
                            "role": "assistant",
                            "content": text or None,
                            "tool_calls": [call.to_message_part() for call in calls],
                        }
                    )
                    for call, result in zip(calls, results):
                        prompt.append(
                            {"role": "tool", "tool_call_id": call.id, "content": ToolSet.serialise_result(result)}
                        )

                yield data_stream.finish_message(finish_reason, total_usage)
            except Exception:
                logger.exception("Chat completion stream failed")
                yield data_stream.error()

        return generator()
