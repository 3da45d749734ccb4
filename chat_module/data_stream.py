"""Encoder for the line-oriented data-stream protocol used by ``/api/agent``.

Each part is ``<code>:<json>\\n``. Clients that speak the protocol (``useChat``
style front ends) select it with the ``X-Vercel-AI-Data-Stream: v1`` header.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from .llm_client import ToolCall, Usage

DATA_STREAM_HEADERS = {"X-Vercel-AI-Data-Stream": "v1"}
DATA_STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
DEFAULT_ERROR_MESSAGE = "An error occurred."

TEXT = "0"
ERROR = "3"
TOOL_CALL = "9"
TOOL_RESULT = "a"
FINISH_STEP = "e"
START_STEP = "f"
FINISH_MESSAGE = "d"


def format_part(code: str, value: Any) -> str:
    return f"{code}:{json.dumps(value, ensure_ascii=False, separators=(',', ':'), default=str)}\n"


def _usage(usage: Usage) -> Dict[str, int]:
    return {"promptTokens": usage.prompt_tokens, "completionTokens": usage.completion_tokens}


def start_step(message_id: str) -> str:
    return format_part(START_STEP, {"messageId": message_id})


def text(delta: str) -> str:
    return format_part(TEXT, delta)


def tool_call(call: ToolCall, args: Dict[str, Any]) -> str:
    return format_part(TOOL_CALL, {"toolCallId": call.id, "toolName": call.name, "args": args})


def tool_result(call: ToolCall, result: Any) -> str:
    return format_part(TOOL_RESULT, {"toolCallId": call.id, "result": result})


def finish_step(finish_reason: str, usage: Usage, *, is_continued: bool = False) -> str:
    return format_part(
        FINISH_STEP,
        {"finishReason": finish_reason, "usage": _usage(usage), "isContinued": is_continued},
    )


def finish_message(finish_reason: str, usage: Usage) -> str:
    return format_part(FINISH_MESSAGE, {"finishReason": finish_reason, "usage": _usage(usage)})


def error(message: str = DEFAULT_ERROR_MESSAGE) -> str:
    return format_part(ERROR, message)
