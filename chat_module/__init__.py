"""Chat orchestration module for streaming tool-assisted conversations.

This package wires a chat-completions capable LLM (``gpt-4o`` by default) with
callback tools the model may invoke. The primary entry point is
``chat_module.service.ChatService``, which streams a reply to a caller-supplied
message history as data-stream parts. ``chat_module.tools`` holds the tool
abstraction shared with ``agent_module``.
"""

from .config import ChatConfig, ChatLLMConfig
from .service import ChatService

__all__ = ["ChatConfig", "ChatLLMConfig", "ChatService"]
