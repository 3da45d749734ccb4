"""Configuration objects for the chat module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class ChatLLMConfig:
    """LLM connection details."""

    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4o"
    api_key: Optional[str] = None
    request_timeout: int = 60


@dataclass
class ChatConfig:
    """Runtime controls for the chat-completion handler."""

    llm: ChatLLMConfig = field(default_factory=ChatLLMConfig)
    system_prompt: str = "You are a helpful assistant; mostly for beginners."
    # Tool round-trips per request; the caller replays tool results on its next turn.
    max_steps: int = 1
    model_kwargs: Dict[str, object] = field(default_factory=dict)
