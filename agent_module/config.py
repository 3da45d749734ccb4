"""Configuration objects for the agent module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from chat_module.config import ChatLLMConfig


@dataclass
class AgentConfig:
    """Runtime controls for the agent-runner handler."""

    llm: ChatLLMConfig = field(default_factory=ChatLLMConfig)
    name: str = "AI SDK Agent Assistant"
    instructions: str = (
        "You are a helpful assistant that can access location data, weather information, "
        "and proprietary document sources.\n\n"
        "When users ask questions:\n"
        "1. Use available tools to gather relevant information\n"
        "2. Provide comprehensive answers based on the data retrieved\n"
        "3. Be clear about what information comes from which sources"
    )
    max_turns: int = 10
    model_kwargs: Dict[str, object] = field(default_factory=dict)
