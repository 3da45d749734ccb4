"""Agent-runner handler: runs a tool-using agent on the latest user message."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from chat_module.llm_client import ChatLLMClient
from chat_module.tools import GetLocationTool, GetWeatherTool, SearchDocumentsTool, ToolSet
from retrieval.service import RetrievalFactory

from .agent import Agent, Runner, RunResultStreaming
from .config import AgentConfig

logger = logging.getLogger(__name__)


class InvalidMessageFormat(ValueError):
    """The request does not end with a user message."""


class AgentService:
    """Builds a fresh agent per request and starts streamed runs."""

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        *,
        retrieval_factory: RetrievalFactory,
        client: Optional[ChatLLMClient] = None,
    ) -> None:
        self.config = config or AgentConfig()
        self.client = client or ChatLLMClient(self.config.llm)
        self.retrieval_factory = retrieval_factory

    @staticmethod
    def latest_user_message(messages: List[Dict[str, object]]) -> str:
        """Return the content of the last message, which must come from the user."""
        latest = messages[-1] if messages else None
        if not latest or latest.get("role") != "user":
            raise InvalidMessageFormat("Invalid message format")
        return str(latest.get("content", ""))

    def build_agent(self) -> Agent:
        tools = ToolSet(
            [
                GetLocationTool(),
                GetWeatherTool(),
                SearchDocumentsTool(self.retrieval_factory),
            ]
        )
        return Agent(
            name=self.config.name,
            instructions=self.config.instructions,
            tools=tools,
            model_kwargs=self.config.model_kwargs,
        )

    def run_streamed(self, messages: List[Dict[str, object]]) -> RunResultStreaming:
        """Validate ``messages`` and start a run on the last user message only.

        Earlier turns are not sent to the model.
        """
        content = self.latest_user_message(messages)
        agent = self.build_agent()
        logger.info("Running agent %s on latest user message (%d chars)", agent.name, len(content))
        runner = Runner(self.client, max_turns=self.config.max_turns)
        return runner.run_streamed(agent, content)
