"""Agent runner exposed over a Server-Sent-Events stream.

``agent_module.service.AgentService`` builds a tool-using agent for each
request and runs it on the latest user message; ``agent_module.sse`` turns the
run's text stream into ``data:`` frames terminated by ``data: [DONE]``.
"""

from .agent import Agent, AgentRunError, MaxTurnsExceeded, Runner, RunResultStreaming
from .config import AgentConfig
from .service import AgentService, InvalidMessageFormat
from .sse import SSEStreamWriter, StreamState

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentRunError",
    "AgentService",
    "InvalidMessageFormat",
    "MaxTurnsExceeded",
    "Runner",
    "RunResultStreaming",
    "SSEStreamWriter",
    "StreamState",
]
