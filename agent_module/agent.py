"""Tool-using agent and the runner that drives it turn by turn.

:class:`Runner.run_streamed` returns a :class:`RunResultStreaming`. Its
:meth:`~RunResultStreaming.stream_text` yields assistant text as it arrives
while tool calls are executed between turns; :meth:`~RunResultStreaming.completed`
is the completion signal, returning the final output once the text stream is
exhausted or re-raising whatever ended the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from chat_module.llm_client import ChatLLMClient, StreamEvent, StreamFinish, TextDelta, ToolCall, Usage
from chat_module.tools import ToolSet

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 10


class AgentRunError(RuntimeError):
    """Raised when an agent run cannot produce a final output."""


class MaxTurnsExceeded(AgentRunError):
    pass


@dataclass
class Agent:
    name: str
    instructions: str
    tools: ToolSet
    model_kwargs: Dict[str, object] = field(default_factory=dict)


class RunResultStreaming:
    """State of one streamed agent run."""

    def __init__(
        self,
        agent: Agent,
        client: ChatLLMClient,
        input_text: str,
        *,
        max_turns: int = DEFAULT_MAX_TURNS,
    ) -> None:
        self.agent = agent
        self.client = client
        self.max_turns = max_turns
        self.messages: List[Dict[str, object]] = [
            {"role": "system", "content": agent.instructions},
            {"role": "user", "content": input_text},
        ]
        self.current_turn = 0
        self.usage = Usage()
        self.final_output: Optional[str] = None
        self.is_complete = False
        self.cancelled = False
        self._error: Optional[BaseException] = None
        self._events: Optional[Iterator[StreamEvent]] = None
        self._text_stream: Optional[Iterator[str]] = None

    def start(self) -> None:
        """Open the first model turn; provider errors surface here."""
        if self._events is None:
            self._events = self._open_turn()

    def stream_text(self) -> Iterator[str]:
        """Return the run's text stream. It can only be consumed once."""
        if self._text_stream is not None:
            raise AgentRunError("Text stream has already been requested for this run")
        self.start()
        self._text_stream = self._run()
        return self._text_stream

    def completed(self) -> str:
        if self._error is not None:
            raise self._error
        if self.cancelled:
            raise AgentRunError("Run was cancelled before completion")
        if not self.is_complete:
            raise AgentRunError("Run has not finished; consume stream_text() first")
        return self.final_output or ""

    def cancel(self) -> None:
        """Stop the run and release the open provider response."""
        if self.is_complete:
            return
        self.cancelled = True
        if self._text_stream is not None:
            self._text_stream.close()
        self._close_events()

    def _open_turn(self) -> Iterator[StreamEvent]:
        self.current_turn += 1
        if self.current_turn > self.max_turns:
            raise MaxTurnsExceeded(f"Agent '{self.agent.name}' exceeded {self.max_turns} turn(s)")
        logger.info("Agent %s starting turn %d", self.agent.name, self.current_turn)
        return self.client.stream_completion(
            self.messages,
            tools=self.agent.tools.definitions(),
            model_kwargs=self.agent.model_kwargs,
        )

    def _close_events(self) -> None:
        close = getattr(self._events, "close", None)
        if close is not None:
            close()

    def _run(self) -> Iterator[str]:
        try:
            while True:
                text = ""
                calls: List[ToolCall] = []
                for event in self._events:
                    if isinstance(event, TextDelta):
                        text += event.text
                        yield event.text
                    elif isinstance(event, ToolCall):
                        calls.append(event)
                    elif isinstance(event, StreamFinish):
                        self.usage = self.usage + event.usage

                if not calls:
                    self.final_output = text
                    self.is_complete = True
                    logger.info(
                        "Agent %s completed after %d turn(s) (%d prompt / %d completion tokens)",
                        self.agent.name,
                        self.current_turn,
                        self.usage.prompt_tokens,
                        self.usage.completion_tokens,
                    )
                    return

                self.messages.append(
                    {
                        "role": "assistant",
                        "content": text or None,
                        "tool_calls": [call.to_message_part() for call in calls],
                    }
                )
                for call in calls:
                    result = self.agent.tools.execute(call)
                    self.messages.append(
                        {"role": "tool", "tool_call_id": call.id, "content": ToolSet.serialise_result(result)}
                    )
                self._events = self._open_turn()
        except Exception as exc:
            self._error = exc
            raise
        finally:
            self._close_events()


class Runner:
    """Runs agents against a chat-completions client."""

    def __init__(self, client: ChatLLMClient, *, max_turns: int = DEFAULT_MAX_TURNS) -> None:
        self.client = client
        self.max_turns = max_turns

    def run_streamed(self, agent: Agent, input_text: str) -> RunResultStreaming:
        result = RunResultStreaming(agent, self.client, input_text, max_turns=self.max_turns)
        result.start()
        return result
