"""FastAPI server exposing tool-assisted chat and agent streaming endpoints."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.background import BackgroundTask
import uvicorn

from agent_module import AgentConfig, AgentService, InvalidMessageFormat, SSEStreamWriter
from agent_module.sse import SSE_HEADERS, SSE_MEDIA_TYPE
from chat_module import ChatConfig, ChatLLMConfig, ChatService
from chat_module.data_stream import DATA_STREAM_HEADERS, DATA_STREAM_MEDIA_TYPE
from chat_module.utils import setup_logging
from retrieval import EmbeddingConfig, RetrievalConfig, RetrievalFactory, build_retrieval_factory

logger = logging.getLogger(__name__)

INVALID_MESSAGE_FORMAT = "Invalid message format"
AGENT_FAILURE = "Failed to process request with Agents SDK"


# ---------- Request Models ----------
class ToolInvocation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    state: Literal["partial-call", "call", "result"] = "result"
    tool_call_id: str = Field(..., alias="toolCallId")
    tool_name: str = Field(..., alias="toolName")
    args: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None


class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: Literal["user", "assistant"]
    content: str
    tool_invocations: Optional[List[ToolInvocation]] = Field(None, alias="toolInvocations")


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., description="Conversation history, oldest first.")


class AgentMessage(BaseModel):
    # Only the last message's role is checked, by AgentService.latest_user_message.
    role: str
    content: str


class AgentChatRequest(BaseModel):
    messages: List[AgentMessage] = Field(default_factory=list)


# ---------- FastAPI Factory ----------
def create_app(
    log_dir: Optional[str] = "./logs",
    chat_config: Optional[ChatConfig] = None,
    agent_config: Optional[AgentConfig] = None,
    *,
    retrieval_factory: Optional[RetrievalFactory] = None,
    chat_service: Optional[ChatService] = None,
    agent_service: Optional[AgentService] = None,
) -> FastAPI:
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    factory = retrieval_factory or build_retrieval_factory()

    app = FastAPI(title="Chat Agent Gateway", version="0.1.0")
    app.state.chat_service = chat_service or ChatService(chat_config, retrieval_factory=factory)
    app.state.agent_service = agent_service or AgentService(agent_config, retrieval_factory=factory)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/agent")
    async def agent_chat(request: ChatRequest):
        logger.info("Streaming chat completion for %d message(s)", len(request.messages))
        messages = [message.model_dump(by_alias=True, exclude_none=True) for message in request.messages]
        try:
            stream = app.state.chat_service.stream_chat(messages)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            logger.exception("Chat request failed")
            raise HTTPException(status_code=500, detail="Chat request failed") from exc

        return StreamingResponse(stream, media_type=DATA_STREAM_MEDIA_TYPE, headers=DATA_STREAM_HEADERS)

    @app.post("/api/agents-sdk")
    async def agents_sdk(request: Request):
        try:
            payload = await request.json()
            try:
                body = AgentChatRequest.model_validate(payload)
                messages = [message.model_dump() for message in body.messages]
                app.state.agent_service.latest_user_message(messages)
            except (ValidationError, InvalidMessageFormat):
                logger.warning("Rejecting agent request with invalid message format")
                return JSONResponse({"error": INVALID_MESSAGE_FORMAT}, status_code=400)

            run = await run_in_threadpool(app.state.agent_service.run_streamed, messages)
        except Exception:
            logger.exception("Error in agents SDK endpoint")
            return JSONResponse({"error": AGENT_FAILURE}, status_code=500)

        writer = SSEStreamWriter(run)
        return StreamingResponse(
            writer,
            media_type=SSE_MEDIA_TYPE,
            headers=SSE_HEADERS,
            background=BackgroundTask(writer.close),
        )

    return app


# ---------- CLI ----------
def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the chat and agent streaming server.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=8010, help="Port to bind.")
    parser.add_argument("--log_dir", default="./logs", help="Directory for application logs.")
    parser.add_argument(
        "--llm_endpoint", default="https://api.openai.com/v1/chat/completions", help="Chat-completions endpoint."
    )
    parser.add_argument("--llm_model", default="gpt-4o", help="Model name for completions.")
    parser.add_argument(
        "--llm_api_key",
        default=os.environ.get("OPENAI_API_KEY"),
        help="API key for the LLM provider (defaults to $OPENAI_API_KEY).",
    )
    parser.add_argument("--request_timeout", type=int, default=60, help="Timeout for LLM calls (seconds).")
    parser.add_argument("--max_steps", type=int, default=1, help="Tool round-trips per /api/agent request.")
    parser.add_argument("--max_turns", type=int, default=10, help="Model turns allowed per agent run.")
    parser.add_argument("--vector_store_dir", help="Persisted vector store used for document search.")
    parser.add_argument("--top_k", type=int, default=4, help="Documents returned per search.")
    parser.add_argument(
        "--embedding_endpoint", default="https://api.openai.com/v1/embeddings", help="Embedding endpoint."
    )
    parser.add_argument("--embedding_model", default="text-embedding-3-small", help="Embedding model name.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    llm_cfg = ChatLLMConfig(
        endpoint=args.llm_endpoint,
        model=args.llm_model,
        api_key=args.llm_api_key,
        request_timeout=args.request_timeout,
    )
    retrieval_cfg = RetrievalConfig(
        store_dir=args.vector_store_dir,
        top_k=args.top_k,
        embedding=EmbeddingConfig(
            endpoint=args.embedding_endpoint,
            model=args.embedding_model,
            api_key=args.llm_api_key,
            request_timeout=args.request_timeout,
        ),
    )

    app = create_app(
        args.log_dir,
        ChatConfig(llm=llm_cfg, max_steps=args.max_steps),
        AgentConfig(llm=llm_cfg, max_turns=args.max_turns),
        retrieval_factory=build_retrieval_factory(retrieval_cfg),
    )
    logger.info("Starting chat agent server on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
