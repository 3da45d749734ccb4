import json

import pytest

from chat_module.config import ChatConfig
from chat_module.llm_client import ToolCall
from chat_module.service import ChatService, to_provider_messages
from fakes import FakeLLMClient, FakeRetrieval, CountingFactory, text_turn, tool_turn


def parse_parts(body):
    parts = []
    for line in body.splitlines():
        code, _, payload = line.partition(":")
        parts.append((code, json.loads(payload)))
    return parts


def run(service, messages):
    return "".join(service.stream_chat(messages))


def test_text_reply_is_framed_as_data_stream(retrieval_factory):
    client = FakeLLMClient([text_turn("Hel", "lo")])
    service = ChatService(retrieval_factory=retrieval_factory, client=client)

    parts = parse_parts(run(service, [{"role": "user", "content": "hi"}]))

    codes = [code for code, _ in parts]
    assert codes == ["f", "0", "0", "e", "d"]
    assert parts[1][1] == "Hel"
    assert parts[2][1] == "lo"
    assert parts[4][1] == {"finishReason": "stop", "usage": {"promptTokens": 3, "completionTokens": 2}}


def test_full_history_with_system_prompt_and_tools(retrieval_factory):
    client = FakeLLMClient([text_turn("ok")])
    service = ChatService(retrieval_factory=retrieval_factory, client=client)
    history = [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "answer"},
        {"role": "user", "content": "second"},
    ]

    run(service, history)

    sent = client.calls[0]["messages"]
    assert sent[0] == {"role": "system", "content": "You are a helpful assistant; mostly for beginners."}
    assert sent[1:] == history
    assert [tool["function"]["name"] for tool in client.calls[0]["tools"]] == ["getSources", "getCurrentDate"]


def test_tool_call_emits_call_and_result_parts(retrieval, retrieval_factory):
    call = ToolCall(id="call_9", name="getSources", arguments='{"query": "schedule"}')
    client = FakeLLMClient([tool_turn(call)])
    service = ChatService(retrieval_factory=retrieval_factory, client=client)

    parts = parse_parts(run(service, [{"role": "user", "content": "when is week 1?"}]))

    assert [code for code, _ in parts] == ["f", "9", "a", "e", "d"]
    assert parts[1][1] == {"toolCallId": "call_9", "toolName": "getSources", "args": {"query": "schedule"}}
    assert parts[2][1] == {"toolCallId": "call_9", "result": retrieval.documents}
    assert parts[4][1]["finishReason"] == "tool-calls"
    assert len(client.calls) == 1


def test_extra_steps_feed_tool_results_back(retrieval_factory):
    call = ToolCall(id="call_1", name="getCurrentDate", arguments="{}")
    client = FakeLLMClient([tool_turn(call), text_turn("Today is the day")])
    service = ChatService(ChatConfig(max_steps=2), retrieval_factory=retrieval_factory, client=client)

    parts = parse_parts(run(service, [{"role": "user", "content": "date?"}]))

    assert [code for code, _ in parts] == ["f", "9", "a", "e", "f", "0", "e", "d"]
    second_prompt = client.calls[1]["messages"]
    assert second_prompt[-2]["tool_calls"][0]["function"]["name"] == "getCurrentDate"
    assert second_prompt[-1]["role"] == "tool"
    assert second_prompt[-1]["tool_call_id"] == "call_1"
    assert parts[-1][1]["usage"]["promptTokens"] == 6


def test_retrieval_failure_ends_stream_with_error_part():
    factory = CountingFactory(FakeRetrieval(error=RuntimeError("index offline")))
    call = ToolCall(id="call_1", name="getSources", arguments='{"query": "x"}')
    service = ChatService(retrieval_factory=factory, client=FakeLLMClient([tool_turn(call)]))

    parts = parse_parts(run(service, [{"role": "user", "content": "sources?"}]))

    assert parts[-1] == ("3", "An error occurred.")
    assert "d" not in [code for code, _ in parts]


def test_provider_failure_ends_stream_with_error_part(retrieval_factory):
    service = ChatService(
        retrieval_factory=retrieval_factory, client=FakeLLMClient(open_error=ConnectionError("refused"))
    )
    parts = parse_parts(run(service, [{"role": "user", "content": "hi"}]))
    assert parts[-1] == ("3", "An error occurred.")


def test_empty_history_rejected(retrieval_factory):
    service = ChatService(retrieval_factory=retrieval_factory, client=FakeLLMClient())
    with pytest.raises(ValueError):
        service.stream_chat([])


def test_tool_invocations_are_replayed_without_mutation():
    invocation = {
        "state": "result",
        "toolCallId": "call_1",
        "toolName": "getCurrentDate",
        "args": {},
        "result": {"date": "2024-05-01", "timezone": "UTC"},
    }
    pending = {"state": "call", "toolCallId": "call_2", "toolName": "getSources", "args": {"query": "x"}}
    messages = [
        {"role": "user", "content": "date?"},
        {"role": "assistant", "content": "", "toolInvocations": [invocation, pending]},
    ]
    snapshot = json.loads(json.dumps(messages))

    converted = to_provider_messages(messages)

    assert messages == snapshot
    assert converted[0] == {"role": "user", "content": "date?"}
    assert converted[1]["role"] == "assistant"
    assert converted[1]["content"] is None
    assert converted[1]["tool_calls"] == [
        {"id": "call_1", "type": "function", "function": {"name": "getCurrentDate", "arguments": "{}"}}
    ]
    assert converted[2] == {
        "role": "tool",
        "tool_call_id": "call_1",
        "content": json.dumps({"date": "2024-05-01", "timezone": "UTC"}),
    }
    assert len(converted) == 3
