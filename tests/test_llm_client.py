
import pytest
import requests

from chat_module.config import ChatLLMConfig
from chat_module.llm_client import ChatLLMClient, StreamFinish, TextDelta, ToolCall
from fakes import StreamResp, install_post, sse


def test_stream_completion_yields_text_tool_calls_and_finish(monkeypatch):
    resp = StreamResp(
        [
            sse({"choices": [{"delta": {"role": "assistant", "content": "Hel"}}]}),
            "",
            sse({"choices": [{"delta": {"content": "lo"}}]}),
            sse(
                {
                    "choices": [
                        {
                            "delta": {
                                "tool_calls": [
                                    {"index": 0, "id": "call_1", "function": {"name": "getWeather", "arguments": '{"lat":'}}
                                ]
                            }
                        }
                    ]
                }
            ),
            sse(
                {
                    "choices": [
                        {
                            "delta": {"tool_calls": [{"index": 0, "function": {"arguments": ' 1, "lon": 2, "unit": "C"}'}}]},
                            "finish_reason": "tool_calls",
                        }
                    ]
                }
            ),
            sse({"choices": [], "usage": {"prompt_tokens": 5, "completion_tokens": 7}}),
            "data: [DONE]",
        ]
    )
    install_post(monkeypatch, resp)
    client = ChatLLMClient(ChatLLMConfig(api_key="k"))

    events = list(client.stream_completion([{"role": "user", "content": "hi"}]))

    assert events[0] == TextDelta("Hel")
    assert events[1] == TextDelta("lo")
    assert events[2] == ToolCall(id="call_1", name="getWeather", arguments='{"lat": 1, "lon": 2, "unit": "C"}')
    finish = events[3]
    assert isinstance(finish, StreamFinish)
    assert finish.finish_reason == "tool-calls"
    assert finish.usage.prompt_tokens == 5
    assert finish.usage.completion_tokens == 7
    assert resp.closed


def test_stream_completion_payload_and_headers(monkeypatch):
    resp = StreamResp([sse({"choices": [{"delta": {}, "finish_reason": "stop"}]})])
    captured = install_post(monkeypatch, resp)
    client = ChatLLMClient(ChatLLMConfig(endpoint="http://llm/v1/chat/completions", api_key="secret"))
    tools = [{"type": "function", "function": {"name": "getCurrentDate"}}]

    events = list(client.stream_completion([{"role": "user", "content": "hi"}], tools=tools, model_kwargs={"temperature": 0}))

    assert captured["url"] == "http://llm/v1/chat/completions"
    assert captured["stream"] is True
    assert captured["headers"]["Authorization"] == "Bearer secret"
    payload = captured["json"]
    assert payload["model"] == "gpt-4o"
    assert payload["stream"] is True
    assert payload["tools"] == tools
    assert payload["temperature"] == 0
    assert events == [StreamFinish("stop")]


def test_no_authorization_header_without_key(monkeypatch):
    captured = install_post(monkeypatch, StreamResp([]))
    list(ChatLLMClient(ChatLLMConfig()).stream_completion([]))
    assert "Authorization" not in captured["headers"]
    assert "tools" not in captured["json"]


def test_http_error_is_raised_before_iteration(monkeypatch):
    resp = StreamResp([], status_code=500)
    install_post(monkeypatch, resp)

    with pytest.raises(requests.HTTPError):
        ChatLLMClient(ChatLLMConfig()).stream_completion([{"role": "user", "content": "hi"}])
    assert resp.closed


def test_non_json_lines_are_skipped(monkeypatch):
    install_post(monkeypatch, StreamResp([": keep-alive", "data: not-json", sse({"choices": [{"delta": {"content": "ok"}}]})]))
    events = list(ChatLLMClient(ChatLLMConfig()).stream_completion([]))
    assert events[0] == TextDelta("ok")
    assert events[-1].finish_reason == "unknown"


def test_closing_stream_early_closes_response(monkeypatch):
    resp = StreamResp([sse({"choices": [{"delta": {"content": "a"}}]}), sse({"choices": [{"delta": {"content": "b"}}]})])
    install_post(monkeypatch, resp)
    events = ChatLLMClient(ChatLLMConfig()).stream_completion([])

    assert next(events) == TextDelta("a")
    events.close()
    assert resp.closed


def test_closing_unread_stream_closes_response(monkeypatch):
    resp = StreamResp([sse({"choices": [{"delta": {"content": "a"}}]})])
    install_post(monkeypatch, resp)
    events = ChatLLMClient(ChatLLMConfig()).stream_completion([])

    events.close()

    assert resp.closed
