"""Scripted stand-ins for the LLM client, its HTTP responses and the retrieval service."""

import copy
import json

import requests

from chat_module.llm_client import StreamFinish, TextDelta, ToolCall, Usage


def text_turn(*fragments, finish="stop"):
    return [TextDelta(fragment) for fragment in fragments] + [StreamFinish(finish, Usage(3, len(fragments)))]


def tool_turn(*calls, text=()):
    return [TextDelta(fragment) for fragment in text] + list(calls) + [StreamFinish("tool-calls", Usage(3, 1))]


class FakeLLMClient:
    """Replays one scripted event list per stream_completion call."""

    def __init__(self, turns=(), *, open_error=None):
        self.turns = [list(turn) for turn in turns]
        self.open_error = open_error
        self.calls = []
        self.aborted = 0

    def stream_completion(self, messages, *, tools=None, model_kwargs=None):
        self.calls.append({"messages": copy.deepcopy(messages), "tools": tools})
        if self.open_error is not None:
            raise self.open_error
        if not self.turns:
            raise AssertionError("FakeLLMClient ran out of scripted turns")
        return self._iterate(self.turns.pop(0))

    def _iterate(self, events):
        try:
            for event in events:
                if isinstance(event, Exception):
                    raise event
                yield event
        except GeneratorExit:
            self.aborted += 1
            raise


class FakeRetrieval:
    def __init__(self, documents=None, error=None):
        self.documents = documents if documents is not None else [{"id": 0, "text": "Week 1: Python basics"}]
        self.error = error
        self.queries = []

    def search_documents(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.documents


class CountingFactory:
    def __init__(self, service):
        self.service = service
        self.created = 0

    def __call__(self):
        self.created += 1
        return self.service


def weather_call(call_id="call_1", unit="C"):
    return ToolCall(id=call_id, name="getWeather", arguments='{"lat": 1.5, "lon": 2.5, "unit": "%s"}' % unit)


class StreamResp:
    """Stand-in for a streamed ``requests.Response``."""

    def __init__(self, lines, status_code=200):
        self.lines = lines
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_lines(self):
        for line in self.lines:
            yield line.encode("utf-8")

    def close(self):
        self.closed = True


def sse(payload):
    return "data: " + json.dumps(payload)


def install_post(monkeypatch, response):
    captured = {}

    def fake_post(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return response

    monkeypatch.setattr("chat_module.llm_client.requests.post", fake_post)
    return captured
