"""Shared test configuration and fixtures for OpsAgent tests."""

import copy

import pytest

from opsagent.config import Config


class ScriptedClient:
    """Completion client that replays a fixed list of responses.

    A response may be a dict or a callable taking the request messages.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def chat(self, messages, system_prompt=None, tools=None):
        self.calls.append(
            {
                "messages": copy.deepcopy(messages),
                "system_prompt": system_prompt,
                "tools": tools,
            }
        )
        if not self.responses:
            raise AssertionError("Unexpected chat() call")
        response = self.responses.pop(0)
        if callable(response):
            return response(messages)
        return response


def _text_response(text):
    return {
        "content": [{"type": "text", "text": text}],
        "stop_reason": "stop",
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }


def _tool_response(*calls):
    return {
        "content": [
            {"type": "tool_use", "id": f"call_{i}", "name": name, "input": tool_input}
            for i, (name, tool_input) in enumerate(calls, 1)
        ],
        "stop_reason": "tool_calls",
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }


@pytest.fixture
def text_response():
    return _text_response


@pytest.fixture
def tool_response():
    return _tool_response


@pytest.fixture
def scripted_client():
    """Factory for ScriptedClient instances."""
    return ScriptedClient


@pytest.fixture
def make_input():
    """Build an input() replacement that returns the given lines in order.

    Records every prompt it was called with; raises EOFError when exhausted.
    """

    def factory(lines):
        remaining = list(lines)
        prompts = []

        def input_fn(prompt=""):
            prompts.append(prompt)
            if not remaining:
                raise EOFError
            return remaining.pop(0)

        input_fn.prompts = prompts
        input_fn.remaining = remaining
        return input_fn

    return factory


@pytest.fixture
def build_log(tmp_path):
    """A build log file with known contents."""
    log_file = tmp_path / "build.log"
    log_file.write_text("Build started\nBuild succeeded with 0 errors\n", encoding="utf-8")
    return log_file


@pytest.fixture
def config(build_log):
    """A minimal configuration pointing at the temporary build log."""
    return Config(model="test-model", api_key="test-key", build_log_path=build_log)


@pytest.fixture
def mock_env(monkeypatch):
    """Clear OpsAgent environment variables for isolated tests."""
    keys = [
        "MODEL_ID",
        "PROJECT_KEY",
        "PROJECT_ENDPOINT",
        "SERVICE_ID",
        "PROVIDER",
        "BUILD_LOG_PATH",
        "MAX_AUTO_INVOKE_ATTEMPTS",
        "VERBOSE",
    ]
    for key in keys:
        monkeypatch.delenv(key, raising=False)
        monkeypatch.delenv(f"OPSAGENT_{key}", raising=False)
