"""Tests for completion clients and their retry logic."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from opsagent.api_client import (
    ClaudeClient,
    OpenAIClient,
    RetryableError,
    calculate_backoff_delay,
    create_client,
    is_retryable_error,
    parse_tool_arguments,
    retry_after_seconds,
    with_retry,
)


class TestCalculateBackoffDelay:
    """Tests for exponential backoff calculation."""

    def test_first_attempt_delay(self):
        assert calculate_backoff_delay(0, base_delay=1.0, jitter=False) == 1.0

    def test_exponential_growth(self):
        delays = [calculate_backoff_delay(i, base_delay=1.0, jitter=False) for i in range(5)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_max_delay_cap(self):
        assert calculate_backoff_delay(10, base_delay=1.0, max_delay=30.0, jitter=False) == 30.0

    def test_jitter_bounds(self):
        delays = [calculate_backoff_delay(0, base_delay=1.0, jitter=True) for _ in range(50)]
        assert all(1.0 <= d <= 1.5 for d in delays)


class StatusError(Exception):
    """Stand-in for an SDK APIStatusError."""

    def __init__(self, status_code, headers=None):
        super().__init__(f"Error code: {status_code}")
        self.status_code = status_code
        self.response = SimpleNamespace(headers=headers or {})


class APIConnectionError(Exception):
    """Same name as the SDK transport error."""


class TestIsRetryableError:
    """Tests for error classification."""

    def test_rate_limit_status(self):
        assert is_retryable_error(StatusError(429)) == (True, True)

    @pytest.mark.parametrize("status", [408, 500, 502, 503, 504, 529])
    def test_transient_statuses(self, status):
        assert is_retryable_error(StatusError(status)) == (True, False)

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_statuses_not_retried(self, status):
        assert is_retryable_error(StatusError(status)) == (False, False)

    def test_sdk_transport_error(self):
        assert is_retryable_error(APIConnectionError("boom")) == (True, False)

    def test_connection_error(self):
        assert is_retryable_error(ConnectionError("Connection refused")) == (True, False)

    @pytest.mark.parametrize("message", ["rate_limit_exceeded", "Too Many Requests"])
    def test_rate_limit_message(self, message):
        assert is_retryable_error(Exception(message)) == (True, True)

    @pytest.mark.parametrize("message", ["503 Service Unavailable", "Service overloaded"])
    def test_transient_message(self, message):
        assert is_retryable_error(Exception(message))[0] is True

    @pytest.mark.parametrize("message", ["Invalid API key", "Bad request: missing parameter"])
    def test_client_errors_not_retried(self, message):
        assert is_retryable_error(Exception(message))[0] is False


class TestRetryAfter:
    """Retry-After hints from the server."""

    def test_reads_header(self):
        assert retry_after_seconds(StatusError(429, {"retry-after": "7"})) == 7.0

    @pytest.mark.parametrize("error", [StatusError(429), StatusError(503, {"retry-after": "soon"}), Exception("x")])
    def test_missing_or_unparseable(self, error):
        assert retry_after_seconds(error) is None

    @patch("opsagent.api_client.time.sleep")
    def test_hint_overrides_backoff(self, sleep):
        attempts = []

        @with_retry(max_retries=1, max_delay=30.0)
        def limited():
            attempts.append(1)
            if len(attempts) == 1:
                raise RetryableError(Exception("429"), is_rate_limit=True, retry_after=5.0)
            return "ok"

        assert limited() == "ok"
        sleep.assert_called_once_with(5.0)

    @patch("opsagent.api_client.time.sleep")
    def test_hint_capped_at_max_delay(self, sleep):
        @with_retry(max_retries=1, max_delay=10.0)
        def limited():
            if not sleep.called:
                raise RetryableError(Exception("429"), retry_after=120.0)
            return "ok"

        assert limited() == "ok"
        sleep.assert_called_once_with(10.0)


class TestWithRetryDecorator:
    """Tests for the @with_retry decorator."""

    @patch("opsagent.api_client.time.sleep")
    def test_retries_until_success(self, sleep):
        attempts = []

        @with_retry(max_retries=3)
        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise RetryableError(Exception("Temporary failure"))
            return "ok"

        assert flaky() == "ok"
        assert len(attempts) == 3
        assert sleep.call_count == 2

    @patch("opsagent.api_client.time.sleep")
    def test_gives_up_after_max_retries(self, sleep):
        attempts = []

        @with_retry(max_retries=2)
        def always_fails():
            attempts.append(1)
            raise RetryableError(Exception("down"))

        with pytest.raises(RetryableError):
            always_fails()
        assert len(attempts) == 3

    @patch("opsagent.api_client.time.sleep")
    def test_rate_limit_doubles_delay(self, sleep):
        attempts = []

        @with_retry(max_retries=1, base_delay=1.0)
        def limited():
            attempts.append(1)
            if len(attempts) == 1:
                raise RetryableError(Exception("429"), is_rate_limit=True)
            return "ok"

        with patch("opsagent.api_client.random.random", return_value=0.0):
            assert limited() == "ok"
        sleep.assert_called_once_with(2.0)

    def test_non_retryable_propagates(self):
        attempts = []

        @with_retry(max_retries=3)
        def broken():
            attempts.append(1)
            raise ValueError("Not retryable")

        with pytest.raises(ValueError):
            broken()
        assert len(attempts) == 1


class TestParseToolArguments:
    """JSON arguments from the model."""

    def test_valid_json(self):
        assert parse_tool_arguments('{"branchName": "x"}') == {"branchName": "x"}

    def test_empty_is_no_arguments(self):
        assert parse_tool_arguments("") == {}
        assert parse_tool_arguments(None) == {}

    def test_corrupted_json_marked(self):
        result = parse_tool_arguments('{"branchName": ', "DevopsPlugin-CreateNewBranch")
        assert "__parse_error__" in result
        assert result["__raw__"] == '{"branchName": '


def _openai_client():
    client = OpenAIClient.__new__(OpenAIClient)
    client.client = MagicMock()
    client.model = "gpt-test"
    return client


def _openai_response(content=None, tool_calls=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
    )


def _tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


class TestOpenAIClient:
    """Conversion between the block format and the OpenAI wire format."""

    def test_text_response(self):
        client = _openai_client()
        client.client.chat.completions.create.return_value = _openai_response("Hello")

        response = client.chat([{"role": "user", "content": "hi"}], system_prompt="Be nice")

        assert response["content"] == [{"type": "text", "text": "Hello"}]
        assert response["usage"] == {"input_tokens": 12, "output_tokens": 3}
        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "Be nice"}
        assert kwargs["model"] == "gpt-test"
        assert "tools" not in kwargs

    def test_tool_calls_parsed(self):
        client = _openai_client()
        client.client.chat.completions.create.return_value = _openai_response(
            tool_calls=[
                _tool_call("c1", "DevopsPlugin-DeployToStage", "{}"),
                _tool_call("c2", "DevopsPlugin-CreateNewBranch", "{not json"),
            ],
            finish_reason="tool_calls",
        )

        response = client.chat([{"role": "user", "content": "go"}])

        first, second = response["content"]
        assert first == {
            "type": "tool_use",
            "id": "c1",
            "name": "DevopsPlugin-DeployToStage",
            "input": {},
        }
        assert "__parse_error__" in second["input"]

    def test_tools_converted(self):
        client = _openai_client()
        tools = [{"name": "A-B", "description": "d", "input_schema": {"type": "object"}}]

        assert client._convert_tools(tools) == [
            {
                "type": "function",
                "function": {"name": "A-B", "description": "d", "parameters": {"type": "object"}},
            }
        ]

    def test_tool_exchange_formatted(self):
        client = _openai_client()
        assistant = {
            "role": "assistant",
            "content": [{"type": "tool_use", "id": "c1", "name": "A-B", "input": {"x": "1"}}],
        }
        results = {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": "c1", "content": "done"},
                {"type": "tool_result", "tool_use_id": "c2", "content": "also done"},
            ],
        }

        formatted = client._format_message(assistant)
        assert formatted["content"] is None
        assert formatted["tool_calls"][0]["function"] == {"name": "A-B", "arguments": '{"x": "1"}'}
        assert client._format_message(results) == [
            {"role": "tool", "tool_call_id": "c1", "content": "done"},
            {"role": "tool", "tool_call_id": "c2", "content": "also done"},
        ]

    @patch("opsagent.api_client.time.sleep")
    def test_transient_error_retried(self, sleep):
        client = _openai_client()
        client.client.chat.completions.create.side_effect = [
            Exception("503 Service Unavailable"),
            _openai_response("ok"),
        ]

        response = client.chat([{"role": "user", "content": "hi"}])

        assert response["content"][0]["text"] == "ok"
        assert client.client.chat.completions.create.call_count == 2

    @patch("opsagent.api_client.time.sleep")
    def test_rate_limit_waits_for_retry_after(self, sleep):
        client = _openai_client()
        client.client.chat.completions.create.side_effect = [
            StatusError(429, {"retry-after": "3"}),
            _openai_response("ok"),
        ]

        response = client.chat([{"role": "user", "content": "hi"}])

        assert response["content"][0]["text"] == "ok"
        sleep.assert_called_once_with(3.0)

    def test_bad_request_status_not_retried(self):
        client = _openai_client()
        client.client.chat.completions.create.side_effect = StatusError(400)

        with pytest.raises(StatusError):
            client.chat([{"role": "user", "content": "hi"}])
        assert client.client.chat.completions.create.call_count == 1

    def test_auth_error_not_retried(self):
        client = _openai_client()
        client.client.chat.completions.create.side_effect = Exception("Invalid API key")

        with pytest.raises(Exception, match="Invalid API key"):
            client.chat([{"role": "user", "content": "hi"}])
        assert client.client.chat.completions.create.call_count == 1


class TestClaudeClient:
    """Claude responses are already in block format."""

    def test_parse_response(self):
        client = ClaudeClient.__new__(ClaudeClient)
        response = SimpleNamespace(
            stop_reason="tool_use",
            usage=SimpleNamespace(input_tokens=7, output_tokens=2),
            content=[
                SimpleNamespace(type="text", text="Deploying."),
                SimpleNamespace(type="tool_use", id="t1", name="DevopsPlugin-DeployToStage", input={}),
            ],
        )

        parsed = client._parse_response(response)

        assert parsed["stop_reason"] == "tool_use"
        assert parsed["content"][1]["name"] == "DevopsPlugin-DeployToStage"
        assert parsed["usage"] == {"input_tokens": 7, "output_tokens": 2}

    def test_system_prompt_and_tools_passed(self):
        client = ClaudeClient.__new__(ClaudeClient)
        client.model = "claude-test"
        client.client = MagicMock()
        client.client.messages.create.return_value = SimpleNamespace(
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=1, output_tokens=1),
            content=[SimpleNamespace(type="text", text="hi")],
        )
        tools = [{"name": "A-B", "description": "d", "input_schema": {"type": "object"}}]

        client.chat([{"role": "user", "content": "hi"}], system_prompt="sys", tools=tools)

        kwargs = client.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["tools"] == tools


class TestCreateClient:
    """Provider selection."""

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            create_client("gemini", "key")

    @patch("opsagent.api_client.OpenAIClient")
    def test_openai_uses_endpoint(self, client_cls):
        create_client("openai", "key", model="gpt-test", endpoint="https://example.test/v1")
        client_cls.assert_called_once_with("key", model="gpt-test", base_url="https://example.test/v1")
