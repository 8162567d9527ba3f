"""Completion clients for OpsAgent.

Every client answers chat(messages, system_prompt, tools) with the same
provider-neutral shape:

    {"content": [{"type": "text", "text": ...},
                 {"type": "tool_use", "id": ..., "name": ..., "input": {...}}],
     "stop_reason": str,
     "usage": {"input_tokens": int, "output_tokens": int}}

Messages use the same block format; the OpenAI client converts on the way in.
"""

import json
import logging
import random
import time
from abc import ABC, abstractmethod
from functools import wraps

DEFAULT_TIMEOUT_SECONDS = 120
DEFAULT_CONNECT_TIMEOUT = 10

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds

DEFAULT_MAX_TOKENS = 4096

# HTTP statuses both SDKs surface on APIStatusError.status_code
RATE_LIMIT_STATUS = 429
RETRYABLE_STATUSES = frozenset({408, 409, 429, 500, 502, 503, 504, 529})

# Transport failures raised by the openai and anthropic SDKs (no status code)
TRANSPORT_ERROR_NAMES = ("APIConnectionError", "APITimeoutError")

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """A provider failure worth another attempt.

    Carries the server's Retry-After hint when the response had one.
    """

    def __init__(self, original_error, is_rate_limit=False, retry_after=None):
        self.original_error = original_error
        self.is_rate_limit = is_rate_limit
        self.retry_after = retry_after
        super().__init__(str(original_error))


def calculate_backoff_delay(attempt, base_delay=DEFAULT_BASE_DELAY, max_delay=DEFAULT_MAX_DELAY, jitter=True):
    """Seconds to wait before retry number attempt + 1 (doubling, capped, 0-50% jitter)."""
    delay = min(base_delay * 2**attempt, max_delay)
    if jitter:
        delay += delay * random.random() * 0.5
    return delay


def with_retry(max_retries=DEFAULT_MAX_RETRIES, base_delay=DEFAULT_BASE_DELAY, max_delay=DEFAULT_MAX_DELAY):
    """Retry a provider call on RetryableError, ConnectionError or TimeoutError.

    A Retry-After hint from the server wins over the computed backoff.
    Rate limits without a hint wait twice as long.
    """
    retryable = (RetryableError, ConnectionError, TimeoutError)

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except retryable as e:
                    if attempt >= max_retries:
                        logger.error("Giving up after %d retries: %s", max_retries, e)
                        raise

                    retry_after = getattr(e, "retry_after", None)
                    if retry_after is not None:
                        delay = min(retry_after, max_delay)
                    else:
                        delay = calculate_backoff_delay(attempt, base_delay, max_delay)
                        if getattr(e, "is_rate_limit", False):
                            delay *= 2

                    attempt += 1
                    logger.warning("Retry %d/%d in %.1fs: %s", attempt, max_retries, delay, e)
                    time.sleep(delay)

        return wrapper

    return decorator


def retry_after_seconds(error):
    """Read the Retry-After header off an SDK status error, if any."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    try:
        return float(headers.get("retry-after"))
    except (TypeError, ValueError):
        return None


def is_retryable_error(error) -> tuple[bool, bool]:
    """Classify a provider error.

    Returns:
        Tuple of (is_retryable, is_rate_limit)
    """
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status in RETRYABLE_STATUSES, status == RATE_LIMIT_STATUS

    if isinstance(error, (ConnectionError, TimeoutError)):
        return True, False
    if type(error).__name__ in TRANSPORT_ERROR_NAMES:
        return True, False

    # Proxies and compatible endpoints sometimes only say it in the message
    message = str(error).lower()
    if "rate limit" in message or "rate_limit" in message or "too many requests" in message:
        return True, True
    return any(hint in message for hint in ("overloaded", "unavailable", "timed out")), False


def parse_tool_arguments(raw, tool_name="unknown"):
    """Parse a JSON argument string from the model.

    Unparseable input is returned as a marker dict so the agent can answer the
    call with an error instead of dispatching it.
    """
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.info(f"Tool call JSON parse failed for {tool_name}: {e}. Raw: {raw[:200]}")
        return {"__parse_error__": str(e), "__raw__": raw[:500]}


class BaseAPIClient(ABC):
    """Base class for API clients."""

    model = ""

    @abstractmethod
    def chat(self, messages, system_prompt=None, tools=None):
        """Send a chat request and return the response."""
        pass


class ClaudeClient(BaseAPIClient):
    """Anthropic Claude API client."""

    def __init__(self, api_key, model="claude-sonnet-4-5", base_url=None, timeout=DEFAULT_TIMEOUT_SECONDS):
        import anthropic
        from anthropic import Timeout

        kwargs = {
            "api_key": api_key,
            "timeout": Timeout(timeout, connect=DEFAULT_CONNECT_TIMEOUT),
        }
        if base_url:
            kwargs["base_url"] = base_url

        self.client = anthropic.Anthropic(**kwargs)
        self.model = model

    def chat(self, messages, system_prompt=None, tools=None):
        """Send a chat request to Claude with retry logic."""
        kwargs = {
            "model": self.model,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "messages": messages,
        }

        if system_prompt:
            kwargs["system"] = system_prompt

        if tools:
            kwargs["tools"] = tools

        return self._chat_with_retry(**kwargs)

    @with_retry(max_retries=DEFAULT_MAX_RETRIES)
    def _chat_with_retry(self, **kwargs):
        try:
            response = self.client.messages.create(**kwargs)
            return self._parse_response(response)
        except Exception as e:
            is_retryable, is_rate_limit = is_retryable_error(e)
            if is_retryable:
                raise RetryableError(
                    e, is_rate_limit=is_rate_limit, retry_after=retry_after_seconds(e)
                ) from e
            raise

    def _parse_response(self, response):
        """Parse Claude's response into the standard format."""
        result = {
            "content": [],
            "stop_reason": response.stop_reason,
            "usage": {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        }

        for block in response.content:
            if block.type == "text":
                result["content"].append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                result["content"].append(
                    {
                        "type": "tool_use",
                        "id": block.id,
                        "name": block.name,
                        "input": block.input,
                    }
                )

        return result


class OpenAIClient(BaseAPIClient):
    """OpenAI (or OpenAI-compatible endpoint) client."""

    def __init__(self, api_key, model="gpt-4o", base_url=None, timeout=DEFAULT_TIMEOUT_SECONDS):
        import openai

        self.client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
        )
        self.model = model

    def chat(self, messages, system_prompt=None, tools=None):
        """Send a chat request to OpenAI with retry logic."""
        formatted_messages = []

        if system_prompt:
            formatted_messages.append({"role": "system", "content": system_prompt})

        for msg in messages:
            formatted = self._format_message(msg)
            # Tool results expand into several messages
            if isinstance(formatted, list):
                formatted_messages.extend(formatted)
            else:
                formatted_messages.append(formatted)

        kwargs = {
            "model": self.model,
            "messages": formatted_messages,
        }

        if tools:
            kwargs["tools"] = self._convert_tools(tools)

        return self._chat_with_retry(**kwargs)

    @with_retry(max_retries=DEFAULT_MAX_RETRIES)
    def _chat_with_retry(self, **kwargs):
        try:
            response = self.client.chat.completions.create(**kwargs)
            return self._parse_response(response)
        except Exception as e:
            is_retryable, is_rate_limit = is_retryable_error(e)
            if is_retryable:
                raise RetryableError(
                    e, is_rate_limit=is_rate_limit, retry_after=retry_after_seconds(e)
                ) from e
            raise

    def _format_message(self, msg):
        """Format a message for OpenAI."""
        if msg["role"] == "user":
            if isinstance(msg["content"], str):
                return {"role": "user", "content": msg["content"]}
            # Block-format tool results become one "tool" message each
            if (
                isinstance(msg["content"], list)
                and msg["content"]
                and msg["content"][0].get("type") == "tool_result"
            ):
                return [
                    {
                        "role": "tool",
                        "tool_call_id": item["tool_use_id"],
                        "content": item["content"]
                        if isinstance(item["content"], str)
                        else json.dumps(item["content"]),
                    }
                    for item in msg["content"]
                ]
            return {"role": "user", "content": json.dumps(msg["content"])}

        if msg["role"] == "assistant" and isinstance(msg["content"], list):
            text_content = ""
            tool_calls = []

            for block in msg["content"]:
                if block.get("type") == "text":
                    text_content += block.get("text", "")
                elif block.get("type") == "tool_use":
                    tool_calls.append(
                        {
                            "id": block["id"],
                            "type": "function",
                            "function": {
                                "name": block["name"],
                                "arguments": json.dumps(block["input"]),
                            },
                        }
                    )

            result = {"role": "assistant", "content": text_content or None}
            if tool_calls:
                result["tool_calls"] = tool_calls
            return result

        return {"role": msg["role"], "content": msg["content"]}

    def _convert_tools(self, tools):
        """Convert tool definitions to OpenAI format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool["description"],
                    "parameters": tool["input_schema"],
                },
            }
            for tool in tools
        ]

    def _parse_response(self, response):
        """Parse OpenAI's response into the standard format."""
        message = response.choices[0].message
        result = {
            "content": [],
            "stop_reason": response.choices[0].finish_reason,
            "usage": {
                "input_tokens": response.usage.prompt_tokens if response.usage else 0,
                "output_tokens": response.usage.completion_tokens if response.usage else 0,
            },
        }

        if message.content:
            result["content"].append({"type": "text", "text": message.content})

        if message.tool_calls:
            for tool_call in message.tool_calls:
                result["content"].append(
                    {
                        "type": "tool_use",
                        "id": tool_call.id,
                        "name": tool_call.function.name,
                        "input": parse_tool_arguments(
                            tool_call.function.arguments, tool_call.function.name
                        ),
                    }
                )

        return result


def create_client(provider, api_key, model=None, endpoint=None):
    """Create an API client for the specified provider."""
    clients = {
        "claude": ClaudeClient,
        "openai": OpenAIClient,
    }

    if provider not in clients:
        raise ValueError(f"Unknown provider: {provider}")

    client_class = clients[provider]

    kwargs = {"base_url": endpoint or None}
    if model:
        kwargs["model"] = model
    return client_class(api_key, **kwargs)
