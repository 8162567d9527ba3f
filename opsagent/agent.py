# OpsAgent - DevOps Chat Agent
# Copyright (c) 2024-2026 Matthew Bright
# Licensed under the MIT License. See LICENSE file for details.

"""Main agent loop for OpsAgent."""

import logging

from .api_client import create_client
from .devops import register_devops_actions
from .gate import InvocationGate, InvocationRequest
from .output import (
    print_assistant,
    print_info,
    print_tool_call,
    print_tool_result,
    print_warning,
    read_user_input,
)
from .permissions import PermissionPolicy
from .prompts import get_system_prompt, register_prompt_functions
from .rate_limiter import AutoInvokeLimiter
from .registry import ActionError, ActionRegistry
from .session import Session
from .tool_result import InvocationResult
from .ui import Spinner

logger = logging.getLogger(__name__)

GREETING = "How may I help you?"


def build_session(config, client=None, input_fn=None):
    """Wire client, registry, policy and gate into a fresh session."""
    if client is None:
        client = create_client(config.provider, config.api_key, config.model, config.endpoint)

    registry = ActionRegistry()
    gate = InvocationGate(registry, PermissionPolicy(input_fn=input_fn))

    register_devops_actions(registry, config.build_log_path)
    register_prompt_functions(registry, client, gate)

    logger.info(
        "Session ready: %d actions, provider=%s, service=%s",
        len(registry),
        config.provider,
        config.service_id,
    )
    return Session(config=config, client=client, registry=registry, gate=gate)


class OpsAgent:
    """The OpsAgent conversation agent."""

    def __init__(self, config, client=None, input_fn=None):
        self.config = config
        self.session = build_session(config, client=client, input_fn=input_fn)
        self.system_prompt = get_system_prompt()
        self.limiter = AutoInvokeLimiter(max_calls_per_turn=config.max_auto_invoke_attempts)
        # Results of the gated invocations made during the last turn
        self.turn_results: list[InvocationResult] = []

    @property
    def history(self):
        return self.session.history

    @property
    def usage_stats(self):
        return self.session.usage_stats

    def process_message(self, user_input):
        """Run one turn: record the input, resolve actions, record the reply."""
        self.limiter.reset()
        self.turn_results = []

        self.history.add_user(user_input)
        reply = self._complete(self.history.to_messages())
        self.history.add_assistant(reply)

        return reply

    def _complete(self, messages):
        """Ask the model for a reply, running requested actions until it answers in text.

        Action calls and their results stay in this in-flight list; only the
        final text goes back to the caller.
        """
        in_flight = list(messages)
        tools = self.session.registry.definitions()

        while True:
            response = self._call_api(in_flight, tools)

            text_output = []
            tool_uses = []
            for block in response.get("content", []):
                if block["type"] == "text":
                    text_output.append(block["text"])
                elif block["type"] == "tool_use":
                    tool_uses.append(block)

            if not tool_uses:
                return "\n".join(text_output)

            in_flight.append({"role": "assistant", "content": response["content"]})

            # One at a time, in the order requested
            tool_results = [self._run_tool(tool_use) for tool_use in tool_uses]
            in_flight.append({"role": "user", "content": tool_results})

    def _call_api(self, messages, tools):
        """Call the completion client once."""
        warning = self.limiter.check()
        if warning:
            print_warning(warning)

        with Spinner("Thinking..."):
            response = self.session.client.chat(
                messages=messages,
                system_prompt=self.system_prompt,
                tools=tools,
            )

        usage = response.get("usage") or {}
        self.usage_stats["input_tokens"] += usage.get("input_tokens", 0)
        self.usage_stats["output_tokens"] += usage.get("output_tokens", 0)

        return response

    def _run_tool(self, tool_use):
        """Send one tool call through the gate and build its tool_result block."""
        wire_name = tool_use["name"]
        tool_input = tool_use.get("input") or {}

        if not isinstance(tool_input, dict):
            logger.info("Skipping %s: tool input is %s, not an object", wire_name, type(tool_input).__name__)
            result = InvocationResult.fail(wire_name, "Tool input must be a JSON object")
        elif "__parse_error__" in tool_input:
            logger.info("Skipping %s: tool input was corrupted", wire_name)
            result = InvocationResult.fail(
                wire_name, f"Tool input was corrupted: {tool_input['__parse_error__']}"
            )
        else:
            if self.config.verbose:
                print_tool_call(wire_name, tool_input)
            try:
                result = self.session.gate.dispatch(
                    InvocationRequest(wire_name, tool_input, tool_use.get("id", ""))
                )
            except ActionError as e:
                logger.info("Action %s failed: %s", wire_name, e)
                result = InvocationResult.fail(wire_name, str(e))

        if self.config.verbose:
            print_tool_result(wire_name, result)

        logger.debug("Tool result: %s", result.to_dict())
        self.turn_results.append(result)

        return {
            "type": "tool_result",
            "tool_use_id": tool_use.get("id", ""),
            "content": result.to_content(),
        }


def run_single_shot(config, prompt, client=None, input_fn=None):
    """Run a single message and return the reply."""
    agent = OpsAgent(config, client=client, input_fn=input_fn)
    return agent.process_message(prompt)


def run_interactive(config, client=None, input_fn=None):
    """Run the interactive conversation loop until an empty line is entered."""
    agent = OpsAgent(config, client=client, input_fn=input_fn)

    print_info("Press enter to exit")
    print_assistant(GREETING)

    user_input = read_user_input(input_fn)
    while user_input != "":
        reply = agent.process_message(user_input)
        print_assistant(reply)
        user_input = read_user_input(input_fn)

    logger.info("Session ended after %d turns", len(agent.history))
    return agent
