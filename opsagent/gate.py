"""Invocation gate - the enforcement point between the model and the registry.

Each requested action passes through decide() and then either runs or is
replaced by a denial result. The gate never catches errors raised by the
action itself.
"""

import logging
import time
from dataclasses import dataclass, field

from .tool_result import InvocationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationRequest:
    """One action call requested by the model."""

    wire_name: str
    arguments: dict = field(default_factory=dict)
    call_id: str = ""


@dataclass(frozen=True)
class Proceed:
    """Decision: run the action."""

    pass


@dataclass(frozen=True)
class Substitute:
    """Decision: do not run the action, return this result instead."""

    result: InvocationResult


class InvocationGate:
    """Gates every action invocation through a permission policy."""

    def __init__(self, registry, policy):
        self.registry = registry
        self.policy = policy

    def decide(self, action):
        """Consult the policy for one action. Prompts when approval is needed."""
        if not self.policy.requires_approval(action.identity):
            return Proceed()

        logger.info("Approval required for %s", action.wire_name)
        if self.policy.confirm():
            return Proceed()

        logger.info("Invocation of %s denied by user", action.wire_name)
        return Substitute(InvocationResult.deny(action.wire_name, placeholder=None))

    def dispatch(self, request: InvocationRequest) -> InvocationResult:
        """Resolve, gate and (if allowed) execute one requested action."""
        action = self.registry.resolve(request.wire_name)

        decision = self.decide(action)
        if isinstance(decision, Substitute):
            return decision.result

        start_time = time.time()
        value = self.registry.invoke(action, request.arguments)
        duration_ms = (time.time() - start_time) * 1000

        logger.debug("Executed %s in %.1fms", action.wire_name, duration_ms)
        return InvocationResult.ok(action.wire_name, value, duration_ms=duration_ms)

    def call(self, group, name, arguments=None) -> str:
        """Invoke an action by identity and return its text (used by templates)."""
        action = self.registry.lookup(group, name)
        result = self.dispatch(InvocationRequest(action.wire_name, arguments or {}))
        return result.to_content()
