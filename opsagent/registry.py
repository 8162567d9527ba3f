"""Action registry for OpsAgent.

Every action the model may call is registered here once, at startup, under a
(group, name) identity. The registry is a closed table: nothing is discovered
at runtime.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

# Separator between group and action name in the names sent to the model
WIRE_SEPARATOR = "-"


class ActionError(Exception):
    """Base class for registry and action failures."""

    pass


class DuplicateActionError(ActionError):
    """Raised when an action identity is registered twice."""

    pass


class UnknownActionError(ActionError):
    """Raised when an action identity is not registered."""

    pass


class ActionArgumentError(ActionError):
    """Raised when a required argument is missing or empty."""

    pass


@dataclass(frozen=True)
class Parameter:
    """A typed action parameter."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = True

    def to_schema(self) -> dict:
        """JSON schema fragment for this parameter."""
        schema = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True)
class Action:
    """An invocable action with its declaration and handler."""

    group: str
    name: str
    description: str
    handler: Callable[..., str]
    parameters: tuple = field(default_factory=tuple)

    @property
    def identity(self) -> tuple[str, str]:
        return (self.group, self.name)

    @property
    def wire_name(self) -> str:
        return f"{self.group}{WIRE_SEPARATOR}{self.name}"

    def to_definition(self) -> dict:
        """Tool definition in the shape the completion clients expect."""
        return {
            "name": self.wire_name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {p.name: p.to_schema() for p in self.parameters},
                "required": [p.name for p in self.parameters if p.required],
            },
        }


def split_wire_name(wire_name):
    """Split a wire name into (group, name).

    Raises:
        UnknownActionError: If the name has no group prefix.
    """
    group, sep, name = wire_name.partition(WIRE_SEPARATOR)
    if not sep or not group or not name:
        raise UnknownActionError(f"Malformed action name: {wire_name!r}")
    return group, name


class ActionRegistry:
    """Registry of actions keyed by (group, name)."""

    def __init__(self):
        self._actions: dict[tuple[str, str], Action] = {}

    def __len__(self):
        return len(self._actions)

    def __iter__(self):
        return iter(self._actions.values())

    def __contains__(self, identity):
        return identity in self._actions

    def register(self, action: Action) -> Action:
        """Add an action. Identities are unique."""
        if action.identity in self._actions:
            raise DuplicateActionError(f"Action already registered: {action.wire_name}")
        self._actions[action.identity] = action
        logger.debug("Registered action %s", action.wire_name)
        return action

    def lookup(self, group: str, name: str) -> Action:
        """Return the action registered under (group, name)."""
        try:
            return self._actions[(group, name)]
        except KeyError:
            raise UnknownActionError(f"Unknown action: {group}{WIRE_SEPARATOR}{name}") from None

    def resolve(self, wire_name: str) -> Action:
        """Return the action for a model-facing wire name."""
        group, name = split_wire_name(wire_name)
        return self.lookup(group, name)

    def invoke(self, action: Action, arguments: dict | None = None) -> str:
        """Call the action's handler with its declared parameters.

        Arguments the action does not declare are dropped. Required string
        parameters must be present and non-empty.
        """
        arguments = arguments or {}
        call_args = {}

        for param in action.parameters:
            value = arguments.get(param.name)
            missing = value is None or (isinstance(value, str) and not value.strip())
            if missing:
                if param.required:
                    raise ActionArgumentError(
                        f"{action.wire_name}: missing required argument '{param.name}'"
                    )
                continue
            call_args[param.name] = value

        ignored = set(arguments) - set(call_args) - {p.name for p in action.parameters}
        if ignored:
            logger.debug("Ignoring undeclared arguments for %s: %s", action.wire_name, sorted(ignored))

        return action.handler(**call_args)

    def definitions(self) -> list[dict]:
        """Tool definitions for every registered action, in registration order."""
        return [action.to_definition() for action in self._actions.values()]
