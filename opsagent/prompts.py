"""System prompt and templated prompt functions for OpsAgent.

A prompt function is an action whose body is a chat template instead of
code. Templates use a small markup:

    <message role="system">...</message>   one chat turn per block
    {{request}}                             argument substitution
    {{DevopsPlugin.ReadLogFile}}            nested action call (through the gate)

Text with no message blocks renders as a single user turn.
"""

import logging
import re
from dataclasses import dataclass, field

from .registry import Action, Parameter
from .session import Turn

logger = logging.getLogger(__name__)

OPSAGENT_SYSTEM_PROMPT = """You are OpsAgent, a DevOps assistant for a small web team.

You can build and deploy the staging environment, deploy to production,
create git branches and read the latest build log by calling the functions
you are given. Call a function only when the user asks for that operation.
If a function result says the operation was not approved by the user, tell
the user plainly that it was not performed. Keep replies short."""

MESSAGE_PATTERN = re.compile(r'<message role="(system|user|assistant)">(.*?)</message>', re.DOTALL)
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_]\w*)(?:\.([A-Za-z_]\w*))?\s*\}\}")


def parse_template(template):
    """Split a template into (role, raw_text) pairs."""
    blocks = MESSAGE_PATTERN.findall(template)
    if not blocks:
        return [("user", template)]
    return [(role, text) for role, text in blocks]


def render_text(text, arguments, call_fn=None):
    """Fill {{name}} and {{Group.Function}} placeholders.

    Unknown variables render as empty strings.
    """

    def replace(match):
        first, second = match.group(1), match.group(2)
        if second:
            if call_fn is None:
                raise ValueError(f"Template calls {first}.{second} but no caller was given")
            return call_fn(first, second)
        value = arguments.get(first)
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(replace, text)


@dataclass(frozen=True)
class PromptFunction:
    """An action implemented by a chat template."""

    group: str
    name: str
    description: str
    template: str
    parameters: tuple = field(default_factory=tuple)

    def render(self, arguments=None, call_fn=None) -> list[Turn]:
        """Render the template into chat turns, dropping empty ones."""
        arguments = arguments or {}
        turns = []
        for role, raw in parse_template(self.template):
            content = render_text(raw, arguments, call_fn).strip()
            if content:
                turns.append(Turn(role, content))
        return turns

    def invoke(self, client, gate, arguments=None) -> str:
        """Render and run the template as a tool-less completion."""
        turns = self.render(arguments, call_fn=gate.call if gate else None)

        system_parts = [t.content for t in turns if t.role == "system"]
        messages = [t.to_message() for t in turns if t.role != "system"]
        if not messages:
            messages = [{"role": "user", "content": "\n\n".join(system_parts)}]
            system_parts = []

        logger.debug("Running prompt function %s-%s (%d messages)", self.group, self.name, len(messages))
        response = client.chat(messages=messages, system_prompt="\n\n".join(system_parts) or None)

        text = [block["text"] for block in response.get("content", []) if block.get("type") == "text"]
        return "\n".join(text)

    def as_action(self, client, gate) -> Action:
        """Bind the template to a client so it can live in the registry."""
        return Action(
            group=self.group,
            name=self.name,
            description=self.description,
            handler=lambda **arguments: self.invoke(client, gate, arguments),
            parameters=self.parameters,
        )


DEPLOY_STAGE_ENVIRONMENT = PromptFunction(
    group="DeployStageEnvironment",
    name="DeployStageEnvironment",
    description="Deploy the staging environment",
    template="""This is the most recent build log:
{{DevopsPlugin.ReadLogFile}}

If there are errors, do not deploy the stage environment. Otherwise, invoke the stage deployment function""",
)

CREATE_BRANCH = PromptFunction(
    group="BranchPlugin",
    name="CreateBranch",
    description="Start the branch creation conversation: ask the user for the new branch name and base branch",
    template="""<message role="system">Instructions: Before creating a new branch for a user, request the new branch name and base branch name</message>
<message role="user">Can you create a new branch?</message>
<message role="assistant">Sure, what would you like to name your branch? And which base branch would you like to use?</message>
<message role="user">{{request}}</message>""",
    parameters=(Parameter("request", description="The user's branch request, verbatim"),),
)

PROMPT_FUNCTIONS = (DEPLOY_STAGE_ENVIRONMENT, CREATE_BRANCH)


def register_prompt_functions(registry, client, gate, functions=PROMPT_FUNCTIONS):
    """Register every prompt function on the registry."""
    for function in functions:
        registry.register(function.as_action(client, gate))
    return registry


def get_system_prompt():
    """Return the agent's system prompt."""
    return OPSAGENT_SYSTEM_PROMPT
