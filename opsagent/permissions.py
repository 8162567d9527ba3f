"""Permission policy for model-requested actions.

Only DeployToProd needs a human in the loop. The approval answer is compared
with strict equality: anything other than "Y" is a denial.
"""

import logging

from .output import print_system_message, read_user_input

logger = logging.getLogger(__name__)

APPROVAL_PROMPT = (
    "The assistant requires an approval to complete this operation. Do you approve (Y/N)"
)
APPROVAL_TOKEN = "Y"

# Identities that need explicit approval before they run
RESTRICTED_ACTIONS = frozenset({("DevopsPlugin", "DeployToProd")})


class PermissionPolicy:
    """Decides which actions need confirmation and asks for it.

    Args:
        restricted: Set of (group, name) identities that require approval.
        input_fn: Callable used to read the operator's answer (defaults to input).
    """

    def __init__(self, restricted=RESTRICTED_ACTIONS, input_fn=None):
        self.restricted = frozenset(restricted)
        self.input_fn = input_fn

    def requires_approval(self, identity) -> bool:
        return tuple(identity) in self.restricted

    def confirm(self) -> bool:
        """Ask the operator for approval. Never cached; every call prompts."""
        print_system_message(APPROVAL_PROMPT)
        try:
            response = read_user_input(self.input_fn)
        except KeyboardInterrupt:
            # Ctrl+C at the approval prompt is a denial, not an exit
            print()
            response = ""
        approved = response == APPROVAL_TOKEN
        logger.info("Approval %s (response=%r)", "granted" if approved else "denied", response)
        return approved
