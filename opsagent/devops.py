"""DevOps actions exposed to the model.

The build, deploy and branch actions only report what they would have done;
ReadLogFile is the one action that touches the filesystem.
"""

import logging
from pathlib import Path

from .registry import Action, ActionError, Parameter

logger = logging.getLogger(__name__)

DEVOPS_GROUP = "DevopsPlugin"
DEFAULT_BUILD_LOG = Path("Files") / "build.log"


class ResourceUnavailableError(ActionError):
    """Raised when a backing resource (the build log) cannot be read."""

    pass


def build_stage_environment():
    return "Stage build completed."


def deploy_to_stage():
    return "Staging site deployed successfully."


def deploy_to_prod():
    return "Production site deployed successfully."


def create_new_branch(branchName, baseBranch):
    # Branch names are not checked beyond being non-empty (the registry does that)
    return f"Created new branch `{branchName}` from `{baseBranch}`"


def read_log_file(log_path=DEFAULT_BUILD_LOG):
    """Return the full text of the build log.

    Raises:
        ResourceUnavailableError: If the file is missing or unreadable.
    """
    path = Path(log_path)
    try:
        # newline="" keeps line endings exactly as stored
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.info("Build log unavailable at %s: %s", path, e)
        raise ResourceUnavailableError(f"Cannot read build log '{path}': {e}") from e


def devops_actions(build_log_path=DEFAULT_BUILD_LOG):
    """Build the DevopsPlugin action table."""
    return [
        Action(
            group=DEVOPS_GROUP,
            name="BuildStageEnvironment",
            description="Build the staging environment.",
            handler=build_stage_environment,
        ),
        Action(
            group=DEVOPS_GROUP,
            name="DeployToStage",
            description="Deploy the latest build to the staging site.",
            handler=deploy_to_stage,
        ),
        Action(
            group=DEVOPS_GROUP,
            name="DeployToProd",
            description="Deploy the latest build to the production site.",
            handler=deploy_to_prod,
        ),
        Action(
            group=DEVOPS_GROUP,
            name="CreateNewBranch",
            description="Create a new git branch from a base branch.",
            handler=create_new_branch,
            parameters=(
                Parameter("branchName", description="Name of the branch to create"),
                Parameter("baseBranch", description="Branch to create it from"),
            ),
        ),
        Action(
            group=DEVOPS_GROUP,
            name="ReadLogFile",
            description="Read the most recent build log.",
            handler=lambda: read_log_file(build_log_path),
        ),
    ]


def register_devops_actions(registry, build_log_path=DEFAULT_BUILD_LOG):
    """Register every DevopsPlugin action on the registry."""
    for action in devops_actions(build_log_path):
        registry.register(action)
    return registry
