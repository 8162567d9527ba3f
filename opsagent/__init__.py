# OpsAgent - DevOps Chat Agent
# Copyright (c) 2024-2026 Matthew Bright
# Licensed under the MIT License. See LICENSE file for details.

"""OpsAgent - a DevOps chat assistant with an approval gate on sensitive actions."""

__version__ = "1.0.0"
__author__ = "Emera Digital Tools"

from .gate import InvocationGate, InvocationRequest, Proceed, Substitute
from .permissions import PermissionPolicy
from .registry import (
    Action,
    ActionArgumentError,
    ActionError,
    ActionRegistry,
    DuplicateActionError,
    Parameter,
    UnknownActionError,
)
from .tool_result import DENIAL_MESSAGE, InvocationResult

__all__ = [
    # Version
    "__version__",
    "__author__",
    # Registry
    "Action",
    "ActionRegistry",
    "Parameter",
    "ActionError",
    "ActionArgumentError",
    "DuplicateActionError",
    "UnknownActionError",
    # Gate
    "InvocationGate",
    "InvocationRequest",
    "Proceed",
    "Substitute",
    "PermissionPolicy",
    "InvocationResult",
    "DENIAL_MESSAGE",
]
