"""Invocation results - the one shape every action outcome takes.

A result is what goes back to the model as the tool output. It is either the
action's own output, a denial that stands in for it, or a failure.
"""

from dataclasses import dataclass

DENIAL_MESSAGE = "The operation was not approved by the user"


@dataclass
class InvocationResult:
    """Outcome of one gated action invocation."""

    wire_name: str
    value: str | None = None
    success: bool = True
    denied: bool = False
    error: str | None = None
    # Result that was in place before the action would have run
    placeholder: str | None = None
    duration_ms: float = 0.0

    @classmethod
    def ok(cls, wire_name: str, value: str, duration_ms: float = 0.0) -> "InvocationResult":
        """Create a result carrying the action's real output."""
        return cls(wire_name=wire_name, value=value, duration_ms=duration_ms)

    @classmethod
    def deny(cls, wire_name: str, placeholder: str | None = None) -> "InvocationResult":
        """Create the substitute result for an action the user did not approve."""
        return cls(
            wire_name=wire_name,
            value=DENIAL_MESSAGE,
            denied=True,
            placeholder=placeholder,
        )

    @classmethod
    def fail(cls, wire_name: str, error: str) -> "InvocationResult":
        """Create a failed result for a recoverable action error."""
        return cls(wire_name=wire_name, success=False, error=error)

    def to_content(self) -> str:
        """Text sent back to the model as the tool result."""
        if not self.success:
            return f"Error: {self.error}"
        return self.value if self.value is not None else ""

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        result = {"action": self.wire_name, "success": self.success}
        if self.denied:
            result["denied"] = True
        if self.error:
            result["error"] = self.error
        if self.duration_ms > 0:
            result["duration_ms"] = self.duration_ms
        return result
