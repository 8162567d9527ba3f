"""Loop protection for automatic action resolution.

Within a single user turn the model may keep asking for actions. The limiter
caps how many completion calls one turn can make.
"""

from dataclasses import dataclass, field


class AutoInvokeLimitExceeded(Exception):
    """Raised when a turn makes more model calls than allowed."""

    pass


@dataclass
class AutoInvokeLimiter:
    """Counts completion calls since the last user input."""

    max_calls_per_turn: int = 10
    warn_threshold: float = 0.7

    _calls_this_turn: int = field(default=0, init=False)
    _warned: bool = field(default=False, init=False)

    def check(self) -> str | None:
        """Count one more completion call.

        Returns:
            Warning message if approaching the limit, None otherwise.

        Raises:
            AutoInvokeLimitExceeded: If the limit is reached.
        """
        self._calls_this_turn += 1

        if self._calls_this_turn > self.max_calls_per_turn:
            raise AutoInvokeLimitExceeded(
                f"Auto-invoke limit exceeded: {self._calls_this_turn} model calls this turn. "
                f"Maximum is {self.max_calls_per_turn}."
            )

        warn_at = max(1, int(self.max_calls_per_turn * self.warn_threshold))
        if self._calls_this_turn >= warn_at and not self._warned and self.max_calls_per_turn > 1:
            self._warned = True
            return (
                f"Approaching auto-invoke limit: {self._calls_this_turn}/{self.max_calls_per_turn} "
                "model calls this turn."
            )

        return None

    def reset(self):
        """Reset the counter after user input."""
        self._calls_this_turn = 0
        self._warned = False
