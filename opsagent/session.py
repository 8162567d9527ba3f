"""Conversation state for one OpsAgent session."""

from dataclasses import dataclass, field

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class Turn:
    """One role-tagged entry of a conversation."""

    role: str
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role}")

    def to_message(self) -> dict:
        return {"role": self.role, "content": self.content}


class ChatHistory:
    """Append-only transcript of user and assistant turns."""

    def __init__(self):
        self._turns: list[Turn] = []

    def __len__(self):
        return len(self._turns)

    def __iter__(self):
        return iter(self._turns)

    def __getitem__(self, index):
        return self._turns[index]

    def add_user(self, content):
        self._turns.append(Turn("user", content))

    def add_assistant(self, content):
        self._turns.append(Turn("assistant", content))

    def to_messages(self) -> list[dict]:
        """Snapshot of the transcript as API messages."""
        return [turn.to_message() for turn in self._turns]


@dataclass
class Session:
    """Everything one conversation loop needs, owned by that loop.

    The history is only ever written by the agent; the gate and registry
    never see it.
    """

    config: object
    client: object
    registry: object
    gate: object
    history: ChatHistory = field(default_factory=ChatHistory)
    usage_stats: dict = field(default_factory=lambda: {"input_tokens": 0, "output_tokens": 0})
