"""Terminal spinner for OpsAgent using 'rich'."""

from rich.console import Console
from rich.theme import Theme

from .output import supports_color

PRIMARY_COLOR = "#00D4AA"

opsagent_theme = Theme({"primary": PRIMARY_COLOR})

console = Console(theme=opsagent_theme, force_terminal=True if supports_color() else False)


class Spinner:
    """Status spinner shown while waiting on the model.

    Does nothing when stdout is not a terminal.
    """

    def __init__(self, message="Thinking...", style="dots"):
        self.message = message
        self.enabled = supports_color()
        self.status = console.status(
            f"[primary]{self.message}[/primary]",
            spinner=style,
            spinner_style="primary",
        )
        self.is_active = False

    def start(self):
        if self.enabled and not self.is_active:
            self.status.start()
            self.is_active = True

    def stop(self):
        if self.is_active:
            self.status.stop()
            self.is_active = False

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
