"""Terminal output formatting for OpsAgent."""

import json
import sys

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bright_cyan": "\033[96m",
    "bright_magenta": "\033[95m",
}

USER_PROMPT = "User: "
ASSISTANT_PREFIX = "Assistant: "
SYSTEM_PREFIX = "System Message: "


def supports_color():
    """Check if terminal supports colors."""
    if not hasattr(sys.stdout, "isatty"):
        return False
    if not sys.stdout.isatty():
        return False
    return True


def colorize(text, color):
    """Apply color to text if supported."""
    if not supports_color():
        return text
    return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"


def print_assistant(text):
    """Print an assistant line of the transcript."""
    print(colorize(ASSISTANT_PREFIX, "bright_cyan") + text)


def print_system_message(text):
    """Print a system message (approval challenges and the like)."""
    print(colorize(SYSTEM_PREFIX + text, "bright_magenta"))


def read_user_input(input_fn=None):
    """Prompt for one line of user input.

    End of input reads as an empty line. Ctrl+C propagates.
    """
    prompt = colorize(USER_PROMPT, "cyan") if supports_color() else USER_PROMPT
    try:
        return (input_fn or input)(prompt)
    except EOFError:
        print()
        return ""


def print_error(message):
    """Print an error message."""
    print(colorize(f"Error: {message}", "red"))


def print_warning(message):
    """Print a warning message."""
    print(colorize(f"⚠ {message}", "yellow"))


def print_info(message):
    """Print an info message."""
    print(colorize(message, "dim"))


def print_tool_call(wire_name, tool_input):
    """Print a compact one-line summary of an action call (verbose mode)."""
    args = json.dumps(tool_input, ensure_ascii=False) if tool_input else ""
    if len(args) > 80:
        args = args[:77] + "..."
    print(colorize(f"  > {wire_name}({args})", "dim"))


def print_tool_result(wire_name, result):
    """Print the outcome of an action call (verbose mode)."""
    if result.denied:
        print(colorize(f"  ✗ {wire_name}: not approved", "yellow"))
    elif not result.success:
        print(colorize(f"  ✗ {wire_name}: {result.error}", "red"))
    else:
        print(colorize(f"  ✓ {wire_name} ({result.duration_ms:.0f}ms)", "green"))
