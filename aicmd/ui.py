from enum import Enum
from typing import Optional, TextIO

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from .config import ProviderConfig
from .conversation import CommandResponse
from .executor import ExecutionResult

console = Console()


class Confirmation(Enum):
    RUN = "run"
    FOLLOW_UP = "follow_up"
    DECLINE = "decline"


RUN_ANSWERS = ("", "y", "yes")
DECLINE_ANSWERS = ("n", "no")
FOLLOW_UP_ANSWERS = ("f",)


def parse_confirmation(answer: str, allow_follow_up: bool = True) -> Optional[Confirmation]:
    """Maps a confirmation answer to a choice; None means it was not recognized."""
    answer = answer.strip().lower()
    if answer in RUN_ANSWERS:
        return Confirmation.RUN
    if answer in DECLINE_ANSWERS:
        return Confirmation.DECLINE
    if allow_follow_up and answer in FOLLOW_UP_ANSWERS:
        return Confirmation.FOLLOW_UP
    return None


def ask(console: Console, prompt: str, stream: Optional[TextIO] = None) -> Optional[str]:
    """Reads one line of input; returns None once input is exhausted."""
    try:
        line = console.input(Text(prompt, style="bold cyan"), stream=stream)
    except EOFError:
        return None
    if stream is not None and line == "":
        return None
    return line.strip()


def display_provider(console: Console, config: ProviderConfig) -> None:
    console.print(f"Using {config.display_name} with model: {config.model}", markup=False)


def _display_response(console: Console, response: CommandResponse, heading: Optional[str],
                      command_label: str, description_label: str) -> None:
    console.print(Rule(style="blue"))
    if heading:
        console.print(Text(heading, style="red"))
    console.print(Text(f"▶ {command_label}:", style="green"))
    console.print(Text(f"  {response.command}", style="yellow"))
    console.print()
    console.print(Text(f"▶ {description_label}:", style="green"))
    console.print(Text(f"  {response.description}", style="white"))
    console.print(Rule(style="blue"))


def display_command(console: Console, response: CommandResponse) -> None:
    """Display a proposed command and its explanation."""
    _display_response(console, response, None, "Command", "Description")


def display_fix(console: Console, response: CommandResponse) -> None:
    """Display the command suggested after a failure."""
    _display_response(
        console, response, "⚠ Previous command failed. Here's the suggested fix:",
        "Fixed Command", "Explanation",
    )


def display_failure(console: Console, result: ExecutionResult) -> None:
    console.print(Text(f"Command exited with code {result.return_code}", style="bold red"))


def display_error(console: Console, message: str, raw: Optional[str] = None) -> None:
    """Display an error, plus the raw model reply when there is one."""
    console.print(Text(message, style="bold red"))
    if raw is not None:
        console.print(Text("Response:", style="red"))
        console.print(Text(raw))


def display_notice(console: Console, message: str) -> None:
    console.print(Text(message, style="yellow"))


def display_success(console: Console, message: str) -> None:
    console.print(Text(message, style="green"))
