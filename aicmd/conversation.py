import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple, TYPE_CHECKING

from .errors import ParseError

if TYPE_CHECKING:
    from .executor import ExecutionResult

logger = logging.getLogger(__name__)


COMMAND_PROMPT = """You are a command line assistant. Generate a single bash command that accomplishes the user's request.
IMPORTANT: Your response must be a JSON object that can be directly parsed, no markdown (no code blocks) or styling at all.
Escape quotes in the JSON so that it can be parsed correctly.
The JSON must have exactly two fields: "command" containing the raw command text, and "description" containing a detailed
explanation of how the command works, breaking down each component and flag being used. Example:
{{"command": "ls -la", "description": "Uses 'ls' (list) with '-l' for long format showing permissions and sizes, and '-a' to show hidden files starting with a dot"}}
The command should be safe and should not perform destructive operations without user confirmation.
Request: {request}"""

FIX_PROMPT = """The command failed with the following output:
stdout: {stdout}
stderr: {stderr}
Please explain the error and provide a fixed command, using the same JSON format with the fields "command" and "description"."""

OUTPUT_PROMPT = "Command output:\n{stdout}"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single turn of the conversation."""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class Conversation:
    """Append-only message history for one run of the tool."""

    _messages: List[Message] = field(default_factory=list)

    def add_user(self, content: str) -> Message:
        return self._append(Message(Role.USER, content))

    def add_assistant(self, content: str) -> Message:
        return self._append(Message(Role.ASSISTANT, content))

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        logger.debug(f"History now holds {len(self._messages)} messages (last: {message.role.value})")
        return message

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


@dataclass(frozen=True)
class CommandResponse:
    """The command proposed by the model and its explanation."""

    command: str
    description: str = ""


def build_request_prompt(request: str) -> str:
    """Wraps a user request in the instruction template."""
    return COMMAND_PROMPT.format(request=request)


def build_fix_prompt(result: "ExecutionResult") -> str:
    """Asks the model to explain a failed run and propose a fix."""
    return FIX_PROMPT.format(stdout=result.stdout, stderr=result.stderr)


def build_output_prompt(result: "ExecutionResult") -> str:
    return OUTPUT_PROMPT.format(stdout=result.stdout)


def _strip_code_fence(text: str) -> str:
    """Removes a markdown code fence around the reply, if the model added one anyway."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.splitlines()
    body = lines[1:]
    if body and body[-1].strip() == "```":
        body = body[:-1]
    return "\n".join(body).strip()


def parse_command_response(text: str) -> CommandResponse:
    """
    Parses the model's reply into a CommandResponse.

    Args:
        text: The raw text returned by the provider.

    Returns:
        The parsed command and description.

    Raises:
        ParseError: If the reply is not a JSON object with a non-empty
            string "command" field.
    """
    try:
        data = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ParseError(f"Error parsing response: {e}", raw=text) from e

    if not isinstance(data, dict):
        raise ParseError("Error parsing response: expected a JSON object", raw=text)

    command = data.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ParseError("Error parsing response: missing \"command\" field", raw=text)

    description = data.get("description", "")
    if not isinstance(description, str):
        description = json.dumps(description)

    return CommandResponse(command=command.strip(), description=description)
