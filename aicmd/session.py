import logging
from typing import Optional, TextIO

from rich.console import Console

from . import ui
from .config import Config
from .conversation import (
    CommandResponse,
    Conversation,
    build_fix_prompt,
    build_output_prompt,
    build_request_prompt,
    parse_command_response,
)
from .errors import ExecutionError, ParseError, ProviderError
from .executor import CommandExecutor, ExecutionResult
from .providers import Provider
from .ui import Confirmation

logger = logging.getLogger(__name__)

FOLLOW_UP_PROMPT = "\nEnter follow-up request (or 'exit' to quit): "
RUN_PROMPT = "Run it now? [Y/n/f for fix]: "
RUN_FIX_PROMPT = "Run the fixed command? [Y/n]: "
ADD_OUTPUT_PROMPT = "\nAdd command output to conversation context? [y/N]: "


class Session:
    """
    One interactive run: request, generate, confirm, execute, repair.

    The message history lives only as long as the session.
    """

    def __init__(self, provider: Provider, executor: CommandExecutor, console: Console,
                 config: Config, input_stream: Optional[TextIO] = None):
        self.provider = provider
        self.executor = executor
        self.console = console
        self.config = config
        self.input_stream = input_stream
        self.conversation = Conversation()

    def run(self, initial_request: str) -> int:
        """Runs the loop until the user types 'exit' or input ends."""
        request: Optional[str] = initial_request
        while True:
            if request is None:
                request = self._ask(FOLLOW_UP_PROMPT)
                if request is None or request == "exit":
                    logger.info("Session ended by user")
                    return 0
                if not request:
                    request = None
                    continue

            self.handle_request(request)
            request = None

    def handle_request(self, request: str) -> None:
        """Turns one request into a command and offers to run it."""
        self.conversation.add_user(build_request_prompt(request))
        response = self._generate()
        if response is None:
            return

        ui.display_command(self.console, response)
        self.conversation.add_assistant(response.command)

        if self._confirm(RUN_PROMPT, allow_follow_up=True) is Confirmation.RUN:
            self._execute_with_fixes(response.command)

    def _execute_with_fixes(self, command: str) -> None:
        """
        Runs `command`; while it fails, asks the model for a fix and offers to run that.

        The chain ends when a run succeeds or the user declines a fix. A
        positive `max_fix_attempts` also caps the number of fixes requested.
        """
        fix_attempts = 0
        while True:
            try:
                result = self.executor.execute_command(command)
            except ExecutionError as e:
                ui.display_error(self.console, str(e))
                return

            if result.success:
                self._offer_output_context(result)
                return

            ui.display_failure(self.console, result)
            if self.config.max_fix_attempts and fix_attempts >= self.config.max_fix_attempts:
                ui.display_notice(
                    self.console,
                    f"Giving up after {fix_attempts} suggested fixes.",
                )
                return
            fix_attempts += 1

            self.conversation.add_user(build_fix_prompt(result))
            fix = self._generate(context="fix")
            if fix is None:
                return

            ui.display_fix(self.console, fix)
            self.conversation.add_assistant(fix.command)
            if self._confirm(RUN_FIX_PROMPT, allow_follow_up=False) is not Confirmation.RUN:
                return
            command = fix.command

    def _offer_output_context(self, result: ExecutionResult) -> None:
        answer = self._ask(ADD_OUTPUT_PROMPT)
        if answer is not None and answer.lower() in ("y", "yes"):
            self.conversation.add_user(build_output_prompt(result))
            ui.display_success(self.console, "Output added to conversation context")

    def _generate(self, context: str = "command") -> Optional[CommandResponse]:
        """Calls the provider with the full history; reports failures and returns None."""
        try:
            with self.console.status("Thinking..."):
                completion = self.provider.generate(self.conversation.messages)
        except ProviderError as e:
            logger.info(f"Provider call failed while generating {context}: {e}")
            ui.display_error(self.console, f"Error generating {context}: {e}", raw=getattr(e, "raw", None))
            return None

        try:
            return parse_command_response(completion)
        except ParseError as e:
            logger.info(f"Could not parse {context} reply: {e}")
            ui.display_error(self.console, str(e), raw=e.raw)
            return None

    def _confirm(self, prompt: str, allow_follow_up: bool) -> Confirmation:
        """Asks until the answer is recognized; end of input counts as declining."""
        while True:
            answer = self._ask(prompt)
            if answer is None:
                return Confirmation.DECLINE
            choice = ui.parse_confirmation(answer, allow_follow_up=allow_follow_up)
            if choice is not None:
                return choice
            ui.display_notice(self.console, f"Unrecognized answer '{answer}'; the command was not run.")

    def _ask(self, prompt: str) -> Optional[str]:
        return ui.ask(self.console, prompt, stream=self.input_stream)
