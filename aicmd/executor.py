import codecs
import logging
import os
import selectors
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional, TextIO

from .errors import ExecutionError

# Configure logging
logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one command run."""

    command: str
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.return_code == 0


class CommandExecutor:
    """Runs shell commands, echoing their output while capturing it."""

    def __init__(self, shell: str = "/bin/sh", stdout: Optional[TextIO] = None,
                 stderr: Optional[TextIO] = None):
        self.shell = shell
        self._stdout = stdout
        self._stderr = stderr

    def execute_command(self, command: str) -> ExecutionResult:
        """
        Execute a single shell command.

        The command text is handed to the shell verbatim. Its stdout and
        stderr are written to the terminal as they arrive and captured at
        the same time.

        Args:
            command: The shell command to execute

        Returns:
            The exit code and the captured output

        Raises:
            ExecutionError: If the shell cannot be started
        """
        logger.info(f"Executing command: {command}")

        try:
            process = subprocess.Popen(
                [self.shell, "-c", command],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.info(f"Could not start {self.shell}: {e}")
            raise ExecutionError(f"Error executing command: {e}") from e

        with process:
            stdout, stderr = self._tee(process)
            return_code = process.wait()

        if return_code == 0:
            logger.info(f"Command executed successfully: {command}")
        else:
            logger.info(f"Command failed with return code {return_code}: {command}")

        return ExecutionResult(command=command, return_code=return_code, stdout=stdout, stderr=stderr)

    def _tee(self, process: subprocess.Popen):
        """Copies both pipes to their terminal streams until the process closes them."""
        sinks = {
            process.stdout: self._stdout or sys.stdout,
            process.stderr: self._stderr or sys.stderr,
        }
        captured = {pipe: [] for pipe in sinks}
        decoders = {pipe: codecs.getincrementaldecoder("utf-8")(errors="replace") for pipe in sinks}

        with selectors.DefaultSelector() as selector:
            for pipe in sinks:
                selector.register(pipe, selectors.EVENT_READ)

            while selector.get_map():
                for key, _ in selector.select():
                    pipe = key.fileobj
                    chunk = os.read(key.fd, READ_CHUNK_SIZE)
                    final = not chunk
                    if final:
                        selector.unregister(pipe)
                    text = decoders[pipe].decode(chunk, final=final)
                    if text:
                        captured[pipe].append(text)
                        sinks[pipe].write(text)
                        sinks[pipe].flush()

        return "".join(captured[process.stdout]), "".join(captured[process.stderr])
