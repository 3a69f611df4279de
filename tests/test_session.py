import io
import json
import logging
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

from rich.console import Console

from aicmd.conversation import Role
from aicmd.errors import ExecutionError, NetworkError
from aicmd.executor import ExecutionResult
from aicmd.session import Session


def reply(command, description="does the thing"):
    return json.dumps({"command": command, "description": description})


def ok(command, stdout=""):
    return ExecutionResult(command=command, return_code=0, stdout=stdout, stderr="")


def failed(command, code=2, stderr="error"):
    return ExecutionResult(command=command, return_code=code, stdout="", stderr=stderr)


class SessionTestCase(unittest.TestCase):
    """Drives a Session with scripted input, a fake provider and a fake executor."""

    def make_session(self, replies, results=(), answers="", max_fix_attempts=0):
        self.output = io.StringIO()
        self.provider = MagicMock()
        self.provider.generate.side_effect = list(replies)
        self.executor = MagicMock()
        self.executor.execute_command.side_effect = list(results)
        console = Console(file=self.output, width=200, force_terminal=False)
        config = SimpleNamespace(max_fix_attempts=max_fix_attempts)
        return Session(self.provider, self.executor, console, config, input_stream=io.StringIO(answers))

    def history(self, session):
        return [(m.role, m.content) for m in session.conversation.messages]

    def executed(self):
        return [c.args[0] for c in self.executor.execute_command.call_args_list]


class TestRequestFlow(SessionTestCase):

    def test_list_files_runs_on_empty_confirmation(self):
        session = self.make_session(
            [reply("ls -la", "Lists all files")],
            [ok("ls -la", "total 0\n")],
            answers="\nn\nexit\n",
        )

        self.assertEqual(session.run("list files"), 0)

        self.assertEqual(self.executed(), ["ls -la"])
        history = self.history(session)
        self.assertEqual(len(history), 2)
        self.assertEqual(history[0][0], Role.USER)
        self.assertTrue(history[0][1].endswith("Request: list files"))
        self.assertEqual(history[1], (Role.ASSISTANT, "ls -la"))
        self.assertIn("ls -la", self.output.getvalue())
        self.assertIn("Lists all files", self.output.getvalue())

    def test_provider_sees_whole_history(self):
        session = self.make_session(
            [reply("ls"), reply("ls -d */")],
            answers="n\nonly directories\nn\nexit\n",
        )
        session.run("list files")

        second_call = self.provider.generate.call_args_list[1].args[0]
        self.assertEqual([m.role for m in second_call], [Role.USER, Role.ASSISTANT, Role.USER])
        self.assertEqual(second_call[1].content, "ls")
        self.assertTrue(second_call[2].content.endswith("Request: only directories"))

    def test_malformed_reply_adds_no_assistant_turn(self):
        session = self.make_session(["not json"], answers="exit\n")

        self.assertEqual(session.run("list files"), 0)

        self.assertEqual([role for role, _ in self.history(session)], [Role.USER])
        self.executor.execute_command.assert_not_called()
        output = self.output.getvalue()
        self.assertIn("Error parsing response", output)
        self.assertIn("not json", output)

    def test_provider_error_keeps_loop_going(self):
        session = self.make_session(
            [NetworkError("API request failed with status 500: boom"), reply("ls")],
            [ok("ls")],
            answers="try again\n\nn\nexit\n",
        )

        with self.assertLogs("aicmd.session", level="INFO") as logs:
            self.assertEqual(session.run("list files"), 0)

        self.assertTrue(all(record.levelno < logging.WARNING for record in logs.records))
        self.assertEqual(self.output.getvalue().count("status 500"), 1)
        self.assertEqual(self.executed(), ["ls"])
        # The failed turn stays in history.
        self.assertEqual(
            [role for role, _ in self.history(session)], [Role.USER, Role.USER, Role.ASSISTANT]
        )

    def test_follow_up_answer_skips_execution(self):
        session = self.make_session([reply("rm -rf build")], answers="f\nexit\n")
        session.run("clean up")

        self.executor.execute_command.assert_not_called()
        self.assertEqual(self.history(session)[-1], (Role.ASSISTANT, "rm -rf build"))

    def test_unrecognized_answer_asks_again(self):
        session = self.make_session([reply("ls")], answers="maybe\nn\nexit\n")
        session.run("list files")

        self.executor.execute_command.assert_not_called()
        output = self.output.getvalue()
        self.assertIn("Unrecognized answer 'maybe'", output)
        self.assertEqual(output.count("Run it now?"), 2)

    def test_unrecognized_answer_then_yes_runs(self):
        session = self.make_session([reply("ls")], [ok("ls")], answers="sure\nyes\nn\nexit\n")
        session.run("list files")

        self.assertEqual(self.executed(), ["ls"])

    def test_blank_follow_up_prompts_again(self):
        session = self.make_session([reply("ls")], answers="n\n\n   \nexit\n")
        session.run("list files")

        self.assertEqual(self.provider.generate.call_count, 1)
        self.assertEqual(self.output.getvalue().count("Enter follow-up request"), 3)

    def test_end_of_input_exits_cleanly(self):
        session = self.make_session([reply("ls")], answers="")

        self.assertEqual(session.run("list files"), 0)
        self.executor.execute_command.assert_not_called()


class TestExecutionFlow(SessionTestCase):

    def test_failure_triggers_fix_which_runs(self):
        session = self.make_session(
            [reply("ls /nope"), reply("ls /tmp", "The directory did not exist")],
            [failed("ls /nope", 2, "ls: cannot access '/nope': No such file or directory"), ok("ls /tmp")],
            answers="\ny\nn\nexit\n",
        )

        self.assertEqual(session.run("list the nope dir"), 0)

        self.assertEqual(self.executed(), ["ls /nope", "ls /tmp"])
        fix_request = self.provider.generate.call_args_list[1].args[0][-1]
        self.assertEqual(fix_request.role, Role.USER)
        self.assertIn("No such file or directory", fix_request.content)
        self.assertEqual(self.history(session)[-1], (Role.ASSISTANT, "ls /tmp"))
        output = self.output.getvalue()
        self.assertIn("Command exited with code 2", output)
        self.assertIn("suggested fix", output)

    def test_declining_fix_ends_chain(self):
        session = self.make_session(
            [reply("make"), reply("make all")],
            [failed("make")],
            answers="\nn\nexit\n",
        )
        session.run("build")

        self.assertEqual(self.executed(), ["make"])
        self.assertEqual(self.provider.generate.call_count, 2)

    def test_fix_chain_runs_until_success(self):
        session = self.make_session(
            [reply(c) for c in "abcde"],
            [failed(c) for c in "abcd"] + [ok("e")],
            answers="\ny\ny\ny\ny\nn\nexit\n",
        )

        self.assertEqual(session.run("do it"), 0)

        self.assertEqual(self.executed(), ["a", "b", "c", "d", "e"])
        self.assertEqual(self.provider.generate.call_count, 5)
        self.assertNotIn("Giving up", self.output.getvalue())
        self.assertEqual(self.history(session)[-1], (Role.ASSISTANT, "e"))

    def test_fix_chain_cap_is_opt_in(self):
        session = self.make_session(
            [reply("a"), reply("b")],
            [failed("a"), failed("b")],
            answers="\ny\nexit\n",
            max_fix_attempts=1,
        )
        session.run("do it")

        self.assertEqual(self.executed(), ["a", "b"])
        self.assertEqual(self.provider.generate.call_count, 2)
        self.assertIn("Giving up after 1 suggested fixes", self.output.getvalue())

    def test_unparseable_fix_ends_chain(self):
        session = self.make_session(
            [reply("make"), "I think you should run make all"],
            [failed("make")],
            answers="\nexit\n",
        )
        self.assertEqual(session.run("build"), 0)
        self.assertEqual(self.executed(), ["make"])
        self.assertIn("I think you should run make all", self.output.getvalue())

    def test_output_added_to_context_on_request(self):
        session = self.make_session(
            [reply("cat notes.txt")],
            [ok("cat notes.txt", "buy milk\n")],
            answers="\ny\nexit\n",
        )
        session.run("show my notes")

        self.assertEqual(self.history(session)[-1], (Role.USER, "Command output:\nbuy milk\n"))
        self.assertIn("Output added to conversation context", self.output.getvalue())

    def test_launch_failure_is_reported(self):
        session = self.make_session(
            [reply("ls")],
            [ExecutionError("Error executing command: [Errno 2] No such file or directory")],
            answers="\nexit\n",
        )

        self.assertEqual(session.run("list files"), 0)
        self.assertIn("Error executing command", self.output.getvalue())
        self.assertEqual(self.provider.generate.call_count, 1)


if __name__ == "__main__":
    unittest.main()
