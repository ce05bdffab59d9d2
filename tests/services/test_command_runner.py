import os
import sys

import pytest

from terradrift.errors import ToolUnavailableError, WatcherError
from terradrift.services.command_runner import CommandRunner


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def test_command_runner_combines_stdout_and_stderr():
    runner = CommandRunner(logger=DummyLogger())

    exit_code, output = runner.run(
        [
            sys.executable,
            "-c",
            "import sys; sys.stdout.write('out;'); sys.stderr.write('err'); sys.exit(3)",
        ]
    )

    assert exit_code == 3
    assert output == "out;err"


def test_command_runner_uses_cwd_and_env(tmp_path):
    runner = CommandRunner(logger=DummyLogger())

    exit_code, output = runner.run(
        [sys.executable, "-c", "import os; print(os.getcwd()); print(os.environ['MARKER'])"],
        cwd=str(tmp_path),
        env={**os.environ, "MARKER": "present"},
    )

    assert exit_code == 0
    lines = output.splitlines()
    assert lines[0] == str(tmp_path.resolve()) or lines[0] == str(tmp_path)
    assert lines[1] == "present"


def test_command_runner_raises_tool_unavailable_for_missing_binary():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ToolUnavailableError, match="Required command not found"):
        runner.run(["terradrift-definitely-not-installed"])


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(WatcherError, match="timed out"):
        runner.run([sys.executable, "-c", "import time; time.sleep(2)"], timeout=0.1)
