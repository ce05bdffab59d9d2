"""Subprocess execution service for TerraDrift Watcher."""

import subprocess
from typing import List, Mapping, Optional, Tuple

from terradrift.errors import ToolUnavailableError, WatcherError


class CommandRunner:
    """Runs external commands and returns their exit code with combined output."""

    def __init__(self, logger, default_timeout: Optional[float] = None, subprocess_module=subprocess):
        self.logger = logger
        self.default_timeout = default_timeout
        self.subprocess = subprocess_module

    def run(
        self,
        cmd: List[str],
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[int, str]:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s (cwd=%s)", cmd_str, cwd or ".")

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = self.subprocess.run(
                cmd,
                cwd=cwd,
                env=dict(env) if env is not None else None,
                text=True,
                capture_output=True,
                timeout=effective_timeout,
            )
        except FileNotFoundError as exc:
            raise ToolUnavailableError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except self.subprocess.TimeoutExpired as exc:
            raise WatcherError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise WatcherError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            self.logger.debug("Command exited with %s: %s", result.returncode, cmd_str)
        return result.returncode, output
