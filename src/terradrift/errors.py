"""Domain errors for TerraDrift Watcher."""


class WatcherError(RuntimeError):
    """Raised when a drift check cannot continue safely."""


class ConfigError(WatcherError):
    """Configuration could not be loaded or is inconsistent."""


class LockContentionError(WatcherError):
    """Another run holds a fresh lock marker."""


class ToolUnavailableError(WatcherError):
    """The comparison tool is missing from PATH or cannot be executed."""


class PathNotFoundError(WatcherError):
    """A project directory does not exist."""


class InitFailureError(WatcherError):
    """``terraform init`` failed. ``kind`` is ``backend``, ``provider`` or ``generic``."""

    def __init__(self, message: str, kind: str = "generic", output: str = ""):
        super().__init__(message)
        self.kind = kind
        self.output = output


class CompareFailureError(WatcherError):
    """``terraform plan`` exited with a code other than 0 or 2."""

    def __init__(self, message: str, exit_code: int, output: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class CredentialApplyError(WatcherError):
    """An auth profile could not be exported to the environment."""


class ChannelDeliveryError(WatcherError):
    """An alert could not be delivered through a notification channel."""

    def __init__(self, message: str, transient: bool = True, attempts: int = 1):
        super().__init__(message)
        self.transient = transient
        self.attempts = attempts


class UnsupportedChannelError(WatcherError):
    """The notifier type has no delivery implementation."""


class RunInterrupted(WatcherError):
    """The run was stopped by SIGINT or SIGTERM."""
