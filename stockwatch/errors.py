"""Error taxonomy for a checker run.

Every error names the stage that failed so the top-level log line is enough to
diagnose a run. main() maps each class to its own exit code.
"""


class WatchError(Exception):
    """Base class for fatal checker errors."""
    stage = "run"
    exit_code = 1

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class ConfigurationError(WatchError):
    stage = "config"
    exit_code = 2


class AuthenticationError(WatchError):
    stage = "login"
    exit_code = 3


class NavigationTimeout(WatchError, TimeoutError):
    """A bounded wait (navigation, load state, selector) was exceeded."""
    stage = "navigate"
    exit_code = 4


class ExtractionError(WatchError):
    stage = "extract"
    exit_code = 5


class NotificationError(WatchError):
    stage = "notify"
    exit_code = 6


class StoreError(WatchError):
    stage = "store"
    exit_code = 7
