"""Error taxonomy for devmux.

Leaf calls (tmux, osascript, pyobjc) never raise these; they return an absence
value and the orchestration/navigation layer decides what is reportable.
"""


class DevmuxError(Exception):
    """Base class for devmux errors."""


class ConfigError(DevmuxError):
    """Raised when a project declaration file cannot be parsed or validated."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"invalid {path}: {reason}")


class ToolMissing(DevmuxError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        self.hint = hint
        message = f"{tool} is not installed."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class SessionNotFound(DevmuxError):
    """Raised when an operation targets a tmux session that does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'No session "{name}".')


class TargetResolutionError(DevmuxError):
    """Raised when a restart target matches no declared pane."""

    def __init__(self, target: str, valid_targets: list[str]):
        self.target = target
        self.valid_targets = valid_targets
        listing = ", ".join(valid_targets) if valid_targets else "(none)"
        super().__init__(f'Unknown pane "{target}". Valid targets: {listing}')


class PermissionUnavailable(DevmuxError):
    """Raised inside a discovery tier when its OS permission is not granted.

    Always caught by the tier and turned into a diagnostic entry.
    """

    def __init__(self, tier: str, reason: str):
        self.tier = tier
        self.reason = reason
        super().__init__(f"{tier}: {reason}")
