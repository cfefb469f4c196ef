"""Terminal variants

- base: TerminalApp 接口、ScriptRunner（osascript / open）
- variants: Terminal.app, iTerm2, Warp, Ghostty, Kitty, Alacritty
- create_terminal: 按名称选择变体（启动时一次）
"""

from devmux.errors import DevmuxError

from .base import ScriptRunner, TerminalApp, applescript_string, attach_command, shell_command
from .variants import (
    TERMINALS,
    AlacrittyTerminal,
    AppleTerminal,
    GhosttyTerminal,
    ITerm2Terminal,
    KittyTerminal,
    WarpTerminal,
)

_ALIASES = {
    "terminal.app": "terminal",
    "apple": "terminal",
    "iterm": "iterm2",
}


def terminal_names() -> list[str]:
    return [t.name for t in TERMINALS]


def create_terminal(name: str, runner: ScriptRunner | None = None) -> TerminalApp:
    """Pick the terminal variant by (case-insensitive) name or bundle id.

    Raises:
        DevmuxError: unknown terminal
    """
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    for cls in TERMINALS:
        if key in (cls.name.lower(), cls.bundle_id.lower()):
            return cls(runner)
    raise DevmuxError(
        f'Unknown terminal "{name}". Supported: {", ".join(terminal_names())}'
    )


__all__ = [
    "TerminalApp",
    "ScriptRunner",
    "applescript_string",
    "attach_command",
    "shell_command",
    "AppleTerminal",
    "ITerm2Terminal",
    "WarpTerminal",
    "GhosttyTerminal",
    "KittyTerminal",
    "AlacrittyTerminal",
    "TERMINALS",
    "create_terminal",
    "terminal_names",
]
