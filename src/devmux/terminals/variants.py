"""Supported terminal applications"""

import os
import shutil
from abc import abstractmethod

from devmux.core.tags import window_tag
from devmux.telemetry import get_logger
from devmux.timer import poll_until

from .base import TerminalApp, applescript_string, attach_command, shell_command

logger = get_logger(__name__)

WARP_READY_TIMEOUT = 3.0
WARP_READY_INTERVAL = 0.1


class AppleTerminal(TerminalApp):
    """Terminal.app (AppleScript `do script`)"""

    name = "Terminal"
    bundle_id = "com.apple.Terminal"
    supports_scripting = True

    async def launch(self, command: str, directory: str) -> bool:
        script = "\n".join([
            'tell application "Terminal"',
            "  activate",
            f"  do script {applescript_string(shell_command(command, directory))}",
            "end tell",
        ])
        return await self.runner.applescript(script) is not None

    async def focus_or_attach(self, session: str) -> bool:
        script = "\n".join([
            'tell application "Terminal"',
            "  activate",
            "  set found to false",
            "  repeat with w in windows",
            f"    if name of w contains {applescript_string(window_tag(session))} then",
            "      set index of w to 1",
            "      set found to true",
            "      exit repeat",
            "    end if",
            "  end repeat",
            f"  if not found then do script {applescript_string(attach_command(session))}",
            "end tell",
        ])
        return await self.runner.applescript(script) is not None

    async def raise_tagged_window(self, tag: str) -> bool:
        script = "\n".join([
            'tell application "Terminal"',
            "  activate",
            "  repeat with w in windows",
            f"    if name of w contains {applescript_string(tag)} then",
            "      set index of w to 1",
            "      exit repeat",
            "    end if",
            "  end repeat",
            "end tell",
        ])
        return await self.runner.applescript(script) is not None

    async def set_tagged_window_bounds(self, tag: str, bounds: tuple[int, int, int, int]) -> bool:
        x1, y1, x2, y2 = bounds
        script = "\n".join([
            'tell application "Terminal"',
            "  repeat with w in windows",
            f"    if name of w contains {applescript_string(tag)} then",
            f"      set bounds of w to {{{x1}, {y1}, {x2}, {y2}}}",
            "      set index of w to 1",
            "      exit repeat",
            "    end if",
            "  end repeat",
            "end tell",
        ])
        return await self.runner.applescript(script) is not None


class ITerm2Terminal(TerminalApp):
    """iTerm2 via its Python API (iterm2); bounds still go through AppleScript."""

    name = "iTerm2"
    bundle_id = "com.googlecode.iterm2"
    supports_scripting = True

    # 由 tmux set-titles 写入的终端标题出现在这些 session 变量里
    TITLE_VARIABLES = ("terminalWindowName", "name")

    def __init__(self, runner=None):
        super().__init__(runner)
        self._connection = None

    async def _get_connection(self):
        import iterm2

        if self._connection is None:
            self._connection = await iterm2.Connection.async_create()
        return self._connection

    async def _open_window(self, text: str) -> bool:
        import iterm2

        try:
            connection = await self._get_connection()
            window = await iterm2.Window.async_create(connection)
            if window is None:
                return False
            await window.current_tab.current_session.async_send_text(text + "\n")
            app = await iterm2.async_get_app(connection)
            await app.async_activate()
            return True
        except Exception as e:
            logger.error(f"[iTerm2] create window failed: {e}")
            return False

    async def _find_tagged_window(self, tag: str):
        import iterm2

        connection = await self._get_connection()
        app = await iterm2.async_get_app(connection)
        for window in app.terminal_windows:
            for tab in window.tabs:
                for session in tab.sessions:
                    for variable in self.TITLE_VARIABLES:
                        title = await session.async_get_variable(variable)
                        if title and tag in str(title):
                            return app, window
        return app, None

    async def launch(self, command: str, directory: str) -> bool:
        return await self._open_window(shell_command(command, directory))

    async def raise_tagged_window(self, tag: str) -> bool:
        try:
            app, window = await self._find_tagged_window(tag)
            await app.async_activate()
            if window is not None:
                await window.async_activate()
            return True
        except Exception as e:
            logger.error(f"[iTerm2] raise failed: {e}")
            return False

    async def focus_or_attach(self, session: str) -> bool:
        try:
            app, window = await self._find_tagged_window(window_tag(session))
        except Exception as e:
            logger.error(f"[iTerm2] window lookup failed: {e}")
            return False
        if window is not None:
            await window.async_activate()
            await app.async_activate()
            return True
        return await self._open_window(attach_command(session))

    async def set_tagged_window_bounds(self, tag: str, bounds: tuple[int, int, int, int]) -> bool:
        x1, y1, x2, y2 = bounds
        script = "\n".join([
            'tell application "iTerm2"',
            "  repeat with w in windows",
            f"    if name of w contains {applescript_string(tag)} then",
            f"      set bounds of w to {{{x1}, {y1}, {x2}, {y2}}}",
            "      select w",
            "      exit repeat",
            "    end if",
            "  end repeat",
            "end tell",
        ])
        return await self.runner.applescript(script) is not None


class WarpTerminal(TerminalApp):
    """Warp: open the directory, then type the command through System Events."""

    name = "Warp"
    bundle_id = "dev.warp.Warp-Stable"

    async def _is_frontmost(self) -> bool:
        front = await self.runner.applescript(
            'tell application "System Events" to get name of first application process '
            "whose frontmost is true"
        )
        return front == self.name

    async def launch(self, command: str, directory: str) -> bool:
        if not await self.runner.open_app(self.name, directory):
            return False
        if not await poll_until(self._is_frontmost, WARP_READY_TIMEOUT, WARP_READY_INTERVAL):
            logger.warning("[Warp] window did not come to the front, typing anyway")
        script = "\n".join([
            'tell application "System Events"',
            f"  tell process {applescript_string(self.name)}",
            f"    keystroke {applescript_string(command)}",
            "    keystroke return",
            "  end tell",
            "end tell",
        ])
        return await self.runner.applescript(script) is not None


class GhosttyTerminal(TerminalApp):
    name = "Ghostty"
    bundle_id = "com.mitchellh.ghostty"

    async def launch(self, command: str, directory: str) -> bool:
        return await self.runner.open_app(
            self.name, env={"GHOSTTY_SHELL_COMMAND": shell_command(command, directory)}
        )


class _BundledBinaryTerminal(TerminalApp):
    """Terminals started by running the binary inside their app bundle."""

    binary = ""
    app_dir = ""

    def binary_path(self) -> str | None:
        found = shutil.which(self.binary)
        if found:
            return found
        for root in ("/Applications", os.path.expanduser("~/Applications")):
            candidate = os.path.join(root, self.app_dir, "Contents", "MacOS", self.binary)
            if os.access(candidate, os.X_OK):
                return candidate
        return None

    @abstractmethod
    def launch_args(self, binary: str, command: str, directory: str) -> list[str]:
        """argv that starts the terminal running command in directory."""

    async def launch(self, command: str, directory: str) -> bool:
        binary = self.binary_path()
        if binary is None:
            logger.warning(f"[{self.name}] binary not found")
            return False
        return await self.runner.spawn(*self.launch_args(binary, command, directory))


class KittyTerminal(_BundledBinaryTerminal):
    name = "Kitty"
    bundle_id = "net.kovidgoyal.kitty"
    binary = "kitty"
    app_dir = "kitty.app"

    def launch_args(self, binary: str, command: str, directory: str) -> list[str]:
        return [binary, "--single-instance", "--directory", directory, "sh", "-c", command]


class AlacrittyTerminal(_BundledBinaryTerminal):
    name = "Alacritty"
    bundle_id = "org.alacritty"
    binary = "alacritty"
    app_dir = "Alacritty.app"

    def launch_args(self, binary: str, command: str, directory: str) -> list[str]:
        return [binary, "--working-directory", directory, "-e", "sh", "-c", command]


TERMINALS: tuple[type[TerminalApp], ...] = (
    AppleTerminal,
    ITerm2Terminal,
    WarpTerminal,
    GhosttyTerminal,
    KittyTerminal,
    AlacrittyTerminal,
)
