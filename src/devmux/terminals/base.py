"""Terminal variants - 公共接口与 osascript / open 运行器

每个终端一个 TerminalApp 子类，启动时由 create_terminal() 选定一次，
调用方不再按终端名分支。
"""

import asyncio
import os
import shlex
from abc import ABC, abstractmethod

from devmux import config
from devmux.adapters.tmux import session_target
from devmux.telemetry import get_logger, truncate_command

logger = get_logger(__name__)


def applescript_string(text: str) -> str:
    """Quote text as an AppleScript string literal."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def shell_command(command: str, directory: str) -> str:
    """`cd <dir> && <command>` with the directory shell-quoted."""
    return f"cd {shlex.quote(directory)} && {command}"


def attach_command(session: str) -> str:
    return f"tmux attach -t {shlex.quote(session_target(session))}"


class ScriptRunner:
    """Runs osascript and open(1) as subprocesses.

    Failures are logged and reported as None / False.
    """

    def __init__(self, osascript: str = config.OSASCRIPT_PATH, open_path: str = config.OPEN_PATH):
        self.osascript = osascript
        self.open_path = open_path

    async def _exec(self, *cmd: str, env: dict | None = None) -> tuple[int, str, str] | None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            logger.warning(f"[Script] cannot run {cmd[0]}: {e}")
            return None
        return proc.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace")

    async def applescript(self, script: str) -> str | None:
        """Run an AppleScript; returns its stdout, or None on failure."""
        result = await self._exec(self.osascript, "-e", script)
        if result is None:
            return None
        code, stdout, stderr = result
        if code != 0:
            logger.debug(f"[Script] osascript failed ({code}): {stderr.strip()}")
            return None
        return stdout.strip()

    async def open_app(self, app: str, *args: str, env: dict | None = None) -> bool:
        cmd = [self.open_path, "-a", app, *args]
        full_env = {**os.environ, **env} if env else None
        result = await self._exec(*cmd, env=full_env)
        return result is not None and result[0] == 0

    async def spawn(self, *cmd: str) -> bool:
        """Start a GUI binary detached from this process."""
        try:
            await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning(f"[Script] cannot start {cmd[0]}: {e}")
            return False
        logger.debug(f"[Script] spawned {truncate_command(' '.join(cmd))}")
        return True


class TerminalApp(ABC):
    """A terminal application devmux can open sessions in."""

    name: str = ""
    bundle_id: str = ""
    supports_scripting: bool = False

    def __init__(self, runner: ScriptRunner | None = None):
        self.runner = runner or ScriptRunner()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    @abstractmethod
    async def launch(self, command: str, directory: str) -> bool:
        """Open a new window running command in directory."""

    async def focus_or_attach(self, session: str) -> bool:
        """Focus the window showing session, or open one attached to it."""
        return await self.activate()

    async def raise_tagged_window(self, tag: str) -> bool:
        """Last-resort discovery: raise a window whose title contains tag.

        Terminals without a scripting facility only activate the application.
        """
        return await self.activate()

    async def set_tagged_window_bounds(self, tag: str, bounds: tuple[int, int, int, int]) -> bool:
        """Move the tagged window; unscriptable terminals move their front window."""
        return await self.set_frontmost_bounds(bounds)

    async def activate(self) -> bool:
        return await self.runner.open_app(self.name)

    async def set_frontmost_bounds(self, bounds: tuple[int, int, int, int]) -> bool:
        x1, y1, x2, y2 = bounds
        script = "\n".join([
            'tell application "System Events"',
            "  set frontApp to name of first application process whose frontmost is true",
            "end tell",
            "tell application frontApp",
            f"  set bounds of front window to {{{x1}, {y1}, {x2}, {y2}}}",
            "end tell",
        ])
        return await self.runner.applescript(script) is not None
