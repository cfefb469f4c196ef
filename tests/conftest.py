"""Pytest 配置与共享 fake

- FakeTmux: 记录调用的 tmux 替身（会话/pane/前台命令）
- FakeWindowList / FakeAccessibility / FakeScreen: 桌面后端替身
- FakeSpaceProvider: 虚拟桌面替身
- FakeRunner: osascript / open 运行器替身
"""

import pytest

from devmux.config import Settings
from devmux.core.geometry import Rect
from devmux.desktop.backends import (
    AccessibilityBackend,
    AXWindow,
    CompositorWindow,
    ScreenBackend,
    ScreenFrames,
    WindowListBackend,
)
from devmux.desktop.highlight import NullOverlayRenderer
from devmux.desktop.spaces import SpaceProvider
from devmux.errors import PermissionUnavailable
from devmux.runtime import build_context
from devmux.terminals import AppleTerminal


@pytest.fixture
def anyio_backend():
    """指定 anyio 只使用 asyncio backend"""
    return "asyncio"


# === tmux ===


class FakeTmux:
    """In-memory tmux with the TmuxClient coroutine surface.

    Every pane starts at "zsh". send_keys with Enter starts the command (its
    first word becomes the foreground command); send_interrupt returns the pane
    to the shell unless the pane is listed in `stubborn`.
    """

    def __init__(self):
        self.sessions: dict[str, list[dict]] = {}
        self.options: dict[str, dict[str, str]] = {}
        self.calls: list[tuple] = []
        self.stubborn: set[str] = set()
        self.attached: list[tuple[str, bool]] = []
        self.active: dict[str, str] = {}  # session -> active pane id
        self._next_pane = 0

    # helpers for tests

    def _new_pane(self, directory: str) -> dict:
        pane = {"id": f"%{self._next_pane}", "command": "zsh", "title": "", "dir": directory}
        self._next_pane += 1
        return pane

    def add_session(self, name: str, commands: list[str], directory: str = "/tmp") -> list[str]:
        panes = []
        for command in commands:
            pane = self._new_pane(directory)
            pane["command"] = command
            panes.append(pane)
        self.sessions[name] = panes
        if panes:
            self.active[name] = panes[0]["id"]
        return [p["id"] for p in panes]

    def pane(self, pane_id: str) -> dict:
        for panes in self.sessions.values():
            for pane in panes:
                if pane["id"] == pane_id:
                    return pane
        raise KeyError(pane_id)

    def remove_pane(self, pane_id: str) -> None:
        """Simulate a pane that exited (kill-pane)."""
        for panes in self.sessions.values():
            panes[:] = [p for p in panes if p["id"] != pane_id]

    def set_command(self, pane_id: str, command: str) -> None:
        self.pane(pane_id)["command"] = command

    def called(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    # TmuxClient surface

    async def has_session(self, name: str) -> bool:
        return name in self.sessions

    async def new_session(self, name: str, directory: str) -> bool:
        self.calls.append(("new_session", name, directory))
        if name in self.sessions:
            return False
        self.sessions[name] = [self._new_pane(directory)]
        self.active[name] = self.sessions[name][0]["id"]
        return True

    async def kill_session(self, name: str) -> bool:
        self.calls.append(("kill_session", name))
        return self.sessions.pop(name, None) is not None

    async def detach_clients(self, name: str) -> bool:
        self.calls.append(("detach_clients", name))
        return name in self.sessions

    async def list_sessions(self) -> list[dict]:
        return [
            {"name": name, "windows": 1, "created": "Sat Oct 17 10:00:00 2026", "attached": False}
            for name in self.sessions
        ]

    async def split_window(self, name, directory, horizontal=False, percent=None, target=None) -> str | None:
        """Like tmux: the new pane goes right after the split pane and becomes active."""
        self.calls.append(("split_window", name, directory, horizontal, percent, target))
        panes = self.sessions[name]
        anchor = target or self.active.get(name) or panes[-1]["id"]
        index = next((i for i, p in enumerate(panes) if p["id"] == anchor), len(panes) - 1)
        pane = self._new_pane(directory)
        panes.insert(index + 1, pane)
        self.active[name] = pane["id"]
        return pane["id"]

    async def select_layout(self, name: str, layout: str) -> bool:
        self.calls.append(("select_layout", name, layout))
        return True

    async def set_window_option(self, name: str, option: str, value: str) -> bool:
        self.calls.append(("set_window_option", name, option, value))
        return True

    async def set_session_option(self, name: str, option: str, value: str) -> bool:
        self.calls.append(("set_session_option", name, option, value))
        self.options.setdefault(name, {})[option] = value
        return True

    async def rename_window(self, name: str, new_name: str) -> bool:
        self.calls.append(("rename_window", name, new_name))
        return True

    async def list_pane_ids(self, name: str) -> list[str]:
        return [p["id"] for p in self.sessions.get(name, [])]

    async def select_pane(self, pane_id: str) -> bool:
        self.calls.append(("select_pane", pane_id))
        for name, panes in self.sessions.items():
            if any(p["id"] == pane_id for p in panes):
                self.active[name] = pane_id
                return True
        return False

    async def rename_pane(self, pane_id: str, name: str) -> bool:
        self.calls.append(("rename_pane", pane_id, name))
        self.pane(pane_id)["title"] = name
        return True

    async def send_keys(self, pane_id: str, text: str, enter: bool = True) -> bool:
        self.calls.append(("send_keys", pane_id, text, enter))
        if enter:
            self.set_command(pane_id, text.split()[0])
        return True

    async def send_interrupt(self, pane_id: str) -> bool:
        self.calls.append(("send_interrupt", pane_id))
        if pane_id not in self.stubborn:
            self.set_command(pane_id, "zsh")
        return True

    async def pane_current_command(self, pane_id: str) -> str | None:
        try:
            return self.pane(pane_id)["command"]
        except KeyError:
            return None

    async def pane_pid(self, pane_id: str) -> int | None:
        return 4000 + int(pane_id.lstrip("%"))

    async def attach(self, name: str, inside_tmux: bool = False) -> int:
        self.attached.append((name, inside_tmux))
        return 0


# === 桌面后端 ===


class FakeWindowList(WindowListBackend):
    def __init__(self, windows=None, denied: bool = False, events: list | None = None):
        self.windows: list[CompositorWindow] = windows or []
        self.denied = denied
        self.events = events if events is not None else []
        self.calls = 0

    def list_windows(self) -> list[CompositorWindow]:
        self.calls += 1
        self.events.append("compositor")
        if self.denied:
            raise PermissionUnavailable("compositor", "Quartz not bound")
        return list(self.windows)


class FakeAccessibility(AccessibilityBackend):
    def __init__(self, pid: int | None = 501, windows=None, denied: bool = False, events: list | None = None):
        self.pid = pid
        self.windows: list[AXWindow] = windows or []
        self.denied = denied
        self.events = events if events is not None else []
        self.raised: list = []
        self.activated: list[int] = []

    def find_app_pid(self, bundle_id: str) -> int | None:
        self.events.append("accessibility")
        return self.pid

    def list_windows(self, pid: int) -> list[AXWindow]:
        if self.denied:
            raise PermissionUnavailable("accessibility", "Accessibility access not granted")
        return list(self.windows)

    def raise_window(self, element) -> bool:
        self.raised.append(element)
        return True

    def activate_app(self, pid: int) -> bool:
        self.activated.append(pid)
        return True


class FakeScreen(ScreenBackend):
    """1440x900 screen with a 25pt menu bar."""

    def __init__(self, frames: ScreenFrames | None = None):
        self.frames = frames or ScreenFrames(
            frame=Rect(0, 0, 1440, 900),
            visible=Rect(0, 0, 1440, 875),
        )

    def main_screen(self) -> ScreenFrames | None:
        return self.frames


class FakeSpaceProvider(SpaceProvider):
    """Two user spaces (101, 102) and one fullscreen space on a single display."""

    def __init__(self, active: int = 101, window_spaces: dict[int, list[int]] | None = None):
        self.active = active
        self.window_spaces = window_spaces or {}
        self.switches: list[tuple[str, int]] = []

    def managed_display_spaces(self) -> list[dict]:
        return [{
            "Display Identifier": "Main",
            "Current Space": {"id64": self.active, "type": 0},
            "Spaces": [
                {"id64": 101, "type": 0},
                {"id64": 555, "type": 4},
                {"id64": 102, "type": 0},
            ],
        }]

    def active_space(self) -> int | None:
        return self.active

    def spaces_for_window(self, window_id: int) -> list[int]:
        return self.window_spaces.get(window_id, [])

    def set_current_space(self, display_id: str, space_id: int) -> None:
        self.switches.append((display_id, space_id))
        self.active = space_id


class FakeRunner:
    """ScriptRunner replacement: records scripts, replies via `reply(script)`."""

    def __init__(self, reply=None, events: list | None = None):
        self.scripts: list[str] = []
        self.opened: list[tuple] = []
        self.spawned: list[tuple] = []
        self.reply = reply or (lambda script: "")
        self.events = events if events is not None else []

    async def applescript(self, script: str) -> str | None:
        self.events.append("scripting")
        self.scripts.append(script)
        return self.reply(script)

    async def open_app(self, app: str, *args: str, env: dict | None = None) -> bool:
        self.opened.append((app, args, env))
        return True

    async def spawn(self, *cmd: str) -> bool:
        self.spawned.append(cmd)
        return True


# === fixtures ===


@pytest.fixture
def fake_tmux():
    return FakeTmux()


@pytest.fixture
def settings(tmp_path):
    """Fast timeouts, hashed names, scan root under tmp_path."""
    return Settings(
        naming_version=2,
        terminal="Terminal",
        scan_root=str(tmp_path),
        restart_poll_interval=0.01,
        restart_interrupt_timeout=0.05,
        restart_kill_timeout=0.05,
        space_switch_settle=0.05,
        highlight_hold=0.0,
    )


@pytest.fixture
def make_context(fake_tmux, settings):
    """Build a DevmuxContext wired to fakes only."""

    def _make(window_list=None, accessibility=None, space_provider=None, runner=None):
        return build_context(
            settings,
            tmux=fake_tmux,
            terminal=AppleTerminal(runner or FakeRunner()),
            window_list=window_list or FakeWindowList(),
            accessibility=accessibility or FakeAccessibility(),
            screen=FakeScreen(),
            space_provider=space_provider or FakeSpaceProvider(),
            renderer=NullOverlayRenderer(),
        )

    return _make
