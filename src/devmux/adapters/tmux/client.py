"""Tmux client for subprocess-based tmux interaction."""

import asyncio
import shutil

from devmux.telemetry import get_logger, truncate_command

logger = get_logger(__name__)

# Use tab as delimiter to avoid conflicts with colons in data (paths, names)
_FIELD_SEP = "\t"


def session_target(name: str) -> str:
    """Exact-match session target (tmux would otherwise accept a prefix)."""
    return f"={name}"


def window_target(name: str) -> str:
    """Current window of the exactly-named session."""
    return f"={name}:"


class TmuxClient:
    """Client for interacting with tmux via subprocess commands.

    Every method is best-effort: failures are logged and turned into
    None / False / [] so callers decide what is reportable.
    """

    def __init__(self, socket_path: str | None = None):
        """Initialize TmuxClient.

        Args:
            socket_path: Optional tmux socket path. If None, uses default socket.
        """
        self._socket_path = socket_path

    def _base_cmd(self) -> list[str]:
        cmd = ["tmux"]
        if self._socket_path:
            cmd.extend(["-S", self._socket_path])
        return cmd

    @staticmethod
    def is_available() -> bool:
        """True if a tmux binary is on PATH."""
        return shutil.which("tmux") is not None

    async def run(self, *args: str) -> str | None:
        """Execute a tmux command.

        Args:
            *args: Command arguments (e.g., "list-panes", "-t", "=app:", "-F", "...")

        Returns:
            Command stdout on success, None on failure.
        """
        cmd = self._base_cmd()
        cmd.extend(args)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()

            if proc.returncode != 0:
                logger.debug(
                    f"tmux command failed: {truncate_command(' '.join(cmd))}: "
                    f"{stderr.decode(errors='replace').strip()}"
                )
                return None

            return stdout.decode(errors="replace")

        except Exception as e:
            logger.error(f"tmux subprocess error: {e}")
            return None

    async def run_ok(self, *args: str) -> bool:
        """Execute a tmux command, only reporting success."""
        return await self.run(*args) is not None

    # === Sessions ===

    async def has_session(self, name: str) -> bool:
        return await self.run_ok("has-session", "-t", session_target(name))

    async def new_session(self, name: str, directory: str) -> bool:
        """Create a detached session rooted at directory."""
        return await self.run_ok("new-session", "-d", "-s", name, "-c", directory)

    async def kill_session(self, name: str) -> bool:
        return await self.run_ok("kill-session", "-t", session_target(name))

    async def detach_clients(self, name: str) -> bool:
        """Detach every client attached to a session."""
        return await self.run_ok("detach-client", "-s", session_target(name))

    async def list_sessions(self) -> list[dict]:
        """List all tmux sessions.

        Returns:
            List of session dicts with keys:
            - name: str
            - windows: int
            - created: str (human readable)
            - attached: bool
        """
        fmt = _FIELD_SEP.join([
            "#{session_name}", "#{session_windows}",
            "#{session_created_string}", "#{session_attached}",
        ])
        output = await self.run("list-sessions", "-F", fmt)

        if not output:
            return []

        sessions = []
        for line in output.strip().split("\n"):
            if not line:
                continue
            parts = line.split(_FIELD_SEP)
            if len(parts) >= 4:
                try:
                    sessions.append({
                        "name": parts[0],
                        "windows": int(parts[1]),
                        "created": parts[2],
                        "attached": parts[3] not in ("", "0"),
                    })
                except (ValueError, IndexError) as e:
                    logger.warning(f"Failed to parse session line: {line!r}: {e}")

        return sessions

    # === Layout ===

    async def split_window(
        self,
        name: str,
        directory: str,
        horizontal: bool = False,
        percent: int | None = None,
        target: str | None = None,
    ) -> str | None:
        """Split a pane of the session's window.

        tmux inserts the new pane directly after the split pane, so callers
        that need declaration order split from the last pane.

        Args:
            name: Session name
            directory: Working directory for the new pane
            horizontal: Side-by-side split (-h) instead of stacked
            percent: Size of the new pane in percent (-p)
            target: Pane id to split; defaults to the window's active pane

        Returns:
            Id of the new pane, or None on failure.
        """
        args = ["split-window", "-P", "-F", "#{pane_id}"]
        if horizontal:
            args.append("-h")
        args.extend(["-t", target or window_target(name), "-c", directory])
        if percent is not None:
            args.extend(["-p", str(percent)])
        output = await self.run(*args)
        if not output or not output.strip():
            return None
        return output.strip()

    async def select_layout(self, name: str, layout: str) -> bool:
        return await self.run_ok("select-layout", "-t", window_target(name), layout)

    async def set_window_option(self, name: str, option: str, value: str) -> bool:
        return await self.run_ok("set-option", "-w", "-t", window_target(name), option, value)

    async def set_session_option(self, name: str, option: str, value: str) -> bool:
        return await self.run_ok("set-option", "-t", session_target(name), option, value)

    async def rename_window(self, name: str, new_name: str) -> bool:
        return await self.run_ok("rename-window", "-t", window_target(name), new_name)

    # === Panes ===

    async def list_pane_ids(self, name: str) -> list[str]:
        """Ordered pane ids (e.g. ["%0", "%1"]) of the session's window.

        Independent of base-index / pane-base-index settings.
        """
        output = await self.run("list-panes", "-t", window_target(name), "-F", "#{pane_id}")
        if not output:
            return []
        return [line.strip() for line in output.split("\n") if line.strip()]

    async def select_pane(self, pane_id: str) -> bool:
        """Select/activate a pane."""
        return await self.run_ok("select-pane", "-t", pane_id)

    async def rename_pane(self, pane_id: str, name: str) -> bool:
        """Rename a pane (set its title)."""
        return await self.run_ok("select-pane", "-t", pane_id, "-T", name)

    async def send_keys(self, pane_id: str, text: str, enter: bool = True) -> bool:
        """Type text into a pane, optionally followed by Enter.

        -l sends the text literally so words like "Enter" or "C-c" inside a
        command are not interpreted as key names.
        """
        ok = await self.run_ok("send-keys", "-t", pane_id, "-l", text)
        if ok and enter:
            ok = await self.run_ok("send-keys", "-t", pane_id, "Enter")
        return ok

    async def send_interrupt(self, pane_id: str) -> bool:
        """Send C-c to a pane."""
        return await self.run_ok("send-keys", "-t", pane_id, "C-c")

    async def pane_current_command(self, pane_id: str) -> str | None:
        """Foreground command name of a pane (e.g. "zsh", "node")."""
        output = await self.run("display-message", "-t", pane_id, "-p", "#{pane_current_command}")
        if output is None:
            return None
        return output.strip()

    async def pane_pid(self, pane_id: str) -> int | None:
        """PID of the pane's top-level process (usually the shell)."""
        output = await self.run("display-message", "-t", pane_id, "-p", "#{pane_pid}")
        if not output:
            return None
        try:
            return int(output.strip())
        except ValueError:
            logger.warning(f"Unexpected pane_pid output for {pane_id}: {output!r}")
            return None

    # === Clients ===

    async def attach(self, name: str, inside_tmux: bool = False) -> int:
        """Attach the current terminal to a session (interactive).

        Inherits stdio, so it blocks until the user detaches.

        Returns:
            tmux exit status (127 if tmux could not be started).
        """
        verb = "switch-client" if inside_tmux else "attach-session"
        cmd = self._base_cmd() + [verb, "-t", session_target(name)]
        try:
            proc = await asyncio.create_subprocess_exec(*cmd)
            return await proc.wait()
        except Exception as e:
            logger.error(f"tmux {verb} failed: {e}")
            return 127
