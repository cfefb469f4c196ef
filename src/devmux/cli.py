"""devmux command line

    devmux              Create session (or reattach) for the current project
    devmux init         Generate .devmux.json for this project
    devmux ls           List active tmux sessions
    devmux kill [name]  Kill a session (defaults to the current project)
    devmux sync         Reconcile the session with .devmux.json
    devmux restart [p]  Restart one pane's command
    devmux go [path]    Jump to the project's terminal window
    devmux open [path]  Open the project in a new terminal window
    devmux detach [n]   Detach all clients from a session
    devmux tile <pos>   Move the project's window to a screen position
    devmux spaces       List virtual desktops
    devmux projects     List projects under the scan root
    devmux serve        Run the local companion API
    devmux doctor       Check tools and permissions
"""

import asyncio
import json
import os
import shutil
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from devmux import config
from devmux.adapters.tmux import TmuxClient
from devmux.config import Settings
from devmux.core import naming
from devmux.core.tags import session_from_title, window_tag
from devmux.desktop.tiling import position_names, resolve_position
from devmux.errors import DevmuxError, PermissionUnavailable, TargetResolutionError, ToolMissing
from devmux.project.resolver import load_project_config, write_default_declaration
from devmux.runtime import DevmuxContext, build_context
from devmux.telemetry import configure_logging, get_logger

logger = get_logger(__name__)
console = Console()

TMUX_HINT = "Install with: brew install tmux"

# 不需要 tmux 的子命令
NO_TMUX_COMMANDS = {"init", "help", "go", "tile", "spaces", "doctor", "serve", "projects"}

USAGE_CONFIG = """\
Config (.devmux.json):
  Place in your project root to customize the layout:

  {
    "ensure": true,
    "panes": [
      { "name": "claude", "cmd": "claude", "size": 60 },
      { "name": "server", "cmd": "pnpm dev" },
      { "name": "tests",  "cmd": "pnpm test --watch" }
    ]
  }

  size      Width % for the first pane (default: 60)
  cmd       Command to run in the pane
  name      Label (also a restart target)
  ensure    Re-run exited commands on reattach
  prefill   Type commands into idle panes on reattach (you hit Enter)

Layouts:
  2 panes  ->  side-by-side split
  3+ panes ->  main-vertical (first pane left, rest stacked right)
"""


class DevmuxGroup(click.Group):
    """Click group with short aliases (list, rm, t)."""

    ALIASES = {"list": "ls", "rm": "kill", "t": "tile", "nav": "go"}

    def get_command(self, ctx: click.Context, cmd_name: str):
        return super().get_command(ctx, self.ALIASES.get(cmd_name, cmd_name))

    def resolve_command(self, ctx: click.Context, args: list[str]):
        name, cmd, rest = super().resolve_command(ctx, args)
        return (cmd.name if cmd else name), cmd, rest


def _context(click_ctx: click.Context) -> DevmuxContext:
    """Lazily build (or reuse an injected) DevmuxContext."""
    obj = click_ctx.find_root().obj
    if obj.get("context") is None:
        obj["context"] = build_context(obj.get("settings") or Settings())
    return obj["context"]


def _run(coro):
    return asyncio.run(coro)


def _project_dir(path: str | None) -> str:
    return naming.absolute_path(path or os.getcwd())


def _require_tmux(click_ctx: click.Context) -> None:
    obj = click_ctx.find_root().obj
    if obj.get("context") is not None:
        return
    if not TmuxClient.is_available():
        raise ToolMissing("tmux", TMUX_HINT)


@click.group(cls=DevmuxGroup, invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Named tmux workspaces for your projects.

    Run without a command to create (or reattach to) the session for the
    current directory.
    """
    ctx.ensure_object(dict)
    configure_logging("DEBUG" if verbose else None)

    if ctx.invoked_subcommand not in NO_TMUX_COMMANDS:
        try:
            _require_tmux(ctx)
        except ToolMissing as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            ctx.exit(1)

    if ctx.invoked_subcommand is None:
        create_or_attach(ctx)


def create_or_attach(ctx: click.Context) -> None:
    devmux = _context(ctx)
    project = load_project_config(_project_dir(None))
    name = devmux.orchestrator.session_name(project)

    async def _go():
        if await devmux.orchestrator.session_exists(name):
            console.print(f'Reattaching to "{name}"...')
        else:
            if project.source == "declared":
                console.print(f"Using {config.DECLARATION_FILENAME} ({len(project.panes)} panes)")
            elif project.panes[-1].cmd:
                console.print(f"Detected: {escape(project.panes[-1].cmd)}")
            console.print(f'Creating "{name}"...')
        result = await devmux.orchestrator.attach_or_create(project)
        if result.restored:
            verb = "Restarted" if result.restore_mode == "ensure" else "Prefilled"
            console.print(f"{verb} {result.restored} exited command{'s' if result.restored > 1 else ''}")
        return result

    try:
        _run(_go())
    except DevmuxError as e:
        console.print(f"[red]{escape(str(e))}[/red]")


@cli.command()
def init():
    """Generate .devmux.json for this project."""
    path, content = write_default_declaration(_project_dir(None))
    if content is None:
        console.print(f"{config.DECLARATION_FILENAME} already exists.")
        return
    console.print(f"Created {config.DECLARATION_FILENAME}")
    console.print_json(json.dumps(content))


@cli.command(name="ls")
@click.pass_context
def list_sessions(ctx: click.Context):
    """List active tmux sessions."""
    devmux = _context(ctx)
    sessions = _run(devmux.orchestrator.list_sessions())
    if not sessions:
        console.print("No active tmux sessions.")
        return

    table = Table(title="Sessions")
    table.add_column("Name", style="green")
    table.add_column("Windows", justify="right")
    table.add_column("Created", style="blue")
    table.add_column("Attached", style="cyan")
    for s in sessions:
        table.add_row(escape(s["name"]), str(s["windows"]), s["created"], "yes" if s["attached"] else "")
    console.print(table)


@cli.command()
@click.argument("name", required=False)
@click.pass_context
def kill(ctx: click.Context, name: str | None):
    """Kill a session (defaults to the current project)."""
    devmux = _context(ctx)
    name = name or naming.session_name(_project_dir(None), devmux.settings.naming_version)
    try:
        _run(devmux.orchestrator.kill(name))
    except DevmuxError as e:
        console.print(escape(str(e)))
        return
    console.print(f'Killed "{name}".')


@cli.command()
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.pass_context
def sync(ctx: click.Context, path: str | None):
    """Reconcile the running session with .devmux.json."""
    devmux = _context(ctx)
    report = _run(devmux.orchestrator.sync(load_project_config(_project_dir(path))))
    if report.created:
        console.print(f'Created "{report.session}" ({report.panes_added} panes).')
        return
    if report.panes_added:
        console.print(f"Added {report.panes_added} pane(s).")
    if report.commands_sent:
        console.print(f"Started: {', '.join(report.commands_sent)}")
    if report.skipped_busy:
        console.print(f"[yellow]Busy, left alone:[/yellow] {', '.join(report.skipped_busy)}")
    if not (report.panes_added or report.commands_sent):
        console.print(f'"{report.session}" is in sync.')


@cli.command()
@click.argument("pane", required=False)
@click.pass_context
def restart(ctx: click.Context, pane: str | None):
    """Restart one pane's command (by name or 0-based index)."""
    devmux = _context(ctx)
    project = load_project_config(_project_dir(None))
    try:
        result = _run(devmux.orchestrator.restart_pane(project, pane))
    except TargetResolutionError as e:
        console.print(f'Unknown pane "{escape(e.target)}".')
        console.print(f"Valid targets: {escape(', '.join(e.valid_targets)) or '(none)'}")
        return
    except DevmuxError as e:
        console.print(escape(str(e)))
        return

    if result.escalated and not result.escalation_effective:
        console.print(f"[yellow]{result.pane_name}: still busy after force-kill[/yellow]")
    if result.resubmitted:
        console.print(f"Restarted {result.pane_name}: {escape(result.command or '')}")
    else:
        console.print(f"{result.pane_name} is back at the shell.")


@cli.command(name="open")
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.pass_context
def open_command(ctx: click.Context, path: str | None):
    """Open the project in a new terminal window (or focus its window)."""
    devmux = _context(ctx)
    directory = _project_dir(path)
    session = naming.session_name(directory, devmux.settings.naming_version)

    async def _open():
        if await devmux.orchestrator.session_exists(session):
            return "Focused", await devmux.terminal.focus_or_attach(session)
        return "Opened", await devmux.terminal.launch(config.CLI_NAME, directory)

    verb, ok = _run(_open())
    if ok:
        console.print(f'{verb} "{session}" in {devmux.terminal.name}.')
    else:
        console.print(f"[yellow]{devmux.terminal.name} did not respond.[/yellow]")


@cli.command()
@click.argument("name", required=False)
@click.pass_context
def detach(ctx: click.Context, name: str | None):
    """Detach every client from a session (defaults to the current project)."""
    devmux = _context(ctx)
    name = name or naming.session_name(_project_dir(None), devmux.settings.naming_version)
    try:
        _run(devmux.orchestrator.detach_all(name))
    except DevmuxError as e:
        console.print(escape(str(e)))
        return
    console.print(f'Detached "{name}".')


@cli.command()
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.pass_context
def go(ctx: click.Context, path: str | None):
    """Jump to the project's terminal window (switching Spaces if needed)."""
    devmux = _context(ctx)
    session = naming.session_name(_project_dir(path), devmux.settings.naming_version)

    async def _navigate():
        result = await devmux.navigation.navigate_to_window(session)
        if result.highlighted:
            await devmux.highlight.wait_dismissed()
        return result

    result = _run(_navigate())
    console.print(f"{session}: {result.outcome.value} (via {result.tier})")


@cli.command()
@click.argument("position", required=False)
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.pass_context
def tile(ctx: click.Context, position: str | None, path: str | None):
    """Move the project's window to a screen position."""
    if not position:
        console.print(escape("Usage: devmux tile <position> [path]") + "\n")
        console.print(f"Positions: {', '.join(position_names())}")
        return
    preset = resolve_position(position)
    if preset is None:
        console.print(f"Unknown position: {escape(position)}")
        console.print(f"Available: {', '.join(position_names())}")
        return

    devmux = _context(ctx)
    session = naming.session_name(_project_dir(path), devmux.settings.naming_version)
    if _run(devmux.tiler.tile(session, devmux.terminal, preset)):
        console.print(f"Tiled -> {preset.name}")
    else:
        console.print(f"[yellow]Could not tile {escape(window_tag(session))}[/yellow]")


@cli.command()
@click.pass_context
def spaces(ctx: click.Context):
    """List virtual desktops per display."""
    devmux = _context(ctx)
    if not devmux.spaces.available:
        console.print("[yellow]Spaces are unavailable on this system.[/yellow]")
        return

    table = Table(title="Spaces")
    table.add_column("Display", justify="right")
    table.add_column("Space", justify="right")
    table.add_column("ID", style="blue")
    table.add_column("Current", style="cyan")
    for display in devmux.spaces.displays():
        for space in display.spaces:
            table.add_row(
                str(display.display_index), str(space.index), str(space.id),
                "*" if space.is_current else "",
            )
    console.print(table)


@cli.command()
@click.option("--root", type=click.Path(file_okay=False), help="Directory to scan")
@click.pass_context
def projects(ctx: click.Context, root: str | None):
    """List projects under the scan root (default ~/dev)."""
    devmux = _context(ctx)
    scanner = devmux.scanner
    if root:
        scanner.root = os.path.expanduser(root)
    tmux_ok = TmuxClient.is_available() or ctx.find_root().obj.get("context") is not None
    if not tmux_ok:
        scanner.tmux = None
    found = _run(scanner.scan())
    if not found:
        console.print(f"No projects in {scanner.root}.")
        return

    table = Table(title=f"Projects in {scanner.root}")
    table.add_column("Name", style="green")
    table.add_column("Type")
    table.add_column("Dev command", style="blue")
    table.add_column("Panes")
    table.add_column("Session")
    table.add_column("Running", style="cyan")
    for p in found:
        table.add_row(
            escape(p.name), p.project_type, escape(p.dev_command or "-"), escape(p.pane_summary),
            p.session_name, "yes" if p.is_running else "",
        )
    console.print(table)


@cli.command()
@click.option("--host", default=None, help=f"Bind address (default {config.SERVER_HOST})")
@click.option("--port", default=None, type=int, help=f"Port (default {config.SERVER_PORT})")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None):
    """Run the local companion API."""
    from devmux.web.app import start_server

    devmux = _context(ctx)
    console.print(f"devmux API at http://{host or devmux.settings.server_host}:{port or devmux.settings.server_port}")
    try:
        _run(start_server(devmux, host, port))
    except KeyboardInterrupt:
        console.print("Stopped.")


@cli.command()
@click.pass_context
def doctor(ctx: click.Context):
    """Check tools, permissions and the naming protocol."""
    devmux = _context(ctx)
    checks: list[tuple[str, bool, str]] = []

    checks.append(("tmux", TmuxClient.is_available(), shutil.which("tmux") or TMUX_HINT))
    checks.append(("osascript", os.path.exists(config.OSASCRIPT_PATH), config.OSASCRIPT_PATH))

    mismatches = naming.verify_vectors()
    checks.append((
        f"naming protocol v{devmux.settings.naming_version}",
        not mismatches,
        "test vectors match" if not mismatches else f"{len(mismatches)} vector(s) differ",
    ))

    try:
        windows = devmux.locator.window_list.list_windows()
        titled = sum(1 for w in windows if w.title)
        tagged = sorted({s for s in (session_from_title(w.title) for w in windows) if s})
        checks.append(("screen recording", titled > 0, f"{titled}/{len(windows)} windows have titles"))
        checks.append(("tagged windows", bool(tagged), ", ".join(tagged) or "none visible"))
    except PermissionUnavailable as e:
        checks.append(("screen recording", False, e.reason))

    try:
        pid = devmux.locator.accessibility.find_app_pid(devmux.terminal.bundle_id)
        if pid is None:
            checks.append(("accessibility", False, f"{devmux.terminal.name} is not running"))
        else:
            devmux.locator.accessibility.list_windows(pid)
            checks.append(("accessibility", True, f"{devmux.terminal.name} windows readable"))
    except PermissionUnavailable as e:
        checks.append(("accessibility", False, e.reason))

    checks.append(("spaces", devmux.spaces.available, "SkyLight bound" if devmux.spaces.available else "no-op"))
    checks.append(("terminal", True, f"{devmux.terminal.name} ({devmux.terminal.bundle_id})"))

    table = Table(title="devmux doctor")
    table.add_column("Check")
    table.add_column("OK")
    table.add_column("Detail", style="blue")
    for name, ok, detail in checks:
        table.add_row(name, "[green]✓[/green]" if ok else "[red]✗[/red]", escape(detail))
    console.print(table)

    for entry in devmux.diagnostics.entries:
        console.print(f"{entry.level.icon} {escape(entry.message)}")


@cli.command(name="help")
@click.pass_context
def help_command(ctx: click.Context):
    """Show this help."""
    click.echo(ctx.find_root().get_help())
    click.echo()
    click.echo(USAGE_CONFIG)


def main():
    try:
        cli(obj={})
    except DevmuxError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(0)


if __name__ == "__main__":
    main()
