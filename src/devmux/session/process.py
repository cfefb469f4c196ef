"""Process helpers for pane escalation."""

import psutil

from devmux.telemetry import get_logger

logger = get_logger(__name__)


def is_idle_shell(command: str | None, idle_shells: frozenset[str] | set[str]) -> bool:
    """True if a pane's foreground command is a bare interactive shell.

    Login shells show up as "-zsh"; the dash is ignored.
    """
    if not command:
        return False
    return command.strip().lstrip("-") in idle_shells


def kill_children(pid: int) -> int:
    """Force-kill every descendant of pid, leaving pid itself (the shell) alive.

    Returns:
        Number of processes signalled.
    """
    try:
        children = psutil.Process(pid).children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
        logger.warning(f"[Process] cannot inspect pid {pid}: {e}")
        return 0

    killed = 0
    for child in children:
        try:
            child.kill()
            killed += 1
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as e:
            logger.warning(f"[Process] cannot kill pid {child.pid}: {e}")
    logger.debug(f"[Process] killed {killed}/{len(children)} children of {pid}")
    return killed
