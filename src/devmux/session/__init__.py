"""Session module - tmux 会话编排"""

from .orchestrator import SessionOrchestrator
from .process import is_idle_shell, kill_children

__all__ = ["SessionOrchestrator", "is_idle_shell", "kill_children"]
