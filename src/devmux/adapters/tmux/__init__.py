"""Tmux adapter for devmux."""

from .client import TmuxClient, session_target, window_target

__all__ = ["TmuxClient", "session_target", "window_target"]
