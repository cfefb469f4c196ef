"""Runtime module - 组件构造"""

from .context import DevmuxContext, build_context

__all__ = [
    "build_context",
    "DevmuxContext",
]
