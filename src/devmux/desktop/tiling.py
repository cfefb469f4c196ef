"""Window tiling presets

Positions are fractions (x, y, w, h) of the screen's visible frame, measured
from the top-left. AppleScript wants {left, top, right, bottom} in top-left
coordinates while NSScreen reports bottom-left frames.
"""

from dataclasses import dataclass

from devmux.core.geometry import Rect
from devmux.core.tags import window_tag
from devmux.telemetry import get_logger
from devmux.terminals import TerminalApp

from .backends import ScreenBackend, ScreenFrames

logger = get_logger(__name__)

FALLBACK_BOUNDS = (0, 0, 960, 540)


@dataclass(frozen=True)
class TilePosition:
    name: str
    label: str
    fractions: tuple[float, float, float, float]


POSITIONS: dict[str, TilePosition] = {
    p.name: p
    for p in (
        TilePosition("left", "Left", (0.0, 0.0, 0.5, 1.0)),
        TilePosition("right", "Right", (0.5, 0.0, 0.5, 1.0)),
        TilePosition("top", "Top", (0.0, 0.0, 1.0, 0.5)),
        TilePosition("bottom", "Bottom", (0.0, 0.5, 1.0, 0.5)),
        TilePosition("top-left", "Top Left", (0.0, 0.0, 0.5, 0.5)),
        TilePosition("top-right", "Top Right", (0.5, 0.0, 0.5, 0.5)),
        TilePosition("bottom-left", "Bottom Left", (0.0, 0.5, 0.5, 0.5)),
        TilePosition("bottom-right", "Bottom Right", (0.5, 0.5, 0.5, 0.5)),
        TilePosition("maximize", "Max", (0.0, 0.0, 1.0, 1.0)),
        TilePosition("center", "Center", (0.15, 0.1, 0.7, 0.8)),
    )
}

ALIASES = {
    "left-half": "left",
    "right-half": "right",
    "top-half": "top",
    "bottom-half": "bottom",
    "max": "maximize",
    "full": "maximize",
    "centre": "center",
}


def resolve_position(name: str) -> TilePosition | None:
    key = name.strip().lower()
    return POSITIONS.get(ALIASES.get(key, key))


def position_names() -> list[str]:
    return list(POSITIONS)


def applescript_bounds(position: TilePosition, screen: ScreenFrames | None) -> tuple[int, int, int, int]:
    if screen is None:
        return FALLBACK_BOUNDS
    full, visible = screen.frame, screen.visible
    vis_top = int(full.height - (visible.y + visible.height))
    vis_left = int(visible.x)
    vis_w = int(visible.width)
    vis_h = int(visible.height)

    fx, fy, fw, fh = position.fractions
    x1 = vis_left + int(vis_w * fx)
    y1 = vis_top + int(vis_h * fy)
    return Rect(x1, y1, int(vis_w * fw), int(vis_h * fh)).to_applescript_bounds()


class WindowTiler:
    def __init__(self, screen: ScreenBackend):
        self.screen = screen

    def bounds_for(self, position: TilePosition) -> tuple[int, int, int, int]:
        return applescript_bounds(position, self.screen.main_screen())

    async def tile(self, session: str, terminal: TerminalApp, position: TilePosition) -> bool:
        """Move the session's tagged window (scriptable terminals) or the front window."""
        bounds = self.bounds_for(position)
        logger.info(f"[Tile] {session} -> {position.name} {bounds} via {terminal.name}")
        if terminal.supports_scripting:
            return await terminal.set_tagged_window_bounds(window_tag(session), bounds)
        return await terminal.set_frontmost_bounds(bounds)
