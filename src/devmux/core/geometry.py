"""Screen geometry helpers

Two coordinate systems are in play on macOS:
- top-left origin: CGWindowList bounds, AX position, AppleScript bounds
- bottom-left origin: AppKit (NSWindow frames, NSScreen)
"""

from dataclasses import dataclass

from devmux import config


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_cg_bounds(cls, bounds: dict) -> "Rect | None":
        """Build from a kCGWindowBounds dictionary."""
        try:
            return cls(
                x=float(bounds["X"]),
                y=float(bounds["Y"]),
                width=float(bounds["Width"]),
                height=float(bounds["Height"]),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def matches(self, other: "Rect", tolerance: float | None = None) -> bool:
        """Same window if every axis differs by strictly less than the tolerance."""
        tol = config.GEOMETRY_TOLERANCE if tolerance is None else tolerance
        return (
            abs(self.x - other.x) < tol
            and abs(self.y - other.y) < tol
            and abs(self.width - other.width) < tol
            and abs(self.height - other.height) < tol
        )

    def inset(self, d: float) -> "Rect":
        """Shrink by d on every side (negative d grows)."""
        return Rect(self.x + d, self.y + d, self.width - 2 * d, self.height - 2 * d)

    def flipped(self, primary_height: float) -> "Rect":
        """Convert between top-left and bottom-left origin."""
        return Rect(self.x, primary_height - self.y - self.height, self.width, self.height)

    def to_applescript_bounds(self) -> tuple[int, int, int, int]:
        """{left, top, right, bottom} in top-left coordinates."""
        return (
            int(self.x),
            int(self.y),
            int(self.x + self.width),
            int(self.y + self.height),
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
