"""HighlightFeedback - 窗口高亮覆盖层

一次 flash：
    show(alpha=0) → fade in (0.15s) → hold (1.2s) → fade out (0.3s) → close

同一时刻最多一个覆盖层；新的 flash 取消尚未触发的阶段并替换覆盖层。
阶段由 DelayScheduler 的具名任务驱动，可随时取消。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from devmux import config
from devmux.core.geometry import Rect
from devmux.telemetry import get_logger
from devmux.timer import DelayScheduler

logger = get_logger(__name__)

FADE_OUT_TASK = "highlight.fade_out"
DISMISS_TASK = "highlight.dismiss"


class OverlayRenderer(ABC):
    """覆盖层绘制后端

    frame 为左上角原点（与 CGWindowList / AX 一致），由实现自行翻转。
    """

    @abstractmethod
    def show(self, frame: Rect) -> Any:
        """Create a transparent click-through overlay at frame; returns a token."""

    @abstractmethod
    def animate_alpha(self, token: Any, alpha: float, duration: float) -> None:
        ...

    @abstractmethod
    def close(self, token: Any) -> None:
        ...

    def pump(self) -> None:
        """Give the UI run loop a turn (no-op for headless renderers)."""


class NullOverlayRenderer(OverlayRenderer):
    """无界面环境：只记录调用"""

    def __init__(self):
        self.shown: list[Rect] = []
        self.closed = 0

    def show(self, frame: Rect) -> Any:
        self.shown.append(frame)
        return len(self.shown)

    def animate_alpha(self, token: Any, alpha: float, duration: float) -> None:
        return None

    def close(self, token: Any) -> None:
        self.closed += 1


_border_view_class = None


def _border_view(appkit):
    """NSView subclass drawing the green rounded border (defined once per process)."""
    global _border_view_class
    if _border_view_class is not None:
        return _border_view_class

    r, g, b = config.HIGHLIGHT_COLOR

    class DevmuxHighlightBorderView(appkit.NSView):
        def drawRect_(self, dirty_rect):
            border_width = 4.0
            corner_radius = 12.0
            bounds = self.bounds()

            glow = appkit.NSBezierPath.bezierPathWithRoundedRect_xRadius_yRadius_(
                appkit.NSInsetRect(bounds, 1, 1), corner_radius + 2, corner_radius + 2
            )
            glow.setLineWidth_(border_width + 4)
            appkit.NSColor.colorWithCalibratedRed_green_blue_alpha_(r, g, b, 0.15).setStroke()
            glow.stroke()

            inset = border_width / 2 + 2
            path = appkit.NSBezierPath.bezierPathWithRoundedRect_xRadius_yRadius_(
                appkit.NSInsetRect(bounds, inset, inset), corner_radius, corner_radius
            )
            path.setLineWidth_(border_width)
            appkit.NSColor.colorWithCalibratedRed_green_blue_alpha_(r, g, b, 0.9).setStroke()
            path.stroke()

    _border_view_class = DevmuxHighlightBorderView
    return _border_view_class


class AppKitOverlayRenderer(OverlayRenderer):
    """无边框 NSWindow，加入所有 space，忽略鼠标事件"""

    def __init__(self):
        import AppKit

        self._appkit = AppKit
        app = AppKit.NSApplication.sharedApplication()
        app.setActivationPolicy_(AppKit.NSApplicationActivationPolicyAccessory)

    def _to_appkit(self, frame: Rect) -> Rect:
        screens = self._appkit.NSScreen.screens()
        if not screens:
            return frame
        return frame.flipped(float(screens[0].frame().size.height))

    def show(self, frame: Rect) -> Any:
        ak = self._appkit
        f = self._to_appkit(frame)
        rect = ak.NSMakeRect(f.x, f.y, f.width, f.height)
        window = ak.NSWindow.alloc().initWithContentRect_styleMask_backing_defer_(
            rect, ak.NSWindowStyleMaskBorderless, ak.NSBackingStoreBuffered, False
        )
        window.setOpaque_(False)
        window.setBackgroundColor_(ak.NSColor.clearColor())
        window.setLevel_(ak.NSScreenSaverWindowLevel)
        window.setHasShadow_(False)
        window.setIgnoresMouseEvents_(True)
        window.setReleasedWhenClosed_(False)
        window.setCollectionBehavior_(
            ak.NSWindowCollectionBehaviorCanJoinAllSpaces | ak.NSWindowCollectionBehaviorStationary
        )
        window.setContentView_(
            _border_view(ak).alloc().initWithFrame_(ak.NSMakeRect(0, 0, f.width, f.height))
        )
        window.setAlphaValue_(0.0)
        window.orderFrontRegardless()
        return window

    def animate_alpha(self, token: Any, alpha: float, duration: float) -> None:
        ak = self._appkit
        ak.NSAnimationContext.beginGrouping()
        ak.NSAnimationContext.currentContext().setDuration_(duration)
        token.animator().setAlphaValue_(alpha)
        ak.NSAnimationContext.endGrouping()

    def close(self, token: Any) -> None:
        token.orderOut_(None)

    def pump(self) -> None:
        ak = self._appkit
        ak.NSRunLoop.currentRunLoop().runUntilDate_(ak.NSDate.dateWithTimeIntervalSinceNow_(0.01))


class HighlightFeedback:
    """单覆盖层高亮"""

    def __init__(
        self,
        renderer: OverlayRenderer | None = None,
        scheduler: DelayScheduler | None = None,
        fade_in: float = config.HIGHLIGHT_FADE_IN,
        hold: float = config.HIGHLIGHT_HOLD,
        fade_out: float = config.HIGHLIGHT_FADE_OUT,
        inset: float = config.HIGHLIGHT_INSET,
    ):
        self.renderer = renderer or NullOverlayRenderer()
        self.scheduler = scheduler if scheduler is not None else DelayScheduler()
        self.fade_in = fade_in
        self.hold = hold
        self.fade_out = fade_out
        self.inset = inset
        self._overlay: Any = None

    @property
    def active(self) -> bool:
        return self._overlay is not None

    def flash(self, frame: Rect) -> None:
        """Show the overlay around frame (top-left coordinates).

        Must be called from a running event loop.
        """
        self.dismiss()
        self._overlay = self.renderer.show(frame.inset(-self.inset))
        self.renderer.animate_alpha(self._overlay, 1.0, self.fade_in)
        self.scheduler.register_delay(FADE_OUT_TASK, self.fade_in + self.hold, self._begin_fade_out)
        logger.debug(f"[Highlight] flash at {frame.to_dict()}")

    def _begin_fade_out(self) -> None:
        if self._overlay is None:
            return
        self.renderer.animate_alpha(self._overlay, 0.0, self.fade_out)
        self.scheduler.register_delay(DISMISS_TASK, self.fade_out, self.dismiss)

    def dismiss(self) -> None:
        self.scheduler.cancel_delay(FADE_OUT_TASK)
        self.scheduler.cancel_delay(DISMISS_TASK)
        if self._overlay is not None:
            self.renderer.close(self._overlay)
            self._overlay = None

    async def wait_dismissed(self, interval: float = 0.02) -> None:
        """Keep the UI run loop turning until the overlay is gone (one-shot CLI use)."""
        while self.active:
            self.renderer.pump()
            await asyncio.sleep(interval)
