"""macOS 桌面后端（pyobjc）

所有框架在首次调用时导入；导入失败或权限缺失抛出 PermissionUnavailable，
由 WindowLocator 记录为诊断而不是报错。
"""

from typing import Any

from devmux.core.geometry import Rect
from devmux.errors import PermissionUnavailable
from devmux.telemetry import get_logger

from .backends import (
    AccessibilityBackend,
    AXWindow,
    CompositorWindow,
    ScreenBackend,
    ScreenFrames,
    WindowListBackend,
)

logger = get_logger(__name__)


def _ns_rect(ns_rect) -> Rect:
    return Rect(
        x=float(ns_rect.origin.x),
        y=float(ns_rect.origin.y),
        width=float(ns_rect.size.width),
        height=float(ns_rect.size.height),
    )


class QuartzWindowListBackend(WindowListBackend):
    """CGWindowListCopyWindowInfo

    没有屏幕录制权限时 kCGWindowName 为空，窗口仍会列出（id / pid / bounds 可用）。
    """

    def __init__(self):
        self._quartz = None

    def _bind(self):
        if self._quartz is None:
            try:
                import Quartz
            except ImportError as e:
                raise PermissionUnavailable("compositor", f"Quartz unavailable: {e}") from e
            self._quartz = Quartz
        return self._quartz

    def list_windows(self) -> list[CompositorWindow]:
        q = self._bind()
        options = q.kCGWindowListOptionAll | q.kCGWindowListExcludeDesktopElements
        infos = q.CGWindowListCopyWindowInfo(options, q.kCGNullWindowID) or []

        windows = []
        for info in infos:
            window_id = info.get(q.kCGWindowNumber)
            owner_pid = info.get(q.kCGWindowOwnerPID)
            if window_id is None or owner_pid is None:
                continue
            bounds = info.get(q.kCGWindowBounds)
            windows.append(CompositorWindow(
                window_id=int(window_id),
                owner_pid=int(owner_pid),
                title=str(info.get(q.kCGWindowName) or ""),
                frame=Rect.from_cg_bounds(dict(bounds)) if bounds else None,
            ))
        return windows


class AXAccessibilityBackend(AccessibilityBackend):
    """ApplicationServices AXUIElement + AppKit NSWorkspace"""

    def __init__(self):
        self._ax = None
        self._appkit = None

    def _bind_appkit(self):
        if self._appkit is None:
            try:
                import AppKit
            except ImportError as e:
                raise PermissionUnavailable("accessibility", f"AppKit unavailable: {e}") from e
            self._appkit = AppKit
        return self._appkit

    def _bind_ax(self):
        if self._ax is None:
            try:
                import ApplicationServices
            except ImportError as e:
                raise PermissionUnavailable(
                    "accessibility", f"ApplicationServices unavailable: {e}"
                ) from e
            self._ax = ApplicationServices
        return self._ax

    def find_app_pid(self, bundle_id: str) -> int | None:
        appkit = self._bind_appkit()
        for app in appkit.NSWorkspace.sharedWorkspace().runningApplications():
            if app.bundleIdentifier() == bundle_id:
                return int(app.processIdentifier())
        return None

    def _copy_attribute(self, element: Any, attribute: str) -> tuple[int, Any]:
        ax = self._bind_ax()
        err, value = ax.AXUIElementCopyAttributeValue(element, attribute, None)
        return err, value

    def _frame(self, element: Any) -> Rect | None:
        ax = self._bind_ax()
        _, pos_ref = self._copy_attribute(element, ax.kAXPositionAttribute)
        _, size_ref = self._copy_attribute(element, ax.kAXSizeAttribute)
        if pos_ref is None or size_ref is None:
            return None
        ok_pos, pos = ax.AXValueGetValue(pos_ref, ax.kAXValueCGPointType, None)
        ok_size, size = ax.AXValueGetValue(size_ref, ax.kAXValueCGSizeType, None)
        if not (ok_pos and ok_size):
            return None
        return Rect(float(pos.x), float(pos.y), float(size.width), float(size.height))

    def list_windows(self, pid: int) -> list[AXWindow]:
        ax = self._bind_ax()
        if not ax.AXIsProcessTrusted():
            raise PermissionUnavailable("accessibility", "process is not trusted for accessibility")

        app_ref = ax.AXUIElementCreateApplication(pid)
        err, windows = self._copy_attribute(app_ref, ax.kAXWindowsAttribute)
        if err != ax.kAXErrorSuccess or windows is None:
            raise PermissionUnavailable("accessibility", f"AX error {err} reading windows of {pid}")

        result = []
        for element in windows:
            _, title = self._copy_attribute(element, ax.kAXTitleAttribute)
            result.append(AXWindow(element=element, title=str(title or ""), frame=self._frame(element)))
        return result

    def raise_window(self, element: Any) -> bool:
        try:
            ax = self._bind_ax()
        except PermissionUnavailable as e:
            logger.debug(f"[AX] raise skipped: {e}")
            return False
        err = ax.AXUIElementPerformAction(element, ax.kAXRaiseAction)
        ax.AXUIElementSetAttributeValue(element, ax.kAXMainAttribute, True)
        return err == ax.kAXErrorSuccess

    def activate_app(self, pid: int) -> bool:
        try:
            appkit = self._bind_appkit()
        except PermissionUnavailable as e:
            logger.debug(f"[AX] activate skipped: {e}")
            return False
        app = appkit.NSRunningApplication.runningApplicationWithProcessIdentifier_(pid)
        if app is None:
            return False
        return bool(app.activateWithOptions_(appkit.NSApplicationActivateIgnoringOtherApps))


class AppKitScreenBackend(ScreenBackend):
    def _screens(self):
        try:
            from AppKit import NSScreen
        except ImportError as e:
            logger.debug(f"[Screen] AppKit unavailable: {e}")
            return None
        return NSScreen

    def main_screen(self) -> ScreenFrames | None:
        ns_screen = self._screens()
        if ns_screen is None:
            return None
        screen = ns_screen.mainScreen()
        if screen is None:
            return None
        return ScreenFrames(frame=_ns_rect(screen.frame()), visible=_ns_rect(screen.visibleFrame()))
