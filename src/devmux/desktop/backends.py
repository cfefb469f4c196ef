"""桌面后端接口

WindowLocator / NavigationEngine / tiling 只依赖这里的抽象：
- WindowListBackend: 合成器窗口列表（需要屏幕录制权限才能看到标题）
- AccessibilityBackend: 辅助功能树（需要辅助功能权限）
- ScreenBackend: 屏幕尺寸

macOS 实现在 desktop.macos（pyobjc，延迟绑定）。
权限或绑定缺失时实现抛出 PermissionUnavailable，由调用方转为诊断记录。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from devmux.core.geometry import Rect


@dataclass
class CompositorWindow:
    """合成器窗口列表中的一项"""
    window_id: int
    owner_pid: int
    title: str = ""
    frame: Rect | None = None


@dataclass
class AXWindow:
    """辅助功能树中的一个窗口"""
    element: Any = field(repr=False)
    title: str = ""
    frame: Rect | None = None  # 左上角原点


@dataclass
class ScreenFrames:
    """主屏幕的完整区域与可见区域（均为左下角原点）"""
    frame: Rect
    visible: Rect


class WindowListBackend(ABC):
    @abstractmethod
    def list_windows(self) -> list[CompositorWindow]:
        """All on-screen and off-screen windows, excluding desktop elements.

        Raises:
            PermissionUnavailable: the compositor API cannot be bound.
        """


class AccessibilityBackend(ABC):
    @abstractmethod
    def find_app_pid(self, bundle_id: str) -> int | None:
        """PID of the running application with this bundle id."""

    @abstractmethod
    def list_windows(self, pid: int) -> list[AXWindow]:
        """Windows of an application.

        Raises:
            PermissionUnavailable: accessibility access is not granted.
        """

    @abstractmethod
    def raise_window(self, element: Any) -> bool:
        """Raise a window and make it the main window of its application."""

    @abstractmethod
    def activate_app(self, pid: int) -> bool:
        """Bring an application to the front."""


class ScreenBackend(ABC):
    @abstractmethod
    def main_screen(self) -> ScreenFrames | None:
        ...
