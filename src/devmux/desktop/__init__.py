"""桌面模块 - 窗口发现、Spaces、高亮、跳转、平铺

- backends: 后端接口（合成器窗口列表 / 辅助功能 / 屏幕）
- macos: pyobjc 实现
- locator: WindowLocator 三级发现
- spaces: SpaceCoordinator（SkyLight 或空对象）
- highlight: HighlightFeedback 覆盖层
- navigation: NavigationEngine
- tiling: 平铺预设
"""

from .highlight import AppKitOverlayRenderer, HighlightFeedback, NullOverlayRenderer, OverlayRenderer
from .locator import LocateResult, WindowLocator
from .navigation import NavigationEngine
from .spaces import NullSpaceProvider, SkyLightSpaceProvider, SpaceCoordinator, SpaceProvider
from .tiling import POSITIONS, TilePosition, WindowTiler, resolve_position

__all__ = [
    "AppKitOverlayRenderer",
    "HighlightFeedback",
    "NullOverlayRenderer",
    "OverlayRenderer",
    "LocateResult",
    "WindowLocator",
    "NavigationEngine",
    "NullSpaceProvider",
    "SkyLightSpaceProvider",
    "SpaceCoordinator",
    "SpaceProvider",
    "POSITIONS",
    "TilePosition",
    "WindowTiler",
    "resolve_position",
]
