"""WindowLocator - 三级窗口发现

按优先级尝试，首个命中即返回：
1. compositor: 合成器窗口列表按标题匹配（需要屏幕录制权限，否则标题为空）
2. accessibility: 终端应用的 AX 窗口按标题匹配，再按 frame 找回合成器 id
3. scripting: 终端变体自己 raise 带标签的窗口，或仅激活应用（无句柄）

每一级的结果写入诊断日志。
"""

from dataclasses import dataclass

from devmux import config
from devmux.core.geometry import Rect
from devmux.core.tags import title_matches
from devmux.errors import PermissionUnavailable
from devmux.models import WindowHandle
from devmux.telemetry import DiagnosticLog, Metrics, get_logger
from devmux.terminals import TerminalApp

from .backends import AccessibilityBackend, CompositorWindow, WindowListBackend

logger = get_logger(__name__)

TIER_COMPOSITOR = "compositor"
TIER_ACCESSIBILITY = "accessibility"
TIER_SCRIPTING = "scripting"


@dataclass
class LocateResult:
    """locate 结果：handle 为 None 时 tier 3 已执行"""
    handle: WindowHandle | None
    tier: str
    activation_attempted: bool = False


class WindowLocator:
    """三级窗口发现"""

    def __init__(
        self,
        window_list: WindowListBackend,
        accessibility: AccessibilityBackend,
        terminal: TerminalApp,
        diagnostics: DiagnosticLog | None = None,
        metrics: Metrics | None = None,
        tolerance: float = config.GEOMETRY_TOLERANCE,
    ):
        self.window_list = window_list
        self.accessibility = accessibility
        self.terminal = terminal
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.metrics = metrics if metrics is not None else Metrics()
        self.tolerance = tolerance

    def _record(self, tier: str, hit: bool) -> None:
        self.metrics.inc("locator.tier_hit" if hit else "locator.tier_miss", {"tier": tier})

    # === Tier 1 ===

    def _compositor_windows(self) -> list[CompositorWindow] | None:
        try:
            return self.window_list.list_windows()
        except PermissionUnavailable as e:
            self.diagnostics.warn(f"Compositor: {e.reason}")
            return None

    def find_in_compositor(self, tag: str) -> WindowHandle | None:
        windows = self._compositor_windows()
        if windows is None:
            self._record(TIER_COMPOSITOR, False)
            return None
        for w in windows:
            if title_matches(w.title, tag):
                self.diagnostics.success(f"Tier 1 (compositor): wid={w.window_id} pid={w.owner_pid}")
                self._record(TIER_COMPOSITOR, True)
                return WindowHandle(
                    owner_pid=w.owner_pid,
                    frame=w.frame,
                    window_id=w.window_id,
                    title=w.title,
                    source_tier=TIER_COMPOSITOR,
                )
        self.diagnostics.warn("Tier 1 (compositor): no titled match (screen recording not granted?)")
        self._record(TIER_COMPOSITOR, False)
        return None

    # === Tier 2 ===

    def match_compositor_id(self, pid: int, frame: Rect | None) -> int | None:
        """Recover the compositor id of an AX window by pid + frame within tolerance."""
        if frame is None:
            return None
        windows = self._compositor_windows() or []
        for w in windows:
            if w.owner_pid == pid and w.frame is not None and w.frame.matches(frame, self.tolerance):
                return w.window_id
        return None

    def find_in_accessibility(self, tag: str) -> WindowHandle | None:
        name = self.terminal.name
        try:
            pid = self.accessibility.find_app_pid(self.terminal.bundle_id)
        except PermissionUnavailable as e:
            self.diagnostics.warn(f"Tier 2 (accessibility): {e.reason}")
            self._record(TIER_ACCESSIBILITY, False)
            return None
        if pid is None:
            self.diagnostics.error(f"Tier 2 (accessibility): {name} ({self.terminal.bundle_id}) not running")
            self._record(TIER_ACCESSIBILITY, False)
            return None

        try:
            windows = self.accessibility.list_windows(pid)
        except PermissionUnavailable as e:
            self.diagnostics.warn(f"Tier 2 (accessibility): {e.reason}")
            self._record(TIER_ACCESSIBILITY, False)
            return None

        self.diagnostics.info(f"Tier 2 (accessibility): {len(windows)} {name} windows, looking for {tag}")
        for w in windows:
            if not title_matches(w.title, tag):
                continue
            self._record(TIER_ACCESSIBILITY, True)
            window_id = self.match_compositor_id(pid, w.frame)
            if window_id is not None:
                self.diagnostics.success(f"Tier 2 (accessibility): matched compositor wid={window_id}")
            else:
                self.diagnostics.warn("Tier 2 (accessibility): no compositor match, raise only")
            return WindowHandle(
                owner_pid=pid,
                frame=w.frame,
                window_id=window_id,
                title=w.title,
                source_tier=TIER_ACCESSIBILITY,
                ax_element=w.element,
            )

        self.diagnostics.warn(f"Tier 2 (accessibility): no window matched {tag}")
        self._record(TIER_ACCESSIBILITY, False)
        return None

    # === 组合 ===

    def find_window(self, tag: str) -> WindowHandle | None:
        """Tiers 1 and 2; the first hit wins."""
        handle = self.find_in_compositor(tag)
        if handle is not None:
            return handle
        return self.find_in_accessibility(tag)

    async def locate(self, tag: str) -> LocateResult:
        """All three tiers. Tier 3 produces no handle."""
        handle = self.find_window(tag)
        if handle is not None:
            return LocateResult(handle=handle, tier=handle.source_tier)

        self.diagnostics.warn(f"Tier 3 (scripting): raising via {self.terminal.name}")
        attempted = await self.terminal.raise_tagged_window(tag)
        self._record(TIER_SCRIPTING, attempted)
        if not attempted:
            self.diagnostics.error(f"Tier 3 (scripting): {self.terminal.name} could not be activated")
        return LocateResult(handle=None, tier=TIER_SCRIPTING, activation_attempted=attempted)

    def frame_of(self, window_id: int) -> Rect | None:
        """Current frame of a compositor window (re-queried)."""
        for w in self._compositor_windows() or []:
            if w.window_id == window_id:
                return w.frame
        return None
