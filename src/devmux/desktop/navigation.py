"""NavigationEngine - 跳转到会话窗口

    handle = None            → tier 3 已激活应用，结束
    handle 有合成器 id       → 不同 space 时切换并等待（有界轮询）→ raise → 高亮
    handle 仅辅助功能元素    → 跳过 space → raise + 激活应用 → 用 AX frame 高亮
"""

from typing import Any

from devmux import config
from devmux.core.tags import title_matches, window_tag
from devmux.errors import PermissionUnavailable
from devmux.models import NavigationOutcome, NavigationResult, WindowHandle
from devmux.telemetry import DiagnosticLog, get_logger

from .backends import AccessibilityBackend
from .highlight import HighlightFeedback
from .locator import WindowLocator
from .spaces import SpaceCoordinator

logger = get_logger(__name__)


class NavigationEngine:
    def __init__(
        self,
        locator: WindowLocator,
        spaces: SpaceCoordinator,
        highlight: HighlightFeedback,
        diagnostics: DiagnosticLog | None = None,
        space_switch_settle: float = config.SPACE_SWITCH_SETTLE,
    ):
        self.locator = locator
        self.spaces = spaces
        self.highlight = highlight
        self.diagnostics = diagnostics if diagnostics is not None else locator.diagnostics
        self.space_switch_settle = space_switch_settle

    @property
    def accessibility(self) -> AccessibilityBackend:
        return self.locator.accessibility

    async def navigate_to_window(self, session: str) -> NavigationResult:
        """Switch to the session window's space, raise it and flash a highlight."""
        tag = window_tag(session)
        self.diagnostics.info(f"navigate: session={session} terminal={self.locator.terminal.name}")

        located = await self.locator.locate(tag)
        handle = located.handle
        if handle is None:
            outcome = (
                NavigationOutcome.ACTIVATED_APP
                if located.activation_attempted
                else NavigationOutcome.FAILED
            )
            return NavigationResult(session=session, outcome=outcome, tier=located.tier)

        result = NavigationResult(session=session, outcome=NavigationOutcome.NAVIGATED, tier=located.tier)
        if handle.has_compositor_id:
            result.switched_space = await self._switch_space_if_needed(handle)
            self._raise_by_tag(handle.owner_pid, tag)
            frame = self.locator.frame_of(handle.window_id) or handle.frame
        else:
            result.outcome = NavigationOutcome.ACCESSIBILITY_ONLY
            self._raise_element(handle.owner_pid, handle.ax_element)
            frame = handle.frame

        if frame is not None:
            self.highlight.flash(frame)
            result.highlighted = True
        else:
            self.diagnostics.error("navigate: no frame, no highlight")
        return result

    async def _switch_space_if_needed(self, handle: WindowHandle) -> bool:
        window_space = self.spaces.space_for_window(handle.window_id)
        current = self.spaces.active_space()
        self.diagnostics.info(f"navigate: wid={handle.window_id} space={window_space} current={current}")
        if window_space is None or current is None or window_space == current:
            return False

        if not self.spaces.switch_to(window_space):
            return False
        settled = await self.spaces.wait_until_active(window_space, timeout=self.space_switch_settle)
        if not settled:
            self.diagnostics.warn(f"navigate: space {window_space} not active after {self.space_switch_settle}s")
        return True

    def _raise_element(self, pid: int, element: Any) -> None:
        if self.accessibility.raise_window(element):
            self.diagnostics.success("navigate: raised window via accessibility")
        else:
            self.diagnostics.warn("navigate: accessibility raise failed")
        self.accessibility.activate_app(pid)

    def _raise_by_tag(self, pid: int, tag: str) -> None:
        """Re-query the AX windows of pid and raise the tagged one, then activate the app."""
        try:
            windows = self.accessibility.list_windows(pid)
        except PermissionUnavailable as e:
            self.diagnostics.warn(f"navigate: cannot raise by tag ({e.reason})")
            windows = []
        for w in windows:
            if title_matches(w.title, tag):
                self._raise_element(pid, w.element)
                return
        if windows:
            self.diagnostics.warn(f"navigate: no AX window with tag {tag}")
        self.accessibility.activate_app(pid)
