"""WindowLocator 三级发现测试"""

import pytest

from conftest import FakeAccessibility, FakeRunner, FakeWindowList
from devmux.core.geometry import Rect
from devmux.desktop.backends import AXWindow, CompositorWindow
from devmux.desktop.locator import TIER_ACCESSIBILITY, TIER_COMPOSITOR, TIER_SCRIPTING, WindowLocator
from devmux.telemetry import DiagnosticLevel, DiagnosticLog, Metrics
from devmux.terminals import AppleTerminal

TAG = "[devmux:app-432f13]"
FRAME = Rect(100, 50, 1000, 700)


def make_locator(window_list, accessibility, runner=None):
    return WindowLocator(
        window_list=window_list,
        accessibility=accessibility,
        terminal=AppleTerminal(runner or FakeRunner()),
        diagnostics=DiagnosticLog(),
        metrics=Metrics(),
    )


class TestTierOrder:
    @pytest.mark.asyncio
    async def test_compositor_hit_short_circuits(self):
        """tier 1 命中时不调用 tier 2 / tier 3"""
        events = []
        runner = FakeRunner(events=events)
        window_list = FakeWindowList([
            CompositorWindow(window_id=7, owner_pid=501, title="zsh", frame=Rect(0, 0, 10, 10)),
            CompositorWindow(window_id=42, owner_pid=501, title=f"{TAG} claude", frame=FRAME),
        ], events=events)
        locator = make_locator(window_list, FakeAccessibility(events=events), runner)

        result = await locator.locate(TAG)

        assert events == ["compositor"]
        assert result.tier == TIER_COMPOSITOR
        assert result.handle.window_id == 42
        assert result.handle.frame == FRAME
        assert locator.metrics.get_counter("locator.tier_hit", {"tier": TIER_COMPOSITOR}) == 1

    @pytest.mark.asyncio
    async def test_accessibility_before_scripting(self):
        """tier 1 未命中：tier 2 先于 tier 3"""
        events = []
        runner = FakeRunner(events=events)
        locator = make_locator(
            FakeWindowList(denied=True, events=events),
            FakeAccessibility(windows=[], events=events),
            runner,
        )

        result = await locator.locate(TAG)

        assert events.index("compositor") < events.index("accessibility") < events.index("scripting")
        assert result.handle is None
        assert result.tier == TIER_SCRIPTING
        assert result.activation_attempted is True
        assert TAG in runner.scripts[0]

    @pytest.mark.asyncio
    async def test_accessibility_hit_skips_scripting(self):
        runner = FakeRunner()
        element = object()
        locator = make_locator(
            FakeWindowList(denied=True),
            FakeAccessibility(windows=[AXWindow(element=element, title=f"{TAG} server", frame=FRAME)]),
            runner,
        )

        result = await locator.locate(TAG)

        assert result.tier == TIER_ACCESSIBILITY
        assert result.handle.ax_element is element
        assert result.handle.window_id is None
        assert runner.scripts == []

    @pytest.mark.asyncio
    async def test_scripting_failure(self):
        locator = make_locator(
            FakeWindowList(denied=True),
            FakeAccessibility(pid=None),
            FakeRunner(reply=lambda script: None),
        )

        result = await locator.locate(TAG)

        assert result.activation_attempted is False
        assert locator.metrics.get_counter("locator.tier_miss", {"tier": TIER_SCRIPTING}) == 1


class TestAccessibilityTier:
    def test_recovers_compositor_id_by_frame(self):
        """无标题（无屏幕录制权限）时按 pid + frame 找回 compositor id"""
        window_list = FakeWindowList([
            CompositorWindow(window_id=9, owner_pid=777, title="", frame=FRAME),
            CompositorWindow(window_id=42, owner_pid=501, title="", frame=Rect(101, 50.5, 999, 701)),
        ])
        accessibility = FakeAccessibility(
            pid=501,
            windows=[AXWindow(element="ax", title=f"{TAG} claude", frame=FRAME)],
        )
        locator = make_locator(window_list, accessibility)

        handle = locator.find_window(TAG)

        assert handle.source_tier == TIER_ACCESSIBILITY
        assert handle.window_id == 42
        assert handle.owner_pid == 501

    def test_frame_outside_tolerance_is_raise_only(self):
        window_list = FakeWindowList([
            CompositorWindow(window_id=42, owner_pid=501, title="", frame=Rect(102, 50, 1000, 700)),
        ])
        accessibility = FakeAccessibility(
            windows=[AXWindow(element="ax", title=f"{TAG} claude", frame=FRAME)],
        )
        locator = make_locator(window_list, accessibility)

        handle = locator.find_window(TAG)

        assert handle.window_id is None
        assert handle.has_compositor_id is False

    def test_permission_missing_is_a_miss(self):
        locator = make_locator(FakeWindowList(denied=True), FakeAccessibility(denied=True))

        assert locator.find_window(TAG) is None
        warnings = [e for e in locator.diagnostics.entries if e.level == DiagnosticLevel.WARNING]
        assert any("Accessibility access not granted" in e.message for e in warnings)

    def test_app_not_running(self):
        locator = make_locator(FakeWindowList(), FakeAccessibility(pid=None))

        assert locator.find_in_accessibility(TAG) is None
        assert any(
            e.level == DiagnosticLevel.ERROR and "not running" in e.message
            for e in locator.diagnostics.entries
        )

    def test_no_matching_title(self):
        locator = make_locator(
            FakeWindowList(),
            FakeAccessibility(windows=[AXWindow(element="ax", title="[devmux:other-000000] x", frame=FRAME)]),
        )
        assert locator.find_in_accessibility(TAG) is None


def test_frame_of_requeries():
    window_list = FakeWindowList([CompositorWindow(window_id=42, owner_pid=501, title=TAG, frame=FRAME)])
    locator = make_locator(window_list, FakeAccessibility())

    assert locator.frame_of(42) == FRAME
    assert locator.frame_of(43) is None
    assert window_list.calls == 2


class TestSharedDiagnostics:
    @pytest.mark.asyncio
    async def test_empty_shared_log_is_kept(self):
        """空的共享诊断日志也必须被沿用（不能被新实例替换）"""
        shared = DiagnosticLog()
        locator = WindowLocator(
            window_list=FakeWindowList(denied=True),
            accessibility=FakeAccessibility(windows=[]),
            terminal=AppleTerminal(FakeRunner()),
            diagnostics=shared,
        )

        await locator.locate(TAG)

        assert locator.diagnostics is shared
        assert any("Tier 3" in e.message for e in shared.entries)
