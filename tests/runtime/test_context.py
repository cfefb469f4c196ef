"""build_context 测试"""

import pytest

from devmux.config import Settings
from devmux.desktop.highlight import NullOverlayRenderer
from devmux.errors import DevmuxError
from devmux.runtime import build_context
from devmux.terminals import GhosttyTerminal


def test_components_share_diagnostics_and_metrics(make_context):
    ctx = make_context()

    assert ctx.locator.diagnostics is ctx.diagnostics
    assert ctx.navigation.diagnostics is ctx.diagnostics
    assert ctx.locator.metrics is ctx.metrics
    assert ctx.orchestrator.metrics is ctx.metrics
    assert ctx.scanner.tmux is ctx.tmux


def test_settings_flow_through(fake_tmux, settings):
    settings.terminal = "ghostty"
    settings.naming_version = 1

    ctx = build_context(settings, tmux=fake_tmux, headless=True)

    assert isinstance(ctx.terminal, GhosttyTerminal)
    assert ctx.scanner.naming_version == 1
    assert ctx.orchestrator.settings is settings
    assert isinstance(ctx.highlight.renderer, NullOverlayRenderer)


def test_unknown_terminal(fake_tmux):
    with pytest.raises(DevmuxError):
        build_context(Settings(terminal="Hyper"), tmux=fake_tmux, headless=True)


def test_desktop_bindings_are_lazy(fake_tmux, settings):
    """构造上下文不触碰 pyobjc / SkyLight"""
    ctx = build_context(settings, tmux=fake_tmux, headless=True)
    assert ctx.spaces._provider is None
