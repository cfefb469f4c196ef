"""DevmuxContext - 集中构造组件

职责：
- 由 Settings 创建 TmuxClient, SessionOrchestrator, 终端变体
- 创建桌面组件（后端延迟绑定，首次使用时才导入 pyobjc / 加载 SkyLight）
- 持有 DiagnosticLog 与 Metrics

不负责：
- 进程级单例：每个入口（CLI 命令、API app、测试）自己 build_context() 并传递
"""

from dataclasses import dataclass, field

from ..adapters.tmux import TmuxClient
from ..config import Settings
from ..desktop.backends import AccessibilityBackend, ScreenBackend, WindowListBackend
from ..desktop.highlight import AppKitOverlayRenderer, HighlightFeedback, NullOverlayRenderer, OverlayRenderer
from ..desktop.locator import WindowLocator
from ..desktop.macos import AppKitScreenBackend, AXAccessibilityBackend, QuartzWindowListBackend
from ..desktop.navigation import NavigationEngine
from ..desktop.spaces import SkyLightSpaceProvider, SpaceCoordinator, SpaceProvider
from ..desktop.tiling import WindowTiler
from ..project.scanner import ProjectScanner
from ..session.orchestrator import SessionOrchestrator
from ..telemetry import DiagnosticLog, Metrics, get_logger
from ..terminals import TerminalApp, create_terminal

logger = get_logger(__name__)


@dataclass
class DevmuxContext:
    """一次运行的组件集合"""

    settings: Settings
    tmux: TmuxClient
    orchestrator: SessionOrchestrator
    terminal: TerminalApp
    locator: WindowLocator
    spaces: SpaceCoordinator
    highlight: HighlightFeedback
    navigation: NavigationEngine
    tiler: WindowTiler
    scanner: ProjectScanner
    diagnostics: DiagnosticLog = field(default_factory=DiagnosticLog)
    metrics: Metrics = field(default_factory=Metrics)


def _default_renderer(diagnostics: DiagnosticLog) -> OverlayRenderer:
    try:
        return AppKitOverlayRenderer()
    except ImportError as e:
        diagnostics.warn(f"Highlight: AppKit unavailable ({e}); overlay disabled")
        return NullOverlayRenderer()


def build_context(
    settings: Settings | None = None,
    *,
    tmux: TmuxClient | None = None,
    terminal: TerminalApp | None = None,
    window_list: WindowListBackend | None = None,
    accessibility: AccessibilityBackend | None = None,
    screen: ScreenBackend | None = None,
    space_provider: SpaceProvider | None = None,
    renderer: OverlayRenderer | None = None,
    headless: bool = False,
) -> DevmuxContext:
    """构造运行时组件

    Args:
        settings: 配置快照，None 使用环境变量/默认值
        tmux, terminal, window_list, accessibility, screen, space_provider, renderer:
            替换默认实现（测试注入）
        headless: 不创建 AppKit 覆盖层（API server / 测试）

    Raises:
        DevmuxError: settings.terminal 不是已知终端
    """
    settings = settings or Settings()
    diagnostics = DiagnosticLog(max_entries=settings.diagnostic_max_entries)
    metrics = Metrics()

    tmux = tmux or TmuxClient(settings.tmux_socket)
    terminal = terminal or create_terminal(settings.terminal)
    orchestrator = SessionOrchestrator(tmux, settings=settings, metrics=metrics)

    locator = WindowLocator(
        window_list=window_list or QuartzWindowListBackend(),
        accessibility=accessibility or AXAccessibilityBackend(),
        terminal=terminal,
        diagnostics=diagnostics,
        metrics=metrics,
        tolerance=settings.geometry_tolerance,
    )
    if space_provider is not None:
        spaces = SpaceCoordinator(lambda: space_provider, diagnostics=diagnostics)
    else:
        spaces = SpaceCoordinator(SkyLightSpaceProvider, diagnostics=diagnostics)

    if renderer is None:
        renderer = NullOverlayRenderer() if headless else _default_renderer(diagnostics)
    highlight = HighlightFeedback(renderer, hold=settings.highlight_hold)

    navigation = NavigationEngine(
        locator, spaces, highlight,
        diagnostics=diagnostics,
        space_switch_settle=settings.space_switch_settle,
    )

    logger.debug(f"[Context] built (terminal={terminal.name}, headless={headless})")
    return DevmuxContext(
        settings=settings,
        tmux=tmux,
        orchestrator=orchestrator,
        terminal=terminal,
        locator=locator,
        spaces=spaces,
        highlight=highlight,
        navigation=navigation,
        tiler=WindowTiler(screen or AppKitScreenBackend()),
        scanner=ProjectScanner(settings.scan_root, tmux=tmux, naming_version=settings.naming_version),
        diagnostics=diagnostics,
        metrics=metrics,
    )
