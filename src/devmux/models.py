"""数据模型定义"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from .core.geometry import Rect


@dataclass
class PaneSpec:
    """声明的 pane

    size 只对第一个 pane 有意义（主区域宽度百分比）。
    """
    name: str = ""
    cmd: str | None = None
    size: int | None = None


@dataclass
class ProjectConfig:
    """项目配置（每次编排调用都重新读取，不缓存）"""
    path: str
    panes: list[PaneSpec] = field(default_factory=list)
    ensure: bool = False
    prefill: bool = False
    source: str = "inferred"  # "declared" | "inferred"

    def pane_targets(self) -> list[str]:
        """restart 可用的目标（名称，无名时为索引）"""
        return [p.name if p.name else str(i) for i, p in enumerate(self.panes)]


@dataclass
class SessionHandle:
    """tmux 会话句柄（每次从 tmux 查询重建，不持久化）"""
    name: str
    pane_ids: list[str] = field(default_factory=list)


@dataclass
class SpaceInfo:
    """虚拟桌面"""
    id: int
    index: int  # 每个显示器内 1-based
    display: int  # 0-based
    is_current: bool


@dataclass
class DisplaySpaces:
    """一个显示器上的虚拟桌面列表"""
    display_index: int
    display_id: str
    spaces: list[SpaceInfo] = field(default_factory=list)
    current_space_id: int = 0


@dataclass
class WindowHandle:
    """窗口快照（用于一次变更操作后即失效）

    window_id 为 None 时是 accessibility-only 句柄：可以 raise/highlight，
    但无法关联到虚拟桌面。
    """
    owner_pid: int
    frame: Rect | None = None
    window_id: int | None = None
    space_id: int | None = None
    title: str = ""
    source_tier: str = ""
    ax_element: Any = field(default=None, repr=False, compare=False)

    @property
    def has_compositor_id(self) -> bool:
        return self.window_id is not None


@dataclass
class SyncReport:
    """sync 结果"""
    session: str
    created: bool = False
    panes_added: int = 0
    commands_sent: list[str] = field(default_factory=list)  # pane 名称
    skipped_busy: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class RestartPhase(Enum):
    """restart 状态流转

    RUNNING → SETTLING_1 → [idle? STARTING : SETTLING_2] → STARTING → RUNNING
    """
    RUNNING = "running"
    SETTLING_1 = "settling_1"
    SETTLING_2 = "settling_2"
    STARTING = "starting"


@dataclass
class RestartResult:
    """restart 结果（报告观察到的结果，不视为失败）"""
    session: str
    pane_name: str
    pane_id: str
    phases: list[RestartPhase] = field(default_factory=list)
    escalated: bool = False
    escalation_effective: bool | None = None  # None: 未升级
    command: str | None = None
    resubmitted: bool = False
    final_command: str = ""  # 结束时的前台进程

    def to_dict(self) -> dict:
        data = asdict(self)
        data["phases"] = [p.value for p in self.phases]
        return data


class NavigationOutcome(Enum):
    NAVIGATED = "navigated"  # 有 compositor id，可切换 space
    ACCESSIBILITY_ONLY = "accessibility_only"  # 只能 raise，不能切 space
    ACTIVATED_APP = "activated_app"  # tier 3：激活应用
    FAILED = "failed"


@dataclass
class NavigationResult:
    session: str
    outcome: NavigationOutcome
    tier: str = ""
    switched_space: bool = False
    highlighted: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["outcome"] = self.outcome.value
        return data


@dataclass
class AttachResult:
    """attach_or_create 结果"""
    session: str
    created: bool
    restore_mode: str | None = None  # "ensure" | "prefill" | None
    restored: int = 0  # 恢复命令的 pane 数
    exit_code: int = 0


@dataclass
class ProjectInfo:
    """扫描目录下的一个项目"""
    name: str
    path: str
    session_name: str
    project_type: str = "other"  # node | swift | rust | go | python | other
    dev_command: str | None = None
    package_manager: str | None = None
    has_config: bool = False
    pane_count: int = 2
    pane_names: list[str] = field(default_factory=list)
    is_running: bool = False

    @property
    def pane_summary(self) -> str:
        names = ", ".join(n for n in self.pane_names if n)
        return f"{self.pane_count} panes" + (f" ({names})" if names else "")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["pane_summary"] = self.pane_summary
        return data
