"""devmux 配置

配置分为以下几类：
- 项目声明：声明文件名、默认 pane 尺寸
- 会话命名：命名协议版本（每个部署固定一次）
- 进程判定：空闲 shell 列表
- 重启/切换：轮询间隔与超时
- 高亮：淡入/停留/淡出时长
- 运行环境：终端、扫描目录、tmux socket、日志
"""

import os
from dataclasses import dataclass, field


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# === 项目声明 ===
DECLARATION_FILENAME = ".devmux.json"
DEFAULT_MAIN_PANE_SIZE = 60  # 第一个 pane 的宽度百分比
DEFAULT_AGENT_PANE = {"name": "claude", "cmd": "claude", "size": DEFAULT_MAIN_PANE_SIZE}
DEFAULT_SERVER_PANE_NAME = "server"
NO_DEV_SERVER_PLACEHOLDER = "echo 'no dev server detected'"  # 仅用于 init 生成的文件
DEV_SCRIPT_ORDER = ("dev", "start", "serve", "watch")

# lockfile -> 包管理器（按顺序检查）
LOCKFILE_MANAGERS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("pnpm-lock.yaml",), "pnpm"),
    (("bun.lockb", "bun.lock"), "bun"),
    (("yarn.lock",), "yarn"),
)
DEFAULT_PACKAGE_MANAGER = "npm"

# === 会话命名 ===
NAMING_PROTOCOL_VERSION = _env_int("DEVMUX_NAMING_VERSION", 2)
TAG_PREFIX = "devmux"

# === 进程判定 ===
IDLE_SHELLS = frozenset({"bash", "zsh", "fish", "sh", "dash"})

# === 重启配置（轮询代替固定等待）===
RESTART_POLL_INTERVAL = 0.1  # 轮询间隔（秒）
RESTART_INTERRUPT_TIMEOUT = _env_float("DEVMUX_RESTART_INTERRUPT_TIMEOUT", 0.5)  # C-c 后最多等待
RESTART_KILL_TIMEOUT = _env_float("DEVMUX_RESTART_KILL_TIMEOUT", 0.3)  # 强杀后最多等待

# === Space 切换 ===
SPACE_SWITCH_SETTLE = 0.2  # 等待切换动画（秒）
SPACE_SWITCH_POLL_INTERVAL = 0.05

# === 高亮 ===
HIGHLIGHT_FADE_IN = 0.15
HIGHLIGHT_HOLD = _env_float("DEVMUX_HIGHLIGHT_HOLD", 1.2)
HIGHLIGHT_FADE_OUT = 0.3
HIGHLIGHT_INSET = 8.0  # 覆盖层比窗口大一圈
HIGHLIGHT_COLOR = (0.2, 0.9, 0.4)

# === 几何 ===
GEOMETRY_TOLERANCE = 2.0  # 每个轴的容差（严格小于）

# === 运行环境 ===
TERMINAL_APP = os.environ.get("DEVMUX_TERMINAL", "Terminal")
SCAN_ROOT = os.environ.get("DEVMUX_SCAN_ROOT", os.path.expanduser("~/dev"))
TMUX_SOCKET = os.environ.get("DEVMUX_TMUX_SOCKET") or None
OSASCRIPT_PATH = "/usr/bin/osascript"
OPEN_PATH = "/usr/bin/open"
CLI_NAME = "devmux"  # 新终端窗口里运行的命令
SKYLIGHT_PATH = "/System/Library/PrivateFrameworks/SkyLight.framework/SkyLight"

# === 日志配置 ===
LOG_LEVEL = os.environ.get("DEVMUX_LOG_LEVEL", "WARNING")
DIAGNOSTIC_MAX_ENTRIES = 80  # 诊断日志保留条数
LOG_MAX_CMD_LEN = 120  # 命令日志截断长度

# === 伴随控制 API ===
SERVER_HOST = os.environ.get("DEVMUX_SERVER_HOST", "127.0.0.1")
SERVER_PORT = _env_int("DEVMUX_SERVER_PORT", 8765)


@dataclass
class Settings:
    """运行时配置快照

    由 DevmuxContext 持有，测试中可直接构造覆盖，而不修改模块级常量。
    """

    naming_version: int = NAMING_PROTOCOL_VERSION
    terminal: str = TERMINAL_APP
    scan_root: str = SCAN_ROOT
    tmux_socket: str | None = TMUX_SOCKET
    idle_shells: frozenset[str] = field(default_factory=lambda: IDLE_SHELLS)
    restart_poll_interval: float = RESTART_POLL_INTERVAL
    restart_interrupt_timeout: float = RESTART_INTERRUPT_TIMEOUT
    restart_kill_timeout: float = RESTART_KILL_TIMEOUT
    space_switch_settle: float = SPACE_SWITCH_SETTLE
    highlight_hold: float = HIGHLIGHT_HOLD
    geometry_tolerance: float = GEOMETRY_TOLERANCE
    diagnostic_max_entries: int = DIAGNOSTIC_MAX_ENTRIES
    server_host: str = SERVER_HOST
    server_port: int = SERVER_PORT
