"""ProjectScanner - 扫描项目根目录

列出扫描根目录（默认 ~/dev）下的非隐藏目录，检测：
- 项目类型（按标志文件）
- dev 命令与包管理器
- 声明的 pane 数量与名称
- tmux 会话是否在运行
"""

import os

from devmux import config
from devmux.adapters.tmux import TmuxClient
from devmux.core import naming
from devmux.errors import ConfigError
from devmux.models import ProjectInfo
from devmux.telemetry import get_logger

from .resolver import detect_dev_command, detect_package_manager, read_declaration, read_scripts

logger = get_logger(__name__)

# 按顺序检查，第一个命中即为类型
PROJECT_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("node", ("package.json",)),
    ("swift", ("Package.swift",)),
    ("rust", ("Cargo.toml",)),
    ("go", ("go.mod",)),
    ("python", ("pyproject.toml", "setup.py", "requirements.txt")),
)


def detect_project_type(path: str) -> str:
    for project_type, markers in PROJECT_MARKERS:
        if any(os.path.exists(os.path.join(path, m)) for m in markers):
            return project_type
    return "other"


class ProjectScanner:
    """扫描根目录下的项目"""

    def __init__(
        self,
        root: str | None = None,
        tmux: TmuxClient | None = None,
        naming_version: int = config.NAMING_PROTOCOL_VERSION,
    ):
        self.root = os.path.expanduser(root or config.SCAN_ROOT)
        self.tmux = tmux
        self.naming_version = naming_version

    def inspect(self, path: str) -> ProjectInfo:
        """Describe one project directory (no tmux query)."""
        path = naming.absolute_path(path)
        info = ProjectInfo(
            name=os.path.basename(path),
            path=path,
            session_name=naming.session_name(path, self.naming_version),
            project_type=detect_project_type(path),
        )
        if read_scripts(path) is not None:
            info.package_manager = detect_package_manager(path)
            info.dev_command = detect_dev_command(path)

        try:
            declaration = read_declaration(path)
        except ConfigError as e:
            logger.debug(f"[Scanner] {info.name}: {e}")
            declaration = None
        if declaration is not None and declaration.panes:
            info.has_config = True
            info.pane_count = len(declaration.panes)
            info.pane_names = [p.name for p in declaration.panes]
        return info

    async def scan(self) -> list[ProjectInfo]:
        """List projects under the root, sorted by directory name.

        A missing or unreadable root yields an empty list.
        """
        try:
            entries = sorted(os.listdir(self.root))
        except OSError as e:
            logger.warning(f"[Scanner] cannot list {self.root}: {e}")
            return []

        projects = [
            self.inspect(os.path.join(self.root, entry))
            for entry in entries
            if not entry.startswith(".") and os.path.isdir(os.path.join(self.root, entry))
        ]

        if self.tmux is not None:
            running = {s["name"] for s in await self.tmux.list_sessions()}
            for project in projects:
                project.is_running = project.session_name in running

        logger.debug(f"[Scanner] {len(projects)} projects under {self.root}")
        return projects

    async def find(self, name: str) -> ProjectInfo | None:
        """Project by directory name or session name."""
        for project in await self.scan():
            if name in (project.name, project.session_name):
                return project
        return None
