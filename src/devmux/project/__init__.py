"""项目模块

- declaration: `.devmux.json` 的 pydantic 模型
- resolver: 声明/推断 → ProjectConfig，布局规划
- scanner: 扫描根目录下的项目
"""

from .declaration import Declaration, PaneDeclaration
from .resolver import (
    LayoutPlan,
    default_declaration,
    detect_dev_command,
    detect_package_manager,
    load_project_config,
    plan_layout,
    write_default_declaration,
)
from .scanner import ProjectScanner

__all__ = [
    "Declaration",
    "PaneDeclaration",
    "LayoutPlan",
    "default_declaration",
    "detect_dev_command",
    "detect_package_manager",
    "load_project_config",
    "plan_layout",
    "write_default_declaration",
    "ProjectScanner",
]
