"""Telemetry - 统一日志、诊断记录和指标入口

日志格式: [Component] msg
诊断日志: 窗口发现/导航每一步的结果（有界环形队列，供 `devmux doctor` 和 API 展示）
指标示例: locator.tier_hit, orchestrator.commands_sent, restart.escalations
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from . import config

_LOG_FORMAT = "[%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """获取模块 logger

    Args:
        name: 模块名（通常使用 __name__）
    """
    return logging.getLogger(name)


def configure_logging(level: str | None = None, rich: bool = True) -> None:
    """配置根 logger（仅由 CLI / server 入口调用）

    Args:
        level: 日志级别，None 使用 DEVMUX_LOG_LEVEL
        rich: 是否使用 rich 的 RichHandler 输出
    """
    level_name = (level or config.LOG_LEVEL).upper()
    if rich:
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    root = logging.getLogger("devmux")
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level_name, logging.WARNING))
    root.propagate = False


def truncate_command(cmd: str, max_len: int | None = None) -> str:
    """截断命令用于日志"""
    limit = max_len or config.LOG_MAX_CMD_LEN
    if len(cmd) <= limit:
        return cmd
    return cmd[:limit] + "..."


class DiagnosticLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def icon(self) -> str:
        return {
            DiagnosticLevel.INFO: "›",
            DiagnosticLevel.SUCCESS: "✓",
            DiagnosticLevel.WARNING: "⚠",
            DiagnosticLevel.ERROR: "✗",
        }[self]

    @property
    def log_level(self) -> int:
        return {
            DiagnosticLevel.INFO: logging.INFO,
            DiagnosticLevel.SUCCESS: logging.INFO,
            DiagnosticLevel.WARNING: logging.WARNING,
            DiagnosticLevel.ERROR: logging.ERROR,
        }[self]


@dataclass
class DiagnosticEntry:
    """单条诊断记录"""

    message: str
    level: DiagnosticLevel
    time: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "time": self.time.isoformat(timespec="milliseconds"),
            "level": self.level.value,
            "message": self.message,
        }


class DiagnosticLog:
    """诊断日志

    有界队列，最多保留 max_entries 条。每条同时转发到 logging，
    权限缺失等不面向用户的失败只会出现在这里。
    """

    def __init__(self, max_entries: int | None = None, logger: logging.Logger | None = None):
        self._entries: deque[DiagnosticEntry] = deque(
            maxlen=max_entries or config.DIAGNOSTIC_MAX_ENTRIES
        )
        self._logger = logger or get_logger("devmux.diagnostics")

    def log(self, message: str, level: DiagnosticLevel = DiagnosticLevel.INFO) -> None:
        self._entries.append(DiagnosticEntry(message=message, level=level))
        self._logger.log(level.log_level, message)

    def info(self, message: str) -> None:
        self.log(message, DiagnosticLevel.INFO)

    def success(self, message: str) -> None:
        self.log(message, DiagnosticLevel.SUCCESS)

    def warn(self, message: str) -> None:
        self.log(message, DiagnosticLevel.WARNING)

    def error(self, message: str) -> None:
        self.log(message, DiagnosticLevel.ERROR)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def entries(self) -> list[DiagnosticEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class Metrics:
    """指标收集 facade

    提供简单的计数器接口，当前实现为内存存储。由上下文对象持有，不做全局实例。
    """

    def __init__(self):
        self._counters: dict[str, int] = {}

    def inc(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """递增计数器

        Args:
            name: 指标名（如 "locator.tier_hit"）
            labels: 可选标签（如 {"tier": "compositor"}）
            value: 递增值，默认 1
        """
        key = self._make_key(name, labels)
        self._counters[key] = self._counters.get(key, 0) + value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """获取计数器值（用于测试）"""
        return self._counters.get(self._make_key(name, labels), 0)

    def reset(self) -> None:
        self._counters.clear()

    def get_all_counters(self) -> dict[str, int]:
        return dict(self._counters)

    def _make_key(self, name: str, labels: dict[str, str] | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"
