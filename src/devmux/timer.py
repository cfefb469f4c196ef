"""Timer - 延迟任务与有界轮询

两种能力：
- DelayScheduler: 具名延迟任务（可取消、可覆盖），用于高亮覆盖层的淡入/停留/淡出
- poll_until: 以固定间隔检查条件，直到满足或超时，代替"sleep 再检查"

使用示例:
    scheduler = DelayScheduler()
    scheduler.register_delay("highlight.fade_out", 1.35, fade_out)
    scheduler.cancel_delay("highlight.fade_out")

    idle = await poll_until(lambda: orchestrator.is_idle("%1"), timeout=0.5, interval=0.1)
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .telemetry import get_logger

logger = get_logger(__name__)

Callback = Callable[[], Any]


@dataclass
class DelayTask:
    """延迟任务"""
    name: str
    delay: float  # 秒
    callback: Callback
    handle: asyncio.TimerHandle | None = None
    task: asyncio.Task | None = None


class DelayScheduler:
    """具名延迟任务调度

    设计原则:
    1. 同名任务覆盖旧任务（旧任务被取消）
    2. 支持同步/异步回调（异步回调内部 create_task 包裹）
    3. 异常隔离：回调失败只记录日志
    """

    def __init__(self):
        self._tasks: dict[str, DelayTask] = {}

    def register_delay(self, name: str, delay: float, callback: Callback) -> None:
        """注册延迟任务

        Args:
            name: 任务名（用于取消）
            delay: 延迟时间（秒）
            callback: 回调函数（同步或异步）
        """
        self.cancel_delay(name)
        loop = asyncio.get_running_loop()
        task = DelayTask(name=name, delay=delay, callback=callback)
        task.handle = loop.call_later(delay, self._fire, name)
        self._tasks[name] = task
        logger.debug(f"[Timer] Registered delay task: {name} ({delay}s)")

    def cancel_delay(self, name: str) -> bool:
        """取消延迟任务

        Returns:
            是否存在并被取消
        """
        task = self._tasks.pop(name, None)
        if task is None:
            return False
        if task.handle is not None:
            task.handle.cancel()
        if task.task is not None and not task.task.done():
            task.task.cancel()
        logger.debug(f"[Timer] Cancelled delay task: {name}")
        return True

    def cancel_all(self) -> None:
        for name in list(self._tasks):
            self.cancel_delay(name)

    def has_pending(self, name: str | None = None) -> bool:
        if name is None:
            return bool(self._tasks)
        return name in self._tasks

    @property
    def pending(self) -> list[str]:
        return list(self._tasks)

    def _fire(self, name: str) -> None:
        task = self._tasks.get(name)
        if task is None:
            return
        try:
            result = task.callback()
            if inspect.isawaitable(result):
                task.task = asyncio.ensure_future(result)
                task.task.add_done_callback(lambda t, n=name: self._on_async_done(n, t))
                return
        except Exception as e:
            logger.error(f"[Timer] Delay task {name} failed: {e}")
        self._tasks.pop(name, None)

    def _on_async_done(self, name: str, future: asyncio.Future) -> None:
        current = self._tasks.get(name)
        if current is not None and current.task is future:
            self._tasks.pop(name, None)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"[Timer] Delay task {name} failed: {exc}")


async def poll_until(
    predicate: Callable[[], Awaitable[bool] | bool],
    timeout: float,
    interval: float,
) -> bool:
    """Check predicate every interval until it holds or timeout elapses.

    The predicate is checked once immediately and once more at the deadline.

    Returns:
        True if the predicate held before the deadline.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(timeout, 0.0)
    while True:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return True
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(interval, remaining))
