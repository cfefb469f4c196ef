"""SessionOrchestrator - 创建、对齐（sync）、重启 tmux 会话

职责：
- create: 按布局算法建会话、打标签、下发命令
- attach_or_create: 已存在则按 ensure/prefill 恢复空闲 pane 后 attach
- sync: 幂等对齐，补齐缺失 pane，只对空闲 shell 下发命令
- restart_pane: 中断 → 轮询 → 强杀子进程 → 轮询 → 重新下发

不负责：
- 会话互斥（同一会话的两次调用不加锁，靠操作本身收敛）
- 终端窗口（由 terminals / desktop 模块处理）
"""

import os
from collections.abc import Callable

from devmux.adapters.tmux import TmuxClient
from devmux.config import Settings
from devmux.core import naming, tags
from devmux.errors import DevmuxError, SessionNotFound, TargetResolutionError
from devmux.models import (
    AttachResult,
    PaneSpec,
    ProjectConfig,
    RestartPhase,
    RestartResult,
    SessionHandle,
    SyncReport,
)
from devmux.project.resolver import LayoutPlan, plan_layout
from devmux.telemetry import Metrics, get_logger, truncate_command
from devmux.timer import poll_until

from .process import is_idle_shell, kill_children

logger = get_logger(__name__)


class SessionOrchestrator:
    """tmux 会话编排

    所有操作串行 await 外部调用；同一会话不加锁，create/sync 幂等，
    restart 只作用于刚检查过的 pane。
    """

    def __init__(
        self,
        tmux: TmuxClient,
        settings: Settings | None = None,
        metrics: Metrics | None = None,
        killer: Callable[[int], int] = kill_children,
    ):
        self.tmux = tmux
        self.settings = settings or Settings()
        self.metrics = metrics if metrics is not None else Metrics()
        self._killer = killer

    # === 查询 ===

    def session_name(self, config: ProjectConfig) -> str:
        return naming.session_name(config.path, self.settings.naming_version)

    async def session_exists(self, name: str) -> bool:
        return await self.tmux.has_session(name)

    async def handle(self, name: str) -> SessionHandle:
        """从 tmux 重建会话句柄"""
        return SessionHandle(name=name, pane_ids=await self.tmux.list_pane_ids(name))

    async def is_idle(self, pane_id: str) -> bool:
        command = await self.tmux.pane_current_command(pane_id)
        return is_idle_shell(command, self.settings.idle_shells)

    async def list_sessions(self) -> list[dict]:
        return await self.tmux.list_sessions()

    # === create ===

    async def create(self, config: ProjectConfig) -> SessionHandle:
        """Create a new session for the project and start its panes.

        Raises:
            DevmuxError: tmux refused to create the session.
        """
        name = self.session_name(config)
        directory = config.path
        plan = plan_layout(config.panes)

        if not await self.tmux.new_session(name, directory):
            raise DevmuxError(f'Could not create tmux session "{name}".')
        logger.info(f"[Create] {name}: {plan.pane_count} panes ({plan.kind})")

        first = await self.tmux.list_pane_ids(name)
        await self._apply_layout(name, directory, plan, first, splits=plan.splits)

        handle = await self.handle(name)
        for pane, pane_id in zip(config.panes, handle.pane_ids):
            await self._label(pane, pane_id)
            if pane.cmd:
                await self._submit(pane, pane_id)

        await self._tag(name)
        await self.tmux.rename_window(name, os.path.basename(directory))
        if handle.pane_ids:
            await self.tmux.select_pane(handle.pane_ids[0])
        return handle

    async def _apply_layout(
        self, name: str, directory: str, plan: LayoutPlan, pane_ids: list[str], splits: int
    ) -> list[str]:
        """Split `splits` new panes after the last one and (re)apply the layout for plan.

        2 panes -> one side-by-side split sized from the first pane;
        3+ panes -> stacked splits, then main-vertical with main-pane-width.
        Each split targets the newest pane so the new ids follow pane_ids in order.

        Returns:
            Ids of the new panes, in creation order.
        """
        horizontal = plan.kind == "split"
        percent = 100 - plan.main_size if horizontal else None
        added: list[str] = []
        for _ in range(splits):
            last = added[-1] if added else (pane_ids[-1] if pane_ids else None)
            pane_id = await self.tmux.split_window(
                name, directory, horizontal=horizontal, percent=percent, target=last
            )
            if pane_id is None:
                logger.warning(f"[Layout] {name}: split-window failed")
                break
            added.append(pane_id)
        if plan.kind == "main-vertical":
            await self.tmux.set_window_option(name, "main-pane-width", f"{plan.main_size}%")
            await self.tmux.select_layout(name, "main-vertical")
        return added

    async def _tag(self, name: str) -> None:
        """Let tmux keep the terminal title set to "[devmux:<name>] <pane title>"."""
        await self.tmux.set_session_option(name, "set-titles", "on")
        await self.tmux.set_session_option(name, "set-titles-string", tags.title_format(name))

    async def _label(self, pane: PaneSpec, pane_id: str) -> None:
        if pane.name:
            await self.tmux.rename_pane(pane_id, pane.name)

    async def _submit(self, pane: PaneSpec, pane_id: str, enter: bool = True) -> bool:
        if not pane.cmd:
            return False
        ok = await self.tmux.send_keys(pane_id, pane.cmd, enter=enter)
        if ok:
            self.metrics.inc("orchestrator.commands_sent", {"enter": str(enter).lower()})
            logger.debug(f"[Submit] {pane_id} <- {truncate_command(pane.cmd)} (enter={enter})")
        return ok

    # === attach ===

    async def restore_commands(self, name: str, config: ProjectConfig, mode: str) -> int:
        """Re-type the declared command into panes that fell back to an idle shell.

        Args:
            mode: "ensure" (command + Enter) or "prefill" (typed, user presses Enter)

        Returns:
            Number of panes touched.
        """
        pane_ids = await self.tmux.list_pane_ids(name)
        count = 0
        for pane, pane_id in zip(config.panes, pane_ids):
            if not pane.cmd:
                continue
            if await self.is_idle(pane_id):
                if await self._submit(pane, pane_id, enter=(mode == "ensure")):
                    count += 1
        return count

    async def attach_or_create(
        self, config: ProjectConfig, inside_tmux: bool | None = None
    ) -> AttachResult:
        """Attach to the project's session, creating it first if needed."""
        name = self.session_name(config)
        if inside_tmux is None:
            inside_tmux = bool(os.environ.get("TMUX"))

        if await self.tmux.has_session(name):
            result = AttachResult(session=name, created=False)
            if config.ensure:
                result.restore_mode = "ensure"
            elif config.prefill:
                result.restore_mode = "prefill"
            if result.restore_mode:
                result.restored = await self.restore_commands(name, config, result.restore_mode)
        else:
            await self.create(config)
            result = AttachResult(session=name, created=True)

        result.exit_code = await self.tmux.attach(name, inside_tmux=inside_tmux)
        return result

    # === sync ===

    async def sync(self, config: ProjectConfig) -> SyncReport:
        """Reconcile the live session with the declaration.

        Idempotent: a second call with no external change creates no panes and
        submits no commands. A pane whose foreground process is not an idle shell
        is never touched.
        """
        name = self.session_name(config)
        report = SyncReport(session=name)

        if not await self.tmux.has_session(name):
            handle = await self.create(config)
            report.created = True
            report.panes_added = len(handle.pane_ids)
            report.commands_sent = [
                p.name or str(i)
                for i, (p, _) in enumerate(zip(config.panes, handle.pane_ids))
                if p.cmd
            ]
            return report

        before = await self.tmux.list_pane_ids(name)
        missing = len(config.panes) - len(before)
        new_ids: set[str] = set()
        if missing > 0:
            logger.info(f"[Sync] {name}: adding {missing} pane(s)")
            added = await self._apply_layout(
                name, config.path, plan_layout(config.panes), before, splits=missing
            )
            new_ids = set(added)
            report.panes_added = len(added)
            # declared panes pair with live panes in creation order
            pane_ids = before + added
        else:
            pane_ids = before

        for i, (pane, pane_id) in enumerate(zip(config.panes, pane_ids)):
            label = pane.name or str(i)
            await self._label(pane, pane_id)
            if not pane.cmd:
                continue
            # new panes start at a shell; existing ones are inspected
            if pane_id in new_ids or await self.is_idle(pane_id):
                if await self._submit(pane, pane_id):
                    report.commands_sent.append(label)
            else:
                report.skipped_busy.append(label)

        await self._tag(name)
        return report

    # === restart ===

    def resolve_target(self, config: ProjectConfig, target: str | int | None) -> int:
        """Map a restart target to a declared pane index.

        Case-insensitive name first, then 0-based index; None means the first pane.

        Raises:
            TargetResolutionError: nothing matches.
        """
        valid = config.pane_targets()
        if not config.panes:
            raise TargetResolutionError(str(target), valid)
        if target is None:
            return 0
        text = str(target).strip()
        for i, pane in enumerate(config.panes):
            if pane.name and pane.name.lower() == text.lower():
                return i
        if text.isdigit() and int(text) < len(config.panes):
            return int(text)
        raise TargetResolutionError(text, valid)

    async def restart_pane(
        self, config: ProjectConfig, target: str | int | None = None
    ) -> RestartResult:
        """Restart one pane's declared command.

        RUNNING → (C-c) → SETTLING_1 → [idle? STARTING : SETTLING_2 via force-kill]
        → STARTING → RUNNING. Exactly one interrupt and at most one force-kill;
        the command is resubmitted regardless of the escalation outcome.

        Raises:
            TargetResolutionError: target matches no declared pane (no side effect).
            SessionNotFound: the project's session is not running.
        """
        index = self.resolve_target(config, target)
        pane = config.panes[index]
        name = self.session_name(config)

        if not await self.tmux.has_session(name):
            raise SessionNotFound(name)
        pane_ids = await self.tmux.list_pane_ids(name)
        if index >= len(pane_ids):
            raise DevmuxError(
                f'Pane "{pane.name or index}" is declared but not running in "{name}". '
                "Run `devmux sync` first."
            )
        pane_id = pane_ids[index]
        label = pane.name or str(index)

        result = RestartResult(
            session=name, pane_name=label, pane_id=pane_id, command=pane.cmd
        )
        result.phases.append(RestartPhase.RUNNING)

        pid = await self.tmux.pane_pid(pane_id)
        await self.tmux.send_interrupt(pane_id)
        result.phases.append(RestartPhase.SETTLING_1)

        idle = await poll_until(
            lambda: self.is_idle(pane_id),
            timeout=self.settings.restart_interrupt_timeout,
            interval=self.settings.restart_poll_interval,
        )
        if not idle:
            result.escalated = True
            result.phases.append(RestartPhase.SETTLING_2)
            self.metrics.inc("restart.escalations")
            if pid is not None:
                killed = self._killer(pid)
                logger.info(f"[Restart] {label}: force-killed {killed} child process(es) of {pid}")
            else:
                logger.warning(f"[Restart] {label}: no pane pid, cannot escalate")
            result.escalation_effective = await poll_until(
                lambda: self.is_idle(pane_id),
                timeout=self.settings.restart_kill_timeout,
                interval=self.settings.restart_poll_interval,
            )
            if not result.escalation_effective:
                logger.warning(f"[Restart] {label}: still busy after force-kill, resubmitting anyway")

        result.phases.append(RestartPhase.STARTING)
        if pane.cmd:
            result.resubmitted = await self._submit(pane, pane_id)
            if result.resubmitted:
                result.phases.append(RestartPhase.RUNNING)
        result.final_command = await self.tmux.pane_current_command(pane_id) or ""
        return result

    # === kill ===

    async def kill(self, name: str) -> None:
        """Kill a session.

        Raises:
            SessionNotFound: no such session.
        """
        if not await self.tmux.has_session(name):
            raise SessionNotFound(name)
        if not await self.tmux.kill_session(name):
            raise DevmuxError(f'Could not kill "{name}".')

    async def detach_all(self, name: str) -> bool:
        if not await self.tmux.has_session(name):
            raise SessionNotFound(name)
        return await self.tmux.detach_clients(name)
