"""SessionOrchestrator 测试（FakeTmux 驱动）"""

from unittest.mock import Mock

import pytest

from devmux.errors import DevmuxError, SessionNotFound, TargetResolutionError
from devmux.models import PaneSpec, ProjectConfig, RestartPhase
from devmux.session.orchestrator import SessionOrchestrator
from devmux.telemetry import Metrics

APP = "/Users/x/app"
APP_SESSION = "app-432f13"


@pytest.fixture
def orchestrator(fake_tmux, settings):
    return SessionOrchestrator(fake_tmux, settings=settings, metrics=Metrics(), killer=Mock(return_value=0))


@pytest.fixture
def two_panes():
    return ProjectConfig(
        path=APP,
        panes=[PaneSpec(name="claude", cmd="claude", size=60), PaneSpec(name="server", cmd="pnpm dev")],
        source="declared",
    )


@pytest.fixture
def three_panes():
    return ProjectConfig(
        path=APP,
        panes=[
            PaneSpec(name="claude", cmd="claude", size=60),
            PaneSpec(name="server", cmd="pnpm dev"),
            PaneSpec(name="tests", cmd="pnpm test --watch"),
        ],
        source="declared",
    )


class TestCreate:
    @pytest.mark.asyncio
    async def test_two_declared_panes(self, orchestrator, fake_tmux, two_panes):
        """/Users/x/app 两个 pane：一次 -h -p 40 分屏，claude 与 pnpm dev 各下发一次"""
        handle = await orchestrator.create(two_panes)

        assert handle.name == APP_SESSION
        assert len(handle.pane_ids) == 2
        assert fake_tmux.called("new_session") == [("new_session", APP_SESSION, APP)]
        first = handle.pane_ids[0]
        assert fake_tmux.called("split_window") == [("split_window", APP_SESSION, APP, True, 40, first)]
        assert [c[2] for c in fake_tmux.called("send_keys")] == ["claude", "pnpm dev"]
        assert all(c[3] is True for c in fake_tmux.called("send_keys"))

    @pytest.mark.asyncio
    async def test_tags_and_labels(self, orchestrator, fake_tmux, two_panes):
        handle = await orchestrator.create(two_panes)

        assert fake_tmux.options[APP_SESSION] == {
            "set-titles": "on",
            "set-titles-string": f"[devmux:{APP_SESSION}] #{{pane_title}}",
        }
        assert [fake_tmux.pane(p)["title"] for p in handle.pane_ids] == ["claude", "server"]
        assert ("rename_window", APP_SESSION, "app") in fake_tmux.calls
        assert fake_tmux.calls[-1] == ("select_pane", handle.pane_ids[0])

    @pytest.mark.asyncio
    async def test_three_panes_main_vertical(self, orchestrator, fake_tmux, three_panes):
        """每次从最新的 pane 分裂，pane 顺序与声明顺序一致"""
        handle = await orchestrator.create(three_panes)

        assert fake_tmux.called("split_window") == [
            ("split_window", APP_SESSION, APP, False, None, handle.pane_ids[0]),
            ("split_window", APP_SESSION, APP, False, None, handle.pane_ids[1]),
        ]
        assert [fake_tmux.pane(p)["title"] for p in handle.pane_ids] == ["claude", "server", "tests"]
        assert ("set_window_option", APP_SESSION, "main-pane-width", "60%") in fake_tmux.calls
        assert ("select_layout", APP_SESSION, "main-vertical") in fake_tmux.calls

    @pytest.mark.asyncio
    async def test_pane_without_command_stays_at_shell(self, orchestrator, fake_tmux):
        config = ProjectConfig(path=APP, panes=[PaneSpec(name="claude", cmd="claude"), PaneSpec(name="server")])

        handle = await orchestrator.create(config)

        assert [c[1] for c in fake_tmux.called("send_keys")] == [handle.pane_ids[0]]

    @pytest.mark.asyncio
    async def test_metrics(self, orchestrator, two_panes):
        await orchestrator.create(two_panes)
        assert orchestrator.metrics.get_counter("orchestrator.commands_sent", {"enter": "true"}) == 2

    @pytest.mark.asyncio
    async def test_new_session_refused(self, orchestrator, fake_tmux, two_panes):
        fake_tmux.add_session(APP_SESSION, ["zsh"])
        with pytest.raises(DevmuxError):
            await orchestrator.create(two_panes)


class TestAttachOrCreate:
    @pytest.mark.asyncio
    async def test_creates_then_attaches(self, orchestrator, fake_tmux, two_panes):
        result = await orchestrator.attach_or_create(two_panes, inside_tmux=False)

        assert result.created is True
        assert result.restore_mode is None
        assert fake_tmux.attached == [(APP_SESSION, False)]

    @pytest.mark.asyncio
    async def test_reattach_without_restore(self, orchestrator, fake_tmux, two_panes):
        fake_tmux.add_session(APP_SESSION, ["zsh", "zsh"])

        result = await orchestrator.attach_or_create(two_panes, inside_tmux=True)

        assert result.created is False
        assert fake_tmux.called("send_keys") == []
        assert fake_tmux.attached == [(APP_SESSION, True)]

    @pytest.mark.asyncio
    async def test_ensure_reruns_exited_commands(self, orchestrator, fake_tmux, two_panes):
        """ensure: 只对回到 shell 的 pane 重新执行"""
        two_panes.ensure = True
        ids = fake_tmux.add_session(APP_SESSION, ["claude", "-zsh"])

        result = await orchestrator.attach_or_create(two_panes, inside_tmux=False)

        assert result.restore_mode == "ensure"
        assert result.restored == 1
        assert fake_tmux.called("send_keys") == [("send_keys", ids[1], "pnpm dev", True)]

    @pytest.mark.asyncio
    async def test_prefill_types_without_enter(self, orchestrator, fake_tmux, two_panes):
        two_panes.prefill = True
        ids = fake_tmux.add_session(APP_SESSION, ["zsh", "zsh"])

        result = await orchestrator.attach_or_create(two_panes, inside_tmux=False)

        assert result.restore_mode == "prefill"
        assert result.restored == 2
        assert fake_tmux.called("send_keys") == [
            ("send_keys", ids[0], "claude", False),
            ("send_keys", ids[1], "pnpm dev", False),
        ]

    @pytest.mark.asyncio
    async def test_ensure_wins_over_prefill(self, orchestrator, fake_tmux, two_panes):
        two_panes.ensure = True
        two_panes.prefill = True
        fake_tmux.add_session(APP_SESSION, ["zsh", "node"])

        result = await orchestrator.attach_or_create(two_panes, inside_tmux=False)

        assert result.restore_mode == "ensure"


class TestSync:
    @pytest.mark.asyncio
    async def test_creates_missing_session(self, orchestrator, two_panes):
        report = await orchestrator.sync(two_panes)

        assert report.created is True
        assert report.panes_added == 2
        assert report.commands_sent == ["claude", "server"]

    @pytest.mark.asyncio
    async def test_adds_missing_pane(self, orchestrator, fake_tmux, three_panes):
        """3 个声明 pane 缺 1 个：一次分屏、重新应用布局、缺失 pane 的命令下发一次"""
        ids = fake_tmux.add_session(APP_SESSION, ["claude", "node"], directory=APP)

        report = await orchestrator.sync(three_panes)

        assert fake_tmux.called("split_window") == [("split_window", APP_SESSION, APP, False, None, ids[1])]
        assert ("select_layout", APP_SESSION, "main-vertical") in fake_tmux.calls
        new_id = fake_tmux.sessions[APP_SESSION][2]["id"]
        assert fake_tmux.called("send_keys") == [("send_keys", new_id, "pnpm test --watch", True)]
        assert report.panes_added == 1
        assert report.commands_sent == ["tests"]
        assert report.skipped_busy == ["claude", "server"]
        assert ids == [p["id"] for p in fake_tmux.sessions[APP_SESSION][:2]]

    @pytest.mark.asyncio
    async def test_lost_pane_keeps_existing_labels(self, orchestrator, fake_tmux, three_panes):
        """第三个 pane 退出后 sync：新 pane 排在末尾，已有 pane 的标签不变，命令只下发一次"""
        handle = await orchestrator.create(three_panes)
        claude_id, server_id, tests_id = handle.pane_ids
        fake_tmux.remove_pane(tests_id)
        sent_before = len(fake_tmux.called("send_keys"))

        report = await orchestrator.sync(three_panes)

        live = await fake_tmux.list_pane_ids(APP_SESSION)
        assert live[:2] == [claude_id, server_id]
        assert [fake_tmux.pane(p)["title"] for p in live] == ["claude", "server", "tests"]
        new_sends = fake_tmux.called("send_keys")[sent_before:]
        assert new_sends == [("send_keys", live[2], "pnpm test --watch", True)]
        assert report.commands_sent == ["tests"]
        assert report.skipped_busy == ["claude", "server"]

    @pytest.mark.asyncio
    async def test_idempotent(self, orchestrator, fake_tmux, three_panes):
        fake_tmux.add_session(APP_SESSION, ["claude"], directory=APP)

        await orchestrator.sync(three_panes)
        panes_after_first = len(fake_tmux.sessions[APP_SESSION])
        sent_after_first = len(fake_tmux.called("send_keys"))

        report = await orchestrator.sync(three_panes)

        assert report.panes_added == 0
        assert report.commands_sent == []
        assert len(fake_tmux.sessions[APP_SESSION]) == panes_after_first
        assert len(fake_tmux.called("send_keys")) == sent_after_first

    @pytest.mark.asyncio
    async def test_never_types_into_busy_pane(self, orchestrator, fake_tmux, two_panes):
        ids = fake_tmux.add_session(APP_SESSION, ["vim", "node"])

        report = await orchestrator.sync(two_panes)

        assert report.skipped_busy == ["claude", "server"]
        assert not any(c[1] in ids for c in fake_tmux.called("send_keys"))

    @pytest.mark.asyncio
    async def test_restarts_exited_command(self, orchestrator, fake_tmux, two_panes):
        ids = fake_tmux.add_session(APP_SESSION, ["claude", "zsh"])

        report = await orchestrator.sync(two_panes)

        assert report.commands_sent == ["server"]
        assert fake_tmux.called("send_keys") == [("send_keys", ids[1], "pnpm dev", True)]

    @pytest.mark.asyncio
    async def test_extra_live_panes_left_alone(self, orchestrator, fake_tmux, two_panes):
        fake_tmux.add_session(APP_SESSION, ["claude", "node", "zsh"])

        report = await orchestrator.sync(two_panes)

        assert report.panes_added == 0
        assert fake_tmux.called("split_window") == []
        assert len(fake_tmux.sessions[APP_SESSION]) == 3

    @pytest.mark.asyncio
    async def test_retags(self, orchestrator, fake_tmux, two_panes):
        fake_tmux.add_session(APP_SESSION, ["claude", "node"])
        await orchestrator.sync(two_panes)
        assert fake_tmux.options[APP_SESSION]["set-titles"] == "on"


class TestResolveTarget:
    def test_default_first_pane(self, orchestrator, three_panes):
        assert orchestrator.resolve_target(three_panes, None) == 0

    def test_name_case_insensitive(self, orchestrator, three_panes):
        assert orchestrator.resolve_target(three_panes, "Server") == 1

    def test_index(self, orchestrator, three_panes):
        assert orchestrator.resolve_target(three_panes, "2") == 2
        assert orchestrator.resolve_target(three_panes, 1) == 1

    def test_name_before_index(self, orchestrator):
        config = ProjectConfig(path=APP, panes=[PaneSpec(name="a"), PaneSpec(name="0")])
        assert orchestrator.resolve_target(config, "0") == 1

    def test_unknown(self, orchestrator, three_panes):
        with pytest.raises(TargetResolutionError) as exc_info:
            orchestrator.resolve_target(three_panes, "db")
        assert exc_info.value.valid_targets == ["claude", "server", "tests"]

    def test_out_of_range(self, orchestrator, three_panes):
        with pytest.raises(TargetResolutionError):
            orchestrator.resolve_target(three_panes, "3")

    def test_unnamed_targets_are_indices(self, orchestrator):
        config = ProjectConfig(path=APP, panes=[PaneSpec(cmd="vim"), PaneSpec(name="srv")])
        with pytest.raises(TargetResolutionError) as exc_info:
            orchestrator.resolve_target(config, "x")
        assert exc_info.value.valid_targets == ["0", "srv"]


class TestRestart:
    @pytest.mark.asyncio
    async def test_interrupt_is_enough(self, orchestrator, fake_tmux, two_panes):
        ids = fake_tmux.add_session(APP_SESSION, ["claude", "node"])

        result = await orchestrator.restart_pane(two_panes, "server")

        assert fake_tmux.called("send_interrupt") == [("send_interrupt", ids[1])]
        orchestrator._killer.assert_not_called()
        assert result.escalated is False
        assert result.escalation_effective is None
        assert result.resubmitted is True
        assert result.phases == [
            RestartPhase.RUNNING, RestartPhase.SETTLING_1, RestartPhase.STARTING, RestartPhase.RUNNING,
        ]
        assert result.final_command == "pnpm"

    @pytest.mark.asyncio
    async def test_busy_pane_escalates_once(self, fake_tmux, settings, two_panes):
        """C-c 无效：一次中断、一次强杀、重新下发"""
        ids = fake_tmux.add_session(APP_SESSION, ["claude", "node"])
        fake_tmux.stubborn.add(ids[1])

        def killer(pid):
            fake_tmux.set_command(ids[1], "zsh")
            return 1

        killer_mock = Mock(side_effect=killer)
        orchestrator = SessionOrchestrator(fake_tmux, settings=settings, killer=killer_mock)

        result = await orchestrator.restart_pane(two_panes, "server")

        assert len(fake_tmux.called("send_interrupt")) == 1
        killer_mock.assert_called_once_with(await fake_tmux.pane_pid(ids[1]))
        assert fake_tmux.called("send_keys") == [("send_keys", ids[1], "pnpm dev", True)]
        assert result.escalated is True
        assert result.escalation_effective is True
        assert result.phases == [
            RestartPhase.RUNNING, RestartPhase.SETTLING_1, RestartPhase.SETTLING_2,
            RestartPhase.STARTING, RestartPhase.RUNNING,
        ]
        assert orchestrator.metrics.get_counter("restart.escalations") == 1

    @pytest.mark.asyncio
    async def test_resubmits_even_if_still_busy(self, orchestrator, fake_tmux, two_panes):
        ids = fake_tmux.add_session(APP_SESSION, ["claude", "node"])
        fake_tmux.stubborn.add(ids[1])

        result = await orchestrator.restart_pane(two_panes, "server")

        orchestrator._killer.assert_called_once()
        assert result.escalation_effective is False
        assert result.resubmitted is True
        assert len(fake_tmux.called("send_interrupt")) == 1

    @pytest.mark.asyncio
    async def test_pane_without_command(self, orchestrator, fake_tmux):
        config = ProjectConfig(path=APP, panes=[PaneSpec(name="shell")])
        fake_tmux.add_session(APP_SESSION, ["python3"])

        result = await orchestrator.restart_pane(config)

        assert result.resubmitted is False
        assert result.final_command == "zsh"
        assert RestartPhase.STARTING in result.phases

    @pytest.mark.asyncio
    async def test_unknown_target_has_no_side_effect(self, orchestrator, fake_tmux, two_panes):
        fake_tmux.add_session(APP_SESSION, ["claude", "node"])
        calls_before = list(fake_tmux.calls)

        with pytest.raises(TargetResolutionError):
            await orchestrator.restart_pane(two_panes, "db")

        assert fake_tmux.calls == calls_before

    @pytest.mark.asyncio
    async def test_no_session(self, orchestrator, two_panes):
        with pytest.raises(SessionNotFound):
            await orchestrator.restart_pane(two_panes)

    @pytest.mark.asyncio
    async def test_declared_but_not_running(self, orchestrator, fake_tmux, two_panes):
        fake_tmux.add_session(APP_SESSION, ["claude"])
        with pytest.raises(DevmuxError, match="devmux sync"):
            await orchestrator.restart_pane(two_panes, "server")


class TestKill:
    @pytest.mark.asyncio
    async def test_kill(self, orchestrator, fake_tmux):
        fake_tmux.add_session("scratch", ["zsh"])
        await orchestrator.kill("scratch")
        assert "scratch" not in fake_tmux.sessions

    @pytest.mark.asyncio
    async def test_kill_unknown(self, orchestrator):
        with pytest.raises(SessionNotFound) as exc_info:
            await orchestrator.kill("nope")
        assert str(exc_info.value) == 'No session "nope".'

    @pytest.mark.asyncio
    async def test_detach_all(self, orchestrator, fake_tmux):
        fake_tmux.add_session("scratch", ["zsh"])
        assert await orchestrator.detach_all("scratch") is True
