"""进程辅助函数测试"""

from unittest.mock import MagicMock, patch

import psutil
import pytest

from devmux.config import IDLE_SHELLS
from devmux.session.process import is_idle_shell, kill_children


class TestIsIdleShell:
    @pytest.mark.parametrize("command", ["zsh", "bash", "fish", "sh", "dash", "-zsh", "-bash"])
    def test_shells(self, command):
        assert is_idle_shell(command, IDLE_SHELLS)

    @pytest.mark.parametrize("command", ["node", "claude", "vim", "python3", "", None])
    def test_not_idle(self, command):
        assert not is_idle_shell(command, IDLE_SHELLS)


class TestKillChildren:
    def test_kills_descendants_only(self):
        children = [MagicMock(pid=11), MagicMock(pid=12)]
        with patch("devmux.session.process.psutil.Process") as mock_process:
            mock_process.return_value.children.return_value = children
            assert kill_children(10) == 2

        mock_process.assert_called_once_with(10)
        mock_process.return_value.children.assert_called_once_with(recursive=True)
        mock_process.return_value.kill.assert_not_called()
        for child in children:
            child.kill.assert_called_once()

    def test_child_already_gone(self):
        gone = MagicMock(pid=11)
        gone.kill.side_effect = psutil.NoSuchProcess(11)
        alive = MagicMock(pid=12)
        with patch("devmux.session.process.psutil.Process") as mock_process:
            mock_process.return_value.children.return_value = [gone, alive]
            assert kill_children(10) == 1

    def test_missing_parent(self):
        with patch("devmux.session.process.psutil.Process", side_effect=psutil.NoSuchProcess(10)):
            assert kill_children(10) == 0
