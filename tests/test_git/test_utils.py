"""Tests for process launching and repository discovery."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from assetgit.errors import GitTimeoutError
from assetgit.git.utils import (
    find_git_root,
    is_git_repository,
    probe_git,
    run_process,
    start_process,
)


class TestFindGitRoot:
    """Tests for find_git_root function."""

    def test_find_git_root_exists(self, tmp_path):
        """Test finding git root from a subdirectory."""
        (tmp_path / ".git").mkdir()
        subdir = tmp_path / "Assets" / "Scenes"
        subdir.mkdir(parents=True)

        assert find_git_root(subdir) == tmp_path

    def test_find_git_root_from_root(self, tmp_path):
        """Test finding git root when starting at root."""
        (tmp_path / ".git").mkdir()
        assert find_git_root(tmp_path) == tmp_path

    def test_find_git_root_with_file(self, tmp_path):
        """Test .git as file (submodule or worktree)."""
        (tmp_path / ".git").write_text("gitdir: /path/to/actual/git")
        assert find_git_root(tmp_path) == tmp_path

    def test_is_git_repository_true(self, tmp_path):
        """Test returns True when .git exists."""
        (tmp_path / ".git").mkdir()
        assert is_git_repository(tmp_path) is True


class TestRunProcess:
    """Tests for run_process function."""

    @patch("subprocess.run")
    def test_success(self, mock_run, tmp_path):
        """Test the command line and captured output."""
        mock_run.return_value = MagicMock(stdout="output", stderr="", returncode=0)

        result = run_process("git", ["status", "--porcelain"], cwd=tmp_path, timeout=5)

        assert result.stdout == "output"
        call_args = mock_run.call_args
        assert call_args[0][0] == ["git", "status", "--porcelain"]
        assert call_args[1]["cwd"] == str(tmp_path)
        assert call_args[1]["timeout"] == 5
        assert call_args[1]["capture_output"] is True

    @patch("subprocess.run")
    def test_nonzero_exit_is_returned(self, mock_run):
        """Test a failing command is returned, not raised."""
        mock_run.return_value = MagicMock(stdout="", stderr="fatal", returncode=128)

        result = run_process("git", ["status"])
        assert result.returncode == 128

    @patch("subprocess.run")
    def test_missing_executable(self, mock_run):
        """Test a missing executable gives None."""
        mock_run.side_effect = FileNotFoundError("no such file")

        assert run_process("/nope/git", ["status"]) is None

    @patch("subprocess.run")
    def test_permission_denied(self, mock_run):
        """Test an unrunnable executable gives None."""
        mock_run.side_effect = PermissionError("denied")

        assert run_process("/etc/passwd", ["status"]) is None

    @patch("subprocess.run")
    def test_timeout(self, mock_run):
        """Test a hung command raises GitTimeoutError."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="git", timeout=3)

        with pytest.raises(GitTimeoutError) as exc_info:
            run_process("git", ["fetch", "origin"], timeout=3)

        assert "timed out" in str(exc_info.value)
        assert exc_info.value.timeout == 3


class TestStartProcess:
    """Tests for start_process function."""

    @patch("subprocess.Popen")
    def test_pipes_output(self, mock_popen):
        """Test both output streams are piped."""
        handle = MagicMock()
        mock_popen.return_value = handle

        assert start_process("git", ["show", "HEAD:a.txt"]) is handle
        kwargs = mock_popen.call_args[1]
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.PIPE

    @patch("subprocess.Popen")
    def test_spawn_failure(self, mock_popen):
        """Test spawn failures give None."""
        mock_popen.side_effect = FileNotFoundError("no such file")

        assert start_process("missing-git", ["show"]) is None


class TestProbeGit:
    """Tests for probe_git function."""

    @patch("assetgit.git.utils.run_process")
    def test_version_found(self, mock_run):
        """Test a normal git reports ready."""
        mock_run.return_value = MagicMock(stdout="git version 2.43.0\n", returncode=0)

        assert probe_git("git") == ("git version 2.43.0", True)
        assert mock_run.call_args[0][1] == ["--version"]

    @patch("assetgit.git.utils.run_process")
    def test_windows_build_version(self, mock_run):
        """Test vendor suffixes still match."""
        mock_run.return_value = MagicMock(stdout="git version 2.41.0.windows.3\n", returncode=0)

        version, ready = probe_git("git.exe")
        assert ready is True
        assert version.startswith("git version 2.41")

    @patch("assetgit.git.utils.run_process")
    def test_no_version(self, mock_run):
        """Test an executable that is not git."""
        mock_run.return_value = MagicMock(stdout="hello\n", returncode=0)

        assert probe_git("/bin/echo") == ("", False)

    @patch("assetgit.git.utils.run_process")
    def test_not_spawnable(self, mock_run):
        """Test a missing executable."""
        mock_run.return_value = None

        assert probe_git("/missing/git") == ("", False)

    @patch("assetgit.git.utils.run_process")
    def test_timeout(self, mock_run):
        """Test a hung probe is treated as not ready."""
        mock_run.side_effect = GitTimeoutError(["--version"], 1.0)

        assert probe_git("git", timeout=1.0) == ("", False)
