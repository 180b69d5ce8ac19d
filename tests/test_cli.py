"""Tests for the assetgit command line."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml
from typer.testing import CliRunner

from assetgit import __version__
from assetgit.cli import app

runner = CliRunner()

BRANCH_BEHIND = "* main 1a2b3c4 [origin/main: behind 1] Add textures"


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config file so the CLI never touches ~/.assetgit."""
    path = tmp_path / "config.yaml"
    path.write_text("git:\n  executable: git\n  timeout: 5\n")
    return path


@pytest.fixture
def git_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "assetgit.git.repository.probe_git",
        lambda *args, **kwargs: ("git version 2.43.0", True),
    )


@pytest.fixture
def invoke(repo_dir, config_file, git_ready, fake_git):
    """Run the app against the fake repository."""

    def _invoke(*args: str, input: str | None = None):
        return runner.invoke(
            app,
            ["--config", str(config_file), "--repo", str(repo_dir), *args],
            input=input,
        )

    return _invoke


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_status_lists_local_changes(invoke, fake_git) -> None:
    fake_git.set(["branch", "-vv"], "* main 1a2b3c4 Initial commit\n")
    fake_git.set(["status", "--porcelain", "--untracked-files"], " M Assets/a.png\n?? notes.txt\n")

    result = invoke("status")

    assert result.exit_code == 0
    assert "On branch main (no upstream)" in result.output
    assert "Assets/a.png" in result.output
    assert "notes.txt" in result.output
    assert "fetch" not in fake_git.subcommands


def test_status_remote_suggests_pull(invoke, fake_git) -> None:
    fake_git.set(["branch", "-vv"], BRANCH_BEHIND + "\n")
    fake_git.set(["diff", "--name-only", "HEAD", "origin/main"], "Assets/tex.png\n")

    result = invoke("status", "--remote")

    assert result.exit_code == 0
    assert ["fetch", "origin"] in fake_git.calls
    assert "Assets/tex.png" in result.output
    assert "assetgit pull" in result.output


def test_stage_selected_paths(invoke, fake_git) -> None:
    fake_git.set(
        ["status", "--porcelain", "--untracked-files"],
        "?? Assets/new.png\n M Assets/old.png\n",
    )

    result = invoke("stage", "Assets/new.png")

    assert result.exit_code == 0
    assert "Staged 1 path(s)" in result.output
    assert ["add", "Assets/new.png", "Assets/new.png.meta"] in fake_git.calls
    assert ["add", "Assets/old.png", "Assets/old.png.meta"] not in fake_git.calls


def test_stage_everything(invoke, fake_git) -> None:
    result = invoke("stage")

    assert result.exit_code == 0
    assert fake_git.calls == [["add", "."]]


def test_unstage_nothing_staged(invoke, fake_git) -> None:
    fake_git.set(["status", "--porcelain", "--untracked-files"], " M Assets/a.png\n")

    result = invoke("unstage", "Assets/a.png")

    assert result.exit_code == 0
    assert "Nothing to unstage" in result.output
    assert "reset" not in fake_git.subcommands


def test_commit(invoke, fake_git) -> None:
    result = invoke("commit", 'Fix "hero" sprite')

    assert result.exit_code == 0
    assert "Committed" in result.output
    assert fake_git.calls == [["commit", "--quiet", "-m", 'Fix "hero" sprite']]


def test_commit_rejects_empty_message(invoke, fake_git) -> None:
    result = invoke("commit", "   ")

    assert result.exit_code == 1
    assert fake_git.calls == []


def test_commit_failure_is_reported(invoke, fake_git) -> None:
    fake_git.set(["commit", "--quiet", "-m", "msg"], returncode=1, stderr="nothing to commit")

    result = invoke("commit", "msg")

    assert result.exit_code == 1
    assert "nothing to commit" in result.output


def test_pull_requires_committed_changes(invoke, fake_git) -> None:
    fake_git.set(["branch", "-vv"], BRANCH_BEHIND + "\n")
    fake_git.set(["status", "--porcelain", "--untracked-files"], " M Assets/tex.png\n")
    fake_git.set(["diff", "--name-only", "HEAD", "origin/main"], "Assets/tex.png\n")

    result = invoke("pull")

    assert result.exit_code == 1
    assert "commit local changes first" in result.output
    assert "merge" not in fake_git.subcommands


def test_pull_keeps_local_version(invoke, fake_git) -> None:
    fake_git.set(["branch", "-vv"], BRANCH_BEHIND + "\n")
    fake_git.set(["diff", "--name-only", "HEAD", "origin/main"], "Assets/tex.png\nAssets/mesh.fbx\n")

    result = invoke("pull", "--keep-local", "Assets/mesh.fbx")

    assert result.exit_code == 0
    assert "Pulled" in result.output
    assert "reverted" in result.output
    assert [
        "merge", "-s", "recursive", "-X", "theirs", "origin/main", "-m", "Overwrite Merge"
    ] in fake_git.calls
    assert ["checkout", "HEAD~1", "--", "Assets/mesh.fbx", "Assets/mesh.fbx.meta"] in fake_git.calls
    assert ["checkout", "HEAD~1", "--", "Assets/tex.png", "Assets/tex.png.meta"] not in fake_git.calls


def test_pull_without_upstream(invoke, fake_git) -> None:
    fake_git.set(["branch", "-vv"], "* main 1a2b3c4 Initial commit\n")

    result = invoke("pull")

    assert result.exit_code == 0
    assert "no upstream" in result.output
    assert "merge" not in fake_git.subcommands


def test_discard_with_yes(invoke, fake_git) -> None:
    result = invoke("discard", "Assets/a.png", "--yes")

    assert result.exit_code == 0
    assert "Discarded" in result.output
    assert ["checkout", "HEAD^", "--", "Assets/a.png", "Assets/a.png.meta"] in fake_git.calls
    assert ["reset", "--", "Assets/a.png", "Assets/a.png.meta"] in fake_git.calls


def test_discard_declined(invoke, fake_git) -> None:
    result = invoke("discard", "Assets/a.png", input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert fake_git.calls == []


def test_checkout_revision(invoke, fake_git) -> None:
    result = invoke("checkout", "Assets/a.png", "abc1234", "-y")

    assert result.exit_code == 0
    assert ["checkout", "abc1234", "--", "Assets/a.png", "Assets/a.png.meta"] in fake_git.calls


def test_log(invoke, fake_git) -> None:
    fake_git.set(
        ["log", "--pretty=format:%at|%s|%h|%an", "--abbrev-commit", "-n", "3", "--", "."],
        "1700000000|Add hero|abc1234|Dana\n",
    )

    result = invoke("log", "-n", "3")

    assert result.exit_code == 0
    assert "abc1234" in result.output
    assert "Add hero" in result.output
    assert "Dana" in result.output


def test_log_uses_configured_count(invoke, fake_git) -> None:
    result = invoke("log", "Assets")

    assert result.exit_code == 0
    assert "No history" in result.output
    assert fake_git.calls[0][4] == "10"


def test_files(invoke, fake_git) -> None:
    fake_git.set(["diff", "--name-only", "HEAD~", "HEAD"], "Assets/a.png\nREADME.md\n")

    result = invoke("files")

    assert result.exit_code == 0
    assert "Assets/a.png" in result.output
    assert "README.md" in result.output


def test_not_a_repository(tmp_path: Path, config_file, git_ready) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()

    result = runner.invoke(app, ["--config", str(config_file), "--repo", str(plain), "status"])

    assert result.exit_code == 1
    assert "Not a git repository" in result.output


def test_git_not_found(repo_dir, config_file, monkeypatch) -> None:
    monkeypatch.setattr("assetgit.git.repository.probe_git", lambda *args, **kwargs: ("", False))

    result = runner.invoke(app, ["--config", str(config_file), "--repo", str(repo_dir), "status"])

    assert result.exit_code == 1
    assert "Git not found" in result.output


def test_set_git_writes_chosen_config(invoke, config_file, tmp_path, monkeypatch) -> None:
    home_config = tmp_path / "home" / "config.yaml"
    monkeypatch.setattr("assetgit.config.CONFIG_FILE", home_config)

    result = invoke("set-git", "/opt/git/bin/git")

    assert result.exit_code == 0
    assert "git version 2.43.0" in result.output
    saved = yaml.safe_load(config_file.read_text())
    assert saved["git"]["executable"] == "/opt/git/bin/git"
    assert saved["git"]["timeout"] == 5
    assert not home_config.exists()


def test_set_git_rejects_bad_executable(repo_dir, config_file, monkeypatch) -> None:
    monkeypatch.setattr("assetgit.git.repository.probe_git", lambda *args, **kwargs: ("", False))
    save = MagicMock()
    monkeypatch.setattr("assetgit.git.repository.save_git_executable", save)

    result = runner.invoke(
        app, ["--config", str(config_file), "--repo", str(repo_dir), "set-git", "/bin/false"]
    )

    assert result.exit_code == 1
    save.assert_not_called()


def test_invalid_config(repo_dir, tmp_path, git_ready) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("git:\n  timeout: -5\n")

    result = runner.invoke(app, ["--config", str(bad), "--repo", str(repo_dir), "status"])

    assert result.exit_code == 1
    assert "git.timeout" in result.output
