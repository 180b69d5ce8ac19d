"""Pytest configuration and fixtures for AssetGit tests."""

import os
import subprocess
from pathlib import Path
from typing import Generator, Optional

import pytest

from assetgit.config import reset_settings
from assetgit.git import RepositoryClient, RepositoryHooks


class FakeGit:
    """Stand-in for ``run_process`` that answers from a canned table.

    Unknown commands succeed with empty output. Every call is recorded.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.outputs: dict[tuple[str, ...], tuple[str, int, str]] = {}

    def set(self, args: list[str], stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self.outputs[tuple(args)] = (stdout, returncode, stderr)

    def __call__(
        self,
        executable: str,
        args: list[str],
        cwd: Path | str | None = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        self.calls.append(list(args))
        stdout, returncode, stderr = self.outputs.get(tuple(args), ("", 0, ""))
        return subprocess.CompletedProcess([executable, *args], returncode, stdout, stderr)

    @property
    def subcommands(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture(autouse=True)
def clean_settings() -> Generator[None, None, None]:
    """Keep the settings singleton and ASSETGIT_ variables out of tests."""
    original = {k: os.environ.pop(k) for k in list(os.environ) if k.startswith("ASSETGIT_")}
    reset_settings()

    yield

    reset_settings()
    for key in [k for k in os.environ if k.startswith("ASSETGIT_")]:
        del os.environ[key]
    os.environ.update(original)


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Create a directory that looks like a git working copy."""
    (tmp_path / ".git").mkdir()
    return tmp_path


@pytest.fixture
def fake_git(monkeypatch: pytest.MonkeyPatch) -> FakeGit:
    """Route every git command the client runs through a FakeGit."""
    fake = FakeGit()
    monkeypatch.setattr("assetgit.git.repository.run_process", fake)
    return fake


@pytest.fixture
def hooks() -> RepositoryHooks:
    return RepositoryHooks()


@pytest.fixture
def client(repo_dir: Path, fake_git: FakeGit, hooks: RepositoryHooks) -> RepositoryClient:
    """A ready client whose git commands go to ``fake_git``."""
    client = RepositoryClient(repo_dir, hooks=hooks, probe=False)
    client.is_ready = True
    client.version = "git version 2.43.0"
    return client
