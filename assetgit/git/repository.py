"""Git working-copy operations for AssetGit."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from assetgit.config import save_git_executable
from assetgit.errors import GitCommandError, GitTimeoutError, NotARepositoryError, PullPreconditionError
from assetgit.git.models import ChangeRecord, ChangeStatus, LogRecord, RepositoryState
from assetgit.git.utils import (
    LOG_FORMAT,
    find_git_root,
    parse_branch_info,
    parse_change_line,
    parse_log_line,
    probe_git,
    run_process,
    start_process,
)

logger = logging.getLogger(__name__)

__all__ = [
    "RepositoryClient",
    "RepositoryHooks",
    "PullResult",
    "DiffToolCallback",
]

# (revision, left_file, right_file, left_label, right_label)
DiffToolCallback = Callable[[str, str, str, str, str], None]


def _noop(*args, **kwargs) -> None:
    return None


def _approve(title: str, message: str) -> bool:
    return True


@dataclass
class RepositoryHooks:
    """Calls out to whatever front end drives the client.

    Every hook has a harmless default so the client also works headless.
    """

    rescan_assets: Callable[[], None] = _noop
    diff_tool: Optional[DiffToolCallback] = None
    show_progress: Callable[[str, str], None] = _noop
    clear_progress: Callable[[], None] = _noop
    confirm: Callable[[str, str], bool] = _approve
    warn: Callable[[str], None] = _noop


@dataclass
class PullResult:
    """Outcome of :meth:`RepositoryClient.pull`."""

    merged: bool = False
    reverted: list[ChangeRecord] = field(default_factory=list)
    warning: str = ""


class RepositoryClient:
    """A git working copy and everything the last refresh learned about it.

    Each instance owns its state; nothing is shared between instances.
    Mutating operations do not refresh on their own, so callers can batch
    several of them and refresh once.
    """

    def __init__(
        self,
        path: Path | str,
        executable: str = "git",
        asset_root: str = "Assets",
        sidecar_suffix: str = ".meta",
        timeout: Optional[float] = 120.0,
        hooks: Optional[RepositoryHooks] = None,
        probe: bool = True,
    ):
        """Initialize a RepositoryClient.

        Args:
            path: Path to the repository root.
            executable: Git executable, resolved through PATH if bare.
            asset_root: Prefix of paths that carry sidecar files.
            sidecar_suffix: Extension of sidecar files.
            timeout: Seconds before a single git invocation is abandoned.
            hooks: Front-end callbacks.
            probe: Check the executable immediately.
        """
        self.path = Path(path).resolve()
        if not (self.path / ".git").exists():
            raise NotARepositoryError(str(self.path))

        self.executable = executable
        self.asset_root = asset_root
        self.sidecar_suffix = sidecar_suffix
        self.timeout = timeout
        self.hooks = hooks or RepositoryHooks()
        self.state = RepositoryState()
        self.version = ""
        self.is_ready = False
        self._refresh_lock = threading.Lock()

        if probe:
            self.probe()

    @classmethod
    def find(cls, start_path: Path | str, **kwargs) -> Optional["RepositoryClient"]:
        """Find a repository from a starting path.

        Returns:
            RepositoryClient instance, or None if not found.
        """
        root = find_git_root(start_path)
        if root:
            return cls(root, **kwargs)
        return None

    @classmethod
    def from_settings(cls, path: Path | str, settings, **kwargs) -> "RepositoryClient":
        """Create a client configured from a :class:`~assetgit.config.Settings`."""
        return cls(
            path,
            executable=settings.git.executable,
            asset_root=settings.assets.root,
            sidecar_suffix=settings.assets.sidecar_suffix,
            timeout=settings.git.timeout,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def probe(self) -> bool:
        """Check the configured executable and record its version."""
        self.version, self.is_ready = probe_git(self.executable, cwd=self.path, timeout=self.timeout)
        if self.is_ready:
            logger.debug("Using %s (%s)", self.executable, self.version)
        else:
            logger.warning("Git is not available at '%s'", self.executable)
        return self.is_ready

    def set_executable_path(
        self,
        executable: str,
        persist: bool = True,
        config_path: Optional[Path] = None,
    ) -> bool:
        """Switch to another git executable.

        The path is saved to ``config_path`` (default: the user config) only
        when it turned out to be a working git.
        """
        self.executable = executable
        self.probe()
        if persist and self.version:
            save_git_executable(executable, config_path=config_path)
        return self.is_ready

    # ------------------------------------------------------------------
    # Process plumbing
    # ------------------------------------------------------------------

    def _run(self, args: list[str], check: bool = True) -> Optional[subprocess.CompletedProcess]:
        """Run a git command in this repository.

        Returns:
            The finished process, or None while git is not ready or could
            not be started.

        Raises:
            GitCommandError: If ``check`` and git exited non-zero.
            GitTimeoutError: If git ran longer than the timeout.
        """
        if not self.is_ready:
            return None

        result = run_process(self.executable, args, cwd=self.path, timeout=self.timeout)
        if result is None:
            return None

        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result

    def _lines(self, args: list[str]) -> list[str]:
        result = self._run(args)
        if result is None:
            return []
        return result.stdout.splitlines()

    def _parse(self, line: str, name_only: bool = False) -> Optional[ChangeRecord]:
        return parse_change_line(
            line,
            name_only=name_only,
            asset_root=self.asset_root,
            sidecar_suffix=self.sidecar_suffix,
        )

    def _name_only_records(self, args: list[str]) -> list[ChangeRecord]:
        records = []
        for line in self._lines(args):
            record = self._parse(line, name_only=True)
            if record is not None:
                records.append(record)
        return records

    @contextmanager
    def _progress(self, title: str, message: str) -> Iterator[None]:
        self.hooks.show_progress(title, message)
        try:
            yield
        finally:
            self.hooks.clear_progress()

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh_status(self, include_remote: bool = False) -> bool:
        """Rebuild branch info and every change collection.

        Args:
            include_remote: Also fetch and compute the remote diff sets.

        Returns:
            False if git is not ready or another refresh is still running.
        """
        if not self.is_ready:
            return False

        if not self._refresh_lock.acquire(blocking=False):
            logger.warning("Refresh already in progress; skipping")
            return False

        try:
            self.state.local_changes.clear()
            self.state.clear_remote()
            self._update_branch_info()
            self._check_local_changes()
            if include_remote:
                self._check_remote_diffs()
        finally:
            self._refresh_lock.release()

        return True

    def _update_branch_info(self) -> None:
        branch = self.state.branch
        branch.reset_tracking()

        for line in self._lines(["branch", "-vv"]):
            if not line.startswith("*"):
                continue
            parsed = parse_branch_info(line)
            if parsed is None:
                logger.debug("Unrecognized branch line: %s", line)
                continue
            self.state.branch = parsed

    def _check_local_changes(self) -> None:
        for line in self._lines(["status", "--porcelain", "--untracked-files"]):
            record = self._parse(line)
            if record is not None:
                self.state.local_changes.append(record)

    def _check_remote_diffs(self) -> None:
        branch = self.state.branch
        if not branch.has_upstream:
            return

        with self._progress("Hold on", "Refreshing status"):
            self._run(["fetch", branch.remote])
            self.hooks.rescan_assets()

            self.state.local_remote_diff.extend(
                self._name_only_records(["diff", "--name-only", branch.branch, branch.upstream])
            )

            if branch.ahead > 0:
                self.state.local_pushing.extend(
                    self._name_only_records(["diff", "--name-only", f"HEAD~{branch.ahead}", branch.branch])
                )

            if branch.behind > 0:
                base = f"HEAD~{branch.ahead}" if branch.ahead > 0 else "HEAD"
                self.state.remote_updates.extend(
                    self._name_only_records(["diff", "--name-only", base, branch.upstream])
                )

    # ------------------------------------------------------------------
    # Index operations
    # ------------------------------------------------------------------

    def stage(self, record: Optional[ChangeRecord] = None) -> None:
        """Stage one record (with its sidecar) or, without a record, everything."""
        paths = record.lockstep_paths if record is not None else ["."]
        self._run(["add", *paths])

    def stage_selected(self) -> bool:
        """Stage every selected local change that has unstaged changes.

        Returns:
            True if anything was staged.
        """
        staged = False
        for record in self.state.local_changes:
            if record.selected and record.has_status(ChangeStatus.HAS_UNSTAGED_CHANGES):
                self.stage(record)
                staged = True
        return staged

    def unstage(self, record: Optional[ChangeRecord] = None) -> None:
        """Unstage one record (with its sidecar) or, without a record, everything.

        Unstaging a rename also unstages the deletion of the original path.
        """
        if record is None:
            self._run(["reset", "."])
            return

        self._run(["reset", "--", *record.lockstep_paths])

        if record.has_status(ChangeStatus.RENAMED):
            deleted = self._parse(record.source_path, name_only=True)
            if deleted is not None:
                self._run(["reset", "--", *deleted.lockstep_paths])

    def unstage_selected(self) -> bool:
        """Unstage every selected local change that has staged changes.

        Returns:
            True if anything was unstaged.
        """
        unstaged = False
        for record in self.state.local_changes:
            if record.selected and record.has_status(ChangeStatus.HAS_STAGED_CHANGES):
                self.unstage(record)
                unstaged = True
        return unstaged

    # ------------------------------------------------------------------
    # Working tree operations
    # ------------------------------------------------------------------

    def checkout(self, target: Union[ChangeRecord, str], revision: str) -> bool:
        """Restore a path (and its sidecar) from ``revision``.

        The restored paths are also unstaged, and the front end is asked to
        rescan its assets.

        Returns:
            False when nothing was checked out.
        """
        if not self.is_ready:
            return False

        record = self._parse(target, name_only=True) if isinstance(target, str) else target
        if record is None:
            logger.warning("Cannot check out '%s': not a usable path", target)
            return False

        if not self.hooks.confirm(
            "Checkout entry?",
            f"Replace {record.path} with its version at {revision}?",
        ):
            return False

        self._run(["checkout", revision, "--", *record.lockstep_paths])
        self.unstage(record)
        self.hooks.rescan_assets()
        return True

    def discard(self, target: Union[ChangeRecord, str]) -> bool:
        """Throw away local changes to a path."""
        return self.checkout(target, "HEAD^")

    def commit(self, message: str) -> None:
        """Commit the index quietly."""
        self._run(["commit", "--quiet", "-m", message])

    def push(self) -> None:
        self._run(["push", "--quiet"])

    def pull(self) -> PullResult:
        """Merge the upstream, preferring remote content on conflicts.

        Remote updates flagged ``discard_remote_on_pull`` are reverted to the
        pre-merge local version afterwards. Those reverts are left
        uncommitted and reported through the ``warn`` hook.

        Raises:
            PullPreconditionError: If a remote update touches a path that
                still has local changes. Nothing has run at that point.
        """
        conflicts = [
            record.path
            for record in self.state.remote_updates
            if self.state.find_local_change(record.path) is not None
        ]
        if conflicts:
            logger.error("Please commit local changes first: %s", ", ".join(conflicts))
            raise PullPreconditionError(conflicts)

        result = PullResult()
        branch = self.state.branch
        if not self.is_ready or not branch.upstream:
            return result

        reverts = [record for record in self.state.remote_updates if record.discard_remote_on_pull]

        with self._progress("Hold on", "Updating..."):
            merge = ["merge", "-s", "recursive", "-X", "theirs", branch.upstream, "-m", "Overwrite Merge"]
            result.merged = self._run(merge) is not None
            if not result.merged:
                return result

            for record in reverts:
                logger.info("Discard remote: %s", record.quoted_paths)
                self._run(["checkout", "HEAD~1", "--", *record.lockstep_paths])
                result.reverted.append(record)

            self.hooks.rescan_assets()

        if result.reverted:
            result.warning = (
                f"Pulled, but {len(result.reverted)} file(s) were reverted from remote "
                "and are not committed."
            )
            logger.warning(result.warning)
            self.hooks.warn(result.warning)

        return result

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def invoke_external_diff(self, path: str, revision: str = "HEAD") -> Optional[Path]:
        """Hand ``path`` at ``revision`` and the working copy to the diff tool.

        The old content is written to a temporary file with the same
        extension so the tool can pick a viewer.

        Returns:
            The temporary file, or None while git is not ready.
        """
        if not self.is_ready:
            return None

        args = ["show", f"{revision}:{path}"]
        proc = start_process(self.executable, args, cwd=self.path)
        if proc is None:
            return None

        try:
            content, stderr = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            raise GitTimeoutError(args, self.timeout or 0.0)

        if proc.returncode != 0:
            raise GitCommandError(args, proc.returncode, stderr.decode("utf-8", errors="replace"))

        # Only a complete blob reaches disk
        fd, temp_name = tempfile.mkstemp(prefix="assetgit-", suffix=Path(path).suffix)
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(content)
        except OSError:
            os.unlink(temp_name)
            raise

        if self.hooks.diff_tool is not None:
            self.hooks.diff_tool(
                revision,
                temp_name,
                str(self.path / path),
                f"{path} @ {revision}",
                path,
            )
        return Path(temp_name)

    def head_files(self, revision: str = "") -> list[ChangeRecord]:
        """List the paths a commit touched, compared with its first parent."""
        revision = revision or "HEAD"
        return self._name_only_records(["diff", "--name-only", f"{revision}~", revision])

    def commit_log(self, path: str = ".", count: int = 10) -> list[LogRecord]:
        """Get up to ``count`` commits that touched ``path``, newest first."""
        args = [
            "log",
            f"--pretty=format:{LOG_FORMAT}",
            "--abbrev-commit",
            "-n",
            str(count),
            "--",
            path,
        ]

        logs = []
        for line in self._lines(args):
            parsed = parse_log_line(line)
            if parsed is not None:
                logs.append(parsed)
        return logs
