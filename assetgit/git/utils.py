"""Git utility functions for AssetGit.

Process launching plus pure parsers for the line-oriented output of
``git status --porcelain``, ``git log --pretty=format:...`` and
``git branch -vv``. The parsers never spawn anything and never raise on
malformed input; they return ``None`` so callers can skip the line.
"""

from __future__ import annotations

import logging
import re
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Sequence

from assetgit.errors import GitTimeoutError
from assetgit.git.models import BranchState, ChangeRecord, ChangeStatus, LogRecord

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"version \d+\.\d+")
BRANCH_PATTERN = re.compile(r"^\*\s*(\w+)\s+(\w+)\s*(.*)$")
UPSTREAM_PATTERN = re.compile(r"^\[([^:\]]+)([^\]]*)\]?")
AHEAD_PATTERN = re.compile(r"ahead\s+(\d+)")
BEHIND_PATTERN = re.compile(r"behind\s+(\d+)")

LOG_FORMAT = "%at|%s|%h|%an"
LOG_SEPARATOR = "|"
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Keeps a console window from flashing up on Windows; zero elsewhere.
_CREATION_FLAGS = getattr(subprocess, "CREATE_NO_WINDOW", 0)


def find_git_root(start_path: Path | str) -> Optional[Path]:
    """Find the root of a git repository.

    Walks up the directory tree from start_path looking for a .git entry.

    Args:
        start_path: Path to start searching from.

    Returns:
        Path to the repository root, or None if not in a git repository.
    """
    path = Path(start_path).resolve()

    for parent in [path] + list(path.parents):
        if (parent / ".git").exists():
            return parent

    return None


def is_git_repository(path: Path | str) -> bool:
    """Check if a path is inside a git repository."""
    return find_git_root(path) is not None


def start_process(
    executable: str,
    args: Sequence[str],
    cwd: Path | str | None = None,
) -> Optional[subprocess.Popen]:
    """Launch a process without waiting for it.

    Standard output and standard error are pipes the caller drains. Used
    where output is streamed somewhere other than memory.

    Returns:
        The running process, or None if it could not be spawned.
    """
    cmd = [executable, *args]
    logger.debug("Starting process: %s", " ".join(cmd))

    try:
        return subprocess.Popen(
            cmd,
            cwd=str(cwd) if cwd else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            creationflags=_CREATION_FLAGS,
        )
    except OSError:
        logger.exception("Could not start %s", executable)
        return None


def run_process(
    executable: str,
    args: Sequence[str],
    cwd: Path | str | None = None,
    timeout: Optional[float] = None,
) -> Optional[subprocess.CompletedProcess]:
    """Run a process to completion and capture its output as text.

    Args:
        executable: Program to run.
        args: Arguments, not including the executable.
        cwd: Working directory for the command.
        timeout: Seconds to wait before giving up, or None to wait forever.

    Returns:
        CompletedProcess with stdout/stderr, or None if the executable
        could not be spawned (missing, not executable, ...).

    Raises:
        GitTimeoutError: If the process outlives ``timeout``.
    """
    cmd = [executable, *args]
    logger.debug("Running command: %s", " ".join(cmd))

    try:
        return subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            creationflags=_CREATION_FLAGS,
        )
    except subprocess.TimeoutExpired:
        raise GitTimeoutError(list(args), timeout or 0.0)
    except OSError:
        logger.exception("Could not run %s", executable)
        return None


def probe_git(
    executable: str,
    cwd: Path | str | None = None,
    timeout: Optional[float] = None,
) -> tuple[str, bool]:
    """Check that ``executable`` is a working git.

    Returns:
        Tuple of (version line, ready). The version is empty and ready is
        False when no output line looks like ``version <major>.<minor>``.
    """
    try:
        result = run_process(executable, ["--version"], cwd=cwd, timeout=timeout)
    except GitTimeoutError as e:
        logger.warning("Git probe failed: %s", e)
        return "", False

    if result is None:
        return "", False

    for line in result.stdout.splitlines():
        if VERSION_PATTERN.search(line):
            return line.strip(), True

    logger.warning("No git version found in output of '%s --version'", executable)
    return "", False


def parse_status_tag(tag: str) -> ChangeStatus:
    """Derive status flags from a two-character porcelain tag.

    The first matching rule decides the index-side flags; the worktree
    flag is checked independently.
    """
    status = ChangeStatus.NONE
    index, worktree = tag[0], tag[1]

    if "U" in tag or tag in ("AA", "DD"):
        status |= ChangeStatus.UNRESOLVED
    elif index == "!":
        status |= ChangeStatus.IGNORED
    elif index == "?":
        status |= ChangeStatus.UNTRACKED
    elif index == "R":
        status |= ChangeStatus.HAS_STAGED_CHANGES | ChangeStatus.RENAMED
    elif index == "D":
        status |= ChangeStatus.HAS_STAGED_CHANGES | ChangeStatus.DELETED
    elif index != " ":
        status |= ChangeStatus.HAS_STAGED_CHANGES

    if worktree not in (" ", "!"):
        status |= ChangeStatus.HAS_UNSTAGED_CHANGES

    return status


def parse_change_line(
    line: str,
    name_only: bool = False,
    asset_root: str = "Assets",
    sidecar_suffix: str = ".meta",
) -> Optional[ChangeRecord]:
    """Parse one line of porcelain status (or a bare path) into a record.

    Args:
        line: ``XY path`` porcelain line, or just a path when ``name_only``.
        name_only: Treat the whole line as a path with a blank status tag.
        asset_root: Prefix marking paths whose sidecar files travel with them.
        sidecar_suffix: Extension of sidecar files.

    Returns:
        ChangeRecord, or None for short lines and ``#`` header lines.
    """
    line = line.rstrip("\r\n")
    if len(line) < 4 or line.startswith("#"):
        return None

    if name_only:
        tag = "  "
        path = line
    else:
        tag = line[:2]
        path = line[3:]

    source_path = ""
    if path.find("->") > 0:
        parts = path.split("->")
        source_path = parts[0].replace('"', "").strip()
        path = parts[-1]

    path = path.replace('"', "").strip()

    segments = path.split("/")
    is_directory = path.endswith("/")
    if is_directory:
        path = path[:-1]
        name = segments[-2]
    else:
        name = segments[-1]

    return ChangeRecord(
        path=path,
        name=name,
        status_tag=tag,
        status=ChangeStatus.NONE if name_only else parse_status_tag(tag),
        source_path=source_path,
        is_tracked_asset=path.startswith(asset_root),
        is_sidecar=path.endswith(sidecar_suffix),
        is_directory=is_directory,
        sidecar_suffix=sidecar_suffix,
    )


def parse_log_line(line: str, sep: str = LOG_SEPARATOR) -> Optional[LogRecord]:
    """Parse one ``%at|%s|%h|%an`` log line.

    Returns:
        LogRecord with the date in local time, or None unless the line has
        exactly four fields and a numeric timestamp.
    """
    parts = line.rstrip("\r\n").split(sep)
    if len(parts) != 4:
        return None

    try:
        seconds = int(parts[0])
    except ValueError:
        return None

    return LogRecord(
        date=(UNIX_EPOCH + timedelta(seconds=seconds)).astimezone(),
        message=parts[1],
        short_hash=parts[2],
        author=parts[3],
    )


def parse_branch_info(line: str) -> Optional[BranchState]:
    """Parse the current-branch line of ``git branch -vv``.

    Example input::

        * main a1b2c3d [origin/main: ahead 2, behind 1] Commit subject

    Ahead/behind counts are read from the bracketed tracking text only, so
    a subject such as "Move ahead 3 steps" never counts as tracking info.

    Returns:
        BranchState, or None if the line does not look like a branch line.
    """
    match = BRANCH_PATTERN.match(line.rstrip("\r\n"))
    if not match:
        return None

    state = BranchState(
        branch=match.group(1),
        last_commit_hash=match.group(2),
        info_line=line.rstrip("\r\n"),
    )

    relations = match.group(3)
    upstream = UPSTREAM_PATTERN.match(relations)
    if not upstream:
        return state

    state.upstream = upstream.group(1).strip()
    if "/" in state.upstream:
        state.remote = state.upstream.split("/", 1)[0]

    # Only the bracketed part; the commit subject after it is free text.
    tracking = upstream.group(0)

    behind = BEHIND_PATTERN.search(tracking)
    if behind:
        state.behind = int(behind.group(1))

    ahead = AHEAD_PATTERN.search(tracking)
    if ahead:
        state.ahead = int(ahead.group(1))

    return state
