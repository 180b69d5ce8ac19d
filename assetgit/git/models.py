"""Data classes describing git working-tree state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntFlag


class ChangeStatus(IntFlag):
    """Status bits derived from a two-character porcelain tag.

    Position 0 of the tag is the index (staged) state, position 1 the
    worktree (unstaged) state. Several bits may be set at once.
    """

    NONE = 0
    UNTRACKED = 1 << 0
    HAS_STAGED_CHANGES = 1 << 1
    HAS_UNSTAGED_CHANGES = 1 << 2
    DELETED = 1 << 3
    RENAMED = 1 << 4
    UNRESOLVED = 1 << 5
    IGNORED = 1 << 6


@dataclass
class ChangeRecord:
    """One path from a status, diff or name-only listing.

    Everything except ``discard_remote_on_pull`` and ``selected`` is fixed
    when the line is parsed; refreshes rebuild records rather than patch them.
    """

    path: str
    name: str
    status_tag: str = "  "
    status: ChangeStatus = ChangeStatus.NONE
    source_path: str = ""
    is_tracked_asset: bool = False
    is_sidecar: bool = False
    is_directory: bool = False
    sidecar_suffix: str = ".meta"
    discard_remote_on_pull: bool = False
    selected: bool = False

    def has_status(self, status: ChangeStatus) -> bool:
        """Check that every bit of ``status`` is set on this record."""
        return (self.status & status) == status

    @property
    def is_modified(self) -> bool:
        return "M" in self.status_tag

    @property
    def is_deleted(self) -> bool:
        return "D" in self.status_tag

    @property
    def lockstep_paths(self) -> list[str]:
        """Paths that must travel together through add/reset/checkout.

        A sidecar file drags its primary asset along, a tracked asset drags
        its sidecar along, anything else stands alone.
        """
        if self.is_sidecar:
            return [self.path, self.path[: -len(self.sidecar_suffix)]]
        if self.is_tracked_asset:
            return [self.path, f"{self.path}{self.sidecar_suffix}"]
        return [self.path]

    @property
    def quoted_paths(self) -> str:
        """Display form of :attr:`lockstep_paths`."""
        return " ".join(f'"{path}"' for path in self.lockstep_paths)


@dataclass(frozen=True)
class LogRecord:
    """One commit from the file history log."""

    date: datetime
    message: str
    short_hash: str
    author: str

    @property
    def timestamp(self) -> int:
        return int(self.date.timestamp())

    def one_line(self) -> str:
        """Get a one-line representation."""
        return f"{self.short_hash} {self.message} {self.date:%m-%d %H:%M} by {self.author}"


@dataclass
class BranchState:
    """Current branch and its relation to the upstream, from ``branch -vv``."""

    branch: str = ""
    last_commit_hash: str = ""
    info_line: str = ""
    upstream: str = ""
    remote: str = ""
    ahead: int = 0
    behind: int = 0

    def reset_tracking(self) -> None:
        """Clear everything derived from the upstream relation."""
        self.upstream = ""
        self.remote = ""
        self.ahead = 0
        self.behind = 0

    @property
    def has_upstream(self) -> bool:
        return bool(self.upstream and self.remote)

    def summary(self) -> str:
        """Get a summary string of the branch relation."""
        if not self.branch:
            return "No branch information"
        if not self.has_upstream:
            return f"On branch {self.branch} (no upstream)"

        tracking = []
        if self.ahead > 0:
            tracking.append(f"ahead {self.ahead}")
        if self.behind > 0:
            tracking.append(f"behind {self.behind}")
        if not tracking:
            return f"On branch {self.branch}, up to date with '{self.upstream}'"
        return f"On branch {self.branch}, {' and '.join(tracking)} of '{self.upstream}'"


@dataclass
class RepositoryState:
    """Everything a refresh derives, owned by one :class:`RepositoryClient`."""

    branch: BranchState = field(default_factory=BranchState)
    local_changes: list[ChangeRecord] = field(default_factory=list)
    local_pushing: list[ChangeRecord] = field(default_factory=list)
    remote_updates: list[ChangeRecord] = field(default_factory=list)
    local_remote_diff: list[ChangeRecord] = field(default_factory=list)

    def clear_remote(self) -> None:
        self.local_pushing.clear()
        self.remote_updates.clear()
        self.local_remote_diff.clear()

    @property
    def can_pull(self) -> bool:
        return len(self.remote_updates) > 0

    @property
    def can_push(self) -> bool:
        return self.branch.behind == 0 and len(self.local_pushing) > 0

    def find_local_change(self, path: str) -> ChangeRecord | None:
        for record in self.local_changes:
            if record.path == path:
                return record
        return None
