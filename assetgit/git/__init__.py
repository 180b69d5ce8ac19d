"""Git integration for AssetGit.

This package wraps the ``git`` executable: it parses status, branch and
log output into records and runs the working-copy operations a front end
needs (stage, commit, push, pull, checkout, diff).
"""

from assetgit.git.models import (
    BranchState,
    ChangeRecord,
    ChangeStatus,
    LogRecord,
    RepositoryState,
)
from assetgit.git.repository import (
    PullResult,
    RepositoryClient,
    RepositoryHooks,
)
from assetgit.git.utils import (
    find_git_root,
    is_git_repository,
    parse_branch_info,
    parse_change_line,
    parse_log_line,
    parse_status_tag,
    probe_git,
    run_process,
    start_process,
)

__all__ = [
    # Main class
    "RepositoryClient",
    "RepositoryHooks",
    "PullResult",
    # Data classes
    "BranchState",
    "ChangeRecord",
    "ChangeStatus",
    "LogRecord",
    "RepositoryState",
    # Utility functions
    "find_git_root",
    "is_git_repository",
    "parse_branch_info",
    "parse_change_line",
    "parse_log_line",
    "parse_status_tag",
    "probe_git",
    "run_process",
    "start_process",
]
