"""Centralized exception hierarchy for AssetGit.

This module defines all custom exceptions used throughout the AssetGit
package, organized in a hierarchy for easy handling and specificity.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class AssetGitError(Exception):
    """Base exception for all AssetGit errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(AssetGitError):
    """Raised when there's a configuration problem."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# Git Errors
# =============================================================================

class GitError(AssetGitError):
    """Raised when a git operation fails."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        details = {}
        if returncode is not None:
            details["returncode"] = returncode
        if stderr:
            details["stderr"] = stderr[:500]  # Truncate for safety
        super().__init__(message, "GIT_ERROR", details)
        self.returncode = returncode
        self.stderr = stderr


class GitCommandError(GitError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        command = " ".join(args)
        reason = stderr.strip() or f"exit code {returncode}"
        super().__init__(
            message=f"git {command} failed: {reason}",
            returncode=returncode,
            stderr=stderr,
        )
        self.code = "GIT_COMMAND_FAILED"
        self.details["command"] = command
        self.args_list = list(args)


class GitTimeoutError(GitError):
    """Raised when a git command runs longer than the configured timeout."""

    def __init__(self, args: Sequence[str], timeout: float):
        command = " ".join(args)
        super().__init__(message=f"git {command} timed out after {timeout}s")
        self.code = "GIT_TIMEOUT"
        self.details["command"] = command
        self.details["timeout_seconds"] = timeout
        self.timeout = timeout


class NotARepositoryError(GitError):
    """Raised when path is not a git repository."""

    def __init__(self, path: str):
        super().__init__(
            message=f"Not a git repository: {path}",
        )
        self.details["path"] = path
        self.code = "NOT_A_REPOSITORY"


class PullPreconditionError(GitError):
    """Raised when a pull would overwrite paths that still have local changes."""

    def __init__(self, paths: Sequence[str]):
        super().__init__(message="Please commit local changes first.")
        self.code = "COMMIT_LOCAL_CHANGES_FIRST"
        self.details["paths"] = list(paths)
        self.paths = list(paths)
