"""AssetGit - a git working-copy client that keeps asset sidecar files in step."""

__version__ = "0.1.0"
