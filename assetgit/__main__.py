"""Entry point for running AssetGit as a module."""

from assetgit.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
