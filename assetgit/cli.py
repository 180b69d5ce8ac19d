"""CLI entry point for AssetGit."""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.status import Status
from rich.table import Table

from assetgit import __version__
from assetgit.config import create_default_config, get_settings, load_settings
from assetgit.errors import AssetGitError, NotARepositoryError
from assetgit.git import ChangeRecord, ChangeStatus, RepositoryClient, RepositoryHooks, find_git_root
from assetgit.utils import setup_logging

app = typer.Typer(
    name="assetgit",
    help="Git working-copy client that keeps asset sidecar files in step",
    add_completion=True,
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)

FLAG_LABELS = [
    (ChangeStatus.UNRESOLVED, "[red]unresolved[/red]"),
    (ChangeStatus.UNTRACKED, "[magenta]untracked[/magenta]"),
    (ChangeStatus.IGNORED, "[dim]ignored[/dim]"),
    (ChangeStatus.RENAMED, "[blue]renamed[/blue]"),
    (ChangeStatus.DELETED, "[red]deleted[/red]"),
    (ChangeStatus.HAS_STAGED_CHANGES, "[green]staged[/green]"),
    (ChangeStatus.HAS_UNSTAGED_CHANGES, "[yellow]unstaged[/yellow]"),
]


class ConsoleProgress:
    """Spinner shown while long git operations run."""

    def __init__(self, console: Console):
        self.console = console
        self._status: Optional[Status] = None

    def show(self, title: str, message: str) -> None:
        self.clear()
        self._status = self.console.status(f"{title}: {message}")
        self._status.start()

    def clear(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]AssetGit[/bold] version {__version__}")
        raise typer.Exit()


def run_diff_tool(template: Optional[str]):
    """Build a diff hook that spawns the configured external tool."""

    def invoke(revision: str, left: str, right: str, left_label: str, right_label: str) -> None:
        if not template:
            console.print(
                f"[yellow]No diff tool configured.[/yellow] {left_label} saved to {left}"
            )
            return
        command = [part.format(left=left, right=right) for part in shlex.split(template)]
        logger.debug("Starting diff tool: %s", " ".join(command))
        try:
            subprocess.Popen(command)
        except OSError as e:
            console.print(f"[red]Could not start diff tool: {e}[/red]")

    return invoke


def _confirm(assume_yes: bool):
    def confirm(title: str, message: str) -> bool:
        if assume_yes:
            return True
        return typer.confirm(f"{title} {message}", default=False)

    return confirm


def _client(ctx: typer.Context, assume_yes: bool = False) -> RepositoryClient:
    """Create a client for the repository selected on the command line."""
    settings = get_settings()
    progress = ConsoleProgress(console)
    hooks = RepositoryHooks(
        diff_tool=run_diff_tool(settings.diff_tool),
        show_progress=progress.show,
        clear_progress=progress.clear,
        confirm=_confirm(assume_yes),
        warn=lambda message: console.print(Panel(escape(message), title="Warning", border_style="yellow")),
    )

    repo_path = ctx.obj.get("repo") or Path.cwd()
    try:
        root = _find_root(repo_path)
        client = RepositoryClient.from_settings(root, settings, hooks=hooks)
    except AssetGitError as e:
        _fail(e)

    if not client.is_ready:
        console.print(
            f"[red]Git not found at '{escape(client.executable)}'.[/red] "
            "Use 'assetgit set-git PATH' to point at a git executable."
        )
        raise typer.Exit(1)
    return client


def _fail(error: Exception) -> NoReturn:
    """Report an error and exit with status 1."""
    console.print(f"[red]{escape(str(error))}[/red]")
    raise typer.Exit(1)


def _find_root(start: Path) -> Path:
    root = find_git_root(start)
    if root is None:
        raise NotARepositoryError(str(start))
    return root


def _flags(record: ChangeRecord) -> str:
    labels = [label for flag, label in FLAG_LABELS if record.status & flag]
    return " ".join(labels) or "-"


def _print_records(title: str, records: list[ChangeRecord], show_status: bool = True) -> None:
    if not records:
        console.print(f"[dim]{title}: none[/dim]")
        return

    table = Table(title=title)
    if show_status:
        table.add_column("XY", style="cyan", no_wrap=True)
    table.add_column("Path", style="green")
    if show_status:
        table.add_column("Status")

    for record in records:
        path = record.path
        if record.source_path:
            path = f"{record.source_path} -> {record.path}"
        if show_status:
            table.add_row(record.status_tag.replace(" ", "."), escape(path), _flags(record))
        else:
            table.add_row(escape(path))

    console.print(table)


def _select(records: list[ChangeRecord], paths: list[str]) -> int:
    wanted = set(paths)
    count = 0
    for record in records:
        record.selected = record.path in wanted
        count += record.selected
    return count


@app.callback()
def main(
    ctx: typer.Context,
    repo: Optional[Path] = typer.Option(
        None,
        "--repo",
        "-C",
        help="Repository to operate on (default: current directory)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every git command",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """AssetGit - git for projects whose assets carry sidecar files."""
    try:
        if config:
            settings = load_settings(config_path=config, force_reload=True)
        else:
            create_default_config()
            settings = get_settings()
    except AssetGitError as e:
        _fail(e)

    setup_logging(verbose=verbose, log_file=settings.resolved_log_file)
    ctx.obj = {"repo": repo, "config": config}


@app.command()
def status(
    ctx: typer.Context,
    remote: bool = typer.Option(False, "--remote", "-r", help="Fetch and compare with the upstream"),
) -> None:
    """Show branch, local changes and, with --remote, incoming/outgoing files."""
    client = _client(ctx)
    try:
        client.refresh_status(include_remote=remote)
    except AssetGitError as e:
        _fail(e)

    state = client.state
    console.print(f"[bold]{state.branch.summary()}[/bold]")
    _print_records("Local changes", state.local_changes)

    if remote:
        _print_records("Remote updates", state.remote_updates, show_status=False)
        _print_records("Pushing files", state.local_pushing, show_status=False)
        if state.can_pull:
            console.print("[yellow]Run 'assetgit pull' to update.[/yellow]")
        elif state.can_push:
            console.print("[green]Run 'assetgit push' to publish.[/green]")


@app.command()
def log(
    ctx: typer.Context,
    path: str = typer.Argument(".", help="Path whose history to show"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Number of commits"),
) -> None:
    """Show the commit history of a path."""
    client = _client(ctx)
    count = count or get_settings().log.default_count

    try:
        logs = client.commit_log(path, count)
    except AssetGitError as e:
        _fail(e)

    if not logs:
        console.print(f"[dim]No history for '{path}'[/dim]")
        return

    table = Table(title=f"History of {path}")
    table.add_column("Commit", style="cyan", no_wrap=True)
    table.add_column("Message", style="green")
    table.add_column("Date", style="yellow", no_wrap=True)
    table.add_column("Author", style="blue")

    for entry in logs:
        table.add_row(entry.short_hash, escape(entry.message), f"{entry.date:%m-%d %H:%M}", escape(entry.author))

    console.print(table)


@app.command()
def files(
    ctx: typer.Context,
    revision: str = typer.Argument("HEAD", help="Commit to inspect"),
) -> None:
    """List the files a commit changed."""
    client = _client(ctx)
    try:
        records = client.head_files(revision)
    except AssetGitError as e:
        _fail(e)
    _print_records(f"Files in {revision}", records, show_status=False)


@app.command()
def stage(
    ctx: typer.Context,
    paths: Optional[List[str]] = typer.Argument(None, help="Paths to stage (default: everything)"),
) -> None:
    """Stage paths together with their sidecar files."""
    client = _client(ctx)
    try:
        if not paths:
            client.stage()
            console.print("[green]Staged all changes[/green]")
            return

        client.refresh_status()
        selected = _select(client.state.local_changes, paths)
        if client.stage_selected():
            console.print(f"[green]Staged {selected} path(s)[/green]")
        else:
            console.print("[dim]Nothing to stage[/dim]")
    except AssetGitError as e:
        _fail(e)


@app.command()
def unstage(
    ctx: typer.Context,
    paths: Optional[List[str]] = typer.Argument(None, help="Paths to unstage (default: everything)"),
) -> None:
    """Unstage paths together with their sidecar files."""
    client = _client(ctx)
    try:
        if not paths:
            client.unstage()
            console.print("[green]Unstaged all changes[/green]")
            return

        client.refresh_status()
        selected = _select(client.state.local_changes, paths)
        if client.unstage_selected():
            console.print(f"[green]Unstaged {selected} path(s)[/green]")
        else:
            console.print("[dim]Nothing to unstage[/dim]")
    except AssetGitError as e:
        _fail(e)


@app.command()
def commit(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Commit message"),
) -> None:
    """Commit staged changes."""
    if not message.strip():
        console.print("[red]Commit message cannot be empty[/red]")
        raise typer.Exit(1)

    client = _client(ctx)
    try:
        client.commit(message)
    except AssetGitError as e:
        _fail(e)
    console.print("[green]Committed[/green]")


@app.command()
def push(ctx: typer.Context) -> None:
    """Push committed changes to the upstream."""
    client = _client(ctx)
    try:
        client.push()
    except AssetGitError as e:
        _fail(e)
    console.print("[green]Pushed[/green]")


@app.command()
def pull(
    ctx: typer.Context,
    keep_local: Optional[List[str]] = typer.Option(
        None,
        "--keep-local",
        "-k",
        help="Incoming path to revert to the local version after merging",
    ),
) -> None:
    """Merge the upstream, preferring remote content."""
    client = _client(ctx)
    try:
        client.refresh_status(include_remote=True)
        keep = set(keep_local or [])
        for record in client.state.remote_updates:
            record.discard_remote_on_pull = record.path in keep

        result = client.pull()
    except AssetGitError as e:
        _fail(e)

    if result.merged:
        console.print("[green]Pulled[/green]")
    else:
        console.print("[dim]Nothing to pull (no upstream)[/dim]")


@app.command()
def checkout(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to restore"),
    revision: str = typer.Argument(..., help="Commit to restore it from"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Restore a path and its sidecar from a commit."""
    client = _client(ctx, assume_yes=yes)
    try:
        done = client.checkout(path, revision)
    except AssetGitError as e:
        _fail(e)

    if done:
        console.print(f"[green]Checked out {path} at {revision}[/green]")
    else:
        console.print("[dim]Cancelled[/dim]")


@app.command()
def discard(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path whose changes to throw away"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Throw away local changes to a path and its sidecar."""
    client = _client(ctx, assume_yes=yes)
    try:
        done = client.discard(path)
    except AssetGitError as e:
        _fail(e)

    if done:
        console.print(f"[green]Discarded changes to {path}[/green]")
    else:
        console.print("[dim]Cancelled[/dim]")


@app.command()
def diff(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to compare"),
    revision: str = typer.Option("HEAD", "--rev", "-r", help="Commit to compare against"),
) -> None:
    """Open the configured diff tool on a path versus a commit."""
    client = _client(ctx)
    try:
        client.invoke_external_diff(path, revision)
    except AssetGitError as e:
        _fail(e)


@app.command("set-git")
def set_git(
    ctx: typer.Context,
    executable: str = typer.Argument(..., help="Path to the git executable"),
) -> None:
    """Use and remember another git executable."""
    repo_path = ctx.obj.get("repo") or Path.cwd()
    try:
        client = RepositoryClient.from_settings(_find_root(repo_path), get_settings(), probe=False)
    except AssetGitError as e:
        _fail(e)

    if client.set_executable_path(executable, config_path=ctx.obj.get("config")):
        console.print(f"[green]Using {client.version}[/green]")
    else:
        console.print(f"[red]'{executable}' does not look like git[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
