"""CLI application for RepoTracker."""

import asyncio
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from repotracker.config import EmptyRevisionPolicy, TrackerConfig
from repotracker.errors import QueryInputError, TrackerError
from repotracker.log import setup_logging
from repotracker.models import RunSummary
from repotracker.orchestrate import Orchestrator
from repotracker.query import parse_query

console = Console()


def read_input(file_path: str) -> str:
    """Read query output from a file, or stdin when file_path is '-'."""
    try:
        if file_path == "-":
            return sys.stdin.read()
        return Path(file_path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise QueryInputError(f"query output is not valid UTF-8: {e}") from e


def summary_table(summary: RunSummary) -> Table:
    """Build the end-of-run summary table."""
    table = Table(title="Dependency update check")
    table.add_column("Result")
    table.add_column("Count", justify="right")

    table.add_row("Checked", str(summary.checked))
    table.add_row("Updated", str(summary.updated), style="green" if summary.updated else None)
    table.add_row("Up to date", str(summary.up_to_date))
    if summary.skipped:
        table.add_row("Skipped", str(summary.skipped))
    for stage, names in sorted(summary.failures.items()):
        table.add_row(f"Failed ({stage})", str(len(names)), style="red")
    return table


app = typer.Typer(
    name="repotracker",
    help="RepoTracker - Report upstream commits for the external repositories of a Bazel workspace",
    add_completion=False,
)


@app.command()
def check(
    file_path: str = typer.Option(
        "-", "--file", "-f",
        help="Output of `bazel query --output=jsonproto //external:all` (use '-' for stdin)",
    ),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", help="Max number of dependencies checked at once"),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Directory holding the git mirrors"),
    output_dir: Path | None = typer.Option(None, "--out", "-o", help="Directory reports are written to"),
    format_type: str = typer.Option("md", "--format", help="Report format: md, gfmd, json"),
    empty_revision: EmptyRevisionPolicy = typer.Option(
        EmptyRevisionPolicy.ALWAYS, "--empty-revision",
        help="Unpinned dependencies: 'always' report history, 'skip' them",
    ),
    branch: str | None = typer.Option(None, "--branch", help="Branch to track instead of each remote's default"),
    git_timeout: float | None = typer.Option(None, "--git-timeout", help="Seconds before a git command is abandoned"),
    max_commits: int | None = typer.Option(None, "--max-commits", help="Cap on commits listed per report"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every git command"),
) -> None:
    """RepoTracker - Check external repositories for upstream updates."""
    setup_logging(verbose)

    try:
        config = TrackerConfig.from_env(
            cache_root=cache_dir,
            max_concurrency=concurrency,
            output_dir=output_dir,
            report_format=format_type,
            empty_revision_policy=empty_revision,
            branch=branch,
            git_timeout=git_timeout,
            max_commits=max_commits,
        )
    except TrackerError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)

    try:
        records = parse_query(read_input(file_path))
    except (OSError, TrackerError) as e:
        console.print(f"Error: Unable to get repo information: {e}", style="red")
        raise typer.Exit(1)

    if not records:
        console.print("No external repositories found")
        raise typer.Exit(0)

    orchestrator = Orchestrator.from_config(config)
    summary = asyncio.run(orchestrator.run(records))

    console.print(summary_table(summary))
    if summary.updated:
        console.print(f"Reports written to {config.report_dir}")


if __name__ == "__main__":
    app()
