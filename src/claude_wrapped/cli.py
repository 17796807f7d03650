"""CLI entry point for Claude Code Wrapped."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from .collector import candidate_roots, collect_local, discover_roots
from .exporters import export_json, summary_lines
from .merge import merge
from .remote import collect_from_hosts
from .stats import calculate_stats

logger = logging.getLogger(__name__)

_PROGRESS_MESSAGES = {
    "start": "Fetching data from {host}...",
    "done": "Fetched data from {host}",
    "error": "Could not reach {host}, skipping",
}


def _report_progress(host: str, status: str) -> None:
    click.echo("  " + _PROGRESS_MESSAGES[status].format(host=host))


@click.command()
@click.version_option(package_name="claude-wrapped")
@click.option(
    "--year",
    "-y",
    type=int,
    default=None,
    help="Year to summarize. Defaults to the current year.",
)
@click.option(
    "--claude-dir",
    "claude_dirs",
    multiple=True,
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    help="Storage root to read. Repeatable. Defaults to ~/.config/claude and ~/.claude.",
)
@click.option(
    "--remote",
    "-r",
    "remotes",
    multiple=True,
    envvar="CLAUDE_WRAPPED_REMOTES",
    help="Also collect from this ssh host. Repeatable.",
)
@click.option(
    "--remote-concurrency",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="How many remote hosts to contact at once.",
)
@click.option(
    "--scan-transcripts/--no-scan-transcripts",
    default=False,
    help="Derive model usage from session transcripts when no cache has it.",
)
@click.option(
    "--json",
    "json_output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the computed stats to this JSON file.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def main(
    year: Optional[int],
    claude_dirs: tuple,
    remotes: tuple,
    remote_concurrency: int,
    scan_transcripts: bool,
    json_output: Optional[Path],
    verbose: bool,
) -> None:
    """Generate your Claude Code year in review."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    year = year or datetime.now().year
    candidates = list(claude_dirs) or candidate_roots()
    roots = discover_roots(candidates)

    if not roots and not remotes:
        searched = ", ".join(str(c) for c in candidates)
        click.echo(f"Claude Code data not found in {searched}")
        click.echo("Make sure you have used Claude Code at least once.")
        return

    click.echo("Scanning your Claude Code history...")
    local = collect_local(year, roots=roots, scan_transcripts=scan_transcripts)

    remote = collect_from_hosts(
        remotes, year, on_progress=_report_progress, concurrency=remote_concurrency
    )

    try:
        merged = merge(local, remote.datasets)
        stats = calculate_stats(year, merged)
    except Exception as e:
        logger.debug("Stats computation failed", exc_info=True)
        click.echo(f"Unexpected error: {e}", err=True)
        sys.exit(1)

    if stats.total_sessions == 0 and stats.total_prompts == 0:
        click.echo(f"No Claude Code activity found for {year}")
        return

    click.echo(f"\nYour {year} in Claude Code")
    for line in summary_lines(stats):
        click.echo(f"  {line}")

    if remote.skipped:
        skipped = ", ".join(s.host for s in remote.skipped)
        click.echo(f"\nSkipped unreachable hosts: {skipped}")

    if json_output is not None:
        json_file = export_json(stats, json_output)
        click.echo(f"\nStats exported to {json_file}")


if __name__ == "__main__":
    main()
