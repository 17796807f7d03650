"""Collect Claude Code data from remote hosts over ssh."""

from __future__ import annotations

import logging
import re
import subprocess
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, Union

from .collector import HISTORY_FILE, PROJECTS_DIR, STATS_CACHE_FILE, combine_cache_results
from .models import (
    Absent,
    AbsentReason,
    CacheResult,
    HistoryEntry,
    RemoteCollection,
    RemoteDataset,
    SkippedHost,
)
from .parser import extract_projects, parse_history_lines, parse_stats_cache_text

logger = logging.getLogger(__name__)

# Remote storage roots, most preferred first. Left unquoted so the remote shell expands ~.
REMOTE_ROOTS = ("~/.config/claude", "~/.claude")

SSH_OPTIONS = ("-o", "ConnectTimeout=10", "-o", "BatchMode=yes")
SSH_TIMEOUT_SECONDS = 120
SSH_CONNECTION_ERROR = 255

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")

Runner = Callable[[str, str], str]
ProgressCallback = Callable[[str, str], None]


class RemoteError(Exception):
    """Base class for remote collection failures."""

    def __init__(self, host: str, message: str):
        super().__init__(f"{host}: {message}")
        self.host = host


class TransportError(RemoteError):
    """The host could not be reached."""


class RemoteCommandError(RemoteError):
    """The host was reached but the command failed."""

    def __init__(self, host: str, returncode: int, stderr: str = ""):
        super().__init__(host, stderr.strip() or f"exit code {returncode}")
        self.returncode = returncode


def run_ssh(host: str, command: str) -> str:
    """Run a non-interactive command on `host` and return its stdout."""
    try:
        result = subprocess.run(
            ["ssh", *SSH_OPTIONS, host, command],
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=SSH_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired as e:
        raise TransportError(host, f"timed out after {SSH_TIMEOUT_SECONDS}s") from e
    except OSError as e:
        raise TransportError(host, str(e)) from e

    if result.returncode == SSH_CONNECTION_ERROR:
        raise TransportError(host, result.stderr.strip() or "connection failed")
    if result.returncode != 0:
        raise RemoteCommandError(host, result.returncode, result.stderr)
    return result.stdout


def stats_cache_command(root: str) -> str:
    return f"cat {root}/{STATS_CACHE_FILE} 2>/dev/null || true"


def history_command(roots: Sequence[str] = REMOTE_ROOTS) -> str:
    paths = " ".join(f"{root}/{HISTORY_FILE}" for root in roots)
    return f'for f in {paths}; do if [ -f "$f" ]; then cat "$f"; echo; fi; done; true'


def oldest_timestamp_command(roots: Sequence[str] = REMOTE_ROOTS) -> str:
    dirs = " ".join(f"{root}/{PROJECTS_DIR}/" for root in roots)
    return (
        f"grep -rhoE '\"timestamp\":\"[^\"]+\"' {dirs} 2>/dev/null"
        " | sed -e 's/\"timestamp\":\"//' -e 's/\"$//' | sort | head -1"
    )


def collect_remote_stats_cache(host: str, runner: Runner = run_ssh) -> CacheResult:
    """Fetch and merge stats-cache.json from every remote root."""
    results = []
    for root in REMOTE_ROOTS:
        try:
            output = runner(host, stats_cache_command(root))
        except RemoteCommandError as e:
            logger.debug("Could not read %s/%s on %s: %s", root, STATS_CACHE_FILE, host, e)
            results.append(Absent(AbsentReason.UNREACHABLE, str(e)))
            continue
        results.append(parse_stats_cache_text(output, source=f"{host}:{root}/{STATS_CACHE_FILE}"))
    return combine_cache_results(results)


def collect_remote_history(
    host: str, year: Optional[int] = None, runner: Runner = run_ssh
) -> list[HistoryEntry]:
    """Fetch history.jsonl entries from a remote host."""
    try:
        output = runner(host, history_command())
    except RemoteCommandError as e:
        logger.debug("Could not read history on %s: %s", host, e)
        return []
    return parse_history_lines(output.splitlines(), year)


def find_remote_oldest_timestamp(host: str, runner: Runner = run_ssh) -> Optional[str]:
    """Oldest timestamp recorded in any remote session transcript."""
    try:
        output = runner(host, oldest_timestamp_command())
    except RemoteCommandError as e:
        logger.debug("Could not scan transcripts on %s: %s", host, e)
        return None
    timestamp = output.strip()
    if _ISO_DATE_PREFIX.match(timestamp):
        return timestamp
    return None


def collect_from_host(
    host: str, year: Optional[int] = None, runner: Runner = run_ssh
) -> RemoteDataset:
    """Fetch every artifact from one host, one command at a time."""
    stats_cache = collect_remote_stats_cache(host, runner)
    history = collect_remote_history(host, year, runner)
    oldest = find_remote_oldest_timestamp(host, runner)

    return RemoteDataset(
        host=host,
        stats_cache=stats_cache,
        history=tuple(history),
        projects=tuple(extract_projects(history)),
        oldest_session_timestamp=oldest,
    )


def collect_from_hosts(
    hosts: Sequence[str],
    year: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    concurrency: int = 1,
    runner: Runner = run_ssh,
) -> RemoteCollection:
    """Collect from each host; unreachable hosts are skipped, not fatal.

    At most `concurrency` hosts are contacted at once. Results keep the order
    of `hosts`.
    """

    def notify(host: str, status: str) -> None:
        if on_progress is not None:
            on_progress(host, status)

    def collect(host: str) -> Union[RemoteDataset, SkippedHost]:
        notify(host, "start")
        try:
            dataset = collect_from_host(host, year, runner)
        except RemoteError as e:
            logger.warning("Skipping remote host %s: %s", host, e)
            notify(host, "error")
            return SkippedHost(host=host, reason=str(e))
        notify(host, "done")
        return dataset

    if not hosts:
        return RemoteCollection()

    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        results = list(pool.map(collect, hosts))

    return RemoteCollection(
        datasets=tuple(r for r in results if isinstance(r, RemoteDataset)),
        skipped=tuple(r for r in results if isinstance(r, SkippedHost)),
    )
