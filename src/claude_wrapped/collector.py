"""Collect Claude Code data from local storage roots."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from .merge import earliest, fold_caches
from .models import (
    Absent,
    AbsentReason,
    CacheResult,
    HistoryEntry,
    LocalDataset,
    SessionMessage,
    UsageCache,
)
from .parser import (
    extract_projects,
    find_oldest_timestamp,
    parse_history_lines,
    parse_session_lines,
    parse_stats_cache_text,
)

logger = logging.getLogger(__name__)

CLAUDE_CONFIG_ENV = "CLAUDE_CONFIG_DIR"
STATS_CACHE_FILE = "stats-cache.json"
HISTORY_FILE = "history.jsonl"
PROJECTS_DIR = "projects"
AGENT_FILE_PREFIX = "agent-"

# Session files are written in order, so the oldest timestamp is near the top
OLDEST_SCAN_LINES = 10


def candidate_roots() -> list[Path]:
    """Storage roots to try, most preferred first."""
    override = os.environ.get(CLAUDE_CONFIG_ENV)
    if override:
        return [Path(override).expanduser()]
    home = Path.home()
    return [home / ".config" / "claude", home / ".claude"]


def discover_roots(candidates: Optional[Iterable[Path]] = None) -> list[Path]:
    """Keep the candidate roots that exist and can be listed."""
    roots = []
    for candidate in candidate_roots() if candidates is None else candidates:
        path = Path(candidate).expanduser()
        try:
            next(path.iterdir(), None)
        except OSError as e:
            logger.debug("Skipping storage root %s: %s", path, e)
            continue
        if path not in roots:
            roots.append(path)
    return roots


def read_stats_cache(root: Path) -> CacheResult:
    """Read stats-cache.json from a storage root."""
    stats_file = root / STATS_CACHE_FILE
    if not stats_file.exists():
        return Absent(AbsentReason.MISSING, f"{stats_file} not found")

    try:
        text = stats_file.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to read %s: %s", stats_file, e)
        return Absent(AbsentReason.MISSING, str(e))

    return parse_stats_cache_text(text, source=str(stats_file))


def combine_cache_results(results: Sequence[CacheResult]) -> CacheResult:
    """Merge every valid cache; report the most specific absence otherwise."""
    caches = [r for r in results if isinstance(r, UsageCache)]
    if len(caches) == 1:
        return caches[0]
    if caches:
        return fold_caches(caches[1:], caches[0])

    for result in results:
        if isinstance(result, Absent) and result.reason is AbsentReason.INVALID:
            return result
    if results:
        return results[0]
    return Absent(AbsentReason.MISSING, "no storage root found")


def read_history(root: Path, year: Optional[int] = None) -> list[HistoryEntry]:
    """Read history.jsonl from a storage root."""
    history_file = root / HISTORY_FILE
    if not history_file.exists():
        return []

    try:
        with open(history_file, encoding="utf-8") as f:
            return parse_history_lines(f, year)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read %s: %s", history_file, e)
        return []


def iter_session_files(root: Path, include_agents: bool = False) -> Iterator[Path]:
    """Yield session transcript files under root/projects."""
    projects_dir = root / PROJECTS_DIR
    try:
        project_folders = sorted(projects_dir.iterdir())
    except OSError:
        return

    for project_folder in project_folders:
        try:
            files = sorted(project_folder.glob("*.jsonl")) if project_folder.is_dir() else []
        except OSError as e:
            logger.debug("Skipping unreadable project folder %s: %s", project_folder, e)
            continue
        for jsonl_file in files:
            if not include_agents and jsonl_file.name.startswith(AGENT_FILE_PREFIX):
                continue
            yield jsonl_file


def collect_session_messages(root: Path, year: Optional[int] = None) -> list[SessionMessage]:
    """Assistant messages with usage from every main-session transcript."""
    messages: list[SessionMessage] = []
    for jsonl_file in iter_session_files(root):
        try:
            with open(jsonl_file, encoding="utf-8") as f:
                messages.extend(parse_session_lines(f, year))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", jsonl_file, e)
    return messages


def find_oldest_session_timestamp(root: Path) -> Optional[str]:
    """Oldest timestamp found in the first lines of each transcript."""
    oldest = None
    for jsonl_file in iter_session_files(root, include_agents=True):
        try:
            with open(jsonl_file, encoding="utf-8") as f:
                oldest = earliest(oldest, find_oldest_timestamp(islice(f, OLDEST_SCAN_LINES)))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", jsonl_file, e)
    return oldest


def _read_caches(roots: Sequence[Path]) -> CacheResult:
    return combine_cache_results([read_stats_cache(root) for root in roots])


def _read_histories(roots: Sequence[Path], year: Optional[int]) -> list[HistoryEntry]:
    entries: list[HistoryEntry] = []
    for root in roots:
        entries.extend(read_history(root, year))
    return entries


def _find_oldest(roots: Sequence[Path]) -> Optional[str]:
    return earliest(*(find_oldest_session_timestamp(root) for root in roots))


def _read_session_messages(roots: Sequence[Path], year: Optional[int]) -> list[SessionMessage]:
    messages: list[SessionMessage] = []
    for root in roots:
        messages.extend(collect_session_messages(root, year))
    return messages


def collect_local(
    year: Optional[int] = None,
    roots: Optional[Iterable[Path]] = None,
    scan_transcripts: bool = False,
) -> LocalDataset:
    """Read cache, history and transcripts from every local storage root.

    The independent reads run concurrently; none of them share state.
    """
    found = discover_roots(roots)
    if not found:
        logger.debug("No local storage root found")
        return LocalDataset(
            roots=(), stats_cache=Absent(AbsentReason.MISSING, "no storage root found")
        )

    with ThreadPoolExecutor(max_workers=4) as pool:
        cache_future = pool.submit(_read_caches, found)
        history_future = pool.submit(_read_histories, found, year)
        oldest_future = pool.submit(_find_oldest, found)
        messages_future = (
            pool.submit(_read_session_messages, found, year) if scan_transcripts else None
        )

        history = history_future.result()
        dataset = LocalDataset(
            roots=tuple(found),
            stats_cache=cache_future.result(),
            history=tuple(history),
            projects=tuple(extract_projects(history)),
            oldest_session_timestamp=oldest_future.result(),
            session_messages=tuple(messages_future.result()) if messages_future else (),
        )

    logger.debug(
        "Collected %d history entries from %s",
        len(dataset.history),
        ", ".join(str(r) for r in found),
    )
    return dataset
