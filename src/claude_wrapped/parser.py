"""Parsers for Claude Code data files.

Everything here works on text so the same code handles files read from disk
and output captured from a remote host.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime
from typing import Iterable, Optional

from .models import (
    Absent,
    AbsentReason,
    CacheResult,
    DailyActivity,
    DailyModelTokens,
    HistoryEntry,
    LongestSession,
    ModelUsage,
    SessionMessage,
    TokenUsage,
    UsageCache,
)

logger = logging.getLogger(__name__)


def validate_stats_cache(data: dict) -> bool:
    """Validate the structure of stats-cache.json."""
    if not isinstance(data, dict):
        return False
    return "version" in data


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_float(value) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_str(value) -> str:
    return value if isinstance(value, str) else ""


def _as_mapping(value) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _is_iso_date(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_model_usage(data: dict) -> ModelUsage:
    """Build a ModelUsage from a modelUsage entry, defaulting missing fields to 0."""
    return ModelUsage(
        input_tokens=_as_int(data.get("inputTokens")),
        output_tokens=_as_int(data.get("outputTokens")),
        cache_read_tokens=_as_int(data.get("cacheReadInputTokens")),
        cache_creation_tokens=_as_int(data.get("cacheCreationInputTokens")),
        web_search_requests=_as_int(data.get("webSearchRequests")),
        cost_usd=_as_float(data.get("costUSD")),
        context_window=_as_int(data.get("contextWindow")),
    )


def build_usage_cache(data: dict) -> UsageCache:
    """Convert a decoded stats-cache.json document into a UsageCache."""
    daily_activity = []
    for d in _as_list(data.get("dailyActivity")):
        if not isinstance(d, dict) or not _is_iso_date(d.get("date")):
            logger.debug("Dropping daily activity record without a valid date: %r", d)
            continue
        daily_activity.append(
            DailyActivity(
                date=d["date"],
                message_count=_as_int(d.get("messageCount")),
                session_count=_as_int(d.get("sessionCount")),
                tool_call_count=_as_int(d.get("toolCallCount")),
            )
        )

    daily_model_tokens = [
        DailyModelTokens(
            date=d["date"],
            tokens_by_model={
                k: _as_int(v) for k, v in _as_mapping(d.get("tokensByModel")).items()
            },
        )
        for d in _as_list(data.get("dailyModelTokens"))
        if isinstance(d, dict) and _is_iso_date(d.get("date"))
    ]

    model_usage = {
        model: parse_model_usage(usage)
        for model, usage in _as_mapping(data.get("modelUsage")).items()
        if isinstance(usage, dict)
    }

    longest_raw = data.get("longestSession")
    longest_session = None
    if isinstance(longest_raw, dict) and longest_raw:
        longest_session = LongestSession(
            session_id=_as_str(longest_raw.get("sessionId")),
            duration_ms=_as_int(longest_raw.get("duration")),
            message_count=_as_int(longest_raw.get("messageCount")),
            timestamp=_as_str(longest_raw.get("timestamp")),
        )

    return UsageCache(
        version=_as_int(data.get("version")),
        last_computed_date=_as_str(data.get("lastComputedDate")) or None,
        daily_activity=tuple(daily_activity),
        daily_model_tokens=tuple(daily_model_tokens),
        model_usage=model_usage,
        total_sessions=_as_int(data.get("totalSessions")),
        total_messages=_as_int(data.get("totalMessages")),
        longest_session=longest_session,
        first_session_date=_as_str(data.get("firstSessionDate")) or None,
        hour_counts={
            str(k): _as_int(v) for k, v in _as_mapping(data.get("hourCounts")).items()
        },
    )


def parse_stats_cache_text(text: str, source: str = "stats-cache.json") -> CacheResult:
    """Parse the contents of a stats-cache.json file."""
    if not text.strip():
        return Absent(AbsentReason.MISSING, f"{source} is empty")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse %s: %s", source, e)
        return Absent(AbsentReason.INVALID, str(e))

    if not validate_stats_cache(data):
        logger.warning("%s has unexpected structure", source)
        return Absent(AbsentReason.INVALID, f"{source} has unexpected structure")

    try:
        return build_usage_cache(data)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("%s has unexpected structure: %s", source, e)
        return Absent(AbsentReason.INVALID, f"{source} has unexpected structure")


def parse_iso_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into a naive local datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def local_datetime_from_ms(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to a naive local datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000)


def parse_history_entry(data: dict) -> Optional[HistoryEntry]:
    """Build a HistoryEntry from one decoded history.jsonl record."""
    timestamp = data.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None
    if not math.isfinite(timestamp):
        return None
    return HistoryEntry(
        display=_as_str(data.get("display")),
        pasted_contents=_as_mapping(data.get("pastedContents")),
        timestamp=int(timestamp),
        project=_as_str(data.get("project")),
        session_id=_as_str(data.get("sessionId")),
    )


def parse_history_lines(lines: Iterable[str], year: Optional[int] = None) -> list[HistoryEntry]:
    """Parse history.jsonl lines, keeping entries from `year` when given."""
    entries = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping invalid history line")
            continue
        if not isinstance(data, dict):
            continue

        entry = parse_history_entry(data)
        if entry is None:
            continue

        if year is not None:
            try:
                entry_year = local_datetime_from_ms(entry.timestamp).year
            except (OverflowError, OSError, ValueError):
                continue
            if entry_year != year:
                continue

        entries.append(entry)
    return entries


def parse_session_message(data: dict) -> Optional[SessionMessage]:
    """Build a SessionMessage from an assistant transcript line with usage."""
    if data.get("type") != "assistant":
        return None
    message = data.get("message")
    if not isinstance(message, dict) or not isinstance(message.get("usage"), dict):
        return None

    usage = message["usage"]
    return SessionMessage(
        type="assistant",
        session_id=_as_str(data.get("sessionId")),
        timestamp=_as_str(data.get("timestamp")),
        model=_as_str(message.get("model")) or None,
        usage=TokenUsage(
            input_tokens=_as_int(usage.get("input_tokens")),
            output_tokens=_as_int(usage.get("output_tokens")),
            cache_read_input_tokens=_as_int(usage.get("cache_read_input_tokens")),
            cache_creation_input_tokens=_as_int(usage.get("cache_creation_input_tokens")),
        ),
    )


def parse_session_lines(lines: Iterable[str], year: Optional[int] = None) -> list[SessionMessage]:
    """Extract assistant messages with token usage from a session transcript."""
    messages = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue

        message = parse_session_message(data)
        if message is None:
            continue

        if year is not None:
            timestamp = parse_iso_timestamp(message.timestamp)
            if timestamp is None or timestamp.year != year:
                continue

        messages.append(message)
    return messages


def find_oldest_timestamp(lines: Iterable[str]) -> Optional[str]:
    """Return the smallest string `timestamp` among the given JSON lines."""
    oldest = None
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str) and timestamp:
            if oldest is None or timestamp < oldest:
                oldest = timestamp
    return oldest


def extract_project_name(path: str) -> str:
    """Use the last path segment as the project name."""
    return path.split("/")[-1] or path


def extract_projects(history: Iterable[HistoryEntry]) -> list[str]:
    """Unique project names from history, in first-seen order."""
    projects: dict[str, None] = {}
    for entry in history:
        if entry.project:
            projects.setdefault(extract_project_name(entry.project), None)
    return list(projects)
