"""Compute the yearly wrapped summary from a merged dataset."""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Mapping, Optional, Sequence

from .models import (
    HistoryEntry,
    MergedDataset,
    ModelStats,
    MostActiveDay,
    ProjectStats,
    ProviderStats,
    SessionLength,
    WeekdayActivity,
    WrappedStats,
)
from .parser import extract_project_name, local_datetime_from_ms, parse_iso_timestamp
from .pricing import calculate_total_cost, get_model_display_name

logger = logging.getLogger(__name__)

# Without a cache, each prompt is assumed to stand for about this many messages
MESSAGES_PER_PROMPT_ESTIMATE = 20

TOP_MODELS = 3
TOP_PROJECTS = 4

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def percentage(count: int, total: int) -> int:
    """Whole-number share of `total`, rounding halves up; 0 for an empty total."""
    if total <= 0:
        return 0
    return int(math.floor(count / total * 100 + 0.5))


def weekday_index(day: date) -> int:
    """Weekday with Sunday as 0."""
    return (day.weekday() + 1) % 7


def format_date_key(day: date) -> str:
    return day.isoformat()


def build_daily_activity(
    year: int, merged: MergedDataset
) -> tuple[dict[str, int], list[int], str]:
    """Per-day counts and weekday buckets for the year.

    Returns the activity map, the weekday counts and which source filled them.
    """
    daily_activity: dict[str, int] = {}
    weekday_counts = [0] * 7
    prefix = str(year)

    if merged.stats_cache is not None:
        for day in merged.stats_cache.daily_activity:
            if day.date.startswith(prefix):
                daily_activity[day.date] = day.message_count
                weekday_counts[weekday_index(date.fromisoformat(day.date))] += day.message_count
        if daily_activity:
            return daily_activity, weekday_counts, "cache"

    if merged.history:
        # Each prompt counts as one unit of activity
        for entry in merged.history:
            moment = local_datetime_from_ms(entry.timestamp)
            key = format_date_key(moment.date())
            daily_activity[key] = daily_activity.get(key, 0) + 1
            weekday_counts[weekday_index(moment.date())] += 1
        return daily_activity, weekday_counts, "history"

    return daily_activity, weekday_counts, "none"


def resolve_first_session(
    merged: MergedDataset, now: datetime
) -> tuple[datetime, int]:
    """Earliest known session start and whole days elapsed since."""
    first = parse_iso_timestamp(merged.first_session_date)
    if first is None and merged.first_session_date:
        logger.debug("Ignoring unparseable first session date %r", merged.first_session_date)

    if first is None and merged.history:
        first = local_datetime_from_ms(min(h.timestamp for h in merged.history))

    if first is None:
        return now, 0

    days = math.floor((now - first).total_seconds() / 86400)
    return first, days


def count_streak_backwards(daily_activity: Mapping[str, int], start: date) -> int:
    """Consecutive active days ending at `start` (inclusive)."""
    streak = 1
    check = start
    while True:
        check -= timedelta(days=1)
        if format_date_key(check) in daily_activity:
            streak += 1
        else:
            return streak


def calculate_streaks(
    daily_activity: Mapping[str, int], year: int, today: date
) -> tuple[int, int, frozenset]:
    """Longest run of consecutive active days, the current run and the longest run's days."""
    active_dates = sorted(d for d in daily_activity if d.startswith(str(year)))
    if not active_dates:
        return 0, 0, frozenset()

    parsed = [date.fromisoformat(d) for d in active_dates]
    max_streak = 1
    temp_streak = 1
    temp_start = 0
    max_start = 0
    max_end = 0

    for i in range(1, len(parsed)):
        if (parsed[i] - parsed[i - 1]).days == 1:
            temp_streak += 1
            if temp_streak > max_streak:
                max_streak = temp_streak
                max_start = temp_start
                max_end = i
        else:
            temp_streak = 1
            temp_start = i

    max_streak_days = frozenset(active_dates[max_start : max_end + 1])

    yesterday = today - timedelta(days=1)
    if format_date_key(today) in daily_activity:
        current_streak = count_streak_backwards(daily_activity, today)
    elif format_date_key(yesterday) in daily_activity:
        current_streak = count_streak_backwards(daily_activity, yesterday)
    else:
        current_streak = 0

    return max_streak, current_streak, max_streak_days


def find_most_active_day(daily_activity: Mapping[str, int]) -> Optional[MostActiveDay]:
    """Day with the highest count; the first one seen wins ties."""
    max_date = ""
    max_count = 0
    for day, count in daily_activity.items():
        if count > max_count:
            max_count = count
            max_date = day

    if not max_date:
        return None

    parsed = date.fromisoformat(max_date)
    return MostActiveDay(
        date=max_date,
        count=max_count,
        formatted_date=f"{MONTH_NAMES[parsed.month - 1]} {parsed.day}",
    )


def build_weekday_activity(counts: Sequence[int]) -> WeekdayActivity:
    most_active = 0
    max_count = 0
    for i, count in enumerate(counts):
        if count > max_count:
            max_count = count
            most_active = i

    return WeekdayActivity(
        counts=tuple(counts),
        most_active_day=most_active,
        most_active_day_name=WEEKDAY_NAMES[most_active],
        max_count=max_count,
    )


def rank_models(model_counts: Mapping[str, int]) -> tuple[ModelStats, ...]:
    """Top models by output tokens."""
    total = sum(model_counts.values())
    ranked = sorted(model_counts.items(), key=lambda item: item[1], reverse=True)
    return tuple(
        ModelStats(
            id=model_id,
            name=get_model_display_name(model_id),
            provider_id="anthropic",
            count=count,
            percentage=percentage(count, total),
        )
        for model_id, count in ranked[:TOP_MODELS]
    )


def rank_projects(history: Sequence[HistoryEntry]) -> tuple[ProjectStats, ...]:
    """Top projects by number of prompts."""
    project_counts: Counter = Counter()
    for entry in history:
        project_counts[extract_project_name(entry.project)] += 1

    total = len(history)
    ranked = sorted(project_counts.items(), key=lambda item: item[1], reverse=True)
    return tuple(
        ProjectStats(name=name, prompt_count=count, percentage=percentage(count, total))
        for name, count in ranked[:TOP_PROJECTS]
    )


def calculate_stats(
    year: int, merged: MergedDataset, now: Optional[datetime] = None
) -> WrappedStats:
    """Build the wrapped summary for `year`."""
    now = now or datetime.now()
    cache = merged.stats_cache
    history = merged.history

    daily_activity, weekday_counts, activity_source = build_daily_activity(year, merged)
    if activity_source == "history":
        logger.info("No cached daily activity for %d; approximating from prompt history", year)

    first_session, days_since_first_session = resolve_first_session(merged, now)

    total_sessions = 0
    total_messages = 0
    total_input_tokens = 0
    total_output_tokens = 0
    total_cache_read_tokens = 0
    total_cache_write_tokens = 0
    total_cost = 0.0
    model_counts: dict[str, int] = {}

    if cache is not None:
        for day in cache.daily_activity:
            if day.date.startswith(str(year)):
                total_messages += day.message_count
                total_sessions += day.session_count

        # Model usage is cumulative, not per year
        for model_id, usage in cache.model_usage.items():
            total_input_tokens += usage.input_tokens
            total_output_tokens += usage.output_tokens
            total_cache_read_tokens += usage.cache_read_tokens
            total_cache_write_tokens += usage.cache_creation_tokens
            model_counts[model_id] = usage.output_tokens
        total_cost = calculate_total_cost(cache.model_usage)

    if total_messages == 0 and history:
        total_messages = len(history) * MESSAGES_PER_PROMPT_ESTIMATE
        total_sessions = len({h.session_id for h in history})

    total_tokens = (
        total_input_tokens + total_output_tokens + total_cache_read_tokens + total_cache_write_tokens
    )

    max_streak, current_streak, max_streak_days = calculate_streaks(
        daily_activity, year, now.date()
    )

    longest_session = None
    if cache is not None and cache.longest_session is not None:
        longest_session = SessionLength(
            duration_ms=cache.longest_session.duration_ms,
            message_count=cache.longest_session.message_count,
        )

    return WrappedStats(
        year=year,
        first_session_date=first_session.isoformat(),
        days_since_first_session=days_since_first_session,
        total_sessions=total_sessions,
        total_messages=total_messages,
        total_prompts=len(history),
        total_projects=len(merged.projects),
        total_input_tokens=total_input_tokens,
        total_output_tokens=total_output_tokens,
        total_cache_read_tokens=total_cache_read_tokens,
        total_cache_write_tokens=total_cache_write_tokens,
        total_tokens=total_tokens,
        total_cost=total_cost,
        has_cost_data=total_cost > 0,
        top_models=rank_models(model_counts),
        top_providers=(
            ProviderStats(id="anthropic", name="Anthropic", count=total_messages, percentage=100),
        ),
        top_projects=rank_projects(history),
        max_streak=max_streak,
        max_streak_days=max_streak_days,
        current_streak=current_streak,
        daily_activity=daily_activity,
        activity_source=activity_source,
        most_active_day=find_most_active_day(daily_activity),
        weekday_activity=build_weekday_activity(weekday_counts),
        longest_session=longest_session,
    )
