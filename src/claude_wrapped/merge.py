"""Combine local and remote datasets into a single logical dataset.

Every function here returns new values; inputs are never modified. Caches are
folded left to right through `merge_caches`, so merging N sources is just
`functools.reduce` over them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from functools import reduce
from typing import Iterable, Mapping, Optional, Sequence

from .models import (
    DailyActivity,
    DailyModelTokens,
    LocalDataset,
    LongestSession,
    MergedDataset,
    ModelUsage,
    RemoteDataset,
    SessionMessage,
    UsageCache,
    UsageSource,
)

logger = logging.getLogger(__name__)

MERGED_CACHE_VERSION = 1


def earliest(*values: Optional[str]) -> Optional[str]:
    """Smallest non-empty timestamp string, or None."""
    present = [v for v in values if v]
    return min(present) if present else None


def _latest(*values: Optional[str]) -> Optional[str]:
    present = [v for v in values if v]
    return max(present) if present else None


def merge_daily_activity(
    a: Sequence[DailyActivity], b: Sequence[DailyActivity]
) -> tuple[DailyActivity, ...]:
    """Sum counts for dates present in both; append new dates in order."""
    merged: dict[str, DailyActivity] = {day.date: day for day in a}
    for day in b:
        existing = merged.get(day.date)
        if existing is None:
            merged[day.date] = day
        else:
            merged[day.date] = DailyActivity(
                date=day.date,
                message_count=existing.message_count + day.message_count,
                session_count=existing.session_count + day.session_count,
                tool_call_count=existing.tool_call_count + day.tool_call_count,
            )
    return tuple(merged.values())


def merge_daily_model_tokens(
    a: Sequence[DailyModelTokens], b: Sequence[DailyModelTokens]
) -> tuple[DailyModelTokens, ...]:
    """Sum per-model token counts for dates present in both."""
    merged: dict[str, dict] = {day.date: dict(day.tokens_by_model) for day in a}
    for day in b:
        tokens = merged.setdefault(day.date, {})
        for model, count in day.tokens_by_model.items():
            tokens[model] = tokens.get(model, 0) + count
    return tuple(
        DailyModelTokens(date=day, tokens_by_model=tokens) for day, tokens in merged.items()
    )


def add_model_usage(a: ModelUsage, b: ModelUsage) -> ModelUsage:
    """Field-wise sum of two usage records."""
    return ModelUsage(
        input_tokens=a.input_tokens + b.input_tokens,
        output_tokens=a.output_tokens + b.output_tokens,
        cache_read_tokens=a.cache_read_tokens + b.cache_read_tokens,
        cache_creation_tokens=a.cache_creation_tokens + b.cache_creation_tokens,
        web_search_requests=a.web_search_requests + b.web_search_requests,
        cost_usd=a.cost_usd + b.cost_usd,
        context_window=max(a.context_window, b.context_window),
        source=a.source,
    )


def merge_model_usage(
    a: Mapping[str, ModelUsage], b: Mapping[str, ModelUsage]
) -> dict[str, ModelUsage]:
    """Sum usage for models present in both; insert new models as-is."""
    merged = dict(a)
    for model, usage in b.items():
        existing = merged.get(model)
        merged[model] = usage if existing is None else add_model_usage(existing, usage)
    return merged


def _longer_session(
    a: Optional[LongestSession], b: Optional[LongestSession]
) -> Optional[LongestSession]:
    if a is None:
        return b
    if b is None:
        return a
    return b if b.duration_ms > a.duration_ms else a


def merge_caches(a: UsageCache, b: UsageCache) -> UsageCache:
    """Additively combine two caches."""
    hour_counts = dict(a.hour_counts)
    for hour, count in b.hour_counts.items():
        hour_counts[hour] = hour_counts.get(hour, 0) + count

    return UsageCache(
        version=max(a.version, b.version),
        last_computed_date=_latest(a.last_computed_date, b.last_computed_date),
        daily_activity=merge_daily_activity(a.daily_activity, b.daily_activity),
        daily_model_tokens=merge_daily_model_tokens(a.daily_model_tokens, b.daily_model_tokens),
        model_usage=merge_model_usage(a.model_usage, b.model_usage),
        total_sessions=a.total_sessions + b.total_sessions,
        total_messages=a.total_messages + b.total_messages,
        longest_session=_longer_session(a.longest_session, b.longest_session),
        first_session_date=earliest(a.first_session_date, b.first_session_date),
        hour_counts=hour_counts,
    )


def fold_caches(caches: Iterable[UsageCache], initial: UsageCache) -> UsageCache:
    """Merge a sequence of caches onto `initial`, left to right."""
    return reduce(merge_caches, caches, initial)


def usage_from_messages(messages: Iterable[SessionMessage]) -> dict[str, ModelUsage]:
    """Per-model usage totals derived from session transcripts."""
    usage: dict[str, ModelUsage] = {}
    for message in messages:
        if message.usage is None or not message.model:
            continue
        record = ModelUsage(
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            cache_read_tokens=message.usage.cache_read_input_tokens,
            cache_creation_tokens=message.usage.cache_creation_input_tokens,
            source=UsageSource.TRANSCRIPT,
        )
        usage = merge_model_usage(usage, {message.model: record})
    return usage


def merge(
    local: LocalDataset,
    remotes: Sequence[RemoteDataset] = (),
    today: Optional[date] = None,
) -> MergedDataset:
    """Combine the local dataset with any number of remote ones."""
    history = tuple(local.history)
    projects: dict[str, None] = dict.fromkeys(local.projects)
    for remote in remotes:
        history += tuple(remote.history)
        projects.update(dict.fromkeys(remote.projects))

    local_cache = local.stats_cache if isinstance(local.stats_cache, UsageCache) else None

    if remotes:
        today = today or date.today()
        caches = [local_cache] + [r.stats_cache for r in remotes]
        synthetic = UsageCache(version=MERGED_CACHE_VERSION)
        stats_cache = replace(
            fold_caches((c for c in caches if isinstance(c, UsageCache)), synthetic),
            version=MERGED_CACHE_VERSION,
            last_computed_date=today.isoformat(),
        )
        logger.debug("Rebuilt merged cache from local data and %d remote host(s)", len(remotes))
    else:
        stats_cache = local_cache

    if local.session_messages and (stats_cache is None or not stats_cache.model_usage):
        derived = usage_from_messages(local.session_messages)
        if derived:
            logger.debug("Using transcript-derived usage for %d model(s)", len(derived))
            stats_cache = replace(
                stats_cache or UsageCache(version=MERGED_CACHE_VERSION), model_usage=derived
            )

    first_session_date = earliest(
        stats_cache.first_session_date if stats_cache else None,
        local.oldest_session_timestamp,
        *(r.oldest_session_timestamp for r in remotes),
    )
    if remotes and stats_cache is not None:
        stats_cache = replace(stats_cache, first_session_date=first_session_date)

    return MergedDataset(
        stats_cache=stats_cache,
        history=history,
        projects=tuple(projects),
        first_session_date=first_session_date,
        hosts=tuple(r.host for r in remotes),
    )
