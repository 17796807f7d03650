"""Data models for Claude Code Wrapped."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Optional, Union


def _freeze_mappings(instance, *names: str) -> None:
    """Replace dict fields of a frozen dataclass with read-only views."""
    for name in names:
        object.__setattr__(instance, name, MappingProxyType(dict(getattr(instance, name))))


class AbsentReason(str, Enum):
    """Why a source produced no value."""

    MISSING = "missing"
    INVALID = "invalid"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class Absent:
    """Marker returned by readers in place of a value they could not produce."""

    reason: AbsentReason
    detail: str = ""

    def __bool__(self) -> bool:
        return False


class UsageSource(str, Enum):
    """Where a model usage record came from."""

    CACHE = "cache"
    TRANSCRIPT = "transcript"


@dataclass(frozen=True)
class DailyActivity:
    """Activity metrics for a single day."""

    date: str
    message_count: int = 0
    session_count: int = 0
    tool_call_count: int = 0


@dataclass(frozen=True)
class DailyModelTokens:
    """Token usage by model for a single day."""

    date: str
    tokens_by_model: dict = field(default_factory=dict)

    def __post_init__(self):
        _freeze_mappings(self, "tokens_by_model")


@dataclass(frozen=True)
class ModelUsage:
    """Aggregate token usage for a single model."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    web_search_requests: int = 0
    cost_usd: float = 0.0
    context_window: int = 0
    source: UsageSource = UsageSource.CACHE


@dataclass(frozen=True)
class LongestSession:
    """Details about the longest session."""

    session_id: str
    duration_ms: int
    message_count: int
    timestamp: str


@dataclass(frozen=True)
class UsageCache:
    """Snapshot of stats-cache.json."""

    version: int
    last_computed_date: Optional[str] = None
    daily_activity: tuple = ()  # tuple[DailyActivity, ...]
    daily_model_tokens: tuple = ()  # tuple[DailyModelTokens, ...]
    model_usage: dict = field(default_factory=dict)  # {model_id: ModelUsage}
    total_sessions: int = 0
    total_messages: int = 0
    longest_session: Optional[LongestSession] = None
    first_session_date: Optional[str] = None
    hour_counts: dict = field(default_factory=dict)

    def __post_init__(self):
        _freeze_mappings(self, "model_usage", "hour_counts")


@dataclass(frozen=True)
class HistoryEntry:
    """A single prompt from history.jsonl."""

    display: str
    pasted_contents: dict
    timestamp: int  # epoch milliseconds
    project: str
    session_id: str

    def __post_init__(self):
        _freeze_mappings(self, "pasted_contents")


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported on one assistant message."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0


@dataclass(frozen=True)
class SessionMessage:
    """An assistant turn from a project session transcript."""

    type: str
    session_id: str
    timestamp: str
    model: Optional[str] = None
    usage: Optional[TokenUsage] = None


CacheResult = Union[UsageCache, Absent]


@dataclass(frozen=True)
class LocalDataset:
    """Everything read from the local storage roots."""

    roots: tuple  # tuple[Path, ...]
    stats_cache: CacheResult
    history: tuple = ()
    projects: tuple = ()
    oldest_session_timestamp: Optional[str] = None
    session_messages: tuple = ()


@dataclass(frozen=True)
class RemoteDataset:
    """Everything fetched from one remote host."""

    host: str
    stats_cache: CacheResult
    history: tuple = ()
    projects: tuple = ()
    oldest_session_timestamp: Optional[str] = None


@dataclass(frozen=True)
class SkippedHost:
    """A remote host that could not be reached."""

    host: str
    reason: str


@dataclass(frozen=True)
class RemoteCollection:
    """Result of collecting from a batch of remote hosts."""

    datasets: tuple = ()  # tuple[RemoteDataset, ...]
    skipped: tuple = ()  # tuple[SkippedHost, ...]


@dataclass(frozen=True)
class MergedDataset:
    """Local and remote data combined into one logical dataset."""

    stats_cache: Optional[UsageCache]
    history: tuple = ()
    projects: tuple = ()
    first_session_date: Optional[str] = None
    hosts: tuple = ()


@dataclass(frozen=True)
class ModelStats:
    """A ranked model in the wrapped summary."""

    id: str
    name: str
    provider_id: str
    count: int
    percentage: int


@dataclass(frozen=True)
class ProviderStats:
    """A ranked provider in the wrapped summary."""

    id: str
    name: str
    count: int
    percentage: int


@dataclass(frozen=True)
class ProjectStats:
    """A ranked project in the wrapped summary."""

    name: str
    prompt_count: int
    percentage: int


@dataclass(frozen=True)
class MostActiveDay:
    """The busiest single day of the year."""

    date: str
    count: int
    formatted_date: str


@dataclass(frozen=True)
class WeekdayActivity:
    """Activity distribution over weekdays (0=Sunday, 6=Saturday)."""

    counts: tuple
    most_active_day: int
    most_active_day_name: str
    max_count: int


@dataclass(frozen=True)
class SessionLength:
    """Duration and size of the longest session."""

    duration_ms: int
    message_count: int


@dataclass(frozen=True)
class WrappedStats:
    """Yearly summary handed to the renderer."""

    year: int

    # Time-based
    first_session_date: str
    days_since_first_session: int

    # Counts
    total_sessions: int
    total_messages: int
    total_prompts: int
    total_projects: int

    # Tokens
    total_input_tokens: int
    total_output_tokens: int
    total_cache_read_tokens: int
    total_cache_write_tokens: int
    total_tokens: int

    # Cost
    total_cost: float
    has_cost_data: bool

    # Rankings
    top_models: tuple
    top_providers: tuple
    top_projects: tuple

    # Streaks
    max_streak: int
    max_streak_days: frozenset
    current_streak: int

    # Activity
    daily_activity: dict
    activity_source: str
    most_active_day: Optional[MostActiveDay]
    weekday_activity: WeekdayActivity

    longest_session: Optional[SessionLength]

    def __post_init__(self):
        _freeze_mappings(self, "daily_activity")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "year": self.year,
            "firstSessionDate": self.first_session_date,
            "daysSinceFirstSession": self.days_since_first_session,
            "totalSessions": self.total_sessions,
            "totalMessages": self.total_messages,
            "totalPrompts": self.total_prompts,
            "totalProjects": self.total_projects,
            "totalInputTokens": self.total_input_tokens,
            "totalOutputTokens": self.total_output_tokens,
            "totalCacheReadTokens": self.total_cache_read_tokens,
            "totalCacheWriteTokens": self.total_cache_write_tokens,
            "totalTokens": self.total_tokens,
            "totalCost": round(self.total_cost, 2),
            "hasCostData": self.has_cost_data,
            "topModels": [
                {
                    "id": m.id,
                    "name": m.name,
                    "providerId": m.provider_id,
                    "count": m.count,
                    "percentage": m.percentage,
                }
                for m in self.top_models
            ],
            "topProviders": [
                {"id": p.id, "name": p.name, "count": p.count, "percentage": p.percentage}
                for p in self.top_providers
            ],
            "topProjects": [
                {"name": p.name, "promptCount": p.prompt_count, "percentage": p.percentage}
                for p in self.top_projects
            ],
            "maxStreak": self.max_streak,
            "maxStreakDays": sorted(self.max_streak_days),
            "currentStreak": self.current_streak,
            "dailyActivity": dict(self.daily_activity),
            "activitySource": self.activity_source,
            "mostActiveDay": (
                {
                    "date": self.most_active_day.date,
                    "count": self.most_active_day.count,
                    "formattedDate": self.most_active_day.formatted_date,
                }
                if self.most_active_day
                else None
            ),
            "weekdayActivity": {
                "counts": list(self.weekday_activity.counts),
                "mostActiveDay": self.weekday_activity.most_active_day,
                "mostActiveDayName": self.weekday_activity.most_active_day_name,
                "maxCount": self.weekday_activity.max_count,
            },
            "longestSession": (
                {
                    "durationMs": self.longest_session.duration_ms,
                    "messageCount": self.longest_session.message_count,
                }
                if self.longest_session
                else None
            ),
        }
