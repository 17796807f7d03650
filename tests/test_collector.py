"""Tests for the local collector."""

from datetime import datetime

from claude_wrapped.collector import (
    candidate_roots,
    collect_local,
    collect_session_messages,
    combine_cache_results,
    discover_roots,
    find_oldest_session_timestamp,
    read_history,
    read_stats_cache,
)
from claude_wrapped.models import Absent, AbsentReason, UsageCache


def _ms(year, month, day, hour=12):
    return int(datetime(year, month, day, hour).timestamp() * 1000)


def _history(timestamp, project="/work/app", session="s1"):
    return {
        "display": "hello",
        "pastedContents": {},
        "timestamp": timestamp,
        "project": project,
        "sessionId": session,
    }


def _assistant(timestamp, model="claude-sonnet-4-20250514", output_tokens=10):
    return {
        "type": "assistant",
        "sessionId": "s1",
        "timestamp": timestamp,
        "message": {"model": model, "usage": {"input_tokens": 1, "output_tokens": output_tokens}},
    }


def _cache(day="2025-04-01", messages=5, sessions=1, first="2025-01-10T00:00:00Z"):
    return {
        "version": 1,
        "dailyActivity": [
            {"date": day, "messageCount": messages, "sessionCount": sessions, "toolCallCount": 0}
        ],
        "modelUsage": {"claude-sonnet-4-20250514": {"outputTokens": 100}},
        "totalSessions": sessions,
        "totalMessages": messages,
        "firstSessionDate": first,
    }


class TestRoots:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(tmp_path))
        assert candidate_roots() == [tmp_path]

    def test_default_order(self, monkeypatch, tmp_path):
        monkeypatch.delenv("CLAUDE_CONFIG_DIR", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert candidate_roots() == [tmp_path / ".config" / "claude", tmp_path / ".claude"]

    def test_discover_skips_unlistable(self, make_root, tmp_path):
        present = make_root(".claude")
        not_a_dir = tmp_path / "file.txt"
        not_a_dir.write_text("x")
        assert discover_roots([tmp_path / "missing", not_a_dir, present, present]) == [present]


class TestReadStatsCache:
    def test_missing(self, make_root):
        result = read_stats_cache(make_root())
        assert isinstance(result, Absent)
        assert result.reason is AbsentReason.MISSING

    def test_invalid(self, make_root):
        result = read_stats_cache(make_root(cache="{oops"))
        assert result.reason is AbsentReason.INVALID

    def test_valid(self, make_root):
        result = read_stats_cache(make_root(cache=_cache()))
        assert isinstance(result, UsageCache)
        assert result.total_messages == 5

    def test_wrong_section_types_do_not_raise(self, make_root):
        root = make_root(
            cache={"version": 1, "modelUsage": [], "hourCounts": [], "totalMessages": 3}
        )
        result = read_stats_cache(root)
        assert isinstance(result, UsageCache)
        assert result.total_messages == 3

    def test_combine_prefers_invalid_over_missing(self):
        missing = Absent(AbsentReason.MISSING)
        invalid = Absent(AbsentReason.INVALID, "bad")
        assert combine_cache_results([missing, invalid]) is invalid
        assert combine_cache_results([]).reason is AbsentReason.MISSING


class TestReadHistory:
    def test_missing_file_yields_empty(self, make_root):
        assert read_history(make_root()) == []

    def test_bad_lines_dropped(self, make_root):
        root = make_root(history=[_history(_ms(2025, 2, 1)), "{{", _history(_ms(2024, 2, 1))])
        assert len(read_history(root)) == 2
        assert len(read_history(root, year=2025)) == 1

    def test_non_finite_timestamps_dropped(self, make_root):
        root = make_root(
            history=['{"timestamp": NaN}', '{"timestamp": Infinity}', _history(_ms(2025, 2, 1))]
        )
        assert len(read_history(root, year=2025)) == 1


class TestTranscripts:
    def test_agent_files_excluded_from_messages(self, make_root):
        root = make_root(
            sessions={
                "-work-app/main.jsonl": [_assistant("2025-03-01T10:00:00Z"), "bad line"],
                "-work-app/agent-123.jsonl": [_assistant("2025-03-01T11:00:00Z")],
                "-work-other/second.jsonl": [_assistant("2025-03-02T10:00:00Z", output_tokens=5)],
            }
        )
        messages = collect_session_messages(root)
        assert sorted(m.usage.output_tokens for m in messages) == [5, 10]

    def test_oldest_only_checks_first_lines(self, make_root):
        records = [{"timestamp": f"2025-05-{day:02d}T00:00:00Z"} for day in range(11, 25)]
        records.append({"timestamp": "2020-01-01T00:00:00Z"})
        root = make_root(sessions={"-p/s.jsonl": records})
        assert find_oldest_session_timestamp(root) == "2025-05-11T00:00:00Z"

    def test_oldest_includes_agent_files(self, make_root):
        root = make_root(
            sessions={
                "-p/s.jsonl": [{"timestamp": "2025-05-01T00:00:00Z"}],
                "-p/agent-1.jsonl": [{"timestamp": "2025-04-01T00:00:00Z"}],
            }
        )
        assert find_oldest_session_timestamp(root) == "2025-04-01T00:00:00Z"

    def test_no_projects_dir(self, make_root):
        root = make_root()
        assert find_oldest_session_timestamp(root) is None
        assert collect_session_messages(root) == []


class TestCollectLocal:
    def test_no_roots(self, tmp_path):
        dataset = collect_local(2025, roots=[tmp_path / "nothing"])
        assert dataset.roots == ()
        assert dataset.stats_cache.reason is AbsentReason.MISSING
        assert dataset.history == ()

    def test_reads_everything(self, make_root):
        root = make_root(
            cache=_cache(),
            history=[
                _history(_ms(2025, 4, 1), project="/work/app"),
                _history(_ms(2025, 4, 2), project="/work/site", session="s2"),
                _history(_ms(2024, 4, 2)),
            ],
            sessions={"-work-app/s1.jsonl": [_assistant("2024-12-01T00:00:00Z")]},
        )
        dataset = collect_local(2025, roots=[root])
        assert dataset.roots == (root,)
        assert isinstance(dataset.stats_cache, UsageCache)
        assert len(dataset.history) == 2
        assert dataset.projects == ("app", "site")
        assert dataset.oldest_session_timestamp == "2024-12-01T00:00:00Z"
        assert dataset.session_messages == ()

    def test_scan_transcripts(self, make_root):
        root = make_root(sessions={"-w/s1.jsonl": [_assistant("2025-03-01T12:00:00Z")]})
        dataset = collect_local(2025, roots=[root], scan_transcripts=True)
        assert len(dataset.session_messages) == 1

    def test_multiple_roots_merge_additively(self, make_root):
        new = make_root(
            ".config/claude",
            cache=_cache(messages=5, first="2025-03-01T00:00:00Z"),
            history=[_history(_ms(2025, 4, 1))],
        )
        old = make_root(
            ".claude",
            cache=_cache(messages=7, first="2025-01-01T00:00:00Z"),
            history=[_history(_ms(2025, 4, 3))],
        )
        dataset = collect_local(2025, roots=[new, old])
        cache = dataset.stats_cache
        assert cache.daily_activity[0].message_count == 12
        assert cache.total_messages == 12
        assert cache.first_session_date == "2025-01-01T00:00:00Z"
        assert cache.model_usage["claude-sonnet-4-20250514"].output_tokens == 200
        assert len(dataset.history) == 2

    def test_non_string_first_session_date_is_ignored(self, make_root):
        bad = make_root(".config/claude", cache={**_cache(), "firstSessionDate": 12345})
        good = make_root(".claude", cache=_cache(first="2025-01-01T00:00:00Z"))
        dataset = collect_local(2025, roots=[bad, good])
        assert dataset.stats_cache.first_session_date == "2025-01-01T00:00:00Z"
        assert dataset.stats_cache.total_messages == 10

    def test_single_root_cache_passes_through(self, make_root):
        root = make_root(cache=_cache(messages=9))
        expected = read_stats_cache(root)
        assert collect_local(2025, roots=[root]).stats_cache == expected
