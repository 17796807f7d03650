"""Exporters for the computed wrapped stats."""

import json
from pathlib import Path

from .models import WrappedStats


def format_number(value: int) -> str:
    """Compact form like 1.2K or 3.4M for large counts."""
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if value >= threshold:
            return f"{value / threshold:.1f}".rstrip("0").rstrip(".") + suffix
    return str(value)


def format_duration(duration_ms: int) -> str:
    minutes = duration_ms // 60_000
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def export_json(stats: WrappedStats, output_file: Path) -> Path:
    """Export statistics to a JSON file."""
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(stats.to_dict(), f, indent=2)

    return output_file


def summary_lines(stats: WrappedStats) -> list:
    """Plain-text summary printed after the stats are computed."""
    lines = [
        f"Sessions:      {format_number(stats.total_sessions)}",
        f"Messages:      {format_number(stats.total_messages)}",
        f"Prompts:       {format_number(stats.total_prompts)}",
        f"Total Tokens:  {format_number(stats.total_tokens)}",
        f"Projects:      {format_number(stats.total_projects)}",
        f"Streak:        {stats.max_streak} days",
    ]
    if stats.most_active_day:
        lines.append(f"Most Active:   {stats.most_active_day.formatted_date}")
    if stats.top_models:
        lines.append(f"Top Model:     {stats.top_models[0].name}")
    if stats.has_cost_data:
        lines.append(f"Cost:          ${stats.total_cost:,.2f}")
    if stats.longest_session and stats.longest_session.duration_ms:
        lines.append(f"Longest:       {format_duration(stats.longest_session.duration_ms)}")
    return lines
