"""Shared fixtures for building fake Claude Code storage roots."""

from __future__ import annotations

import json
from pathlib import Path

import pytest


def _write_jsonl(path: Path, records: list) -> None:
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.fixture
def make_root(tmp_path):
    """Create a storage root with optional cache, history and transcripts.

    `sessions` maps "project-folder/file.jsonl" to a list of records; plain
    strings are written verbatim so tests can include malformed lines.
    """

    def _make(name=".claude", cache=None, history=None, sessions=None):
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        if cache is not None:
            text = cache if isinstance(cache, str) else json.dumps(cache)
            (root / "stats-cache.json").write_text(text, encoding="utf-8")
        if history is not None:
            _write_jsonl(root / "history.jsonl", history)
        for relative, records in (sessions or {}).items():
            path = root / "projects" / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            _write_jsonl(path, records)
        return root

    return _make
