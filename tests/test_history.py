"""Tests for commit-history enrichment."""

from __future__ import annotations

import asyncio
import subprocess

from unfold import history
from unfold.history import GitHistory, enrich_with_history, latest_update
from unfold.models import CommitInfo, EntryType, KnowledgeEntry


def _entry(path: str, **kwargs) -> KnowledgeEntry:
    return KnowledgeEntry(id=path, type=EntryType.comment, content="x", file_path=path, **kwargs)


class FakeHistory:
    def __init__(self, commits: dict[str, list[CommitInfo]]) -> None:
        self.commits = commits

    async def file_history(self, path: str) -> list[CommitInfo]:
        return self.commits.get(path, [])


class TestEnrich:
    def test_newest_commit_wins(self):
        provider = FakeHistory({
            "a.js": [
                CommitInfo(sha="2", date="2024-06-01T00:00:00+00:00", author="Bo"),
                CommitInfo(sha="1", date="2023-01-01T00:00:00+00:00", author="Ana"),
            ],
        })
        original = _entry("a.js")
        [enriched] = asyncio.run(enrich_with_history([original], provider))
        assert enriched.author == "Bo"
        assert enriched.last_updated == "2024-06-01T00:00:00+00:00"
        assert original.author is None

    def test_entries_without_history_unchanged(self):
        original = _entry("b.js")
        [same] = asyncio.run(enrich_with_history([original], FakeHistory({})))
        assert same is original


class TestLatestUpdate:
    def test_ignores_entries_without_author(self):
        entries = [
            _entry("a.js", last_updated="2024-01-01T00:00:00+00:00", author="Ana"),
            _entry("b.js", last_updated="2025-01-01T00:00:00+00:00"),
            _entry("c.js", last_updated="2024-03-01T00:00:00+00:00", author="Bo"),
        ]
        assert latest_update(entries) == "2024-03-01T00:00:00+00:00"

    def test_mixed_naive_and_aware_dates(self):
        entries = [
            _entry("a.js", last_updated="2024-06-01T12:00:00", author="Ana"),
            _entry("b.js", last_updated="2024-06-01T10:00:00-05:00", author="Bo"),
        ]
        assert latest_update(entries) == "2024-06-01T10:00:00-05:00"

    def test_none_when_no_history(self):
        assert latest_update([_entry("a.js")]) is None


class TestGitHistory:
    def test_parses_git_log(self, monkeypatch, tmp_path):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            out = "abc\x1f2024-05-01T10:00:00+02:00\x1fAna\x1ffix: billing | retries\nbroken line\n"
            return subprocess.CompletedProcess(cmd, 0, stdout=out, stderr="")

        monkeypatch.setattr(history.subprocess, "run", fake_run)
        git = GitHistory(tmp_path)
        commits = asyncio.run(git.file_history("src/billing.js"))
        assert commits == [
            CommitInfo(sha="abc", date="2024-05-01T10:00:00+02:00", author="Ana", message="fix: billing | retries"),
        ]

        asyncio.run(git.file_history("src/billing.js"))
        assert len(calls) == 1
        assert calls[0][-1] == "src/billing.js"

    def test_git_missing_means_no_history(self, monkeypatch, tmp_path):
        def fake_run(cmd, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(history.subprocess, "run", fake_run)
        assert asyncio.run(GitHistory(tmp_path).file_history("a.js")) == []

    def test_git_error_means_no_history(self, monkeypatch, tmp_path):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 128, stdout="", stderr="not a git repository")

        monkeypatch.setattr(history.subprocess, "run", fake_run)
        assert asyncio.run(GitHistory(tmp_path).file_history("a.js")) == []
