"""Commit-history enrichment -- who last touched a file, and when.

``GitHistory`` wraps ``git log`` via ``subprocess`` for local checkouts.
Like every history provider it degrades to "no history" instead of
raising.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from .models import CommitInfo, KnowledgeEntry

logger = logging.getLogger(__name__)

# Unit separator keeps commit messages with tabs or pipes intact.
_FIELD_SEP = "\x1f"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%aI", "%an", "%s"])


@runtime_checkable
class HistoryProvider(Protocol):
    async def file_history(self, path: str) -> list[CommitInfo]:
        """Commits touching *path*, newest first (empty when unknown)."""
        ...


def _git_log(repo_root: Path, path: str, limit: int) -> list[CommitInfo]:
    try:
        result = subprocess.run(
            ["git", "log", f"-n{limit}", f"--format={_LOG_FORMAT}", "--", path],
            cwd=repo_root,
            capture_output=True,
            text=True,
            timeout=15,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git log unavailable for %s: %s", path, exc)
        return []
    if result.returncode != 0:
        logger.debug("git log failed for %s: %s", path, result.stderr.strip())
        return []

    commits = []
    for line in result.stdout.splitlines():
        parts = line.split(_FIELD_SEP)
        if len(parts) != 4:
            continue
        sha, date, author, message = parts
        commits.append(CommitInfo(sha=sha, date=date, author=author, message=message))
    return commits


class GitHistory:
    """File history from a local git checkout, cached per path."""

    def __init__(self, repo_root: Path, *, limit: int = 5) -> None:
        self.repo_root = Path(repo_root)
        self.limit = limit
        self._cache: dict[str, list[CommitInfo]] = {}

    async def file_history(self, path: str) -> list[CommitInfo]:
        if path not in self._cache:
            self._cache[path] = await asyncio.to_thread(_git_log, self.repo_root, path, self.limit)
        return self._cache[path]

    def clear(self) -> None:
        self._cache.clear()


async def enrich_with_history(entries: Iterable[KnowledgeEntry], provider: HistoryProvider) -> list[KnowledgeEntry]:
    """Copies of *entries* with ``last_updated``/``author`` from the newest commit.

    Entries without history are returned unchanged.  The store's own
    entries are never modified.
    """
    enriched: list[KnowledgeEntry] = []
    for entry in entries:
        commits = await provider.file_history(entry.file_path)
        if not commits:
            enriched.append(entry)
            continue
        newest = commits[0]
        enriched.append(entry.model_copy(update={"last_updated": newest.date, "author": newest.author or None}))
    return enriched


def _as_utc(value: str) -> datetime:
    # naive timestamps are read as UTC
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def latest_update(entries: Iterable[KnowledgeEntry]) -> str | None:
    """The most recent ``last_updated`` among entries that have an author."""
    dates = [e.last_updated for e in entries if e.author and e.last_updated]
    return max(dates, key=_as_utc) if dates else None
