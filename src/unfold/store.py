"""In-memory knowledge store -- append-only between clears."""

from __future__ import annotations

import hashlib
import logging
from collections import Counter
from collections.abc import Iterable, Iterator
from typing import Any

from .keywords import extract_keywords
from .models import EntryType, KnowledgeEntry, KnowledgeStats

logger = logging.getLogger(__name__)


class KnowledgeStore:
    """Ordered collection of :class:`KnowledgeEntry`.

    Insertion order is significant: the scorer breaks ties by it.  Only the
    processor appends; everything else reads.
    """

    def __init__(self) -> None:
        self._entries: list[KnowledgeEntry] = []
        self._counter = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[KnowledgeEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> list[KnowledgeEntry]:
        """A copy of the entries in insertion order."""
        return list(self._entries)

    def next_id(self, file_path: str, content: str) -> str:
        self._counter += 1
        digest = hashlib.sha1(f"{file_path}\0{content}".encode("utf-8")).hexdigest()[:8]
        return f"{self._counter}-{digest}"

    def add(
        self,
        entry_type: EntryType,
        content: str,
        file_path: str,
        *,
        keywords: Iterable[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> KnowledgeEntry:
        """Build and append one entry; keywords default to those of *content*."""
        entry = KnowledgeEntry(
            id=self.next_id(file_path, content),
            type=entry_type,
            content=content,
            file_path=file_path,
            keywords=list(dict.fromkeys(keywords)) if keywords is not None else extract_keywords(content),
            metadata=metadata or {},
        )
        self._entries.append(entry)
        return entry

    def append(self, entry: KnowledgeEntry) -> None:
        self._entries.append(entry)

    def extend(self, entries: Iterable[KnowledgeEntry]) -> None:
        self._entries.extend(entries)

    def clear(self) -> None:
        self._entries.clear()
        self._counter = 0

    def replace(self, entries: Iterable[KnowledgeEntry]) -> None:
        """Drop everything and load *entries* (used for the fallback dataset)."""
        self.clear()
        for entry in entries:
            self._counter += 1
            self._entries.append(entry)

    def stats(self, processed_files: int = 0) -> KnowledgeStats:
        by_type = Counter(e.type.value for e in self._entries)
        return KnowledgeStats(
            total_entries=len(self._entries),
            by_type=dict(by_type),
            processed_files=processed_files,
        )
