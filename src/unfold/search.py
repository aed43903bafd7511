"""Keyword-overlap retrieval over the knowledge store.

Scores are the fraction of query keywords an entry covers, so an entry
with many unrelated keywords is never penalized.  Recall-oriented on
purpose; there is no IDF or length normalization.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .keywords import tokenize_query
from .models import KnowledgeEntry

logger = logging.getLogger(__name__)

# Entries must score strictly above this to be returned.
MIN_SCORE = 0.1


@dataclass
class SearchResult:
    entry: KnowledgeEntry
    score: float


def score(entry: KnowledgeEntry, query_keywords: Sequence[str]) -> float:
    """``|entry.keywords & query| / |query|``; 0.0 for an empty query."""
    if not query_keywords:
        return 0.0
    query_set = set(query_keywords)
    overlap = len(query_set.intersection(entry.keywords))
    return overlap / len(query_set)


def rank(entries: Iterable[KnowledgeEntry], query: str) -> list[SearchResult]:
    """Scored matches, best first; ties keep insertion order."""
    query_keywords = tokenize_query(query)
    if not query_keywords:
        return []

    results = []
    for entry in entries:
        s = score(entry, query_keywords)
        if s > MIN_SCORE:
            results.append(SearchResult(entry=entry, score=s))

    # sorted() is stable
    results = sorted(results, key=lambda r: r.score, reverse=True)
    logger.debug("Query %r -> %d keywords, %d matches", query, len(query_keywords), len(results))
    return results


def search(entries: Iterable[KnowledgeEntry], query: str, limit: int | None = None) -> list[KnowledgeEntry]:
    """Matching entries only, best first.  Never mutates *entries*."""
    ranked = [r.entry for r in rank(entries, query)]
    return ranked[:limit] if limit is not None else ranked
