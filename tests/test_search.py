"""Tests for keyword-overlap retrieval."""

from __future__ import annotations

from unfold.models import EntryType, KnowledgeEntry
from unfold.search import MIN_SCORE, rank, score, search


def _entry(entry_id: str, keywords: list[str], path: str = "src/a.js") -> KnowledgeEntry:
    return KnowledgeEntry(
        id=entry_id,
        type=EntryType.comment,
        content=" ".join(keywords),
        file_path=path,
        keywords=keywords,
    )


class TestScore:
    def test_fraction_of_query_covered(self):
        entry = _entry("1", ["subscription", "payment", "stripe"])
        assert score(entry, ["subscription", "payment", "work"]) == 2 / 3

    def test_empty_query_scores_zero(self):
        assert score(_entry("1", ["anything"]), []) == 0.0

    def test_extra_entry_keywords_do_not_penalize(self):
        small = _entry("1", ["payment"])
        large = _entry("2", ["payment"] + [f"word{i}" for i in range(50)])
        assert score(small, ["payment", "refund"]) == score(large, ["payment", "refund"])

    def test_bounded(self):
        entry = _entry("1", ["alpha", "beta"])
        assert 0.0 <= score(entry, ["alpha", "beta"]) <= 1.0
        assert score(entry, ["alpha", "beta"]) == 1.0


class TestSearch:
    def test_scenario_two_of_three(self):
        entry = _entry("1", ["subscription", "payment", "stripe"])
        results = rank([entry], "How does subscription payment work?")
        assert len(results) == 1
        assert abs(results[0].score - 0.6667) < 1e-3

    def test_empty_query_returns_nothing(self):
        entries = [_entry("1", ["payment"])]
        assert search(entries, "") == []
        assert search(entries, "how does the") == []

    def test_threshold_is_strict(self):
        # 1 of 10 query keywords -> exactly MIN_SCORE, excluded
        query = "alpha bravo charlie delta echo foxtrot golf hotel india juliet"
        entry = _entry("1", ["alpha"])
        assert score(entry, query.split()) == MIN_SCORE
        assert search([entry], query) == []

    def test_sorted_by_score_descending(self):
        low = _entry("low", ["payment"])
        high = _entry("high", ["payment", "refund"])
        results = search([low, high], "payment refund")
        assert [e.id for e in results] == ["high", "low"]

    def test_ties_keep_insertion_order(self):
        entries = [_entry(str(i), ["payment"]) for i in range(5)]
        assert [e.id for e in search(entries, "payment")] == ["0", "1", "2", "3", "4"]

    def test_deterministic(self):
        entries = [_entry(str(i), ["payment", f"key{i}"]) for i in range(10)]
        first = [e.id for e in search(entries, "payment key3")]
        second = [e.id for e in search(entries, "payment key3")]
        assert first == second
        assert first[0] == "3"

    def test_limit(self):
        entries = [_entry(str(i), ["payment"]) for i in range(5)]
        assert len(search(entries, "payment", limit=2)) == 2

    def test_does_not_mutate_input(self):
        entries = [_entry("b", ["payment"]), _entry("a", ["payment", "refund"])]
        snapshot = [e.model_copy(deep=True) for e in entries]
        search(entries, "payment refund")
        assert entries == snapshot
