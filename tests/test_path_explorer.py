"""Tests for candidate-path exploration."""

from __future__ import annotations

import asyncio

from fakes import FailingFetcher, FakeFetcher
from unfold.explorer import BASE_CANDIDATES, PathExplorer, candidate_paths
from unfold.models import ExplorationStatus, UnfoldConfig
from unfold.processor import FileProcessor
from unfold.store import KnowledgeStore
from unfold.tracker import ExplorationTracker

REPO = {
    "README.md": "# Demo\n\nA demo repository for tests.\n",
    "src/index.js": "// application entry point\nconst app = createApp();\n",
    "src/services/billing.js": "// billing service for members\nfunction bill(member) { return member; }\n",
}


def _explorer(fetcher, config: UnfoldConfig | None = None, **kwargs) -> PathExplorer:
    tracker = ExplorationTracker()
    processor = FileProcessor(fetcher, KnowledgeStore(), tracker=tracker, config=config)
    return PathExplorer(fetcher, processor, tracker=tracker, config=config, **kwargs)


class TestCandidatePaths:
    def test_order(self):
        paths = candidate_paths("ghost", extra_paths=["/custom/"], successful_patterns=["core/server"])
        assert paths[0] == "core/server"
        assert paths[1] == "custom"
        assert paths[2:2 + len(BASE_CANDIDATES)] == list(BASE_CANDIDATES)
        assert paths[-3:] == ["ghost", "src/ghost", "packages/ghost"]

    def test_deduplicated(self):
        paths = candidate_paths(successful_patterns=["src"])
        assert paths[0] == "src"
        assert paths.count("src") == 1

    def test_root_comes_first_without_hints(self):
        assert candidate_paths()[0] == ""


class TestExplore:
    def test_all_candidates_fail(self):
        fetcher = FailingFetcher()
        explorer = _explorer(fetcher)

        assert asyncio.run(explorer.explore()) is False

        assert len(explorer.processor.store) == 0
        snap = explorer.tracker.snapshot()
        assert snap.status == ExplorationStatus.complete
        assert len(snap.connection_errors) == len(explorer.candidates())
        assert fetcher.list_requests == explorer.candidates()

    def test_finds_files_and_learns_patterns(self):
        fetcher = FakeFetcher(REPO)
        explorer = _explorer(fetcher)

        assert asyncio.run(explorer.explore()) is True

        assert explorer.processor.processed == set(REPO)
        assert explorer.successful_patterns == ["src"]
        assert explorer.tracker.successful_paths() == ["", "src"]

    def test_failing_candidate_does_not_stop_exploration(self):
        fetcher = FakeFetcher(REPO, fail_dirs={""})
        explorer = _explorer(fetcher)

        assert asyncio.run(explorer.explore()) is True
        assert "README.md" not in explorer.processor.processed
        assert "src/services/billing.js" in explorer.processor.processed
        assert explorer.tracker.snapshot().connection_errors

    def test_unexpected_listing_error_is_isolated(self):
        fetcher = FakeFetcher(REPO, errors={"": ConnectionResetError(104, "Connection reset by peer")})
        explorer = _explorer(fetcher)

        assert asyncio.run(explorer.explore()) is True
        assert "src/index.js" in explorer.processor.processed
        assert any("ConnectionResetError" in e for e in explorer.tracker.snapshot().connection_errors)

    def test_every_file_in_a_candidate_directory_is_processed(self):
        files = {f"src/m{i:02d}.py": f"# module number {i}\n" for i in range(30)}
        explorer = _explorer(FakeFetcher(files))

        asyncio.run(explorer.explore())

        assert explorer.processor.processed == set(files)

    def test_stops_at_total_file_limit(self):
        files = {
            "lib/c.js": "// library helper c\n",
            "lib/d.js": "// library helper d\n",
            "src/a.js": "// source module a\n",
            "src/b.js": "// source module b\n",
            "app/e.js": "// application module e\n",
        }
        fetcher = FakeFetcher(files)
        explorer = _explorer(fetcher, config=UnfoldConfig(max_files=3))

        assert asyncio.run(explorer.explore()) is True

        assert fetcher.file_requests == ["lib/c.js", "lib/d.js", "src/a.js"]
        assert "app" not in fetcher.list_requests
        assert explorer.tracker.snapshot().status == ExplorationStatus.complete

    def test_second_run_uses_cache(self):
        fetcher = FakeFetcher(REPO)
        explorer = _explorer(fetcher)
        asyncio.run(explorer.explore())
        fetched = list(fetcher.file_requests)
        entries = len(explorer.processor.store)

        assert explorer.candidates()[0] == "src"
        asyncio.run(explorer.explore())

        assert fetcher.file_requests == fetched
        assert len(explorer.processor.store) == entries

    def test_extra_paths_tried_before_defaults(self):
        fetcher = FakeFetcher({"ghost/core/members.js": "// member management\n"})
        explorer = _explorer(fetcher, extra_paths=["ghost/core"])
        asyncio.run(explorer.explore())
        assert fetcher.list_requests[0] == "ghost/core"
        assert "ghost/core/members.js" in explorer.processor.processed

    def test_progress_complete(self):
        explorer = _explorer(FakeFetcher(REPO))
        asyncio.run(explorer.explore())
        snap = explorer.tracker.snapshot()
        assert snap.progress == 100
        assert snap.total_attempts == len(explorer.candidates())
        assert snap.files_processed == len(REPO)
