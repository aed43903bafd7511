"""Path explorer -- find the parts of an unknown repository worth reading."""

from __future__ import annotations

import logging

from .errors import ExplorationCancelled, FetchError
from .fetcher import ContentFetcher
from .models import DirEntry, UnfoldConfig
from .processor import FileProcessor
from .scanner import is_interesting_dir, is_source_file
from .tracker import ExplorationTracker

logger = logging.getLogger(__name__)

# Conventional source roots, in the order they are tried.
BASE_CANDIDATES: tuple[str, ...] = (
    "", "src", "app", "lib", "server", "api", "services", "core",
    "packages", "apps", "backend", "modules",
)


def candidate_paths(
    repo_name: str | None = None,
    *,
    extra_paths: list[str] | None = None,
    successful_patterns: list[str] | None = None,
) -> list[str]:
    """Ordered, deduplicated list of directories to try.

    Previously successful patterns come first, then configured paths, then
    the conventional roots and their repo-name variants.
    """
    ordered: list[str] = []
    ordered.extend(successful_patterns or [])
    ordered.extend(p.strip("/") for p in (extra_paths or []))
    ordered.extend(BASE_CANDIDATES)
    if repo_name:
        ordered.extend([repo_name, f"src/{repo_name}", f"packages/{repo_name}"])
    return list(dict.fromkeys(ordered))


class PathExplorer:
    """Walks candidate directories and feeds files to a :class:`FileProcessor`.

    ``successful_patterns`` is owned by the session and shared by reference;
    it only ever grows here.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        processor: FileProcessor,
        *,
        successful_patterns: list[str] | None = None,
        tracker: ExplorationTracker | None = None,
        config: UnfoldConfig | None = None,
        extra_paths: list[str] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.processor = processor
        self.successful_patterns = successful_patterns if successful_patterns is not None else []
        self.tracker = tracker or ExplorationTracker()
        self.config = config or UnfoldConfig()
        self.extra_paths = extra_paths or []

    def _remember(self, path: str) -> None:
        if path not in self.successful_patterns:
            self.successful_patterns.append(path)

    def candidates(self) -> list[str]:
        return candidate_paths(
            getattr(self.fetcher, "name", None),
            extra_paths=self.extra_paths,
            successful_patterns=self.successful_patterns,
        )

    async def _explore_candidate(self, path: str) -> bool:
        self.tracker.attempt(path)
        try:
            listing: list[DirEntry] = await self.fetcher.list_directory(path)
        except FetchError as exc:
            logger.debug("Candidate %r not accessible: %s", path or "/", exc)
            self.tracker.error(f"{path or '/'}: {exc}")
            return False
        except ExplorationCancelled:
            raise
        except Exception as exc:
            logger.warning("Candidate %r failed unexpectedly: %r", path or "/", exc)
            self.tracker.error(f"{path or '/'}: {exc!r}")
            return False
        self.processor.check_current()
        self.tracker.enter_directory(path)

        files = [e.path for e in listing if e.type == "file" and is_source_file(e.path)]
        results = await self.processor.process_files(files)
        found = any(r.files_processed for r in results)

        for entry in listing:
            if entry.type != "dir" or not is_interesting_dir(entry.name):
                continue
            if self.processor.limit_reached():
                break
            self._remember(path)
            sub = await self.processor.process_module(entry.path, depth=1)
            found = found or sub.files_processed > 0

        if found:
            self.tracker.path_succeeded(path)
        return found

    async def explore(self) -> bool:
        """Try every candidate; True iff at least one file was processed.

        A failing candidate is logged and skipped.  Raises only
        :class:`~unfold.errors.ExplorationCancelled`.
        """
        candidates = self.candidates()
        self.tracker.start(len(candidates))
        logger.info("Exploring %d candidate paths", len(candidates))

        any_processed = False
        for path in candidates:
            self.processor.check_current()
            if self.processor.limit_reached():
                logger.info("Stopping after %d files (max_files)", self.processor.fetched)
                break
            if await self._explore_candidate(path):
                any_processed = True

        self.tracker.finish()
        snap = self.tracker.snapshot()
        logger.info(
            "Exploration finished: %d files from %d paths (%d errors)",
            snap.files_processed, snap.successful_paths, len(snap.connection_errors),
        )
        return any_processed
