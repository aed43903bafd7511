"""Knowledge session -- owns all mutable state for one repository."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .answer import AnswerSynthesizer
from .errors import ExplorationCancelled
from .explorer import PathExplorer
from .extractors import Extractor
from .fallback import fallback_entries
from .fetcher import ContentFetcher
from .history import HistoryProvider, enrich_with_history
from .llm import Generator
from .models import Answer, ExplorationProgress, KnowledgeEntry, KnowledgeStats, UnfoldConfig
from .processor import FileProcessor
from .search import search
from .store import KnowledgeStore
from .tracker import ExplorationTracker

logger = logging.getLogger(__name__)


class KnowledgeSession:
    """Store, processed-file cache, successful paths and progress for one repo.

    Sessions are independent; nothing here is module-global.  A refresh
    bumps ``generation`` so an exploration started earlier stops at its
    next suspension point without touching the new store.
    """

    def __init__(
        self,
        fetcher: ContentFetcher | None = None,
        *,
        config: UnfoldConfig | None = None,
        generator: Generator | None = None,
        extractor: Extractor | None = None,
        history: HistoryProvider | None = None,
        extra_paths: list[str] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config or UnfoldConfig()
        self.extractor = extractor
        self.history = history
        self.extra_paths = list(extra_paths or [])
        self.synthesizer = AnswerSynthesizer(generator, config=self.config, history=history)

        self.store = KnowledgeStore()
        self.processed: set[str] = set()
        self.successful_patterns: list[str] = []
        self.tracker = ExplorationTracker()
        self.generation = 0
        self.degraded = False
        self.initialized = False
        self._task: asyncio.Task[bool] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop every entry, the processed-file cache and learned paths."""
        self.generation += 1
        self.store.clear()
        self.processed.clear()
        self.successful_patterns.clear()
        self.tracker = ExplorationTracker()
        self.degraded = False
        self.initialized = False

    def _use_fallback(self, reason: str) -> None:
        if not self.config.use_fallback_data:
            logger.warning("%s; fallback data disabled, store left empty", reason)
            return
        logger.warning("%s; using the built-in demo dataset", reason)
        self.store.replace(fallback_entries())
        self.degraded = True

    async def _build(self, token: int) -> bool:
        tracker = self.tracker

        def is_current() -> bool:
            return token == self.generation

        if self.fetcher is None:
            self._use_fallback("No repository configured")
            self.initialized = True
            return False

        processor = FileProcessor(
            self.fetcher,
            self.store,
            processed=self.processed,
            tracker=tracker,
            extractor=self.extractor,
            config=self.config,
            is_current=is_current,
        )
        explorer = PathExplorer(
            self.fetcher,
            processor,
            successful_patterns=self.successful_patterns,
            tracker=tracker,
            config=self.config,
            extra_paths=self.extra_paths,
        )
        try:
            ok = await explorer.explore()
        except ExplorationCancelled:
            logger.info("Exploration %d superseded by a refresh", token)
            return False
        except Exception as exc:
            logger.exception("Exploration failed")
            tracker.fail(str(exc))
            if is_current():
                self._use_fallback("Exploration failed")
                self.initialized = True
            return False

        if not is_current():
            return False
        if not ok or len(self.store) == 0:
            self._use_fallback("Repository scan returned no results")
        else:
            logger.info("Knowledge base ready: %d entries from %d files", len(self.store), len(self.processed))
        self.initialized = True
        return ok and not self.degraded

    async def initialize(self, force_refresh: bool = False) -> bool:
        """Build the knowledge base once; ``force_refresh`` rebuilds it.

        Returns True when real repository content was indexed.
        """
        if force_refresh:
            self.clear()
        elif self.initialized:
            return not self.degraded
        elif self._task is not None and not self._task.done():
            return await asyncio.shield(self._task)

        self._task = asyncio.ensure_future(self._build(self.generation))
        return await self._task

    async def refresh(self) -> bool:
        return await self.initialize(force_refresh=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int | None = None) -> list[KnowledgeEntry]:
        return search(self.store, query, limit)

    async def answer(self, query: str) -> Answer:
        if not self.initialized:
            await self.initialize()
        return await self.synthesizer.answer(query, self.store, degraded=self.degraded)

    async def enrich_with_history(self, entries: list[KnowledgeEntry]) -> list[KnowledgeEntry]:
        if self.history is None:
            return list(entries)
        return await enrich_with_history(entries, self.history)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> KnowledgeStats:
        return self.store.stats(processed_files=len(self.processed))

    def progress(self) -> ExplorationProgress:
        return self.tracker.snapshot()

    def diagnostics(self) -> dict[str, Any]:
        snap = self.tracker.snapshot()
        return {
            "repository": getattr(self.fetcher, "name", None),
            "knowledge_base_size": len(self.store),
            "degraded": self.degraded,
            "initialized": self.initialized,
            "generation": self.generation,
            "status": snap.status.value,
            "scanned_files": snap.scanned_files,
            "successful_paths": list(self.successful_patterns),
            "connection_errors": snap.connection_errors,
            "scan_duration": snap.scan_duration,
            "rate_limit_remaining": getattr(self.fetcher, "rate_limit_remaining", None),
        }
