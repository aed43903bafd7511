"""File and module processing -- fetch, decode, extract, append."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from collections.abc import Callable
from pathlib import PurePosixPath

from .errors import DecodeError, ExplorationCancelled, FetchError
from .extractors import Extractor, get_extractor
from .fetcher import ContentFetcher
from .keywords import extract_keywords, path_keywords, split_identifier
from .models import EntryType, ExtractedKnowledge, FilePayload, ProcessResult, UnfoldConfig
from .scanner import is_excluded_file, is_interesting_dir, is_source_file
from .store import KnowledgeStore
from .tracker import ExplorationTracker

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n... (truncated)"
# Decoded files at or below this length get no whole-file entry.
MIN_WHOLE_FILE_CHARS = 10


def decode_payload(payload: str | FilePayload, path: str = "") -> str:
    """Turn a transport payload into text.  Raises :class:`DecodeError`."""
    if isinstance(payload, str):
        return payload
    encoding = (payload.encoding or "").lower()
    if encoding in ("", "utf-8", "utf8", "none"):
        return payload.content
    if encoding == "base64":
        try:
            return base64.b64decode(payload.content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise DecodeError(f"Could not decode {path}: {exc}", path=path) from exc
    raise DecodeError(f"Unsupported transport encoding {payload.encoding!r} for {path}", path=path)


def truncate_preview(content: str, limit: int) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + TRUNCATION_MARKER


_SERVICE_DEF_RE = re.compile(r"(?:const|let|var)\s+\w+\s*=\s*\{")
_IMPORT_FROM_RE = re.compile(r"""import.*from.*['"][^'"]+['"]|^from\s+\S+\s+import""", re.MULTILINE)
_CONFIG_VALUE_RE = re.compile(r"""\w+\s*[:=]\s*['"][^'"\n]+['"]""")
_CONFIG_OBJECT_RE = re.compile(r"\w+\s*[:=]\s*\{")
_ROUTE_CALL_RE = re.compile(r"(?:router\.|app\.)(?:get|post|put|delete|patch)\s*\(|@\w+\.(?:get|post|put|delete|patch|route)\(")
_ENDPOINT_RE = re.compile(r"""['"][^'"\n]*/[^'"\n]*['"]""")
_FUNCTION_RE = re.compile(r"function\s+\w+|const\s+\w+\s*=\s*\(|^\s*(?:async\s+)?def\s+\w+", re.MULTILINE)
_CLASS_WORD_RE = re.compile(r"class\s+\w+")


def content_summary(content: str, file_path: str) -> str | None:
    """One-line, count-based description of a file, or ``None``."""
    name = PurePosixPath(file_path).name.lower()

    def counted(*parts: tuple[str, int]) -> str:
        return ", ".join(f"{label.format(n)}" for label, n in parts if n)

    if "integration" in name or "service" in name:
        text = counted(
            ("Services: {} defined", len(_SERVICE_DEF_RE.findall(content))),
            ("Imports: {} external packages", len(_IMPORT_FROM_RE.findall(content))),
            ("Configs: {} configuration items", len(_CONFIG_VALUE_RE.findall(content))),
        )
        if text:
            return f"Integration File Summary: {text}"

    if "config" in name or "settings" in name:
        text = counted(
            ("Settings: {} configuration values", len(_CONFIG_VALUE_RE.findall(content))),
            ("Objects: {} configuration objects", len(_CONFIG_OBJECT_RE.findall(content))),
        )
        if text:
            return f"Configuration File Summary: {text}"

    if "api" in name or "endpoint" in name or "route" in name:
        text = counted(
            ("Routes: {} API routes", len(_ROUTE_CALL_RE.findall(content))),
            ("Endpoints: {} endpoints defined", len(_ENDPOINT_RE.findall(content))),
        )
        if text:
            return f"API File Summary: {text}"

    text = counted(
        ("{} lines", content.count("\n") + 1),
        ("{} functions", len(_FUNCTION_RE.findall(content))),
        ("{} classes", len(_CLASS_WORD_RE.findall(content))),
    )
    return f"File Summary: {text}" if text else None


def build_entries(
    store: KnowledgeStore,
    knowledge: ExtractedKnowledge,
    content: str,
    *,
    preview_chars: int = 2000,
) -> int:
    """Append every entry derivable from one file; return how many."""
    path = knowledge.file_path
    before = len(store)

    for comment in knowledge.jsdoc_comments + knowledge.inline_comments:
        store.add(EntryType.comment, comment, path)

    for func in knowledge.functions:
        text = f"function {func.name}({func.params}) {{ ... }}"
        store.add(
            EntryType.function,
            text,
            path,
            keywords=extract_keywords(f"{text} {split_identifier(func.name)} {func.body or ''}"),
            metadata={"name": func.name, "params": func.params, "line": func.line, "body": func.body},
        )

    for cls in knowledge.classes:
        extends = f" extends {cls.extends}" if cls.extends else ""
        text = f"Class: {cls.name}{extends} with methods: {', '.join(cls.methods)}"
        store.add(
            EntryType.class_,
            text,
            path,
            keywords=extract_keywords(f"class {split_identifier(cls.name)} {cls.name} {' '.join(cls.methods)}"),
            metadata={"name": cls.name, "methods": cls.methods, "extends": cls.extends, "line": cls.line},
        )

    for key, value in knowledge.exports.items():
        text = f"module.exports.{key} = {value}"
        store.add(
            EntryType.export,
            text,
            path,
            keywords=extract_keywords(f"{key} {split_identifier(key)} {value}"),
            metadata={"name": key, "value": value},
        )

    for text in knowledge.jsx_text_content:
        store.add(EntryType.text_content, text, path)

    for key, value in knowledge.structured_data.items():
        text = f"{key}: {value}"
        store.add(
            EntryType.structured_data,
            text,
            path,
            keywords=extract_keywords(f"{split_identifier(key)} {key} {value}"),
            metadata={"name": key},
        )

    for route in knowledge.api_routes:
        text = f"API Route: {route.method} {route.path} => {route.handler}"
        store.add(
            EntryType.api_route,
            text,
            path,
            keywords=extract_keywords(f"api route {route.method} {route.path} {split_identifier(route.handler)}"),
            metadata=route.model_dump(),
        )

    for model_name, fields in knowledge.database_schemas.items():
        text = f"Database Model: {model_name} with fields: {', '.join(fields)}"
        store.add(
            EntryType.database_model,
            text,
            path,
            keywords=extract_keywords(f"database model {split_identifier(model_name)} {' '.join(fields)}"),
            metadata={"name": model_name, "fields": fields},
        )

    for job in knowledge.jobs:
        if job.schedule:
            text = f"Scheduled Job: {job.name} runs on '{job.schedule}'"
            entry_type = EntryType.job_schedule
        else:
            text = f"Job: {job.name}"
            entry_type = EntryType.job_definition
        store.add(
            entry_type,
            text,
            path,
            keywords=extract_keywords(f"job schedule {split_identifier(job.name)}"),
            metadata=job.model_dump(),
        )

    if knowledge.markdown and (knowledge.markdown.title or knowledge.markdown.description):
        md = knowledge.markdown
        kind = "blog post" if "/posts/" in path or "/blog/" in path else "page"
        text = f"Documentation: {md.title or 'Untitled'}"
        if md.description:
            text += f" - {md.description}"
        store.add(
            EntryType.documentation,
            text,
            path,
            keywords=extract_keywords(f"{kind} {md.title or ''} {md.description or ''}"),
            metadata={"title": md.title, "description": md.description, "content_type": kind},
        )

    if len(content) > MIN_WHOLE_FILE_CHARS:
        preview = truncate_preview(content, preview_chars)
        keywords = path_keywords(path) + extract_keywords(preview)
        store.add(
            EntryType.file_content,
            preview,
            path,
            keywords=keywords,
            metadata={"size": len(content), "truncated": len(content) > preview_chars},
        )
        summary = content_summary(content, path)
        if summary:
            store.add(
                EntryType.content_summary,
                summary,
                path,
                keywords=path_keywords(path) + extract_keywords(summary),
            )

    return len(store) - before


class FileProcessor:
    """Turns repository paths into knowledge entries.

    ``processed`` is the session's processed-file cache; it is shared by
    reference so a refresh can clear it.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        store: KnowledgeStore,
        *,
        processed: set[str] | None = None,
        tracker: ExplorationTracker | None = None,
        extractor: Extractor | None = None,
        config: UnfoldConfig | None = None,
        is_current: Callable[[], bool] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.processed = processed if processed is not None else set()
        self.tracker = tracker
        self.extractor = extractor or get_extractor()
        self.config = config or UnfoldConfig()
        self._is_current = is_current or (lambda: True)
        self._sem = asyncio.Semaphore(max(1, self.config.concurrency))
        self.fetched = 0

    def limit_reached(self) -> bool:
        """True once this run has requested ``max_files`` files."""
        return self.fetched >= self.config.max_files

    def check_current(self) -> None:
        if not self._is_current():
            raise ExplorationCancelled("exploration superseded by a newer refresh")

    def _failed(self, path: str, reason: str) -> ProcessResult:
        if self.tracker is not None:
            self.tracker.error(f"{path}: {reason}")
        return ProcessResult(path=path, ok=False, reason=reason)

    # ------------------------------------------------------------------
    # Single files
    # ------------------------------------------------------------------

    async def _load(self, path: str) -> str | ProcessResult:
        """Fetch and decode, or a finished result when there is nothing to extract."""
        if path in self.processed:
            return ProcessResult(path=path, ok=True, skipped=True, reason="already processed")
        if is_excluded_file(path):
            return ProcessResult(path=path, ok=False, skipped=True, reason="excluded file type")
        if self.limit_reached():
            return ProcessResult(path=path, ok=False, skipped=True, reason="file limit reached")

        self.check_current()
        self.processed.add(path)
        self.fetched += 1
        try:
            async with self._sem:
                payload = await self.fetcher.get_file_content(path)
            text = decode_payload(payload, path)
        except FetchError as exc:
            logger.warning("Failed to fetch %s: %s", path, exc)
            return self._failed(path, str(exc))
        except DecodeError as exc:
            logger.warning("%s", exc)
            return self._failed(path, str(exc))
        except ExplorationCancelled:
            raise
        except Exception as exc:
            logger.warning("Unexpected error fetching %s: %r", path, exc)
            return self._failed(path, repr(exc))

        if len(text) > self.config.max_file_chars:
            logger.info("Skipping %s: %d chars exceeds the %d cap", path, len(text), self.config.max_file_chars)
            return ProcessResult(path=path, ok=True, skipped=True, reason="file too large")
        return text

    def _ingest(self, path: str, text: str) -> ProcessResult:
        self.check_current()
        try:
            knowledge = self.extractor.extract(text, path)
        except Exception as exc:  # third-party extractors may fail arbitrarily
            logger.warning("Extractor failed on %s: %s", path, exc)
            knowledge = ExtractedKnowledge(file_path=path)
        added = build_entries(self.store, knowledge, text, preview_chars=self.config.preview_chars)
        if self.tracker is not None:
            self.tracker.file_processed(path)
        logger.debug("Processed %s (%d entries)", path, added)
        return ProcessResult(path=path, ok=True, entries_added=added, files_processed=1)

    async def process_file(self, path: str) -> ProcessResult:
        """Process one file; failures come back as ``ok=False``, never raised."""
        loaded = await self._load(path)
        if isinstance(loaded, ProcessResult):
            return loaded
        return self._ingest(path, loaded)

    async def process_files(self, paths: list[str]) -> list[ProcessResult]:
        """Process *paths*, fetching up to ``concurrency`` at once.

        Entries are appended in the order of *paths* whatever order the
        fetches complete in.
        """
        if self.config.concurrency <= 1:
            return [await self.process_file(p) for p in paths]
        loaded = await asyncio.gather(*(self._load(p) for p in paths))
        results = []
        for path, item in zip(paths, loaded):
            results.append(item if isinstance(item, ProcessResult) else self._ingest(path, item))
        return results

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def process_module(self, path: str, depth: int = 0) -> ProcessResult:
        """Process up to ``max_files_per_directory`` files in *path* and
        recurse into interesting subdirectories while ``depth < max_depth``.
        """
        self.check_current()
        if self.limit_reached():
            logger.debug("File limit reached, not listing %s", path)
            return ProcessResult(path=path, ok=True, skipped=True, reason="file limit reached")
        if self.tracker is not None:
            self.tracker.enter_directory(path)
        try:
            listing = await self.fetcher.list_directory(path)
        except FetchError as exc:
            logger.warning("Failed to list %s: %s", path or "/", exc)
            return self._failed(path, str(exc))
        except ExplorationCancelled:
            raise
        except Exception as exc:
            logger.warning("Unexpected error listing %s: %r", path or "/", exc)
            return self._failed(path, repr(exc))
        self.check_current()

        files = [e.path for e in listing if e.type == "file" and is_source_file(e.path)]
        files = files[: self.config.max_files_per_directory]
        results = await self.process_files(files)

        processed = sum(r.files_processed for r in results)
        added = sum(r.entries_added for r in results)

        if depth < self.config.max_depth:
            for entry in listing:
                if entry.type != "dir" or not is_interesting_dir(entry.name):
                    continue
                if self.limit_reached():
                    break
                sub = await self.process_module(entry.path, depth + 1)
                processed += sub.files_processed
                added += sub.entries_added
        else:
            logger.debug("Depth limit reached at %s", path)

        return ProcessResult(path=path, ok=True, files_processed=processed, entries_added=added)
