"""Thread-safe exploration progress tracker for polling clients."""

from __future__ import annotations

import threading
import time
from typing import Any

from .models import ExplorationProgress, ExplorationStatus


class ExplorationTracker:
    """Accumulates exploration counters and serves snapshots.

    Written from the event loop, read from HTTP handler threads, hence the
    lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._status = ExplorationStatus.idle
        self._total_candidates = 0
        self._attempts = 0
        self._successful: list[str] = []
        self._files: list[str] = []
        self._directories: list[str] = []
        self._errors: list[str] = []
        self._current = ""
        self._started_at: float | None = None
        self._finished_at: float | None = None
        self._error: str | None = None
        # Event recording for diagnostics
        self._events: list[dict[str, Any]] = []
        self._start_time = time.time()

    def _record(self, kind: str, **data: Any) -> None:
        self._events.append({"type": kind, "timestamp": time.time() - self._start_time, **data})

    def reset(self) -> None:
        with self._lock:
            self._reset_locked()

    def start(self, total_candidates: int) -> None:
        with self._lock:
            self._reset_locked()
            self._status = ExplorationStatus.exploring
            self._total_candidates = max(0, total_candidates)
            self._started_at = time.monotonic()
            self._record("start", candidates=self._total_candidates)

    def attempt(self, path: str) -> None:
        """A candidate directory is about to be listed."""
        with self._lock:
            self._attempts += 1
            self._current = path
            self._record("attempt", path=path)

    def enter_directory(self, path: str) -> None:
        with self._lock:
            self._current = path
            if path not in self._directories:
                self._directories.append(path)

    def path_succeeded(self, path: str) -> None:
        with self._lock:
            if path not in self._successful:
                self._successful.append(path)
            self._record("success", path=path)

    def file_processed(self, path: str) -> None:
        with self._lock:
            self._files.append(path)

    def error(self, message: str) -> None:
        with self._lock:
            self._errors.append(message)
            self._record("error", message=message)

    def finish(self) -> None:
        with self._lock:
            self._status = ExplorationStatus.complete
            self._finished_at = time.monotonic()
            self._current = ""
            self._record("complete", files=len(self._files))

    def fail(self, message: str) -> None:
        with self._lock:
            self._status = ExplorationStatus.error
            self._error = message
            self._finished_at = time.monotonic()
            self._record("fail", message=message)

    def _progress_locked(self) -> int:
        if self._status in (ExplorationStatus.complete, ExplorationStatus.error):
            return 100
        if self._status == ExplorationStatus.idle or not self._total_candidates:
            return 0
        return min(99, int(self._attempts * 100 / self._total_candidates))

    def snapshot(self) -> ExplorationProgress:
        with self._lock:
            if self._started_at is None:
                duration = 0.0
            else:
                end = self._finished_at if self._finished_at is not None else time.monotonic()
                duration = round(end - self._started_at, 2)
            return ExplorationProgress(
                progress=self._progress_locked(),
                status=self._status,
                total_attempts=self._attempts,
                successful_paths=len(self._successful),
                files_processed=len(self._files),
                current_directory=self._current,
                scan_duration=duration,
                connection_errors=list(self._errors),
                scanned_files=list(self._files),
                directories_explored=list(self._directories),
                error=self._error,
            )

    def successful_paths(self) -> list[str]:
        with self._lock:
            return list(self._successful)

    def export_events(self) -> list[dict[str, Any]]:
        """Recorded events, copied."""
        with self._lock:
            return list(self._events)
