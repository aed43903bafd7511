"""Content fetchers -- directory listings and file bodies from a repository.

The core only sees the :class:`ContentFetcher` protocol.  Network latency,
timeouts and authentication live here; callers distinguish nothing beyond
"succeeded" and ``FetchError``.
"""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Protocol, runtime_checkable

from .errors import FetchError
from .models import DirEntry, FilePayload, RepositoryConfig

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


@runtime_checkable
class ContentFetcher(Protocol):
    """Interface every repository transport must satisfy."""

    name: str

    async def list_directory(self, path: str) -> list[DirEntry]:
        """Return the entries of *path* ("" is the repository root)."""
        ...

    async def get_file_content(self, path: str) -> str | FilePayload:
        """Return the body of *path*, plain or transport-encoded."""
        ...


# ---------------------------------------------------------------------------
# Local checkout
# ---------------------------------------------------------------------------


class LocalFetcher:
    """Serves a directory on disk as if it were a remote repository."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()
        self.name = self.root.name

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve() if path else self.root
        if target != self.root and self.root not in target.parents:
            raise FetchError(f"Path escapes repository root: {path}", path=path)
        return target

    async def list_directory(self, path: str) -> list[DirEntry]:
        target = self._resolve(path)
        if not target.is_dir():
            raise FetchError(f"Not found: {path or '/'}", path=path)
        try:
            children = sorted(target.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise FetchError(f"Could not list {path or '/'}: {exc}", path=path) from exc
        entries: list[DirEntry] = []
        for child in children:
            rel = child.relative_to(self.root).as_posix()
            if child.is_dir():
                entries.append(DirEntry(name=child.name, path=rel, type="dir"))
            elif child.is_file():
                entries.append(DirEntry(name=child.name, path=rel, type="file"))
        return entries

    async def get_file_content(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise FetchError(f"Not found: {path}", path=path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8", errors="replace")
        except OSError as exc:
            raise FetchError(f"Could not read {path}: {exc}", path=path) from exc


# ---------------------------------------------------------------------------
# GitHub REST contents API
# ---------------------------------------------------------------------------


class GitHubFetcher:
    """Minimal GitHub contents client using stdlib only.

    Blocking requests run via ``asyncio.to_thread``.  File bodies are
    returned base64-encoded, exactly as the API delivers them.
    """

    def __init__(
        self,
        config: RepositoryConfig,
        *,
        base_url: str = GITHUB_API_URL,
        timeout: float = 10.0,
    ) -> None:
        self.config = config
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.name = config.repo
        self.rate_limit_remaining: int | None = None

    @classmethod
    def from_slug(cls, slug: str, token: str | None = None) -> GitHubFetcher:
        """Build a fetcher from ``owner/repo``."""
        owner, _, repo = slug.partition("/")
        token = token if token is not None else os.environ.get("GITHUB_TOKEN", "")
        return cls(RepositoryConfig(owner=owner, repo=repo, token=token.strip()))

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "unfold",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _contents_url(self, path: str) -> str:
        quoted = urllib.parse.quote(path.strip("/"))
        return f"{self.base_url}/repos/{self.config.owner}/{self.config.repo}/contents/{quoted}"

    def _get_sync(self, path: str) -> object:
        req = urllib.request.Request(self._contents_url(path), headers=self._headers(), method="GET")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                remaining = resp.headers.get("X-RateLimit-Remaining")
                if remaining is not None and remaining.isdigit():
                    self.rate_limit_remaining = int(remaining)
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            retryable = exc.code in (403, 429) or exc.code >= 500
            raise FetchError(
                f"GitHub contents error ({exc.code}) for {path or '/'}: {body[:200]}",
                path=path,
                retryable=retryable,
            ) from exc
        except (OSError, http.client.HTTPException) as exc:
            raise FetchError(f"GitHub request failed for {path or '/'}: {exc}", path=path, retryable=True) from exc
        except ValueError as exc:
            raise FetchError(f"GitHub returned invalid JSON for {path or '/'}", path=path) from exc

    async def list_directory(self, path: str) -> list[DirEntry]:
        data = await asyncio.to_thread(self._get_sync, path)
        if not isinstance(data, list):
            raise FetchError(f"Not a directory: {path}", path=path)
        entries: list[DirEntry] = []
        for item in data:
            kind = item.get("type")
            if kind not in ("file", "dir"):
                continue
            entries.append(DirEntry(name=item["name"], path=item["path"], type=kind))
        return entries

    async def get_file_content(self, path: str) -> FilePayload:
        data = await asyncio.to_thread(self._get_sync, path)
        if not isinstance(data, dict) or data.get("type") != "file":
            raise FetchError(f"Not a file: {path}", path=path)
        return FilePayload(
            content=data.get("content") or "",
            encoding=data.get("encoding"),
            size=data.get("size"),
        )


def build_fetcher(target: str, token: str | None = None) -> LocalFetcher | GitHubFetcher:
    """Local directory if *target* exists on disk, else ``owner/repo`` on GitHub."""
    candidate = Path(target).expanduser()
    if candidate.is_dir():
        return LocalFetcher(candidate)
    if target.count("/") == 1 and not target.startswith((".", "/")):
        return GitHubFetcher.from_slug(target, token)
    raise ValueError(f"{target!r} is neither a directory nor an owner/repo slug")
