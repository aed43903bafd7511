"""Tests for the local and GitHub content fetchers."""

from __future__ import annotations

import asyncio
import http.client
from pathlib import Path

import pytest

from unfold import fetcher as fetcher_module
from unfold.errors import FetchError
from unfold.fetcher import GitHubFetcher, LocalFetcher, build_fetcher
from unfold.models import FilePayload


def _populate(base: Path, structure: dict) -> None:
    for name, content in structure.items():
        path = base / name
        if isinstance(content, dict):
            path.mkdir(parents=True, exist_ok=True)
            _populate(path, content)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")


class TestLocalFetcher:
    def test_list_directory(self, tmp_path):
        _populate(tmp_path, {"b.js": "b", "a.py": "a", "src": {"x.js": "x"}})
        fetcher = LocalFetcher(tmp_path)
        entries = asyncio.run(fetcher.list_directory(""))
        assert [(e.name, e.path, e.type) for e in entries] == [
            ("a.py", "a.py", "file"),
            ("b.js", "b.js", "file"),
            ("src", "src", "dir"),
        ]
        nested = asyncio.run(fetcher.list_directory("src"))
        assert nested[0].path == "src/x.js"

    def test_name_is_directory_name(self, tmp_path):
        repo = tmp_path / "ghost"
        repo.mkdir()
        assert LocalFetcher(repo).name == "ghost"

    def test_get_file_content(self, tmp_path):
        _populate(tmp_path, {"src": {"x.js": "const x = 1;"}})
        assert asyncio.run(LocalFetcher(tmp_path).get_file_content("src/x.js")) == "const x = 1;"

    def test_missing_paths_raise(self, tmp_path):
        fetcher = LocalFetcher(tmp_path)
        with pytest.raises(FetchError):
            asyncio.run(fetcher.list_directory("nope"))
        with pytest.raises(FetchError):
            asyncio.run(fetcher.get_file_content("nope.js"))

    def test_escaping_the_root_raises(self, tmp_path):
        repo = tmp_path / "repo"
        repo.mkdir()
        (tmp_path / "secret.txt").write_text("x", encoding="utf-8")
        with pytest.raises(FetchError):
            asyncio.run(LocalFetcher(repo).get_file_content("../secret.txt"))

    def test_unreadable_directory_raises_fetch_error(self, tmp_path, monkeypatch):
        _populate(tmp_path, {"src": {"x.js": "const x = 1;"}})

        def denied(self):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(Path, "iterdir", denied)
        with pytest.raises(FetchError):
            asyncio.run(LocalFetcher(tmp_path).list_directory("src"))


class TestGitHubFetcher:
    def test_from_slug(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        fetcher = GitHubFetcher.from_slug("TryGhost/Ghost")
        assert fetcher.config.full_name == "TryGhost/Ghost"
        assert fetcher.name == "Ghost"
        assert "Authorization" not in fetcher._headers()

    def test_token_header(self):
        fetcher = GitHubFetcher.from_slug("TryGhost/Ghost", token="abc")
        assert fetcher._headers()["Authorization"] == "Bearer abc"

    def test_contents_url(self):
        fetcher = GitHubFetcher.from_slug("o/r", token="")
        assert fetcher._contents_url("/src/a b.js") == "https://api.github.com/repos/o/r/contents/src/a%20b.js"

    def test_list_directory_keeps_files_and_dirs(self, monkeypatch):
        fetcher = GitHubFetcher.from_slug("o/r", token="")
        listing = [
            {"name": "src", "path": "src", "type": "dir"},
            {"name": "index.js", "path": "index.js", "type": "file"},
            {"name": "link", "path": "link", "type": "symlink"},
        ]
        monkeypatch.setattr(fetcher, "_get_sync", lambda path: listing)
        entries = asyncio.run(fetcher.list_directory(""))
        assert [(e.name, e.type) for e in entries] == [("src", "dir"), ("index.js", "file")]

    def test_list_directory_on_a_file_raises(self, monkeypatch):
        fetcher = GitHubFetcher.from_slug("o/r", token="")
        monkeypatch.setattr(fetcher, "_get_sync", lambda path: {"type": "file"})
        with pytest.raises(FetchError):
            asyncio.run(fetcher.list_directory("index.js"))

    def test_get_file_content_returns_encoded_payload(self, monkeypatch):
        fetcher = GitHubFetcher.from_slug("o/r", token="")
        data = {"type": "file", "content": "Y29uc3QgeCA9IDE7", "encoding": "base64", "size": 12}
        monkeypatch.setattr(fetcher, "_get_sync", lambda path: data)
        payload = asyncio.run(fetcher.get_file_content("index.js"))
        assert payload == FilePayload(content="Y29uc3QgeCA9IDE7", encoding="base64", size=12)

    def test_get_file_content_on_a_directory_raises(self, monkeypatch):
        fetcher = GitHubFetcher.from_slug("o/r", token="")
        monkeypatch.setattr(fetcher, "_get_sync", lambda path: [])
        with pytest.raises(FetchError):
            asyncio.run(fetcher.get_file_content("src"))

    @pytest.mark.parametrize(
        "error",
        [ConnectionResetError(104, "Connection reset by peer"), http.client.IncompleteRead(b"{\"ty")],
    )
    def test_transport_errors_become_fetch_errors(self, monkeypatch, error):
        def broken(req, timeout):
            raise error

        monkeypatch.setattr(fetcher_module.urllib.request, "urlopen", broken)
        fetcher = GitHubFetcher.from_slug("o/r", token="")
        with pytest.raises(FetchError) as info:
            fetcher._get_sync("src/a.js")
        assert info.value.retryable


class TestBuildFetcher:
    def test_directory(self, tmp_path):
        assert isinstance(build_fetcher(str(tmp_path)), LocalFetcher)

    def test_slug(self):
        fetcher = build_fetcher("TryGhost/Ghost", token="")
        assert isinstance(fetcher, GitHubFetcher)
        assert fetcher.config.owner == "TryGhost"

    def test_invalid_target(self):
        with pytest.raises(ValueError):
            build_fetcher("not-a-dir-or-slug")
