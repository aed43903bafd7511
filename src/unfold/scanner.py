"""File and directory classification used during exploration."""

from __future__ import annotations

from pathlib import PurePosixPath

# Directories never descended into.
SKIP_DIRS: set[str] = {
    ".git", ".venv", "venv", "__pycache__", "dist", "build", ".tox", ".eggs",
    "node_modules", ".mypy_cache", ".pytest_cache",
    "target",          # Rust / Java (Maven)
    "bin", "obj",      # C# / Go binaries
    ".next", ".nuxt",  # Next.js / Nuxt
    "vendor",          # Go vendor, PHP
    "coverage",        # test coverage output
    ".cache",          # generic caches
    "out", "tmp", "temp",
    "test", "tests", "__tests__", "spec", "__mocks__", "fixtures",
}

# Directory names containing any of these words are worth descending into.
INTEREST_VOCABULARY: tuple[str, ...] = (
    "api", "service", "controller", "model", "member", "content", "subscription",
    "job", "route", "handler", "core", "lib", "util", "component", "page",
    "hook", "store", "auth", "payment",
)

# Extension -> language/format name for files the extractor understands.
SOURCE_EXTENSIONS: dict[str, str] = {
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".vue": "vue",
    ".svelte": "svelte",
    ".go": "go",
    ".rb": "ruby",
    ".java": "java",
    ".kt": "kotlin",
    ".php": "php",
    ".hbs": "handlebars",
    ".html": "html",
    ".md": "markdown",
    ".mdx": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".ini": "ini",
    ".sh": "shell",
}

# Binary and generated assets, excluded before any fetch.
EXCLUDED_EXTENSIONS: set[str] = {
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".webp", ".bmp", ".avif",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".map",
    ".zip", ".gz", ".tgz", ".tar", ".rar", ".7z", ".jar",
    ".pdf", ".mp3", ".mp4", ".mov", ".wav", ".webm",
    ".lock", ".lockb",
    ".pyc", ".so", ".dll", ".exe", ".wasm",
}

EXCLUDED_NAMES: set[str] = {
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "bun.lockb", "poetry.lock",
    "Cargo.lock", "composer.lock", "Gemfile.lock", ".DS_Store", "Thumbs.db",
}


def is_excluded_file(path: str) -> bool:
    """Binary, asset or lock file -- never fetched."""
    p = PurePosixPath(path)
    if p.name in EXCLUDED_NAMES or p.name.endswith(".min.js"):
        return True
    return p.suffix.lower() in EXCLUDED_EXTENSIONS


def is_source_file(path: str) -> bool:
    """Recognized text format the extractor can work on."""
    if is_excluded_file(path):
        return False
    return PurePosixPath(path).suffix.lower() in SOURCE_EXTENSIONS


def is_interesting_dir(name: str) -> bool:
    lowered = name.lower()
    if lowered in SKIP_DIRS or lowered.startswith("."):
        return False
    return any(word in lowered for word in INTEREST_VOCABULARY)
