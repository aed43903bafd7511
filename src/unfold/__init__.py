"""Unfold - Q&A over source repositories via heuristic knowledge extraction."""

__version__ = "0.1.0"

from .models import (  # noqa: E402,F401 -- public re-exports
    Answer,
    EntryType,
    ExplorationProgress,
    KnowledgeEntry,
    KnowledgeStats,
    Reference,
    UnfoldConfig,
    VisualContext,
)
from .fetcher import ContentFetcher, GitHubFetcher, LocalFetcher, build_fetcher  # noqa: E402
from .llm import LLMClient  # noqa: E402
from .session import KnowledgeSession  # noqa: E402

__all__ = [
    "Answer",
    "ContentFetcher",
    "EntryType",
    "ExplorationProgress",
    "GitHubFetcher",
    "KnowledgeEntry",
    "KnowledgeSession",
    "KnowledgeStats",
    "LLMClient",
    "LocalFetcher",
    "Reference",
    "UnfoldConfig",
    "VisualContext",
    "build_fetcher",
]
