"""Base protocol for content extractors."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models import ExtractedKnowledge


@runtime_checkable
class Extractor(Protocol):
    """Interface that every content extractor must satisfy.

    Implementations:
      - PatternExtractor  (regex / line-scanning heuristics, default)
    """

    def extract(self, content: str, file_path: str) -> ExtractedKnowledge:
        """Decompose one file's text into comments, functions, exports and the rest."""
        ...
