"""Extraction engine -- one pluggable extractor for every file."""

from __future__ import annotations

from .base import Extractor
from .pattern_extractor import PatternExtractor

__all__ = [
    "Extractor",
    "PatternExtractor",
    "get_extractor",
    "register",
    "reset_extractor",
]

_DEFAULT: Extractor = PatternExtractor()
_active: Extractor = _DEFAULT


def register(extractor: Extractor) -> None:
    """Install *extractor* as the process-wide default."""
    global _active
    if not isinstance(extractor, Extractor):
        raise TypeError(f"{type(extractor).__name__} does not implement extract(content, file_path)")
    _active = extractor


def get_extractor() -> Extractor:
    """Return the extractor new sessions use when none is passed explicitly."""
    return _active


def reset_extractor() -> None:
    """Restore the built-in heuristic extractor."""
    global _active
    _active = _DEFAULT
