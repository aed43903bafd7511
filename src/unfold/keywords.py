"""Keyword extraction and query tokenization."""

from __future__ import annotations

import re

# Tokens dropped from both queries and entry keywords.
STOP_WORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "with", "by", "of",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "can", "must", "shall",
    "how", "what", "when", "where", "which", "who", "why", "this", "that", "these", "those",
    "from", "into", "about", "there", "their", "them", "they", "you", "your", "its", "not",
})

# Extra keywords attached to entries that mention a term.
SEMANTIC_VARIATIONS: dict[str, tuple[str, ...]] = {
    "subtitle": ("subheading", "description", "label"),
    "settings": ("config", "configuration", "admin"),
    "membership": ("member", "subscription", "portal"),
    "component": ("ui", "interface", "element"),
    "page": ("view", "screen", "interface"),
}

MIN_TOKEN_LENGTH = 3

_NON_WORD_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")
_COMPOUND_RE = re.compile(r"[-_]")


def _clean(text: str) -> list[str]:
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    cleaned = _SPACE_RE.sub(" ", cleaned).strip()
    if not cleaned:
        return []
    return cleaned.split(" ")


def _keep(token: str) -> bool:
    return len(token) >= MIN_TOKEN_LENGTH and token not in STOP_WORDS


def tokenize_query(query: str) -> list[str]:
    """Return the deduplicated query keywords in order of appearance.

    Lowercases, strips non-word characters, collapses whitespace and drops
    tokens of length <= 2 and stop words.
    """
    seen: dict[str, None] = {}
    for token in _clean(query):
        if _keep(token):
            seen.setdefault(token, None)
    return list(seen)


def extract_keywords(text: str) -> list[str]:
    """Keywords for a knowledge entry.

    Same normalization as :func:`tokenize_query`, plus compound tokens
    (``admin_x_settings``) are split into their parts and a few UI terms
    pull in their semantic variations.
    """
    seen: dict[str, None] = {}
    for token in _clean(text):
        if not _keep(token):
            continue
        parts = [p for p in _COMPOUND_RE.split(token) if _keep(p)] if "_" in token else [token]
        for part in parts:
            seen.setdefault(part, None)
    for token in list(seen):
        for variation in SEMANTIC_VARIATIONS.get(token, ()):
            seen.setdefault(variation, None)
    return list(seen)


_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def split_identifier(name: str) -> str:
    """``handleSubscriptionExpiration`` -> ``handle Subscription Expiration``."""
    return _CAMEL_RE.sub(" ", name).replace("_", " ")


def path_keywords(file_path: str) -> list[str]:
    """Keywords derived from a file path (directories, stem, extension words)."""
    return extract_keywords(re.sub(r"[/.\\]", " ", file_path))
