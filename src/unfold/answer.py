"""Answer synthesis -- generated when possible, templated otherwise.

Confidence bands:
  - no results:     exactly 0.1
  - generated:      min(0.3 + 0.05 * n, 0.95)
  - template only:  min(0.1 + 0.05 * n, 0.8)

The generated ceiling is always above the template ceiling, so a caller
can tell the two apart from the number alone.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from .history import HistoryProvider, enrich_with_history, latest_update
from .llm import Generator
from .models import Answer, KnowledgeEntry, Reference, UnfoldConfig
from .search import search
from .visual import visualize

logger = logging.getLogger(__name__)

NO_RESULTS_CONFIDENCE = 0.1
NO_RESULTS_TEXT = (
    "I couldn't find anything about that in the indexed repository. "
    "Try naming a feature, file or function more specifically."
)
GENERATION_WARNING = "AI answer generation failed; showing a retrieval-only answer instead. Try again later."

SNIPPET_CHARS = 120
FALLBACK_PREVIEW_CHARS = 500


def generation_confidence(result_count: int) -> float:
    return min(0.3 + 0.05 * result_count, 0.95)


def fallback_confidence(result_count: int) -> float:
    return min(0.1 + 0.05 * result_count, 0.8)


def format_context(entries: Iterable[KnowledgeEntry]) -> str:
    """Grounding context for the generation request."""
    return "\n".join(f"File: {e.file_path}\nType: {e.type.value}\n{e.content}" for e in entries)


def build_prompt(query: str, entries: Sequence[KnowledgeEntry]) -> str:
    return (
        f"Question: {query}\n\n"
        f"Context from the repository:\n{format_context(entries)}\n\n"
        "Answer the question using the context above."
    )


def _snippet(content: str) -> str:
    if len(content) <= SNIPPET_CHARS:
        return content
    return content[:SNIPPET_CHARS] + "..."


def build_references(entries: Iterable[KnowledgeEntry]) -> list[Reference]:
    """One reference per file, in the order the entries were used."""
    refs: list[Reference] = []
    seen: set[str] = set()
    for entry in entries:
        if entry.file_path in seen:
            continue
        seen.add(entry.file_path)
        line = entry.metadata.get("line")
        refs.append(Reference(
            file_path=entry.file_path,
            line_numbers=str(line) if line else None,
            snippet=_snippet(entry.content),
            last_updated=entry.last_updated if entry.author else None,
            author=entry.author,
        ))
    return refs


def fallback_text(query: str, entries: Sequence[KnowledgeEntry], total: int) -> str:
    """Deterministic answer quoting the top entries."""
    lines = [f"Found {total} relevant item{'s' if total != 1 else ''} in the repository for: {query}", ""]
    for entry in entries:
        preview = entry.content[:FALLBACK_PREVIEW_CHARS]
        if len(entry.content) > FALLBACK_PREVIEW_CHARS:
            preview += "..."
        lines.append(f"**{entry.file_path}** ({entry.type.value})")
        lines.append(preview)
        lines.append("")
    files = list(dict.fromkeys(e.file_path for e in entries))
    lines.append("Files consulted: " + ", ".join(files))
    as_of = latest_update(entries)
    if as_of:
        lines.append("")
        lines.append(f"This information is current as of {as_of[:10]}.")
    return "\n".join(lines)


class AnswerSynthesizer:
    """Turns a question into an :class:`Answer` over a set of entries.

    ``generator`` is optional; without one every answer is templated.
    """

    def __init__(
        self,
        generator: Generator | None = None,
        *,
        config: UnfoldConfig | None = None,
        history: HistoryProvider | None = None,
    ) -> None:
        self.generator = generator
        self.config = config or UnfoldConfig()
        self.history = history

    async def answer(
        self,
        query: str,
        entries: Iterable[KnowledgeEntry],
        *,
        degraded: bool = False,
    ) -> Answer:
        """Never raises; generation failures become ``Answer.warning``."""
        results = search(entries, query)
        if not results:
            return Answer(text=NO_RESULTS_TEXT, confidence=NO_RESULTS_CONFIDENCE, degraded=degraded)

        n = len(results)
        used_count = max(self.config.context_entries, self.config.fallback_entries)
        top = results[:used_count]
        if self.history is not None:
            top = await enrich_with_history(top, self.history)
        visual = visualize(query, top)

        warning: str | None = None
        if self.generator is not None:
            context = top[: self.config.context_entries]
            try:
                text = await self.generator.generate(build_prompt(query, context))
            except Exception as exc:  # pluggable generators may raise anything
                logger.warning("Generation failed, using retrieval-only answer: %s", exc)
                warning = GENERATION_WARNING
            else:
                if text.strip():
                    return Answer(
                        text=text,
                        confidence=generation_confidence(n),
                        references=build_references(context),
                        visual_context=visual,
                        degraded=degraded,
                    )
                logger.warning("Generation returned an empty answer")
                warning = GENERATION_WARNING

        used = top[: self.config.fallback_entries]
        return Answer(
            text=fallback_text(query, used, n),
            confidence=fallback_confidence(n),
            references=build_references(used),
            visual_context=visual,
            warning=warning,
            degraded=degraded,
        )
