"""Pydantic models for unfold's knowledge pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Knowledge entries
# ---------------------------------------------------------------------------

class EntryType(str, Enum):
    """Kind of knowledge unit.  Informational only; scoring ignores it."""

    comment = "comment"
    function = "function"
    export = "export"
    class_ = "class"
    text_content = "text-content"
    structured_data = "structured-data"
    api_route = "api-route"
    file_content = "file-content"
    content_summary = "content-summary"
    documentation = "documentation"
    database_model = "database-model"
    job_definition = "job-definition"
    job_schedule = "job-schedule"


class KnowledgeEntry(BaseModel):
    """The atomic retrievable unit."""

    id: str
    type: EntryType
    content: str
    file_path: str
    keywords: list[str] = Field(default_factory=list)
    last_updated: str = Field(default_factory=utc_now)
    author: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class KnowledgeStats(BaseModel):
    """Store statistics for progress display."""

    total_entries: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    processed_files: int = 0


# ---------------------------------------------------------------------------
# Fetcher-side shapes
# ---------------------------------------------------------------------------

class DirEntry(BaseModel):
    """One item of a directory listing."""

    name: str
    path: str
    type: Literal["file", "dir"]


class FilePayload(BaseModel):
    """Raw file body as delivered by a transport, possibly encoded."""

    content: str
    encoding: str | None = None
    """``"base64"`` or ``None`` for plain text."""

    size: int | None = None


class RepositoryConfig(BaseModel):
    """Coordinates of a remote repository."""

    owner: str
    repo: str
    token: str = ""
    paths: list[str] = Field(default_factory=list)
    """Extra paths explored before the built-in candidates."""

    @field_validator("owner", "repo")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Repository configuration requires owner and repo")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class CommitInfo(BaseModel):
    """A single commit touching a file."""

    sha: str
    date: str
    message: str = ""
    author: str = ""


# ---------------------------------------------------------------------------
# Extractor output
# ---------------------------------------------------------------------------

class FunctionInfo(BaseModel):
    name: str
    params: str = ""
    body: str | None = None
    line: int | None = None


class ClassInfo(BaseModel):
    name: str
    methods: list[str] = Field(default_factory=list)
    extends: str | None = None
    line: int | None = None


class ImportInfo(BaseModel):
    source: str
    names: list[str] = Field(default_factory=list)


class ApiRoute(BaseModel):
    method: str
    path: str
    handler: str
    line: int | None = None


class JobInfo(BaseModel):
    name: str
    schedule: str | None = None


class MarkdownInfo(BaseModel):
    title: str | None = None
    description: str | None = None


class ExtractedKnowledge(BaseModel):
    """Output from any extractor."""

    file_path: str
    file_type: str = ""
    jsdoc_comments: list[str] = Field(default_factory=list)
    inline_comments: list[str] = Field(default_factory=list)
    functions: list[FunctionInfo] = Field(default_factory=list)
    classes: list[ClassInfo] = Field(default_factory=list)
    exports: dict[str, str] = Field(default_factory=dict)
    imports: list[ImportInfo] = Field(default_factory=list)
    jsx_text_content: list[str] = Field(default_factory=list)
    structured_data: dict[str, str] = Field(default_factory=dict)
    api_routes: list[ApiRoute] = Field(default_factory=list)
    database_schemas: dict[str, list[str]] = Field(default_factory=dict)
    markdown: MarkdownInfo | None = None
    jobs: list[JobInfo] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Structured processing results
# ---------------------------------------------------------------------------

class ProcessResult(BaseModel):
    """Success or failure-with-reason for one file or directory."""

    path: str
    ok: bool
    entries_added: int = 0
    files_processed: int = 0
    skipped: bool = False
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.ok


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------

class Reference(BaseModel):
    """A citation attached to an answer."""

    file_path: str
    line_numbers: str | None = None
    snippet: str | None = None
    last_updated: str | None = None
    author: str | None = None


class VisualContext(BaseModel):
    """Diagram description (Mermaid syntax)."""

    type: Literal["flowchart", "component", "state"]
    syntax: str


class Answer(BaseModel):
    """Synthesized answer returned to callers; never raised as an error."""

    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    references: list[Reference] = Field(default_factory=list)
    visual_context: VisualContext | None = None
    warning: str | None = None
    """Soft, retryable failure of the generation call."""

    degraded: bool = False
    """True when answered from the fallback dataset."""


# ---------------------------------------------------------------------------
# Progress / diagnostics
# ---------------------------------------------------------------------------

class ExplorationStatus(str, Enum):
    idle = "idle"
    exploring = "exploring"
    complete = "complete"
    error = "error"


class ExplorationProgress(BaseModel):
    """Polling-friendly snapshot of an exploration run."""

    progress: int = 0
    status: ExplorationStatus = ExplorationStatus.idle
    total_attempts: int = 0
    successful_paths: int = 0
    files_processed: int = 0
    current_directory: str = ""
    scan_duration: float = 0.0
    connection_errors: list[str] = Field(default_factory=list)
    scanned_files: list[str] = Field(default_factory=list)
    directories_explored: list[str] = Field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class UnfoldConfig(BaseModel):
    """User configuration stored in ``.unfold/config.toml``.

    CLI flags override these values for a single invocation.
    Precedence: CLI flag > config.toml > default.
    """

    model: str = "gpt-4o-mini"
    """Chat model used for answer generation."""

    api_base: str = "https://api.openai.com/v1"
    """OpenAI-compatible endpoint root."""

    max_depth: int = 8
    """Maximum directory recursion depth during exploration."""

    max_files_per_directory: int = 15
    """Files forwarded from a single directory listing."""

    max_files: int = 1000
    """Total files requested in one exploration run."""

    max_file_chars: int = 100_000
    """Decoded files larger than this are skipped."""

    preview_chars: int = 2000
    """Length of whole-file entry previews."""

    concurrency: int = 1
    """Parallel file fetches inside one directory (1 = sequential)."""

    context_entries: int = 10
    """Entries sent to the generation call as grounding."""

    fallback_entries: int = 5
    """Entries quoted in a deterministic answer."""

    use_fallback_data: bool = True
    """Seed the store with the demo dataset when exploration finds nothing."""

    no_llm: bool = False
    """Never call the generation endpoint."""
