"""CLI entry point for unfold -- ask questions about a repository."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .config import apply_overrides, coerce_value, load_config, load_dotenv, save_config
from .fetcher import GitHubFetcher, LocalFetcher, build_fetcher
from .history import GitHistory
from .models import UnfoldConfig

app = typer.Typer(
    name="unfold",
    help="Answer questions about a source repository from heuristically extracted knowledge.",
    add_completion=False,
)

console = Console()


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _effective_config(**overrides) -> UnfoldConfig:
    """CLI flags override ``.unfold/config.toml`` which overrides defaults."""
    load_dotenv(Path.cwd())
    return apply_overrides(load_config(Path.cwd()), **overrides)


def _build_llm_client(cfg: UnfoldConfig, *, quiet: bool = False):
    """Build an LLM client (or None) from environment + config."""
    from .llm import LLMClient

    if cfg.no_llm:
        return None
    api_key = os.environ.get("OPENAI_API_KEY", "").strip()
    if api_key:
        return LLMClient(api_key=api_key, model=cfg.model, api_base=cfg.api_base)
    if not quiet:
        console.print("[yellow]OPENAI_API_KEY not set. Answers will be retrieval-only.[/yellow]")
        console.print("[dim]Set OPENAI_API_KEY or pass --no-llm to suppress this warning.[/dim]")
    return None


def _build_session(target: str, cfg: UnfoldConfig, extra_paths: list[str] | None, *, quiet: bool = False):
    from .session import KnowledgeSession

    try:
        fetcher = build_fetcher(target, os.environ.get("GITHUB_TOKEN"))
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    history = None
    if isinstance(fetcher, LocalFetcher) and (fetcher.root / ".git").exists():
        history = GitHistory(fetcher.root)
    elif isinstance(fetcher, GitHubFetcher) and not fetcher.config.token and not quiet:
        console.print("[dim]GITHUB_TOKEN not set; unauthenticated requests are heavily rate limited.[/dim]")

    return KnowledgeSession(
        fetcher,
        config=cfg,
        generator=_build_llm_client(cfg, quiet=quiet),
        history=history,
        extra_paths=extra_paths,
    )


def _print_stats(session) -> None:
    stats = session.stats()
    table = Table(title="Knowledge base", show_header=True, header_style="bold")
    table.add_column("Entry type")
    table.add_column("Count", justify="right")
    for entry_type, count in sorted(stats.by_type.items(), key=lambda kv: -kv[1]):
        table.add_row(entry_type, str(count))
    console.print(table)
    console.print(f"  {stats.total_entries} entries from {stats.processed_files} files")
    if session.degraded:
        console.print("[yellow]  Nothing could be indexed; showing the built-in demo dataset.[/yellow]")


def _scan(session) -> bool:
    with console.status("[bold]Exploring repository...[/bold]"):
        indexed = asyncio.run(session.initialize())
    progress = session.progress()
    console.print(
        f"[bold]Scanned[/bold] {progress.files_processed} files across "
        f"{progress.successful_paths} paths in {progress.scan_duration:.1f}s"
    )
    if progress.connection_errors:
        console.print(f"[dim]  {len(progress.connection_errors)} paths could not be read.[/dim]")
    return indexed


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def scan(
    target: str = typer.Argument(..., help="Local directory or owner/repo on GitHub."),
    path: Optional[list[str]] = typer.Option(None, "--path", help="Extra directory to explore first (repeatable)."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Maximum recursion depth."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-j", help="Parallel file fetches per directory."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Explore a repository and report what was indexed."""
    _setup_logging(verbose)
    cfg = _effective_config(max_depth=max_depth, concurrency=concurrency, no_llm=True)
    session = _build_session(target, cfg, path, quiet=True)
    _scan(session)
    _print_stats(session)


@app.command()
def ask(
    target: str = typer.Argument(..., help="Local directory or owner/repo on GitHub."),
    question: str = typer.Argument(..., help="Question about the repository."),
    path: Optional[list[str]] = typer.Option(None, "--path", help="Extra directory to explore first (repeatable)."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Chat model for answer generation."),
    no_llm: bool = typer.Option(False, "--no-llm", help="Retrieval-only answers."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-j", help="Parallel file fetches per directory."),
    as_json: bool = typer.Option(False, "--json", help="Print the answer as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Answer a question about a repository."""
    _setup_logging(verbose)
    cfg = _effective_config(model=model, no_llm=no_llm or None, concurrency=concurrency)
    session = _build_session(target, cfg, path, quiet=as_json)

    if as_json:
        answer = asyncio.run(session.answer(question))
        console.print_json(answer.model_dump_json())
        return

    _scan(session)
    answer = asyncio.run(session.answer(question))

    if answer.warning:
        console.print(f"[yellow]{answer.warning}[/yellow]")
    console.print(Panel(Markdown(answer.text), title="Answer", border_style="cyan"))
    console.print(f"[bold]Confidence:[/bold] {answer.confidence:.0%}" + ("  [dim](demo data)[/dim]" if answer.degraded else ""))

    if answer.references:
        console.print("[bold]References:[/bold]")
        for ref in answer.references:
            line = f":{ref.line_numbers}" if ref.line_numbers else ""
            extra = f"  [dim]{ref.author}, {ref.last_updated[:10]}[/dim]" if ref.author and ref.last_updated else ""
            console.print(f"  {ref.file_path}{line}{extra}")

    if answer.visual_context:
        console.print(f"\n[bold]Diagram ({answer.visual_context.type}, Mermaid):[/bold]")
        console.print(answer.visual_context.syntax, markup=False, highlight=False)


@app.command()
def stats(
    target: str = typer.Argument(..., help="Local directory or owner/repo on GitHub."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Show knowledge base statistics by entry type."""
    _setup_logging(verbose)
    cfg = _effective_config(no_llm=True)
    session = _build_session(target, cfg, None, quiet=True)
    asyncio.run(session.initialize())
    _print_stats(session)


@app.command()
def serve(
    target: str = typer.Argument(..., help="Local directory or owner/repo on GitHub."),
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8000, "--port", "-p", help="Port number."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Chat model for answer generation."),
    no_llm: bool = typer.Option(False, "--no-llm", help="Retrieval-only answers."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Index a repository and serve the question API."""
    _setup_logging(verbose)
    cfg = _effective_config(model=model, no_llm=no_llm or None)
    session = _build_session(target, cfg, None)
    _scan(session)

    from .server import start_server

    console.print(f"[bold cyan]Serving[/bold cyan] {target}")
    console.print(f"  http://{host}:{port}/docs")
    start_server(session, host=host, port=port)


@app.command()
def config(
    key: Optional[str] = typer.Argument(None, help="Config key to get or set."),
    value: Optional[str] = typer.Argument(None, help="New value (omit to read)."),
    path: Optional[Path] = typer.Option(None, "--path", help="Project directory (default: current directory)."),
) -> None:
    """View or modify .unfold/config.toml settings."""
    root = Path(path).resolve() if path else Path.cwd()
    cfg = load_config(root)

    if key is None:
        console.print("[bold]unfold config:[/bold]")
        for field_name in UnfoldConfig.model_fields:
            console.print(f"  {field_name} = {getattr(cfg, field_name)!r}")
        return

    if key not in UnfoldConfig.model_fields:
        console.print(
            f"[red]Error:[/red] Unknown config key [bold]{key}[/bold].\n"
            f"  Valid keys: {', '.join(UnfoldConfig.model_fields)}"
        )
        raise typer.Exit(code=1)

    if value is None:
        console.print(f"{key} = {getattr(cfg, key)!r}")
        return

    try:
        coerced = coerce_value(key, value)
        cfg = UnfoldConfig(**{**cfg.model_dump(), key: coerced})
    except ValueError as exc:
        console.print(f"[red]Error:[/red] Cannot set {key}: {exc}")
        raise typer.Exit(code=1)

    save_config(root, cfg)
    console.print(f"[green]Updated:[/green] {key} = {coerced!r}")


if __name__ == "__main__":
    app()
