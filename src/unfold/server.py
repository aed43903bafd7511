"""FastAPI server exposing a knowledge session over HTTP."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from . import __version__
from .models import Answer, ExplorationProgress, ExplorationStatus, KnowledgeEntry, KnowledgeStats
from .session import KnowledgeSession

logger = logging.getLogger(__name__)

app = FastAPI(title="unfold", version=__version__)

# Set by start_server() (or set_session() in tests) before requests arrive.
_session: KnowledgeSession | None = None
_refresh_task: asyncio.Task[bool] | None = None

PROGRESS_POLL_SECONDS = 0.5


def set_session(session: KnowledgeSession | None) -> None:
    global _session, _refresh_task
    _session = session
    _refresh_task = None


def _require_session() -> KnowledgeSession:
    if _session is None:
        raise HTTPException(status_code=503, detail="No repository session configured.")
    return _session


class AskRequest(BaseModel):
    question: str = Field(min_length=1)


class RefreshResponse(BaseModel):
    status: str
    generation: int
    indexed: bool | None = None
    stats: KnowledgeStats | None = None


# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------


@app.post("/api/ask", response_model=Answer)
async def ask(body: AskRequest) -> Answer:
    """Answer a question about the repository."""
    session = _require_session()
    question = body.question.strip()
    if not question:
        raise HTTPException(status_code=422, detail="Question must not be blank.")
    return await session.answer(question)


@app.get("/api/search", response_model=list[KnowledgeEntry])
async def search(q: str = "", limit: int = 20) -> list[KnowledgeEntry]:
    """Ranked knowledge entries for *q*."""
    session = _require_session()
    if not q:
        return []
    return session.search(q, limit=max(1, limit))


@app.get("/api/stats", response_model=KnowledgeStats)
async def stats() -> KnowledgeStats:
    return _require_session().stats()


@app.get("/api/progress", response_model=ExplorationProgress)
async def progress() -> ExplorationProgress:
    return _require_session().progress()


@app.get("/api/progress/stream")
async def progress_stream() -> EventSourceResponse:
    """Server-sent progress snapshots until the running exploration ends."""
    session = _require_session()

    async def event_stream():
        while True:
            snap = session.progress()
            yield {"event": "progress", "data": snap.model_dump_json()}
            if snap.status != ExplorationStatus.exploring:
                break
            await asyncio.sleep(PROGRESS_POLL_SECONDS)
        yield {"event": "done", "data": json.dumps({"status": snap.status.value})}

    return EventSourceResponse(event_stream())


@app.post("/api/refresh", response_model=RefreshResponse)
async def refresh(wait: bool = True) -> RefreshResponse:
    """Clear and rebuild the knowledge base.

    With ``wait=false`` the rebuild runs in the background; poll
    ``/api/progress`` to follow it.
    """
    global _refresh_task
    session = _require_session()
    if not wait:
        _refresh_task = asyncio.create_task(session.refresh())
        return RefreshResponse(status="started", generation=session.generation)
    indexed = await session.refresh()
    return RefreshResponse(status="complete", generation=session.generation, indexed=indexed, stats=session.stats())


@app.get("/api/diagnostics")
async def diagnostics() -> dict:
    return _require_session().diagnostics()


def start_server(
    session: KnowledgeSession,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    """Serve *session* with uvicorn until interrupted."""
    import uvicorn

    set_session(session)
    logger.info("Serving on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port)
