from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from app.settings import Settings
from health.health import list_feed_health
from ingest.feed_packs import load_feed_pack_entries
from ingest.models import RunSummary
from ingest.orchestrator import FeedOrchestrator
from store.db import close_database, open_database
from store.incidents import SqliteIncidentStore


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def run_response(summary: RunSummary) -> dict:
    """Shape a run summary as the trigger endpoint reports it.

    Partial failure still counts as success; only a run with no active feeds
    is reported as failed.
    """
    return {"success": summary.processed_feeds > 0, **summary.to_dict()}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = getattr(app.state, "settings", None) or Settings()
    configure_logging(settings.log_level)
    db = open_database(settings.db_path)
    store = SqliteIncidentStore(db)
    for entries in load_feed_pack_entries(settings.feeds_dir).values():
        store.ensure_feeds(entries)

    app.state.settings = settings
    app.state.db = db
    app.state.store = store
    app.state.orchestrator = FeedOrchestrator(store, settings)
    app.state.run_lock = asyncio.Lock()
    try:
        yield
    finally:
        close_database(db)


app = FastAPI(lifespan=lifespan)


@app.post("/api/cron/government-feeds")
async def api_run_feeds(request: Request) -> JSONResponse:
    orchestrator: FeedOrchestrator = request.app.state.orchestrator
    run_lock: asyncio.Lock = request.app.state.run_lock
    if run_lock.locked():
        return JSONResponse(
            {"success": False, "error": "run_in_progress"}, status_code=409
        )

    async with run_lock:
        try:
            summary = await orchestrator.process_all_feeds()
        except Exception as e:
            logger.exception("government feeds run failed")
            return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    body = run_response(summary)
    return JSONResponse(body, status_code=200 if body["success"] else 503)


@app.get("/api/incidents")
def api_incidents(
    request: Request, limit: int = Query(default=50, ge=1, le=500)
) -> JSONResponse:
    store: SqliteIncidentStore = request.app.state.store
    return JSONResponse(store.recent_incidents(limit))


@app.get("/api/feeds")
def api_feeds(request: Request) -> JSONResponse:
    return JSONResponse(list_feed_health(request.app.state.db))
