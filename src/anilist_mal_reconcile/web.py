"""
Status API for the list reconciler.
Exposes the sync state and progress history and lets a client start or cancel a run.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .constants import MediaKind, Platform
from .errors import InvalidFormat, SyncAlreadyRunning
from .sync_service import SyncSession

logger = logging.getLogger(__name__)


class SyncStatus(BaseModel):
    """Sync status response model"""
    state: str
    is_running: bool
    sync_in_progress: bool = False  # True while a triggered pipeline (fetch, compare or sync) runs
    current_operation: Optional[str] = None
    outcome: Optional[dict[str, Any]] = None
    last_report: Optional[dict[str, Any]] = None
    last_sync: Optional[str] = None
    last_error: Optional[str] = None


def create_app(
    session: SyncSession,
    source: Optional[Platform] = None,
    target: Optional[Platform] = None,
    kind: Optional[MediaKind] = None,
    dry_run: Optional[bool] = None,
) -> FastAPI:
    """
    Build the API around one session.

    ``source``, ``target``, ``kind`` and ``dry_run`` override the session's
    settings for triggered runs.
    """
    app = FastAPI(title="AniList-MAL Reconcile", version="0.1.0")
    settings = session.settings

    # Held from trigger until the background run finishes
    sync_lock = threading.Lock()
    run_info: dict[str, Optional[str]] = {"last_sync": None, "last_error": None}
    app.state.session = session
    app.state.sync_lock = sync_lock
    app.state.sync_thread = None

    def _pipeline_args() -> dict:
        return {
            "source": source or (settings.source if settings else Platform.MAL),
            "target": target or (settings.target if settings else Platform.ANILIST),
            "kind": kind or (settings.kind if settings else MediaKind.ANIME),
            "usernames": settings.usernames() if settings else {},
            "dry_run": dry_run if dry_run is not None else (settings.dry_run if settings else False),
        }

    def _run_pipeline(args: dict) -> None:
        try:
            logger.info(f"Triggered sync started ({args['source'].value} -> {args['target'].value})")
            report = asyncio.run(session.run(**args))
            run_info["last_error"] = None
            if report.success:
                logger.info("Triggered sync completed")
            else:
                logger.warning(f"Triggered sync finished with problems: {report.skipped_reason or 'item failures'}")
        except (InvalidFormat, SyncAlreadyRunning, ValueError) as e:
            logger.error(f"Triggered sync failed: {e}")
            run_info["last_error"] = str(e)
        except Exception as e:
            logger.exception("Triggered sync failed with error")
            run_info["last_error"] = str(e)
        finally:
            run_info["last_sync"] = time.strftime("%Y-%m-%d %H:%M:%S %Z")
            sync_lock.release()

    @app.get("/api/status", response_model=SyncStatus)
    async def get_status():
        """Current driver state, last outcome and last pipeline report"""
        status = session.status()
        return SyncStatus(
            state=status["state"],
            is_running=status["is_running"],
            sync_in_progress=sync_lock.locked(),
            current_operation=status["current_operation"],
            outcome=status["outcome"],
            last_report=status["last_report"],
            last_sync=run_info["last_sync"],
            last_error=run_info["last_error"],
        )

    @app.get("/api/events")
    async def get_events(limit: Optional[int] = None):
        """Recorded progress events, oldest first"""
        events = session.history.as_dicts()
        if limit is not None and limit >= 0:
            events = events[-limit:] if limit else []
        return {"events": events}

    @app.post("/api/sync/trigger")
    async def trigger_sync():
        """Start the configured pipeline in the background"""
        if session.is_running or not sync_lock.acquire(blocking=False):
            raise HTTPException(status_code=409, detail="Sync already in progress")

        try:
            args = _pipeline_args()
            thread = threading.Thread(target=_run_pipeline, args=(args,), daemon=True)
            app.state.sync_thread = thread
            thread.start()
        except Exception as e:
            sync_lock.release()
            logger.error(f"Failed to trigger sync: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"message": "Sync triggered successfully"}

    @app.post("/api/sync/cancel")
    async def cancel_sync():
        """Ask the running sync to stop after the current entry"""
        if not session.cancel():
            raise HTTPException(status_code=409, detail="No sync is running")
        return {"message": "Cancellation requested"}

    return app
