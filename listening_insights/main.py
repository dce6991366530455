"""
Listening Insights API
Main FastAPI application
"""

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import os
import logging
import asyncio
import math
from datetime import datetime
from functools import partial
from typing import List, Optional

from .events import DateWindow
from .ingest import IngestError, read_uploads
from .lifetime_curve import DEFAULT_MAX_POINTS
from .rankings import (
    general_stats,
    monthly_play_counts,
    most_skipped_tracks,
    one_hit_wonders,
    top_artists,
    top_track_by_year,
    top_tracks,
    tracks_by_start_reason,
)
from .session import ListeningSession

logger = logging.getLogger("listening-insights")
logging.basicConfig(level=logging.INFO)


def sanitize_for_json(obj):
    """Replace NaN/Infinity floats with None so the response is valid JSON."""
    if isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        return None
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(item) for item in obj]
    return obj

# Multi-year exports run to hundreds of MB once unzipped
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE_MB", "200")) * 1024 * 1024

RECOMPUTE_DEBOUNCE_MS = int(os.getenv("RECOMPUTE_DEBOUNCE_MS", "200"))

app = FastAPI(
    title="Listening Insights API",
    description="Analytics engine for personal listening history",
    version="1.0.0"
)

# CORS
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Database availability flag
DB_ENABLED = bool(os.getenv("SUPABASE_URL")) and bool(os.getenv("SUPABASE_SERVICE_KEY"))

# Single local listener: one session per process
session = ListeningSession(debounce_seconds=RECOMPUTE_DEBOUNCE_MS / 1000)


def get_db():
    """Lazy import database module only when needed"""
    from . import database
    return database


class WindowRequest(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


def _history_summary():
    snapshot = session.snapshot
    return {
        "events": len(session.store),
        "tracks": len(snapshot.aggregates),
        "date_range": session.store.date_range(),
        "window": snapshot.window.to_dict() if snapshot.window else None,
    }


@app.get("/")
async def root():
    return {"message": "Listening Insights API", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "db_enabled": DB_ENABLED, "has_data": session.has_data}


@app.post("/history")
async def upload_history(
    files: List[UploadFile] = File(...),
    save: bool = Form(False),
):
    """
    Upload a Spotify extended streaming history export (.zip) or its
    Streaming_History_Audio_*.json files. Replaces the loaded history.
    """
    for file in files:
        if not file.filename.lower().endswith(('.zip', '.json')):
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type: {file.filename}. Please upload a ZIP or JSON file."
            )

    try:
        uploads = []
        total_size = 0
        for file in files:
            content = await file.read()
            total_size += len(content)
            uploads.append((file.filename, content))

        logger.info(f"Upload received: {len(uploads)} files ({total_size / 1024:.1f} KB)")

        if total_size > MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"Upload too large ({total_size / 1024 / 1024:.1f} MB). Maximum size is {MAX_FILE_SIZE // 1024 // 1024} MB."
            )

        if total_size == 0:
            raise HTTPException(status_code=400, detail="Uploaded files are empty.")

        # Parse and aggregate in thread pool to avoid blocking the event loop
        loop = asyncio.get_event_loop()
        try:
            store, report = await loop.run_in_executor(None, read_uploads, uploads)
        except IngestError as e:
            raise HTTPException(status_code=400, detail=str(e))

        await session.load_async(store)

        # Persist the raw history if asked and storage is configured
        saved = False
        if save and DB_ENABLED:
            try:
                db = get_db()
                await loop.run_in_executor(None, db.save_history, store)
                saved = True
            except Exception as db_err:
                logger.warning(f"Failed to save history to storage: {db_err}")

        result = _history_summary()
        result["ingest"] = report.to_dict()
        result["saved"] = saved
        return JSONResponse(content=result)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing upload: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error processing upload: {str(e)}"
        )


@app.post("/history/restore")
async def restore_history():
    """Reload the previously saved raw history and rebuild the aggregates."""
    if not DB_ENABLED:
        raise HTTPException(status_code=503, detail="Database not configured")

    try:
        db = get_db()
        loop = asyncio.get_event_loop()
        store = await loop.run_in_executor(None, db.load_history)
        if store is None or len(store) == 0:
            raise HTTPException(status_code=404, detail="No saved history found")
        await session.load_async(store)
        return JSONResponse(content=_history_summary())
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error restoring history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error restoring history: {str(e)}")


@app.delete("/history")
async def delete_history():
    """Drop the loaded history, and the saved copy when storage is configured."""
    session.reset()

    deleted_saved = False
    if DB_ENABLED:
        try:
            db = get_db()
            deleted_saved = db.delete_history()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Error deleting saved history: {str(e)}")

    return {"status": "deleted", "deleted_saved": deleted_saved}


@app.put("/window", status_code=202)
async def change_window(request: WindowRequest):
    """Schedule a debounced re-aggregation for a new date window."""
    if not session.has_data:
        raise HTTPException(status_code=400, detail="No listening history loaded")
    window = DateWindow(start=request.start, end=request.end)
    if window.start and window.end and window.start > window.end:
        raise HTTPException(status_code=400, detail="Window start must not be after window end")

    session.request_window(None if window.is_unbounded else window)
    return {"status": "scheduled", "window": window.to_dict()}


@app.get("/aggregates")
async def get_aggregates(wait: bool = Query(False, description="Wait for a pending window change")):
    snapshot = await session.flush() if wait else session.snapshot
    return JSONResponse(content=sanitize_for_json(snapshot.to_dict()))


@app.get("/overview")
async def get_overview():
    result = general_stats(session.snapshot.aggregates)
    result.update(_history_summary())
    return result


@app.get("/timeline")
async def get_timeline():
    """Monthly play counts over the whole history (drives the window slider)."""
    loop = asyncio.get_event_loop()
    months = await loop.run_in_executor(None, monthly_play_counts, session.store)
    return {"months": months}


@app.get("/rankings/tracks")
async def get_top_tracks(limit: int = Query(10, ge=1, le=500)):
    return {"tracks": [a.to_dict() for a in top_tracks(session.snapshot.aggregates, limit)]}


@app.get("/rankings/artists")
async def get_top_artists(limit: int = Query(10, ge=1, le=500)):
    return {"artists": top_artists(session.snapshot.aggregates, limit)}


@app.get("/rankings/one-hit-wonders")
async def get_one_hit_wonders(limit: int = Query(10, ge=1, le=500)):
    return {"tracks": [a.to_dict() for a in one_hit_wonders(session.snapshot.aggregates, limit)]}


@app.get("/rankings/skipped")
async def get_most_skipped(limit: int = Query(10, ge=1, le=500)):
    loop = asyncio.get_event_loop()
    tracks = await loop.run_in_executor(None, partial(most_skipped_tracks, session.store, limit=limit))
    return JSONResponse(content=sanitize_for_json({"tracks": tracks}))


@app.get("/rankings/by-year")
async def get_top_track_by_year():
    loop = asyncio.get_event_loop()
    years = await loop.run_in_executor(
        None, partial(top_track_by_year, session.store, window=session.snapshot.window)
    )
    return {"years": years}


@app.get("/rankings/start-reason/{reason}")
async def get_tracks_by_start_reason(reason: str, limit: int = Query(10, ge=1, le=500)):
    loop = asyncio.get_event_loop()
    tracks = await loop.run_in_executor(
        None,
        partial(tracks_by_start_reason, session.store, reason, window=session.snapshot.window, limit=limit),
    )
    return {"reason": reason, "tracks": tracks}


@app.get("/tracks/{track_id}/insights")
async def get_track_insights(
    track_id: str,
    max_points: Optional[int] = Query(DEFAULT_MAX_POINTS, ge=1, description="Thin the lifetime curve for display"),
):
    """Skip, context and lifetime profiles for one track over its full history."""
    try:
        loop = asyncio.get_event_loop()
        insights = await loop.run_in_executor(None, session.track_insights, track_id)
        if insights is None:
            raise HTTPException(status_code=404, detail="Track not found in listening history")
        return JSONResponse(content=sanitize_for_json(insights.to_dict(max_points=max_points)))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error analyzing track {track_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error analyzing track: {str(e)}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
