"""
Listening Insights - History Persistence
The raw event list is kept as gzipped JSON in Supabase Storage; aggregates are never stored.
"""

import os
import json
import gzip
import logging
from typing import Optional
from supabase import create_client, Client

from .events import EventStore
from .ingest import records_from_store, store_from_records

logger = logging.getLogger("listening-insights")

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")  # Service role key for backend

STORAGE_BUCKET = "listening-history"
HISTORY_OWNER = os.getenv("HISTORY_OWNER", "local")

_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create Supabase client (singleton)"""
    global _client
    if _client is None:
        if not SUPABASE_URL or not SUPABASE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables must be set")
        _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    return _client


def history_path(owner: str = HISTORY_OWNER) -> str:
    return f"{owner}/history.json.gz"


def save_history(store: EventStore, owner: str = HISTORY_OWNER) -> str:
    """Upload the raw event list, replacing any previous copy. Returns the storage path."""
    client = get_supabase_client()

    storage_path = history_path(owner)
    payload = gzip.compress(json.dumps(records_from_store(store)).encode("utf-8"))
    logger.info(f"Uploading history to storage: {storage_path} ({len(payload) / 1024:.1f} KB compressed, {len(store)} events)")

    client.storage.from_(STORAGE_BUCKET).upload(
        storage_path,
        payload,
        file_options={"content-type": "application/gzip", "upsert": "true"},
    )
    return storage_path


def load_history(owner: str = HISTORY_OWNER) -> Optional[EventStore]:
    """Download the previously saved event list, or None if nothing was saved."""
    client = get_supabase_client()
    bucket = client.storage.from_(STORAGE_BUCKET)

    listing = bucket.list(owner)
    if not any(entry.get("name") == "history.json.gz" for entry in listing or []):
        return None

    payload = bucket.download(history_path(owner))
    records = json.loads(gzip.decompress(payload).decode("utf-8"))
    logger.info(f"Restored {len(records)} events from storage")
    return store_from_records(records)


def delete_history(owner: str = HISTORY_OWNER) -> bool:
    """Delete the saved event list. Returns False if there was nothing to delete."""
    client = get_supabase_client()
    try:
        removed = client.storage.from_(STORAGE_BUCKET).remove([history_path(owner)])
    except Exception as e:
        logger.warning(f"Failed to delete storage file {history_path(owner)}: {e}")
        return False
    return bool(removed)
