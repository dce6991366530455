"""
Listening Insights - Ingestion
Turns uploaded Spotify "Extended streaming history" exports into an EventStore.

Accepts .zip archives and loose Streaming_History_Audio_*.json files. Inside an
archive only the audio history members are read; everything else is ignored.
"""

import io
import logging
import posixpath
import zipfile
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .events import EVENT_COLUMNS, EventStore

logger = logging.getLogger(__name__)

HISTORY_FILE_PREFIX = 'Streaming_History_Audio_'

# Export key -> event column
EXPORT_COLUMNS = {
    'ts': 'timestamp',
    'ms_played': 'played_ms',
    'spotify_track_uri': 'track_id',
    'master_metadata_track_name': 'track_name',
    'master_metadata_album_artist_name': 'artist_name',
    'master_metadata_album_album_name': 'album_name',
    'platform': 'platform',
    'reason_start': 'reason_start',
    'reason_end': 'reason_end',
    'shuffle': 'shuffle',
}

REQUIRED_EXPORT_KEYS = ['ts', 'ms_played']


class IngestError(ValueError):
    """The upload holds no usable listening history."""


@dataclass(frozen=True)
class IngestReport:
    files_read: int
    files_ignored: int
    records: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "files_read": self.files_read,
            "files_ignored": self.files_ignored,
            "records": self.records,
        }


def is_history_file(name: str) -> bool:
    basename = posixpath.basename(name.replace('\\', '/'))
    return basename.startswith(HISTORY_FILE_PREFIX) and basename.endswith('.json')


def read_history_json(content: bytes, filename: str) -> Optional[pd.DataFrame]:
    """Parse one history file. Returns None (and logs) if it is not a JSON array of records."""
    try:
        text = content.decode('utf-8-sig').strip()
        if not text.startswith('['):
            logger.warning(f"Skipping {filename}: not a JSON array")
            return None
        return pd.read_json(io.StringIO(text), orient='records', dtype=False, convert_dates=False)
    except (UnicodeDecodeError, ValueError) as e:
        logger.error(f"Error parsing file {filename}: {e}")
        return None


def frame_from_export(df: pd.DataFrame) -> EventStore:
    """Map export keys onto the event layout."""
    missing = [key for key in REQUIRED_EXPORT_KEYS if key not in df.columns]
    if missing:
        raise IngestError(f"History records are missing required keys: {missing}")

    events = df[[key for key in EXPORT_COLUMNS if key in df.columns]].rename(columns=EXPORT_COLUMNS)
    return EventStore(events)


def read_uploads(files: Iterable[Tuple[str, bytes]]) -> Tuple[EventStore, IngestReport]:
    """
    Read every uploaded file and concatenate their records into one store.

    Raises IngestError when nothing usable was found.
    """
    frames: List[pd.DataFrame] = []
    files_read = 0
    files_ignored = 0

    for filename, content in files:
        if filename.lower().endswith('.zip'):
            try:
                archive = zipfile.ZipFile(io.BytesIO(content))
            except zipfile.BadZipFile as e:
                raise IngestError(f"Could not open archive {filename}: {e}") from e

            with archive:
                for member in archive.infolist():
                    if member.is_dir():
                        continue
                    if not is_history_file(member.filename):
                        files_ignored += 1
                        continue
                    df = read_history_json(archive.read(member), member.filename)
                    if df is not None:
                        frames.append(df)
                        files_read += 1
        elif is_history_file(filename):
            df = read_history_json(content, filename)
            if df is not None:
                frames.append(df)
                files_read += 1
        else:
            files_ignored += 1

    frames = [df for df in frames if not df.empty]
    if not frames:
        raise IngestError(f"No listening history found ({files_ignored} files ignored)")

    store = frame_from_export(pd.concat(frames, ignore_index=True))
    report = IngestReport(files_read=files_read, files_ignored=files_ignored, records=len(store))
    logger.info(f"Ingested {report.records} records from {files_read} files ({files_ignored} ignored)")
    return store, report


def records_from_store(store: EventStore) -> List[Dict[str, Any]]:
    """Serialize a store back into export-shaped records (used for persistence)."""
    df = store.frame.copy()
    df['timestamp'] = df['timestamp'].dt.strftime('%Y-%m-%dT%H:%M:%S.%fZ')
    df = df[EVENT_COLUMNS].rename(columns={v: k for k, v in EXPORT_COLUMNS.items()})
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict('records')


def store_from_records(records: List[Dict[str, Any]]) -> EventStore:
    if not records:
        return EventStore()
    return frame_from_export(pd.DataFrame.from_records(records))


# For testing
if __name__ == "__main__":
    import json
    import sys

    from .aggregator import aggregate
    from .rankings import general_stats, top_tracks

    if len(sys.argv) > 1:
        uploads = []
        for path in sys.argv[1:]:
            with open(path, 'rb') as f:
                uploads.append((path, f.read()))

        store, report = read_uploads(uploads)
        aggregates = aggregate(store)

        print(json.dumps({
            "ingest": report.to_dict(),
            "overview": general_stats(aggregates),
            "top_tracks": [a.to_dict() for a in top_tracks(aggregates)],
        }, indent=2))
    else:
        print("Usage: python -m listening_insights.ingest <export.zip | Streaming_History_Audio_*.json ...>")
