"""
Listening Insights - Aggregator
Groups raw play events into one aggregate per track, optionally scoped to a date window.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .events import DateWindow, EventsLike, as_frame, none_if_missing

logger = logging.getLogger(__name__)

# Display metadata snapshotted from the first contributing event
METADATA_COLUMNS = ['track_name', 'artist_name', 'album_name']


@dataclass(frozen=True)
class TrackAggregate:
    """Sum of all play events sharing a track id."""
    track_id: str
    total_played_ms: int
    event_count: int
    track_name: Optional[str] = None
    artist_name: Optional[str] = None
    album_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def aggregate(events: EventsLike, window: Optional[DateWindow] = None) -> List[TrackAggregate]:
    """
    Build the per-track aggregate table.

    An event contributes iff it has a track id and its timestamp falls inside the
    (inclusive) window. Grouping is hash based so the pass stays linear in the
    number of events. Display metadata comes from the first contributing event in
    input order; later events with different metadata for the same track never
    overwrite it.

    Output follows the order in which each track first appears; ranking views sort.
    """
    df = as_frame(events)

    mask = df['track_id'].notna()
    if window is not None:
        mask &= window.mask(df['timestamp'])
    scoped = df.loc[mask]

    if scoped.empty:
        return []

    totals = scoped.groupby('track_id', sort=False).agg(
        total_played_ms=('played_ms', 'sum'),
        event_count=('played_ms', 'size'),
    )
    firsts = scoped.drop_duplicates('track_id', keep='first').set_index('track_id')[METADATA_COLUMNS]
    table = totals.join(firsts)

    logger.debug(f"Aggregated {len(scoped)} of {len(df)} events into {len(table)} tracks")

    return [
        TrackAggregate(
            track_id=track_id,
            total_played_ms=int(row['total_played_ms']),
            event_count=int(row['event_count']),
            track_name=none_if_missing(row['track_name']),
            artist_name=none_if_missing(row['artist_name']),
            album_name=none_if_missing(row['album_name']),
        )
        for track_id, row in table.iterrows()
    ]
