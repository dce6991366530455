"""
Listening Insights - Rankings
Ranking views over the aggregate table and the raw event log.

Top tracks/artists and the one-hit wonders read the current aggregate table, so
they follow the active date window. The remaining views read raw events.
"""

from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .aggregator import TrackAggregate, aggregate
from .events import DateWindow, EventsLike, as_frame, none_if_missing
from .skip_analyzer import SKIP_THRESHOLD_MS

UNKNOWN_ARTIST = 'Unknown'


def top_tracks(aggregates: Sequence[TrackAggregate], limit: int = 10) -> List[TrackAggregate]:
    """Tracks by total time played, descending."""
    return sorted(aggregates, key=lambda a: a.total_played_ms, reverse=True)[:limit]


def top_artists(aggregates: Sequence[TrackAggregate], limit: int = 10) -> List[Dict[str, Any]]:
    """Artists by summed time played across their tracks."""
    totals: Dict[str, int] = {}
    for agg in aggregates:
        artist = agg.artist_name or UNKNOWN_ARTIST
        totals[artist] = totals.get(artist, 0) + agg.total_played_ms

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [{"artist": artist, "total_played_ms": ms} for artist, ms in ranked]


def general_stats(aggregates: Sequence[TrackAggregate]) -> Dict[str, int]:
    """Headline numbers for the current aggregate table."""
    return {
        "total_played_ms": sum(a.total_played_ms for a in aggregates),
        "unique_tracks": len(aggregates),
        "unique_artists": len({a.artist_name for a in aggregates if a.artist_name}),
    }


def one_hit_wonders(aggregates: Sequence[TrackAggregate], limit: int = 10) -> List[TrackAggregate]:
    """Artists with exactly one track in the table, by play count then time played."""
    by_artist: Dict[str, List[TrackAggregate]] = {}
    for agg in aggregates:
        if not agg.artist_name:
            continue
        by_artist.setdefault(agg.artist_name, []).append(agg)

    single_tracks = [tracks[0] for tracks in by_artist.values() if len(tracks) == 1]
    single_tracks.sort(key=lambda a: (a.event_count, a.total_played_ms), reverse=True)
    return single_tracks[:limit]


def most_skipped_tracks(events: EventsLike, limit: int = 10) -> List[Dict[str, Any]]:
    """
    Tracks with the most skips across the whole history.

    Events without a track id are keyed by "name-artist" so they still count.
    Tracks with no name are left out.
    """
    df = as_frame(events)
    if df.empty:
        return []

    fallback_key = df['track_name'].astype(str) + '-' + df['artist_name'].astype(str)
    keys = df['track_id'].where(df['track_id'].notna(), fallback_key)

    frame = pd.DataFrame({
        'key': keys,
        'skipped': df['played_ms'] < SKIP_THRESHOLD_MS,
        'track_id': df['track_id'],
        'track_name': df['track_name'],
        'artist_name': df['artist_name'],
    })

    grouped = frame.groupby('key', sort=False)
    table = grouped.agg(
        skip_count=('skipped', 'sum'),
        total_plays=('skipped', 'size'),
    ).join(frame.drop_duplicates('key', keep='first').set_index('key')[['track_id', 'track_name', 'artist_name']])

    table = table[(table['skip_count'] > 0) & table['track_name'].notna()]
    table = table.sort_values('skip_count', ascending=False, kind='stable').head(limit)

    return [
        {
            "track_id": none_if_missing(row['track_id']),
            "track_name": row['track_name'],
            "artist_name": none_if_missing(row['artist_name']),
            "skip_count": int(row['skip_count']),
            "total_plays": int(row['total_plays']),
            "skip_rate": round(float(row['skip_count'] / row['total_plays']), 4),
        }
        for _, row in table.iterrows()
    ]


def top_track_by_year(events: EventsLike, window: Optional[DateWindow] = None) -> List[Dict[str, Any]]:
    """Most-played track of each calendar year, newest year first."""
    df = as_frame(events)
    mask = df['track_id'].notna()
    if window is not None:
        mask &= window.mask(df['timestamp'])
    scoped = df.loc[mask]

    results = []
    for year, year_df in scoped.groupby(scoped['timestamp'].dt.year):
        aggregates = aggregate(year_df)
        best = None
        for agg in aggregates:
            if best is None or agg.total_played_ms > best.total_played_ms:
                best = agg
        if best is not None:
            results.append({"year": int(year), "track": best.to_dict()})

    results.sort(key=lambda r: r['year'], reverse=True)
    return results


def tracks_by_start_reason(
    events: EventsLike,
    reason: str,
    window: Optional[DateWindow] = None,
    limit: int = 10,
) -> List[Dict[str, Any]]:
    """Tracks most often started with the given start reason."""
    df = as_frame(events)
    mask = df['track_id'].notna() & (df['reason_start'] == reason)
    if window is not None:
        mask &= window.mask(df['timestamp'])

    aggregates = aggregate(df.loc[mask])
    ranked = sorted(aggregates, key=lambda a: a.event_count, reverse=True)[:limit]
    return [{"count": agg.event_count, "track": agg.to_dict()} for agg in ranked]


def monthly_play_counts(events: EventsLike) -> List[Dict[str, Any]]:
    """Play counts for every month from the first to the last event, empty months included."""
    df = as_frame(events)
    if df.empty:
        return []

    months = df['timestamp'].dt.strftime('%Y-%m')
    counts = months.value_counts()

    first = df['timestamp'].min()
    last = df['timestamp'].max()
    span = pd.period_range(
        start=f"{first.year}-{first.month:02d}",
        end=f"{last.year}-{last.month:02d}",
        freq='M',
    )

    return [
        {"month": str(period), "count": int(counts.get(str(period), 0))}
        for period in span
    ]
