"""
Listening Insights - Event Store
Raw play events, date windows, and the pandas-backed store every analysis reads from.

The store is immutable per load: it is built once from the ingested history and
every aggregation pass or single-track analysis reads from it without mutating it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence, Union

import pandas as pd

logger = logging.getLogger(__name__)

# Column layout of the event frame (mirrors PlayEvent field names)
EVENT_COLUMNS = [
    'timestamp',
    'played_ms',
    'track_id',
    'track_name',
    'artist_name',
    'album_name',
    'platform',
    'reason_start',
    'reason_end',
    'shuffle',
]

TEXT_COLUMNS = ['track_id', 'track_name', 'artist_name', 'album_name', 'platform', 'reason_start', 'reason_end']

# Label used in breakdowns for missing free-text values
UNKNOWN = 'unknown'


def to_utc(value: Union[str, datetime, pd.Timestamp]) -> datetime:
    """Parse an instant (ISO-8601 string or datetime) into an aware UTC datetime.

    Naive values are taken as UTC.
    """
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    else:
        ts = ts.tz_convert('UTC')
    return ts.to_pydatetime()


def none_if_missing(value: Any) -> Any:
    """Map pandas missing markers (NaN/NaT/None) to None."""
    if value is None:
        return None
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    return value


@dataclass(frozen=True)
class PlayEvent:
    """One record of a track being played for some duration."""
    timestamp: datetime
    played_ms: int
    track_id: Optional[str] = None
    track_name: Optional[str] = None
    artist_name: Optional[str] = None
    album_name: Optional[str] = None
    platform: Optional[str] = None
    reason_start: Optional[str] = None
    reason_end: Optional[str] = None
    shuffle: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', to_utc(self.timestamp))
        object.__setattr__(self, 'played_ms', int(self.played_ms))
        object.__setattr__(self, 'shuffle', bool(self.shuffle))


@dataclass(frozen=True)
class DateWindow:
    """Inclusive [start, end] range; a None bound is unbounded on that side."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start is not None:
            object.__setattr__(self, 'start', to_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, 'end', to_utc(self.end))

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, instant: datetime) -> bool:
        instant = to_utc(instant)
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True

    def mask(self, timestamps: pd.Series) -> pd.Series:
        """Boolean mask of the timestamps that fall inside the window."""
        mask = pd.Series(True, index=timestamps.index)
        if self.start is not None:
            mask &= timestamps >= pd.Timestamp(self.start)
        if self.end is not None:
            mask &= timestamps <= pd.Timestamp(self.end)
        return mask

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'start': self.start.isoformat() if self.start else None,
            'end': self.end.isoformat() if self.end else None,
        }


@dataclass(frozen=True)
class ValueCount:
    """One entry of a value breakdown (e.g. an end reason and how often it occurred)."""
    value: str
    count: int


def _normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce a frame into the EVENT_COLUMNS layout with stable dtypes."""
    df = df.copy()
    for col in EVENT_COLUMNS:
        if col not in df.columns:
            df[col] = None

    df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True, format='ISO8601')
    df['played_ms'] = pd.to_numeric(df['played_ms'], errors='coerce').fillna(0).astype('int64')

    for col in TEXT_COLUMNS:
        series = df[col].astype(object)
        df[col] = series.where(series.notna(), None)

    shuffle = df['shuffle'].astype(object)
    df['shuffle'] = shuffle.where(shuffle.notna(), False).astype(bool)

    return df[EVENT_COLUMNS].reset_index(drop=True)


class EventStore:
    """
    Immutable-per-load sequence of raw play events.

    Backed by a DataFrame in the EVENT_COLUMNS layout; PlayEvent objects are only
    materialized when iterated.

    Usage:
        store = EventStore.from_events(events)
        aggregates = aggregate(store, DateWindow(start='2023-01-01'))
        track = store.for_track('spotify:track:...')
    """

    def __init__(self, df: Optional[pd.DataFrame] = None):
        if df is None:
            df = pd.DataFrame(columns=EVENT_COLUMNS)
        self._df = _normalize_frame(df)
        self._events: Optional[tuple] = None
        logger.debug(f"Event store built with {len(self._df)} events")

    @classmethod
    def from_events(cls, events: Iterable[PlayEvent]) -> 'EventStore':
        rows = [tuple(getattr(event, col) for col in EVENT_COLUMNS) for event in events]
        return cls(pd.DataFrame(rows, columns=EVENT_COLUMNS))

    @property
    def frame(self) -> pd.DataFrame:
        """The backing frame. Callers must treat it as read-only."""
        return self._df

    @property
    def events(self) -> tuple:
        if self._events is None:
            self._events = tuple(self._iter_events())
        return self._events

    def _iter_events(self) -> Iterator[PlayEvent]:
        for row in self._df.itertuples(index=False):
            yield PlayEvent(
                timestamp=row.timestamp.to_pydatetime(),
                played_ms=int(row.played_ms),
                track_id=none_if_missing(row.track_id),
                track_name=none_if_missing(row.track_name),
                artist_name=none_if_missing(row.artist_name),
                album_name=none_if_missing(row.album_name),
                platform=none_if_missing(row.platform),
                reason_start=none_if_missing(row.reason_start),
                reason_end=none_if_missing(row.reason_end),
                shuffle=bool(row.shuffle),
            )

    def __len__(self) -> int:
        return len(self._df)

    def __iter__(self) -> Iterator[PlayEvent]:
        return iter(self.events)

    def for_track(self, track_id: str) -> 'EventStore':
        """All events of one track, across the full history (no date window)."""
        return EventStore(self._df[self._df['track_id'] == track_id])

    def date_range(self) -> Dict[str, Optional[str]]:
        if self._df.empty:
            return {"start": None, "end": None}
        return {
            "start": self._df['timestamp'].min().isoformat(),
            "end": self._df['timestamp'].max().isoformat(),
        }


EventsLike = Union[EventStore, pd.DataFrame, Sequence[PlayEvent]]


def as_frame(events: EventsLike) -> pd.DataFrame:
    """Accept a store, an event frame, or a sequence of PlayEvent and return the frame."""
    if isinstance(events, EventStore):
        return events.frame
    if isinstance(events, pd.DataFrame):
        return _normalize_frame(events)
    return EventStore.from_events(events).frame


def value_breakdown(values: pd.Series) -> tuple:
    """Unique-value counts, descending by count, ties kept in first-seen order.

    Missing or empty values are reported as 'unknown'; anything else is passed
    through verbatim.
    """
    labels = values.astype(object)
    labels = labels.where(labels.notna() & (labels != ''), UNKNOWN)
    counts = labels.groupby(labels, sort=False).size()
    counts = counts.sort_values(ascending=False, kind='stable')
    return tuple(ValueCount(value=str(value), count=int(count)) for value, count in counts.items())
