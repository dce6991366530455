"""Shared fixtures for the listening insights tests."""

import pytest

from listening_insights.events import EventStore, PlayEvent


def _make_event(
    ts,
    played_ms,
    track_id="spotify:track:a",
    track_name="Song A",
    artist_name="Artist A",
    album_name=None,
    platform="ios",
    reason_start="trackdone",
    reason_end="trackdone",
    shuffle=False,
):
    return PlayEvent(
        timestamp=ts,
        played_ms=played_ms,
        track_id=track_id,
        track_name=track_name,
        artist_name=artist_name,
        album_name=album_name,
        platform=platform,
        reason_start=reason_start,
        reason_end=reason_end,
        shuffle=shuffle,
    )


@pytest.fixture
def make_event():
    """Factory for PlayEvent with sensible defaults."""
    return _make_event


@pytest.fixture
def history():
    """A small multi-track, multi-year history in non-chronological order."""
    events = [
        _make_event("2021-03-10T12:00:00Z", 180_000, "spotify:track:a", "Song A", "Artist A"),
        _make_event("2020-06-01T08:30:00Z", 5_000, "spotify:track:b", "Song B", "Artist B",
                    reason_start="clickrow", reason_end="fwdbtn", shuffle=True),
        _make_event("2020-07-04T20:00:00Z", 200_000, "spotify:track:a", "Song A", "Artist A",
                    platform="android", reason_start="playbtn"),
        _make_event("2021-01-02T09:00:00Z", 120_000, None, None, None, platform="web"),
        _make_event("2022-02-20T18:45:00Z", 240_000, "spotify:track:c", "Song C", "Artist B",
                    reason_start="clickrow", shuffle=True),
        _make_event("2022-02-21T18:45:00Z", 3_000, "spotify:track:a", "Song A", "Artist A",
                    reason_end="fwdbtn"),
    ]
    return EventStore.from_events(events)


@pytest.fixture
def history_records():
    """Export-shaped records, as found in Streaming_History_Audio_*.json."""
    return [
        {
            "ts": "2021-01-15T10:00:00Z",
            "platform": "ios",
            "ms_played": 180000,
            "conn_country": "DE",
            "master_metadata_track_name": "Song A",
            "master_metadata_album_artist_name": "Artist A",
            "master_metadata_album_album_name": "Album A",
            "spotify_track_uri": "spotify:track:a",
            "reason_start": "clickrow",
            "reason_end": "trackdone",
            "shuffle": False,
            "skipped": False,
        },
        {
            "ts": "2021-02-15T10:00:00Z",
            "platform": "android",
            "ms_played": 4000,
            "conn_country": "DE",
            "master_metadata_track_name": "Song A",
            "master_metadata_album_artist_name": "Artist A",
            "master_metadata_album_album_name": "Album A",
            "spotify_track_uri": "spotify:track:a",
            "reason_start": "trackdone",
            "reason_end": "fwdbtn",
            "shuffle": True,
            "skipped": True,
        },
        {
            "ts": "2022-05-01T22:10:00Z",
            "platform": "ios",
            "ms_played": 210000,
            "conn_country": "DE",
            "master_metadata_track_name": "Song B",
            "master_metadata_album_artist_name": "Artist B",
            "master_metadata_album_album_name": "Album B",
            "spotify_track_uri": "spotify:track:b",
            "reason_start": "playbtn",
            "reason_end": "trackdone",
            "shuffle": False,
            "skipped": False,
        },
        {
            "ts": "2022-05-02T07:00:00Z",
            "platform": "ios",
            "ms_played": 1500000,
            "conn_country": "DE",
            "master_metadata_track_name": None,
            "master_metadata_album_artist_name": None,
            "master_metadata_album_album_name": None,
            "spotify_track_uri": None,
            "episode_name": "Some Podcast",
            "reason_start": "clickrow",
            "reason_end": "endplay",
            "shuffle": False,
            "skipped": False,
        },
    ]
