"""
Listening Insights - Context Analyzer
How a track gets played: shuffle, manual vs automatic starts, platforms, start reasons.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

from .events import EventsLike, as_frame, value_breakdown

# Start reasons that mean the listener picked the track themselves
MANUAL_START_REASONS = frozenset({'clickrow', 'playbtn'})


@dataclass(frozen=True)
class YearManualAuto:
    year: int
    manual: int
    auto: int


@dataclass(frozen=True)
class ContextProfile:
    total_plays: int
    shuffle_ratio: float
    manual_ratio: float
    reason_start_breakdown: tuple
    platform_breakdown: tuple
    manual_vs_auto_by_year: tuple

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_context_profile(events: EventsLike) -> ContextProfile:
    """Playback-context breakdowns. Every event is either manual or auto, never both."""
    df = as_frame(events)
    total = len(df)

    shuffle_count = int(df['shuffle'].sum())
    manual = df['reason_start'].isin(MANUAL_START_REASONS)
    manual_count = int(manual.sum())

    by_year = manual.groupby(df['timestamp'].dt.year).agg(['sum', 'size'])
    manual_vs_auto_by_year = tuple(
        YearManualAuto(
            year=int(year),
            manual=int(row['sum']),
            auto=int(row['size'] - row['sum']),
        )
        for year, row in by_year.iterrows()
    )

    return ContextProfile(
        total_plays=total,
        shuffle_ratio=shuffle_count / total if total > 0 else 0.0,
        manual_ratio=manual_count / total if total > 0 else 0.0,
        reason_start_breakdown=value_breakdown(df['reason_start']),
        platform_breakdown=value_breakdown(df['platform']),
        manual_vs_auto_by_year=manual_vs_auto_by_year,
    )
