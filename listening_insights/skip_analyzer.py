"""
Listening Insights - Skip Analyzer
Skip statistics for whatever events it is handed (normally one track's history).
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

import pandas as pd

from .events import EventsLike, as_frame, value_breakdown

# A play shorter than this counts as a skip
SKIP_THRESHOLD_MS = 10_000


@dataclass(frozen=True)
class YearSkipRate:
    year: int
    skip_rate: float
    total: int


@dataclass(frozen=True)
class SkipProfile:
    total_plays: int
    skip_count: int
    skip_rate: float
    avg_ms_skipped: float
    avg_ms_not_skipped: float
    end_reason_breakdown: tuple
    skip_rate_by_year: tuple

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _mean(values: pd.Series) -> float:
    return float(values.mean()) if len(values) > 0 else 0.0


def compute_skip_profile(events: EventsLike) -> SkipProfile:
    """
    Classify every event as skipped (played_ms < SKIP_THRESHOLD_MS) or not.

    Rates and averages are 0.0 when there is nothing to divide by, so an empty
    input still yields a complete profile.
    """
    df = as_frame(events)
    total_plays = len(df)

    skipped = df['played_ms'] < SKIP_THRESHOLD_MS
    skip_count = int(skipped.sum())

    by_year = skipped.groupby(df['timestamp'].dt.year).agg(['sum', 'size'])
    skip_rate_by_year = tuple(
        YearSkipRate(
            year=int(year),
            skip_rate=float(row['sum'] / row['size']) if row['size'] > 0 else 0.0,
            total=int(row['size']),
        )
        for year, row in by_year.iterrows()
    )

    return SkipProfile(
        total_plays=total_plays,
        skip_count=skip_count,
        skip_rate=skip_count / total_plays if total_plays > 0 else 0.0,
        avg_ms_skipped=_mean(df.loc[skipped, 'played_ms']),
        avg_ms_not_skipped=_mean(df.loc[~skipped, 'played_ms']),
        end_reason_breakdown=value_breakdown(df['reason_end']),
        skip_rate_by_year=skip_rate_by_year,
    )
