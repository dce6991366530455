"""
Listening Insights - Lifetime Curve Builder
Cumulative listening time of one track over calendar months, with percentile milestones.
"""

import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .events import EventsLike, as_frame

MS_PER_HOUR = 3_600_000

MILESTONE_FRACTIONS = {'p25': 0.25, 'p50': 0.5, 'p75': 0.75}

# Presentation-side cap on rendered curve points
DEFAULT_MAX_POINTS = 200


@dataclass(frozen=True)
class CurvePoint:
    month: str  # YYYY-MM
    cumulative_hours: float


@dataclass(frozen=True)
class Milestones:
    p25: Optional[str] = None
    p50: Optional[str] = None
    p75: Optional[str] = None


@dataclass(frozen=True)
class LifetimeCurve:
    curve: tuple
    milestones: Milestones
    first_play: Optional[date]
    last_play: Optional[date]
    peak_year: Optional[int]
    total_hours: float

    @classmethod
    def empty(cls) -> 'LifetimeCurve':
        return cls(
            curve=(),
            milestones=Milestones(),
            first_play=None,
            last_play=None,
            peak_year=None,
            total_hours=0.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['first_play'] = self.first_play.isoformat() if self.first_play else None
        result['last_play'] = self.last_play.isoformat() if self.last_play else None
        return result


def _milestone(curve: Sequence[CurvePoint], target: float) -> Optional[str]:
    for point in curve:
        if point.cumulative_hours >= target:
            return point.month
    return None


def compute_lifetime_curve(events: EventsLike) -> LifetimeCurve:
    """
    Monthly-binned cumulative listening curve for one track.

    Events are stable-sorted by timestamp, summed per calendar month (UTC) and
    accumulated in month order. The peak year is computed from the raw events,
    not from the curve: the first year (in input order) whose total strictly
    exceeds every earlier one wins, so exact ties keep the earlier year.
    """
    df = as_frame(events)
    if df.empty:
        return LifetimeCurve.empty()

    ordered = df.sort_values('timestamp', kind='stable')

    months = ordered['timestamp'].dt.strftime('%Y-%m')
    monthly = ordered['played_ms'].groupby(months, sort=True).sum()
    cumulative_ms = np.cumsum(monthly.to_numpy(dtype='int64'))

    curve = tuple(
        CurvePoint(month=str(month), cumulative_hours=float(ms) / MS_PER_HOUR)
        for month, ms in zip(monthly.index, cumulative_ms)
    )
    total_hours = curve[-1].cumulative_hours

    milestones = Milestones(**{
        name: _milestone(curve, total_hours * fraction)
        for name, fraction in MILESTONE_FRACTIONS.items()
    })

    yearly = df['played_ms'].groupby(df['timestamp'].dt.year, sort=False).sum()
    peak_year = None
    peak_ms = 0
    for year, ms in yearly.items():
        if ms > peak_ms:
            peak_ms = ms
            peak_year = int(year)

    return LifetimeCurve(
        curve=curve,
        milestones=milestones,
        first_play=ordered['timestamp'].iloc[0].date(),
        last_play=ordered['timestamp'].iloc[-1].date(),
        peak_year=peak_year,
        total_hours=total_hours,
    )


def subsample_curve(curve: Sequence[CurvePoint], max_points: int = DEFAULT_MAX_POINTS) -> List[CurvePoint]:
    """Thin a long curve for rendering: every n-th point plus the final one.

    Rendering helper only; compute_lifetime_curve always returns the full curve.
    """
    points = list(curve)
    if max_points <= 0 or len(points) <= max_points:
        return points
    step = math.ceil(len(points) / max_points)
    return [point for i, point in enumerate(points) if i % step == 0 or i == len(points) - 1]
