"""
Listening Insights - Track Insights
Selects one track's full history and runs the three single-track analyses on it.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .context_analyzer import ContextProfile, compute_context_profile
from .events import EventsLike, EventStore, as_frame
from .lifetime_curve import LifetimeCurve, compute_lifetime_curve, subsample_curve
from .skip_analyzer import SkipProfile, compute_skip_profile


@dataclass(frozen=True)
class TrackInsights:
    track_id: str
    skip: SkipProfile
    context: ContextProfile
    lifetime: LifetimeCurve

    def to_dict(self, max_points: Optional[int] = None) -> Dict[str, Any]:
        lifetime = self.lifetime.to_dict()
        if max_points is not None:
            lifetime['curve'] = [
                {"month": p.month, "cumulative_hours": p.cumulative_hours}
                for p in subsample_curve(self.lifetime.curve, max_points)
            ]
        return {
            "track_id": self.track_id,
            "skip": self.skip.to_dict(),
            "context": self.context.to_dict(),
            "lifetime": lifetime,
        }


def track_events(events: EventsLike, track_id: str) -> EventStore:
    """Every event of the given track, ignoring any date window."""
    if isinstance(events, EventStore):
        return events.for_track(track_id)
    return EventStore(as_frame(events)).for_track(track_id)


def analyze_track(events: EventsLike, track_id: str) -> Optional[TrackInsights]:
    """Skip, context and lifetime profiles for one track; None if it was never played."""
    selected = track_events(events, track_id)
    if len(selected) == 0:
        return None
    return TrackInsights(
        track_id=track_id,
        skip=compute_skip_profile(selected),
        context=compute_context_profile(selected),
        lifetime=compute_lifetime_curve(selected),
    )

