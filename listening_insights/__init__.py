"""
Listening Insights
Aggregation and per-track analytics for personal listening history.
"""

from .aggregator import TrackAggregate, aggregate
from .context_analyzer import ContextProfile, compute_context_profile
from .events import DateWindow, EventStore, PlayEvent
from .lifetime_curve import LifetimeCurve, compute_lifetime_curve
from .skip_analyzer import SKIP_THRESHOLD_MS, SkipProfile, compute_skip_profile
from .track_insights import analyze_track, track_events
