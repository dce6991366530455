"""
Tests for the lifetime curve builder.
"""

from datetime import date

from listening_insights.lifetime_curve import (
    MS_PER_HOUR,
    CurvePoint,
    LifetimeCurve,
    Milestones,
    compute_lifetime_curve,
    subsample_curve,
)


class TestLifetimeCurve:
    """Cumulative monthly listening for one track."""

    def test_two_months(self, make_event):
        """1h in January then 3h in February."""
        events = [
            make_event("2021-01-05T10:00:00Z", MS_PER_HOUR // 2),
            make_event("2021-01-20T10:00:00Z", MS_PER_HOUR // 2),
            make_event("2021-02-03T10:00:00Z", 3 * MS_PER_HOUR),
        ]
        curve = compute_lifetime_curve(events)

        assert curve.curve == (
            CurvePoint(month="2021-01", cumulative_hours=1.0),
            CurvePoint(month="2021-02", cumulative_hours=4.0),
        )
        assert curve.total_hours == 4.0
        assert curve.milestones == Milestones(p25="2021-01", p50="2021-02", p75="2021-02")

    def test_empty_input(self):
        curve = compute_lifetime_curve([])

        assert curve == LifetimeCurve.empty()
        assert curve.to_dict() == {
            "curve": (),
            "milestones": {"p25": None, "p50": None, "p75": None},
            "first_play": None,
            "last_play": None,
            "peak_year": None,
            "total_hours": 0.0,
        }

    def test_unsorted_input(self, make_event):
        """Input order does not matter for the curve or first/last play."""
        events = [
            make_event("2022-03-01T23:00:00Z", MS_PER_HOUR),
            make_event("2020-11-15T08:00:00Z", MS_PER_HOUR),
            make_event("2021-06-10T12:00:00Z", 2 * MS_PER_HOUR),
        ]
        curve = compute_lifetime_curve(events)

        assert [p.month for p in curve.curve] == ["2020-11", "2021-06", "2022-03"]
        assert [p.cumulative_hours for p in curve.curve] == [1.0, 3.0, 4.0]
        assert curve.first_play == date(2020, 11, 15)
        assert curve.last_play == date(2022, 3, 1)

    def test_curve_is_monotonic(self, history):
        curve = compute_lifetime_curve(history)
        hours = [p.cumulative_hours for p in curve.curve]

        assert hours == sorted(hours)
        assert curve.total_hours == hours[-1]

    def test_peak_year(self, make_event):
        events = [
            make_event("2020-01-01T00:00:00Z", 1000),
            make_event("2021-01-01T00:00:00Z", 3000),
            make_event("2021-12-01T00:00:00Z", 1000),
            make_event("2022-01-01T00:00:00Z", 2000),
        ]
        assert compute_lifetime_curve(events).peak_year == 2021

    def test_peak_year_tie_keeps_earlier_year(self, make_event):
        events = [
            make_event("2020-05-01T00:00:00Z", 5000),
            make_event("2021-05-01T00:00:00Z", 5000),
        ]
        assert compute_lifetime_curve(events).peak_year == 2020

    def test_zero_duration_history(self, make_event):
        """Plays of 0 ms still produce a curve but no peak year."""
        events = [make_event("2021-04-01T00:00:00Z", 0)]
        curve = compute_lifetime_curve(events)

        assert curve.curve == (CurvePoint(month="2021-04", cumulative_hours=0.0),)
        assert curve.total_hours == 0.0
        assert curve.peak_year is None
        assert curve.milestones.p50 == "2021-04"

    def test_to_dict_serializes_dates(self, make_event):
        curve = compute_lifetime_curve([make_event("2021-04-01T12:00:00Z", MS_PER_HOUR)])
        result = curve.to_dict()

        assert result["first_play"] == "2021-04-01"
        assert result["last_play"] == "2021-04-01"
        assert result["peak_year"] == 2021
        assert result["curve"] == ({"month": "2021-04", "cumulative_hours": 1.0},)


class TestSubsampleCurve:
    """Thinning long curves for display."""

    def test_short_curve_untouched(self):
        points = [CurvePoint(month=f"2020-{m:02d}", cumulative_hours=float(m)) for m in range(1, 13)]
        assert subsample_curve(points) == points

    def test_long_curve_keeps_every_nth_and_last(self):
        points = [CurvePoint(month=str(i), cumulative_hours=float(i)) for i in range(450)]
        thinned = subsample_curve(points, max_points=200)

        assert thinned[0] == points[0]
        assert thinned[-1] == points[-1]
        assert len(thinned) == 151
        assert thinned[1] == points[3]

    def test_builder_never_subsamples(self, make_event):
        events = [
            make_event(f"{2000 + i // 12}-{i % 12 + 1:02d}-01T00:00:00Z", 1000)
            for i in range(240)
        ]
        assert len(compute_lifetime_curve(events).curve) == 240
