import pytest

from route_optimizer.models.domain import AIOptimizationResult, Stop, TravelSegment
from route_optimizer.services.routing.conflicts import TimeWindowConflict
from route_optimizer.services.routing.metrics import calculate_route_metrics
from route_optimizer.services.routing.preview import (
    build_insights,
    build_preview,
    format_miles,
    format_minutes,
)


@pytest.mark.parametrize(
    "minutes, expected",
    [(0, "0m"), (45, "45m"), (60, "1h 0m"), (65, "1h 5m"), (125.4, "2h 5m"), (119.7, "2h 0m"), (-3, "0m")],
)
def test_format_minutes(minutes, expected):
    assert format_minutes(minutes) == expected


def test_format_miles():
    assert format_miles(7) == "7.0 mi"
    assert format_miles(2.34) == "2.3 mi"


def _stops(count: int) -> list[Stop]:
    return [
        Stop(id=str(i), title=f"Job {i}", estimated_duration_minutes=30, address=f"{i} Main St")
        for i in range(count)
    ]


def test_preview_labels_legs_and_totals():
    stops = _stops(3)
    metrics = calculate_route_metrics(stops, [TravelSegment(10, 5, "0", "1"), TravelSegment(5, 2, "1", "2")])

    preview = build_preview(metrics, stops)

    assert preview.job_count == 3
    assert [leg.label for leg in preview.legs] == ["Leg 1", "Leg 2"]
    assert preview.legs[0].travel_time_display == "10m"
    assert preview.legs[0].origin_stop_id == "0"
    assert preview.total_time_display == "1h 45m"
    assert preview.total_distance_display == "7.0 mi"
    assert preview.efficiency_score == 86
    assert preview.efficiency_band == "good"
    assert preview.show_optimize_action is False


def test_preview_offers_optimization_for_inefficient_routes():
    stops = _stops(2)
    metrics = calculate_route_metrics(stops, [TravelSegment(60, 30)])
    preview = build_preview(metrics, stops)
    assert preview.efficiency_band == "fair"
    assert preview.show_optimize_action is True


def test_preview_hides_optimization_for_single_stop():
    stops = _stops(1)
    preview = build_preview(calculate_route_metrics(stops, []), stops)
    assert preview.show_optimize_action is False
    assert preview.legs == []


def test_preview_includes_conflicts():
    stops = _stops(1)
    conflict = TimeWindowConflict(stop_id="0", title="Job 0", reason="too long", severity="error")
    preview = build_preview(calculate_route_metrics(stops, []), stops, [conflict])
    assert preview.conflicts[0].severity == "error"


def test_insights_clamp_negative_savings():
    result = AIOptimizationResult(
        optimized_ordering=_stops(2),
        reasoning="already optimal",
        estimated_time_saved_minutes=-4,
        suggestions=["none"],
    )
    insights = build_insights(result)
    assert insights.time_saved_minutes == 0
    assert insights.time_saved_display == "0 minutes"
    assert insights.reasoning == "already optimal"
