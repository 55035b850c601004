"""Presentation data for route previews and AI optimization insights."""

from __future__ import annotations

import math
from typing import Sequence

from ...config import settings
from ...models.domain import AIOptimizationResult, RouteMetrics, Stop
from ...schemas.routing import (
    ConflictModel,
    InsightsModel,
    RouteLegModel,
    RoutePreviewModel,
)
from .conflicts import TimeWindowConflict
from .metrics import efficiency_band


def format_minutes(minutes: float) -> str:
    """Render minutes as ``"1h 5m"`` or ``"45m"``."""
    minutes = max(0.0, minutes)
    hours = math.floor(minutes / 60)
    mins = round(minutes % 60)
    if mins == 60:
        hours, mins = hours + 1, 0
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_miles(miles: float) -> str:
    return f"{miles:.1f} mi"


def build_preview(
    metrics: RouteMetrics,
    ordering: Sequence[Stop],
    conflicts: Sequence[TimeWindowConflict] = (),
) -> RoutePreviewModel:
    legs = [
        RouteLegModel(
            label=f"Leg {index}",
            travel_time_minutes=segment.travel_time_minutes,
            distance_miles=segment.distance_miles,
            travel_time_display=format_minutes(segment.travel_time_minutes),
            distance_display=format_miles(segment.distance_miles),
            origin_stop_id=segment.origin_stop_id,
            destination_stop_id=segment.destination_stop_id,
        )
        for index, segment in enumerate(metrics.segments, start=1)
    ]
    return RoutePreviewModel(
        job_count=len(ordering),
        efficiency_score=metrics.efficiency_score,
        efficiency_band=efficiency_band(metrics.efficiency_score),
        total_job_time=metrics.total_job_time,
        total_travel_time=metrics.total_travel_time,
        total_time=metrics.total_time,
        total_distance=metrics.total_distance,
        total_job_time_display=format_minutes(metrics.total_job_time),
        total_travel_time_display=format_minutes(metrics.total_travel_time),
        total_time_display=format_minutes(metrics.total_time),
        total_distance_display=format_miles(metrics.total_distance),
        legs=legs,
        suggestions=list(metrics.suggestions),
        conflicts=[
            ConflictModel(
                stop_id=conflict.stop_id,
                title=conflict.title,
                reason=conflict.reason,
                severity=conflict.severity,
            )
            for conflict in conflicts
        ],
        show_optimize_action=len(ordering) >= 2 and metrics.efficiency_score < settings.optimize_prompt_score,
    )


def build_insights(result: AIOptimizationResult) -> InsightsModel:
    return InsightsModel(
        reasoning=result.reasoning,
        time_saved_minutes=result.display_time_saved,
        time_saved_display=f"{result.display_time_saved} minutes",
        suggestions=list(result.suggestions),
    )
