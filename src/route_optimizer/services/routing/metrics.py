"""Route metrics: job/travel totals, efficiency score and heuristic suggestions.

Everything here is a pure function of the stop ordering and the travel
segments computed for it. Suggestions come from a swappable strategy so the
thresholds can be tuned without touching the aggregation.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal, Sequence

from ...config import settings
from ...models.domain import RouteMetrics, Stop, TravelSegment

GOOD_EFFICIENCY_SCORE = 75
FAIR_EFFICIENCY_SCORE = 50

EfficiencyBand = Literal["good", "fair", "poor"]


def efficiency_band(score: int) -> EfficiencyBand:
    if score >= GOOD_EFFICIENCY_SCORE:
        return "good"
    if score >= FAIR_EFFICIENCY_SCORE:
        return "fair"
    return "poor"


def efficiency_score(total_job_time: float, total_travel_time: float) -> int:
    """Percentage of elapsed route time spent working rather than driving."""
    if total_travel_time <= 0:
        return 100
    total = total_job_time + total_travel_time
    if not math.isfinite(total):
        # overflowed totals have no usable ratio
        return 0
    # round half up
    score = math.floor(100 * total_job_time / total + 0.5)
    return max(0, min(100, int(score)))


class SuggestionStrategy(ABC):
    """Contract for turning computed totals into human readable advice."""

    @abstractmethod
    def suggest(
        self,
        *,
        ordering: Sequence[Stop],
        segments: Sequence[TravelSegment],
        total_travel_time: float,
        efficiency_score: int,
    ) -> list[str]:
        raise NotImplementedError


@dataclass(slots=True)
class DefaultSuggestionStrategy(SuggestionStrategy):
    outlier_segment_share: float = field(default_factory=lambda: settings.outlier_segment_share)
    outlier_min_segments: int = field(default_factory=lambda: settings.outlier_min_segments)
    low_efficiency_threshold: int = field(default_factory=lambda: settings.low_efficiency_threshold)
    missing_address_threshold: int = field(default_factory=lambda: settings.missing_address_threshold)

    def suggest(
        self,
        *,
        ordering: Sequence[Stop],
        segments: Sequence[TravelSegment],
        total_travel_time: float,
        efficiency_score: int,
    ) -> list[str]:
        suggestions: list[str] = []

        outlier = self._outlier_stop(ordering, segments, total_travel_time)
        if outlier is not None:
            suggestions.append(
                f"Consider moving '{outlier.title}': the drive after it takes a large share "
                "of the route's travel time, so it may be a geographic outlier."
            )

        if efficiency_score < self.low_efficiency_threshold:
            suggestions.append(
                "More time is spent travelling than working. Try AI optimization to reorder this route."
            )

        missing = sum(1 for stop in ordering if not stop.has_address)
        if missing >= self.missing_address_threshold:
            suggestions.append(
                f"{missing} jobs have no address. Add addresses to get accurate travel estimates."
            )
        return suggestions

    def _outlier_stop(
        self,
        ordering: Sequence[Stop],
        segments: Sequence[TravelSegment],
        total_travel_time: float,
    ) -> Stop | None:
        if len(segments) < self.outlier_min_segments or total_travel_time <= 0:
            return None

        longest_index = max(range(len(segments)), key=lambda idx: segments[idx].travel_time_minutes)
        longest = segments[longest_index]
        if longest.travel_time_minutes <= self.outlier_segment_share * total_travel_time:
            return None

        if longest.origin_stop_id is not None:
            return next((stop for stop in ordering if stop.id == longest.origin_stop_id), None)
        # positional segments line up with the addressed stops in route order
        addressed = [stop for stop in ordering if stop.has_address]
        if longest_index < len(addressed):
            return addressed[longest_index]
        return None


def _non_negative(value: float | None) -> float:
    """Clamp a duration or distance to a finite, non-negative number."""
    if value is None or not math.isfinite(value):
        return 0.0
    return max(0.0, value)


def calculate_route_metrics(
    ordering: Sequence[Stop],
    segments: Sequence[TravelSegment],
    strategy: SuggestionStrategy | None = None,
) -> RouteMetrics:
    """Aggregate a route ordering and its travel legs into RouteMetrics."""

    total_job_time = sum(_non_negative(stop.estimated_duration_minutes) for stop in ordering)
    legs = [
        TravelSegment(
            travel_time_minutes=_non_negative(segment.travel_time_minutes),
            distance_miles=_non_negative(segment.distance_miles),
            origin_stop_id=segment.origin_stop_id,
            destination_stop_id=segment.destination_stop_id,
        )
        for segment in segments
    ]
    total_travel_time = sum(leg.travel_time_minutes for leg in legs)
    total_distance = sum(leg.distance_miles for leg in legs)
    score = efficiency_score(total_job_time, total_travel_time)

    strategy = strategy or DefaultSuggestionStrategy()
    suggestions = strategy.suggest(
        ordering=ordering,
        segments=legs,
        total_travel_time=total_travel_time,
        efficiency_score=score,
    )

    return RouteMetrics(
        total_job_time=total_job_time,
        total_travel_time=total_travel_time,
        total_distance=total_distance,
        efficiency_score=score,
        segments=legs,
        suggestions=suggestions,
    )
