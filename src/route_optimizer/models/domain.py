"""Domain models for route stops, travel legs and optimization results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from ..errors import ValidationError


def parse_clock(value: str) -> int:
    """Return minutes after midnight for an ``HH:MM`` string."""

    try:
        hours_text, minutes_text = value.strip().split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except (AttributeError, ValueError) as exc:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM.") from exc
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM.")
    return hours * 60 + minutes


@dataclass(slots=True)
class Stop:
    """One scheduled visit in a route, derived from a recurring job template."""

    id: str
    title: str
    estimated_duration_minutes: float
    address: Optional[str] = None
    recurrence_pattern: Optional[str] = None
    customer_name: Optional[str] = None
    preferred_time_start: Optional[str] = None
    preferred_time_end: Optional[str] = None

    @property
    def has_address(self) -> bool:
        return bool(self.address and self.address.strip())

    @property
    def has_time_window(self) -> bool:
        return bool(self.preferred_time_start and self.preferred_time_end)


@dataclass(slots=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(slots=True)
class TravelSegment:
    """Travel between two consecutive routable stops."""

    travel_time_minutes: float
    distance_miles: float
    origin_stop_id: Optional[str] = None
    destination_stop_id: Optional[str] = None


@dataclass(slots=True)
class RouteMetrics:
    total_job_time: float
    total_travel_time: float
    total_distance: float
    efficiency_score: int
    segments: List[TravelSegment]
    suggestions: List[str]

    @property
    def total_time(self) -> float:
        return self.total_job_time + self.total_travel_time


@dataclass(slots=True)
class OptimizationConstraints:
    max_daily_hours: float = 8.0
    start_time: str = "08:00"
    end_time: str = "17:00"

    def __post_init__(self) -> None:
        if self.max_daily_hours <= 0:
            raise ValidationError("max_daily_hours must be positive.")
        if parse_clock(self.start_time) >= parse_clock(self.end_time):
            raise ValidationError(
                f"start_time {self.start_time} must be earlier than end_time {self.end_time}."
            )

    def as_payload(self) -> dict:
        return {
            "maxDailyHours": self.max_daily_hours,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


@dataclass(slots=True)
class AIOptimizationResult:
    optimized_ordering: List[Stop]
    reasoning: str
    estimated_time_saved_minutes: int
    suggestions: List[str] = field(default_factory=list)

    @property
    def display_time_saved(self) -> int:
        return max(0, self.estimated_time_saved_minutes)


@dataclass(slots=True)
class OptimizationOutcome:
    """Everything surfaced to the caller once an optimization has been applied."""

    result: AIOptimizationResult
    metrics_before: Optional[RouteMetrics]
    metrics_after: Optional[RouteMetrics]


@dataclass(slots=True)
class Notification:
    level: Literal["info", "warning", "error"]
    message: str
