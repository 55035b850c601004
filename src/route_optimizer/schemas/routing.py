"""Route optimization request/response schemas."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..config import settings
from ..models.domain import OptimizationConstraints, Stop, TravelSegment

CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class StopModel(BaseModel):
    id: str = Field(..., min_length=1)
    title: str
    address: Optional[str] = None
    estimated_duration_minutes: float = Field(0, ge=0, allow_inf_nan=False)
    recurrence_pattern: Optional[str] = None
    customer_name: Optional[str] = None
    preferred_time_start: Optional[str] = Field(default=None, pattern=CLOCK_PATTERN)
    preferred_time_end: Optional[str] = Field(default=None, pattern=CLOCK_PATTERN)

    def to_domain(self) -> Stop:
        return Stop(**self.model_dump())

    @classmethod
    def from_domain(cls, stop: Stop) -> "StopModel":
        return cls(
            id=stop.id,
            title=stop.title,
            address=stop.address,
            estimated_duration_minutes=stop.estimated_duration_minutes,
            recurrence_pattern=stop.recurrence_pattern,
            customer_name=stop.customer_name,
            preferred_time_start=stop.preferred_time_start,
            preferred_time_end=stop.preferred_time_end,
        )


class SegmentModel(BaseModel):
    travel_time_minutes: float = Field(..., ge=0, allow_inf_nan=False)
    distance_miles: float = Field(..., ge=0, allow_inf_nan=False)
    origin_stop_id: Optional[str] = None
    destination_stop_id: Optional[str] = None

    def to_domain(self) -> TravelSegment:
        return TravelSegment(**self.model_dump())


class ConstraintsModel(BaseModel):
    max_daily_hours: float = Field(default=settings.default_max_daily_hours, gt=0)
    start_time: str = Field(default=settings.default_start_time, pattern=CLOCK_PATTERN)
    end_time: str = Field(default=settings.default_end_time, pattern=CLOCK_PATTERN)

    def to_domain(self) -> OptimizationConstraints:
        return OptimizationConstraints(
            max_daily_hours=self.max_daily_hours,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class MetricsRequest(BaseModel):
    stops: List[StopModel]
    segments: List[SegmentModel] = Field(
        default_factory=list,
        description="Travel legs between consecutive addressed stops, in route order.",
    )


class RouteLegModel(BaseModel):
    label: str
    travel_time_minutes: float
    distance_miles: float
    travel_time_display: str
    distance_display: str
    origin_stop_id: Optional[str] = None
    destination_stop_id: Optional[str] = None


class ConflictModel(BaseModel):
    stop_id: str
    title: str
    reason: str
    severity: Literal["warning", "error"]


class RoutePreviewModel(BaseModel):
    job_count: int
    efficiency_score: int
    efficiency_band: Literal["good", "fair", "poor"]
    total_job_time: float
    total_travel_time: float
    total_time: float
    total_distance: float
    total_job_time_display: str
    total_travel_time_display: str
    total_time_display: str
    total_distance_display: str
    legs: List[RouteLegModel]
    suggestions: List[str]
    conflicts: List[ConflictModel] = Field(default_factory=list)
    show_optimize_action: bool


class InsightsModel(BaseModel):
    reasoning: str
    time_saved_minutes: int = Field(..., ge=0)
    time_saved_display: str
    suggestions: List[str]


class NotificationModel(BaseModel):
    level: Literal["info", "warning", "error"]
    message: str


class CreateSessionRequest(BaseModel):
    stops: List[StopModel]


class MoveStopRequest(BaseModel):
    source_id: str
    destination_id: str


class OptimizeRequest(BaseModel):
    constraints: Optional[ConstraintsModel] = None


class SessionResponse(BaseModel):
    session_id: str
    version: int
    stop_ids: List[str]
    stops: List[StopModel]
    preview: RoutePreviewModel
    travel_error: Optional[str] = None
    notifications: List[NotificationModel] = Field(default_factory=list)
    changed: Optional[bool] = None


class OptimizeResponse(BaseModel):
    session: SessionResponse
    insights: InsightsModel
    efficiency_before: Optional[int] = None


class CommitResponse(BaseModel):
    session_id: str
    stop_ids: List[str]
