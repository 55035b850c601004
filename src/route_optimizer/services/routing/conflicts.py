"""Preferred time window checks for an ordered route."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from ...errors import ValidationError
from ...models.domain import Stop, TravelSegment, parse_clock


@dataclass(slots=True)
class TimeWindowConflict:
    stop_id: str
    title: str
    reason: str
    severity: Literal["warning", "error"]


def _window(stop: Stop) -> tuple[int, int] | None:
    if not stop.has_time_window:
        return None
    try:
        return parse_clock(stop.preferred_time_start), parse_clock(stop.preferred_time_end)
    except ValidationError:
        return None


def _overlaps(first: tuple[int, int], second: tuple[int, int]) -> bool:
    return first[0] < second[1] and second[0] < first[1]


def detect_time_window_conflicts(
    ordering: Sequence[Stop],
    segments: Sequence[TravelSegment] = (),
) -> list[TimeWindowConflict]:
    """Flag stops whose preferred windows cannot hold the job or the drive to it.

    Errors mark jobs longer than their own window. Warnings mark too little
    time between the previous stop's window and this one given the travel leg
    connecting them, and windows that overlap a later stop sharing the same
    recurrence pattern (those are likely booked on the same day).
    """

    travel_by_pair = {
        (segment.origin_stop_id, segment.destination_stop_id): segment.travel_time_minutes
        for segment in segments
        if segment.origin_stop_id and segment.destination_stop_id
    }
    conflicts: list[TimeWindowConflict] = []

    for index, stop in enumerate(ordering):
        window = _window(stop)
        if window is None:
            continue

        window_minutes = window[1] - window[0]
        if stop.estimated_duration_minutes > window_minutes:
            conflicts.append(
                TimeWindowConflict(
                    stop_id=stop.id,
                    title=stop.title,
                    reason=(
                        f"Job duration ({round(stop.estimated_duration_minutes)}min) exceeds "
                        f"time window ({window_minutes}min)"
                    ),
                    severity="error",
                )
            )
            continue

        if index > 0:
            previous = ordering[index - 1]
            previous_window = _window(previous)
            travel = travel_by_pair.get((previous.id, stop.id))
            if previous_window is not None and travel is not None:
                available = window[0] - previous_window[1]
                if available < travel:
                    conflicts.append(
                        TimeWindowConflict(
                            stop_id=stop.id,
                            title=stop.title,
                            reason=(
                                f"Insufficient travel time from {previous.title} "
                                f"({available}min available, {round(travel)}min needed)"
                            ),
                            severity="warning",
                        )
                    )

        for other in ordering[index + 1:]:
            if other.recurrence_pattern != stop.recurrence_pattern:
                continue
            other_window = _window(other)
            if other_window is not None and _overlaps(window, other_window):
                conflicts.append(
                    TimeWindowConflict(
                        stop_id=stop.id,
                        title=stop.title,
                        reason=f"Time window overlaps with {other.title}",
                        severity="warning",
                    )
                )
                break

    return conflicts
