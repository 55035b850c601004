"""Route optimization orchestration service."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Sequence

from ...config import settings
from ...errors import ValidationError
from ...models.domain import Stop
from ...schemas.routing import (
    CommitResponse,
    MetricsRequest,
    NotificationModel,
    OptimizeRequest,
    OptimizeResponse,
    RoutePreviewModel,
    SessionResponse,
    StopModel,
)
from ..geocoding import GeocodeResolver
from .conflicts import detect_time_window_conflicts
from .metrics import calculate_route_metrics
from .preview import build_insights, build_preview
from .session import RouteEditingSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Sequence[Stop]], RouteEditingSession]


class SessionNotFoundError(KeyError):
    pass


class SessionRegistry:
    """In-memory route editing sessions, oldest evicted first."""

    def __init__(
        self,
        max_sessions: int | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.max_sessions = max_sessions or settings.max_sessions
        self._resolver: GeocodeResolver | None = None
        self._factory = session_factory or self._default_factory
        self._sessions: OrderedDict[str, RouteEditingSession] = OrderedDict()

    def _default_factory(self, stops: Sequence[Stop]) -> RouteEditingSession:
        # one geocode cache shared by every session
        if self._resolver is None:
            self._resolver = GeocodeResolver()
        return RouteEditingSession(stops, resolver=self._resolver)

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, stops: Sequence[Stop]) -> RouteEditingSession:
        session = self._factory(stops)
        self._sessions[session.id] = session
        while len(self._sessions) > self.max_sessions:
            _, evicted = self._sessions.popitem(last=False)
            logger.info(f"Evicting route session {evicted.id}")
            evicted.close()
        return session

    def get(self, session_id: str) -> RouteEditingSession:
        session = self._sessions.get(session_id)
        if session is None or session.closed:
            raise SessionNotFoundError(session_id)
        return session

    def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True


registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return registry


def _to_stops(models: Sequence[StopModel]) -> list[Stop]:
    return [model.to_domain() for model in models]


def compute_metrics(payload: MetricsRequest) -> RoutePreviewModel:
    """Score a route from caller supplied stops and travel legs without a session."""
    stops = _to_stops(payload.stops)
    segments = [segment.to_domain() for segment in payload.segments]
    addressed = sum(1 for stop in stops if stop.has_address)
    if segments and len(segments) > max(0, addressed - 1):
        raise ValidationError(
            f"{len(segments)} travel legs supplied but only {addressed} stops have addresses."
        )
    metrics = calculate_route_metrics(stops, segments)
    conflicts = detect_time_window_conflicts(stops, segments)
    return build_preview(metrics, stops, conflicts)


def session_response(session: RouteEditingSession, *, changed: bool | None = None) -> SessionResponse:
    ordering = session.ordering
    return SessionResponse(
        session_id=session.id,
        version=session.store.version,
        stop_ids=[stop.id for stop in ordering],
        stops=[StopModel.from_domain(stop) for stop in ordering],
        preview=build_preview(session.metrics, ordering, session.conflicts),
        travel_error=session.travel_error,
        notifications=[
            NotificationModel(level=note.level, message=note.message)
            for note in session.drain_notifications()
        ],
        changed=changed,
    )


async def open_session(stops: Sequence[StopModel]) -> SessionResponse:
    session = get_registry().create(_to_stops(stops))
    logger.info(f"Opened route session {session.id} with {len(stops)} stops")
    await session.settle()
    return session_response(session)


async def describe_session(session_id: str) -> SessionResponse:
    session = get_registry().get(session_id)
    await session.settle()
    return session_response(session)


async def move_stop(session_id: str, source_id: str, destination_id: str) -> SessionResponse:
    session = get_registry().get(session_id)
    changed = await session.move_stop(source_id, destination_id)
    return session_response(session, changed=changed)


async def remove_stop(session_id: str, stop_id: str) -> SessionResponse:
    session = get_registry().get(session_id)
    removed = await session.remove_stop(stop_id)
    return session_response(session, changed=removed)


async def optimize_session(session_id: str, payload: OptimizeRequest) -> OptimizeResponse:
    """Run AI optimization, raising the session's recorded error when it was not applied."""
    session = get_registry().get(session_id)
    constraints = payload.constraints.to_domain() if payload.constraints else None
    outcome = await session.optimize(constraints)
    if outcome is None:
        error = session.last_error or ValidationError("Optimization was not applied.")
        session.drain_notifications()
        raise error
    return OptimizeResponse(
        session=session_response(session, changed=True),
        insights=build_insights(outcome.result),
        efficiency_before=outcome.metrics_before.efficiency_score if outcome.metrics_before else None,
    )


def commit_session(session_id: str) -> CommitResponse:
    sessions = get_registry()
    session = sessions.get(session_id)
    ordering = session.commit()
    sessions.close(session_id)
    return CommitResponse(session_id=session_id, stop_ids=[stop.id for stop in ordering])


def close_session(session_id: str) -> bool:
    return get_registry().close(session_id)
