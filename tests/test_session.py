import asyncio
import time

import pytest

from route_optimizer.errors import StaleResultError, TransientServiceError, ValidationError
from route_optimizer.models.domain import AIOptimizationResult, Coordinates, Stop, TravelSegment
from route_optimizer.services.routing.session import RouteEditingSession


class DummyResolver:
    def __init__(self, broken=()):
        self.broken = set(broken)
        self.calls: list[str] = []

    def resolve(self, address):
        self.calls.append(address)
        if address in self.broken:
            raise TransientServiceError("geocoder down", service="geocoding")
        if address.startswith("Unknown"):
            return None
        return Coordinates(40.0, -75.0)


class DummyTravel:
    def __init__(self, minutes: float = 10, miles: float = 5, delay: float = 0.0, error: Exception | None = None):
        self.minutes = minutes
        self.miles = miles
        self.delay = delay
        self.error = error
        self.requests: list[tuple[list[str], list[str]]] = []

    def segments(self, origins, destinations):
        self.requests.append((list(origins), list(destinations)))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [TravelSegment(self.minutes, self.miles) for _ in origins]


class DummyOptimizer:
    def __init__(self, order_ids, delay: float = 0.0):
        self.order_ids = order_ids
        self.delay = delay

    async def optimize(self, stops, constraints):
        if self.delay:
            await asyncio.sleep(self.delay)
        by_id = {stop.id: stop for stop in stops}
        return AIOptimizationResult(
            optimized_ordering=[by_id[stop_id] for stop_id in self.order_ids],
            reasoning="cluster by neighbourhood",
            estimated_time_saved_minutes=15,
            suggestions=["Start with the north side"],
        )


def _stop(stop_id: str, duration: float = 30, address: str | None = None) -> Stop:
    return Stop(
        id=stop_id,
        title=f"Job {stop_id}",
        estimated_duration_minutes=duration,
        address=address if address is not None else f"{stop_id} Main St",
    )


def _session(stops=None, *, resolver=None, travel=None, optimizer=None, **kwargs) -> RouteEditingSession:
    return RouteEditingSession(
        stops if stops is not None else [_stop("A"), _stop("B"), _stop("C")],
        resolver=resolver or DummyResolver(),
        travel_provider=travel or DummyTravel(),
        optimizer_service=optimizer or DummyOptimizer(["C", "B", "A"]),
        travel_timeout=kwargs.pop("travel_timeout", 5),
        ai_timeout=kwargs.pop("ai_timeout", 5),
        **kwargs,
    )


async def _wait_for_pending(session: RouteEditingSession) -> None:
    while not session.gateway.pending:
        await asyncio.sleep(0.001)


def test_settle_computes_metrics_for_initial_order():
    session = _session([_stop("A", 30), _stop("B", 45), _stop("C", 20)], travel=DummyTravel(7.5, 3.5))

    metrics = asyncio.run(session.settle())

    assert metrics.total_job_time == 95
    assert metrics.total_travel_time == 15
    assert metrics.total_distance == 7
    assert metrics.efficiency_score == 86
    assert [(s.origin_stop_id, s.destination_stop_id) for s in session.segments] == [("A", "B"), ("B", "C")]
    assert session.stale is False


def test_noop_drag_does_not_refetch_travel():
    session = _session()

    async def scenario():
        await session.settle()
        fetches = session.segment_fetches
        version = session.store.version
        assert await session.move_stop("B", "B") is False
        assert await session.move_stop("A", "missing") is False
        return fetches, version

    fetches, version = asyncio.run(scenario())
    assert session.segment_fetches == fetches
    assert session.store.version == version
    assert session.ordering[0].id == "A"


def test_reorder_refetches_travel_but_reuses_geocodes():
    resolver = DummyResolver()
    travel = DummyTravel()
    session = _session(resolver=resolver, travel=travel)

    async def scenario():
        await session.settle()
        geocodes = len(resolver.calls)
        assert await session.move_stop("A", "C") is True
        return geocodes

    geocodes = asyncio.run(scenario())

    assert geocodes == 3
    assert len(resolver.calls) == 3
    assert session.segment_fetches == 2
    assert travel.requests[-1] == (["B Main St", "C Main St"], ["C Main St", "A Main St"])
    assert [(s.origin_stop_id, s.destination_stop_id) for s in session.segments] == [("B", "C"), ("C", "A")]


def test_unroutable_stops_are_skipped():
    stops = [_stop("A"), _stop("B", address=""), _stop("C", address="Unknown Rd"), _stop("D")]
    session = _session(stops)

    asyncio.run(session.settle())

    assert [(s.origin_stop_id, s.destination_stop_id) for s in session.segments] == [("A", "D")]
    assert session.metrics.total_job_time == 120


def test_travel_failure_becomes_warning_and_job_only_metrics():
    travel = DummyTravel(error=TransientServiceError("osrm down", service="osrm"))
    session = _session(travel=travel)

    asyncio.run(session.settle())

    assert session.segments == []
    assert session.metrics.total_job_time == 90
    assert session.metrics.efficiency_score == 100
    assert session.travel_error == "Travel times unavailable: osrm down"
    notes = session.drain_notifications()
    assert [note.level for note in notes] == ["warning"]
    assert session.drain_notifications() == []


def test_travel_timeout_becomes_warning():
    session = _session(travel=DummyTravel(delay=0.3), travel_timeout=0.05)

    asyncio.run(session.settle())

    assert session.travel_error == "Travel times took too long to load."
    assert session.segments == []


def test_geocode_failure_excludes_stop_and_retries_later():
    resolver = DummyResolver(broken={"B Main St"})
    session = _session(resolver=resolver)

    async def scenario():
        await session.settle()
        assert [(s.origin_stop_id, s.destination_stop_id) for s in session.segments] == [("A", "C")]
        assert session.travel_error.startswith("Some addresses could not be located")
        resolver.broken.clear()
        await session.move_stop("C", "A")

    asyncio.run(scenario())

    assert resolver.calls.count("B Main St") == 2
    assert session.travel_error is None
    assert len(session.segments) == 2


def test_optimize_applies_ai_order_and_recomputes():
    session = _session(optimizer=DummyOptimizer(["C", "A", "B"]))

    outcome = asyncio.run(session.optimize())

    assert outcome is not None
    assert [stop.id for stop in session.ordering] == ["C", "A", "B"]
    assert outcome.result.display_time_saved == 15
    assert [(s.origin_stop_id, s.destination_stop_id) for s in outcome.metrics_after.segments] == [
        ("C", "A"),
        ("A", "B"),
    ]
    assert session.insights is outcome.result
    assert session.drain_notifications()[-1].message == "Route optimized. Estimated time saved: 15 minutes."


def test_ai_result_lands_after_manual_reorder():
    session = _session(optimizer=DummyOptimizer(["B", "A", "C"], delay=0.1))

    async def scenario():
        optimize = asyncio.ensure_future(session.optimize())
        await _wait_for_pending(session)
        assert await session.move_stop("A", "C") is True
        assert [stop.id for stop in session.ordering] == ["B", "C", "A"]
        return await optimize

    outcome = asyncio.run(scenario())

    assert outcome is not None
    assert [stop.id for stop in session.ordering] == ["B", "A", "C"]
    assert [(s.origin_stop_id, s.destination_stop_id) for s in session.segments] == [("B", "A"), ("A", "C")]
    assert session.stale is False


def test_stop_removed_mid_flight_rejects_ai_result():
    session = _session(optimizer=DummyOptimizer(["C", "B", "A"], delay=0.1))

    async def scenario():
        optimize = asyncio.ensure_future(session.optimize())
        await _wait_for_pending(session)
        assert await session.remove_stop("C") is True
        return await optimize

    outcome = asyncio.run(scenario())

    assert outcome is None
    assert [stop.id for stop in session.ordering] == ["A", "B"]
    assert isinstance(session.last_error, StaleResultError)
    assert session.drain_notifications()[-1].level == "error"


def test_optimize_needs_two_stops():
    session = _session([_stop("A")])

    outcome = asyncio.run(session.optimize())

    assert outcome is None
    assert isinstance(session.last_error, ValidationError)
    assert [stop.id for stop in session.ordering] == ["A"]


def test_concurrent_optimize_is_rejected():
    session = _session(optimizer=DummyOptimizer(["C", "B", "A"], delay=0.1))

    async def scenario():
        first = asyncio.ensure_future(session.optimize())
        await _wait_for_pending(session)
        second = await session.optimize()
        return await first, second

    first, second = asyncio.run(scenario())

    assert first is not None
    assert second is None
    assert [stop.id for stop in session.ordering] == ["C", "B", "A"]


def test_close_discards_pending_optimization():
    session = _session(optimizer=DummyOptimizer(["C", "B", "A"], delay=0.1))

    async def scenario():
        optimize = asyncio.ensure_future(session.optimize())
        await _wait_for_pending(session)
        session.close()
        result = await optimize
        await asyncio.sleep(0.15)
        return result

    assert asyncio.run(scenario()) is None
    assert session.closed
    assert [stop.id for stop in session.ordering] == ["A", "B", "C"]


def test_close_discards_in_flight_travel_data():
    travel = DummyTravel(delay=0.1)
    session = _session(travel=travel)

    async def scenario():
        await session.settle()
        before = list(session.segments)
        session.controller.move("A", "C")
        await asyncio.sleep(0)
        session.close()
        await asyncio.sleep(0.2)
        return before

    before = asyncio.run(scenario())

    assert session.segments == before
    assert [stop.id for stop in session.ordering] == ["B", "C", "A"]



def test_late_fetch_after_close_leaves_session_caches_alone():
    travel = DummyTravel(delay=0.1)
    session = _session(travel=travel)

    async def scenario():
        await session.settle()
        session.store.discard("C")
        await asyncio.sleep(0)
        session.close()
        await asyncio.sleep(0.2)

    asyncio.run(scenario())

    assert len(travel.requests) == 2
    assert session.segment_fetches == 1
    assert session._address_key == frozenset({"A Main St", "B Main St", "C Main St"})
    assert set(session._coordinates) == {"A Main St", "B Main St", "C Main St"}


def test_commit_hands_final_order_to_saver():
    saved: list[list[str]] = []
    session = _session()

    async def scenario():
        await session.settle()
        await session.move_stop("C", "A")

    asyncio.run(scenario())
    ordering = session.commit(lambda stops: saved.append([stop.id for stop in stops]))

    assert [stop.id for stop in ordering] == ["C", "A", "B"]
    assert saved == [["C", "A", "B"]]
    assert session.closed


@pytest.mark.parametrize("stop_ids", [["A"], []])
def test_short_routes_have_no_segments(stop_ids):
    session = _session([_stop(stop_id) for stop_id in stop_ids])
    metrics = asyncio.run(session.settle())
    assert metrics.segments == []
    assert metrics.efficiency_score == 100
    assert session.segment_fetches == 0
