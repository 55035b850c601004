"""Route editing session.

A session owns the ordering store for one route-optimization view and keeps
the derived picture (travel legs, metrics, time window conflicts) in step
with it. Pipeline:

    store -> addresses -> geocoder -> travel provider -> metrics -> preview

Any store mutation schedules a refresh on the running event loop. Geocoding
only happens when the *set* of addresses changes; travel legs are refetched
on every reorder because they are positional. A refresh whose store version
was superseded, or that finishes after ``close()``, is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from ...config import settings
from ...errors import RouteOptimizerError, TransientServiceError, ValidationError
from ...models.domain import (
    AIOptimizationResult,
    Coordinates,
    Notification,
    OptimizationConstraints,
    OptimizationOutcome,
    RouteMetrics,
    Stop,
    TravelSegment,
)
from ..geocoding import GeocodeResolver
from .ai_client import RouteOptimizationService
from .ai_gateway import AIRouteOptimizerGateway
from .conflicts import TimeWindowConflict, detect_time_window_conflicts
from .metrics import SuggestionStrategy, calculate_route_metrics
from .ordering_store import OrderingStore
from .reorder import ManualReorderController
from .travel import TravelSegmentProvider, build_leg_requests, build_travel_provider

logger = logging.getLogger(__name__)

RouteSaver = Callable[[list[Stop]], Any]


@dataclass(slots=True)
class _TravelFetch:
    """What one worker-thread fetch produced; applied on the loop only if still current."""

    address_key: frozenset[str] | None
    coordinates: dict[str, Coordinates | None]
    segments: list[TravelSegment] = field(default_factory=list)
    warning: str | None = None
    provider_called: bool = False


class RouteEditingSession:
    def __init__(
        self,
        stops: Sequence[Stop],
        *,
        resolver: GeocodeResolver | None = None,
        travel_provider: TravelSegmentProvider | None = None,
        optimizer_service: RouteOptimizationService | None = None,
        suggestion_strategy: SuggestionStrategy | None = None,
        travel_timeout: float | None = None,
        ai_timeout: float | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.store = OrderingStore(stops)
        self.resolver = resolver or GeocodeResolver()
        self.travel_provider = travel_provider or build_travel_provider(self.resolver)
        self.controller = ManualReorderController(self.store)
        self.gateway = AIRouteOptimizerGateway(self.store, optimizer_service, timeout=ai_timeout)
        self.strategy = suggestion_strategy
        self.travel_timeout = travel_timeout if travel_timeout is not None else settings.travel_timeout_seconds

        self.segments: list[TravelSegment] = []
        self.metrics: RouteMetrics = calculate_route_metrics(self.store.get_ordering(), [], self.strategy)
        self.conflicts: list[TimeWindowConflict] = []
        self.notifications: list[Notification] = []
        self.insights: AIOptimizationResult | None = None
        self.travel_error: str | None = None
        self.last_error: RouteOptimizerError | None = None
        self.segment_fetches = 0

        self._computed_version = -1
        self._address_key: frozenset[str] | None = None
        self._coordinates: dict[str, Coordinates | None] = {}
        self._refresh_task: asyncio.Task | None = None
        self._closed = False
        self._unsubscribe = self.store.subscribe(self._on_ordering_changed)

    @property
    def ordering(self) -> list[Stop]:
        return self.store.get_ordering()

    @property
    def stale(self) -> bool:
        return self._computed_version != self.store.version

    @property
    def closed(self) -> bool:
        return self._closed

    # -- derived data ---------------------------------------------------------

    def _on_ordering_changed(self, kind: str) -> None:
        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop yet; the next settle()/refresh() picks the change up
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = loop.create_task(self.refresh())

    async def settle(self) -> RouteMetrics:
        """Wait for scheduled refreshes and return up-to-date metrics."""
        while self._refresh_task is not None and not self._refresh_task.done():
            await asyncio.wait({self._refresh_task})
        if self.stale and not self._closed:
            await self.refresh()
        return self.metrics

    async def refresh(self) -> RouteMetrics:
        if self._closed:
            return self.metrics

        version = self.store.version
        ordering = self.store.get_ordering()
        fetch: _TravelFetch | None = None
        warning: str | None = None
        try:
            fetch = await asyncio.wait_for(
                asyncio.to_thread(self._fetch_segments, ordering, self._address_key, self._coordinates),
                timeout=self.travel_timeout,
            )
        except asyncio.TimeoutError:
            warning = "Travel times took too long to load."
        except (TransientServiceError, ValidationError) as exc:
            warning = f"Travel times unavailable: {exc}"
        except Exception as exc:
            logger.exception(f"Unexpected error computing travel legs: {exc}")
            warning = "Travel times unavailable."

        if self._closed or version != self.store.version:
            logger.debug(f"Discarding travel data for superseded route version {version}")
            return self.metrics

        segments: list[TravelSegment] = []
        if fetch is not None:
            self._address_key = fetch.address_key
            self._coordinates = fetch.coordinates
            if fetch.provider_called:
                self.segment_fetches += 1
            segments, warning = fetch.segments, fetch.warning

        if warning:
            logger.warning(f"Session {self.id}: {warning}")
            self._notify("warning", warning)
        self.travel_error = warning
        self.segments = segments
        self.metrics = calculate_route_metrics(ordering, segments, self.strategy)
        self.conflicts = detect_time_window_conflicts(ordering, segments)
        self._computed_version = version
        return self.metrics

    def _fetch_segments(
        self,
        ordering: Sequence[Stop],
        address_key: frozenset[str] | None,
        coordinates: dict[str, Coordinates | None],
    ) -> _TravelFetch:
        """Runs on a worker thread; reads session state only through its arguments."""
        warning: str | None = None
        addresses = sorted({stop.address for stop in ordering if stop.has_address})
        key = frozenset(addresses)
        if key != address_key:
            coordinates = {}
            failures = 0
            for address in addresses:
                try:
                    coordinates[address] = self.resolver.resolve(address)
                except TransientServiceError as exc:
                    coordinates[address] = None
                    failures += 1
                    warning = f"Some addresses could not be located: {exc}"
            # retry the lookups on the next refresh when any of them failed
            address_key = key if not failures else None
            logger.info(f"Geocoded {len(addresses)} addresses ({failures} failed)")

        fetch = _TravelFetch(address_key=address_key, coordinates=coordinates, warning=warning)
        requests = build_leg_requests(ordering, coordinates)
        if not requests:
            return fetch

        fetch.provider_called = True
        raw = self.travel_provider.segments(requests.origins, requests.destinations)
        if len(raw) != len(requests.origins):
            raise TransientServiceError(
                f"Travel provider returned {len(raw)} legs for {len(requests.origins)} requested.",
                service="travel",
            )
        fetch.segments = [
            TravelSegment(
                travel_time_minutes=segment.travel_time_minutes,
                distance_miles=segment.distance_miles,
                origin_stop_id=origin_id,
                destination_stop_id=destination_id,
            )
            for segment, (origin_id, destination_id) in zip(raw, requests.pairs)
        ]
        return fetch

    # -- mutations ------------------------------------------------------------

    async def move_stop(self, source_id: str, destination_id: str) -> bool:
        changed = self.controller.move(source_id, destination_id)
        if changed:
            await self.settle()
        return changed

    async def remove_stop(self, stop_id: str) -> bool:
        """Mirror a job template deleted elsewhere into this session."""
        removed = self.store.discard(stop_id)
        if removed:
            await self.settle()
        return removed

    async def optimize(self, constraints: OptimizationConstraints | None = None) -> OptimizationOutcome | None:
        """Run AI optimization; failures become notifications and leave the order untouched."""
        if self.gateway.pending:
            return self._fail(ValidationError("An optimization is already running for this route."))

        metrics_before = await self.settle()
        task = self.gateway.start(constraints)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._closed:
                logger.info(f"Session {self.id} closed while optimization was pending")
                return None
            raise
        except (ValidationError, TransientServiceError) as exc:
            return self._fail(exc)

        self.insights = result
        self.last_error = None
        metrics_after = await self.settle()
        self._notify("info", f"Route optimized. Estimated time saved: {result.display_time_saved} minutes.")
        return OptimizationOutcome(result=result, metrics_before=metrics_before, metrics_after=metrics_after)

    def commit(self, saver: RouteSaver | None = None) -> list[Stop]:
        """Hand the final order to ``saver`` and end the session."""
        ordering = self.store.get_ordering()
        if saver is not None:
            saver(ordering)
        logger.info(f"Session {self.id} committed {len(ordering)} stops")
        self.close()
        return ordering

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.gateway.cancel()
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._unsubscribe()

    def _fail(self, exc: RouteOptimizerError) -> None:
        logger.warning(f"Session {self.id}: {exc}")
        self.last_error = exc
        self._notify("error", str(exc))
        return None

    def _notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level=level, message=message))

    def drain_notifications(self) -> list[Notification]:
        pending, self.notifications = self.notifications, []
        return pending
