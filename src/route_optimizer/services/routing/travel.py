"""Travel segment providers for consecutive route legs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol, Sequence

from ...config import settings
from ...errors import ValidationError
from ...models.domain import Coordinates, Stop, TravelSegment
from ..geocoding import GeocodeResolver
from ..geospatial import haversine_miles, meters_to_miles
from .osrm_client import OSRMClient

logger = logging.getLogger(__name__)


class TravelSegmentProvider(Protocol):
    def segments(self, origins: Sequence[str], destinations: Sequence[str]) -> list[TravelSegment]:
        """Return one segment per (origin, destination) pair, in order."""
        ...


@dataclass(slots=True)
class LegRequests:
    """Origin/destination address lists for the routable stops of an ordering."""

    stops: list[Stop] = field(default_factory=list)
    origins: list[str] = field(default_factory=list)
    destinations: list[str] = field(default_factory=list)

    @property
    def pairs(self) -> list[tuple[str, str]]:
        return [(self.stops[i].id, self.stops[i + 1].id) for i in range(len(self.stops) - 1)]

    def __bool__(self) -> bool:
        return len(self.origins) > 0


def build_leg_requests(
    ordering: Sequence[Stop],
    coordinates: Mapping[str, Coordinates | None],
) -> LegRequests:
    """Pair up consecutive routable stops, skipping stops without usable addresses.

    A stop is routable when it has an address and that address geocoded.
    Skipped stops do not produce zero-length legs; the stops on either side of
    them are paired directly.
    """
    routable = [
        stop
        for stop in ordering
        if stop.has_address and coordinates.get(stop.address) is not None
    ]
    if len(routable) < 2:
        return LegRequests(stops=routable)
    addresses = [stop.address for stop in routable]
    return LegRequests(stops=routable, origins=addresses[:-1], destinations=addresses[1:])


def _check_pairs(origins: Sequence[str], destinations: Sequence[str]) -> None:
    if len(origins) != len(destinations):
        raise ValidationError(
            f"Origins and destinations must align ({len(origins)} vs {len(destinations)})."
        )


def _coordinates_for(resolver: GeocodeResolver, address: str) -> Coordinates:
    point = resolver.resolve(address)
    if point is None:
        raise ValidationError(f"Address '{address}' has no coordinates.")
    return point


class OSRMTravelProvider:
    """Road travel times from OSRM ``route`` legs."""

    def __init__(self, resolver: GeocodeResolver, client: OSRMClient | None = None) -> None:
        self.resolver = resolver
        self.client = client or OSRMClient()

    def segments(self, origins: Sequence[str], destinations: Sequence[str]) -> list[TravelSegment]:
        _check_pairs(origins, destinations)
        if not origins:
            return []

        chained = all(destinations[i] == origins[i + 1] for i in range(len(origins) - 1))
        if chained:
            waypoints = [_coordinates_for(self.resolver, address) for address in [origins[0], *destinations]]
            legs = self.client.route_legs([(p.latitude, p.longitude) for p in waypoints])
        else:
            legs = []
            for origin, destination in zip(origins, destinations):
                a = _coordinates_for(self.resolver, origin)
                b = _coordinates_for(self.resolver, destination)
                legs.extend(self.client.route_legs([(a.latitude, a.longitude), (b.latitude, b.longitude)]))

        logger.info(f"Fetched {len(legs)} OSRM travel legs")
        return [
            TravelSegment(
                travel_time_minutes=duration_s / 60.0,
                distance_miles=meters_to_miles(distance_m),
            )
            for duration_s, distance_m in legs
        ]


class HaversineTravelProvider:
    """Straight-line estimate used when no road routing service is configured."""

    def __init__(self, resolver: GeocodeResolver, average_speed_mph: float | None = None) -> None:
        self.resolver = resolver
        self.average_speed_mph = average_speed_mph or settings.average_speed_mph

    def segments(self, origins: Sequence[str], destinations: Sequence[str]) -> list[TravelSegment]:
        _check_pairs(origins, destinations)
        segments: list[TravelSegment] = []
        for origin, destination in zip(origins, destinations):
            miles = haversine_miles(
                _coordinates_for(self.resolver, origin),
                _coordinates_for(self.resolver, destination),
            )
            segments.append(
                TravelSegment(
                    travel_time_minutes=miles / self.average_speed_mph * 60.0,
                    distance_miles=miles,
                )
            )
        return segments


def build_travel_provider(resolver: GeocodeResolver) -> TravelSegmentProvider:
    if settings.osrm_base_url:
        return OSRMTravelProvider(resolver)
    logger.info("OSRM not configured, estimating travel with haversine distances")
    return HaversineTravelProvider(resolver)
