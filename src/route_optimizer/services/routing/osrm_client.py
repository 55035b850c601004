"""HTTP client for the OSRM ``route`` service."""

from __future__ import annotations

import logging
import time
from typing import Sequence

import httpx

from ...config import settings
from ...errors import TransientServiceError

logger = logging.getLogger(__name__)

# Fixed pair routed to check connectivity; public OSRM servers expose no /health
HEALTH_CHECK_COORDINATES = "13.388860,52.517037;13.385983,52.496891"


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float = 20.0,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.timeout = timeout
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        # one client per call, route fetches may run on worker threads
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            limits=httpx.Limits(max_connections=1, max_keepalive_connections=0),
            transport=self._transport,
        )

    def _backoff(self, attempt: int, reason: Exception) -> None:
        wait_time = self.backoff_seconds * (2 ** (attempt - 1))
        logger.debug(f"OSRM request failed ({reason}), retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
        time.sleep(wait_time)

    def _get_ok(self, url: str, params: dict) -> dict:
        """GET ``url`` until OSRM answers ``code == "Ok"`` or retries run out."""
        with self._get_client() as client:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                except httpx.HTTPStatusError as e:
                    failure = TransientServiceError(
                        f"OSRM request failed with status {e.response.status_code}", service="osrm"
                    )
                except httpx.TimeoutException as e:
                    failure = TransientServiceError(f"OSRM request timed out: {e}", service="osrm")
                except (httpx.HTTPError, OSError) as e:
                    failure = TransientServiceError(
                        f"Failed to connect to OSRM service at {self.base_url}: {e}", service="osrm"
                    )
                except ValueError as e:
                    failure = TransientServiceError(f"OSRM returned invalid JSON: {e}", service="osrm")
                else:
                    if data.get("code") == "Ok":
                        return data
                    failure = TransientServiceError(
                        f"OSRM route request failed: {data.get('message', data.get('code', 'unknown error'))}",
                        service="osrm",
                    )

                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"Giving up on OSRM after {attempt} attempts: {failure}")
                    raise failure
                self._backoff(attempt, failure)

    def route(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Get the route through the waypoints in the given order.

        Args:
            coordinates: Sequence of (lat, lon) tuples for the route waypoints

        Returns:
            Raw OSRM route response; ``routes[0]["legs"]`` holds one entry per
            consecutive waypoint pair.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        # OSRM expects "lon,lat;lon,lat;..."
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        params = {"overview": "false", "steps": "false", "annotations": "false"}
        return self._get_ok(f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}", params)

    def route_legs(self, coordinates: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
        """Return ``(duration_seconds, distance_meters)`` for each consecutive pair."""
        data = self.route(coordinates)
        try:
            legs = data["routes"][0]["legs"]
            result = [(float(leg["duration"]), float(leg["distance"])) for leg in legs]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise TransientServiceError(
                f"OSRM route response missing legs: {exc}", service="osrm"
            ) from exc
        if len(result) != len(coordinates) - 1:
            raise TransientServiceError(
                f"OSRM returned {len(result)} legs for {len(coordinates)} waypoints.",
                service="osrm",
            )
        return result


def check_health(base_url: str | None = None) -> bool:
    """Return True when OSRM can route between two fixed points."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        client = OSRMClient(base_url=base, timeout=5.0, max_retries=0)
        client._get_ok(f"{client.base_url}/route/v1/{client.profile}/{HEALTH_CHECK_COORDINATES}", {"overview": "false"})
    except TransientServiceError as exc:
        logger.info(f"OSRM health check failed: {exc}")
        return False
    return True
