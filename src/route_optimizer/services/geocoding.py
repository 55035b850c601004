"""Address geocoding with an in-process cache keyed by address."""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable

import httpx

from ..config import settings
from ..errors import TransientServiceError
from ..models.domain import Coordinates

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    return " ".join(address.split()).lower()


class GeocodeResolver:
    """Resolve address strings to coordinates, memoizing every answer.

    Unresolvable addresses are cached as ``None`` so they are not looked up
    again; service failures are raised and never cached. Without a configured
    geocoder every address resolves to ``None``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        max_retries: int = 1,
        backoff_seconds: float = 0.5,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url if base_url is not None else settings.geocoder_base_url
        self.user_agent = user_agent or settings.geocoder_user_agent
        self.timeout = timeout if timeout is not None else settings.geocoder_timeout_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._cache: dict[str, Coordinates | None] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def cached(self, address: str) -> bool:
        with self._lock:
            return normalize_address(address) in self._cache

    def resolve(self, address: str) -> Coordinates | None:
        key = normalize_address(address)
        if not key:
            return None
        with self._lock:
            if key in self._cache:
                self.hits += 1
                logger.debug(f"Geocode cache hit for '{address}'")
                return self._cache[key]

        coordinates = self._lookup(address) if self.configured else None
        with self._lock:
            self.misses += 1
            self._cache[key] = coordinates
        if coordinates is None:
            logger.info(f"Address could not be geocoded: '{address}'")
        return coordinates

    def resolve_many(self, addresses: Iterable[str]) -> dict[str, Coordinates | None]:
        resolved: dict[str, Coordinates | None] = {}
        for address in addresses:
            if address not in resolved:
                resolved[address] = self.resolve(address)
        return resolved

    def _lookup(self, address: str) -> Coordinates | None:
        params = {"q": address, "format": "json", "limit": 1}
        url = f"{self.base_url}/search"
        with httpx.Client(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        ) as client:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    results = response.json()
                    break
                except (httpx.HTTPError, ValueError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise TransientServiceError(
                            f"Geocoding failed for '{address}': {exc}", service="geocoding"
                        ) from exc
                    logger.debug(f"Geocoding error, retrying (attempt {attempt}/{self.max_retries}): {exc}")
                    time.sleep(self.backoff_seconds * attempt)

        if not results:
            return None
        first = results[0]
        try:
            return Coordinates(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Unexpected geocoding payload for '{address}': {first}")
            return None
