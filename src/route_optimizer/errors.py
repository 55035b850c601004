"""Error taxonomy for route editing.

Validation failures subclass ``ValueError`` and service failures subclass
``ConnectionError`` so the API layer can keep mapping them the usual way
(400 and 503 respectively).
"""

from __future__ import annotations


class RouteOptimizerError(Exception):
    """Base class for all errors raised by the route optimization engine."""


class ValidationError(RouteOptimizerError, ValueError):
    """Caller misuse: too few stops, mismatched permutations, bad payloads."""


class StaleResultError(ValidationError):
    """An optimization result no longer matches the stops currently in the route."""


class TransientServiceError(RouteOptimizerError, ConnectionError):
    """Geocoding, travel-time or AI service unavailable, failing or too slow."""

    def __init__(self, message: str, *, service: str = "unknown") -> None:
        super().__init__(message)
        self.service = service
