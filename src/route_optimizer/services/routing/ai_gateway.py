"""Gateway between the ordering store and the AI route optimization service."""

from __future__ import annotations

import asyncio
import logging

from ...config import settings
from ...errors import StaleResultError, TransientServiceError, ValidationError
from ...models.domain import AIOptimizationResult, OptimizationConstraints
from .ai_client import LLMRouteOptimizationService, RouteOptimizationService
from .ordering_store import OrderingStore

logger = logging.getLogger(__name__)


def default_constraints() -> OptimizationConstraints:
    return OptimizationConstraints(
        max_daily_hours=settings.default_max_daily_hours,
        start_time=settings.default_start_time,
        end_time=settings.default_end_time,
    )


class AIRouteOptimizerGateway:
    """Send the current route to the optimizer and apply the answer atomically.

    The answer is checked against the stops in the store when it *arrives*,
    not when the request was sent: manual moves made while waiting are fine
    (only membership matters), but a stop added or removed in the meantime
    makes the answer stale and it is rejected.
    """

    def __init__(
        self,
        store: OrderingStore,
        service: RouteOptimizationService | None = None,
        timeout: float | None = None,
    ) -> None:
        self.store = store
        self.service = service or LLMRouteOptimizationService()
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    async def optimize(self, constraints: OptimizationConstraints | None = None) -> AIOptimizationResult:
        constraints = constraints or default_constraints()
        stops = self.store.get_ordering()
        if len(stops) < 2:
            raise ValidationError("At least two jobs are needed to optimize a route.")
        requested_ids = {stop.id for stop in stops}

        try:
            result = await asyncio.wait_for(self.service.optimize(stops, constraints), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning(f"AI optimization exceeded {self.timeout:.0f}s")
            raise TransientServiceError(
                "AI optimization took too long. Please try again.", service="ai"
            ) from exc
        except (ValidationError, TransientServiceError):
            raise
        except Exception as exc:
            logger.exception(f"Unexpected error from AI optimization service: {exc}")
            raise TransientServiceError(f"AI optimization failed: {exc}", service="ai") from exc

        returned_ids = [stop.id for stop in result.optimized_ordering]
        if len(returned_ids) != len(set(returned_ids)) or set(returned_ids) != requested_ids:
            raise ValidationError("AI optimizer returned an order that does not contain each job exactly once.")
        if set(self.store.ids()) != requested_ids:
            raise StaleResultError("The route changed while it was being optimized. Please try again.")

        self.store.replace_ordering(result.optimized_ordering)
        logger.info(
            f"Applied AI route order for {len(returned_ids)} stops "
            f"(estimated {result.estimated_time_saved_minutes} minutes saved)"
        )
        return result

    def start(self, constraints: OptimizationConstraints | None = None) -> asyncio.Task:
        """Run ``optimize`` as a task that ``cancel`` can abandon."""
        self.cancel()
        self._task = asyncio.ensure_future(self.optimize(constraints))
        return self._task

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None
