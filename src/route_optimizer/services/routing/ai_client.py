"""Client for the AI route optimization service.

The service is an OpenAI compatible chat completions endpoint. The model is
forced to answer through an ``optimize_route`` tool whose arguments carry the
new order as indices into the stop list we sent.
"""

from __future__ import annotations

import json
import math
import logging
from typing import Any, Protocol, Sequence

import httpx

from ...config import settings
from ...errors import TransientServiceError, ValidationError
from ...models.domain import AIOptimizationResult, OptimizationConstraints, Stop

logger = logging.getLogger(__name__)

OPTIMIZE_ROUTE_TOOL = {
    "type": "function",
    "function": {
        "name": "optimize_route",
        "description": "Return the optimized route order with reasoning",
        "parameters": {
            "type": "object",
            "properties": {
                "optimizedOrder": {
                    "type": "array",
                    "items": {"type": "number"},
                    "description": "Array of job indices in optimized order",
                },
                "reasoning": {
                    "type": "string",
                    "description": "Explanation of optimization decisions",
                },
                "estimatedTimeSaved": {
                    "type": "number",
                    "description": "Estimated time saved in minutes",
                },
                "suggestions": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Additional optimization suggestions",
                },
            },
            "required": ["optimizedOrder", "reasoning", "estimatedTimeSaved", "suggestions"],
            "additionalProperties": False,
        },
    },
}


class RouteOptimizationService(Protocol):
    async def optimize(
        self, stops: Sequence[Stop], constraints: OptimizationConstraints
    ) -> AIOptimizationResult:
        ...


def summarize_stops(stops: Sequence[Stop]) -> list[dict]:
    return [
        {
            "index": index,
            "id": stop.id,
            "title": stop.title,
            "address": stop.address,
            "duration": stop.estimated_duration_minutes,
            "customer": stop.customer_name or "Unknown",
            "pattern": stop.recurrence_pattern,
            "timeWindow": (
                f"{stop.preferred_time_start} - {stop.preferred_time_end}"
                if stop.has_time_window
                else "Flexible"
            ),
        }
        for index, stop in enumerate(stops)
    ]


def build_messages(stops: Sequence[Stop], constraints: OptimizationConstraints) -> list[dict]:
    system_prompt = (
        "You are a route optimization expert for service businesses.\n"
        "Your goal is to reorder recurring jobs to minimize travel time and maximize efficiency.\n\n"
        "Consider:\n"
        "1. Geographic clustering - group nearby locations together\n"
        "2. Travel time minimization - reduce total route distance\n"
        "3. Time windows - respect customer preferred time windows\n"
        "4. Logical flow - create sensible daily routes\n\n"
        "Constraints:\n"
        f"- Max daily hours: {constraints.max_daily_hours}\n"
        f"- Work hours: {constraints.start_time} - {constraints.end_time}\n\n"
        "Every job index must appear exactly once in the optimized order."
    )
    user_prompt = (
        "Optimize this route by reordering the jobs for maximum efficiency:\n\n"
        f"{json.dumps(summarize_stops(stops), indent=2)}\n\n"
        "Return the optimized order and explain your reasoning."
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def parse_tool_arguments(payload: dict, stops: Sequence[Stop]) -> AIOptimizationResult:
    """Map the ``optimize_route`` tool call in a completion back onto stops."""
    try:
        tool_call = payload["choices"][0]["message"]["tool_calls"][0]
        arguments: Any = tool_call["function"]["arguments"]
        if isinstance(arguments, str):
            arguments = json.loads(arguments)
    except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
        raise ValidationError("Invalid AI response format.") from exc
    if not isinstance(arguments, dict):
        raise ValidationError("Invalid AI response format.")

    order = arguments.get("optimizedOrder")
    if not isinstance(order, list):
        raise ValidationError("AI response is missing the optimized order.")

    ordering: list[Stop] = []
    for raw_index in order:
        if (
            isinstance(raw_index, bool)
            or not isinstance(raw_index, (int, float))
            or not math.isfinite(raw_index)
            or raw_index != int(raw_index)
        ):
            raise ValidationError(f"AI response contains a non-integer job index: {raw_index!r}.")
        index = int(raw_index)
        if not 0 <= index < len(stops):
            raise ValidationError(f"AI response references unknown job index {index}.")
        ordering.append(stops[index])

    try:
        time_saved = int(round(float(arguments.get("estimatedTimeSaved") or 0)))
    except (TypeError, ValueError, OverflowError):
        time_saved = 0
    raw_suggestions = arguments.get("suggestions")
    suggestions = [str(item) for item in raw_suggestions] if isinstance(raw_suggestions, list) else []

    return AIOptimizationResult(
        optimized_ordering=ordering,
        reasoning=str(arguments.get("reasoning") or ""),
        estimated_time_saved_minutes=time_saved,
        suggestions=suggestions,
    )


class LLMRouteOptimizationService:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.ai_base_url
        self.api_key = api_key or settings.ai_api_key
        self.model = model or settings.ai_model
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def optimize(
        self, stops: Sequence[Stop], constraints: OptimizationConstraints
    ) -> AIOptimizationResult:
        if not self.configured:
            raise TransientServiceError("AI service not configured", service="ai")

        body = {
            "model": self.model,
            "messages": build_messages(stops, constraints),
            "tools": [OPTIMIZE_ROUTE_TOOL],
            "tool_choice": {"type": "function", "function": {"name": "optimize_route"}},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        logger.info(f"Requesting AI optimization for {len(stops)} stops")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/chat/completions", json=body, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientServiceError("AI optimization timed out. Please try again.", service="ai") from exc
        except httpx.HTTPError as exc:
            raise TransientServiceError(f"AI service unreachable: {exc}", service="ai") from exc

        if response.status_code == 429:
            raise TransientServiceError(
                "AI rate limit exceeded. Please try again in a moment.", service="ai"
            )
        if response.status_code == 402:
            raise TransientServiceError(
                "AI credits depleted. Please add credits to your workspace.", service="ai"
            )
        if response.is_error:
            logger.error(f"AI API error {response.status_code}: {response.text[:500]}")
            raise TransientServiceError("AI service error", service="ai")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ValidationError("Invalid AI response format.") from exc

        result = parse_tool_arguments(payload, stops)
        logger.info(f"AI optimization returned; estimated time saved {result.estimated_time_saved_minutes} minutes")
        return result
