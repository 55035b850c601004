"""Stateless route metrics endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...schemas.routing import MetricsRequest, RoutePreviewModel
from ...services.routing.service import compute_metrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/metrics", response_model=RoutePreviewModel, status_code=status.HTTP_200_OK)
def route_metrics(payload: MetricsRequest) -> RoutePreviewModel:
    """Score an ordered list of stops using the travel legs supplied by the caller."""
    try:
        return compute_metrics(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error computing route metrics: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute route metrics: {str(exc)}"
        ) from exc
