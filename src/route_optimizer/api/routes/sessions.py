"""Route editing session endpoints."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, HTTPException, status

from ...schemas.routing import (
    CommitResponse,
    CreateSessionRequest,
    MoveStopRequest,
    OptimizeRequest,
    OptimizeResponse,
    SessionResponse,
)
from ...services.routing import service as routing_service
from ...services.routing.service import SessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/route-sessions", tags=["route-sessions"])


def _raise_http(exc: Exception, action: str) -> NoReturn:
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, SessionNotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Route session {exc.args[0]} not found",
        ) from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, ConnectionError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.exception(f"Error while trying to {action}: {exc}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}"
    ) from exc


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(payload: CreateSessionRequest) -> SessionResponse:
    """Open a route editing session seeded with the stops in their current order."""
    try:
        return await routing_service.open_session(payload.stops)
    except Exception as exc:
        _raise_http(exc, "open route session")


@router.get("/{session_id}", response_model=SessionResponse, status_code=status.HTTP_200_OK)
async def get_session(session_id: str) -> SessionResponse:
    try:
        return await routing_service.describe_session(session_id)
    except Exception as exc:
        _raise_http(exc, "load route session")


@router.post("/{session_id}/move", response_model=SessionResponse, status_code=status.HTTP_200_OK)
async def move_stop(session_id: str, payload: MoveStopRequest) -> SessionResponse:
    """Apply a drag-and-drop move; unknown stops and same-slot drops leave the route as is."""
    try:
        return await routing_service.move_stop(session_id, payload.source_id, payload.destination_id)
    except Exception as exc:
        _raise_http(exc, "move stop")


@router.post("/{session_id}/optimize", response_model=OptimizeResponse, status_code=status.HTTP_200_OK)
async def optimize_session(session_id: str, payload: OptimizeRequest | None = None) -> OptimizeResponse:
    try:
        return await routing_service.optimize_session(session_id, payload or OptimizeRequest())
    except Exception as exc:
        _raise_http(exc, "optimize route")


@router.delete("/{session_id}/stops/{stop_id}", response_model=SessionResponse, status_code=status.HTTP_200_OK)
async def remove_stop(session_id: str, stop_id: str) -> SessionResponse:
    """Drop a stop whose job template was deleted elsewhere."""
    try:
        return await routing_service.remove_stop(session_id, stop_id)
    except Exception as exc:
        _raise_http(exc, "remove stop")


@router.post("/{session_id}/commit", response_model=CommitResponse, status_code=status.HTTP_200_OK)
async def commit_session(session_id: str) -> CommitResponse:
    """Return the final order for saving and end the session."""
    try:
        return routing_service.commit_session(session_id)
    except Exception as exc:
        _raise_http(exc, "commit route session")


@router.delete("/{session_id}", status_code=status.HTTP_200_OK)
async def close_session(session_id: str) -> dict:
    if not routing_service.close_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Route session {session_id} not found",
        )
    return {"success": True, "message": f"Route session {session_id} closed"}
