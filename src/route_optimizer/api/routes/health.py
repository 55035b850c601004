"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_osrm_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.osrm_client import check_health as osrm_health_check
    return osrm_health_check


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm() -> dict:
    """Check OSRM service health."""
    try:
        osrm_health_check = _get_osrm_health_check()
        status_flag = osrm_health_check()
        return {"service": "osrm", "healthy": status_flag}
    except Exception as e:
        return {"service": "osrm", "healthy": False, "error": str(e)}


@router.get("/health/services", status_code=status.HTTP_200_OK)
def health_services() -> dict:
    """Report which external collaborators are configured."""
    from ...services.routing.service import get_registry

    return {
        "geocoder": {"configured": bool(settings.geocoder_base_url)},
        "travel": {
            "provider": "osrm" if settings.osrm_base_url else "haversine",
            "configured": True,
        },
        "ai_optimizer": {
            "configured": bool(settings.ai_base_url and settings.ai_api_key),
            "model": settings.ai_model,
        },
        "open_sessions": len(get_registry()),
    }
