"""Health check endpoints."""

from fastapi import APIRouter, Request

from ... import __version__
from ...tracing import get_tracing_client
from ..schemas import HealthResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the API server is running and healthy.",
)
def health_check(request: Request) -> HealthResponse:
    """Return health status of the API server."""
    tracing_client = get_tracing_client()
    return HealthResponse(
        status="healthy",
        version=__version__,
        provider=request.app.state.config.provider.type.value,
        tracing=bool(tracing_client and tracing_client.enabled),
    )
