"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from server.dependencies import get_runtime
from server.runtime import IllustrationRuntime
from server.schemas.responses import HealthResponseDTO

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponseDTO)
async def health_check(runtime: IllustrationRuntime = Depends(get_runtime)):
    """Health check endpoint."""
    config = runtime.config
    return HealthResponseDTO(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        version="1.0.0",
        features={
            "enabled": config.enabled,
            "auto_mode": config.auto_mode,
            "ai_configured": config.ai_configured,
            "web_search_configured": config.web_search_configured,
            "search_preference": config.search_preference.value,
            "dispatcher_running": runtime.dispatcher.is_running,
        },
    )
