"""Diagnostic endpoints: test search and model listing."""

from fastapi import APIRouter, Depends, HTTPException, status

from models.errors import IllustrationError
from server.dependencies import get_api_key, get_runtime
from server.runtime import IllustrationRuntime
from server.schemas.requests import SearchRequest
from server.schemas.responses import CandidateDTO, ModelsResponseDTO, SearchResponseDTO
from server.utils import clamp_limit
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["Diagnostics"])


@router.post("/search", response_model=SearchResponseDTO)
async def test_search(
    request: SearchRequest,
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    """Run one query through the search route without touching the transcript."""
    hint = request.hint()
    limit = clamp_limit(request.limit, runtime.config.candidates_per_source * 2)
    candidates = await runtime.aggregator.search_once(request.query, hint)
    candidates = candidates[:limit]
    return SearchResponseDTO(
        query=request.query,
        source=hint.value,
        candidates=[CandidateDTO.from_candidate(c) for c in candidates],
        count=len(candidates),
    )


@router.get("/models", response_model=ModelsResponseDTO)
async def list_models(
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    """List model ids offered by the completion backend (doubles as a connection test)."""
    if runtime.ai_client is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Completion backend not configured",
        )
    try:
        models = await runtime.ai_client.list_models()
    except IllustrationError as e:
        logger.error(f"Model listing failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return ModelsResponseDTO(
        models=models, count=len(models), current_model=runtime.config.ai_model or None
    )
