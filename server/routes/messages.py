"""Transcript endpoints: message submission, manual illustration, approvals and restore."""

from fastapi import APIRouter, Depends, HTTPException, status

from models.illustration import Message
from server.dependencies import get_api_key, get_runtime
from server.runtime import IllustrationRuntime
from server.schemas.requests import ApprovalRequest, MessageRequest, RestoreRequest
from server.schemas.responses import (
    AnnotationDTO,
    ApprovalResponseDTO,
    CandidateDTO,
    MessageResponseDTO,
    OutcomeResponseDTO,
    PendingApprovalDTO,
    RestoreResponseDTO,
)
from server.utils import require_message
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["Transcript"])


def _message_dto(runtime: IllustrationRuntime, message: Message, queued: bool = False):
    renderer = runtime.renderer
    annotation = message.annotation or runtime.store.get_annotation(message.message_id)
    return MessageResponseDTO(
        message_id=message.message_id,
        role=message.role,
        text=message.text,
        state=runtime.orchestrator.state_of(message.message_id).value,
        annotation=AnnotationDTO.from_annotation(
            annotation, caption=renderer.caption_for(message.message_id)
        ),
        loading=renderer.is_loading(message.message_id),
        rendered=renderer.has_rendered(message.message_id),
        queued=queued,
    )


@router.post("/messages", response_model=MessageResponseDTO, status_code=status.HTTP_201_CREATED)
async def submit_message(
    request: MessageRequest,
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    """Append a message; non-user messages are queued for automatic illustration."""
    message_id = runtime.store.add_message(request.role, request.text)
    message = runtime.store.get_message(message_id)

    queued = False
    if request.illustrate and runtime.config.enabled and not message.is_user:
        runtime.dispatcher.submit(message_id)
        queued = True

    logger.info(
        f"Accepted {request.role} message {message_id}",
        extra={"extra_fields": {"message_id": message_id, "queued": queued}},
    )
    return _message_dto(runtime, message, queued=queued)


@router.get("/messages/{message_id}", response_model=MessageResponseDTO)
async def get_message(
    message_id: int,
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    message = require_message(runtime.store, message_id)
    return _message_dto(runtime, message)


@router.post("/messages/{message_id}/illustrate", response_model=OutcomeResponseDTO)
async def illustrate_message(
    message_id: int,
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    """Run the pipeline for one message and wait for its outcome."""
    require_message(runtime.store, message_id)
    outcome = await runtime.orchestrator.run(message_id)
    return OutcomeResponseDTO.from_outcome(outcome)


@router.get("/approvals", response_model=list[PendingApprovalDTO])
async def list_pending_approvals(
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    return [
        PendingApprovalDTO(
            message_id=entry.message_id, candidate=CandidateDTO.from_candidate(entry.candidate)
        )
        for entry in runtime.approvals.pending()
    ]


@router.post("/messages/{message_id}/approval", response_model=ApprovalResponseDTO)
async def decide_approval(
    message_id: int,
    request: ApprovalRequest,
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    require_message(runtime.store, message_id)
    if not runtime.approvals.resolve(message_id, request.approve):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"No illustration awaiting approval for message {message_id}",
        )
    return ApprovalResponseDTO(message_id=message_id, approved=request.approve)


@router.post("/transcript/restore", response_model=RestoreResponseDTO)
async def restore_transcript(
    request: RestoreRequest | None = None,
    api_key: str = Depends(get_api_key),
    runtime: IllustrationRuntime = Depends(get_runtime),
):
    """Re-render every stored annotation the client is not displaying."""
    if request is not None and request.reset_render_state:
        runtime.renderer.reset()
    restored = await runtime.restorer(delay_s=0).restore()
    return RestoreResponseDTO(restored=restored)
