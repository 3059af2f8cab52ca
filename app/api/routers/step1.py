import logging
from typing import List, Optional
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import FileResponse
from app.api.dependencies import get_flow, get_upload_orchestrator, get_validation_config
from app.api.errors import FlowStateError
from app.api.schemas import (
    OperationResponse,
    SessionImagesResponse,
    StagedFileOut,
    StagingResponse,
    Step1Response,
    SubmitResponse,
)
from app.services.flow_registry import CheckoutFlow
from app.services.image_validation import (
    CandidateFile,
    ImageValidationError,
    ValidationConfig,
    corrupted_file_error,
    generate_accept_string,
    get_error_summary,
    is_valid_image_file,
    validate_files,
)
from app.services.upload_orchestrator import UploadOrchestrator
from app.utils.file_utils import format_file_size

logger = logging.getLogger("step1")

router = APIRouter(prefix="/step1", tags=["upload"])

def _staging_response(
    flow: CheckoutFlow,
    config: ValidationConfig,
    errors: Optional[List[ImageValidationError]] = None,
    dropped_files: Optional[List[str]] = None,
) -> StagingResponse:
    errors = errors or []
    return StagingResponse(
        files=[
            StagedFileOut(
                file_id=staged.file_id,
                name=staged.display_name,
                size=staged.byte_size,
                formatted_size=format_file_size(staged.byte_size),
                content_type=staged.content_type,
                preview_url=staged.preview_url,
            )
            for staged in flow.staging.files
        ],
        count=len(flow.staging),
        max_images=config.max_images,
        max_file_size=format_file_size(config.max_file_size),
        accept=generate_accept_string(config),
        errors=errors,
        error_summary=get_error_summary(errors),
        dropped_files=dropped_files or [],
    )

def _session_response(flow: CheckoutFlow) -> SessionImagesResponse:
    reconciler = flow.reconciler
    return SessionImagesResponse(
        token=reconciler.active_token,
        state=reconciler.state,
        images=reconciler.images,
        is_pending=reconciler.is_pending,
        error=reconciler.error,
    )

@router.get("", response_model=Step1Response)
async def get_step1(
    token: Optional[str] = Query(None),
    flow: CheckoutFlow = Depends(get_flow),
    config: ValidationConfig = Depends(get_validation_config),
):
    """
    Current step-1 view: staged files plus the images already on the backend.
    Coming back from a later step passes the session token in the query.
    """
    if token:
        await flow.reconciler.set_active_token(token)
    return Step1Response(
        staging=_staging_response(flow, config),
        session=_session_response(flow),
    )

@router.post("/files", response_model=StagingResponse)
async def add_files(
    images: List[UploadFile] = File(...),
    flow: CheckoutFlow = Depends(get_flow),
    config: ValidationConfig = Depends(get_validation_config),
):
    """
    Validate newly selected files and stage the ones that pass.
    Any error leaves the staging store unchanged.
    """
    candidates = []
    for upload in images:
        candidates.append(CandidateFile(
            name=upload.filename or "",
            content_type=upload.content_type or "",
            data=await upload.read(),
        ))

    validation = validate_files(candidates, flow.staging.files, config)
    errors = list(validation.errors)
    errors.extend(
        corrupted_file_error(candidate)
        for candidate in validation.valid_files
        if not is_valid_image_file(candidate.data)
    )

    if errors:
        logger.info(f"Rejected {len(candidates)} file(s) for flow {flow.flow_id}: {get_error_summary(errors)}")
        return _staging_response(
            flow,
            config,
            errors=errors,
            dropped_files=[dropped.name for dropped in validation.dropped_files],
        )

    await flow.staging.append(validation.valid_files)
    return _staging_response(flow, config)

@router.delete("/files/{index}", response_model=StagingResponse)
async def remove_file(
    index: int,
    flow: CheckoutFlow = Depends(get_flow),
    config: ValidationConfig = Depends(get_validation_config),
):
    try:
        flow.staging.remove(index)
    except IndexError:
        raise FlowStateError(
            f"選択中の写真が見つかりません（{index}）",
            back="/step1",
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return _staging_response(flow, config)

@router.delete("/files", response_model=StagingResponse)
async def clear_files(
    flow: CheckoutFlow = Depends(get_flow),
    config: ValidationConfig = Depends(get_validation_config),
):
    flow.staging.clear()
    return _staging_response(flow, config)

@router.get("/files/{file_id}/preview")
async def preview_file(file_id: str, flow: CheckoutFlow = Depends(get_flow)):
    staged = flow.staging.get(file_id)
    if staged is None or not staged.path.exists():
        raise FlowStateError(
            "プレビューが見つかりません",
            back="/step1",
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return FileResponse(staged.path, media_type=staged.content_type or "application/octet-stream")

@router.get("/session", response_model=SessionImagesResponse)
async def get_session_images(
    token: Optional[str] = Query(None),
    flow: CheckoutFlow = Depends(get_flow),
):
    if token:
        await flow.reconciler.set_active_token(token)
    return _session_response(flow)

@router.post("/session/refresh", response_model=SessionImagesResponse)
async def refresh_session_images(flow: CheckoutFlow = Depends(get_flow)):
    await flow.reconciler.refresh()
    return _session_response(flow)

@router.delete("/session/images/{identifier}", response_model=OperationResponse)
async def delete_session_image(identifier: str, flow: CheckoutFlow = Depends(get_flow)):
    if not flow.active_token:
        raise FlowStateError("セッショントークンが指定されていません。", back="/step1")
    success = await flow.reconciler.remove_one(identifier)
    return OperationResponse(success=success, error=None if success else flow.reconciler.error)

@router.delete("/session", response_model=OperationResponse)
async def delete_session_images(flow: CheckoutFlow = Depends(get_flow)):
    if not flow.active_token:
        raise FlowStateError("セッショントークンが指定されていません。", back="/step1")
    success = await flow.reconciler.remove_all()
    return OperationResponse(success=success, error=None if success else flow.reconciler.error)

@router.post("/submit", response_model=SubmitResponse)
async def submit(
    flow: CheckoutFlow = Depends(get_flow),
    orchestrator: UploadOrchestrator = Depends(get_upload_orchestrator),
):
    """
    Upload the staged files (appending to the active session if there is one)
    and move on to step 2 with the resulting token.
    """
    previous_token = flow.active_token
    submitted = flow.staging.files
    result = await orchestrator.submit(submitted, previous_token)
    if not result.success:
        return SubmitResponse(success=False, error=result.error)

    # Files staged while the upload was in flight stay staged
    flow.staging.hand_off(staged.file_id for staged in submitted)
    if result.token != previous_token:
        await flow.reconciler.set_active_token(result.token)
    elif result.image_count:
        # Images were appended to the same session
        await flow.reconciler.refresh()

    return SubmitResponse(
        success=True,
        token=result.token,
        image_count=result.image_count,
        redirect=f"/step2?{urlencode({'token': result.token})}",
    )
