from fastapi import APIRouter, Query
from app.api.schemas import StepsResponse
from app.utils.steps import (
    PRINT_HOME_STEPS,
    get_next_step_path,
    get_previous_step_path,
    get_step_index_from_path,
)

router = APIRouter(tags=["navigation"])

@router.get("/steps", response_model=StepsResponse)
async def get_steps(path: str = Query("/step1")):
    """
    Progress indicator data for the page at `path`.
    """
    return StepsResponse(
        steps=PRINT_HOME_STEPS,
        current_index=get_step_index_from_path(path),
        next_path=get_next_step_path(path),
        previous_path=get_previous_step_path(path),
    )

@router.get("/health")
async def health():
    return {"status": "ok"}
