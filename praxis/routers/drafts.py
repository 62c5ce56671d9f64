from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from ..config import settings
from ..database import get_db
from ..auth import require_agent_creator
from ..dependencies import get_draft_autosaver
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    DraftResponse, PublishDraftRequest, SaveAgentResponse, SaveDraftRequest,
    SaveDraftResponse
)
from ..services import draft_service
from ..services.draft_service import DraftAutosaver, WIZARD_STEPS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drafts", tags=["Agent Drafts"])

@router.post("", response_model=SaveDraftResponse)
async def save_draft(
    request: SaveDraftRequest,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db)
):
    """Explicit save from the creation wizard."""
    try:
        draft = draft_service.save_draft(
            db,
            current_lawyer.id,
            draft_name=request.draft_name,
            step_completed=request.step_completed,
            form_data=request.form_data.model_dump(mode="json"),
            ai_results=request.ai_results,
            draft_id=request.draft_id
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to save draft")

    return {
        "success": True,
        "draft_id": draft.id,
        "max_step_reached": draft.max_step_reached,
        "message": "Draft saved successfully"
    }

@router.post("/autosave", status_code=status.HTTP_202_ACCEPTED)
async def autosave_draft(
    request: SaveDraftRequest,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    autosaver: DraftAutosaver = Depends(get_draft_autosaver)
):
    """Schedule a debounced save; later calls for the same draft replace earlier ones."""
    if request.step_completed > WIZARD_STEPS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"step_completed must be between 1 and {WIZARD_STEPS}"
        )

    payload = request.model_dump(mode="json")
    autosaver.schedule(current_lawyer.id, payload)
    key = autosaver.key_for(current_lawyer.id, request.draft_id, request.draft_name)
    return {
        "scheduled": True,
        "delay_seconds": autosaver.debouncer.delay,
        "draft_id": request.draft_id or autosaver.draft_id_for(key)
    }

@router.get("", response_model=List[DraftResponse])
async def list_drafts(
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db)
):
    return draft_service.list_drafts(db, current_lawyer.id)

@router.get("/wizard")
async def wizard_info():
    return {
        "steps": WIZARD_STEPS,
        "autosave_delay_seconds": settings.autosave_delay_seconds
    }

@router.get("/{draft_id}", response_model=DraftResponse)
async def get_draft(
    draft_id: int,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db)
):
    try:
        return draft_service.get_draft(db, draft_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve draft")

@router.get("/{draft_id}/steps/{step}")
async def can_enter_step(
    draft_id: int,
    step: int,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db)
):
    """Whether the wizard may navigate to ``step`` for this draft."""
    try:
        draft = draft_service.get_draft(db, draft_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve draft")

    return {
        "step": step,
        "allowed": draft_service.can_enter_step(draft, step),
        "max_step_reached": draft.max_step_reached
    }

@router.post("/{draft_id}/publish", response_model=SaveAgentResponse)
async def publish_draft(
    draft_id: int,
    request: PublishDraftRequest,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db),
    autosaver: DraftAutosaver = Depends(get_draft_autosaver)
):
    try:
        agent, blocks_saved, instructions_saved, warnings = draft_service.publish_draft(
            db,
            draft_id,
            current_lawyer,
            [block.model_dump() for block in request.conversation_blocks],
            [item.model_dump() for item in request.field_instructions]
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to publish draft")
    autosaver.forget(current_lawyer.id, draft_id)

    return {
        "success": True,
        "agent": agent,
        "blocks_saved": blocks_saved,
        "instructions_saved": instructions_saved,
        "warnings": warnings,
        "message": "Draft published as agent"
    }

@router.delete("/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_draft(
    draft_id: int,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db),
    autosaver: DraftAutosaver = Depends(get_draft_autosaver)
):
    try:
        draft_service.delete_draft(db, draft_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to delete draft")
    autosaver.forget(current_lawyer.id, draft_id)
