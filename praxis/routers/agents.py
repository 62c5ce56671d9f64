from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..config import settings
from ..database import get_db
from ..auth import get_current_lawyer, require_agent_creator
from ..dependencies import get_ai_service
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    AgentDetailResponse, AgentResponse, AgentStatus, AgentStatusChange,
    AgentStructureUpdate, AgentUpdate, DetectedPlaceholder, ImproveTemplateRequest,
    ImproveTemplateResponse, PlaceholderField, PlaceholderScanRequest,
    ProcessAgentRequest, ProcessAgentResponse, PublicAgent, SaveAgentRequest,
    SaveAgentResponse, SuggestBlocksRequest, SuggestBlocksResponse
)
from ..services import agent_service
from ..services.agent_processor import AgentAIService
from ..services.placeholders import detect_placeholders, extract_placeholders
from ..services.system_config import get_system_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["Legal Agents"])

@router.post("", response_model=SaveAgentResponse)
async def save_agent_with_blocks(
    request: SaveAgentRequest,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db)
):
    """Create an agent together with its conversation blocks and field instructions."""
    try:
        agent, blocks_saved, instructions_saved, warnings = agent_service.save_agent_with_blocks(
            db,
            current_lawyer,
            request.agent_data.model_dump(mode="json"),
            [block.model_dump() for block in request.conversation_blocks],
            [item.model_dump() for item in request.field_instructions]
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to create agent")

    return {
        "success": True,
        "agent": agent,
        "blocks_saved": blocks_saved,
        "instructions_saved": instructions_saved,
        "warnings": warnings,
        "message": "Agent saved successfully"
    }

@router.get("", response_model=List[AgentResponse])
async def list_agents(
    status_filter: Optional[AgentStatus] = Query(None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    """Own agents for lawyers, every agent for admins."""
    return agent_service.list_agents(db, current_lawyer, status_filter, skip, limit)

@router.get("/public", response_model=List[PublicAgent])
async def list_public_agents(
    category: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return agent_service.list_public_agents(db, category)

@router.post("/placeholders/extract", response_model=List[PlaceholderField])
async def extract_template_placeholders(
    request: PlaceholderScanRequest,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
):
    return extract_placeholders(request.text)

@router.post("/placeholders/detect", response_model=List[DetectedPlaceholder])
async def detect_editor_placeholders(
    request: PlaceholderScanRequest,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
):
    return detect_placeholders(request.text)

@router.post("/ai/process", response_model=ProcessAgentResponse)
async def process_agent(
    request: ProcessAgentRequest,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    ai_service: AgentAIService = Depends(get_ai_service),
    db: Session = Depends(get_db)
):
    """Enhance the prompt and suggest a price, falling back to the simple processor."""
    model = get_system_config(db, "agent_creation_ai_model", settings.claude_model)
    system_prompt = get_system_config(db, "agent_creation_system_prompt")

    try:
        return await ai_service.reprocess_with_fallback(
            request.model_dump(mode="json"),
            model=model,
            system_prompt=system_prompt
        )
    except Exception as e:
        raise to_http_exception(e, "Agent processing failed")

@router.post("/ai/suggest-blocks", response_model=SuggestBlocksResponse)
async def suggest_conversation_blocks(
    request: SuggestBlocksRequest,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    ai_service: AgentAIService = Depends(get_ai_service)
):
    try:
        return await ai_service.suggest_conversation_blocks(
            doc_name=request.doc_name,
            doc_template=request.doc_template,
            doc_description=request.doc_description,
            target_audience=request.target_audience.value,
            placeholders=request.placeholders
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to suggest conversation blocks")

@router.post("/ai/improve-template", response_model=ImproveTemplateResponse)
async def improve_template(
    request: ImproveTemplateRequest,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    ai_service: AgentAIService = Depends(get_ai_service),
    db: Session = Depends(get_db)
):
    model = get_system_config(db, "agent_creation_ai_model", settings.claude_model)
    try:
        return await ai_service.improve_template(
            request.template_content,
            doc_name=request.doc_name,
            doc_category=request.doc_category,
            model=model
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to improve template")

@router.get("/{agent_id}", response_model=AgentDetailResponse)
async def get_agent(
    agent_id: int,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return agent_service.get_agent(db, agent_id, current_lawyer)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve agent")

@router.patch("/{agent_id}", response_model=AgentResponse)
async def update_agent(
    agent_id: int,
    update: AgentUpdate,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return agent_service.update_agent(
            db, agent_id, update.model_dump(mode="json", exclude_unset=True), current_lawyer
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to update agent")

@router.post("/{agent_id}/status", response_model=AgentResponse)
async def change_agent_status(
    agent_id: int,
    change: AgentStatusChange,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return agent_service.change_agent_status(db, agent_id, change.status, current_lawyer)
    except Exception as e:
        raise to_http_exception(e, "Failed to change agent status")

@router.put("/{agent_id}/structure", response_model=AgentDetailResponse)
async def replace_conversation_structure(
    agent_id: int,
    structure: AgentStructureUpdate,
    current_lawyer: LawyerProfile = Depends(require_agent_creator),
    db: Session = Depends(get_db)
):
    """Replace conversation blocks and/or field instructions; omitted parts stay as they are."""
    blocks = structure.conversation_blocks
    instructions = structure.field_instructions
    try:
        return agent_service.replace_conversation_structure(
            db,
            agent_id,
            current_lawyer,
            [block.model_dump() for block in blocks] if blocks is not None else None,
            [item.model_dump() for item in instructions] if instructions is not None else None
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to update conversation structure")

@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(
    agent_id: int,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        agent_service.delete_agent(db, agent_id, current_lawyer)
    except Exception as e:
        raise to_http_exception(e, "Failed to delete agent")
