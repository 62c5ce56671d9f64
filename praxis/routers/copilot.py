from fastapi import APIRouter, Depends, status
from typing import Any, Dict, List
import logging

from ..auth import require_ai_tools
from ..dependencies import get_copilot_service
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    AutocompleteAccept, AutocompleteAccepted, ContentChange, CopilotChatRequest,
    CopilotChatResponse, CopilotInsertText, CopilotSessionOpen, CopilotSessionState,
    CopilotTextRequest
)
from ..services.copilot import CopilotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/copilot", tags=["Copilot"])

@router.post("/sessions", response_model=CopilotSessionState, status_code=status.HTTP_201_CREATED)
async def open_session(
    request: CopilotSessionOpen,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    session = copilot.open_session(current_lawyer.id, request.document_type, request.content)
    return session.state()

@router.get("/sessions/{session_id}", response_model=CopilotSessionState)
async def get_session(
    session_id: str,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        return copilot.get_session(session_id, current_lawyer.id).state()
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve copilot session")

@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    session_id: str,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        copilot.close_session(session_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to close copilot session")

@router.put("/sessions/{session_id}/content")
async def update_content(
    session_id: str,
    change: ContentChange,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    """Record an edit; an autocomplete is requested after the typing pause."""
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve copilot session")

    task = copilot.on_content_change(session, change.content, change.cursor)
    return {"autocomplete_scheduled": task is not None, "delay_seconds": copilot.debouncer.delay}

@router.post("/sessions/{session_id}/autocomplete/accept", response_model=AutocompleteAccepted)
async def accept_autocomplete(
    session_id: str,
    request: AutocompleteAccept,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
        content, cursor = copilot.accept_autocomplete(session, request.cursor)
    except Exception as e:
        raise to_http_exception(e, "Failed to accept autocomplete")
    return {"content": content, "cursor": cursor}

@router.post("/sessions/{session_id}/autocomplete/reject", status_code=status.HTTP_204_NO_CONTENT)
async def reject_autocomplete(
    session_id: str,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        copilot.reject_autocomplete(copilot.get_session(session_id, current_lawyer.id))
    except Exception as e:
        raise to_http_exception(e, "Failed to reject autocomplete")

@router.post("/sessions/{session_id}/chat", response_model=CopilotChatResponse)
async def chat(
    session_id: str,
    request: CopilotChatRequest,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
        reply = await copilot.chat(session, request.message)
    except Exception as e:
        raise to_http_exception(e, "Chat failed")
    return {"reply": reply, "messages": session.messages}

@router.post("/sessions/{session_id}/insert")
async def insert_text(
    session_id: str,
    request: CopilotInsertText,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve copilot session")
    return {"content": copilot.insert_text(session, request.cursor, request.text)}

@router.post("/sessions/{session_id}/improve")
async def improve_selection(
    session_id: str,
    request: CopilotTextRequest,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
        content = await copilot.improve_selection(session, request.text)
    except Exception as e:
        raise to_http_exception(e, "Failed to improve text")
    return {"content": content}

@router.post("/sessions/{session_id}/risks")
async def detect_risks(
    session_id: str,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
) -> Dict[str, Any]:
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve copilot session")
    return await copilot.detect_risks(session.content, session.document_type)

@router.post("/sessions/{session_id}/analyze")
async def analyze_inline(
    session_id: str,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
) -> List[Dict[str, Any]]:
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
        return await copilot.analyze_inline(session)
    except Exception as e:
        raise to_http_exception(e, "Failed to analyze document")

@router.post("/sessions/{session_id}/suggestions/{suggestion_id}/apply")
async def apply_suggestion(
    session_id: str,
    suggestion_id: str,
    current_lawyer: LawyerProfile = Depends(require_ai_tools),
    copilot: CopilotService = Depends(get_copilot_service)
):
    try:
        session = copilot.get_session(session_id, current_lawyer.id)
        content = copilot.apply_suggestion(session, suggestion_id)
    except Exception as e:
        raise to_http_exception(e, "Failed to apply suggestion")
    return {"content": content, "suggestions": session.suggestions}
