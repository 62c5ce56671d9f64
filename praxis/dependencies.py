from fastapi import HTTPException
import logging

from .services.agent_processor import AgentAIService
from .services.billing import DLocalClient
from .services.claude_client import ClaudeClient
from .services.copilot import CopilotService
from .services.draft_service import DraftAutosaver
from .services.langchain_config import StructuredChains

logger = logging.getLogger(__name__)

# Global service instances, created by the application lifespan
ai_service = None
dlocal_client = None
draft_autosaver = None
copilot_service = None

def init_services():
    global ai_service, dlocal_client, draft_autosaver, copilot_service

    claude_client = ClaudeClient()
    chains = StructuredChains()

    ai_service = AgentAIService(claude=claude_client, chains=chains)
    dlocal_client = DLocalClient()
    draft_autosaver = DraftAutosaver()
    copilot_service = CopilotService(claude=claude_client, chains=chains)

    if not dlocal_client.configured:
        logger.warning("dLocal credentials not configured, only the free plan will be offered")

def shutdown_services():
    if draft_autosaver:
        draft_autosaver.shutdown()
    if copilot_service:
        copilot_service.shutdown()

# Utility functions for accessing services in route handlers
def get_ai_service() -> AgentAIService:
    """Get agent AI service instance."""
    if not ai_service:
        raise HTTPException(status_code=503, detail="AI service not available")
    return ai_service

def get_dlocal_client() -> DLocalClient:
    if not dlocal_client:
        raise HTTPException(status_code=503, detail="Billing service not available")
    return dlocal_client

def get_draft_autosaver() -> DraftAutosaver:
    if not draft_autosaver:
        raise HTTPException(status_code=503, detail="Autosave not available")
    return draft_autosaver

def get_copilot_service() -> CopilotService:
    if not copilot_service:
        raise HTTPException(status_code=503, detail="Copilot not available")
    return copilot_service
