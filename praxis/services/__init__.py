from .claude_client import ClaudeClient
from .langchain_config import LangChainConfig, StructuredChains, AgentPrompts
from .agent_processor import AgentAIService
from .billing import DLocalClient
from .copilot import CopilotService
from .draft_service import DraftAutosaver

__all__ = [
    "ClaudeClient",
    "LangChainConfig",
    "StructuredChains",
    "AgentPrompts",
    "AgentAIService",
    "DLocalClient",
    "CopilotService",
    "DraftAutosaver"
]
