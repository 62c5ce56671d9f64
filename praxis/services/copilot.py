"""Writing copilot for the lawyer's document editor.

A session holds the document being edited, the chat transcript and the
copilot's pending proposals. Typing pauses trigger a debounced autocomplete
request; the proposal is inserted at the cursor on accept (Tab) or dropped
on reject (Escape).
"""
import asyncio
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..config import settings
from ..exceptions import AIServiceError, NotFoundError
from ..models.schemas import RiskAnalysis
from .claude_client import ClaudeClient
from .debounce import Debouncer
from .langchain_config import StructuredChains

logger = logging.getLogger(__name__)

GREETING = (
    "¡Hola! Soy tu asistente legal. Estoy aquí para ayudarte a perfeccionar este {document_type}. "
    "Puedes preguntarme sobre cláusulas, pedirme que mejore secciones específicas, "
    "o solicitar sugerencias legales."
)
APOLOGY = "Lo siento, hubo un error al procesar tu solicitud. Por favor, intenta de nuevo."
NO_ANSWER = "No pude generar una respuesta. Por favor, intenta reformular tu pregunta."
CHAT_CONTEXT_CHARS = 2000

_SENTENCE_END = re.compile(r"[.!?]\s*$")
_LINE_END = re.compile(r"\n\s*$")

def autocomplete_context(text: str, cursor: int) -> Optional[str]:
    """Text before the cursor to complete, or ``None`` when no completion should be asked for."""
    if not text or len(text) < settings.autocomplete_min_length:
        return None
    cursor = max(0, min(cursor, len(text)))
    context = text[max(0, cursor - settings.autocomplete_context_chars):cursor]
    if _SENTENCE_END.search(context) or _LINE_END.search(context):
        return None
    return context

def should_autocomplete(text: str, cursor: int) -> bool:
    return autocomplete_context(text, cursor) is not None

def chat_context(document_type: str, content: str) -> str:
    excerpt = content[:CHAT_CONTEXT_CHARS] + ("..." if len(content) > CHAT_CONTEXT_CHARS else "")
    return f"Documento actual ({document_type}):\n\n{excerpt}"

def insert_at(content: str, cursor: int, text: str) -> Tuple[str, int]:
    cursor = max(0, min(cursor, len(content)))
    return content[:cursor] + text + content[cursor:], cursor + len(text)

@dataclass
class CopilotSession:
    session_id: str
    lawyer_id: int
    document_type: str
    content: str = ""
    messages: List[Dict[str, str]] = field(default_factory=list)
    pending_autocomplete: Optional[str] = None
    suggestions: List[Dict[str, Any]] = field(default_factory=list)
    last_active: float = field(default_factory=time.monotonic)

    def state(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "document_type": self.document_type,
            "content": self.content,
            "messages": list(self.messages),
            "pending_autocomplete": self.pending_autocomplete,
            "suggestions": list(self.suggestions)
        }

class CopilotService:
    """In-memory copilot sessions backed by the AI clients."""

    def __init__(
        self,
        claude: Optional[ClaudeClient] = None,
        chains: Optional[StructuredChains] = None,
        delay: Optional[float] = None,
        idle_seconds: Optional[float] = None,
        max_sessions: Optional[int] = None
    ):
        self.claude = claude or ClaudeClient()
        self.chains = chains or StructuredChains()
        self.debouncer = Debouncer(settings.autocomplete_delay_seconds if delay is None else delay)
        self.idle_seconds = settings.copilot_session_idle_seconds if idle_seconds is None else idle_seconds
        self.max_sessions = settings.copilot_max_sessions if max_sessions is None else max_sessions
        self.sessions: Dict[str, CopilotSession] = {}

    # Sessions

    def open_session(self, lawyer_id: int, document_type: str = "contrato", content: str = "") -> CopilotSession:
        self.evict_idle()
        session = CopilotSession(
            session_id=uuid.uuid4().hex,
            lawyer_id=lawyer_id,
            document_type=document_type,
            content=content,
            messages=[{"role": "assistant", "content": GREETING.format(document_type=document_type)}]
        )
        self.sessions[session.session_id] = session
        logger.info(f"Copilot session {session.session_id} opened for lawyer {lawyer_id}")
        return session

    def get_session(self, session_id: str, lawyer_id: int) -> CopilotSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError("Copilot session not found")
        if session.lawyer_id != lawyer_id:
            raise PermissionError("This copilot session belongs to another lawyer")
        session.last_active = time.monotonic()
        return session

    def close_session(self, session_id: str, lawyer_id: int) -> None:
        self.get_session(session_id, lawyer_id)
        self.debouncer.cancel(session_id)
        del self.sessions[session_id]

    def evict_idle(self, now: Optional[float] = None) -> int:
        """Close sessions idle for too long, then the least recently used ones over the cap."""
        now = time.monotonic() if now is None else now
        expired = [sid for sid, s in self.sessions.items() if now - s.last_active > self.idle_seconds]
        by_activity = sorted(
            (s for s in self.sessions.values() if s.session_id not in expired),
            key=lambda s: s.last_active
        )
        # leave room for the session about to be opened
        overflow = len(by_activity) - self.max_sessions + 1
        if overflow > 0:
            expired.extend(s.session_id for s in by_activity[:overflow])

        for session_id in expired:
            self.debouncer.cancel(session_id)
            del self.sessions[session_id]
        if expired:
            logger.info(f"Evicted {len(expired)} idle copilot sessions")
        return len(expired)

    # Autocomplete

    def on_content_change(self, session: CopilotSession, content: str, cursor: int) -> Optional[asyncio.Task]:
        """Record an edit; returns the debounced autocomplete task when one was scheduled."""
        session.content = content
        session.pending_autocomplete = None
        self.debouncer.cancel(session.session_id)

        context = autocomplete_context(content, cursor)
        if context is None:
            return None
        return self.debouncer.schedule(session.session_id, self._autocomplete, session, context)

    async def _autocomplete(self, session: CopilotSession, context: str) -> Optional[str]:
        try:
            proposal = await self.claude.copilot_autocomplete(context, session.document_type)
        except AIServiceError as e:
            logger.error(f"Autocomplete error: {str(e)}")
            return None
        if proposal:
            session.pending_autocomplete = proposal
        return proposal

    def accept_autocomplete(self, session: CopilotSession, cursor: int) -> Tuple[str, int]:
        if not session.pending_autocomplete:
            raise ValueError("No autocomplete suggestion to accept")
        session.content, new_cursor = insert_at(session.content, cursor, session.pending_autocomplete)
        session.pending_autocomplete = None
        return session.content, new_cursor

    def reject_autocomplete(self, session: CopilotSession) -> None:
        session.pending_autocomplete = None

    # Chat and editing actions

    async def chat(self, session: CopilotSession, message: str) -> str:
        message = message.strip()
        if not message:
            raise ValueError("Message is required")

        session.messages.append({"role": "user", "content": message})
        try:
            reply = await self.claude.copilot_suggest(
                message, session.document_type, chat_context(session.document_type, session.content)
            )
            reply = reply or NO_ANSWER
        except AIServiceError as e:
            logger.error(f"Chat error: {str(e)}")
            reply = APOLOGY

        session.messages.append({"role": "assistant", "content": reply})
        return reply

    def insert_text(self, session: CopilotSession, cursor: int, text: str) -> str:
        """Insert a chat answer into the document as its own paragraph."""
        session.content, _ = insert_at(session.content, cursor, f"\n\n{text}\n\n")
        return session.content

    async def improve_selection(self, session: CopilotSession, selected_text: str) -> str:
        if not selected_text or selected_text not in session.content:
            raise ValueError("The selected text is not part of the document")
        improved = await self.claude.copilot_improve(selected_text)
        if not improved:
            raise AIServiceError("AI did not return an improved text")
        session.content = session.content.replace(selected_text, improved, 1)
        return session.content

    async def detect_risks(self, text: str, document_type: str) -> Dict[str, Any]:
        """Risk review of ``text``; a failed or malformed answer reads as low risk."""
        try:
            raw = await self.chains.detect_risks(text, document_type)
            analysis = RiskAnalysis.model_validate(raw)
        except (AIServiceError, ValidationError) as e:
            logger.error(f"Risk detection failed, reporting low risk: {str(e)}")
            analysis = RiskAnalysis()
        return analysis.model_dump(by_alias=True)

    async def analyze_inline(self, session: CopilotSession) -> List[Dict[str, Any]]:
        result = await self.chains.analyze_inline(session.content, session.document_type)
        raw = result.get("suggestions")
        if not isinstance(raw, list):
            raise AIServiceError("Invalid response structure from AI")

        session.suggestions = [
            {
                "id": f"sug-{index}",
                "original": item.get("original") or "",
                "suggestion": item.get("suggestion") or "",
                "reason": item.get("reason") or "Mejora sugerida",
                "type": item.get("type") or "improvement"
            }
            for index, item in enumerate(raw)
            if isinstance(item, dict)
        ]
        logger.info(f"Inline analysis found {len(session.suggestions)} suggestions")
        return session.suggestions

    def apply_suggestion(self, session: CopilotSession, suggestion_id: str) -> str:
        """Replace the first occurrence of the suggestion's original text."""
        for suggestion in session.suggestions:
            if suggestion["id"] == suggestion_id:
                break
        else:
            raise NotFoundError("Suggestion not found")

        if suggestion["original"]:
            session.content = session.content.replace(suggestion["original"], suggestion["suggestion"], 1)
        session.suggestions = [s for s in session.suggestions if s["id"] != suggestion_id]
        return session.content

    def shutdown(self):
        self.debouncer.cancel_all()
