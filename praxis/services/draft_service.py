"""Agent creation wizard drafts.

The wizard has ``WIZARD_STEPS`` steps. A lawyer may revisit any step already
reached and move one step past the furthest one, never further.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Hashable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..database import SessionLocal
from ..exceptions import NotFoundError
from ..models.database import AgentDraft, LawyerProfile
from .agent_service import save_agent_with_blocks
from .debounce import Debouncer
from .placeholders import extract_placeholders

logger = logging.getLogger(__name__)

WIZARD_STEPS = 5

FORM_FIELDS = (
    "doc_name", "doc_desc", "doc_cat", "target_audience", "doc_template",
    "initial_prompt", "sla_hours", "sla_enabled", "lawyer_suggested_price"
)

def can_enter_step(draft: Optional[AgentDraft], step: int) -> bool:
    max_reached = draft.max_step_reached if draft is not None else 0
    return 1 <= step <= min(max_reached + 1, WIZARD_STEPS)

def save_draft(
    db: Session,
    lawyer_id: int,
    draft_name: str,
    step_completed: int,
    form_data: Dict[str, Any],
    ai_results: Optional[Dict[str, Any]] = None,
    draft_id: Optional[int] = None
) -> AgentDraft:
    """Create a draft, or update the lawyer's existing one when ``draft_id`` is given."""
    if step_completed < 1 or step_completed > WIZARD_STEPS:
        raise ValueError(f"step_completed must be between 1 and {WIZARD_STEPS}")

    values = {
        "draft_name": draft_name,
        "step_completed": step_completed,
        "doc_name": form_data.get("doc_name") or None,
        "doc_desc": form_data.get("doc_desc") or None,
        "doc_cat": form_data.get("doc_cat") or None,
        "target_audience": form_data.get("target_audience") or "personas",
        "doc_template": form_data.get("doc_template") or None,
        "initial_prompt": form_data.get("initial_prompt") or None,
        "sla_hours": form_data.get("sla_hours") or settings.default_sla_hours,
        "sla_enabled": True if form_data.get("sla_enabled") is None else form_data["sla_enabled"],
        "lawyer_suggested_price": form_data.get("lawyer_suggested_price") or None,
        "ai_results": ai_results or {},
    }

    try:
        if draft_id is not None:
            draft = db.query(AgentDraft).filter(
                AgentDraft.id == draft_id,
                AgentDraft.lawyer_id == lawyer_id
            ).first()
            if draft is None:
                raise NotFoundError("Draft not found")
            for name, value in values.items():
                setattr(draft, name, value)
            draft.max_step_reached = max(draft.max_step_reached or 1, step_completed)
        else:
            draft = AgentDraft(lawyer_id=lawyer_id, max_step_reached=step_completed, **values)
            db.add(draft)
        db.commit()
        db.refresh(draft)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving draft for lawyer {lawyer_id}: {str(e)}")
        raise

    logger.info(f"Draft saved successfully: {draft.id} (step {step_completed})")
    return draft

def get_draft(db: Session, draft_id: int, lawyer_id: int) -> AgentDraft:
    draft = db.query(AgentDraft).filter(
        AgentDraft.id == draft_id,
        AgentDraft.lawyer_id == lawyer_id
    ).first()
    if draft is None:
        raise NotFoundError("Draft not found")
    return draft

def list_drafts(db: Session, lawyer_id: int) -> List[AgentDraft]:
    return db.query(AgentDraft).filter(
        AgentDraft.lawyer_id == lawyer_id
    ).order_by(AgentDraft.updated_at.desc(), AgentDraft.id.desc()).all()

def delete_draft(db: Session, draft_id: int, lawyer_id: int) -> None:
    draft = get_draft(db, draft_id, lawyer_id)
    db.delete(draft)
    db.commit()
    logger.info(f"Draft {draft_id} deleted")

def publish_draft(
    db: Session,
    draft_id: int,
    lawyer: LawyerProfile,
    conversation_blocks: Optional[List[Dict[str, Any]]] = None,
    field_instructions: Optional[List[Dict[str, Any]]] = None
):
    """Turn a completed draft into an agent and remove the draft."""
    draft = get_draft(db, draft_id, lawyer.id)
    if not draft.doc_name or not draft.doc_template:
        raise ValueError("The draft needs a document name and a template before publishing")

    ai_results = draft.ai_results or {}
    agent_data = {
        "name": draft.doc_name,
        "description": draft.doc_desc,
        "document_name": draft.doc_name,
        "document_description": draft.doc_desc,
        "category": draft.doc_cat,
        "target_audience": draft.target_audience or "personas",
        "template_content": draft.doc_template,
        "ai_prompt": ai_results.get("enhanced_prompt"),
        "placeholder_fields": ai_results.get("placeholders") or extract_placeholders(draft.doc_template),
        "suggested_price": ai_results.get("suggested_price"),
        "price_justification": ai_results.get("price_justification"),
        "sla_enabled": draft.sla_enabled,
        "sla_hours": draft.sla_hours,
    }

    result = save_agent_with_blocks(db, lawyer, agent_data, conversation_blocks, field_instructions)
    db.delete(draft)
    db.commit()
    logger.info(f"Draft {draft_id} published as agent {result[0].id}")
    return result

class DraftAutosaver:
    """Debounced, fire-and-forget draft saving for the creation wizard.

    A single ``is_saving`` flag keeps two saves from running at once: a save
    that fires while another is in flight is dropped, and the next edit
    schedules a fresh one. Failed saves are logged and dropped the same way.
    Explicit saves through :func:`save_draft` do not consult the flag.
    """

    def __init__(
        self,
        delay: Optional[float] = None,
        session_factory: Callable[[], Session] = SessionLocal
    ):
        self.debouncer = Debouncer(settings.autosave_delay_seconds if delay is None else delay)
        self.session_factory = session_factory
        self.is_saving = False
        self._draft_ids: Dict[Hashable, int] = {}

    @staticmethod
    def key_for(lawyer_id: int, draft_id: Optional[int], draft_name: str) -> Hashable:
        return (lawyer_id, draft_id if draft_id is not None else draft_name)

    def schedule(self, lawyer_id: int, request: Dict[str, Any]) -> asyncio.Task:
        key = self.key_for(lawyer_id, request.get("draft_id"), request["draft_name"])
        return self.debouncer.schedule(key, self._save, key, lawyer_id, request)

    def draft_id_for(self, key: Hashable) -> Optional[int]:
        return self._draft_ids.get(key)

    def forget(self, lawyer_id: int, draft_id: int) -> None:
        """Drop pending saves and remembered ids of a draft that was published or deleted."""
        stale = [
            key for key, saved_id in self._draft_ids.items()
            if key[0] == lawyer_id and saved_id == draft_id
        ]
        stale.append(self.key_for(lawyer_id, draft_id, ""))
        for key in stale:
            self.debouncer.cancel(key)
            self._draft_ids.pop(key, None)

    async def _save(self, key: Hashable, lawyer_id: int, request: Dict[str, Any]) -> Optional[int]:
        if self.is_saving:
            logger.debug(f"Autosave for {key} skipped, another save is in progress")
            return None

        self.is_saving = True
        try:
            return await asyncio.to_thread(self._save_sync, key, lawyer_id, request)
        except Exception as e:
            logger.error(f"Autosave failed for {key}: {str(e)}")
            return None
        finally:
            self.is_saving = False

    def _save_sync(self, key: Hashable, lawyer_id: int, request: Dict[str, Any]) -> int:
        db = self.session_factory()
        try:
            draft = save_draft(
                db,
                lawyer_id,
                draft_name=request["draft_name"],
                step_completed=request.get("step_completed") or 1,
                form_data=request.get("form_data") or {},
                ai_results=request.get("ai_results"),
                draft_id=request.get("draft_id") or self._draft_ids.get(key)
            )
            self._draft_ids[key] = draft.id
            return draft.id
        finally:
            db.close()

    def shutdown(self):
        self.debouncer.cancel_all()
