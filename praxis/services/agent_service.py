import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import NotFoundError
from ..models.database import LegalAgent, ConversationBlock, FieldInstruction, LawyerProfile
from ..models.schemas import AgentStatus

logger = logging.getLogger(__name__)

# Fields a lawyer may edit on their own agent; admins may also edit ADMIN_ONLY_FIELDS
UPDATABLE_FIELDS = (
    "name", "description", "document_name", "document_description",
    "category", "price_justification", "target_audience",
    "template_content", "ai_prompt", "sla_enabled", "sla_hours",
    "button_cta", "placeholder_fields", "frontend_icon"
)
ADMIN_ONLY_FIELDS = ("status", "final_price")

ALLOWED_TRANSITIONS = {
    AgentStatus.DRAFT: {AgentStatus.PENDING_REVIEW},
    AgentStatus.PENDING_REVIEW: {AgentStatus.ACTIVE, AgentStatus.SUSPENDED, AgentStatus.DRAFT},
    AgentStatus.ACTIVE: {AgentStatus.SUSPENDED},
    AgentStatus.SUSPENDED: {AgentStatus.ACTIVE},
}

def can_transition(current: str, target: str, is_admin: bool) -> bool:
    current, target = AgentStatus(current), AgentStatus(target)
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        return False
    if is_admin:
        return True
    # Lawyers can only submit their drafts for review
    return current == AgentStatus.DRAFT and target == AgentStatus.PENDING_REVIEW

def _block_rows(agent_id: int, blocks: List[Dict[str, Any]]) -> List[ConversationBlock]:
    return [
        ConversationBlock(
            legal_agent_id=agent_id,
            block_name=block["block_name"],
            intro_phrase=block.get("intro_phrase") or "",
            placeholders=list(block.get("placeholders") or []),
            block_order=index
        )
        for index, block in enumerate(blocks, 1)
    ]

def _instruction_rows(agent_id: int, instructions: List[Dict[str, Any]]) -> List[FieldInstruction]:
    return [
        FieldInstruction(
            legal_agent_id=agent_id,
            field_name=item["field_name"],
            validation_rule=item.get("validation_rule"),
            help_text=item.get("help_text")
        )
        for item in instructions
    ]

def save_agent_with_blocks(
    db: Session,
    lawyer: LawyerProfile,
    agent_data: Dict[str, Any],
    conversation_blocks: Optional[List[Dict[str, Any]]] = None,
    field_instructions: Optional[List[Dict[str, Any]]] = None
) -> Tuple[LegalAgent, int, int, List[str]]:
    """Insert an agent, then its conversation blocks and field instructions.

    The agent insert must succeed. Blocks and instructions are saved in their
    own commits; a failure there is logged and reported as a warning but does
    not undo the agent.
    """
    conversation_blocks = conversation_blocks or []
    field_instructions = field_instructions or []
    warnings = []

    logger.info(
        f"Saving agent '{agent_data.get('name')}' with {len(conversation_blocks)} blocks "
        f"and {len(field_instructions)} field instructions"
    )

    try:
        agent = LegalAgent(**agent_data, created_by=lawyer.id, status=AgentStatus.DRAFT.value)
        db.add(agent)
        db.commit()
        db.refresh(agent)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating agent: {str(e)}")
        raise

    logger.info(f"Agent created successfully: {agent.id}")

    blocks_saved = 0
    if conversation_blocks:
        try:
            db.add_all(_block_rows(agent.id, conversation_blocks))
            db.commit()
            blocks_saved = len(conversation_blocks)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating conversation blocks: {str(e)}")
            warnings.append("Conversation blocks could not be saved")

    instructions_saved = 0
    if field_instructions:
        try:
            db.add_all(_instruction_rows(agent.id, field_instructions))
            db.commit()
            instructions_saved = len(field_instructions)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating field instructions: {str(e)}")
            warnings.append("Field instructions could not be saved")

    db.refresh(agent)
    return agent, blocks_saved, instructions_saved, warnings

def get_agent(db: Session, agent_id: int, lawyer: Optional[LawyerProfile] = None) -> LegalAgent:
    """Fetch an agent; when ``lawyer`` is given, non-admins only see their own."""
    agent = db.get(LegalAgent, agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    if lawyer is not None and not lawyer.is_admin and agent.created_by != lawyer.id:
        raise PermissionError("You can only access your own agents")
    return agent

def list_agents(
    db: Session,
    lawyer: LawyerProfile,
    status: Optional[AgentStatus] = None,
    skip: int = 0,
    limit: int = 100
) -> List[LegalAgent]:
    query = db.query(LegalAgent)
    if not lawyer.is_admin:
        query = query.filter(LegalAgent.created_by == lawyer.id)
    if status is not None:
        query = query.filter(LegalAgent.status == status.value)
    return query.order_by(LegalAgent.created_at.desc(), LegalAgent.id.desc()).offset(skip).limit(limit).all()

def list_public_agents(db: Session, category: Optional[str] = None) -> List[LegalAgent]:
    query = db.query(LegalAgent).filter(LegalAgent.status == AgentStatus.ACTIVE.value)
    if category:
        query = query.filter(LegalAgent.category == category)
    return query.order_by(LegalAgent.name).all()

def update_agent(db: Session, agent_id: int, fields: Dict[str, Any], lawyer: LawyerProfile) -> LegalAgent:
    """Apply only whitelisted fields that were provided."""
    agent = get_agent(db, agent_id, lawyer)

    # "price" is the name the admin panel sends for the final price
    if "price" in fields and fields["price"] is not None:
        fields = {**fields, "final_price": fields["price"]}

    allowed = UPDATABLE_FIELDS + (ADMIN_ONLY_FIELDS if lawyer.is_admin else ())
    forbidden = [name for name in ADMIN_ONLY_FIELDS if fields.get(name) is not None and not lawyer.is_admin]
    if forbidden:
        raise PermissionError(f"Only admins can update: {', '.join(forbidden)}")

    update_data = {name: fields[name] for name in allowed if fields.get(name) is not None}

    if "status" in update_data:
        target = AgentStatus(update_data["status"]).value
        if target != agent.status and not can_transition(agent.status, target, lawyer.is_admin):
            raise ValueError(f"Invalid status transition: {agent.status} -> {target}")
        update_data["status"] = target

    logger.info(f"Updating agent {agent_id} fields: {sorted(update_data)}")

    try:
        for name, value in update_data.items():
            setattr(agent, name, value)
        db.commit()
        db.refresh(agent)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error updating agent {agent_id}: {str(e)}")
        raise

    return agent

def change_agent_status(db: Session, agent_id: int, target: AgentStatus, lawyer: LawyerProfile) -> LegalAgent:
    agent = get_agent(db, agent_id, lawyer)
    if not can_transition(agent.status, target.value, lawyer.is_admin):
        raise ValueError(f"Invalid status transition: {agent.status} -> {target.value}")

    agent.status = target.value
    db.commit()
    db.refresh(agent)
    logger.info(f"Agent {agent_id} moved to {target.value} by lawyer {lawyer.id}")
    return agent

def replace_conversation_structure(
    db: Session,
    agent_id: int,
    lawyer: LawyerProfile,
    conversation_blocks: Optional[List[Dict[str, Any]]] = None,
    field_instructions: Optional[List[Dict[str, Any]]] = None
) -> LegalAgent:
    """Replace blocks and/or instructions. ``None`` leaves that part untouched."""
    agent = get_agent(db, agent_id, lawyer)

    try:
        if conversation_blocks is not None:
            db.query(ConversationBlock).filter(ConversationBlock.legal_agent_id == agent.id).delete()
            db.add_all(_block_rows(agent.id, conversation_blocks))
        if field_instructions is not None:
            db.query(FieldInstruction).filter(FieldInstruction.legal_agent_id == agent.id).delete()
            db.add_all(_instruction_rows(agent.id, field_instructions))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error replacing conversation structure of agent {agent_id}: {str(e)}")
        raise

    db.refresh(agent)
    return agent

def delete_agent(db: Session, agent_id: int, lawyer: LawyerProfile) -> None:
    agent = get_agent(db, agent_id, lawyer)
    try:
        db.delete(agent)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting agent {agent_id}: {str(e)}")
        raise
    logger.info(f"Agent {agent_id} deleted by lawyer {lawyer.id}")

def agent_names_for_lawyer(db: Session, lawyer_id: int) -> List[str]:
    rows = db.query(LegalAgent.name).filter(LegalAgent.created_by == lawyer_id).all()
    return [row[0] for row in rows]
