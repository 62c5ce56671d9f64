"""Client document requests ("document tokens") and their review SLA.

Lifecycle::

    solicitado -> en_revision_abogado -> revisado -> revision_usuario -> pagado -> descargado
                         ^                                 |
                         +---------------------------------+  (client asks for changes)
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..exceptions import NotFoundError
from ..models.database import DocumentToken, LegalAgent, LawyerProfile
from ..models.schemas import AgentStatus, DocumentStatus, SlaStatus
from .agent_service import agent_names_for_lawyer

logger = logging.getLogger(__name__)

TRANSITIONS = {
    DocumentStatus.SOLICITADO: {DocumentStatus.EN_REVISION_ABOGADO},
    DocumentStatus.EN_REVISION_ABOGADO: {DocumentStatus.REVISADO},
    DocumentStatus.REVISADO: {DocumentStatus.REVISION_USUARIO},
    DocumentStatus.REVISION_USUARIO: {DocumentStatus.PAGADO, DocumentStatus.EN_REVISION_ABOGADO},
    DocumentStatus.PAGADO: {DocumentStatus.DESCARGADO},
    DocumentStatus.DESCARGADO: set(),
}

LAWYER_QUEUE_STATUSES = (DocumentStatus.SOLICITADO.value, DocumentStatus.EN_REVISION_ABOGADO.value)
COMPLETED_STATUSES = (DocumentStatus.PAGADO.value, DocumentStatus.DESCARGADO.value)

# Statuses each side of the exchange may move a request into
LAWYER_TARGETS = {
    DocumentStatus.EN_REVISION_ABOGADO,
    DocumentStatus.REVISADO,
    DocumentStatus.REVISION_USUARIO,
}
CLIENT_TARGETS = {
    DocumentStatus.EN_REVISION_ABOGADO,
    DocumentStatus.PAGADO,
    DocumentStatus.DESCARGADO,
}

def utcnow() -> datetime:
    return datetime.utcnow()

def generate_token() -> str:
    return uuid.uuid4().hex[:12].upper()

def resolve_price(db: Session, document_type: str) -> int:
    """Price of the active agent named ``document_type``, else the default."""
    agent = db.query(LegalAgent).filter(
        LegalAgent.name == document_type,
        LegalAgent.status == AgentStatus.ACTIVE.value
    ).first()
    if agent is not None:
        return agent.final_price or agent.suggested_price or settings.default_document_price
    return settings.default_document_price

def create_document_token(
    db: Session,
    document_content: str,
    document_type: str,
    user_email: str,
    user_name: str,
    sla_hours: Optional[int] = None,
    now: Optional[datetime] = None
) -> DocumentToken:
    missing = [
        name for name, value in (
            ("document_content", document_content),
            ("document_type", document_type),
            ("user_email", user_email),
            ("user_name", user_name),
        ) if not value
    ]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")

    now = now or utcnow()
    sla_hours = sla_hours or settings.default_sla_hours

    document = DocumentToken(
        token=generate_token(),
        document_type=document_type,
        document_content=document_content,
        user_email=user_email.lower(),
        user_name=user_name,
        price=resolve_price(db, document_type),
        sla_hours=sla_hours,
        sla_deadline=now + timedelta(hours=sla_hours),
        status=DocumentStatus.SOLICITADO.value,
        sla_status=SlaStatus.ON_TIME.value,
        created_at=now,
        updated_at=now
    )

    try:
        db.add(document)
        db.commit()
        db.refresh(document)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating document token: {str(e)}")
        raise

    logger.info(f"Document token created: {document.token} ({document_type})")
    return document

def get_by_token(db: Session, token: str, user_email: Optional[str] = None) -> DocumentToken:
    query = db.query(DocumentToken).filter(DocumentToken.token == token.strip().upper())
    if user_email is not None:
        query = query.filter(DocumentToken.user_email == user_email.lower())
    document = query.first()
    if document is None:
        raise NotFoundError("Document not found")
    return document

def matches_agent(document_type: str, agent_names: Iterable[str]) -> bool:
    """Loose match between a request's document type and a lawyer's agent names."""
    doc_type = document_type.lower().strip()
    for name in agent_names:
        agent_name = name.lower().strip()
        if doc_type in agent_name or agent_name in doc_type:
            return True
        if "arrendamiento" in doc_type and "arrendamiento" in agent_name:
            return True
    return False

def get_lawyer_documents(db: Session, lawyer: LawyerProfile) -> List[DocumentToken]:
    """Pending requests for the lawyer's agents, oldest first."""
    agent_names = agent_names_for_lawyer(db, lawyer.id)
    if not agent_names:
        logger.info(f"Lawyer {lawyer.id} has no agents, returning empty documents")
        return []

    documents = db.query(DocumentToken).filter(
        DocumentToken.status.in_(LAWYER_QUEUE_STATUSES)
    ).order_by(DocumentToken.created_at.asc(), DocumentToken.id.asc()).all()

    filtered = [doc for doc in documents if matches_agent(doc.document_type, agent_names)]
    logger.info(f"Filtered {len(filtered)} documents from {len(documents)} total")
    return filtered

def can_review(db: Session, document: DocumentToken, lawyer: LawyerProfile) -> bool:
    if lawyer.is_admin:
        return True
    return matches_agent(document.document_type, agent_names_for_lawyer(db, lawyer.id))

def change_status(
    db: Session,
    document: DocumentToken,
    target: DocumentStatus,
    now: Optional[datetime] = None
) -> DocumentToken:
    current = DocumentStatus(document.status)
    if target not in TRANSITIONS[current]:
        raise ValueError(f"Invalid status transition: {current.value} -> {target.value}")

    document.status = target.value
    document.updated_at = now or utcnow()
    document.sla_status = compute_sla_status(document, document.updated_at).value
    db.commit()
    db.refresh(document)
    logger.info(f"Document {document.token} moved {current.value} -> {target.value}")
    return document

def review_document(
    db: Session,
    document_id: int,
    lawyer: LawyerProfile,
    target: DocumentStatus,
    document_content: Optional[str] = None,
    now: Optional[datetime] = None
) -> DocumentToken:
    """Lawyer edits the content and advances the request."""
    if target not in LAWYER_TARGETS:
        raise ValueError(f"Lawyers cannot move a document to {target.value}")

    document = get_for_lawyer(db, document_id, lawyer)
    if document_content is not None:
        document.document_content = document_content
    document.reviewed_by_lawyer_id = lawyer.id
    document.reviewed_by_lawyer_name = lawyer.full_name
    return change_status(db, document, target, now)

def get_for_lawyer(db: Session, document_id: int, lawyer: LawyerProfile) -> DocumentToken:
    document = db.get(DocumentToken, document_id)
    if document is None:
        raise NotFoundError("Document not found")
    if not can_review(db, document, lawyer):
        raise PermissionError("This document does not belong to any of your agents")
    return document

def client_change_status(
    db: Session,
    token: str,
    user_email: str,
    target: DocumentStatus,
    now: Optional[datetime] = None
) -> DocumentToken:
    """Client side of the exchange: view, request changes, pay, download."""
    if target not in CLIENT_TARGETS:
        raise ValueError(f"Clients cannot move a document to {target.value}")
    document = get_by_token(db, token, user_email)
    if target == DocumentStatus.EN_REVISION_ABOGADO and document.status != DocumentStatus.REVISION_USUARIO.value:
        raise ValueError("Changes can only be requested once the document is in client review")
    return change_status(db, document, target, now)

def mark_downloaded(db: Session, document: DocumentToken, now: Optional[datetime] = None) -> DocumentToken:
    """Paid documents become ``descargado`` on first download; unpaid ones cannot be downloaded."""
    if document.status == DocumentStatus.DESCARGADO.value:
        return document
    if document.status != DocumentStatus.PAGADO.value:
        raise PermissionError("The document must be paid before it can be downloaded")
    return change_status(db, document, DocumentStatus.DESCARGADO, now)

def sla_deadline(document: DocumentToken) -> datetime:
    if document.sla_deadline is not None:
        return document.sla_deadline
    return document.created_at + timedelta(hours=document.sla_hours or 0)

def compute_sla_status(document: DocumentToken, now: Optional[datetime] = None) -> SlaStatus:
    now = now or utcnow()
    deadline = sla_deadline(document)

    if document.status in COMPLETED_STATUSES:
        completed_at = document.updated_at or now
        return SlaStatus.COMPLETED_ON_TIME if completed_at <= deadline else SlaStatus.COMPLETED_LATE

    if now > deadline:
        return SlaStatus.OVERDUE
    if now > deadline - timedelta(hours=settings.sla_at_risk_hours):
        return SlaStatus.AT_RISK
    return SlaStatus.ON_TIME

def _month_start(moment: datetime, months_back: int) -> datetime:
    year, month = moment.year, moment.month - months_back
    while month <= 0:
        month += 12
        year -= 1
    return datetime(year, month, 1)

def _round1(value: float) -> float:
    return round(value * 10) / 10

def sla_stats(documents: List[DocumentToken], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Aggregate SLA figures over documents, recomputing each status against ``now``."""
    now = now or utcnow()
    statuses = [(doc, compute_sla_status(doc, now)) for doc in documents]

    def count(status: SlaStatus, rows=statuses) -> int:
        return sum(1 for _, s in rows if s == status)

    on_time_completed = count(SlaStatus.COMPLETED_ON_TIME)
    late_completed = count(SlaStatus.COMPLETED_LATE)
    overdue = count(SlaStatus.OVERDUE)
    at_risk = count(SlaStatus.AT_RISK)
    on_time = count(SlaStatus.ON_TIME)

    completed = on_time_completed + late_completed
    completion_rate = (on_time_completed / completed) * 100 if completed else 0.0

    completed_docs = [doc for doc in documents if doc.status in COMPLETED_STATUSES]
    average_completion = 0.0
    if completed_docs:
        total_hours = sum(
            ((doc.updated_at or now) - doc.created_at).total_seconds() / 3600 for doc in completed_docs
        )
        average_completion = total_hours / len(completed_docs)

    monthly_trends = []
    for months_back in range(5, -1, -1):
        start = _month_start(now, months_back)
        end = _month_start(now, months_back - 1)
        month_rows = [(doc, s) for doc, s in statuses if start <= doc.created_at < end]
        month_on_time = count(SlaStatus.COMPLETED_ON_TIME, month_rows)
        month_completed = month_on_time + count(SlaStatus.COMPLETED_LATE, month_rows)
        rate = (month_on_time / month_completed) * 100 if month_completed else 0.0
        monthly_trends.append({
            "month": start.strftime("%Y-%m"),
            "completion_rate": _round1(rate),
            "total_documents": len(month_rows),
            "on_time": month_on_time,
            "late": month_completed - month_on_time
        })

    return {
        "total_documents": len(documents),
        "on_time_completion": on_time_completed,
        "late_completion": late_completed,
        "overdue_documents": overdue,
        "at_risk_documents": at_risk,
        "on_time_documents": on_time,
        "completion_rate": _round1(completion_rate),
        "average_completion_time": _round1(average_completion),
        "monthly_trends": monthly_trends,
        "status_distribution": {
            "on_time": on_time,
            "at_risk": at_risk,
            "overdue": overdue,
            "completed_on_time": on_time_completed,
            "completed_late": late_completed
        }
    }

def sla_documents_for(db: Session, lawyer: LawyerProfile) -> List[DocumentToken]:
    """Admins see every request with an SLA, lawyers only those of their agents."""
    documents = db.query(DocumentToken).filter(DocumentToken.sla_hours.isnot(None)).all()
    if lawyer.is_admin:
        return documents
    agent_names = agent_names_for_lawyer(db, lawyer.id)
    if not agent_names:
        return []
    return [doc for doc in documents if matches_agent(doc.document_type, agent_names)]
