from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List
import logging

from ..database import get_db
from ..auth import get_current_lawyer
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    DocumentReview, DocumentStatusChange, DocumentTokenCreate, DocumentTokenCreated,
    DocumentTokenResponse, SlaStats
)
from ..services import document_tokens
from ..services.pdf_export import build_document_pdf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Document Requests"])

def _pdf_response(document) -> StreamingResponse:
    return StreamingResponse(
        build_document_pdf(document),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="documento-{document.token}.pdf"'}
    )

@router.post("/tokens", response_model=DocumentTokenCreated)
async def create_document_token(
    request: DocumentTokenCreate,
    db: Session = Depends(get_db)
):
    """A client requests a lawyer-reviewed document and receives a tracking token."""
    try:
        document = document_tokens.create_document_token(
            db,
            document_content=request.document_content,
            document_type=request.document_type,
            user_email=request.user_email,
            user_name=request.user_name,
            sla_hours=request.sla_hours
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to create document token")

    return {
        "token": document.token,
        "message": "Document token created successfully",
        "document_id": document.id,
        "price": document.price,
        "sla_deadline": document.sla_deadline
    }

@router.get("/track/{token}", response_model=DocumentTokenResponse)
async def track_document(
    token: str,
    email: str = Query(..., min_length=3),
    db: Session = Depends(get_db)
):
    try:
        return document_tokens.get_by_token(db, token, email)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve document")

@router.post("/track/{token}/status", response_model=DocumentTokenResponse)
async def change_status_as_client(
    token: str,
    change: DocumentStatusChange,
    email: str = Query(..., min_length=3),
    db: Session = Depends(get_db)
):
    try:
        return document_tokens.client_change_status(db, token, email, change.status)
    except Exception as e:
        raise to_http_exception(e, "Failed to update document status")

@router.get("/track/{token}/pdf")
async def download_document(
    token: str,
    email: str = Query(..., min_length=3),
    db: Session = Depends(get_db)
):
    try:
        document = document_tokens.get_by_token(db, token, email)
        document = document_tokens.mark_downloaded(db, document)
    except Exception as e:
        raise to_http_exception(e, "Failed to download document")
    return _pdf_response(document)

@router.get("/lawyer-queue", response_model=List[DocumentTokenResponse])
async def get_lawyer_documents(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    """Pending requests for the lawyer's agents, oldest first."""
    try:
        return document_tokens.get_lawyer_documents(db, current_lawyer)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve documents")

@router.get("/sla-stats", response_model=SlaStats)
async def get_sla_stats(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        documents = document_tokens.sla_documents_for(db, current_lawyer)
        return document_tokens.sla_stats(documents)
    except Exception as e:
        raise to_http_exception(e, "Failed to compute SLA statistics")

@router.post("/{document_id}/review", response_model=DocumentTokenResponse)
async def review_document(
    document_id: int,
    review: DocumentReview,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return document_tokens.review_document(
            db,
            document_id,
            current_lawyer,
            review.status,
            document_content=review.document_content
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to review document")

@router.get("/{document_id}/pdf")
async def preview_document_pdf(
    document_id: int,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        document = document_tokens.get_for_lawyer(db, document_id, current_lawyer)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve document")
    return _pdf_response(document)
