from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..database import get_db
from ..auth import get_current_lawyer
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    LawyerDocumentCreate, LawyerDocumentResponse, LawyerDocumentUpdate
)
from ..services import lawyer_documents
from ..services.pdf_export import build_lawyer_document_pdf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/my-documents", tags=["Lawyer Documents"])

@router.post("", response_model=LawyerDocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    document: LawyerDocumentCreate,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return lawyer_documents.create_document(db, current_lawyer.id, document.model_dump())
    except Exception as e:
        raise to_http_exception(e, "Failed to save document")

@router.get("", response_model=List[LawyerDocumentResponse])
async def list_documents(
    search: Optional[str] = None,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    return lawyer_documents.list_documents(db, current_lawyer.id, search)

@router.get("/{document_id}", response_model=LawyerDocumentResponse)
async def get_document(
    document_id: int,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return lawyer_documents.get_document(db, document_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve document")

@router.patch("/{document_id}", response_model=LawyerDocumentResponse)
async def update_document(
    document_id: int,
    update: LawyerDocumentUpdate,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return lawyer_documents.update_document(
            db, document_id, current_lawyer.id, update.model_dump(exclude_unset=True)
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to update document")

@router.get("/{document_id}/pdf")
async def download_document(
    document_id: int,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        document = lawyer_documents.get_document(db, document_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve document")

    return StreamingResponse(
        build_lawyer_document_pdf(document),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="documento-{document.id}.pdf"'}
    )

@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: int,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        lawyer_documents.delete_document(db, document_id, current_lawyer.id)
    except Exception as e:
        raise to_http_exception(e, "Failed to delete document")
