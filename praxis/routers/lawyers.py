from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from ..database import get_db
from ..auth import (
    create_lawyer, get_current_admin, get_lawyers, set_lawyer_active,
    update_lawyer_permissions
)
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    LawyerAdminCreate, LawyerPermissions, LawyerPublicProfile, LawyerResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lawyers", tags=["Lawyers"])

@router.get("", response_model=List[LawyerResponse])
async def list_lawyers(
    skip: int = 0,
    limit: int = 100,
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """List all lawyers (admin only)."""
    return get_lawyers(db, skip=skip, limit=limit)

@router.post("", response_model=LawyerResponse)
async def create_lawyer_admin(
    lawyer_data: LawyerAdminCreate,
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Create a lawyer with initial permissions (admin only)."""
    try:
        lawyer = create_lawyer(
            db=db,
            email=lawyer_data.email,
            full_name=lawyer_data.full_name,
            password=lawyer_data.password,
            phone_number=lawyer_data.phone_number,
            can_create_agents=lawyer_data.can_create_agents,
            can_create_blogs=lawyer_data.can_create_blogs,
            can_use_ai_tools=lawyer_data.can_use_ai_tools
        )
    except Exception as e:
        raise to_http_exception(e, "Lawyer creation failed")

    logger.info(f"Lawyer created by admin {current_admin.email}: {lawyer.email}")
    return lawyer

@router.put("/{lawyer_id}/permissions", response_model=LawyerResponse)
async def update_permissions(
    lawyer_id: int,
    permissions: LawyerPermissions,
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    try:
        lawyer = update_lawyer_permissions(db, lawyer_id, permissions.model_dump())
    except Exception as e:
        raise to_http_exception(e, "Failed to update permissions")

    if lawyer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lawyer not found")
    return lawyer

@router.post("/{lawyer_id}/deactivate")
async def deactivate_lawyer(
    lawyer_id: int,
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if current_admin.id == lawyer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    if not set_lawyer_active(db, lawyer_id, False):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lawyer not found")

    logger.info(f"Lawyer {lawyer_id} deactivated by admin {current_admin.email}")
    return {"message": "Lawyer deactivated successfully"}

@router.post("/{lawyer_id}/activate")
async def activate_lawyer(
    lawyer_id: int,
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if not set_lawyer_active(db, lawyer_id, True):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lawyer not found")

    logger.info(f"Lawyer {lawyer_id} activated by admin {current_admin.email}")
    return {"message": "Lawyer activated successfully"}

@router.get("/{lawyer_id}/public", response_model=LawyerPublicProfile)
async def get_public_profile(
    lawyer_id: int,
    db: Session = Depends(get_db)
):
    """Public, non-sensitive view of an active lawyer."""
    lawyer = db.get(LawyerProfile, lawyer_id)
    if lawyer is None or not lawyer.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lawyer not found")
    return lawyer
