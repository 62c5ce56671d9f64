from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from ..database import get_db
from ..auth import get_current_admin
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import SystemConfigResponse, SystemConfigUpdate
from ..services.system_config import get_system_config_row, list_system_config, set_system_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system-config", tags=["System Config"])

@router.get("", response_model=List[SystemConfigResponse])
async def list_config(
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Runtime AI settings (admin only)."""
    return list_system_config(db)

@router.get("/{config_key}", response_model=SystemConfigResponse)
async def get_config(
    config_key: str,
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    row = get_system_config_row(db, config_key)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Config key not found")
    return row

@router.put("/{config_key}", response_model=SystemConfigResponse)
async def update_config(
    config_key: str,
    update: SystemConfigUpdate,
    current_admin: LawyerProfile = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    try:
        row = set_system_config(db, config_key, update.config_value, update.description)
    except Exception as e:
        raise to_http_exception(e, "Failed to update system config")

    logger.info(f"System config '{config_key}' changed by admin {current_admin.email}")
    return row
