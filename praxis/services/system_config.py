import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models.database import SystemConfig

logger = logging.getLogger(__name__)

def get_system_config(db: Session, config_key: str, default: Optional[str] = None) -> Optional[str]:
    """Read a runtime setting from the system_config table, falling back to ``default``."""
    try:
        row = db.query(SystemConfig).filter(SystemConfig.config_key == config_key).first()
    except Exception as e:
        logger.error(f"Error reading config '{config_key}': {str(e)}")
        return default

    if row is None or not row.config_value:
        return default
    return row.config_value

def list_system_config(db: Session) -> List[SystemConfig]:
    return db.query(SystemConfig).order_by(SystemConfig.config_key).all()

def get_system_config_row(db: Session, config_key: str) -> Optional[SystemConfig]:
    return db.query(SystemConfig).filter(SystemConfig.config_key == config_key).first()

def set_system_config(db: Session, config_key: str, value: str, description: Optional[str] = None) -> SystemConfig:
    """Insert or update a setting. Key and value are both required."""
    config_key = (config_key or "").strip()
    if not config_key or not (value or "").strip():
        raise ValueError("config_key y config_value son requeridos")

    row = get_system_config_row(db, config_key)
    try:
        if row is None:
            row = SystemConfig(config_key=config_key)
            db.add(row)
        row.config_value = value
        if description is not None:
            row.description = description
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating system config '{config_key}': {str(e)}")
        raise

    logger.info(f"System config '{config_key}' updated")
    return row
