from datetime import datetime, timedelta, timezone
from typing import Optional
from collections import defaultdict
import logging
import time

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models.database import LawyerProfile

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# JWT token scheme
security = HTTPBearer()

PERMISSION_FLAGS = ("can_create_agents", "can_create_blogs", "can_use_ai_tools")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

def create_lawyer_token(lawyer: LawyerProfile) -> str:
    return create_access_token(data={"sub": str(lawyer.id), "email": lawyer.email})

def verify_token(token: str) -> Optional[dict]:
    """Verify and decode a JWT token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.warning(f"Token verification failed: {str(e)}")
        return None

def authenticate_lawyer(db: Session, email: str, password: str) -> Optional[LawyerProfile]:
    """Authenticate a lawyer with email and password."""
    lawyer = get_lawyer_by_email(db, email)

    if not lawyer:
        return None

    if not verify_password(password, lawyer.hashed_password):
        return None

    if not lawyer.is_active:
        return None

    return lawyer

async def get_current_lawyer(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> LawyerProfile:
    """Get the current authenticated lawyer from the JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise credentials_exception

    lawyer = db.get(LawyerProfile, int(subject))
    if lawyer is None:
        raise credentials_exception

    if not lawyer.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inactive lawyer account"
        )

    return lawyer

async def get_current_admin(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
) -> LawyerProfile:
    """Get the current lawyer and verify admin privileges."""
    if not current_lawyer.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )
    return current_lawyer

async def require_agent_creator(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
) -> LawyerProfile:
    """Lawyers need the can_create_agents flag (admins always pass)."""
    if not (current_lawyer.is_admin or current_lawyer.can_create_agents):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to create agents"
        )
    return current_lawyer

async def require_ai_tools(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
) -> LawyerProfile:
    if not (current_lawyer.is_admin or current_lawyer.can_use_ai_tools):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to use AI tools"
        )
    return current_lawyer

def create_lawyer(
    db: Session,
    email: str,
    full_name: str,
    password: str,
    phone_number: Optional[str] = None,
    is_admin: bool = False,
    **permissions: bool
) -> LawyerProfile:
    """Create a new lawyer account."""
    try:
        if get_lawyer_by_email(db, email):
            raise ValueError("A lawyer with this email already exists")

        lawyer = LawyerProfile(
            email=email.lower(),
            full_name=full_name.strip(),
            phone_number=phone_number,
            hashed_password=get_password_hash(password),
            is_admin=is_admin,
            is_active=True,
            **{flag: bool(permissions.get(flag, False)) for flag in PERMISSION_FLAGS}
        )

        db.add(lawyer)
        db.commit()
        db.refresh(lawyer)

        logger.info(f"Created lawyer: {lawyer.email}")
        return lawyer

    except Exception as e:
        logger.error(f"Error creating lawyer {email}: {str(e)}")
        db.rollback()
        raise

def update_lawyer_password(db: Session, lawyer_id: int, new_password: str) -> bool:
    """Update a lawyer's password."""
    try:
        lawyer = db.get(LawyerProfile, lawyer_id)
        if not lawyer:
            return False

        lawyer.hashed_password = get_password_hash(new_password)
        db.commit()

        logger.info(f"Updated password for lawyer: {lawyer.email}")
        return True

    except Exception as e:
        logger.error(f"Error updating password for lawyer {lawyer_id}: {str(e)}")
        db.rollback()
        return False

def set_lawyer_active(db: Session, lawyer_id: int, active: bool) -> bool:
    """Activate or deactivate a lawyer account."""
    try:
        lawyer = db.get(LawyerProfile, lawyer_id)
        if not lawyer:
            return False

        lawyer.is_active = active
        db.commit()

        logger.info(f"{'Activated' if active else 'Deactivated'} lawyer: {lawyer.email}")
        return True

    except Exception as e:
        logger.error(f"Error changing active flag for lawyer {lawyer_id}: {str(e)}")
        db.rollback()
        return False

def update_lawyer_permissions(db: Session, lawyer_id: int, permissions: dict) -> Optional[LawyerProfile]:
    """Replace the permission flags of a lawyer. All flags must be booleans."""
    for flag in PERMISSION_FLAGS:
        if not isinstance(permissions.get(flag), bool):
            raise ValueError(f"{flag} must be a boolean")

    lawyer = db.get(LawyerProfile, lawyer_id)
    if not lawyer:
        return None

    try:
        for flag in PERMISSION_FLAGS:
            setattr(lawyer, flag, permissions[flag])
        db.commit()
        db.refresh(lawyer)
    except Exception as e:
        logger.error(f"Error updating permissions for lawyer {lawyer_id}: {str(e)}")
        db.rollback()
        raise

    logger.info(f"Permissions updated for lawyer {lawyer.email}: {permissions}")
    return lawyer

def update_lawyer_profile(db: Session, lawyer: LawyerProfile, fields: dict) -> LawyerProfile:
    """Update the lawyer's own contact and public profile fields."""
    try:
        for name in ("full_name", "phone_number", "bio", "specialties", "city"):
            if name in fields:
                setattr(lawyer, name, fields[name])
        db.commit()
        db.refresh(lawyer)
    except Exception as e:
        logger.error(f"Error updating profile of lawyer {lawyer.id}: {str(e)}")
        db.rollback()
        raise

    return lawyer

def get_lawyer_by_email(db: Session, email: str) -> Optional[LawyerProfile]:
    """Get a lawyer by email."""
    return db.query(LawyerProfile).filter(LawyerProfile.email == email.lower()).first()

def get_lawyers(db: Session, skip: int = 0, limit: int = 100) -> list[LawyerProfile]:
    """Get a list of lawyers with pagination."""
    return db.query(LawyerProfile).order_by(LawyerProfile.id).offset(skip).limit(limit).all()

class RateLimiter:
    """Simple rate limiter for authentication attempts."""

    def __init__(self, max_attempts: int = 5, window_seconds: int = 300):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.attempts = defaultdict(list)

    def is_allowed(self, identifier: str) -> bool:
        """Check if an identifier is within rate limits."""
        now = time.time()

        # Clean old attempts
        self.attempts[identifier] = [
            attempt_time for attempt_time in self.attempts[identifier]
            if now - attempt_time < self.window_seconds
        ]

        if len(self.attempts[identifier]) >= self.max_attempts:
            return False

        self.attempts[identifier].append(now)
        return True

    def reset(self, identifier: str):
        """Reset rate limit for an identifier."""
        self.attempts.pop(identifier, None)

# Global rate limiter instance
auth_rate_limiter = RateLimiter()

def check_auth_rate_limit(identifier: str) -> bool:
    """Check if authentication attempts are within rate limits."""
    return auth_rate_limiter.is_allowed(identifier)

def reset_auth_rate_limit(identifier: str):
    """Reset authentication rate limit for an identifier."""
    auth_rate_limiter.reset(identifier)
