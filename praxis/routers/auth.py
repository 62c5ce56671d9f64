from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
import logging

from ..database import get_db
from ..auth import (
    authenticate_lawyer, create_lawyer, create_lawyer_token, get_current_lawyer,
    check_auth_rate_limit, reset_auth_rate_limit, update_lawyer_password,
    update_lawyer_profile, verify_password
)
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    LawyerCreate, LawyerLogin, LawyerProfileUpdate, LawyerResponse,
    PasswordChange, Token
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=LawyerResponse)
async def register_lawyer(
    lawyer_data: LawyerCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    """Self-service lawyer onboarding. New accounts start without permissions."""
    client_ip = request.client.host if request.client else "unknown"
    if not check_auth_rate_limit(f"register_{client_ip}"):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many registration attempts. Please try again later."
        )

    try:
        lawyer = create_lawyer(
            db=db,
            email=lawyer_data.email,
            full_name=lawyer_data.full_name,
            password=lawyer_data.password,
            phone_number=lawyer_data.phone_number
        )
    except Exception as e:
        raise to_http_exception(e, "Registration failed")

    reset_auth_rate_limit(f"register_{client_ip}")
    logger.info(f"Lawyer registered: {lawyer.email}")
    return lawyer

@router.post("/login", response_model=Token)
async def login_lawyer(
    credentials: LawyerLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """Authenticate a lawyer and return an access token."""
    client_ip = request.client.host if request.client else "unknown"
    rate_limit_key = f"login_{client_ip}_{credentials.email.lower()}"

    if not check_auth_rate_limit(rate_limit_key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later."
        )

    lawyer = authenticate_lawyer(db=db, email=credentials.email, password=credentials.password)
    if not lawyer:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    reset_auth_rate_limit(rate_limit_key)
    logger.info(f"Lawyer logged in: {lawyer.email}")
    return {"access_token": create_lawyer_token(lawyer), "token_type": "bearer"}

@router.get("/me", response_model=LawyerResponse)
async def get_current_lawyer_info(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
):
    return current_lawyer

@router.patch("/me", response_model=LawyerResponse)
async def update_current_lawyer(
    profile: LawyerProfileUpdate,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return update_lawyer_profile(db, current_lawyer, profile.model_dump(exclude_unset=True))
    except Exception as e:
        raise to_http_exception(e, "Profile update failed")

@router.post("/change-password")
async def change_password(
    passwords: PasswordChange,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    if not verify_password(passwords.current_password, current_lawyer.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    if not update_lawyer_password(db, current_lawyer.id, passwords.new_password):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update password"
        )

    logger.info(f"Password changed for lawyer: {current_lawyer.email}")
    return {"message": "Password updated successfully"}

@router.post("/validate-token")
async def validate_token(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
):
    return {
        "valid": True,
        "lawyer": {
            "id": current_lawyer.id,
            "email": current_lawyer.email,
            "full_name": current_lawyer.full_name,
            "is_admin": current_lawyer.is_admin
        }
    }

@router.post("/refresh-token", response_model=Token)
async def refresh_token(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer)
):
    logger.info(f"Token refreshed for lawyer: {current_lawyer.email}")
    return {"access_token": create_lawyer_token(current_lawyer), "token_type": "bearer"}
