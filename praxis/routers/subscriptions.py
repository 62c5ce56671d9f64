from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import List, Optional
import json
import logging

from ..config import settings
from ..database import get_db
from ..auth import get_current_lawyer
from ..dependencies import get_dlocal_client
from ..exceptions import to_http_exception
from ..models.database import LawyerProfile
from ..models.schemas import (
    CreateSubscriptionRequest, CreateSubscriptionResponse, ManageSubscriptionRequest,
    PlanResponse, SubscriptionOverview, SubscriptionResponse
)
from ..services import billing
from ..services.billing import DLocalClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])

@router.get("/plans", response_model=List[PlanResponse])
async def get_plans(client: DLocalClient = Depends(get_dlocal_client)):
    return await billing.get_plans(client)

@router.post("", response_model=CreateSubscriptionResponse)
async def create_subscription(
    request: CreateSubscriptionRequest,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    client: DLocalClient = Depends(get_dlocal_client),
    db: Session = Depends(get_db)
):
    """Open a dLocal checkout for a paid plan; the free plan needs no checkout."""
    try:
        return await billing.create_subscription(
            db, client, current_lawyer, request.plan_id, request.billing_cycle.value
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to create subscription")

@router.get("/current", response_model=SubscriptionOverview)
async def get_current_subscription(
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    subscription = billing.get_current_subscription(db, current_lawyer.id)
    return billing.describe_subscription(subscription)

@router.post("/{subscription_id}/manage", response_model=SubscriptionResponse)
async def manage_subscription(
    subscription_id: int,
    request: ManageSubscriptionRequest,
    current_lawyer: LawyerProfile = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    try:
        return billing.manage_subscription(db, current_lawyer.id, subscription_id, request.action)
    except Exception as e:
        raise to_http_exception(e, "Failed to update subscription")

@router.post("/webhook")
async def dlocal_webhook(
    request: Request,
    x_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Status notifications from dLocal, signed with HMAC-SHA256 of the raw body."""
    body = await request.body()
    if not billing.verify_webhook_signature(body, x_signature, settings.dlocal_secret_key):
        logger.error("Rejected dLocal notification with missing or invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    try:
        subscription = billing.apply_webhook(db, payload)
    except Exception as e:
        raise to_http_exception(e, "Webhook processing failed")

    return {"success": True, "message": "Webhook processed", "subscription_id": subscription.id}
