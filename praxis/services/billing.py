"""Lawyer subscriptions billed through dLocal Go.

dLocal hosts the checkout; this module lists plans, opens subscriptions,
tracks them locally and applies the status notifications dLocal sends back.
"""
import hashlib
import hmac
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..exceptions import BillingServiceError, NotFoundError
from ..models.database import LawyerProfile, LawyerSubscription
from ..models.schemas import SubscriptionStatus
from ..auth import PERMISSION_FLAGS

logger = logging.getLogger(__name__)

FREE_PLAN_ID = "free"
FREE_PLAN = {
    "id": FREE_PLAN_ID,
    "name": "Plan Gratuito",
    "description": "Acceso básico a documentos legales",
    "monthly_price": 0,
    "yearly_price": 0,
    "features": [
        "Acceso a documentos básicos",
        "Soporte por email",
        "Dashboard básico"
    ],
    "currency": "COP",
    "plan_token": None,
    "active": True
}

PAID_PLAN_FEATURES = [
    "Acceso a herramientas IA",
    "Gestión de documentos",
    "Soporte técnico",
    "Estadísticas avanzadas"
]

# Yearly billing charges ten months
YEARLY_MONTHS = 10
ACTIVE_PERIOD_DAYS = 30

class DLocalClient:
    """Thin async wrapper over the dLocal Go subscription API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key if api_key is not None else settings.dlocal_api_key
        self.secret_key = secret_key if secret_key is not None else settings.dlocal_secret_key
        self.base_url = (base_url or settings.dlocal_base_url).rstrip("/")
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.secret_key)

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.configured:
            raise BillingServiceError("dLocal credentials not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.api_key, self.secret_key),
                timeout=settings.dlocal_timeout_seconds,
                transport=self.transport
            ) as client:
                response = await client.request(method, path, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"dLocal API error: {e.response.status_code} {e.response.text}")
            raise BillingServiceError(f"dLocal API error: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"dLocal request failed: {str(e)}")
            raise BillingServiceError(f"dLocal request failed: {str(e)}") from e

    async def list_plans(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/v1/subscription/plan/all")
        return data.get("data") or []

    async def create_subscription(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/v1/subscription/create", payload)

def map_plan(raw: Dict[str, Any]) -> Dict[str, Any]:
    amount = int(raw.get("amount") or 0)
    return {
        "id": str(raw.get("id")),
        "name": raw.get("name") or "",
        "description": raw.get("description"),
        "monthly_price": amount,
        "yearly_price": amount * YEARLY_MONTHS,
        "features": list(PAID_PLAN_FEATURES),
        "currency": raw.get("currency"),
        "plan_token": raw.get("plan_token"),
        "active": bool(raw.get("active", True))
    }

async def get_plans(client: DLocalClient) -> List[Dict[str, Any]]:
    """Free plan followed by dLocal's active plans; only the free plan when dLocal fails."""
    try:
        raw_plans = await client.list_plans()
    except BillingServiceError as e:
        logger.error(f"Error fetching plans, serving free plan only: {str(e)}")
        return [dict(FREE_PLAN)]

    plans = [map_plan(raw) for raw in raw_plans if raw.get("active", True)]
    return [dict(FREE_PLAN)] + plans

async def _subscribe_url_for(client: DLocalClient, plan_id: str) -> Optional[str]:
    try:
        raw_plans = await client.list_plans()
    except BillingServiceError:
        return None
    for raw in raw_plans:
        if str(raw.get("id")) == str(plan_id):
            return raw.get("subscribe_url")
    return None

def callback_urls() -> Dict[str, str]:
    base = settings.app_base_url.rstrip("/")
    return {
        "notification_url": settings.notification_url,
        "success_url": f"{base}/subscription-success?subscription_id={{subscription_id}}&plan_name={{plan_name}}",
        "back_url": f"{base}/#abogados?tab=subscription",
        "error_url": f"{base}/subscription-error?error={{error}}&error_description={{error_description}}"
    }

async def create_subscription(
    db: Session,
    client: DLocalClient,
    lawyer: LawyerProfile,
    plan_id: str,
    billing_cycle: str = "monthly"
) -> Dict[str, Any]:
    if plan_id == FREE_PLAN_ID:
        logger.info(f"Lawyer {lawyer.id} selected the free plan")
        return {"success": True, "redirect_url": None, "subscription_id": None, "message": "Plan gratuito seleccionado"}

    logger.info(f"Creating subscription for lawyer {lawyer.id}, plan {plan_id}, cycle {billing_cycle}")
    payload = {
        "plan_id": plan_id,
        "user": {"id": str(lawyer.id), "email": lawyer.email, "name": lawyer.full_name or lawyer.email},
        **callback_urls()
    }

    try:
        result = await client.create_subscription(payload)
    except BillingServiceError:
        subscribe_url = await _subscribe_url_for(client, plan_id)
        if subscribe_url:
            logger.info(f"Falling back to plan subscribe_url for plan {plan_id}")
            return {
                "success": True,
                "redirect_url": subscribe_url,
                "subscription_id": None,
                "message": "Redirecting to plan subscription page"
            }
        raise

    subscription = LawyerSubscription(
        lawyer_id=lawyer.id,
        plan_id=str(plan_id),
        billing_cycle=billing_cycle,
        status=SubscriptionStatus.PENDING.value,
        dlocal_subscription_id=result.get("subscription_id"),
        cancel_at_period_end=False
    )
    try:
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating subscription record: {str(e)}")
        raise

    return {
        "success": True,
        "redirect_url": result.get("redirect_url") or result.get("checkout_url"),
        "subscription_id": subscription.id,
        "message": "Subscription created, redirecting to payment"
    }

def get_current_subscription(db: Session, lawyer_id: int) -> Optional[LawyerSubscription]:
    return db.query(LawyerSubscription).filter(
        LawyerSubscription.lawyer_id == lawyer_id
    ).order_by(LawyerSubscription.created_at.desc(), LawyerSubscription.id.desc()).first()

def manage_subscription(db: Session, lawyer_id: int, subscription_id: int, action: str) -> LawyerSubscription:
    """``cancel`` keeps access until the period ends; ``reactivate`` undoes it."""
    subscription = db.query(LawyerSubscription).filter(
        LawyerSubscription.id == subscription_id,
        LawyerSubscription.lawyer_id == lawyer_id
    ).first()
    if subscription is None:
        raise NotFoundError("Subscription not found")

    if action == "cancel":
        subscription.cancel_at_period_end = True
    elif action == "reactivate":
        subscription.cancel_at_period_end = False
        subscription.status = SubscriptionStatus.ACTIVE.value
    else:
        raise ValueError(f"Unknown action: {action}")

    db.commit()
    db.refresh(subscription)
    logger.info(f"Subscription {subscription_id} {action} for lawyer {lawyer_id}")
    return subscription

def verify_webhook_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, expected)

def normalize_webhook(payload: Dict[str, Any]) -> Dict[str, Any]:
    """dLocal sends the subscription either flat or nested under ``subscription``."""
    nested = payload.get("subscription") if isinstance(payload.get("subscription"), dict) else {}
    user = payload.get("user") if isinstance(payload.get("user"), dict) else {}
    nested_user = nested.get("user") if isinstance(nested.get("user"), dict) else {}
    return {
        "subscription_id": payload.get("subscription_id") or nested.get("id") or payload.get("id"),
        "status": payload.get("status") or nested.get("status"),
        "email": user.get("email") or nested_user.get("email") or payload.get("email"),
        "external_id": user.get("external_id") or payload.get("external_id"),
        "plan_id": payload.get("plan_id") or nested.get("plan_id")
    }

def _find_lawyer(db: Session, external_id: Any, email: Optional[str]) -> Optional[LawyerProfile]:
    if external_id is not None:
        try:
            lawyer = db.get(LawyerProfile, int(external_id))
        except (TypeError, ValueError):
            lawyer = None
        if lawyer is not None:
            return lawyer
    if email:
        return db.query(LawyerProfile).filter(LawyerProfile.email == email.lower()).first()
    return None

def apply_webhook(db: Session, payload: Dict[str, Any], now: Optional[datetime] = None) -> LawyerSubscription:
    now = now or datetime.utcnow()
    event = normalize_webhook(payload)
    subscription_id = event["subscription_id"]
    if not subscription_id:
        raise ValueError("Missing subscription ID")
    subscription_id = str(subscription_id)
    status = event["status"] or SubscriptionStatus.PENDING.value
    logger.info(f"Processing dLocal notification for {subscription_id}: {status}")

    subscription = db.query(LawyerSubscription).filter(
        LawyerSubscription.dlocal_subscription_id == subscription_id
    ).first()
    lawyer = _find_lawyer(db, event["external_id"], event["email"])

    if subscription is None and lawyer is not None:
        subscription = db.query(LawyerSubscription).filter(
            LawyerSubscription.lawyer_id == lawyer.id,
            LawyerSubscription.status == SubscriptionStatus.PENDING.value
        ).order_by(LawyerSubscription.id.desc()).first()
        if subscription is None:
            subscription = LawyerSubscription(
                lawyer_id=lawyer.id,
                plan_id=str(event["plan_id"] or "premium"),
                billing_cycle="monthly",
                cancel_at_period_end=False
            )
            db.add(subscription)
        subscription.dlocal_subscription_id = subscription_id

    if subscription is None:
        raise NotFoundError(f"No subscription or lawyer matches {subscription_id}")

    subscription.status = status
    if status == SubscriptionStatus.ACTIVE.value:
        subscription.current_period_start = now
        subscription.current_period_end = now + timedelta(days=ACTIVE_PERIOD_DAYS)

    owner = lawyer if lawyer is not None and lawyer.id == subscription.lawyer_id else None
    owner = owner or db.get(LawyerProfile, subscription.lawyer_id)
    if owner is not None:
        owner.subscription_status = status
        if status == SubscriptionStatus.ACTIVE.value:
            for flag in PERMISSION_FLAGS:
                setattr(owner, flag, True)

    try:
        db.commit()
        db.refresh(subscription)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error applying dLocal notification: {str(e)}")
        raise
    return subscription

def describe_subscription(subscription: Optional[LawyerSubscription], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Status to show the lawyer, derived from the stored status and period dates."""
    now = now or datetime.utcnow()
    if subscription is None:
        return {"subscription": None, "display_status": FREE_PLAN_ID, "days_remaining": None,
                "renews_on": None, "ends_on": None}

    end = subscription.current_period_end
    days_remaining = None
    if end is not None:
        days_remaining = max(0, math.ceil((end - now).total_seconds() / 86400))

    renews_on = ends_on = None
    status = subscription.status
    if status == SubscriptionStatus.ACTIVE.value:
        if end is not None and end < now:
            display = SubscriptionStatus.EXPIRED.value
            ends_on = end
        elif subscription.cancel_at_period_end:
            display = "canceling"
            ends_on = end
        else:
            display = SubscriptionStatus.ACTIVE.value
            renews_on = end
    elif status in (SubscriptionStatus.CANCELLED.value, SubscriptionStatus.EXPIRED.value):
        display = status
        ends_on = end
        days_remaining = 0 if end is not None else None
    else:
        display = status or SubscriptionStatus.PENDING.value

    return {
        "subscription": subscription,
        "display_status": display,
        "days_remaining": days_remaining,
        "renews_on": renews_on,
        "ends_on": ends_on
    }
