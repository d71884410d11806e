import json
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from monetra_svc.config import Settings, get_settings
from monetra_svc.errors import InvalidSignature, NotFound, ValidationError
from monetra_svc.models.base import get_db
from monetra_svc.models.membership import Membership
from monetra_svc.models.user import User
from monetra_svc.premium_orders import create_order, list_orders, list_plans
from monetra_svc.razorpay_event_processor import process_event, verify_client_payment
from monetra_svc.razorpay_integration import RazorpayIntegration, get_gateway
from monetra_svc.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    MembershipResponse,
    OrderOut,
    PlansResponse,
    VerifyOrderRequest,
    WebhookResponse,
)
from monetra_svc.security import get_current_user
from monetra_svc.signature import verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-Razorpay-Signature"


@router.get("/memberships", response_model=PlansResponse)
def get_memberships(db: Session = Depends(get_db)):
    return {"success": True, "memberships": list_plans(db)}


@router.post("/create-order", status_code=201, response_model=CreateOrderResponse)
def create_premium_order(
    order_request: CreateOrderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: RazorpayIntegration = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    order = create_order(db, gateway, current_user.id, order_request.plan_id)
    return {"success": True, "order": order, "key_id": settings.razorpay_key_id}


@router.post("/verify-order", response_model=MembershipResponse)
def verify_premium_order(
    verify_request: VerifyOrderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: RazorpayIntegration = Depends(get_gateway),
):
    membership = verify_client_payment(
        db,
        gateway,
        user_id=current_user.id,
        gateway_order_id=verify_request.razorpay_order_id,
        payment_id=verify_request.razorpay_payment_id,
        signature=verify_request.razorpay_signature,
        plan_id=verify_request.plan_id,
    )
    return {"success": True, "membership": membership}


@router.post("/webhook", status_code=200, response_model=WebhookResponse)
async def process_webhook(request: Request, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    payload_bytes = await request.body()
    sig_header = request.headers.get(SIGNATURE_HEADER)
    if not sig_header:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing {SIGNATURE_HEADER} header")
    webhook_secret = settings.razorpay_webhook_secret
    if not webhook_secret:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Razorpay webhook secret not configured")

    try:
        verify_webhook_signature(payload_bytes, sig_header, webhook_secret)
        event = json.loads(payload_bytes.decode('utf-8'))
    except InvalidSignature as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ValueError as e:
        logger.error(e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed webhook body")

    event_type = event.get('event') if isinstance(event, dict) else None
    try:
        membership = await run_in_threadpool(process_event, event, db)
    except NotFound as e:
        # Retrying will not make the plan or order appear; acknowledge and drop.
        logger.warning(f"Dropping {event_type} event: {e.message}")
        return {"success": True, "status": "ignored", "event": event_type, "metadata": {"reason": e.message}}
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except Exception:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error processing webhook event")

    if membership is None:
        return {"success": True, "status": "ignored", "event": event_type, "metadata": {}}
    metadata = {"user_id": membership.user_id, "tier": membership.tier, "status": membership.status}
    return {"success": True, "status": "processed", "event": event_type, "metadata": metadata}


@router.get("/my-membership", response_model=MembershipResponse)
def get_my_membership(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    membership = db.query(Membership).filter(Membership.user_id == current_user.id).first()
    return {"success": True, "membership": membership}


@router.get("/orders", response_model=List[OrderOut])
def get_my_orders(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return list_orders(db, current_user.id)
