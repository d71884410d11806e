import logging
import secrets
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from monetra_svc.errors import AppError, NotFound
from monetra_svc.models.membership import MembershipPlan, Order, OrderStatus
from monetra_svc.razorpay_integration import RazorpayIntegration

logger = logging.getLogger(__name__)


def to_minor_units(price) -> int:
    """Convert a major-unit price (e.g. 499.00) to minor units (49900)."""
    return int((Decimal(str(price)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def generate_order_id(user_id: str) -> str:
    return f"order_{int(time.time() * 1000)}_{user_id[:8]}_{secrets.token_hex(3)}"


def get_plan(db: Session, plan_id: str) -> MembershipPlan:
    plan = db.query(MembershipPlan).filter(MembershipPlan.id == plan_id).first()
    if plan is None:
        raise NotFound(f"Membership plan {plan_id} not found")
    return plan


def list_plans(db: Session) -> List[MembershipPlan]:
    return db.query(MembershipPlan).order_by(MembershipPlan.price).all()


def list_orders(db: Session, user_id: str) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc())
        .all()
    )


def create_order(db: Session, gateway: RazorpayIntegration, user_id: str, plan_id: str) -> Order:
    """
    Open a gateway order for a plan and persist it as pending.

    The row is committed before returning so a webhook for this order
    always finds it. If the gateway call fails nothing is written.

    :raises NotFound: if the plan does not exist.
    :raises ExternalServiceError: if the gateway call fails.
    """
    plan = get_plan(db, plan_id)
    order_id = generate_order_id(user_id)
    amount = to_minor_units(plan.price)
    notes = {
        'customer_id': user_id,
        'membership_id': plan.id,
        'order_id': order_id,
    }

    gateway_order = gateway.create_order(amount=amount, receipt=order_id, notes=notes)

    order = Order(
        id=order_id,
        user_id=user_id,
        plan_id=plan.id,
        gateway_order_id=gateway_order['id'],
        amount=amount,
        currency=gateway_order.get('currency', gateway.currency),
        status=OrderStatus.PENDING.value,
        gateway_metadata=dict(gateway_order),
    )
    db.add(order)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(e, exc_info=True)
        raise AppError("Failed to record payment order") from e
    db.refresh(order)
    logger.info(f"Order {order.id} created for user {user_id}: plan {plan.id}, gateway order {order.gateway_order_id}, amount {amount}")
    return order
