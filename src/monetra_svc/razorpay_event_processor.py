import datetime
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from monetra_svc.errors import NotFound, ValidationError
from monetra_svc.models.base import utcnow
from monetra_svc.models.membership import Membership, MembershipStatus, Order, OrderStatus
from monetra_svc.premium_orders import get_plan
from monetra_svc.razorpay_integration import RazorpayIntegration

logger = logging.getLogger(__name__)

PAYMENT_CAPTURED = 'payment.captured'


@dataclass(frozen=True)
class PaymentCaptured:
    event_id: str
    payment_id: str
    gateway_order_id: str
    customer_id: str
    plan_id: str
    local_order_id: Optional[str] = None


@dataclass(frozen=True)
class IgnoredEvent:
    event_type: str
    event_id: str = 'N/A'


WebhookEvent = Union[PaymentCaptured, IgnoredEvent]


def parse_event(payload: dict) -> WebhookEvent:
    """
    Turn a decoded webhook body into a typed event.

    Only ``payment.captured`` carries a payload we act on; every other
    event type becomes an ``IgnoredEvent``.

    :raises ValidationError: if the body is not a usable event.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")
    event_type = payload.get('event')
    if not event_type:
        raise ValidationError("Missing 'event' in webhook payload")
    event_id = payload.get('id') or payload.get('event_id') or 'N/A'

    if event_type != PAYMENT_CAPTURED:
        return IgnoredEvent(event_type=event_type, event_id=event_id)

    payment = (payload.get('payload') or {}).get('payment') or {}
    entity = payment.get('entity') or {}
    payment_id = entity.get('id')
    gateway_order_id = entity.get('order_id')
    notes = entity.get('notes') or {}
    if not payment_id or not gateway_order_id:
        raise ValidationError("Missing payment or order id in payment.captured event")
    customer_id = notes.get('customer_id')
    plan_id = notes.get('membership_id')
    if not customer_id or not plan_id:
        raise ValidationError("Missing customer or membership id in payment notes")

    return PaymentCaptured(
        event_id=event_id,
        payment_id=payment_id,
        gateway_order_id=gateway_order_id,
        customer_id=customer_id,
        plan_id=plan_id,
        local_order_id=notes.get('order_id'),
    )


def compute_period(tenure: str, start: datetime.datetime) -> Tuple[datetime.datetime, datetime.datetime]:
    if tenure == 'monthly':
        return start, start + relativedelta(months=1)
    return start, start + relativedelta(years=1)


def _settle(db: Session, user_id: str, plan_id: str, gateway_order_id: str,
            payment_id: str, local_order_id: Optional[str]) -> Optional[Membership]:
    plan = get_plan(db, plan_id)

    order = db.query(Order).filter(Order.gateway_order_id == gateway_order_id).first()
    if order is None:
        raise NotFound(f"Order for gateway order {gateway_order_id} not found")
    if order.user_id != user_id or order.plan_id != plan.id:
        raise ValidationError(f"Payment details do not match order {order.id}")
    if local_order_id and local_order_id != order.id:
        raise ValidationError(f"Payment details do not match order {order.id}")

    membership = db.query(Membership).filter(Membership.user_id == order.user_id).first()

    if order.status == OrderStatus.SUCCEEDED.value:
        logger.info(f"Order {order.id} already settled; payment {payment_id} ignored as duplicate.")
        return membership
    if order.status != OrderStatus.PENDING.value:
        raise ValidationError(f"Order {order.id} is {order.status} and cannot be settled")

    period_start, period_end = compute_period(plan.tenure, utcnow())
    if membership:
        membership.tier = plan.tier
        membership.status = MembershipStatus.ACTIVE.value
        membership.current_period_start = period_start
        membership.current_period_end = period_end
    else:
        membership = Membership(
            user_id=order.user_id,
            tier=plan.tier,
            status=MembershipStatus.ACTIVE.value,
            current_period_start=period_start,
            current_period_end=period_end,
            auto_renew=True,
        )
        db.add(membership)

    order.status = OrderStatus.SUCCEEDED.value
    metadata = dict(order.gateway_metadata or {})
    metadata['payment_id'] = payment_id
    order.gateway_metadata = metadata

    try:
        db.commit()
    except Exception as commit_error:
        db.rollback()
        logger.error(commit_error, exc_info=True)
        raise
    db.refresh(membership)
    logger.info(f"Order {order.id} settled by payment {payment_id}. Membership for user {order.user_id} active as {plan.tier} until {period_end.isoformat()}.")
    return membership


def reconcile(db: Session, user_id: str, plan_id: str, gateway_order_id: str,
              payment_id: str, local_order_id: Optional[str] = None) -> Optional[Membership]:
    """
    Activate the user's membership for a captured payment and settle its order.

    The membership upsert and the order status change are committed
    together. Running this again for an already settled order changes
    nothing. A concurrent insert of the same user's membership is resolved
    by retrying once, which then takes the update or duplicate branch.

    :raises NotFound: if the plan or the order does not exist.
    :raises ValidationError: if the payment does not belong to the order.
    """
    try:
        return _settle(db, user_id, plan_id, gateway_order_id, payment_id, local_order_id)
    except IntegrityError:
        logger.warning(f"Concurrent settlement detected for gateway order {gateway_order_id}; retrying once.")
        return _settle(db, user_id, plan_id, gateway_order_id, payment_id, local_order_id)


def process_event(event: dict, db: Session) -> Optional[Membership]:
    """
    Process a verified Razorpay webhook body.

    :param event: Decoded JSON body of the webhook.
    :param db: SQLAlchemy Session instance.
    :return: The membership for a captured payment, else None.
    :raises Exception: on malformed events or processing failures.
    """
    try:
        parsed = parse_event(event)
        if isinstance(parsed, IgnoredEvent):
            logger.info(f"Unhandled event type: {parsed.event_type} for event {parsed.event_id}. No action taken.")
            return None

        return reconcile(
            db,
            user_id=parsed.customer_id,
            plan_id=parsed.plan_id,
            gateway_order_id=parsed.gateway_order_id,
            payment_id=parsed.payment_id,
            local_order_id=parsed.local_order_id,
        )
    except Exception as e:
        logger.error(e, exc_info=True)
        raise


def verify_client_payment(db: Session, gateway: RazorpayIntegration, user_id: str, gateway_order_id: str,
                          payment_id: str, signature: str, plan_id: str) -> Optional[Membership]:
    """
    Settle a payment reported by the paying client after checkout.

    :raises InvalidSignature: if the client signature does not verify.
    """
    gateway.verify_payment_signature(gateway_order_id, payment_id, signature)
    return reconcile(db, user_id=user_id, plan_id=plan_id, gateway_order_id=gateway_order_id, payment_id=payment_id)
