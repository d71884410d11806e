import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from monetra_svc.models.membership import MembershipPlan, Tier

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {"id": "pro_plan", "tier": Tier.PRO.value, "price": Decimal("499.00"), "tenure": "year"},
    {"id": "ultra_plan", "tier": Tier.ULTRA.value, "price": Decimal("1499.00"), "tenure": "year"},
    {"id": "max_plan", "tier": Tier.MAX.value, "price": Decimal("1999.00"), "tenure": "year"},
]


def seed_membership_plans(db: Session) -> int:
    """Insert the default plan catalog when the table is empty. Returns rows added."""
    if db.query(MembershipPlan).first() is not None:
        logger.info("Premium membership plans already exist, skipping seed.")
        return 0
    try:
        for plan in DEFAULT_PLANS:
            db.add(MembershipPlan(**plan))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to seed premium memberships: {e}", exc_info=True)
        return 0
    logger.info("Premium membership plans seeded successfully!")
    return len(DEFAULT_PLANS)
