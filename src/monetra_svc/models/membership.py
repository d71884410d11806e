import enum
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String

from monetra_svc.models.base import Base, utcnow


class Tier(str, enum.Enum):
    PRO = 'pro'
    ULTRA = 'ultra'
    MAX = 'max'


class OrderStatus(str, enum.Enum):
    PENDING = 'pending'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class MembershipStatus(str, enum.Enum):
    ACTIVE = 'active'
    CANCELED = 'canceled'
    EXPIRED = 'expired'
    PAST_DUE = 'past_due'


class MembershipPlan(Base):
    """
    Catalog entry for a purchasable plan. Price is in major currency units.
    """
    __tablename__ = 'membership_plans'

    id = Column(String(64), primary_key=True)
    tier = Column(String(32), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    tenure = Column(String(32), nullable=False, default='year')

    def __repr__(self) -> str:
        return f"<MembershipPlan(id={self.id}, tier={self.tier}, price={self.price}, tenure={self.tenure})>"


class Order(Base):
    """
    One attempt to purchase a membership plan through the payment gateway.
    """
    __tablename__ = 'premium_orders'

    id = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False, index=True)
    plan_id = Column(String(64), ForeignKey('membership_plans.id'), nullable=False)
    gateway_order_id = Column(String(64), unique=True, nullable=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(8), nullable=False, default='INR')
    status = Column(String(16), nullable=False, default=OrderStatus.PENDING.value)
    gateway_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, gateway_order_id={self.gateway_order_id}, status={self.status})>"


class Membership(Base):
    __tablename__ = 'memberships'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id'), unique=True, nullable=False)
    tier = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default=MembershipStatus.ACTIVE.value)
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)
    auto_renew = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Membership(user_id={self.user_id}, tier={self.tier}, status={self.status})>"
