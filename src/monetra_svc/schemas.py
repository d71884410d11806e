from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class SigninRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserOut(BaseModel):
    id: str
    email: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    status: str = "success"
    token: str
    user: UserOut


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    date: datetime
    category: str = Field(min_length=1, max_length=255)
    title: str = Field(min_length=1, max_length=255)


class ExpenseUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    date: Optional[datetime] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=255)
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)


class ExpenseOut(BaseModel):
    id: str
    user_id: str
    amount: Decimal
    date: datetime
    category: str
    title: str

    model_config = ConfigDict(from_attributes=True)


class CategoryTotal(BaseModel):
    category: str
    total: Decimal
    count: int


class BalanceUpdate(BaseModel):
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class BalanceOut(BaseModel):
    balance: Decimal
    spent: Decimal
    remaining: Decimal


class PlanOut(BaseModel):
    id: str
    tier: str
    price: Decimal
    tenure: str

    model_config = ConfigDict(from_attributes=True)


class CreateOrderRequest(BaseModel):
    plan_id: str = Field(min_length=1)


class OrderOut(BaseModel):
    id: str
    plan_id: str
    gateway_order_id: Optional[str] = None
    amount: int
    currency: str
    status: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreateOrderResponse(BaseModel):
    success: bool = True
    order: OrderOut
    key_id: Optional[str] = None


class VerifyOrderRequest(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)


class MembershipOut(BaseModel):
    id: str
    user_id: str
    tier: str
    status: str
    current_period_start: datetime
    current_period_end: datetime
    auto_renew: bool

    model_config = ConfigDict(from_attributes=True)


class MembershipResponse(BaseModel):
    success: bool = True
    membership: Optional[MembershipOut] = None


class WebhookResponse(BaseModel):
    success: bool = True
    status: str
    event: Optional[str] = None
    metadata: Dict[str, Any] = {}


class PlansResponse(BaseModel):
    success: bool = True
    memberships: List[PlanOut]
