from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, date
from decimal import Decimal

from modules.memberships.models import SubscriptionStatus


class MembershipPlanBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    price: Decimal = Field(Decimal("0"), ge=0)
    currency: Optional[str] = None
    duration_days: int = Field(30, ge=1)
    class_limit: Optional[int] = Field(None, ge=1)  # None means unlimited visits
    freeze_days: int = Field(0, ge=0)
    is_active: bool = True


class MembershipPlanCreate(MembershipPlanBase):
    pass


class MembershipPlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    duration_days: Optional[int] = Field(None, ge=1)
    class_limit: Optional[int] = Field(None, ge=1)
    freeze_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class MembershipPlanResponse(MembershipPlanBase):
    id: str
    currency: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubscriptionCreate(BaseModel):
    member_id: str
    plan_id: str
    start_date: Optional[date] = None
    auto_renew: bool = False
    voucher_code: Optional[str] = None
    notes: Optional[str] = None


class PlanSummary(BaseModel):
    id: str
    name: str
    duration_days: int

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    id: str
    member_id: str
    plan_id: str
    plan: Optional[PlanSummary] = None
    status: SubscriptionStatus
    start_date: date
    end_date: date
    auto_renew: bool
    classes_remaining: Optional[int] = None
    freeze_days_remaining: int
    frozen_at: Optional[date] = None
    price: Decimal
    discount_amount: Decimal
    voucher_code: Optional[str] = None
    paid_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SubscriptionCheckoutResponse(BaseModel):
    """Subscription plus the invoice raised for it, if any"""
    subscription: SubscriptionResponse
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    amount_due: Decimal = Decimal("0")
