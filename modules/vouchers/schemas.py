from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from modules.vouchers.models import DiscountType


class VoucherCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_percent: Optional[Decimal] = Field(None, gt=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = None
    free_trial_days: Optional[int] = Field(None, gt=0)
    gift_card_balance: Optional[Decimal] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    max_uses_per_member: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    first_time_member_only: bool = False
    minimum_purchase: Optional[Decimal] = Field(None, ge=0)
    applicable_plan_ids: Optional[List[str]] = None

    @validator('valid_until')
    def validate_dates(cls, v, values):
        if v and values.get('valid_from') and v < values['valid_from']:
            raise ValueError('valid_until must be after valid_from')
        return v


class VoucherUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    discount_percent: Optional[Decimal] = Field(None, gt=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    max_uses_per_member: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    first_time_member_only: Optional[bool] = None
    minimum_purchase: Optional[Decimal] = Field(None, ge=0)
    applicable_plan_ids: Optional[List[str]] = None


class VoucherResponse(BaseModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_percent: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    currency: str
    free_trial_days: Optional[int] = None
    gift_card_balance: Optional[Decimal] = None
    max_uses: Optional[int] = None
    max_uses_per_member: Optional[int] = None
    current_use_count: int
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    first_time_member_only: bool
    minimum_purchase: Optional[Decimal] = None
    applicable_plan_ids: Optional[List[str]] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class VoucherValidateRequest(BaseModel):
    code: str
    member_id: Optional[str] = None
    purchase_amount: Optional[Decimal] = Field(None, ge=0)
    plan_id: Optional[str] = None


class VoucherValidationResponse(BaseModel):
    valid: bool
    code: str
    discount_amount: Decimal
    free_trial_days: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class VoucherRedeemRequest(BaseModel):
    code: str
    member_id: str
    purchase_amount: Decimal = Field(..., ge=0)
    plan_id: Optional[str] = None
    invoice_id: Optional[str] = None


class GiftCardRedeemRequest(BaseModel):
    code: str
    member_id: str
    amount: Optional[Decimal] = Field(None, gt=0)
    invoice_id: Optional[str] = None


class VoucherUsageResponse(BaseModel):
    id: str
    voucher_id: str
    member_id: str
    discount_applied: Decimal
    invoice_id: Optional[str] = None
    subscription_id: Optional[str] = None
    used_at: datetime

    class Config:
        from_attributes = True


class VoucherRedemptionResponse(BaseModel):
    code: str
    discount_applied: Decimal
    free_trial_days: Optional[int] = None
    remaining_balance: Optional[Decimal] = None
    usage: VoucherUsageResponse
