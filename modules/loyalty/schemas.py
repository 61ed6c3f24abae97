from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from modules.loyalty.models import PointsTransactionType, LoyaltyTier


class LoyaltyConfigResponse(BaseModel):
    is_enabled: bool
    points_per_visit: int
    points_per_currency_unit: Decimal
    silver_threshold: int
    gold_threshold: int
    platinum_threshold: int

    class Config:
        from_attributes = True


class LoyaltyConfigUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    points_per_visit: Optional[int] = Field(None, ge=0)
    points_per_currency_unit: Optional[Decimal] = Field(None, ge=0)
    silver_threshold: Optional[int] = Field(None, ge=0)
    gold_threshold: Optional[int] = Field(None, ge=0)
    platinum_threshold: Optional[int] = Field(None, ge=0)


class MemberPointsResponse(BaseModel):
    id: str
    member_id: str
    current_balance: int
    total_earned: int
    total_redeemed: int
    tier: LoyaltyTier

    class Config:
        from_attributes = True


class PointsTransactionResponse(BaseModel):
    id: str
    member_id: str
    transaction_type: PointsTransactionType
    points: int
    balance_before: int
    balance_after: int
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class EarnPointsRequest(BaseModel):
    points: int = Field(..., gt=0)
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None


class RedeemPointsRequest(BaseModel):
    points: int = Field(..., gt=0)
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None


class AdjustPointsRequest(BaseModel):
    points: int
    description: Optional[str] = None
