from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from modules.referrals.models import ReferralStatus


class ReferralConfigResponse(BaseModel):
    is_enabled: bool
    code_prefix: str
    referrer_reward_points: int
    max_referrals_per_member: Optional[int] = None

    class Config:
        from_attributes = True


class ReferralConfigUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    code_prefix: Optional[str] = Field(None, max_length=10)
    referrer_reward_points: Optional[int] = Field(None, ge=0)
    max_referrals_per_member: Optional[int] = Field(None, ge=1)


class ReferralCodeResponse(BaseModel):
    code: str
    member_id: str
    click_count: int
    conversion_count: int
    is_active: bool

    class Config:
        from_attributes = True


class ReferralResponse(BaseModel):
    id: str
    referrer_member_id: str
    referee_member_id: Optional[str] = None
    status: ReferralStatus
    subscription_id: Optional[str] = None
    signed_up_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    reward_points: int
    created_at: datetime

    class Config:
        from_attributes = True


class ReferralStatsResponse(BaseModel):
    code: Optional[str] = None
    click_count: int
    total_referrals: int
    conversions: int
    conversion_rate: float


class CodeValidationResponse(BaseModel):
    code: str
    valid: bool


class SignupRequest(BaseModel):
    referee_member_id: str
