from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from database.base import get_db
from shared.dependencies import get_club_admin, get_staff_user, get_member_user
from shared.exceptions import BadRequestException
from shared.schemas import PaginatedResponse
from modules.users.models import User
from modules.referrals.models import ReferralStatus
from modules.referrals.service import ReferralService
from modules.referrals.schemas import (
    ReferralConfigResponse,
    ReferralConfigUpdate,
    ReferralCodeResponse,
    ReferralResponse,
    ReferralStatsResponse,
    CodeValidationResponse,
    SignupRequest,
)

router = APIRouter()


@router.get("/config", response_model=ReferralConfigResponse)
def get_config(
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).get_config(current_user.tenant_id)


@router.put("/config", response_model=ReferralConfigResponse)
def update_config(
    data: ReferralConfigUpdate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return ReferralService(db).update_config(current_user.tenant_id, data)


@router.get("/me/code", response_model=ReferralCodeResponse)
def get_my_code(
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).get_or_create_code(current_user.tenant_id, current_user.member_id)


@router.get("/me/stats", response_model=ReferralStatsResponse)
def get_my_stats(
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).get_member_stats(current_user.tenant_id, current_user.member_id)


@router.get("/me/history", response_model=PaginatedResponse[ReferralResponse])
def get_my_referrals(
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).list_referrals(current_user.tenant_id, current_user.member_id, None, page, per_page)


@router.get("/validate/{code}", response_model=CodeValidationResponse)
def validate_code(
    code: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return {"code": code, "valid": ReferralService(db).validate_code(current_user.tenant_id, code)}


@router.post("/click/{code}", response_model=ReferralResponse, status_code=status.HTTP_201_CREATED)
def track_click(
    code: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    referral = ReferralService(db).track_click(current_user.tenant_id, code)
    if not referral:
        raise BadRequestException("Invalid or inactive referral code")
    return referral


@router.post("/{referral_id}/signup", response_model=ReferralResponse)
def mark_signed_up(
    referral_id: str,
    data: SignupRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).mark_signed_up(current_user.tenant_id, referral_id, data.referee_member_id)


@router.get("", response_model=PaginatedResponse[ReferralResponse])
def list_referrals(
    referrer_member_id: Optional[str] = None,
    status: Optional[ReferralStatus] = None,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).list_referrals(current_user.tenant_id, referrer_member_id, status, page, per_page)


@router.get("/members/{member_id}/code", response_model=ReferralCodeResponse)
def get_member_code(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).get_or_create_code(current_user.tenant_id, member_id)


@router.post("/members/{member_id}/code/deactivate", response_model=ReferralCodeResponse)
def deactivate_member_code(
    member_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return ReferralService(db).set_code_active(current_user.tenant_id, member_id, False)


@router.get("/members/{member_id}/stats", response_model=ReferralStatsResponse)
def get_member_stats(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return ReferralService(db).get_member_stats(current_user.tenant_id, member_id)
