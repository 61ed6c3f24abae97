from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from database.base import get_db
from modules.loyalty.service import LoyaltyService
from modules.loyalty.models import PointsTransactionType
from modules.loyalty.schemas import (
    LoyaltyConfigResponse,
    LoyaltyConfigUpdate,
    MemberPointsResponse,
    PointsTransactionResponse,
    EarnPointsRequest,
    RedeemPointsRequest,
    AdjustPointsRequest,
)
from modules.users.models import User, UserRole
from shared.dependencies import get_current_user, get_club_admin, get_staff_user, get_member_user, require_roles
from shared.schemas import PaginatedResponse

router = APIRouter()


@router.get("/config", response_model=LoyaltyConfigResponse)
def get_config(
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).get_config(current_user.tenant_id)


@router.put("/config", response_model=LoyaltyConfigResponse)
def update_config(
    data: LoyaltyConfigUpdate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).update_config(current_user.tenant_id, data)


@router.get("/leaderboard", response_model=List[MemberPointsResponse])
def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).get_leaderboard(current_user.tenant_id, limit)


@router.get("/me", response_model=MemberPointsResponse)
def get_my_points(
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    """
    Get current member's points balance.
    """
    return LoyaltyService(db).get_or_create_balance(current_user.tenant_id, current_user.member_id)


@router.get("/me/transactions", response_model=PaginatedResponse[PointsTransactionResponse])
def get_my_transactions(
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).get_transactions(current_user.tenant_id, current_user.member_id, None, page, per_page)


@router.get("/members/{member_id}", response_model=MemberPointsResponse)
def get_member_points(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).get_or_create_balance(current_user.tenant_id, member_id)


@router.get("/members/{member_id}/transactions", response_model=PaginatedResponse[PointsTransactionResponse])
def get_member_transactions(
    member_id: str,
    transaction_type: Optional[PointsTransactionType] = None,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).get_transactions(current_user.tenant_id, member_id, transaction_type, page, per_page)


@router.post("/members/{member_id}/earn", response_model=PointsTransactionResponse)
def earn_points(
    member_id: str,
    request: EarnPointsRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).earn_points(
        current_user.tenant_id,
        member_id,
        request.points,
        reference_type=request.reference_type,
        reference_id=request.reference_id,
        description=request.description,
        created_by_user_id=str(current_user.id)
    )


@router.post("/members/{member_id}/redeem", response_model=PointsTransactionResponse)
def redeem_points(
    member_id: str,
    request: RedeemPointsRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return LoyaltyService(db).redeem_points(
        current_user.tenant_id,
        member_id,
        request.points,
        reference_type=request.reference_type,
        reference_id=request.reference_id,
        description=request.description,
        created_by_user_id=str(current_user.id)
    )


@router.post("/members/{member_id}/adjust", response_model=PointsTransactionResponse)
def adjust_points(
    member_id: str,
    request: AdjustPointsRequest,
    current_user: User = Depends(require_roles([UserRole.CLUB_ADMIN.value])),
    db: Session = Depends(get_db)
):
    """
    Manual points correction (admin only).
    """
    return LoyaltyService(db).adjust_points(
        current_user.tenant_id,
        member_id,
        request.points,
        description=request.description,
        created_by_user_id=str(current_user.id)
    )
