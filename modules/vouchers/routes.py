from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database.base import get_db
from modules.vouchers.service import VoucherService, VoucherRedemption
from modules.vouchers.schemas import (
    VoucherCreate,
    VoucherUpdate,
    VoucherResponse,
    VoucherValidateRequest,
    VoucherValidationResponse,
    VoucherRedeemRequest,
    GiftCardRedeemRequest,
    VoucherRedemptionResponse,
    VoucherUsageResponse,
)
from modules.vouchers.models import DiscountType
from modules.users.models import User
from shared.dependencies import get_club_admin, get_staff_user
from shared.schemas import PaginatedResponse

router = APIRouter()


def _redemption_response(redemption: VoucherRedemption) -> dict:
    voucher = redemption.voucher
    return {
        "code": voucher.code,
        "discount_applied": redemption.discount_applied,
        "free_trial_days": redemption.free_trial_days,
        "remaining_balance": voucher.gift_card_balance if voucher.discount_type == DiscountType.GIFT_CARD else None,
        "usage": redemption.usage,
    }


@router.post("", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
def create_voucher(
    data: VoucherCreate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return VoucherService(db).create_voucher(current_user.tenant_id, data)


@router.get("", response_model=PaginatedResponse[VoucherResponse])
def list_vouchers(
    active_only: bool = False,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return VoucherService(db).list_vouchers(current_user.tenant_id, active_only, page, per_page)


@router.post("/validate", response_model=VoucherValidationResponse)
def validate_voucher(
    data: VoucherValidateRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Check a code without redeeming it. Invalid codes return valid=false with an error_code.
    """
    result = VoucherService(db).validate(
        current_user.tenant_id, data.code, data.member_id, data.purchase_amount, data.plan_id
    )
    return {
        "valid": result.valid,
        "code": data.code,
        "discount_amount": result.discount_amount,
        "free_trial_days": result.free_trial_days,
        "error_code": result.error_code,
        "error_message": result.error_message,
    }


@router.post("/redeem", response_model=VoucherRedemptionResponse)
def redeem_voucher(
    data: VoucherRedeemRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    redemption = VoucherService(db).redeem(
        current_user.tenant_id, data.code, data.member_id, data.purchase_amount,
        plan_id=data.plan_id, invoice_id=data.invoice_id
    )
    return _redemption_response(redemption)


@router.post("/gift-cards/redeem", response_model=VoucherRedemptionResponse)
def redeem_gift_card(
    data: GiftCardRedeemRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    redemption = VoucherService(db).redeem_gift_card(
        current_user.tenant_id, data.code, data.member_id, data.amount, data.invoice_id
    )
    return _redemption_response(redemption)


@router.get("/members/{member_id}/usage", response_model=PaginatedResponse[VoucherUsageResponse])
def get_member_usage(
    member_id: str,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return VoucherService(db).get_member_usage(current_user.tenant_id, member_id, page, per_page)


@router.get("/{voucher_id}", response_model=VoucherResponse)
def get_voucher(
    voucher_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return VoucherService(db).get_voucher(current_user.tenant_id, voucher_id)


@router.put("/{voucher_id}", response_model=VoucherResponse)
def update_voucher(
    voucher_id: str,
    data: VoucherUpdate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return VoucherService(db).update_voucher(current_user.tenant_id, voucher_id, data)


@router.post("/{voucher_id}/activate", response_model=VoucherResponse)
def activate_voucher(
    voucher_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return VoucherService(db).set_active(current_user.tenant_id, voucher_id, True)


@router.post("/{voucher_id}/deactivate", response_model=VoucherResponse)
def deactivate_voucher(
    voucher_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return VoucherService(db).set_active(current_user.tenant_id, voucher_id, False)


@router.delete("/{voucher_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_voucher(
    voucher_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    VoucherService(db).delete_voucher(current_user.tenant_id, voucher_id)


@router.get("/{voucher_id}/usage", response_model=PaginatedResponse[VoucherUsageResponse])
def get_voucher_usage(
    voucher_id: str,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return VoucherService(db).get_usage_history(current_user.tenant_id, voucher_id, page, per_page)
