from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from database.base import get_db
from modules.attendance.service import AttendanceService
from modules.attendance.schemas import (
    CheckInRequest,
    KioskCheckInRequest,
    CheckOutRequest,
    AttendanceResponse,
    AttendanceStatsResponse,
    MemberVisitsResponse,
)
from modules.users.models import User
from shared.dependencies import get_staff_user, get_member_user
from shared.schemas import PaginatedResponse

router = APIRouter()


@router.post("/check-in", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
def check_in(
    data: CheckInRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Check a member in at the front desk.

    Fails with 409 when the member or location is inactive, the member has no
    active subscription, is already checked in, or has no classes left.
    """
    return AttendanceService(db).check_in(
        current_user.tenant_id, data.member_id, data.location_id, data.check_in_method, current_user.id
    )


@router.post("/kiosk/check-in", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
def kiosk_check_in(
    data: KioskCheckInRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).kiosk_check_in(current_user.tenant_id, data.qr_token, data.location_id)


@router.post("/check-out", response_model=AttendanceResponse)
def check_out(
    data: CheckOutRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).check_out(current_user.tenant_id, data.member_id)


@router.post("/{record_id}/check-out", response_model=AttendanceResponse)
def check_out_record(
    record_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).check_out_record(current_user.tenant_id, record_id)


@router.get("", response_model=PaginatedResponse[AttendanceResponse])
def get_history(
    start: datetime,
    end: datetime,
    location_id: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).get_history(current_user.tenant_id, start, end, location_id, page, per_page)


@router.get("/stats", response_model=AttendanceStatsResponse)
def get_stats(
    location_id: Optional[str] = None,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    service = AttendanceService(db)
    return AttendanceStatsResponse(
        today_check_ins=service.count_today(current_user.tenant_id, location_id),
        currently_checked_in=service.count_checked_in(current_user.tenant_id, location_id),
    )


@router.get("/me", response_model=PaginatedResponse[AttendanceResponse])
def get_my_history(
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).get_member_history(current_user.tenant_id, current_user.member_id, page, per_page)


@router.get("/members/{member_id}", response_model=PaginatedResponse[AttendanceResponse])
def get_member_history(
    member_id: str,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).get_member_history(current_user.tenant_id, member_id, page, per_page)


@router.get("/members/{member_id}/current", response_model=Optional[AttendanceResponse])
def get_current_check_in(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).get_current_check_in(current_user.tenant_id, member_id)


@router.get("/members/{member_id}/visits", response_model=MemberVisitsResponse)
def get_member_visits(
    member_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    total = AttendanceService(db).count_member_visits(current_user.tenant_id, member_id)
    return MemberVisitsResponse(member_id=member_id, total_visits=total)
