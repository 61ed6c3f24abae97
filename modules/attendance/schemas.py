from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from modules.attendance.models import AttendanceStatus, CheckInMethod


class CheckInRequest(BaseModel):
    member_id: str
    location_id: str
    check_in_method: CheckInMethod = CheckInMethod.MANUAL


class KioskCheckInRequest(BaseModel):
    qr_token: str
    location_id: str


class CheckOutRequest(BaseModel):
    member_id: str


class AttendanceResponse(BaseModel):
    id: str
    member_id: str
    location_id: str
    subscription_id: Optional[str] = None
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    status: AttendanceStatus
    check_in_method: CheckInMethod
    checked_in_by_user_id: Optional[str] = None
    duration_minutes: Optional[int] = None

    class Config:
        from_attributes = True


class AttendanceStatsResponse(BaseModel):
    today_check_ins: int
    currently_checked_in: int


class MemberVisitsResponse(BaseModel):
    member_id: str
    total_visits: int
