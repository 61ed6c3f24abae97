from sqlalchemy import Column, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from typing import Optional
from datetime import datetime
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID
from shared.exceptions import InvalidStateException
from shared.utils import utcnow


class AttendanceStatus(str, enum.Enum):
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    AUTO_CHECKED_OUT = "AUTO_CHECKED_OUT"


class CheckInMethod(str, enum.Enum):
    MANUAL = "MANUAL"
    QR_CODE = "QR_CODE"
    KIOSK = "KIOSK"
    CARD = "CARD"


class AttendanceRecord(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "attendance_records"

    member_id = Column(UUID(), ForeignKey('members.id', ondelete='CASCADE'), nullable=False, index=True)
    location_id = Column(UUID(), ForeignKey('locations.id', ondelete='CASCADE'), nullable=False, index=True)
    subscription_id = Column(UUID(), ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True)
    check_in_time = Column(DateTime, nullable=False, index=True)
    check_out_time = Column(DateTime, nullable=True)
    status = Column(SQLEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.CHECKED_IN, index=True)
    check_in_method = Column(SQLEnum(CheckInMethod), nullable=False, default=CheckInMethod.MANUAL)
    checked_in_by_user_id = Column(UUID(), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    member = relationship("Member")
    location = relationship("Location")

    @property
    def is_checked_in(self) -> bool:
        return self.status == AttendanceStatus.CHECKED_IN

    @property
    def duration_minutes(self) -> Optional[int]:
        if self.check_out_time is None:
            return None
        return int((self.check_out_time - self.check_in_time).total_seconds() // 60)

    def check_out(self, at: Optional[datetime] = None, auto: bool = False):
        if not self.is_checked_in:
            raise InvalidStateException("Member is already checked out")
        self.check_out_time = at or utcnow()
        self.status = AttendanceStatus.AUTO_CHECKED_OUT if auto else AttendanceStatus.CHECKED_OUT

    def __repr__(self):
        return f"<AttendanceRecord member={self.member_id} status={self.status}>"
