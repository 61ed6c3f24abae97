from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import logging

from config.settings import settings
from modules.attendance.models import AttendanceRecord, AttendanceStatus, CheckInMethod
from modules.members.models import Member
from modules.members.service import decode_member_qr_token
from modules.memberships.service import MembershipService
from modules.tenants.models import Location
from modules.webhooks.models import WebhookEventType
from modules.webhooks.service import publish_event
from shared.exceptions import NotFoundException, InvalidStateException, ForbiddenException
from shared.utils import utcnow, paginate, enum_value

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(self, db: Session):
        self.db = db

    def _get_member(self, tenant_id: str, member_id: str) -> Member:
        member = self.db.query(Member).filter(
            Member.id == member_id,
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        ).first()
        if not member:
            raise NotFoundException("Member not found")
        return member

    def get_current_check_in(self, tenant_id: str, member_id: str) -> Optional[AttendanceRecord]:
        return self.db.query(AttendanceRecord).filter(
            AttendanceRecord.tenant_id == tenant_id,
            AttendanceRecord.member_id == member_id,
            AttendanceRecord.status == AttendanceStatus.CHECKED_IN
        ).order_by(AttendanceRecord.check_in_time.desc()).first()

    def check_in(
        self,
        tenant_id: str,
        member_id: str,
        location_id: str,
        method: CheckInMethod = CheckInMethod.MANUAL,
        checked_in_by_user_id: Optional[str] = None
    ) -> AttendanceRecord:
        """
        Check a member in at a location.

        Guards run in a fixed order: member, location, subscription, open visit,
        class allowance. A successful check-in consumes one class on limited plans.
        """
        member = self._get_member(tenant_id, member_id)
        if not member.is_active:
            raise InvalidStateException("Member is not active")

        location = self.db.query(Location).filter(
            Location.id == location_id,
            Location.tenant_id == tenant_id
        ).first()
        if not location:
            raise NotFoundException("Location not found")
        if not location.is_active:
            raise InvalidStateException("Location is not open")

        subscription = MembershipService(self.db).get_active_subscription(tenant_id, member.id)
        if not subscription:
            raise InvalidStateException("Member has no active subscription")

        if self.get_current_check_in(tenant_id, member.id):
            raise InvalidStateException("Member is already checked in")

        if not subscription.has_classes_available():
            raise InvalidStateException("No classes remaining on subscription")
        subscription.use_class()

        record = AttendanceRecord(
            tenant_id=tenant_id,
            member_id=member.id,
            location_id=location.id,
            subscription_id=subscription.id,
            check_in_time=utcnow(),
            status=AttendanceStatus.CHECKED_IN,
            check_in_method=method,
            checked_in_by_user_id=checked_in_by_user_id,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"✅ Member {member.id} checked in at {location.name} ({method.value})")

        try:
            from modules.loyalty.service import LoyaltyService
            LoyaltyService(self.db).award_visit_points(tenant_id, member.id, record.id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to award visit points: {e}")

        publish_event(self.db, tenant_id, WebhookEventType.ATTENDANCE_CHECKED_IN, self._event_data(record))
        return record

    def kiosk_check_in(self, tenant_id: str, qr_token: str, location_id: str) -> AttendanceRecord:
        """Check in with the QR token shown in the member portal"""
        claims = decode_member_qr_token(qr_token)
        if claims["tenant_id"] != str(tenant_id):
            raise ForbiddenException("QR code belongs to another club")
        return self.check_in(tenant_id, claims["sub"], location_id, CheckInMethod.QR_CODE)

    def check_out(self, tenant_id: str, member_id: str) -> AttendanceRecord:
        record = self.get_current_check_in(tenant_id, member_id)
        if not record:
            raise NotFoundException("Member is not checked in")
        return self._check_out_record(record)

    def check_out_record(self, tenant_id: str, record_id: str) -> AttendanceRecord:
        return self._check_out_record(self.get_record(tenant_id, record_id))

    def _check_out_record(self, record: AttendanceRecord) -> AttendanceRecord:
        record.check_out()
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"✅ Member {record.member_id} checked out after {record.duration_minutes} min")

        publish_event(self.db, record.tenant_id, WebhookEventType.ATTENDANCE_CHECKED_OUT, self._event_data(record))
        return record

    # ============ Queries ============

    def get_record(self, tenant_id: str, record_id: str) -> AttendanceRecord:
        record = self.db.query(AttendanceRecord).filter(
            AttendanceRecord.id == record_id,
            AttendanceRecord.tenant_id == tenant_id
        ).first()
        if not record:
            raise NotFoundException("Attendance record not found")
        return record

    def get_member_history(self, tenant_id: str, member_id: str, page: int = 1, per_page: Optional[int] = None) -> dict:
        query = self.db.query(AttendanceRecord).filter(
            AttendanceRecord.tenant_id == tenant_id,
            AttendanceRecord.member_id == member_id
        ).order_by(AttendanceRecord.check_in_time.desc())
        return paginate(query, page, per_page)

    def get_history(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        location_id: Optional[str] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> dict:
        """Check-ins with start <= check_in_time < end"""
        query = self.db.query(AttendanceRecord).filter(
            AttendanceRecord.tenant_id == tenant_id,
            AttendanceRecord.check_in_time >= start,
            AttendanceRecord.check_in_time < end
        )
        if location_id:
            query = query.filter(AttendanceRecord.location_id == location_id)
        return paginate(query.order_by(AttendanceRecord.check_in_time.desc()), page, per_page)

    def count_today(self, tenant_id: str, location_id: Optional[str] = None, now: Optional[datetime] = None) -> int:
        start_of_day = (now or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)
        query = self.db.query(AttendanceRecord).filter(
            AttendanceRecord.tenant_id == tenant_id,
            AttendanceRecord.check_in_time >= start_of_day
        )
        if location_id:
            query = query.filter(AttendanceRecord.location_id == location_id)
        return query.count()

    def count_checked_in(self, tenant_id: str, location_id: Optional[str] = None) -> int:
        query = self.db.query(AttendanceRecord).filter(
            AttendanceRecord.tenant_id == tenant_id,
            AttendanceRecord.status == AttendanceStatus.CHECKED_IN
        )
        if location_id:
            query = query.filter(AttendanceRecord.location_id == location_id)
        return query.count()

    def count_member_visits(self, tenant_id: str, member_id: str) -> int:
        return self.db.query(AttendanceRecord).filter(
            AttendanceRecord.tenant_id == tenant_id,
            AttendanceRecord.member_id == member_id
        ).count()

    # ============ Jobs ============

    def auto_checkout(self, now: Optional[datetime] = None) -> int:
        """Close visits left open longer than AUTO_CHECKOUT_AFTER_HOURS, across all tenants"""
        now = now or utcnow()
        cutoff = now - timedelta(hours=settings.AUTO_CHECKOUT_AFTER_HOURS)
        stale = self.db.query(AttendanceRecord).filter(
            AttendanceRecord.status == AttendanceStatus.CHECKED_IN,
            AttendanceRecord.check_in_time < cutoff
        ).all()

        for record in stale:
            record.check_out(at=now, auto=True)
        self.db.commit()

        for record in stale:
            publish_event(self.db, record.tenant_id, WebhookEventType.ATTENDANCE_CHECKED_OUT, self._event_data(record))

        if stale:
            logger.info(f"⏰ Auto checked out {len(stale)} visit(s)")
        return len(stale)

    def _event_data(self, record: AttendanceRecord) -> Dict[str, Any]:
        return {
            "attendance_id": str(record.id),
            "member_id": str(record.member_id),
            "location_id": str(record.location_id),
            "status": enum_value(record.status),
            "check_in_method": enum_value(record.check_in_method),
            "check_in_time": record.check_in_time.isoformat(),
            "check_out_time": record.check_out_time.isoformat() if record.check_out_time else None,
        }
