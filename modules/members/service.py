from sqlalchemy.orm import Session
from sqlalchemy import or_
from datetime import timedelta
from typing import Optional, Dict, Any
from io import BytesIO
from jose import jwt, JWTError
import qrcode
import logging

from config.settings import settings
from modules.members.models import Member, MemberStatus
from modules.members.schemas import MemberCreate, MemberUpdate
from modules.webhooks.models import WebhookEventType
from modules.webhooks.service import publish_event
from shared.exceptions import NotFoundException, DuplicateResourceException, InvalidStateException, UnauthorizedException
from shared.utils import utcnow, paginate, enum_value

logger = logging.getLogger(__name__)

MEMBER_QR_TOKEN_TYPE = "member_qr"


def create_member_qr_token(member: Member) -> str:
    """Short-lived signed token a member shows at the kiosk"""
    now = utcnow()
    payload = {
        "sub": str(member.id),
        "tenant_id": str(member.tenant_id),
        "type": MEMBER_QR_TOKEN_TYPE,
        "exp": now + timedelta(minutes=settings.MEMBER_QR_TOKEN_EXPIRE_MINUTES),
        "iat": now
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_member_qr_token(token: str) -> Dict[str, Any]:
    """Return the token claims, or raise UnauthorizedException if it is invalid or expired"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise UnauthorizedException("Invalid or expired QR code")
    if payload.get("type") != MEMBER_QR_TOKEN_TYPE or not payload.get("sub") or not payload.get("tenant_id"):
        raise UnauthorizedException("Invalid QR code")
    return payload


def render_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(version=1, box_size=8, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


class MemberService:
    def __init__(self, db: Session):
        self.db = db

    def _email_taken(self, tenant_id: str, email: str, exclude_id: Optional[str] = None) -> bool:
        query = self.db.query(Member).filter(Member.tenant_id == tenant_id, Member.email == email)
        if exclude_id:
            query = query.filter(Member.id != exclude_id)
        return query.first() is not None

    def create_member(self, tenant_id: str, data: MemberCreate) -> Member:
        """
        Register a member. A referral code, when given, is recorded as a signup
        for the referrer; a bad code is logged and never blocks registration.
        """
        email = data.email.lower()
        if self._email_taken(tenant_id, email):
            raise DuplicateResourceException("A member with this email already exists")

        member = Member(
            tenant_id=tenant_id,
            first_name=data.first_name,
            last_name=data.last_name,
            email=email,
            phone=data.phone,
            gender=data.gender,
            date_of_birth=data.date_of_birth,
            notes=data.notes,
            status=MemberStatus.ACTIVE,
        )
        self.db.add(member)
        self.db.commit()
        self.db.refresh(member)
        logger.info(f"✅ Member created: {member.email}")

        if data.referral_code:
            try:
                from modules.referrals.service import ReferralService
                referral = ReferralService(self.db).record_signup(tenant_id, data.referral_code, member.id)
                if referral:
                    logger.info(f"✅ Referral recorded: {member.email} via {data.referral_code}")
                else:
                    logger.warning(f"⚠️ Invalid referral code provided: {data.referral_code}")
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Error processing referral code: {e}")

        publish_event(self.db, tenant_id, WebhookEventType.MEMBER_CREATED, self._event_data(member))
        return member

    def get_member(self, tenant_id: str, member_id: str) -> Member:
        member = self.db.query(Member).filter(
            Member.id == member_id,
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        ).first()
        if not member:
            raise NotFoundException("Member not found")
        return member

    def search_members(
        self,
        tenant_id: str,
        q: Optional[str] = None,
        status: Optional[MemberStatus] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> dict:
        query = self.db.query(Member).filter(
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        )
        if q:
            pattern = f"%{q.strip()}%"
            query = query.filter(or_(
                Member.first_name.ilike(pattern),
                Member.last_name.ilike(pattern),
                Member.email.ilike(pattern),
                Member.phone.ilike(pattern),
            ))
        if status:
            query = query.filter(Member.status == status)
        return paginate(query.order_by(Member.created_at.desc()), page, per_page)

    def update_member(self, tenant_id: str, member_id: str, data: MemberUpdate) -> Member:
        member = self.get_member(tenant_id, member_id)
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("email"):
            update_data["email"] = update_data["email"].lower()
            if self._email_taken(tenant_id, update_data["email"], exclude_id=member.id):
                raise DuplicateResourceException("A member with this email already exists")

        for key, value in update_data.items():
            setattr(member, key, value)
        self.db.commit()
        self.db.refresh(member)

        publish_event(self.db, tenant_id, WebhookEventType.MEMBER_UPDATED, self._event_data(member))
        return member

    def _set_status(self, tenant_id: str, member_id: str, status: MemberStatus) -> Member:
        member = self.get_member(tenant_id, member_id)
        if member.status == status:
            raise InvalidStateException(f"Member is already {status.value.lower()}")
        member.status = status
        self.db.commit()
        self.db.refresh(member)
        logger.info(f"Member {member.email} is now {status.value}")

        publish_event(self.db, tenant_id, WebhookEventType.MEMBER_UPDATED, self._event_data(member))
        return member

    def suspend_member(self, tenant_id: str, member_id: str) -> Member:
        return self._set_status(tenant_id, member_id, MemberStatus.SUSPENDED)

    def activate_member(self, tenant_id: str, member_id: str) -> Member:
        return self._set_status(tenant_id, member_id, MemberStatus.ACTIVE)

    def delete_member(self, tenant_id: str, member_id: str):
        """Soft delete; the row stays for invoices and attendance history"""
        member = self.get_member(tenant_id, member_id)
        member.deleted_at = utcnow()
        member.status = MemberStatus.CANCELLED
        self.db.commit()
        logger.info(f"Member deleted: {member.email}")

        publish_event(self.db, tenant_id, WebhookEventType.MEMBER_DELETED, {"member_id": str(member.id)})

    def get_qr_token(self, tenant_id: str, member_id: str) -> str:
        member = self.get_member(tenant_id, member_id)
        if not member.is_active:
            raise InvalidStateException("Member is not active")
        return create_member_qr_token(member)

    def get_qr_png(self, tenant_id: str, member_id: str) -> bytes:
        return render_qr_png(self.get_qr_token(tenant_id, member_id))

    def _event_data(self, member: Member) -> Dict[str, Any]:
        return {
            "member_id": str(member.id),
            "first_name": member.first_name,
            "last_name": member.last_name,
            "email": member.email,
            "phone": member.phone,
            "status": enum_value(member.status),
        }
