from sqlalchemy.orm import Session
from typing import Optional
import logging

from modules.referrals.models import ReferralConfig, ReferralCode, Referral, ReferralStatus
from modules.referrals.schemas import ReferralConfigUpdate
from modules.members.models import Member
from modules.webhooks.models import WebhookEventType
from modules.webhooks.service import publish_event
from shared.exceptions import NotFoundException, InvalidStateException, BadRequestException
from shared.utils import generate_code, utcnow, paginate
from shared.validators import normalize_code

logger = logging.getLogger(__name__)


class ReferralService:
    def __init__(self, db: Session):
        self.db = db

    # ============ Config ============

    def get_config(self, tenant_id: str) -> ReferralConfig:
        config = self.db.query(ReferralConfig).filter(ReferralConfig.tenant_id == tenant_id).first()
        if not config:
            config = ReferralConfig(tenant_id=tenant_id)
            self.db.add(config)
            self.db.commit()
            self.db.refresh(config)
        return config

    def update_config(self, tenant_id: str, data: ReferralConfigUpdate) -> ReferralConfig:
        config = self.get_config(tenant_id)
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("code_prefix"):
            update_data["code_prefix"] = normalize_code(update_data["code_prefix"])
        for key, value in update_data.items():
            setattr(config, key, value)
        self.db.commit()
        self.db.refresh(config)
        return config

    # ============ Codes ============

    def get_or_create_code(self, tenant_id: str, member_id: str) -> ReferralCode:
        referral_code = self.db.query(ReferralCode).filter(
            ReferralCode.member_id == member_id,
            ReferralCode.tenant_id == tenant_id
        ).first()
        if referral_code:
            return referral_code

        member = self.db.query(Member).filter(
            Member.id == member_id,
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        ).first()
        if not member:
            raise NotFoundException("Member not found")

        prefix = self.get_config(tenant_id).code_prefix or ""
        # Ensure uniqueness loop
        while True:
            new_code_str = f"{prefix}{generate_code(8)}"
            if not self.db.query(ReferralCode).filter(ReferralCode.code == new_code_str).first():
                break

        referral_code = ReferralCode(
            tenant_id=tenant_id,
            member_id=member_id,
            code=new_code_str,
            click_count=0,
            conversion_count=0,
            is_active=True
        )
        self.db.add(referral_code)
        self.db.commit()
        self.db.refresh(referral_code)
        logger.info(f"✅ Referral code {new_code_str} created for member {member_id}")
        return referral_code

    def set_code_active(self, tenant_id: str, member_id: str, is_active: bool) -> ReferralCode:
        referral_code = self.get_or_create_code(tenant_id, member_id)
        referral_code.is_active = is_active
        self.db.commit()
        self.db.refresh(referral_code)
        return referral_code

    def _find_code(self, tenant_id: str, code: str) -> Optional[ReferralCode]:
        return self.db.query(ReferralCode).filter(
            ReferralCode.code == normalize_code(code),
            ReferralCode.tenant_id == tenant_id
        ).first()

    def _usable_code(self, tenant_id: str, code: str) -> Optional[ReferralCode]:
        """The code if it exists, is active, the programme is on and the referrer is under the limit"""
        referral_code = self._find_code(tenant_id, code)
        if not referral_code or not referral_code.is_active:
            return None

        config = self.get_config(tenant_id)
        if not config.is_enabled:
            return None

        if config.max_referrals_per_member is not None:
            conversions = self.db.query(Referral).filter(
                Referral.referrer_member_id == referral_code.member_id,
                Referral.status == ReferralStatus.CONVERTED
            ).count()
            if conversions >= config.max_referrals_per_member:
                return None

        return referral_code

    def validate_code(self, tenant_id: str, code: str) -> bool:
        return self._usable_code(tenant_id, code) is not None

    # ============ Tracking ============

    def track_click(self, tenant_id: str, code: str) -> Optional[Referral]:
        """Record a click on a referral link. Returns None for unusable codes."""
        referral_code = self._usable_code(tenant_id, code)
        if not referral_code:
            logger.warning(f"⚠️ Referral click on unusable code: {code}")
            return None

        referral_code.click_count = (referral_code.click_count or 0) + 1
        referral = Referral(
            tenant_id=tenant_id,
            referral_code_id=referral_code.id,
            referrer_member_id=referral_code.member_id,
            status=ReferralStatus.CLICKED
        )
        self.db.add(referral)
        self.db.commit()
        self.db.refresh(referral)
        return referral

    def mark_signed_up(self, tenant_id: str, referral_id: str, referee_member_id: str) -> Referral:
        referral = self.get_referral(tenant_id, referral_id)
        if referral.status == ReferralStatus.CONVERTED:
            raise InvalidStateException("Referral is already converted")
        if referral.referrer_member_id == referee_member_id:
            raise BadRequestException("Members cannot refer themselves")

        existing = self.db.query(Referral).filter(
            Referral.referee_member_id == referee_member_id,
            Referral.id != referral.id
        ).first()
        if existing:
            raise InvalidStateException("Member was already referred")

        referral.referee_member_id = referee_member_id
        referral.status = ReferralStatus.SIGNED_UP
        referral.signed_up_at = utcnow()
        self.db.commit()
        self.db.refresh(referral)
        logger.info(f"✅ Referral signup: member {referee_member_id} referred by {referral.referrer_member_id}")
        return referral

    def record_signup(self, tenant_id: str, code: str, referee_member_id: str) -> Optional[Referral]:
        """Click and signup in one step, used when a member registers with a code"""
        referral = self.track_click(tenant_id, code)
        if not referral:
            return None
        return self.mark_signed_up(tenant_id, referral.id, referee_member_id)

    def convert_referral(self, tenant_id: str, referee_member_id: str, subscription_id: Optional[str] = None) -> Optional[Referral]:
        """Mark the referee's referral converted and reward the referrer. None when nothing to convert."""
        referral = self.db.query(Referral).filter(
            Referral.referee_member_id == referee_member_id,
            Referral.tenant_id == tenant_id
        ).first()
        if not referral or not referral.is_convertible:
            return None

        config = self.get_config(tenant_id)
        referral.status = ReferralStatus.CONVERTED
        referral.subscription_id = subscription_id
        referral.converted_at = utcnow()
        referral.reward_points = config.referrer_reward_points or 0

        referral_code = self.db.query(ReferralCode).filter(ReferralCode.id == referral.referral_code_id).first()
        if referral_code:
            referral_code.conversion_count = (referral_code.conversion_count or 0) + 1

        self.db.commit()
        self.db.refresh(referral)
        logger.info(f"✅ Referral {referral.id} converted")

        try:
            from modules.loyalty.service import LoyaltyService
            LoyaltyService(self.db).award_referral_points(
                tenant_id, referral.referrer_member_id, referral.reward_points, referral.id
            )
        except Exception as e:
            logger.error(f"❌ Failed to award referral points: {e}")

        try:
            from modules.notifications.service import NotificationService
            NotificationService(self.db).notify_referral_converted(referral)
        except Exception as e:
            logger.warning(f"Failed to create referral notification: {e}")

        publish_event(self.db, tenant_id, WebhookEventType.REFERRAL_CONVERTED, {
            "referral_id": str(referral.id),
            "referrer_member_id": str(referral.referrer_member_id),
            "referee_member_id": str(referral.referee_member_id),
            "reward_points": referral.reward_points,
        })
        return referral

    # ============ Queries ============

    def get_referral(self, tenant_id: str, referral_id: str) -> Referral:
        referral = self.db.query(Referral).filter(
            Referral.id == referral_id,
            Referral.tenant_id == tenant_id
        ).first()
        if not referral:
            raise NotFoundException("Referral not found")
        return referral

    def list_referrals(
        self,
        tenant_id: str,
        referrer_member_id: Optional[str] = None,
        status: Optional[ReferralStatus] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> dict:
        query = self.db.query(Referral).filter(Referral.tenant_id == tenant_id)
        if referrer_member_id:
            query = query.filter(Referral.referrer_member_id == referrer_member_id)
        if status:
            query = query.filter(Referral.status == status)
        return paginate(query.order_by(Referral.created_at.desc()), page, per_page)

    def get_member_stats(self, tenant_id: str, member_id: str) -> dict:
        referral_code = self.db.query(ReferralCode).filter(
            ReferralCode.member_id == member_id,
            ReferralCode.tenant_id == tenant_id
        ).first()
        base_query = self.db.query(Referral).filter(
            Referral.tenant_id == tenant_id,
            Referral.referrer_member_id == member_id
        )
        total_referrals = base_query.count()
        conversions = base_query.filter(Referral.status == ReferralStatus.CONVERTED).count()
        click_count = referral_code.click_count if referral_code else 0

        return {
            "code": referral_code.code if referral_code else None,
            "click_count": click_count or 0,
            "total_referrals": total_referrals,
            "conversions": conversions,
            "conversion_rate": round(conversions / click_count, 4) if click_count else 0.0,
        }
