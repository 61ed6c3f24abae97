from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID


class ReferralStatus(str, enum.Enum):
    CLICKED = "CLICKED"
    SIGNED_UP = "SIGNED_UP"
    CONVERTED = "CONVERTED"


class ReferralConfig(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "referral_configs"

    tenant_id = Column(UUID(), ForeignKey("tenants.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    is_enabled = Column(Boolean, default=True)
    code_prefix = Column(String(10), default="REF")
    referrer_reward_points = Column(Integer, default=100)
    max_referrals_per_member = Column(Integer, nullable=True)  # None = unlimited


class ReferralCode(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "referral_codes"

    member_id = Column(UUID(), ForeignKey("members.id", ondelete="CASCADE"), unique=True, nullable=False)
    code = Column(String(30), unique=True, nullable=False, index=True)
    click_count = Column(Integer, default=0)
    conversion_count = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    member = relationship("Member")
    referrals = relationship("Referral", back_populates="referral_code")


class Referral(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "referrals"

    referral_code_id = Column(UUID(), ForeignKey("referral_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    referrer_member_id = Column(UUID(), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    referee_member_id = Column(UUID(), ForeignKey("members.id", ondelete="CASCADE"), unique=True, nullable=True)
    status = Column(SQLEnum(ReferralStatus), nullable=False, default=ReferralStatus.CLICKED, index=True)
    subscription_id = Column(UUID(), ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)
    signed_up_at = Column(DateTime, nullable=True)
    converted_at = Column(DateTime, nullable=True)
    reward_points = Column(Integer, default=0)

    referral_code = relationship("ReferralCode", back_populates="referrals")
    referrer = relationship("Member", foreign_keys=[referrer_member_id])
    referee = relationship("Member", foreign_keys=[referee_member_id])

    @property
    def is_convertible(self) -> bool:
        return self.status == ReferralStatus.SIGNED_UP
