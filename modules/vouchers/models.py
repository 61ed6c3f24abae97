from sqlalchemy import Column, String, Integer, Boolean, DateTime, Numeric, ForeignKey, JSON, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from typing import Optional
from datetime import datetime
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID
from shared.utils import utcnow


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_TRIAL = "FREE_TRIAL"
    GIFT_CARD = "GIFT_CARD"


class Voucher(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "vouchers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_vouchers_tenant_code"),
    )

    code = Column(String(50), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(String(500), nullable=True)
    discount_type = Column(SQLEnum(DiscountType), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="SAR")
    free_trial_days = Column(Integer, nullable=True)
    gift_card_balance = Column(Numeric(12, 2), nullable=True)

    max_uses = Column(Integer, nullable=True)
    max_uses_per_member = Column(Integer, nullable=True)
    current_use_count = Column(Integer, nullable=False, default=0)

    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)
    first_time_member_only = Column(Boolean, default=False)
    minimum_purchase = Column(Numeric(12, 2), nullable=True)
    applicable_plan_ids = Column(JSON, nullable=True)  # list of plan ids, empty/None = all plans
    is_active = Column(Boolean, default=True, index=True)

    usages = relationship("VoucherUsage", back_populates="voucher", cascade="all, delete-orphan")

    def has_started(self, now: Optional[datetime] = None) -> bool:
        return self.valid_from is None or (now or utcnow()) >= self.valid_from

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.valid_until is not None and (now or utcnow()) > self.valid_until

    @property
    def has_reached_max_uses(self) -> bool:
        return self.max_uses is not None and (self.current_use_count or 0) >= self.max_uses

    def applies_to_plan(self, plan_id: Optional[str]) -> bool:
        if not self.applicable_plan_ids:
            return True
        return plan_id is not None and plan_id in self.applicable_plan_ids

    def __repr__(self):
        return f"<Voucher {self.code} ({self.discount_type})>"


class VoucherUsage(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "voucher_usages"

    voucher_id = Column(UUID(), ForeignKey('vouchers.id', ondelete='CASCADE'), nullable=False, index=True)
    member_id = Column(UUID(), ForeignKey('members.id', ondelete='CASCADE'), nullable=False, index=True)
    discount_applied = Column(Numeric(12, 2), nullable=False, default=0)
    invoice_id = Column(UUID(), ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True)
    subscription_id = Column(UUID(), ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True)
    used_at = Column(DateTime, nullable=False, default=utcnow)

    voucher = relationship("Voucher", back_populates="usages")
