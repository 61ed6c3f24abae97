from sqlalchemy import Column, String, Integer, Boolean, Date, Numeric, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import date, timedelta
from typing import Optional
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID
from shared.exceptions import InvalidStateException


class SubscriptionStatus(str, enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"  # Awaiting invoice payment
    ACTIVE = "ACTIVE"
    FROZEN = "FROZEN"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


# A member may hold at most one subscription in these states
OPEN_SUBSCRIPTION_STATUSES = [
    SubscriptionStatus.PENDING_PAYMENT,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.FROZEN,
]


class MembershipPlan(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "membership_plans"

    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="SAR")
    duration_days = Column(Integer, nullable=False, default=30)
    class_limit = Column(Integer, nullable=True)  # None = unlimited visits
    freeze_days = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, index=True)

    subscriptions = relationship("Subscription", back_populates="plan")

    def __repr__(self):
        return f"<MembershipPlan {self.name}>"


class Subscription(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "subscriptions"

    member_id = Column(UUID(), ForeignKey('members.id', ondelete='CASCADE'), nullable=False, index=True)
    plan_id = Column(UUID(), ForeignKey('membership_plans.id'), nullable=False, index=True)
    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    auto_renew = Column(Boolean, default=False)
    classes_remaining = Column(Integer, nullable=True)
    freeze_days_remaining = Column(Integer, nullable=False, default=0)
    frozen_at = Column(Date, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    voucher_code = Column(String(50), nullable=True)
    paid_amount = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)

    plan = relationship("MembershipPlan", back_populates="subscriptions")
    member = relationship("Member")

    def is_expired(self, today: Optional[date] = None) -> bool:
        return (today or date.today()) > self.end_date

    def allows_access(self, today: Optional[date] = None) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and not self.is_expired(today)

    def days_remaining(self, today: Optional[date] = None) -> int:
        return (self.end_date - (today or date.today())).days

    def has_classes_available(self) -> bool:
        return self.classes_remaining is None or self.classes_remaining > 0

    def use_class(self):
        if not self.has_classes_available():
            raise InvalidStateException("No classes remaining")
        if self.classes_remaining is not None:
            self.classes_remaining -= 1

    def freeze(self, today: Optional[date] = None):
        if self.status != SubscriptionStatus.ACTIVE:
            raise InvalidStateException("Only active subscriptions can be frozen")
        if (self.freeze_days_remaining or 0) <= 0:
            raise InvalidStateException("No freeze days remaining")
        self.status = SubscriptionStatus.FROZEN
        self.frozen_at = today or date.today()

    def unfreeze(self, today: Optional[date] = None):
        """Resume and push the end date out by the days spent frozen"""
        if self.status != SubscriptionStatus.FROZEN:
            raise InvalidStateException("Subscription is not frozen")
        if self.frozen_at is None:
            raise InvalidStateException("Frozen date is not set")
        frozen_days = ((today or date.today()) - self.frozen_at).days
        self.freeze_days_remaining = max(0, self.freeze_days_remaining - frozen_days)
        self.end_date = self.end_date + timedelta(days=frozen_days)
        self.status = SubscriptionStatus.ACTIVE
        self.frozen_at = None

    def cancel(self):
        if self.status == SubscriptionStatus.CANCELLED:
            raise InvalidStateException("Subscription is already cancelled")
        self.status = SubscriptionStatus.CANCELLED

    def expire(self, today: Optional[date] = None) -> bool:
        if self.status == SubscriptionStatus.ACTIVE and self.is_expired(today):
            self.status = SubscriptionStatus.EXPIRED
            return True
        return False

    def renew(self, new_end_date: date, classes_remaining: Optional[int]):
        if self.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED):
            raise InvalidStateException(f"Cannot renew subscription in status: {self.status.value}")
        self.end_date = new_end_date
        self.classes_remaining = classes_remaining
        self.status = SubscriptionStatus.ACTIVE

    def mark_pending_payment(self):
        self.status = SubscriptionStatus.PENDING_PAYMENT

    def confirm_payment(self, amount):
        if self.status != SubscriptionStatus.PENDING_PAYMENT:
            raise InvalidStateException("Subscription is not pending payment")
        self.paid_amount = amount
        self.status = SubscriptionStatus.ACTIVE

    def __repr__(self):
        return f"<Subscription member={self.member_id} status={self.status}>"
