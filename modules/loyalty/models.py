from sqlalchemy import Column, String, Integer, Boolean, Numeric, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID


class PointsTransactionType(str, enum.Enum):
    EARNED = "EARNED"
    REDEEMED = "REDEEMED"
    BONUS = "BONUS"
    ADJUSTED = "ADJUSTED"


class LoyaltyTier(str, enum.Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class LoyaltyConfig(Base, UUIDMixin, TimestampMixin):
    """Club loyalty programme settings - one per tenant"""
    __tablename__ = "loyalty_configs"

    tenant_id = Column(UUID(), ForeignKey('tenants.id', ondelete='CASCADE'), unique=True, nullable=False, index=True)
    is_enabled = Column(Boolean, default=True)
    points_per_visit = Column(Integer, default=10)
    points_per_currency_unit = Column(Numeric(8, 2), default=1)
    silver_threshold = Column(Integer, default=500)
    gold_threshold = Column(Integer, default=2000)
    platinum_threshold = Column(Integer, default=5000)

    def tier_for(self, lifetime_points: int) -> LoyaltyTier:
        if lifetime_points >= self.platinum_threshold:
            return LoyaltyTier.PLATINUM
        if lifetime_points >= self.gold_threshold:
            return LoyaltyTier.GOLD
        if lifetime_points >= self.silver_threshold:
            return LoyaltyTier.SILVER
        return LoyaltyTier.BRONZE


class MemberPoints(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """Member's points balance - one per member"""
    __tablename__ = "member_points"

    member_id = Column(UUID(), ForeignKey('members.id', ondelete='CASCADE'), unique=True, nullable=False, index=True)
    current_balance = Column(Integer, default=0)
    total_earned = Column(Integer, default=0)
    total_redeemed = Column(Integer, default=0)
    tier = Column(SQLEnum(LoyaltyTier), nullable=False, default=LoyaltyTier.BRONZE)

    transactions = relationship("PointsTransaction", back_populates="balance_record", cascade="all, delete-orphan")
    member = relationship("Member")

    def __repr__(self):
        return f"<MemberPoints member={self.member_id} balance={self.current_balance}>"


class PointsTransaction(Base, UUIDMixin, TimestampMixin, TenantMixin):
    """Points transaction ledger"""
    __tablename__ = "points_transactions"

    balance_id = Column(UUID(), ForeignKey('member_points.id', ondelete='CASCADE'), nullable=False, index=True)
    member_id = Column(UUID(), ForeignKey('members.id', ondelete='CASCADE'), nullable=False, index=True)
    transaction_type = Column(SQLEnum(PointsTransactionType), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    balance_before = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reference_type = Column(String(50), nullable=True, index=True)  # ATTENDANCE, INVOICE, REFERRAL
    reference_id = Column(UUID(), nullable=True, index=True)
    description = Column(Text, nullable=True)
    created_by_user_id = Column(UUID(), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    balance_record = relationship("MemberPoints", back_populates="transactions")

    def __repr__(self):
        return f"<PointsTransaction {self.transaction_type} {self.points}>"
