from sqlalchemy.orm import Session
from typing import List, Optional
from decimal import ROUND_DOWN
import logging

from modules.loyalty.models import (
    LoyaltyConfig, MemberPoints, PointsTransaction, PointsTransactionType, LoyaltyTier
)
from modules.loyalty.schemas import LoyaltyConfigUpdate
from modules.members.models import Member
from modules.notifications.service import NotificationService
from shared.exceptions import BadRequestException, NotFoundException, InvalidStateException
from shared.utils import paginate, to_decimal

logger = logging.getLogger(__name__)


class LoyaltyService:
    def __init__(self, db: Session):
        self.db = db

    # ============ Config ============

    def get_config(self, tenant_id: str) -> LoyaltyConfig:
        """Get the club's loyalty settings, create defaults if not exists"""
        config = self.db.query(LoyaltyConfig).filter(LoyaltyConfig.tenant_id == tenant_id).first()
        if not config:
            config = LoyaltyConfig(tenant_id=tenant_id)
            self.db.add(config)
            self.db.commit()
            self.db.refresh(config)
        return config

    def update_config(self, tenant_id: str, data: LoyaltyConfigUpdate) -> LoyaltyConfig:
        config = self.get_config(tenant_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(config, key, value)
        if not (config.silver_threshold <= config.gold_threshold <= config.platinum_threshold):
            self.db.rollback()
            raise BadRequestException("Tier thresholds must be ascending: silver <= gold <= platinum")
        self.db.commit()
        self.db.refresh(config)
        return config

    # ============ Balance ============

    def _get_member(self, tenant_id: str, member_id: str) -> Member:
        member = self.db.query(Member).filter(
            Member.id == member_id,
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        ).first()
        if not member:
            raise NotFoundException("Member not found")
        return member

    def get_or_create_balance(self, tenant_id: str, member_id: str) -> MemberPoints:
        """Get points balance for member, create if not exists"""
        balance = self.db.query(MemberPoints).filter(
            MemberPoints.member_id == member_id,
            MemberPoints.tenant_id == tenant_id
        ).first()

        if not balance:
            self._get_member(tenant_id, member_id)
            balance = MemberPoints(
                tenant_id=tenant_id,
                member_id=member_id,
                current_balance=0,
                total_earned=0,
                total_redeemed=0,
                tier=LoyaltyTier.BRONZE
            )
            self.db.add(balance)
            self.db.commit()
            self.db.refresh(balance)
            logger.info(f"✅ Points balance created for member {member_id}")

        return balance

    def _record(
        self,
        balance: MemberPoints,
        transaction_type: PointsTransactionType,
        points: int,
        reference_type: Optional[str],
        reference_id: Optional[str],
        description: Optional[str],
        created_by_user_id: Optional[str]
    ) -> PointsTransaction:
        balance_before = balance.current_balance or 0
        balance_after = balance_before + points

        balance.current_balance = balance_after
        if points > 0:
            balance.total_earned = (balance.total_earned or 0) + points
        elif transaction_type == PointsTransactionType.REDEEMED:
            balance.total_redeemed = (balance.total_redeemed or 0) - points
        balance.tier = self.get_config(balance.tenant_id).tier_for(balance.total_earned or 0)

        transaction = PointsTransaction(
            tenant_id=balance.tenant_id,
            balance_id=balance.id,
            member_id=balance.member_id,
            transaction_type=transaction_type,
            points=points,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            created_by_user_id=created_by_user_id
        )
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        return transaction

    def _notify(self, member_id: str, points: int, type: str, reason: Optional[str]):
        try:
            NotificationService(self.db).notify_points_change(member_id, points, type, reason)
        except Exception as e:
            logger.error(f"Failed to send points notification: {e}")

    def earn_points(
        self,
        tenant_id: str,
        member_id: str,
        points: int,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        description: Optional[str] = None,
        transaction_type: PointsTransactionType = PointsTransactionType.EARNED,
        created_by_user_id: Optional[str] = None
    ) -> PointsTransaction:
        """Add points to member's balance"""
        if points <= 0:
            raise BadRequestException("Points must be positive")

        balance = self.get_or_create_balance(tenant_id, member_id)
        transaction = self._record(
            balance, transaction_type, points, reference_type, reference_id,
            description or f"Earned {points} points", created_by_user_id
        )
        logger.info(f"✅ Member {member_id} earned {points} points")
        self._notify(member_id, points, "EARNED", description)
        return transaction

    def redeem_points(
        self,
        tenant_id: str,
        member_id: str,
        points: int,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        description: Optional[str] = None,
        created_by_user_id: Optional[str] = None
    ) -> PointsTransaction:
        """Redeem points from member's balance"""
        if points <= 0:
            raise BadRequestException("Points must be positive")

        balance = self.get_or_create_balance(tenant_id, member_id)
        if (balance.current_balance or 0) < points:
            raise InvalidStateException(
                f"Insufficient points. Current: {balance.current_balance}, Required: {points}"
            )

        transaction = self._record(
            balance, PointsTransactionType.REDEEMED, -points, reference_type, reference_id,
            description or f"Redeemed {points} points", created_by_user_id
        )
        logger.info(f"✅ Member {member_id} redeemed {points} points")
        self._notify(member_id, points, "REDEEMED", description)
        return transaction

    def adjust_points(
        self,
        tenant_id: str,
        member_id: str,
        points: int,
        description: Optional[str] = None,
        created_by_user_id: Optional[str] = None
    ) -> PointsTransaction:
        """Manual correction by staff (positive or negative)"""
        if points == 0:
            raise BadRequestException("Adjustment cannot be zero")

        balance = self.get_or_create_balance(tenant_id, member_id)
        if (balance.current_balance or 0) + points < 0:
            raise InvalidStateException("Adjustment would make the balance negative")

        transaction = self._record(
            balance, PointsTransactionType.ADJUSTED, points, "ADJUSTMENT", None,
            description or "Manual adjustment", created_by_user_id
        )
        logger.info(f"Member {member_id} points adjusted by {points}")
        return transaction

    # ============ Awards ============

    def award_visit_points(self, tenant_id: str, member_id: str, attendance_id: str) -> Optional[PointsTransaction]:
        config = self.get_config(tenant_id)
        if not config.is_enabled or not config.points_per_visit:
            return None
        return self.earn_points(
            tenant_id, member_id, config.points_per_visit,
            reference_type="ATTENDANCE", reference_id=attendance_id,
            description="Club visit"
        )

    def award_payment_points(self, tenant_id: str, member_id: str, amount, invoice_id: str) -> Optional[PointsTransaction]:
        config = self.get_config(tenant_id)
        if not config.is_enabled:
            return None
        points = int((to_decimal(amount) * to_decimal(config.points_per_currency_unit)).to_integral_value(rounding=ROUND_DOWN))
        if points <= 0:
            return None
        return self.earn_points(
            tenant_id, member_id, points,
            reference_type="INVOICE", reference_id=invoice_id,
            description="Invoice payment"
        )

    def award_referral_points(self, tenant_id: str, member_id: str, points: int, referral_id: str) -> Optional[PointsTransaction]:
        config = self.get_config(tenant_id)
        if not config.is_enabled or points <= 0:
            return None
        return self.earn_points(
            tenant_id, member_id, points,
            reference_type="REFERRAL", reference_id=referral_id,
            description="Referral reward",
            transaction_type=PointsTransactionType.BONUS
        )

    # ============ Queries ============

    def get_transactions(
        self,
        tenant_id: str,
        member_id: str,
        transaction_type: Optional[PointsTransactionType] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> dict:
        query = self.db.query(PointsTransaction).filter(
            PointsTransaction.tenant_id == tenant_id,
            PointsTransaction.member_id == member_id
        )
        if transaction_type:
            query = query.filter(PointsTransaction.transaction_type == transaction_type)
        return paginate(query.order_by(PointsTransaction.created_at.desc()), page, per_page)

    def get_leaderboard(self, tenant_id: str, limit: int = 10) -> List[MemberPoints]:
        return self.db.query(MemberPoints).filter(
            MemberPoints.tenant_id == tenant_id
        ).order_by(MemberPoints.total_earned.desc()).limit(limit).all()
