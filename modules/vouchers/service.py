from sqlalchemy.orm import Session
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import logging

from modules.vouchers.models import Voucher, VoucherUsage, DiscountType
from modules.vouchers.schemas import VoucherCreate, VoucherUpdate
from modules.memberships.models import Subscription
from modules.webhooks.models import WebhookEventType
from modules.webhooks.service import publish_event
from shared.exceptions import NotFoundException, BadRequestException, DuplicateResourceException, InvalidStateException
from shared.utils import round_money, to_decimal, paginate, utcnow
from shared.validators import normalize_code, validate_currency

logger = logging.getLogger(__name__)


@dataclass
class VoucherValidationResult:
    valid: bool
    voucher: Optional[Voucher] = None
    discount_amount: Decimal = Decimal("0.00")
    free_trial_days: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def invalid(cls, error_code: str, error_message: str, voucher: Optional[Voucher] = None):
        return cls(valid=False, voucher=voucher, error_code=error_code, error_message=error_message)


@dataclass
class VoucherRedemption:
    voucher: Voucher
    usage: VoucherUsage
    discount_applied: Decimal
    free_trial_days: Optional[int] = None


class VoucherService:
    def __init__(self, db: Session):
        self.db = db

    # ============ Management ============

    def code_exists(self, tenant_id: str, code: str) -> bool:
        return self.get_by_code(tenant_id, code) is not None

    def create_voucher(self, tenant_id: str, data: VoucherCreate) -> Voucher:
        code = normalize_code(data.code)
        if self.code_exists(tenant_id, code):
            raise DuplicateResourceException(f"Voucher code already exists: {code}")
        self._check_discount_fields(data.discount_type, data.discount_percent, data.discount_amount,
                                    data.free_trial_days, data.gift_card_balance)

        voucher_data = data.model_dump(exclude={"code"})
        voucher_data["currency"] = validate_currency(data.currency)
        voucher = Voucher(
            tenant_id=tenant_id,
            code=code,
            current_use_count=0,
            is_active=True,
            **voucher_data
        )
        self.db.add(voucher)
        self.db.commit()
        self.db.refresh(voucher)
        logger.info(f"✅ Voucher created: {voucher.code} ({voucher.discount_type.value})")
        return voucher

    def _check_discount_fields(self, discount_type, percent, amount, trial_days, balance):
        if discount_type == DiscountType.PERCENTAGE and not percent:
            raise BadRequestException("Percentage vouchers require discount_percent")
        if discount_type == DiscountType.FIXED_AMOUNT and not amount:
            raise BadRequestException("Fixed amount vouchers require discount_amount")
        if discount_type == DiscountType.FREE_TRIAL and not trial_days:
            raise BadRequestException("Free trial vouchers require free_trial_days")
        if discount_type == DiscountType.GIFT_CARD and balance is None:
            raise BadRequestException("Gift cards require gift_card_balance")

    def get_voucher(self, tenant_id: str, voucher_id: str) -> Voucher:
        voucher = self.db.query(Voucher).filter(
            Voucher.id == voucher_id,
            Voucher.tenant_id == tenant_id
        ).first()
        if not voucher:
            raise NotFoundException("Voucher not found")
        return voucher

    def get_by_code(self, tenant_id: str, code: str) -> Optional[Voucher]:
        return self.db.query(Voucher).filter(
            Voucher.code == normalize_code(code),
            Voucher.tenant_id == tenant_id
        ).first()

    def list_vouchers(self, tenant_id: str, active_only: bool = False, page: int = 1, per_page: Optional[int] = None) -> dict:
        query = self.db.query(Voucher).filter(Voucher.tenant_id == tenant_id)
        if active_only:
            query = query.filter(Voucher.is_active == True)
        return paginate(query.order_by(Voucher.created_at.desc()), page, per_page)

    def update_voucher(self, tenant_id: str, voucher_id: str, data: VoucherUpdate) -> Voucher:
        voucher = self.get_voucher(tenant_id, voucher_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(voucher, key, value)
        if voucher.valid_from and voucher.valid_until and voucher.valid_until < voucher.valid_from:
            self.db.rollback()
            raise BadRequestException("valid_until must be after valid_from")
        self.db.commit()
        self.db.refresh(voucher)
        return voucher

    def set_active(self, tenant_id: str, voucher_id: str, is_active: bool) -> Voucher:
        voucher = self.get_voucher(tenant_id, voucher_id)
        voucher.is_active = is_active
        self.db.commit()
        self.db.refresh(voucher)
        return voucher

    def delete_voucher(self, tenant_id: str, voucher_id: str):
        voucher = self.get_voucher(tenant_id, voucher_id)
        if (voucher.current_use_count or 0) > 0:
            raise InvalidStateException("Cannot delete a voucher that has been used; deactivate it instead")
        self.db.delete(voucher)
        self.db.commit()
        logger.info(f"Voucher deleted: {voucher.code}")

    # ============ Validation ============

    def _calculate_discount(self, voucher: Voucher, purchase_amount: Decimal) -> Decimal:
        if voucher.discount_type == DiscountType.PERCENTAGE:
            return round_money(purchase_amount * to_decimal(voucher.discount_percent) / Decimal("100"))
        if voucher.discount_type == DiscountType.FIXED_AMOUNT:
            return round_money(min(to_decimal(voucher.discount_amount), purchase_amount))
        if voucher.discount_type == DiscountType.GIFT_CARD:
            return round_money(min(to_decimal(voucher.gift_card_balance), purchase_amount))
        return Decimal("0.00")

    def _member_usage_count(self, voucher_id: str, member_id: str) -> int:
        return self.db.query(VoucherUsage).filter(
            VoucherUsage.voucher_id == voucher_id,
            VoucherUsage.member_id == member_id
        ).count()

    def _is_first_time_member(self, member_id: str) -> bool:
        return self.db.query(Subscription).filter(Subscription.member_id == member_id).count() == 0

    def validate(
        self,
        tenant_id: str,
        code: str,
        member_id: Optional[str] = None,
        purchase_amount=None,
        plan_id: Optional[str] = None
    ) -> VoucherValidationResult:
        """Check a code against every rule, in order, and price the discount"""
        voucher = self.get_by_code(tenant_id, code)
        if not voucher:
            return VoucherValidationResult.invalid("NOT_FOUND", "Voucher not found")
        if not voucher.is_active:
            return VoucherValidationResult.invalid("INACTIVE", "Voucher is not active", voucher)

        now = utcnow()
        if not voucher.has_started(now):
            return VoucherValidationResult.invalid("NOT_STARTED", "Voucher is not valid yet", voucher)
        if voucher.is_expired(now):
            return VoucherValidationResult.invalid("EXPIRED", "Voucher has expired", voucher)
        if voucher.has_reached_max_uses:
            return VoucherValidationResult.invalid("LIMIT_REACHED", "Voucher usage limit reached", voucher)

        if member_id:
            if voucher.max_uses_per_member is not None and \
                    self._member_usage_count(voucher.id, member_id) >= voucher.max_uses_per_member:
                return VoucherValidationResult.invalid(
                    "MEMBER_LIMIT_REACHED", "Member has already used this voucher", voucher
                )
            if voucher.first_time_member_only and not self._is_first_time_member(member_id):
                return VoucherValidationResult.invalid(
                    "FIRST_TIME_ONLY", "Voucher is only valid for first-time members", voucher
                )

        amount = round_money(purchase_amount) if purchase_amount is not None else None
        if amount is not None and voucher.minimum_purchase is not None and amount < to_decimal(voucher.minimum_purchase):
            return VoucherValidationResult.invalid(
                "MINIMUM_NOT_MET", f"Minimum purchase is {round_money(voucher.minimum_purchase)}", voucher
            )
        if plan_id is not None and not voucher.applies_to_plan(plan_id):
            return VoucherValidationResult.invalid(
                "NOT_APPLICABLE_PLAN", "Voucher does not apply to this plan", voucher
            )

        if voucher.discount_type == DiscountType.FREE_TRIAL:
            return VoucherValidationResult(
                valid=True, voucher=voucher, discount_amount=Decimal("0.00"),
                free_trial_days=voucher.free_trial_days
            )

        discount = self._calculate_discount(voucher, amount) if amount is not None else Decimal("0.00")
        return VoucherValidationResult(valid=True, voucher=voucher, discount_amount=discount)

    def is_valid_code(self, tenant_id: str, code: str) -> bool:
        return self.validate(tenant_id, code).valid

    # ============ Redemption ============

    def _record_usage(
        self,
        voucher: Voucher,
        member_id: str,
        discount: Decimal,
        invoice_id: Optional[str],
        subscription_id: Optional[str]
    ) -> VoucherUsage:
        usage = VoucherUsage(
            tenant_id=voucher.tenant_id,
            voucher_id=voucher.id,
            member_id=member_id,
            discount_applied=discount,
            invoice_id=invoice_id,
            subscription_id=subscription_id,
            used_at=utcnow()
        )
        voucher.current_use_count = (voucher.current_use_count or 0) + 1
        self.db.add(usage)
        return usage

    def redeem(
        self,
        tenant_id: str,
        code: str,
        member_id: str,
        purchase_amount,
        plan_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
        commit: bool = True
    ) -> VoucherRedemption:
        """
        Validate and consume a voucher.

        With commit=False the usage is only flushed; the caller owns the transaction
        and publishes the redemption once it has committed.
        """
        result = self.validate(tenant_id, code, member_id, purchase_amount, plan_id)
        if not result.valid:
            raise BadRequestException(f"{result.error_code}: {result.error_message}")

        voucher = result.voucher
        if voucher.discount_type == DiscountType.GIFT_CARD:
            voucher.gift_card_balance = round_money(to_decimal(voucher.gift_card_balance) - result.discount_amount)

        usage = self._record_usage(voucher, member_id, result.discount_amount, invoice_id, subscription_id)
        if not commit:
            self.db.flush()
            return VoucherRedemption(voucher, usage, result.discount_amount, result.free_trial_days)

        self.db.commit()
        self.db.refresh(usage)
        logger.info(f"✅ Voucher {voucher.code} redeemed by member {member_id} ({result.discount_amount})")

        self.publish_redeemed(voucher, usage)
        return VoucherRedemption(voucher, usage, result.discount_amount, result.free_trial_days)

    def redeem_gift_card(
        self,
        tenant_id: str,
        code: str,
        member_id: str,
        amount=None,
        invoice_id: Optional[str] = None
    ) -> VoucherRedemption:
        """Spend all of a gift card's balance, or just `amount` of it"""
        voucher = self.get_by_code(tenant_id, code)
        if not voucher:
            raise BadRequestException("NOT_FOUND: Gift card not found")
        if voucher.discount_type != DiscountType.GIFT_CARD:
            raise BadRequestException("NOT_GIFT_CARD: Voucher is not a gift card")
        if not voucher.is_active or voucher.is_expired() or not voucher.has_started():
            raise BadRequestException("NOT_VALID: Gift card is not valid")

        balance = round_money(voucher.gift_card_balance)
        if balance <= 0:
            raise BadRequestException("NO_BALANCE: Gift card has no remaining balance")

        applied = balance if amount is None else min(round_money(amount), balance)
        if applied <= 0:
            raise BadRequestException("Amount must be positive")

        voucher.gift_card_balance = balance - applied
        usage = self._record_usage(voucher, member_id, applied, invoice_id, None)
        self.db.commit()
        self.db.refresh(usage)
        logger.info(f"✅ Gift card {voucher.code} redeemed: {applied}, remaining {voucher.gift_card_balance}")

        self.publish_redeemed(voucher, usage)
        return VoucherRedemption(voucher, usage, applied)

    def publish_redeemed(self, voucher: Voucher, usage: VoucherUsage):
        publish_event(self.db, voucher.tenant_id, WebhookEventType.VOUCHER_REDEEMED, {
            "voucher_id": str(voucher.id),
            "code": voucher.code,
            "member_id": str(usage.member_id),
            "discount_applied": str(usage.discount_applied),
        })

    # ============ Usage ============

    def get_usage_history(self, tenant_id: str, voucher_id: str, page: int = 1, per_page: Optional[int] = None) -> dict:
        self.get_voucher(tenant_id, voucher_id)
        query = self.db.query(VoucherUsage).filter(
            VoucherUsage.tenant_id == tenant_id,
            VoucherUsage.voucher_id == voucher_id
        ).order_by(VoucherUsage.used_at.desc())
        return paginate(query, page, per_page)

    def get_member_usage(self, tenant_id: str, member_id: str, page: int = 1, per_page: Optional[int] = None) -> dict:
        query = self.db.query(VoucherUsage).filter(
            VoucherUsage.tenant_id == tenant_id,
            VoucherUsage.member_id == member_id
        ).order_by(VoucherUsage.used_at.desc())
        return paginate(query, page, per_page)
