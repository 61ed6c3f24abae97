"""Voucher validation order, discount pricing and gift cards"""
from datetime import timedelta
from decimal import Decimal

import pytest

from modules.vouchers.models import DiscountType
from modules.vouchers.schemas import VoucherCreate
from modules.vouchers.service import VoucherService
from shared.exceptions import BadRequestException, DuplicateResourceException, InvalidStateException
from shared.utils import utcnow


def _voucher(db, tenant, code="SAVE10", discount_type=DiscountType.PERCENTAGE, **kwargs):
    if discount_type == DiscountType.PERCENTAGE:
        kwargs.setdefault("discount_percent", Decimal("10"))
    return VoucherService(db).create_voucher(tenant.id, VoucherCreate(
        code=code, name=code.title(), discount_type=discount_type, **kwargs
    ))


class TestManagement:
    def test_codes_are_stored_uppercase(self, db, tenant):
        voucher = _voucher(db, tenant, code="welcome")
        assert voucher.code == "WELCOME"
        assert voucher.current_use_count == 0

    def test_duplicate_code_ignores_case(self, db, tenant):
        _voucher(db, tenant, code="WELCOME")
        with pytest.raises(DuplicateResourceException):
            _voucher(db, tenant, code="welcome")

    def test_same_code_in_another_club(self, db, tenant, other_tenant):
        _voucher(db, tenant, code="WELCOME")
        assert _voucher(db, other_tenant, code="WELCOME").tenant_id == other_tenant.id

    def test_discount_fields_must_match_type(self, db, tenant):
        with pytest.raises(BadRequestException):
            _voucher(db, tenant, code="BROKEN", discount_type=DiscountType.FIXED_AMOUNT)

    def test_used_voucher_cannot_be_deleted(self, db, tenant, member):
        voucher = _voucher(db, tenant)
        service = VoucherService(db)
        service.redeem(tenant.id, voucher.code, member.id, Decimal("100"))

        with pytest.raises(InvalidStateException):
            service.delete_voucher(tenant.id, voucher.id)


class TestValidation:
    def test_not_found(self, db, tenant):
        result = VoucherService(db).validate(tenant.id, "NOPE")
        assert result.valid is False
        assert result.error_code == "NOT_FOUND"

    def test_inactive_is_checked_before_dates(self, db, tenant):
        voucher = _voucher(db, tenant, valid_until=utcnow() - timedelta(days=1))
        VoucherService(db).set_active(tenant.id, voucher.id, False)

        assert VoucherService(db).validate(tenant.id, voucher.code).error_code == "INACTIVE"

    def test_not_started(self, db, tenant):
        voucher = _voucher(db, tenant, valid_from=utcnow() + timedelta(days=1))
        assert VoucherService(db).validate(tenant.id, voucher.code).error_code == "NOT_STARTED"

    def test_expired_is_checked_before_usage_limit(self, db, tenant):
        voucher = _voucher(db, tenant, valid_until=utcnow() - timedelta(days=1), max_uses=1)
        voucher.current_use_count = 1
        db.commit()

        assert VoucherService(db).validate(tenant.id, voucher.code).error_code == "EXPIRED"

    def test_limit_reached(self, db, tenant, make_member):
        voucher = _voucher(db, tenant, max_uses=1)
        service = VoucherService(db)
        service.redeem(tenant.id, voucher.code, make_member().id, Decimal("100"))

        assert service.validate(tenant.id, voucher.code, make_member().id).error_code == "LIMIT_REACHED"

    def test_member_limit_reached(self, db, tenant, member, make_member):
        voucher = _voucher(db, tenant, max_uses_per_member=1)
        service = VoucherService(db)
        service.redeem(tenant.id, voucher.code, member.id, Decimal("100"))

        assert service.validate(tenant.id, voucher.code, member.id).error_code == "MEMBER_LIMIT_REACHED"
        assert service.validate(tenant.id, voucher.code, make_member().id).valid is True

    def test_first_time_only(self, db, tenant, member, plan, make_subscription):
        voucher = _voucher(db, tenant, first_time_member_only=True)
        make_subscription(member, plan)

        result = VoucherService(db).validate(tenant.id, voucher.code, member.id)
        assert result.error_code == "FIRST_TIME_ONLY"

    def test_minimum_purchase(self, db, tenant):
        voucher = _voucher(db, tenant, minimum_purchase=Decimal("200"))
        service = VoucherService(db)

        assert service.validate(tenant.id, voucher.code, purchase_amount=Decimal("199.99")).error_code == "MINIMUM_NOT_MET"
        assert service.validate(tenant.id, voucher.code, purchase_amount=Decimal("200")).valid is True

    def test_minimum_is_checked_before_plan(self, db, tenant, plan, make_plan):
        voucher = _voucher(db, tenant, minimum_purchase=Decimal("500"), applicable_plan_ids=[plan.id])
        other = make_plan(name="Annual")

        result = VoucherService(db).validate(tenant.id, voucher.code, purchase_amount=Decimal("100"), plan_id=other.id)
        assert result.error_code == "MINIMUM_NOT_MET"

    def test_plan_restriction(self, db, tenant, plan, make_plan):
        voucher = _voucher(db, tenant, applicable_plan_ids=[plan.id])
        other = make_plan(name="Annual")
        service = VoucherService(db)

        assert service.validate(tenant.id, voucher.code, plan_id=other.id).error_code == "NOT_APPLICABLE_PLAN"
        assert service.validate(tenant.id, voucher.code, plan_id=plan.id).valid is True

    def test_lookup_ignores_case(self, db, tenant):
        _voucher(db, tenant, code="SUMMER")
        assert VoucherService(db).is_valid_code(tenant.id, " summer ") is True


class TestDiscounts:
    def test_percentage_rounds_half_up(self, db, tenant):
        voucher = _voucher(db, tenant, discount_percent=Decimal("12.5"))
        result = VoucherService(db).validate(tenant.id, voucher.code, purchase_amount=Decimal("99.99"))
        assert result.discount_amount == Decimal("12.50")

    def test_fixed_amount_is_capped_at_purchase(self, db, tenant):
        voucher = _voucher(db, tenant, code="FIFTY", discount_type=DiscountType.FIXED_AMOUNT,
                           discount_amount=Decimal("50"))
        service = VoucherService(db)

        assert service.validate(tenant.id, voucher.code, purchase_amount=Decimal("30")).discount_amount == Decimal("30.00")
        assert service.validate(tenant.id, voucher.code, purchase_amount=Decimal("80")).discount_amount == Decimal("50.00")

    def test_free_trial_gives_days_not_money(self, db, tenant):
        voucher = _voucher(db, tenant, code="TRIAL", discount_type=DiscountType.FREE_TRIAL, free_trial_days=7)
        result = VoucherService(db).validate(tenant.id, voucher.code, purchase_amount=Decimal("300"))

        assert result.valid is True
        assert result.free_trial_days == 7
        assert result.discount_amount == Decimal("0.00")


class TestRedemption:
    def test_redeem_records_usage(self, db, tenant, member):
        voucher = _voucher(db, tenant)
        redemption = VoucherService(db).redeem(tenant.id, voucher.code, member.id, Decimal("300"))

        assert redemption.discount_applied == Decimal("30.00")
        assert redemption.usage.member_id == member.id
        db.refresh(voucher)
        assert voucher.current_use_count == 1

    def test_redeem_invalid_raises_with_code(self, db, tenant, member):
        with pytest.raises(BadRequestException) as exc:
            VoucherService(db).redeem(tenant.id, "NOPE", member.id, Decimal("300"))
        assert exc.value.detail.startswith("NOT_FOUND:")

    def test_gift_card_covers_purchase_up_to_balance(self, db, tenant, member):
        card = _voucher(db, tenant, code="GIFT100", discount_type=DiscountType.GIFT_CARD,
                        gift_card_balance=Decimal("100"))

        redemption = VoucherService(db).redeem(tenant.id, card.code, member.id, Decimal("300"))
        assert redemption.discount_applied == Decimal("100.00")
        db.refresh(card)
        assert card.gift_card_balance == Decimal("0.00")

    def test_gift_card_partial_redemption(self, db, tenant, member):
        card = _voucher(db, tenant, code="GIFT200", discount_type=DiscountType.GIFT_CARD,
                        gift_card_balance=Decimal("200"))
        service = VoucherService(db)

        first = service.redeem_gift_card(tenant.id, card.code, member.id, Decimal("75"))
        assert first.discount_applied == Decimal("75.00")
        db.refresh(card)
        assert card.gift_card_balance == Decimal("125.00")

        rest = service.redeem_gift_card(tenant.id, card.code, member.id)
        assert rest.discount_applied == Decimal("125.00")

        with pytest.raises(BadRequestException) as exc:
            service.redeem_gift_card(tenant.id, card.code, member.id)
        assert exc.value.detail.startswith("NO_BALANCE")

    def test_gift_card_redemption_needs_a_gift_card(self, db, tenant, member):
        voucher = _voucher(db, tenant)
        with pytest.raises(BadRequestException) as exc:
            VoucherService(db).redeem_gift_card(tenant.id, voucher.code, member.id)
        assert exc.value.detail.startswith("NOT_GIFT_CARD")

    def test_usage_history(self, db, tenant, member):
        voucher = _voucher(db, tenant)
        service = VoucherService(db)
        service.redeem(tenant.id, voucher.code, member.id, Decimal("100"))

        assert service.get_usage_history(tenant.id, voucher.id)["total"] == 1
        assert service.get_member_usage(tenant.id, member.id)["total"] == 1
