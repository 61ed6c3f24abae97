"""Subscription state machine, sign-up billing and the expiry job"""
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from modules.invoices.models import Invoice, InvoiceStatus
from modules.invoices.schemas import RecordPaymentRequest
from modules.invoices.service import InvoiceService
from modules.loyalty.models import MemberPoints
from modules.members.models import MemberStatus
from modules.memberships.models import Subscription, SubscriptionStatus
from modules.memberships.schemas import SubscriptionCreate, MembershipPlanCreate
from modules.memberships.service import MembershipService
from modules.notifications.models import Notification, NotificationType
from modules.referrals.models import Referral, ReferralStatus
from modules.referrals.service import ReferralService
from modules.vouchers.models import DiscountType, Voucher, VoucherUsage
from modules.vouchers.schemas import VoucherCreate
from modules.vouchers.service import VoucherService
from shared.exceptions import InvalidStateException, BadRequestException, NotFoundException

TODAY = date(2026, 3, 1)


class TestSubscriptionModel:
    def test_freeze_requires_active_and_freeze_days(self, member, plan, make_subscription):
        subscription = make_subscription(member, plan, freeze_days_remaining=0)
        with pytest.raises(InvalidStateException):
            subscription.freeze(TODAY)

        subscription.freeze_days_remaining = 5
        subscription.status = SubscriptionStatus.EXPIRED
        with pytest.raises(InvalidStateException):
            subscription.freeze(TODAY)

    def test_unfreeze_extends_end_date_by_frozen_days(self, member, plan, make_subscription):
        subscription = make_subscription(member, plan, start_date=TODAY, end_date=TODAY + timedelta(days=30))

        subscription.freeze(TODAY)
        assert subscription.status == SubscriptionStatus.FROZEN

        subscription.unfreeze(TODAY + timedelta(days=5))
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.end_date == TODAY + timedelta(days=35)
        assert subscription.freeze_days_remaining == 9
        assert subscription.frozen_at is None

    def test_freeze_days_never_go_negative(self, member, plan, make_subscription):
        subscription = make_subscription(member, plan, start_date=TODAY, freeze_days_remaining=3)
        subscription.freeze(TODAY)
        subscription.unfreeze(TODAY + timedelta(days=10))
        assert subscription.freeze_days_remaining == 0

    def test_unfreeze_requires_frozen(self, member, plan, make_subscription):
        subscription = make_subscription(member, plan)
        with pytest.raises(InvalidStateException):
            subscription.unfreeze(TODAY)

    def test_cancel_twice(self, member, plan, make_subscription):
        subscription = make_subscription(member, plan)
        subscription.cancel()
        with pytest.raises(InvalidStateException):
            subscription.cancel()

    def test_expire_only_after_end_date(self, member, plan, make_subscription):
        subscription = make_subscription(member, plan, start_date=TODAY, end_date=TODAY + timedelta(days=30))
        assert subscription.expire(TODAY + timedelta(days=30)) is False
        assert subscription.expire(TODAY + timedelta(days=31)) is True
        assert subscription.status == SubscriptionStatus.EXPIRED

    def test_use_class(self, member, make_plan, make_subscription):
        subscription = make_subscription(member, make_plan(class_limit=2))
        subscription.use_class()
        subscription.use_class()
        assert subscription.classes_remaining == 0
        with pytest.raises(InvalidStateException):
            subscription.use_class()

    def test_confirm_payment_only_when_pending(self, member, plan, make_subscription):
        subscription = make_subscription(member, plan)
        with pytest.raises(InvalidStateException):
            subscription.confirm_payment(Decimal("345.00"))


class TestPlans:
    def test_create_plan_defaults_currency(self, db, tenant):
        plan = MembershipService(db).create_plan(
            tenant.id, MembershipPlanCreate(name="Quarterly", price=Decimal("800"), duration_days=90)
        )
        assert plan.currency == "SAR"
        assert plan.is_active is True

    def test_create_plan_rejects_unknown_currency(self, db, tenant):
        with pytest.raises(BadRequestException):
            MembershipService(db).create_plan(
                tenant.id, MembershipPlanCreate(name="Odd", price=Decimal("10"), currency="XYZ")
            )

    def test_plan_in_use_cannot_be_deleted(self, db, tenant, member, plan, make_subscription):
        make_subscription(member, plan)
        with pytest.raises(InvalidStateException):
            MembershipService(db).delete_plan(tenant.id, plan.id)

    def test_plans_are_tenant_scoped(self, db, other_tenant, plan):
        with pytest.raises(NotFoundException):
            MembershipService(db).get_plan(other_tenant.id, plan.id)


class TestSubscribe:
    def test_free_plan_is_active_immediately(self, db, tenant, member, free_plan):
        result = MembershipService(db).subscribe(
            tenant.id, SubscriptionCreate(member_id=member.id, plan_id=free_plan.id), today=TODAY
        )

        subscription = result["subscription"]
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.start_date == TODAY
        assert subscription.end_date == TODAY + timedelta(days=30)
        assert result["invoice_id"] is None
        assert result["amount_due"] == Decimal("0.00")

    def test_paid_plan_waits_for_invoice_payment(self, db, tenant, member, plan):
        result = MembershipService(db).subscribe(
            tenant.id, SubscriptionCreate(member_id=member.id, plan_id=plan.id), today=TODAY
        )

        subscription = result["subscription"]
        assert subscription.status == SubscriptionStatus.PENDING_PAYMENT
        invoice = db.query(Invoice).filter(Invoice.id == result["invoice_id"]).first()
        assert invoice.status == InvoiceStatus.ISSUED
        assert invoice.subscription_id == subscription.id
        assert invoice.total_amount == Decimal("345.00")
        assert result["amount_due"] == Decimal("345.00")

    def test_paying_the_invoice_activates_the_subscription(self, db, tenant, member, plan):
        result = MembershipService(db).subscribe(
            tenant.id, SubscriptionCreate(member_id=member.id, plan_id=plan.id), today=TODAY
        )

        InvoiceService(db).record_payment(
            tenant.id, result["invoice_id"], RecordPaymentRequest(amount=Decimal("345.00"))
        )

        subscription = MembershipService(db).get_subscription(tenant.id, result["subscription"].id)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.paid_amount == Decimal("345.00")

    def test_partial_payment_keeps_subscription_pending(self, db, tenant, member, plan):
        result = MembershipService(db).subscribe(
            tenant.id, SubscriptionCreate(member_id=member.id, plan_id=plan.id), today=TODAY
        )

        InvoiceService(db).record_payment(
            tenant.id, result["invoice_id"], RecordPaymentRequest(amount=Decimal("100.00"))
        )

        subscription = MembershipService(db).get_subscription(tenant.id, result["subscription"].id)
        assert subscription.status == SubscriptionStatus.PENDING_PAYMENT

    def test_percentage_voucher_discounts_the_invoice(self, db, tenant, member, plan):
        VoucherService(db).create_voucher(tenant.id, VoucherCreate(
            code="spring10", name="Spring", discount_type=DiscountType.PERCENTAGE,
            discount_percent=Decimal("10"), first_time_member_only=True,
        ))

        result = MembershipService(db).subscribe(
            tenant.id,
            SubscriptionCreate(member_id=member.id, plan_id=plan.id, voucher_code="SPRING10"),
            today=TODAY,
        )

        subscription = result["subscription"]
        invoice = db.query(Invoice).filter(Invoice.id == result["invoice_id"]).first()
        assert subscription.discount_amount == Decimal("30.00")
        assert subscription.voucher_code == "SPRING10"
        assert invoice.discount_amount == Decimal("30.00")
        assert invoice.vat_amount == Decimal("40.50")
        assert invoice.total_amount == Decimal("310.50")

        usage = db.query(VoucherUsage).one()
        assert usage.subscription_id == subscription.id
        assert usage.invoice_id == invoice.id

    def test_free_trial_voucher(self, db, tenant, member, plan):
        VoucherService(db).create_voucher(tenant.id, VoucherCreate(
            code="TRYUS", name="Trial week", discount_type=DiscountType.FREE_TRIAL, free_trial_days=7,
        ))

        result = MembershipService(db).subscribe(
            tenant.id,
            SubscriptionCreate(member_id=member.id, plan_id=plan.id, voucher_code="TRYUS"),
            today=TODAY,
        )

        subscription = result["subscription"]
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.end_date == TODAY + timedelta(days=7)
        assert result["invoice_id"] is None

    def test_invalid_voucher_blocks_sign_up(self, db, tenant, member, plan):
        with pytest.raises(BadRequestException) as exc:
            MembershipService(db).subscribe(
                tenant.id,
                SubscriptionCreate(member_id=member.id, plan_id=plan.id, voucher_code="NOPE"),
                today=TODAY,
            )
        assert exc.value.detail.startswith("NOT_FOUND")
        assert MembershipService(db).get_open_subscription(tenant.id, member.id) is None

    def test_failed_sign_up_leaves_the_voucher_unused(self, db, tenant, member, plan):
        VoucherService(db).create_voucher(tenant.id, VoucherCreate(
            code="ONCE50", name="One off", discount_type=DiscountType.FIXED_AMOUNT,
            discount_amount=Decimal("50"), max_uses=1,
        ))
        sign_up = SubscriptionCreate(member_id=member.id, plan_id=plan.id, voucher_code="ONCE50")

        with patch("modules.invoices.service.InvoiceService.create_subscription_invoice",
                   side_effect=RuntimeError("printer on fire")):
            with pytest.raises(RuntimeError):
                MembershipService(db).subscribe(tenant.id, sign_up, today=TODAY)

        assert db.query(Subscription).count() == 0
        assert db.query(VoucherUsage).count() == 0
        assert db.query(Voucher).filter(Voucher.code == "ONCE50").one().current_use_count == 0

        result = MembershipService(db).subscribe(tenant.id, sign_up, today=TODAY)
        assert result["subscription"].voucher_code == "ONCE50"
        assert db.query(VoucherUsage).count() == 1

    def test_second_open_subscription_is_rejected(self, db, tenant, member, plan, free_plan, make_subscription):
        make_subscription(member, plan, status=SubscriptionStatus.FROZEN)

        with pytest.raises(InvalidStateException):
            MembershipService(db).subscribe(
                tenant.id, SubscriptionCreate(member_id=member.id, plan_id=free_plan.id), today=TODAY
            )

    def test_inactive_member(self, db, tenant, make_member, free_plan):
        suspended = make_member(status=MemberStatus.SUSPENDED)
        with pytest.raises(InvalidStateException):
            MembershipService(db).subscribe(
                tenant.id, SubscriptionCreate(member_id=suspended.id, plan_id=free_plan.id), today=TODAY
            )

    def test_inactive_plan(self, db, tenant, member, make_plan):
        retired = make_plan(is_active=False)
        with pytest.raises(InvalidStateException):
            MembershipService(db).subscribe(
                tenant.id, SubscriptionCreate(member_id=member.id, plan_id=retired.id), today=TODAY
            )

    def test_activation_converts_referral(self, db, tenant, make_member, free_plan):
        referrer = make_member()
        referee = make_member()
        referrals = ReferralService(db)
        code = referrals.get_or_create_code(tenant.id, referrer.id)
        referrals.record_signup(tenant.id, code.code, referee.id)

        MembershipService(db).subscribe(
            tenant.id, SubscriptionCreate(member_id=referee.id, plan_id=free_plan.id), today=TODAY
        )

        referral = db.query(Referral).filter(Referral.referee_member_id == referee.id).one()
        assert referral.status == ReferralStatus.CONVERTED
        points = db.query(MemberPoints).filter(MemberPoints.member_id == referrer.id).one()
        assert points.current_balance == 100


class TestTransitions:
    def test_freeze_and_unfreeze(self, db, tenant, member, plan, make_subscription):
        subscription = make_subscription(member, plan, start_date=TODAY, end_date=TODAY + timedelta(days=30))
        service = MembershipService(db)

        service.freeze(tenant.id, subscription.id, today=TODAY)
        unfrozen = service.unfreeze(tenant.id, subscription.id, today=TODAY + timedelta(days=2))

        assert unfrozen.status == SubscriptionStatus.ACTIVE
        assert unfrozen.end_date == TODAY + timedelta(days=32)

    def test_renew_paid_plan_extends_and_bills(self, db, tenant, member, plan, make_subscription):
        subscription = make_subscription(member, plan, start_date=TODAY, end_date=TODAY + timedelta(days=10))

        result = MembershipService(db).renew(tenant.id, subscription.id, today=TODAY)

        assert result["subscription"].end_date == TODAY + timedelta(days=40)
        assert result["subscription"].status == SubscriptionStatus.ACTIVE
        assert result["invoice_number"] is not None
        assert result["amount_due"] == Decimal("345.00")

    def test_renew_expired_starts_from_today(self, db, tenant, member, free_plan, make_subscription):
        subscription = make_subscription(member, free_plan, status=SubscriptionStatus.EXPIRED,
                                         start_date=TODAY - timedelta(days=60),
                                         end_date=TODAY - timedelta(days=30))

        result = MembershipService(db).renew(tenant.id, subscription.id, today=TODAY)

        assert result["subscription"].status == SubscriptionStatus.ACTIVE
        assert result["subscription"].end_date == TODAY + timedelta(days=30)
        assert result["invoice_id"] is None

    def test_renew_resets_class_allowance(self, db, tenant, member, make_plan, make_subscription):
        limited = make_plan(price="0.00", class_limit=8)
        subscription = make_subscription(member, limited, classes_remaining=0)

        result = MembershipService(db).renew(tenant.id, subscription.id, today=TODAY)
        assert result["subscription"].classes_remaining == 8

    def test_renew_expired_while_another_is_open(self, db, tenant, member, plan, free_plan, make_subscription):
        expired = make_subscription(member, plan, status=SubscriptionStatus.EXPIRED,
                                    end_date=TODAY - timedelta(days=1))
        make_subscription(member, free_plan)

        with pytest.raises(InvalidStateException):
            MembershipService(db).renew(tenant.id, expired.id, today=TODAY)

    def test_frozen_subscription_cannot_be_renewed(self, db, tenant, member, plan, make_subscription):
        subscription = make_subscription(member, plan, status=SubscriptionStatus.FROZEN)
        with pytest.raises(InvalidStateException):
            MembershipService(db).renew(tenant.id, subscription.id, today=TODAY)


class TestExpiryJob:
    def test_expires_only_overdue_active_subscriptions(self, db, member, make_member, plan, make_subscription):
        overdue = make_subscription(member, plan, start_date=TODAY - timedelta(days=31),
                                    end_date=TODAY - timedelta(days=1))
        current = make_subscription(make_member(), plan, start_date=TODAY - timedelta(days=29),
                                    end_date=TODAY)

        expired = MembershipService(db).expire_subscriptions(today=TODAY)

        assert [s.id for s in expired] == [overdue.id]
        db.refresh(current)
        assert current.status == SubscriptionStatus.ACTIVE

    def test_expired_member_is_notified(self, db, member, member_user, plan, make_subscription):
        make_subscription(member, plan, start_date=TODAY - timedelta(days=31), end_date=TODAY - timedelta(days=1))

        MembershipService(db).expire_subscriptions(today=TODAY)

        notification = db.query(Notification).filter(Notification.target_user_id == member_user.id).one()
        assert notification.type == NotificationType.SUBSCRIPTION_EXPIRED

    def test_reminds_members_before_expiry(self, db, member, member_user, plan, make_subscription):
        make_subscription(member, plan, start_date=TODAY - timedelta(days=27), end_date=TODAY + timedelta(days=3))

        reminded = MembershipService(db).remind_expiring_subscriptions(today=TODAY)

        assert reminded == 1
        notification = db.query(Notification).filter(Notification.target_user_id == member_user.id).one()
        assert notification.type == NotificationType.SUBSCRIPTION_EXPIRING
