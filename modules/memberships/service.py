from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from datetime import date, timedelta
from decimal import Decimal
import logging

from modules.memberships.models import MembershipPlan, Subscription, SubscriptionStatus, OPEN_SUBSCRIPTION_STATUSES
from modules.memberships.schemas import MembershipPlanCreate, MembershipPlanUpdate, SubscriptionCreate
from modules.members.models import Member
from modules.notifications.service import NotificationService
from modules.webhooks.models import WebhookEventType
from modules.webhooks.service import publish_event
from shared.exceptions import NotFoundException, InvalidStateException
from shared.utils import round_money, to_decimal, paginate, enum_value
from shared.validators import validate_currency

logger = logging.getLogger(__name__)

EXPIRY_REMINDER_DAYS = 3


class MembershipService:
    def __init__(self, db: Session):
        self.db = db

    # ============ Plans ============

    def create_plan(self, tenant_id: str, data: MembershipPlanCreate) -> MembershipPlan:
        plan_data = data.model_dump()
        plan_data["currency"] = validate_currency(plan_data.get("currency"))
        plan = MembershipPlan(tenant_id=tenant_id, **plan_data)
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"✅ Membership plan created: {plan.name} ({plan.price} {plan.currency})")
        return plan

    def get_plan(self, tenant_id: str, plan_id: str) -> MembershipPlan:
        plan = self.db.query(MembershipPlan).filter(
            MembershipPlan.id == plan_id,
            MembershipPlan.tenant_id == tenant_id
        ).first()
        if not plan:
            raise NotFoundException("Membership plan not found")
        return plan

    def list_plans(self, tenant_id: str, active_only: bool = False) -> List[MembershipPlan]:
        query = self.db.query(MembershipPlan).filter(MembershipPlan.tenant_id == tenant_id)
        if active_only:
            query = query.filter(MembershipPlan.is_active == True)
        return query.order_by(MembershipPlan.price.asc()).all()

    def update_plan(self, tenant_id: str, plan_id: str, data: MembershipPlanUpdate) -> MembershipPlan:
        plan = self.get_plan(tenant_id, plan_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(plan, key, value)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def deactivate_plan(self, tenant_id: str, plan_id: str) -> MembershipPlan:
        """Hide a plan from new sign-ups. Existing subscriptions keep running."""
        plan = self.get_plan(tenant_id, plan_id)
        plan.is_active = False
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"Membership plan deactivated: {plan.name}")
        return plan

    def delete_plan(self, tenant_id: str, plan_id: str):
        plan = self.get_plan(tenant_id, plan_id)
        in_use = self.db.query(Subscription).filter(Subscription.plan_id == plan.id).count()
        if in_use:
            raise InvalidStateException("Plan has subscriptions; deactivate it instead")
        self.db.delete(plan)
        self.db.commit()

    # ============ Subscriptions ============

    def _get_member(self, tenant_id: str, member_id: str) -> Member:
        member = self.db.query(Member).filter(
            Member.id == member_id,
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        ).first()
        if not member:
            raise NotFoundException("Member not found")
        return member

    def get_subscription(self, tenant_id: str, subscription_id: str) -> Subscription:
        subscription = self.db.query(Subscription).filter(
            Subscription.id == subscription_id,
            Subscription.tenant_id == tenant_id
        ).first()
        if not subscription:
            raise NotFoundException("Subscription not found")
        return subscription

    def get_open_subscription(self, tenant_id: str, member_id: str) -> Optional[Subscription]:
        return self.db.query(Subscription).filter(
            Subscription.tenant_id == tenant_id,
            Subscription.member_id == member_id,
            Subscription.status.in_(OPEN_SUBSCRIPTION_STATUSES)
        ).first()

    def get_active_subscription(self, tenant_id: str, member_id: str, today: Optional[date] = None) -> Optional[Subscription]:
        """The member's ACTIVE subscription that has not run past its end date"""
        today = today or date.today()
        return self.db.query(Subscription).filter(
            Subscription.tenant_id == tenant_id,
            Subscription.member_id == member_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date >= today
        ).order_by(Subscription.end_date.desc()).first()

    def list_member_subscriptions(self, tenant_id: str, member_id: str, page: int = 1, per_page: Optional[int] = None) -> dict:
        query = self.db.query(Subscription).filter(
            Subscription.tenant_id == tenant_id,
            Subscription.member_id == member_id
        ).order_by(Subscription.created_at.desc())
        return paginate(query, page, per_page)

    def subscribe(self, tenant_id: str, data: SubscriptionCreate, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Sign a member up to a plan.

        A voucher, when given, is redeemed against the plan price. Whatever is left
        to pay is billed on a freshly issued invoice and the subscription waits in
        PENDING_PAYMENT; a free sign-up is active straight away.
        """
        member = self._get_member(tenant_id, data.member_id)
        if not member.is_active:
            raise InvalidStateException("Member is not active")
        if self.get_open_subscription(tenant_id, member.id):
            raise InvalidStateException("Member already has an active or pending subscription")

        plan = self.get_plan(tenant_id, data.plan_id)
        if not plan.is_active:
            raise InvalidStateException("Membership plan is not active")

        start_date = data.start_date or today or date.today()
        price = round_money(plan.price)
        discount = Decimal("0.00")
        duration_days = plan.duration_days
        redemption = None
        invoice = None

        from modules.invoices.service import InvoiceService
        from modules.vouchers.service import VoucherService
        voucher_service = VoucherService(self.db)
        invoice_service = InvoiceService(self.db)

        # Voucher usage, subscription and invoice are committed together
        try:
            if data.voucher_code:
                redemption = voucher_service.redeem(
                    tenant_id, data.voucher_code, member.id, price, plan_id=plan.id, commit=False
                )
                if redemption.free_trial_days:
                    discount = price
                    duration_days = redemption.free_trial_days
                else:
                    discount = min(round_money(redemption.discount_applied), price)

            subscription = Subscription(
                tenant_id=tenant_id,
                member_id=member.id,
                plan_id=plan.id,
                status=SubscriptionStatus.PENDING_PAYMENT,
                start_date=start_date,
                end_date=start_date + timedelta(days=duration_days),
                auto_renew=data.auto_renew,
                classes_remaining=plan.class_limit,
                freeze_days_remaining=plan.freeze_days or 0,
                price=price,
                discount_amount=discount,
                voucher_code=redemption.voucher.code if redemption else None,
                notes=data.notes,
            )
            self.db.add(subscription)
            self.db.flush()

            if redemption:
                redemption.usage.subscription_id = subscription.id

            if price - discount > 0:
                invoice = invoice_service.create_subscription_invoice(subscription, plan, discount, commit=False)
                if redemption:
                    redemption.usage.invoice_id = invoice.id
            else:
                subscription.status = SubscriptionStatus.ACTIVE
                subscription.paid_amount = Decimal("0.00")

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Subscribe failed for member {data.member_id}: {e}")
            raise

        self.db.refresh(subscription)
        if redemption:
            logger.info(f"✅ Voucher {redemption.voucher.code} redeemed by member {member.id} ({redemption.discount_applied})")
            voucher_service.publish_redeemed(redemption.voucher, redemption.usage)

        if invoice:
            self.db.refresh(invoice)
            logger.info(f"✅ Subscription {subscription.id} awaiting payment of invoice {invoice.invoice_number}")
            invoice_service.after_issue(invoice)
        else:
            logger.info(f"✅ Subscription {subscription.id} activated for member {member.id}")
            self._after_activation(subscription)

        publish_event(self.db, tenant_id, WebhookEventType.SUBSCRIPTION_CREATED, self._event_data(subscription))

        return {
            "subscription": subscription,
            "invoice_id": invoice.id if invoice else None,
            "invoice_number": invoice.invoice_number if invoice else None,
            "amount_due": invoice.total_amount if invoice else Decimal("0.00"),
        }

    def activate_paid_subscription(self, invoice) -> Optional[Subscription]:
        """Called once a subscription's invoice is paid in full"""
        subscription = self.db.query(Subscription).filter(
            Subscription.id == invoice.subscription_id,
            Subscription.tenant_id == invoice.tenant_id
        ).first()
        if not subscription or subscription.status != SubscriptionStatus.PENDING_PAYMENT:
            return None

        subscription.confirm_payment(invoice.paid_amount)
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"✅ Subscription {subscription.id} activated by payment of {invoice.invoice_number}")
        self._after_activation(subscription)
        return subscription

    def _after_activation(self, subscription: Subscription):
        try:
            from modules.referrals.service import ReferralService
            ReferralService(self.db).convert_referral(subscription.tenant_id, subscription.member_id, subscription.id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to convert referral for member {subscription.member_id}: {e}")

        try:
            NotificationService(self.db).notify_subscription_activated(subscription)
        except Exception as e:
            logger.warning(f"Failed to create activation notification: {e}")

        publish_event(self.db, subscription.tenant_id, WebhookEventType.SUBSCRIPTION_ACTIVATED, self._event_data(subscription))

    def freeze(self, tenant_id: str, subscription_id: str, today: Optional[date] = None) -> Subscription:
        subscription = self.get_subscription(tenant_id, subscription_id)
        subscription.freeze(today)
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Subscription {subscription.id} frozen")
        publish_event(self.db, tenant_id, WebhookEventType.SUBSCRIPTION_FROZEN, self._event_data(subscription))
        return subscription

    def unfreeze(self, tenant_id: str, subscription_id: str, today: Optional[date] = None) -> Subscription:
        subscription = self.get_subscription(tenant_id, subscription_id)
        subscription.unfreeze(today)
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Subscription {subscription.id} unfrozen, now ends {subscription.end_date}")
        publish_event(self.db, tenant_id, WebhookEventType.SUBSCRIPTION_UNFROZEN, self._event_data(subscription))
        return subscription

    def cancel(self, tenant_id: str, subscription_id: str) -> Subscription:
        subscription = self.get_subscription(tenant_id, subscription_id)
        subscription.cancel()
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Subscription {subscription.id} cancelled")
        publish_event(self.db, tenant_id, WebhookEventType.SUBSCRIPTION_CANCELLED, self._event_data(subscription))
        return subscription

    def renew(self, tenant_id: str, subscription_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """Extend by one plan period from the later of today and the current end date"""
        today = today or date.today()
        subscription = self.get_subscription(tenant_id, subscription_id)
        plan = subscription.plan
        if subscription.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED):
            raise InvalidStateException(f"Cannot renew subscription in status: {enum_value(subscription.status)}")
        if subscription.status == SubscriptionStatus.EXPIRED and self.get_open_subscription(tenant_id, subscription.member_id):
            raise InvalidStateException("Member already has an active or pending subscription")

        new_end_date = max(today, subscription.end_date) + timedelta(days=plan.duration_days)
        subscription.renew(new_end_date, plan.class_limit)
        subscription.price = round_money(plan.price)
        subscription.discount_amount = Decimal("0.00")
        self.db.flush()

        invoice = None
        if to_decimal(plan.price) > 0:
            from modules.invoices.service import InvoiceService
            invoice = InvoiceService(self.db).create_subscription_invoice(subscription, plan)
        else:
            self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"✅ Subscription {subscription.id} renewed until {subscription.end_date}")

        publish_event(self.db, tenant_id, WebhookEventType.SUBSCRIPTION_RENEWED, self._event_data(subscription))
        return {
            "subscription": subscription,
            "invoice_id": invoice.id if invoice else None,
            "invoice_number": invoice.invoice_number if invoice else None,
            "amount_due": invoice.total_amount if invoice else Decimal("0.00"),
        }

    # ============ Jobs ============

    def expire_subscriptions(self, today: Optional[date] = None) -> List[Subscription]:
        """Expire every ACTIVE subscription past its end date, across all tenants"""
        today = today or date.today()
        candidates = self.db.query(Subscription).filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date < today
        ).all()
        expired = [subscription for subscription in candidates if subscription.expire(today)]
        self.db.commit()

        for subscription in expired:
            try:
                NotificationService(self.db).notify_subscription_expired(subscription)
            except Exception as e:
                logger.warning(f"Failed to create expiry notification: {e}")
            publish_event(self.db, subscription.tenant_id, WebhookEventType.SUBSCRIPTION_EXPIRED, self._event_data(subscription))

        if expired:
            logger.info(f"⏰ Expired {len(expired)} subscription(s)")
        return expired

    def remind_expiring_subscriptions(self, today: Optional[date] = None, days_ahead: int = EXPIRY_REMINDER_DAYS) -> int:
        """Notify members whose subscription ends exactly `days_ahead` days from today"""
        today = today or date.today()
        expiring = self.db.query(Subscription).filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date == today + timedelta(days=days_ahead)
        ).all()

        notified = 0
        for subscription in expiring:
            try:
                if NotificationService(self.db).notify_subscription_expiring(subscription, days_ahead):
                    notified += 1
            except Exception as e:
                logger.warning(f"Failed to create expiring notification: {e}")
        return notified

    def _event_data(self, subscription: Subscription) -> Dict[str, Any]:
        return {
            "subscription_id": str(subscription.id),
            "member_id": str(subscription.member_id),
            "plan_id": str(subscription.plan_id),
            "status": enum_value(subscription.status),
            "start_date": subscription.start_date.isoformat(),
            "end_date": subscription.end_date.isoformat(),
        }
