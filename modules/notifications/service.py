from sqlalchemy.orm import Session
from typing import Optional
import logging

from .models import Notification, NotificationType, NotificationEntityType
from .schemas import NotificationCreate
from modules.users.models import User, UserRole, UserStatus
from shared.exceptions import NotFoundException
from shared.utils import utcnow, paginate, format_currency

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def create_notification(self, notification_data: NotificationCreate) -> Notification:
        """Create a new notification"""
        notification = Notification(**notification_data.model_dump())
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.info(f"Created notification: {notification.type} - {notification.title}")
        return notification

    def get_notifications_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> dict:
        query = self.db.query(Notification).filter(Notification.target_user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)
        return paginate(query.order_by(Notification.created_at.desc()), page, per_page)

    def get_unread_count(self, user_id: str) -> int:
        """Get unread notification count for user"""
        return self.db.query(Notification).filter(
            Notification.target_user_id == user_id,
            Notification.is_read == False
        ).count()

    def mark_as_read(self, notification_id: str, user_id: str) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.target_user_id == user_id
        ).first()
        if not notification:
            raise NotFoundException("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: str) -> int:
        notifications = self.db.query(Notification).filter(
            Notification.target_user_id == user_id,
            Notification.is_read == False
        ).all()
        now = utcnow()
        for notification in notifications:
            notification.is_read = True
            notification.read_at = now
        self.db.commit()
        return len(notifications)

    # ============ Member notifications ============

    def _member_user(self, member_id: str) -> Optional[User]:
        return self.db.query(User).filter(
            User.member_id == member_id,
            User.role == UserRole.MEMBER,
            User.status == UserStatus.ACTIVE
        ).first()

    def notify_member(
        self,
        member_id: str,
        type: NotificationType,
        title: str,
        message: str,
        related_entity_id: Optional[str] = None,
        related_entity_type: Optional[NotificationEntityType] = None
    ) -> Optional[Notification]:
        """Notify the member's portal login; members without portal access are skipped"""
        user = self._member_user(member_id)
        if not user:
            logger.debug(f"Member {member_id} has no portal user, skipping {type.value} notification")
            return None

        return self.create_notification(NotificationCreate(
            tenant_id=str(user.tenant_id),
            target_user_id=str(user.id),
            type=type,
            title=title,
            message=message,
            related_entity_id=str(related_entity_id) if related_entity_id else None,
            related_entity_type=related_entity_type,
        ))

    def notify_subscription_activated(self, subscription):
        return self.notify_member(
            subscription.member_id,
            NotificationType.SUBSCRIPTION_ACTIVATED,
            "Membership Activated",
            f"Your {subscription.plan.name} membership is active until {subscription.end_date.isoformat()}.",
            subscription.id,
            NotificationEntityType.SUBSCRIPTION,
        )

    def notify_subscription_expiring(self, subscription, days_left: int):
        return self.notify_member(
            subscription.member_id,
            NotificationType.SUBSCRIPTION_EXPIRING,
            "Membership Expiring Soon",
            f"Your membership ends in {days_left} day(s) on {subscription.end_date.isoformat()}.",
            subscription.id,
            NotificationEntityType.SUBSCRIPTION,
        )

    def notify_subscription_expired(self, subscription):
        return self.notify_member(
            subscription.member_id,
            NotificationType.SUBSCRIPTION_EXPIRED,
            "Membership Expired",
            "Your membership has expired. Renew to keep visiting the club.",
            subscription.id,
            NotificationEntityType.SUBSCRIPTION,
        )

    def notify_invoice_issued(self, invoice):
        return self.notify_member(
            invoice.member_id,
            NotificationType.INVOICE_ISSUED,
            "New Invoice",
            f"Invoice {invoice.invoice_number} for {format_currency(invoice.total_amount, invoice.currency)} "
            f"is due on {invoice.due_date.isoformat()}.",
            invoice.id,
            NotificationEntityType.INVOICE,
        )

    def notify_invoice_paid(self, invoice):
        return self.notify_member(
            invoice.member_id,
            NotificationType.INVOICE_PAID,
            "Payment Received",
            f"Thank you! Invoice {invoice.invoice_number} has been paid.",
            invoice.id,
            NotificationEntityType.INVOICE,
        )

    def notify_invoice_overdue(self, invoice):
        return self.notify_member(
            invoice.member_id,
            NotificationType.INVOICE_OVERDUE,
            "Invoice Overdue",
            f"Invoice {invoice.invoice_number} is overdue. Balance due: "
            f"{format_currency(invoice.balance_due, invoice.currency)}.",
            invoice.id,
            NotificationEntityType.INVOICE,
        )

    def notify_points_change(self, member_id: str, points: int, type: str, reason: Optional[str] = None):
        """Notify member about points earned or redeemed"""
        if type == "EARNED":
            title = "Points Earned"
            message = f"You earned {points} points"
            notification_type = NotificationType.POINTS_EARNED
        else:
            title = "Points Redeemed"
            message = f"You redeemed {points} points"
            notification_type = NotificationType.POINTS_REDEEMED
        if reason:
            message += f": {reason}"

        return self.notify_member(member_id, notification_type, title, message, None, NotificationEntityType.POINTS)

    def notify_referral_converted(self, referral):
        return self.notify_member(
            referral.referrer_member_id,
            NotificationType.REFERRAL_CONVERTED,
            "Referral Reward",
            f"A friend you referred just joined! You earned {referral.reward_points} points.",
            referral.id,
            NotificationEntityType.REFERRAL,
        )
