from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Text
from sqlalchemy.orm import relationship
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID


class NotificationType(str, enum.Enum):
    SUBSCRIPTION_ACTIVATED = "SUBSCRIPTION_ACTIVATED"  # Membership became active
    SUBSCRIPTION_EXPIRING = "SUBSCRIPTION_EXPIRING"  # Membership ends soon
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"  # Membership ended
    INVOICE_ISSUED = "INVOICE_ISSUED"  # New invoice to pay
    INVOICE_PAID = "INVOICE_PAID"  # Payment was received
    INVOICE_OVERDUE = "INVOICE_OVERDUE"  # Invoice past due date
    POINTS_EARNED = "POINTS_EARNED"  # Points earned
    POINTS_REDEEMED = "POINTS_REDEEMED"  # Points redeemed
    REFERRAL_CONVERTED = "REFERRAL_CONVERTED"  # A referred friend joined
    GENERAL = "GENERAL"  # Club announcement


class NotificationEntityType(str, enum.Enum):
    SUBSCRIPTION = "SUBSCRIPTION"
    INVOICE = "INVOICE"
    POINTS = "POINTS"
    REFERRAL = "REFERRAL"
    MEMBER = "MEMBER"


class Notification(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "notifications"

    target_user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Notification content
    type = Column(SQLEnum(NotificationType), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Related entity
    related_entity_id = Column(String(36), nullable=True, index=True)
    related_entity_type = Column(SQLEnum(NotificationEntityType), nullable=True)

    # Status
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime, nullable=True)

    target_user = relationship("User", foreign_keys=[target_user_id])

    def __repr__(self):
        return f"<Notification {self.type} for user {self.target_user_id}>"
