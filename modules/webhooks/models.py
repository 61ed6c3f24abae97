from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID


class WebhookEventType(str, enum.Enum):
    MEMBER_CREATED = "member.created"
    MEMBER_UPDATED = "member.updated"
    MEMBER_DELETED = "member.deleted"
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    SUBSCRIPTION_RENEWED = "subscription.renewed"
    SUBSCRIPTION_FROZEN = "subscription.frozen"
    SUBSCRIPTION_UNFROZEN = "subscription.unfrozen"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    SUBSCRIPTION_EXPIRED = "subscription.expired"
    INVOICE_ISSUED = "invoice.issued"
    INVOICE_PAID = "invoice.paid"
    INVOICE_OVERDUE = "invoice.overdue"
    INVOICE_CANCELLED = "invoice.cancelled"
    ATTENDANCE_CHECKED_IN = "attendance.checked_in"
    ATTENDANCE_CHECKED_OUT = "attendance.checked_out"
    REFERRAL_CONVERTED = "referral.converted"
    VOUCHER_REDEEMED = "voucher.redeemed"
    WEBHOOK_TEST = "webhook.test"


ALL_EVENTS = "*"


class DeliveryStatus(str, enum.Enum):
    PENDING = "PENDING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"  # Waiting for retry
    EXHAUSTED = "EXHAUSTED"  # Gave up


class Webhook(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "webhooks"

    name = Column(String(200), nullable=False)
    url = Column(String(1000), nullable=False)
    secret = Column(String(255), nullable=False)
    events = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, index=True)
    description = Column(Text, nullable=True)

    deliveries = relationship("WebhookDelivery", back_populates="webhook", cascade="all, delete-orphan")

    def is_subscribed_to(self, event_type: str) -> bool:
        events = self.events or []
        return ALL_EVENTS in events or event_type in events

    def __repr__(self):
        return f"<Webhook {self.name} -> {self.url}>"


class WebhookDelivery(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "webhook_deliveries"

    webhook_id = Column(UUID(), ForeignKey('webhooks.id', ondelete='CASCADE'), nullable=True, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    event_id = Column(String(36), nullable=False, index=True)
    payload = Column(Text, nullable=False)
    status = Column(SQLEnum(DeliveryStatus), nullable=False, default=DeliveryStatus.PENDING, index=True)
    attempt_count = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    next_retry_at = Column(DateTime, nullable=True, index=True)
    last_attempt_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    last_response_code = Column(Integer, nullable=True)
    last_response_body = Column(Text, nullable=True)
    last_error = Column(Text, nullable=True)

    webhook = relationship("Webhook", back_populates="deliveries")

    def __repr__(self):
        return f"<WebhookDelivery {self.event_type} ({self.status})>"
