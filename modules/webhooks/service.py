from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, List, Dict, Any
from datetime import timedelta
import json
import time
import uuid
import logging

from config.settings import settings
from modules.webhooks.models import Webhook, WebhookDelivery, DeliveryStatus, WebhookEventType
from modules.webhooks.schemas import WebhookCreate, WebhookUpdate
from modules.webhooks.client import WebhookHttpClient
from shared.exceptions import NotFoundException, BadRequestException
from shared.utils import generate_secret, sign_webhook_payload, utcnow, paginate, enum_value

logger = logging.getLogger(__name__)

SUPPORTED_EVENTS = [event.value for event in WebhookEventType]


def retry_delay_seconds(attempt: int) -> int:
    """Exponential backoff: base * 2^(attempt-1), capped at the configured maximum"""
    delay = settings.WEBHOOK_RETRY_BASE_SECONDS * (2 ** max(attempt - 1, 0))
    return min(delay, settings.WEBHOOK_RETRY_MAX_SECONDS)


class WebhookService:
    def __init__(self, db: Session, http_client: Optional[WebhookHttpClient] = None):
        self.db = db
        self.http_client = http_client or WebhookHttpClient()

    # ============ Webhook management ============

    def _validate_events(self, events: List[str]):
        unknown = [e for e in events if e != "*" and e not in SUPPORTED_EVENTS]
        if unknown:
            raise BadRequestException(f"Unsupported event types: {', '.join(unknown)}")

    def create_webhook(self, tenant_id: str, data: WebhookCreate) -> Webhook:
        self._validate_events(data.events)
        webhook = Webhook(
            tenant_id=tenant_id,
            name=data.name,
            url=str(data.url),
            secret=data.secret or generate_secret(),
            events=data.events,
            description=data.description,
            is_active=True,
        )
        self.db.add(webhook)
        self.db.commit()
        self.db.refresh(webhook)
        logger.info(f"✅ Webhook created: {webhook.name} -> {webhook.url}")
        return webhook

    def get_webhook(self, tenant_id: str, webhook_id: str) -> Webhook:
        webhook = self.db.query(Webhook).filter(
            Webhook.id == webhook_id,
            Webhook.tenant_id == tenant_id
        ).first()
        if not webhook:
            raise NotFoundException("Webhook not found")
        return webhook

    def list_webhooks(self, tenant_id: str) -> List[Webhook]:
        return self.db.query(Webhook).filter(
            Webhook.tenant_id == tenant_id
        ).order_by(Webhook.created_at.desc()).all()

    def update_webhook(self, tenant_id: str, webhook_id: str, data: WebhookUpdate) -> Webhook:
        webhook = self.get_webhook(tenant_id, webhook_id)
        update_data = data.model_dump(exclude_unset=True)
        if "events" in update_data and update_data["events"] is not None:
            self._validate_events(update_data["events"])
        if "url" in update_data and update_data["url"] is not None:
            update_data["url"] = str(update_data["url"])
        for key, value in update_data.items():
            setattr(webhook, key, value)
        self.db.commit()
        self.db.refresh(webhook)
        return webhook

    def set_active(self, tenant_id: str, webhook_id: str, is_active: bool) -> Webhook:
        webhook = self.get_webhook(tenant_id, webhook_id)
        webhook.is_active = is_active
        self.db.commit()
        self.db.refresh(webhook)
        logger.info(f"Webhook {webhook.id} {'activated' if is_active else 'deactivated'}")
        return webhook

    def regenerate_secret(self, tenant_id: str, webhook_id: str) -> Webhook:
        webhook = self.get_webhook(tenant_id, webhook_id)
        webhook.secret = generate_secret()
        self.db.commit()
        self.db.refresh(webhook)
        return webhook

    def delete_webhook(self, tenant_id: str, webhook_id: str):
        webhook = self.get_webhook(tenant_id, webhook_id)
        self.db.delete(webhook)
        self.db.commit()
        logger.info(f"Webhook deleted: {webhook_id}")

    # ============ Event queueing ============

    def _build_payload(self, tenant_id: str, event_type: str, event_id: str, data: Dict[str, Any]) -> str:
        return json.dumps(
            {
                "id": event_id,
                "event": event_type,
                "created_at": utcnow().isoformat() + "Z",
                "tenant_id": str(tenant_id),
                "data": data,
            },
            default=str,
        )

    def _new_delivery(self, webhook: Webhook, event_type: str, event_id: str, payload: str) -> WebhookDelivery:
        return WebhookDelivery(
            tenant_id=webhook.tenant_id,
            webhook_id=webhook.id,
            event_type=event_type,
            event_id=event_id,
            payload=payload,
            status=DeliveryStatus.PENDING,
            attempt_count=0,
            max_attempts=settings.WEBHOOK_MAX_ATTEMPTS,
        )

    def queue_event(self, tenant_id: str, event_type: str, data: Dict[str, Any]) -> List[WebhookDelivery]:
        """Create one PENDING delivery for every active webhook of the tenant subscribed to the event"""
        webhooks = self.db.query(Webhook).filter(
            Webhook.tenant_id == tenant_id,
            Webhook.is_active == True
        ).all()
        subscribed = [w for w in webhooks if w.is_subscribed_to(event_type)]
        if not subscribed:
            return []

        event_id = str(uuid.uuid4())
        payload = self._build_payload(tenant_id, event_type, event_id, data)
        deliveries = [self._new_delivery(w, event_type, event_id, payload) for w in subscribed]
        self.db.add_all(deliveries)
        self.db.commit()
        logger.info(f"📬 Queued {event_type} for {len(deliveries)} webhook(s)")
        return deliveries

    # ============ Delivery ============

    def _headers(self, delivery: WebhookDelivery, secret: str) -> Dict[str, str]:
        timestamp = str(int(time.time()))
        signature = sign_webhook_payload(delivery.payload, secret, timestamp)
        return {
            "X-Webhook-Event": delivery.event_type,
            "X-Webhook-Delivery": str(delivery.id),
            "X-Webhook-Timestamp": timestamp,
            "X-Webhook-Signature": f"sha256={signature}",
        }

    def process_delivery(self, delivery: WebhookDelivery) -> WebhookDelivery:
        webhook = None
        if delivery.webhook_id:
            webhook = self.db.query(Webhook).filter(Webhook.id == delivery.webhook_id).first()

        if not webhook or not webhook.is_active:
            delivery.status = DeliveryStatus.EXHAUSTED
            delivery.next_retry_at = None
            delivery.last_error = "Webhook is inactive or no longer exists"
            self.db.commit()
            logger.warning(f"⚠️ Skipping delivery {delivery.id}: webhook inactive or missing")
            return delivery

        result = self.http_client.send(webhook.url, delivery.payload, self._headers(delivery, webhook.secret))

        now = utcnow()
        delivery.attempt_count = (delivery.attempt_count or 0) + 1
        delivery.last_attempt_at = now
        delivery.last_response_code = result.status_code
        delivery.last_response_body = result.response_body

        if result.success:
            delivery.status = DeliveryStatus.DELIVERED
            delivery.delivered_at = now
            delivery.next_retry_at = None
            delivery.last_error = None
            logger.info(f"✅ Webhook delivered: {delivery.event_type} -> {webhook.url}")
        elif delivery.attempt_count >= delivery.max_attempts:
            delivery.status = DeliveryStatus.EXHAUSTED
            delivery.next_retry_at = None
            delivery.last_error = result.error
            logger.error(f"❌ Webhook delivery {delivery.id} exhausted after {delivery.attempt_count} attempts")
        else:
            delivery.status = DeliveryStatus.FAILED
            delivery.next_retry_at = now + timedelta(seconds=retry_delay_seconds(delivery.attempt_count))
            delivery.last_error = result.error
            logger.warning(
                f"⚠️ Webhook delivery {delivery.id} failed (attempt {delivery.attempt_count}), "
                f"retry at {delivery.next_retry_at}"
            )

        self.db.commit()
        return delivery

    def _process_batch(self, deliveries: List[WebhookDelivery]) -> int:
        processed = 0
        for delivery in deliveries:
            try:
                self.process_delivery(delivery)
                processed += 1
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Error processing webhook delivery {delivery.id}: {e}", exc_info=True)
        return processed

    def process_pending_deliveries(self, limit: Optional[int] = None) -> int:
        deliveries = self.db.query(WebhookDelivery).filter(
            WebhookDelivery.status == DeliveryStatus.PENDING
        ).order_by(WebhookDelivery.created_at.asc()).limit(limit or settings.WEBHOOK_BATCH_SIZE).all()
        return self._process_batch(deliveries)

    def process_retries(self, limit: Optional[int] = None) -> int:
        deliveries = self.db.query(WebhookDelivery).filter(
            WebhookDelivery.status == DeliveryStatus.FAILED,
            WebhookDelivery.next_retry_at <= utcnow()
        ).order_by(WebhookDelivery.next_retry_at.asc()).limit(limit or settings.WEBHOOK_BATCH_SIZE).all()
        return self._process_batch(deliveries)

    def retry_delivery(self, tenant_id: str, delivery_id: str) -> WebhookDelivery:
        """Manual retry of a failed or exhausted delivery, sent straight away"""
        delivery = self.get_delivery(tenant_id, delivery_id)
        if delivery.status in (DeliveryStatus.PENDING, DeliveryStatus.DELIVERED):
            raise BadRequestException(f"Cannot retry delivery in status: {enum_value(delivery.status)}")

        delivery.status = DeliveryStatus.PENDING
        delivery.attempt_count = 0
        delivery.next_retry_at = None
        self.db.commit()
        return self.process_delivery(delivery)

    def send_test_webhook(self, tenant_id: str, webhook_id: str) -> WebhookDelivery:
        webhook = self.get_webhook(tenant_id, webhook_id)
        event_type = WebhookEventType.WEBHOOK_TEST.value
        event_id = str(uuid.uuid4())
        payload = self._build_payload(
            tenant_id,
            event_type,
            event_id,
            {"message": "This is a test webhook delivery", "webhook_id": str(webhook.id)},
        )
        delivery = self._new_delivery(webhook, event_type, event_id, payload)
        self.db.add(delivery)
        self.db.commit()
        self.db.refresh(delivery)
        return self.process_delivery(delivery)

    # ============ Queries ============

    def get_delivery(self, tenant_id: str, delivery_id: str) -> WebhookDelivery:
        delivery = self.db.query(WebhookDelivery).filter(
            WebhookDelivery.id == delivery_id,
            WebhookDelivery.tenant_id == tenant_id
        ).first()
        if not delivery:
            raise NotFoundException("Webhook delivery not found")
        return delivery

    def get_delivery_history(
        self,
        tenant_id: str,
        webhook_id: str,
        status: Optional[DeliveryStatus] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> dict:
        self.get_webhook(tenant_id, webhook_id)
        query = self.db.query(WebhookDelivery).filter(
            WebhookDelivery.tenant_id == tenant_id,
            WebhookDelivery.webhook_id == webhook_id
        )
        if status:
            query = query.filter(WebhookDelivery.status == status)
        return paginate(query.order_by(WebhookDelivery.created_at.desc()), page, per_page)

    def get_delivery_stats(self, tenant_id: str, webhook_id: str) -> Dict[str, int]:
        self.get_webhook(tenant_id, webhook_id)
        rows = self.db.query(WebhookDelivery.status, func.count(WebhookDelivery.id)).filter(
            WebhookDelivery.tenant_id == tenant_id,
            WebhookDelivery.webhook_id == webhook_id
        ).group_by(WebhookDelivery.status).all()
        counts = {enum_value(status): count for status, count in rows}
        return {
            "total": sum(counts.values()),
            "delivered": counts.get(DeliveryStatus.DELIVERED.value, 0),
            "pending": counts.get(DeliveryStatus.PENDING.value, 0),
            "failed": counts.get(DeliveryStatus.FAILED.value, 0),
            "exhausted": counts.get(DeliveryStatus.EXHAUSTED.value, 0),
        }


def publish_event(db: Session, tenant_id: str, event_type: WebhookEventType, data: Dict[str, Any]):
    """Queue a webhook event without letting a failure break the caller"""
    try:
        WebhookService(db).queue_event(str(tenant_id), event_type.value, data)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to queue webhook event {event_type.value}: {e}")
