from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database.base import get_db
from modules.webhooks.service import WebhookService, SUPPORTED_EVENTS
from modules.webhooks.models import DeliveryStatus
from modules.webhooks.schemas import (
    WebhookCreate,
    WebhookUpdate,
    WebhookResponse,
    WebhookSecretResponse,
    WebhookDeliveryResponse,
    WebhookDeliveryDetail,
    DeliveryStatsResponse,
)
from modules.users.models import User
from shared.dependencies import get_club_admin
from shared.schemas import PaginatedResponse

router = APIRouter()


@router.get("/events", response_model=List[str])
def list_supported_events(current_user: User = Depends(get_club_admin)):
    """Event types a webhook can subscribe to ("*" subscribes to all)"""
    return SUPPORTED_EVENTS


@router.post("", response_model=WebhookSecretResponse, status_code=status.HTTP_201_CREATED)
def create_webhook(
    data: WebhookCreate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).create_webhook(current_user.tenant_id, data)


@router.get("", response_model=List[WebhookResponse])
def list_webhooks(
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).list_webhooks(current_user.tenant_id)


@router.get("/deliveries/{delivery_id}", response_model=WebhookDeliveryDetail)
def get_delivery(
    delivery_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).get_delivery(current_user.tenant_id, delivery_id)


@router.post("/deliveries/{delivery_id}/retry", response_model=WebhookDeliveryResponse)
def retry_delivery(
    delivery_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    """Re-send a failed or exhausted delivery now"""
    return WebhookService(db).retry_delivery(current_user.tenant_id, delivery_id)


@router.get("/{webhook_id}", response_model=WebhookResponse)
def get_webhook(
    webhook_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).get_webhook(current_user.tenant_id, webhook_id)


@router.put("/{webhook_id}", response_model=WebhookResponse)
def update_webhook(
    webhook_id: str,
    data: WebhookUpdate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).update_webhook(current_user.tenant_id, webhook_id, data)


@router.delete("/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_webhook(
    webhook_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    WebhookService(db).delete_webhook(current_user.tenant_id, webhook_id)


@router.post("/{webhook_id}/activate", response_model=WebhookResponse)
def activate_webhook(
    webhook_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).set_active(current_user.tenant_id, webhook_id, True)


@router.post("/{webhook_id}/deactivate", response_model=WebhookResponse)
def deactivate_webhook(
    webhook_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).set_active(current_user.tenant_id, webhook_id, False)


@router.post("/{webhook_id}/regenerate-secret", response_model=WebhookSecretResponse)
def regenerate_secret(
    webhook_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).regenerate_secret(current_user.tenant_id, webhook_id)


@router.post("/{webhook_id}/test", response_model=WebhookDeliveryResponse)
def send_test_webhook(
    webhook_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    """Send a webhook.test event to this endpoint and return the delivery outcome"""
    return WebhookService(db).send_test_webhook(current_user.tenant_id, webhook_id)


@router.get("/{webhook_id}/deliveries", response_model=PaginatedResponse[WebhookDeliveryResponse])
def get_delivery_history(
    webhook_id: str,
    status: Optional[DeliveryStatus] = None,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).get_delivery_history(current_user.tenant_id, webhook_id, status, page, per_page)


@router.get("/{webhook_id}/stats", response_model=DeliveryStatsResponse)
def get_delivery_stats(
    webhook_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return WebhookService(db).get_delivery_stats(current_user.tenant_id, webhook_id)
