from pydantic import BaseModel, Field, HttpUrl
from typing import Optional, List
from datetime import datetime

from modules.webhooks.models import DeliveryStatus


class WebhookCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    url: HttpUrl
    events: List[str] = Field(..., min_length=1)
    secret: Optional[str] = Field(None, min_length=16, max_length=255)
    description: Optional[str] = None


class WebhookUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    url: Optional[HttpUrl] = None
    events: Optional[List[str]] = Field(None, min_length=1)
    description: Optional[str] = None


class WebhookResponse(BaseModel):
    id: str
    name: str
    url: str
    events: List[str]
    is_active: bool
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WebhookSecretResponse(WebhookResponse):
    """Only returned on create and secret rotation"""
    secret: str


class WebhookDeliveryResponse(BaseModel):
    id: str
    webhook_id: Optional[str] = None
    event_type: str
    event_id: str
    status: DeliveryStatus
    attempt_count: int
    max_attempts: int
    next_retry_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    last_response_code: Optional[int] = None
    last_response_body: Optional[str] = None
    last_error: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WebhookDeliveryDetail(WebhookDeliveryResponse):
    payload: str


class DeliveryStatsResponse(BaseModel):
    total: int
    delivered: int
    pending: int
    failed: int
    exhausted: int
