from dataclasses import dataclass
from typing import Dict, Optional
import logging
import requests

from config.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    success: bool
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None


class WebhookHttpClient:
    """POSTs signed webhook payloads to subscriber endpoints"""

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout or settings.WEBHOOK_TIMEOUT_SECONDS

    def send(self, url: str, body: str, headers: Dict[str, str]) -> DeliveryResult:
        try:
            response = requests.post(
                url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "application/json", **headers},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning(f"⚠️ Webhook timed out: {url}")
            return DeliveryResult(success=False, error=f"Timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            logger.warning(f"⚠️ Webhook request failed: {url} ({e})")
            return DeliveryResult(success=False, error=str(e))

        body_text = (response.text or "")[:settings.WEBHOOK_RESPONSE_BODY_LIMIT]
        if 200 <= response.status_code < 300:
            return DeliveryResult(success=True, status_code=response.status_code, response_body=body_text)

        return DeliveryResult(
            success=False,
            status_code=response.status_code,
            response_body=body_text,
            error=f"HTTP {response.status_code}",
        )
