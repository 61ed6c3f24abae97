"""Job bodies. Each takes a session and returns a short summary for the log."""
from sqlalchemy.orm import Session

from config.settings import settings
from modules.attendance.service import AttendanceService
from modules.auth.service import AuthService
from modules.invoices.service import InvoiceService
from modules.memberships.service import MembershipService
from modules.webhooks.service import WebhookService


def expire_subscriptions(db: Session) -> dict:
    service = MembershipService(db)
    expired = service.expire_subscriptions()
    reminded = service.remind_expiring_subscriptions()
    return {"expired": len(expired), "reminded": reminded}


def mark_overdue_invoices(db: Session) -> dict:
    return {"overdue": len(InvoiceService(db).mark_overdue_invoices())}


def auto_checkout(db: Session) -> dict:
    return {"checked_out": AttendanceService(db).auto_checkout()}


def cleanup_tokens(db: Session) -> dict:
    return {"deleted": AuthService(db).cleanup_tokens()}


def dispatch_webhooks(db: Session) -> dict:
    service = WebhookService(db)
    return {
        "pending": service.process_pending_deliveries(settings.WEBHOOK_BATCH_SIZE),
        "retried": service.process_retries(settings.WEBHOOK_BATCH_SIZE),
    }
