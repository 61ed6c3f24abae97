from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from datetime import date
from decimal import Decimal
import logging

from modules.invoices.models import Invoice, InvoiceLineItem, InvoiceSequence, InvoiceStatus
from modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, RecordPaymentRequest, LineItemCreate
from modules.invoices.pdf_generator import InvoicePDFGenerator
from modules.members.models import Member
from modules.tenants.models import Tenant
from modules.notifications.service import NotificationService
from modules.webhooks.models import WebhookEventType
from modules.webhooks.service import publish_event
from shared.exceptions import NotFoundException, InvalidStateException
from shared.utils import generate_unique_number, round_money, to_decimal, paginate, enum_value
from shared.validators import validate_currency
from config.settings import settings

logger = logging.getLogger(__name__)


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db

    # ============ Numbering ============

    def next_invoice_number(self, tenant_id: str, year: Optional[int] = None) -> str:
        """Take the next number from the tenant's sequence row, locked for the rest of the transaction"""
        year = year or date.today().year
        sequence = self.db.query(InvoiceSequence).filter(
            InvoiceSequence.tenant_id == tenant_id,
            InvoiceSequence.year == year
        ).with_for_update().first()

        if not sequence:
            sequence = InvoiceSequence(tenant_id=tenant_id, year=year, last_sequence=0)
            self.db.add(sequence)

        sequence.last_sequence = (sequence.last_sequence or 0) + 1
        self.db.flush()
        return generate_unique_number("INV", year, sequence.last_sequence)

    # ============ Create / read ============

    def _get_member(self, tenant_id: str, member_id: str) -> Member:
        member = self.db.query(Member).filter(
            Member.id == member_id,
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        ).first()
        if not member:
            raise NotFoundException("Member not found")
        return member

    def _build_invoice(
        self,
        tenant_id: str,
        member_id: str,
        line_items: List[LineItemCreate],
        discount_amount: Decimal = Decimal("0"),
        vat_rate: Optional[float] = None,
        currency: Optional[str] = None,
        subscription_id: Optional[str] = None,
        due_date: Optional[date] = None,
        notes: Optional[str] = None
    ) -> Invoice:
        self._get_member(tenant_id, member_id)
        tenant = self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

        invoice = Invoice(
            tenant_id=tenant_id,
            member_id=member_id,
            subscription_id=subscription_id,
            invoice_number=self.next_invoice_number(tenant_id),
            status=InvoiceStatus.DRAFT,
            discount_amount=round_money(discount_amount),
            vat_rate=vat_rate if vat_rate is not None else (tenant.vat_rate if tenant else settings.DEFAULT_VAT_RATE),
            currency=validate_currency(currency or (tenant.currency if tenant else None)),
            paid_amount=Decimal("0.00"),
            due_date=due_date,
            notes=notes,
        )
        for position, item in enumerate(line_items):
            invoice.line_items.append(InvoiceLineItem(
                position=position,
                description=item.description,
                quantity=item.quantity,
                unit_price=round_money(item.unit_price),
                line_total=round_money(to_decimal(item.unit_price) * item.quantity),
            ))
        invoice.recalculate_totals()
        self.db.add(invoice)
        return invoice

    def create_invoice(self, tenant_id: str, data: InvoiceCreate) -> Invoice:
        invoice = self._build_invoice(
            tenant_id,
            data.member_id,
            data.line_items,
            discount_amount=data.discount_amount,
            vat_rate=data.vat_rate,
            currency=data.currency,
            subscription_id=data.subscription_id,
            due_date=data.due_date,
            notes=data.notes,
        )
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"✅ Invoice created: {invoice.invoice_number} ({invoice.total_amount} {invoice.currency})")
        return invoice

    def create_subscription_invoice(
        self,
        subscription,
        plan,
        discount_amount: Decimal = Decimal("0"),
        commit: bool = True
    ) -> Invoice:
        """Draft and issue the invoice for a new or renewed paid subscription.

        With commit=False the invoice is flushed into the caller's transaction and
        the caller runs after_issue once it commits.
        """
        invoice = self._build_invoice(
            subscription.tenant_id,
            subscription.member_id,
            [LineItemCreate(description=f"{plan.name} membership ({plan.duration_days} days)", quantity=1,
                            unit_price=plan.price)],
            discount_amount=discount_amount,
            currency=plan.currency,
            subscription_id=subscription.id,
        )
        invoice.issue(settings.INVOICE_PAYMENT_DUE_DAYS)
        if not commit:
            self.db.flush()
            return invoice

        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"✅ Subscription invoice issued: {invoice.invoice_number}")
        self.after_issue(invoice)
        return invoice

    def get_invoice(self, tenant_id: str, invoice_id: str) -> Invoice:
        invoice = self.db.query(Invoice).filter(
            Invoice.id == invoice_id,
            Invoice.tenant_id == tenant_id
        ).first()
        if not invoice:
            raise NotFoundException("Invoice not found")
        return invoice

    def list_invoices(
        self,
        tenant_id: str,
        status: Optional[InvoiceStatus] = None,
        member_id: Optional[str] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> dict:
        query = self.db.query(Invoice).filter(Invoice.tenant_id == tenant_id)
        if status:
            query = query.filter(Invoice.status == status)
        if member_id:
            query = query.filter(Invoice.member_id == member_id)
        return paginate(query.order_by(Invoice.created_at.desc()), page, per_page)

    def update_invoice(self, tenant_id: str, invoice_id: str, data: InvoiceUpdate) -> Invoice:
        invoice = self.get_invoice(tenant_id, invoice_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(invoice, key, value)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    # ============ Transitions ============

    def issue_invoice(self, tenant_id: str, invoice_id: str) -> Invoice:
        invoice = self.get_invoice(tenant_id, invoice_id)
        invoice.issue(settings.INVOICE_PAYMENT_DUE_DAYS)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"✅ Invoice issued: {invoice.invoice_number}")
        self.after_issue(invoice)
        return invoice

    def after_issue(self, invoice: Invoice):
        try:
            NotificationService(self.db).notify_invoice_issued(invoice)
        except Exception as e:
            logger.warning(f"Failed to create invoice notification: {e}")
        publish_event(self.db, invoice.tenant_id, WebhookEventType.INVOICE_ISSUED, self._event_data(invoice))

    def record_payment(self, tenant_id: str, invoice_id: str, data: RecordPaymentRequest) -> Invoice:
        invoice = self.get_invoice(tenant_id, invoice_id)
        invoice.record_payment(data.amount, data.payment_method, data.payment_reference)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(
            f"✅ Payment of {data.amount} recorded on {invoice.invoice_number} "
            f"({enum_value(invoice.status)}, balance {invoice.balance_due})"
        )

        try:
            from modules.loyalty.service import LoyaltyService
            LoyaltyService(self.db).award_payment_points(tenant_id, invoice.member_id, data.amount, invoice.id)
        except Exception as e:
            logger.error(f"❌ Failed to award payment points: {e}")

        if invoice.status == InvoiceStatus.PAID:
            self._after_paid(invoice)
        return invoice

    def _after_paid(self, invoice: Invoice):
        if invoice.subscription_id:
            from modules.memberships.service import MembershipService
            MembershipService(self.db).activate_paid_subscription(invoice)

        try:
            NotificationService(self.db).notify_invoice_paid(invoice)
        except Exception as e:
            logger.warning(f"Failed to create payment notification: {e}")
        publish_event(self.db, invoice.tenant_id, WebhookEventType.INVOICE_PAID, self._event_data(invoice))

    def cancel_invoice(self, tenant_id: str, invoice_id: str) -> Invoice:
        invoice = self.get_invoice(tenant_id, invoice_id)
        invoice.cancel()
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Invoice cancelled: {invoice.invoice_number}")
        publish_event(self.db, invoice.tenant_id, WebhookEventType.INVOICE_CANCELLED, self._event_data(invoice))
        return invoice

    def delete_invoice(self, tenant_id: str, invoice_id: str):
        invoice = self.get_invoice(tenant_id, invoice_id)
        if not invoice.can_delete:
            raise InvalidStateException("Only draft or cancelled invoices can be deleted")
        self.db.delete(invoice)
        self.db.commit()
        logger.info(f"Invoice deleted: {invoice.invoice_number}")

    def mark_overdue_invoices(self, today: Optional[date] = None) -> List[Invoice]:
        """Flag every issued or partially paid invoice past its due date, across all tenants"""
        today = today or date.today()
        candidates = self.db.query(Invoice).filter(
            Invoice.status.in_([InvoiceStatus.ISSUED, InvoiceStatus.PARTIALLY_PAID]),
            Invoice.due_date < today
        ).all()
        overdue = [invoice for invoice in candidates if invoice.mark_overdue(today)]
        self.db.commit()

        for invoice in overdue:
            try:
                NotificationService(self.db).notify_invoice_overdue(invoice)
            except Exception as e:
                logger.warning(f"Failed to create overdue notification: {e}")
            publish_event(self.db, invoice.tenant_id, WebhookEventType.INVOICE_OVERDUE, self._event_data(invoice))

        if overdue:
            logger.info(f"⏰ Marked {len(overdue)} invoice(s) overdue")
        return overdue

    # ============ PDF ============

    def get_invoice_data(self, invoice: Invoice) -> Dict[str, Any]:
        """
        Get all data needed for invoice generation.
        """
        tenant = self.db.query(Tenant).filter(Tenant.id == invoice.tenant_id).first()
        member = invoice.member

        return {
            'invoice_number': invoice.invoice_number,
            'status': enum_value(invoice.status),
            'club_name': tenant.name if tenant else settings.APP_NAME,
            'club_email': tenant.contact_email if tenant else None,
            'issue_date': invoice.issue_date.isoformat() if invoice.issue_date else None,
            'due_date': invoice.due_date.isoformat() if invoice.due_date else None,
            'paid_at': invoice.paid_at.strftime('%Y-%m-%d %H:%M') if invoice.paid_at else None,
            'subtotal': float(invoice.subtotal),
            'discount_amount': float(invoice.discount_amount or 0),
            'vat_rate': invoice.vat_rate,
            'vat_amount': float(invoice.vat_amount),
            'total_amount': float(invoice.total_amount),
            'paid_amount': float(invoice.paid_amount or 0),
            'balance_due': float(invoice.balance_due),
            'currency': invoice.currency,
            'notes': invoice.notes,
            'member': {
                'name': member.full_name if member else 'N/A',
                'email': member.email if member else 'N/A',
                'phone': member.phone if member else None,
            },
            'items': [
                {
                    'description': item.description,
                    'quantity': item.quantity,
                    'unit_price': float(item.unit_price),
                    'total_price': float(item.line_total),
                }
                for item in invoice.line_items
            ],
        }

    def generate_invoice_pdf(self, tenant_id: str, invoice_id: str) -> bytes:
        invoice = self.get_invoice(tenant_id, invoice_id)
        pdf_bytes = InvoicePDFGenerator().generate_invoice_pdf(self.get_invoice_data(invoice))
        logger.info(f"✅ Invoice PDF generated: {invoice.invoice_number}")
        return pdf_bytes

    def _event_data(self, invoice: Invoice) -> Dict[str, Any]:
        return {
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "member_id": str(invoice.member_id),
            "subscription_id": str(invoice.subscription_id) if invoice.subscription_id else None,
            "status": enum_value(invoice.status),
            "total_amount": str(invoice.total_amount),
            "paid_amount": str(invoice.paid_amount),
            "currency": invoice.currency,
        }
