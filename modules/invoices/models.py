from sqlalchemy import Column, String, Integer, Date, DateTime, Numeric, ForeignKey, Text, Float, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin, UUID
from shared.exceptions import InvalidStateException, BadRequestException
from shared.utils import round_money, to_decimal, calculate_tax, utcnow


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    ONLINE = "ONLINE"
    OTHER = "OTHER"


PAYABLE_STATUSES = [InvoiceStatus.ISSUED, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE]


class InvoiceSequence(Base):
    """Per-tenant invoice counter. Rows are locked while the next number is taken."""
    __tablename__ = "invoice_sequences"

    tenant_id = Column(UUID(), ForeignKey('tenants.id', ondelete='CASCADE'), primary_key=True)
    year = Column(Integer, primary_key=True)
    last_sequence = Column(Integer, nullable=False, default=0)


class Invoice(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
    )

    member_id = Column(UUID(), ForeignKey('members.id', ondelete='CASCADE'), nullable=False, index=True)
    subscription_id = Column(UUID(), ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True, index=True)
    invoice_number = Column(String(50), nullable=False, index=True)
    status = Column(SQLEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT, index=True)

    issue_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True, index=True)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    vat_rate = Column(Float, nullable=False, default=15.0)
    vat_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="SAR")

    payment_method = Column(SQLEnum(PaymentMethod), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
    )
    member = relationship("Member")
    subscription = relationship("Subscription")

    @property
    def balance_due(self) -> Decimal:
        return round_money(to_decimal(self.total_amount) - to_decimal(self.paid_amount))

    def recalculate_totals(self):
        """Subtotal from the lines, VAT on the discounted subtotal"""
        subtotal = sum((to_decimal(item.line_total) for item in self.line_items), Decimal("0"))
        discount = min(round_money(self.discount_amount), round_money(subtotal))
        taxable = subtotal - discount
        self.subtotal = round_money(subtotal)
        self.discount_amount = discount
        self.vat_amount = calculate_tax(taxable, self.vat_rate or 0)
        self.total_amount = round_money(taxable + self.vat_amount)

    def issue(self, payment_due_days: int, today: Optional[date] = None):
        if self.status != InvoiceStatus.DRAFT:
            raise InvalidStateException("Only draft invoices can be issued")
        today = today or date.today()
        self.status = InvoiceStatus.ISSUED
        self.issue_date = today
        if self.due_date is None:
            self.due_date = today + timedelta(days=payment_due_days)

    def record_payment(self, amount, method: Optional["PaymentMethod"] = None, reference: Optional[str] = None):
        if self.status not in PAYABLE_STATUSES:
            raise InvalidStateException(f"Cannot record payment for invoice in status: {self.status.value}")
        amount = round_money(amount)
        if amount <= 0:
            raise BadRequestException("Payment amount must be positive")
        if amount > self.balance_due:
            raise BadRequestException(f"Payment amount exceeds balance due ({self.balance_due})")

        self.paid_amount = round_money(to_decimal(self.paid_amount) + amount)
        self.payment_method = method
        if reference:
            self.payment_reference = reference
        if self.balance_due <= 0:
            self.status = InvoiceStatus.PAID
            self.paid_at = utcnow()
        else:
            self.status = InvoiceStatus.PARTIALLY_PAID

    def cancel(self):
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise InvalidStateException(f"Cannot cancel invoice in status: {self.status.value}")
        self.status = InvoiceStatus.CANCELLED

    def mark_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        if self.status in (InvoiceStatus.ISSUED, InvoiceStatus.PARTIALLY_PAID) and self.due_date and self.due_date < today:
            self.status = InvoiceStatus.OVERDUE
            return True
        return False

    @property
    def can_delete(self) -> bool:
        return self.status in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)

    def __repr__(self):
        return f"<Invoice {self.invoice_number} ({self.status})>"


class InvoiceLineItem(Base, UUIDMixin):
    __tablename__ = "invoice_line_items"

    invoice_id = Column(UUID(), ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(500), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")
