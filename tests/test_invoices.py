"""Invoice totals, numbering, payments and the overdue job"""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from modules.invoices.models import Invoice, InvoiceStatus, PaymentMethod
from modules.invoices.schemas import InvoiceCreate, LineItemCreate, RecordPaymentRequest
from modules.invoices.service import InvoiceService
from modules.loyalty.models import MemberPoints
from shared.exceptions import BadRequestException, InvalidStateException, NotFoundException


def _create(db, tenant, member, lines=None, **kwargs):
    lines = lines or [LineItemCreate(description="Monthly membership", unit_price=Decimal("300.00"))]
    return InvoiceService(db).create_invoice(tenant.id, InvoiceCreate(member_id=member.id, line_items=lines, **kwargs))


def _issued(db, tenant, member, **kwargs):
    invoice = _create(db, tenant, member, **kwargs)
    return InvoiceService(db).issue_invoice(tenant.id, invoice.id)


class TestTotals:
    def test_vat_applies_to_discounted_subtotal(self, db, tenant, member):
        invoice = _create(db, tenant, member, lines=[
            LineItemCreate(description="Personal training", quantity=3, unit_price=Decimal("150.00")),
            LineItemCreate(description="Locker", unit_price=Decimal("49.99")),
        ], discount_amount=Decimal("50.00"))

        assert invoice.subtotal == Decimal("499.99")
        assert invoice.discount_amount == Decimal("50.00")
        assert invoice.vat_amount == Decimal("67.50")
        assert invoice.total_amount == Decimal("517.49")
        assert invoice.status == InvoiceStatus.DRAFT
        assert [item.line_total for item in invoice.line_items] == [Decimal("450.00"), Decimal("49.99")]

    def test_vat_rounds_half_up(self, db, tenant, member):
        invoice = _create(db, tenant, member, lines=[
            LineItemCreate(description="Protein bar", unit_price=Decimal("0.10")),
        ], vat_rate=5.0)

        # 0.10 * 5% = 0.005
        assert invoice.vat_amount == Decimal("0.01")
        assert invoice.total_amount == Decimal("0.11")

    def test_discount_is_capped_at_subtotal(self, db, tenant, member):
        invoice = _create(db, tenant, member, discount_amount=Decimal("999.00"))

        assert invoice.discount_amount == Decimal("300.00")
        assert invoice.total_amount == Decimal("0.00")

    def test_tenant_vat_rate_is_the_default(self, db, tenant, member):
        tenant.vat_rate = 5.0
        db.commit()

        invoice = _create(db, tenant, member)
        assert invoice.vat_rate == 5.0
        assert invoice.total_amount == Decimal("315.00")

    def test_unknown_member(self, db, tenant, other_tenant, make_member):
        outsider = make_member(tenant_id=other_tenant.id)
        with pytest.raises(NotFoundException):
            _create(db, tenant, outsider)


class TestNumbering:
    def test_numbers_are_sequential_per_tenant(self, db, tenant, other_tenant, member, make_member):
        year = date.today().year
        first = _create(db, tenant, member)
        second = _create(db, tenant, member)
        foreign = _create(db, other_tenant, make_member(tenant_id=other_tenant.id))

        assert first.invoice_number == f"INV-{year}-000001"
        assert second.invoice_number == f"INV-{year}-000002"
        assert foreign.invoice_number == f"INV-{year}-000001"

    def test_sequence_restarts_each_year(self, db, tenant):
        service = InvoiceService(db)
        assert service.next_invoice_number(tenant.id, 2025) == "INV-2025-000001"
        assert service.next_invoice_number(tenant.id, 2025) == "INV-2025-000002"
        assert service.next_invoice_number(tenant.id, 2026) == "INV-2026-000001"


class TestTransitions:
    def test_issue_sets_dates(self, db, tenant, member):
        invoice = _issued(db, tenant, member)

        assert invoice.status == InvoiceStatus.ISSUED
        assert invoice.issue_date == date.today()
        assert invoice.due_date == date.today() + timedelta(days=7)

    def test_issue_only_drafts(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        with pytest.raises(InvalidStateException):
            InvoiceService(db).issue_invoice(tenant.id, invoice.id)

    def test_draft_cannot_be_paid(self, db, tenant, member):
        invoice = _create(db, tenant, member)
        with pytest.raises(InvalidStateException):
            InvoiceService(db).record_payment(tenant.id, invoice.id, RecordPaymentRequest(amount=Decimal("10")))

    def test_partial_then_full_payment(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        service = InvoiceService(db)

        invoice = service.record_payment(tenant.id, invoice.id, RecordPaymentRequest(
            amount=Decimal("100.00"), payment_method=PaymentMethod.CARD, payment_reference="POS-1"
        ))
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID
        assert invoice.balance_due == Decimal("245.00")
        assert invoice.paid_at is None

        invoice = service.record_payment(tenant.id, invoice.id, RecordPaymentRequest(amount=Decimal("245.00")))
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.balance_due == Decimal("0.00")
        assert invoice.paid_at is not None

    def test_overpayment_is_rejected(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        with pytest.raises(BadRequestException):
            InvoiceService(db).record_payment(tenant.id, invoice.id, RecordPaymentRequest(amount=Decimal("345.01")))

    def test_payment_awards_loyalty_points(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        InvoiceService(db).record_payment(tenant.id, invoice.id, RecordPaymentRequest(amount=Decimal("99.90")))

        balance = db.query(MemberPoints).filter(MemberPoints.member_id == member.id).one()
        assert balance.current_balance == 99

    def test_paid_invoice_cannot_be_cancelled(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        service = InvoiceService(db)
        service.record_payment(tenant.id, invoice.id, RecordPaymentRequest(amount=Decimal("345.00")))

        with pytest.raises(InvalidStateException):
            service.cancel_invoice(tenant.id, invoice.id)

    def test_only_draft_or_cancelled_can_be_deleted(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        service = InvoiceService(db)

        with pytest.raises(InvalidStateException):
            service.delete_invoice(tenant.id, invoice.id)

        service.cancel_invoice(tenant.id, invoice.id)
        service.delete_invoice(tenant.id, invoice.id)
        assert db.query(Invoice).count() == 0


class TestOverdueJob:
    def test_marks_past_due_invoices(self, db, tenant, member):
        past_due = _issued(db, tenant, member)
        partly_paid = _issued(db, tenant, member)
        InvoiceService(db).record_payment(tenant.id, partly_paid.id, RecordPaymentRequest(amount=Decimal("5")))
        draft = _create(db, tenant, member)
        later = date.today() + timedelta(days=8)

        overdue = InvoiceService(db).mark_overdue_invoices(today=later)

        assert {invoice.id for invoice in overdue} == {past_due.id, partly_paid.id}
        db.refresh(draft)
        assert draft.status == InvoiceStatus.DRAFT

    def test_not_yet_due(self, db, tenant, member):
        _issued(db, tenant, member)
        assert InvoiceService(db).mark_overdue_invoices(today=date.today() + timedelta(days=7)) == []

    def test_overdue_invoice_can_still_be_paid(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        InvoiceService(db).mark_overdue_invoices(today=date.today() + timedelta(days=30))

        invoice = InvoiceService(db).record_payment(tenant.id, invoice.id, RecordPaymentRequest(amount=Decimal("345.00")))
        assert invoice.status == InvoiceStatus.PAID


class TestPdf:
    def test_pdf_renders(self, db, tenant, member):
        invoice = _issued(db, tenant, member)
        pdf = InvoiceService(db).generate_invoice_pdf(tenant.id, invoice.id)
        assert pdf.startswith(b"%PDF")
