from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional

from database.base import get_db
from modules.invoices.service import InvoiceService
from modules.invoices.models import InvoiceStatus
from modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, RecordPaymentRequest, InvoiceResponse
from modules.users.models import User
from shared.dependencies import get_staff_user, get_club_admin, get_member_user
from shared.exceptions import NotFoundException
from shared.schemas import PaginatedResponse

router = APIRouter()


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(
    data: InvoiceCreate,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Create a draft invoice with at least one line item.
    """
    return InvoiceService(db).create_invoice(current_user.tenant_id, data)


@router.get("", response_model=PaginatedResponse[InvoiceResponse])
def list_invoices(
    status: Optional[InvoiceStatus] = None,
    member_id: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).list_invoices(current_user.tenant_id, status, member_id, page, per_page)


@router.get("/me", response_model=PaginatedResponse[InvoiceResponse])
def list_my_invoices(
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).list_invoices(current_user.tenant_id, None, current_user.member_id, page, per_page)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).get_invoice(current_user.tenant_id, invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: str,
    data: InvoiceUpdate,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).update_invoice(current_user.tenant_id, invoice_id, data)


@router.post("/{invoice_id}/issue", response_model=InvoiceResponse)
def issue_invoice(
    invoice_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).issue_invoice(current_user.tenant_id, invoice_id)


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
def record_payment(
    invoice_id: str,
    data: RecordPaymentRequest,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    """
    Record a full or partial payment. A fully paid subscription invoice activates the subscription.
    """
    return InvoiceService(db).record_payment(current_user.tenant_id, invoice_id, data)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
def cancel_invoice(
    invoice_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).cancel_invoice(current_user.tenant_id, invoice_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: str,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    InvoiceService(db).delete_invoice(current_user.tenant_id, invoice_id)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(
    invoice_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    service = InvoiceService(db)
    invoice = service.get_invoice(current_user.tenant_id, invoice_id)
    pdf_bytes = service.generate_invoice_pdf(current_user.tenant_id, invoice_id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'}
    )


@router.get("/me/{invoice_id}/pdf")
def download_my_invoice_pdf(
    invoice_id: str,
    current_user: User = Depends(get_member_user),
    db: Session = Depends(get_db)
):
    service = InvoiceService(db)
    invoice = service.get_invoice(current_user.tenant_id, invoice_id)
    if invoice.member_id != current_user.member_id:
        raise NotFoundException("Invoice not found")
    pdf_bytes = service.generate_invoice_pdf(current_user.tenant_id, invoice_id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'}
    )
