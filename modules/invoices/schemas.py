from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from modules.invoices.models import InvoiceStatus, PaymentMethod


class LineItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(..., ge=0)


class InvoiceCreate(BaseModel):
    member_id: str
    subscription_id: Optional[str] = None
    line_items: List[LineItemCreate] = Field(..., min_length=1)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    vat_rate: Optional[float] = Field(None, ge=0, le=100)
    currency: Optional[str] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    notes: Optional[str] = None


class RecordPaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_reference: Optional[str] = Field(None, max_length=255)


class LineItemResponse(BaseModel):
    id: str
    description: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    member_id: str
    subscription_id: Optional[str] = None
    status: InvoiceStatus
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Decimal
    discount_amount: Decimal
    vat_rate: float
    vat_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    currency: str
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    line_items: List[LineItemResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
