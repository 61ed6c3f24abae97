from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from modules.tenants.models import TenantStatus, LocationStatus


# ============ Tenants ============
class ClubAdminCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    slug: str = Field(..., min_length=2, max_length=100, pattern="^[a-z0-9-]+$")
    currency: Optional[str] = None
    vat_rate: Optional[float] = Field(None, ge=0, le=100)
    timezone: str = "Asia/Riyadh"
    contact_email: Optional[EmailStr] = None
    admin: ClubAdminCreate


class TenantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    vat_rate: Optional[float] = Field(None, ge=0, le=100)
    timezone: Optional[str] = None
    contact_email: Optional[EmailStr] = None


class TenantResponse(BaseModel):
    id: str
    name: str
    slug: str
    status: TenantStatus
    currency: str
    vat_rate: float
    timezone: str
    contact_email: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============ Locations ============
class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)


class LocationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)


class LocationStatusUpdate(BaseModel):
    status: LocationStatus


class LocationResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    address: Optional[str] = None
    status: LocationStatus
    created_at: datetime

    class Config:
        from_attributes = True
