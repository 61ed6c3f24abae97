from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database.base import get_db
from modules.tenants.service import TenantService
from modules.tenants.models import TenantStatus, LocationStatus
from modules.tenants.schemas import (
    TenantCreate,
    TenantUpdate,
    TenantResponse,
    LocationCreate,
    LocationUpdate,
    LocationStatusUpdate,
    LocationResponse,
)
from modules.users.models import User
from shared.dependencies import get_platform_admin, get_club_admin, get_staff_user
from shared.schemas import PaginatedResponse

# Mounted at /platform/tenants
router = APIRouter()

# Mounted at /locations
locations_router = APIRouter()


# ============ Platform: tenants ============

@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
def create_tenant(
    data: TenantCreate,
    current_user: User = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    """
    Onboard a club and its first club admin.
    """
    return TenantService(db).create_tenant(data)


@router.get("", response_model=PaginatedResponse[TenantResponse])
def list_tenants(
    status: Optional[TenantStatus] = None,
    page: int = 1,
    per_page: int = 20,
    current_user: User = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).list_tenants(status, page, per_page)


@router.get("/{tenant_id}", response_model=TenantResponse)
def get_tenant(
    tenant_id: str,
    current_user: User = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).get_tenant(tenant_id)


@router.put("/{tenant_id}", response_model=TenantResponse)
def update_tenant(
    tenant_id: str,
    data: TenantUpdate,
    current_user: User = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).update_tenant(tenant_id, data)


@router.post("/{tenant_id}/suspend", response_model=TenantResponse)
def suspend_tenant(
    tenant_id: str,
    current_user: User = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).suspend_tenant(tenant_id)


@router.post("/{tenant_id}/reactivate", response_model=TenantResponse)
def reactivate_tenant(
    tenant_id: str,
    current_user: User = Depends(get_platform_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).reactivate_tenant(tenant_id)


# ============ Club: locations ============

@locations_router.post("", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
def create_location(
    data: LocationCreate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).create_location(current_user.tenant_id, data)


@locations_router.get("", response_model=List[LocationResponse])
def list_locations(
    status: Optional[LocationStatus] = None,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return TenantService(db).list_locations(current_user.tenant_id, status)


@locations_router.get("/{location_id}", response_model=LocationResponse)
def get_location(
    location_id: str,
    current_user: User = Depends(get_staff_user),
    db: Session = Depends(get_db)
):
    return TenantService(db).get_location(current_user.tenant_id, location_id)


@locations_router.put("/{location_id}", response_model=LocationResponse)
def update_location(
    location_id: str,
    data: LocationUpdate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).update_location(current_user.tenant_id, location_id, data)


@locations_router.put("/{location_id}/status", response_model=LocationResponse)
def set_location_status(
    location_id: str,
    data: LocationStatusUpdate,
    current_user: User = Depends(get_club_admin),
    db: Session = Depends(get_db)
):
    return TenantService(db).set_location_status(current_user.tenant_id, location_id, data.status)
