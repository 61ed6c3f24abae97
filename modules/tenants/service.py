from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from modules.tenants.models import Tenant, TenantStatus, Location, LocationStatus
from modules.tenants.schemas import TenantCreate, TenantUpdate, LocationCreate, LocationUpdate
from modules.users.models import User, UserRole, UserStatus
from config.settings import settings
from shared.exceptions import NotFoundException, DuplicateResourceException, InvalidStateException
from shared.utils import hash_password, paginate
from shared.validators import validate_currency

logger = logging.getLogger(__name__)


class TenantService:
    def __init__(self, db: Session):
        self.db = db

    # ============ Tenants (platform) ============

    def create_tenant(self, data: TenantCreate) -> Tenant:
        """Create a club together with its first CLUB_ADMIN login"""
        if self.db.query(Tenant).filter(Tenant.slug == data.slug).first():
            raise DuplicateResourceException(f"Tenant slug '{data.slug}' is already taken")
        admin_email = data.admin.email.lower()
        if self.db.query(User).filter(User.email == admin_email).first():
            raise DuplicateResourceException("Email already registered")

        tenant = Tenant(
            name=data.name,
            slug=data.slug,
            status=TenantStatus.ACTIVE,
            currency=validate_currency(data.currency),
            vat_rate=data.vat_rate if data.vat_rate is not None else settings.DEFAULT_VAT_RATE,
            timezone=data.timezone,
            contact_email=data.contact_email,
        )
        self.db.add(tenant)
        self.db.flush()

        self.db.add(User(
            tenant_id=tenant.id,
            email=admin_email,
            password_hash=hash_password(data.admin.password),
            first_name=data.admin.first_name,
            last_name=data.admin.last_name,
            role=UserRole.CLUB_ADMIN,
            status=UserStatus.ACTIVE,
        ))
        self.db.commit()
        self.db.refresh(tenant)

        logger.info(f"✅ Tenant created: {tenant.slug} (admin {admin_email})")
        return tenant

    def get_tenant(self, tenant_id: str) -> Tenant:
        tenant = self.db.query(Tenant).filter(Tenant.id == tenant_id).first()
        if not tenant:
            raise NotFoundException("Tenant not found")
        return tenant

    def list_tenants(self, status: Optional[TenantStatus] = None, page: int = 1, per_page: Optional[int] = None) -> dict:
        query = self.db.query(Tenant)
        if status:
            query = query.filter(Tenant.status == status)
        return paginate(query.order_by(Tenant.created_at.desc()), page, per_page)

    def update_tenant(self, tenant_id: str, data: TenantUpdate) -> Tenant:
        tenant = self.get_tenant(tenant_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(tenant, key, value)
        self.db.commit()
        self.db.refresh(tenant)
        return tenant

    def suspend_tenant(self, tenant_id: str) -> Tenant:
        tenant = self.get_tenant(tenant_id)
        if tenant.status == TenantStatus.SUSPENDED:
            raise InvalidStateException("Tenant is already suspended")
        tenant.status = TenantStatus.SUSPENDED
        self.db.commit()
        self.db.refresh(tenant)
        logger.warning(f"⚠️ Tenant suspended: {tenant.slug}")
        return tenant

    def reactivate_tenant(self, tenant_id: str) -> Tenant:
        tenant = self.get_tenant(tenant_id)
        if tenant.status == TenantStatus.ACTIVE:
            raise InvalidStateException("Tenant is already active")
        tenant.status = TenantStatus.ACTIVE
        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"✅ Tenant reactivated: {tenant.slug}")
        return tenant

    # ============ Locations (club) ============

    def create_location(self, tenant_id: str, data: LocationCreate) -> Location:
        location = Location(tenant_id=tenant_id, name=data.name, address=data.address, status=LocationStatus.ACTIVE)
        self.db.add(location)
        self.db.commit()
        self.db.refresh(location)
        logger.info(f"✅ Location created: {location.name}")
        return location

    def get_location(self, tenant_id: str, location_id: str) -> Location:
        location = self.db.query(Location).filter(
            Location.id == location_id,
            Location.tenant_id == tenant_id
        ).first()
        if not location:
            raise NotFoundException("Location not found")
        return location

    def list_locations(self, tenant_id: str, status: Optional[LocationStatus] = None) -> List[Location]:
        query = self.db.query(Location).filter(Location.tenant_id == tenant_id)
        if status:
            query = query.filter(Location.status == status)
        return query.order_by(Location.name.asc()).all()

    def update_location(self, tenant_id: str, location_id: str, data: LocationUpdate) -> Location:
        location = self.get_location(tenant_id, location_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(location, key, value)
        self.db.commit()
        self.db.refresh(location)
        return location

    def set_location_status(self, tenant_id: str, location_id: str, status: LocationStatus) -> Location:
        location = self.get_location(tenant_id, location_id)
        if location.status == LocationStatus.PERMANENTLY_CLOSED:
            raise InvalidStateException("Location is permanently closed")
        location.status = status
        self.db.commit()
        self.db.refresh(location)
        logger.info(f"Location {location.name} is now {status.value}")
        return location
