from sqlalchemy import Column, String, Float, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, TenantMixin


class TenantStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class LocationStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    TEMPORARILY_CLOSED = "TEMPORARILY_CLOSED"
    PERMANENTLY_CLOSED = "PERMANENTLY_CLOSED"


class Tenant(Base, UUIDMixin, TimestampMixin):
    """A club subscribed to the platform. Everything else hangs off a tenant."""
    __tablename__ = "tenants"

    name = Column(String(200), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    status = Column(SQLEnum(TenantStatus), nullable=False, default=TenantStatus.ACTIVE, index=True)
    currency = Column(String(3), nullable=False, default="SAR")
    vat_rate = Column(Float, nullable=False, default=15.0)
    timezone = Column(String(64), nullable=False, default="Asia/Riyadh")
    contact_email = Column(String(255), nullable=True)

    locations = relationship("Location", back_populates="tenant", cascade="all, delete-orphan")

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE

    def __repr__(self):
        return f"<Tenant {self.slug}>"


class Location(Base, UUIDMixin, TimestampMixin, TenantMixin):
    __tablename__ = "locations"

    name = Column(String(200), nullable=False)
    address = Column(String(500), nullable=True)
    status = Column(SQLEnum(LocationStatus), nullable=False, default=LocationStatus.ACTIVE, index=True)

    tenant = relationship("Tenant", back_populates="locations")

    @property
    def is_active(self) -> bool:
        return self.status == LocationStatus.ACTIVE

    def __repr__(self):
        return f"<Location {self.name} ({self.status})>"
