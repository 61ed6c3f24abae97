from sqlalchemy import Column, DateTime, ForeignKey, func, String
from sqlalchemy import TypeDecorator
from sqlalchemy.orm import declared_attr
import uuid


class UUID(TypeDecorator):
    """Platform-independent UUID type.
    Uses String for SQLite compatibility.
    """
    impl = String
    cache_ok = True

    def __init__(self, length=36, *args, **kwargs):
        super().__init__(length, *args, **kwargs)

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        # Keep as string for simplicity
        return value


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamps"""
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)


class SoftDeleteMixin:
    """Mixin to add soft delete functionality"""
    deleted_at = Column(DateTime, nullable=True)

    @property
    def is_deleted(self):
        return self.deleted_at is not None


class UUIDMixin:
    """Mixin to add UUID primary key - works with both PostgreSQL and SQLite"""
    id = Column(UUID(), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)


class TenantMixin:
    """Mixin for club-scoped rows. Every query on these tables filters by tenant."""

    @declared_attr
    def tenant_id(cls):
        return Column(UUID(), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
