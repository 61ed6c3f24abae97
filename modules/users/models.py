from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Enum as SQLEnum
import enum
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, UUID


class UserRole(str, enum.Enum):
    PLATFORM_ADMIN = "PLATFORM_ADMIN"
    CLUB_ADMIN = "CLUB_ADMIN"
    STAFF = "STAFF"
    TRAINER = "TRAINER"
    MEMBER = "MEMBER"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


STAFF_ROLES = [UserRole.CLUB_ADMIN, UserRole.STAFF, UserRole.TRAINER]


class User(Base, UUIDMixin, TimestampMixin):
    """Login account. Platform admins have no tenant; member portal users point at a member."""
    __tablename__ = "users"

    tenant_id = Column(UUID(), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.STAFF, index=True)
    status = Column(SQLEnum(UserStatus), nullable=False, default=UserStatus.ACTIVE, index=True)
    member_id = Column(UUID(), ForeignKey('members.id', ondelete='SET NULL'), nullable=True, unique=True)
    last_login_at = Column(DateTime, nullable=True)
    login_count = Column(Integer, default=0)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User {self.email}>"
