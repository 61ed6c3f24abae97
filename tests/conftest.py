"""
Shared fixtures: an in-memory SQLite database, a TestClient wired to it, and
a small club (tenant, location, plan, members, users) to test against.
"""
import os
from datetime import date, timedelta
from decimal import Decimal

# Settings are read at import time, so the environment comes first
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-test-suite")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base, get_db
import modules  # noqa: F401
import jobs.models  # noqa: F401
from modules.tenants.models import Tenant, Location, TenantStatus, LocationStatus
from modules.members.models import Member, MemberStatus
from modules.users.models import User, UserRole, UserStatus
from modules.memberships.models import MembershipPlan, Subscription, SubscriptionStatus
from modules.auth.service import AuthService
from shared.utils import hash_password

PASSWORD = "Secret123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope="session")
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def db(engine):
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from server import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ============ Club ============

@pytest.fixture
def tenant(db):
    tenant = Tenant(name="Iron Temple", slug="iron-temple", status=TenantStatus.ACTIVE,
                    currency="SAR", vat_rate=15.0, contact_email="hello@irontemple.example.com")
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(db):
    tenant = Tenant(name="Pulse Fitness", slug="pulse-fitness", status=TenantStatus.ACTIVE,
                    currency="SAR", vat_rate=15.0)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def location(db, tenant):
    location = Location(tenant_id=tenant.id, name="Downtown", address="King Fahd Rd",
                        status=LocationStatus.ACTIVE)
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


@pytest.fixture
def make_member(db, tenant):
    counter = {"n": 0}

    def _make(status: MemberStatus = MemberStatus.ACTIVE, tenant_id=None, **kwargs) -> Member:
        counter["n"] += 1
        member = Member(
            tenant_id=tenant_id or tenant.id,
            first_name=kwargs.pop("first_name", "Member"),
            last_name=kwargs.pop("last_name", str(counter["n"])),
            email=kwargs.pop("email", f"member{counter['n']}@example.com"),
            status=status,
            **kwargs
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    return _make


@pytest.fixture
def member(make_member):
    return make_member(first_name="Sara", last_name="Ali", email="sara@example.com")


@pytest.fixture
def make_plan(db, tenant):
    def _make(price="300.00", duration_days=30, class_limit=None, freeze_days=14, **kwargs) -> MembershipPlan:
        plan = MembershipPlan(
            tenant_id=tenant.id,
            name=kwargs.pop("name", "Monthly"),
            price=Decimal(price),
            currency="SAR",
            duration_days=duration_days,
            class_limit=class_limit,
            freeze_days=freeze_days,
            is_active=kwargs.pop("is_active", True),
        )
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return plan

    return _make


@pytest.fixture
def plan(make_plan):
    return make_plan()


@pytest.fixture
def free_plan(make_plan):
    return make_plan(price="0.00", name="Community")


@pytest.fixture
def make_subscription(db, tenant):
    def _make(member, plan, status=SubscriptionStatus.ACTIVE, start_date=None, end_date=None,
              classes_remaining=None, freeze_days_remaining=None) -> Subscription:
        start_date = start_date or date.today()
        subscription = Subscription(
            tenant_id=tenant.id,
            member_id=member.id,
            plan_id=plan.id,
            status=status,
            start_date=start_date,
            end_date=end_date or start_date + timedelta(days=plan.duration_days),
            classes_remaining=classes_remaining if classes_remaining is not None else plan.class_limit,
            freeze_days_remaining=freeze_days_remaining if freeze_days_remaining is not None else plan.freeze_days,
            price=plan.price,
            discount_amount=Decimal("0.00"),
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    return _make


# ============ Users ============

@pytest.fixture
def make_user(db, tenant):
    def _make(role: UserRole, email: str, tenant_id=None, member_id=None) -> User:
        user = User(
            tenant_id=tenant_id if tenant_id is not None else (None if role == UserRole.PLATFORM_ADMIN else tenant.id),
            email=email,
            password_hash=PASSWORD_HASH,
            first_name=role.value.title(),
            last_name="User",
            role=role,
            status=UserStatus.ACTIVE,
            member_id=member_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def platform_admin(make_user):
    return make_user(UserRole.PLATFORM_ADMIN, "root@gymhub.example.com")


@pytest.fixture
def club_admin(make_user):
    return make_user(UserRole.CLUB_ADMIN, "admin@irontemple.example.com")


@pytest.fixture
def staff_user(make_user):
    return make_user(UserRole.STAFF, "desk@irontemple.example.com")


@pytest.fixture
def member_user(make_user, member):
    return make_user(UserRole.MEMBER, member.email, member_id=member.id)


@pytest.fixture
def auth_headers(db):
    def _headers(user: User) -> dict:
        token = AuthService(db)._create_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers
