from sqlalchemy.orm import Session
from sqlalchemy import or_
from datetime import timedelta
from typing import Tuple
from jose import jwt, JWTError
import uuid
import logging

from config.settings import settings
from modules.auth.models import RefreshToken
from modules.auth.schemas import LoginRequest, StaffUserCreate, MemberPortalAccessCreate
from modules.users.models import User, UserRole, UserStatus
from modules.members.models import Member
from modules.tenants.models import Tenant, TenantStatus
from shared.utils import hash_password, verify_password, hash_token, utcnow, enum_value
from shared.exceptions import (
    BadRequestException,
    UnauthorizedException,
    NotFoundException,
    DuplicateResourceException,
    InvalidStateException,
)

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def login(self, data: LoginRequest) -> Tuple[User, str, str]:
        """
        Authenticate user and return tokens.
        Returns: (user, access_token, refresh_token)
        """
        user = self.db.query(User).filter(User.email == data.email.lower()).first()
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning(f"❌ Failed login for: {data.email}")
            raise UnauthorizedException("Invalid email or password")

        if user.status != UserStatus.ACTIVE:
            raise UnauthorizedException(f"Account is {user.status.value.lower()}")

        self._check_tenant_active(user)

        # Update last login
        user.last_login_at = utcnow()
        user.login_count = (user.login_count or 0) + 1

        access_token = self._create_access_token(user)
        refresh_token = self._create_refresh_token(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"✅ User logged in: {user.email}")
        return user, access_token, refresh_token

    def refresh(self, refresh_token: str) -> Tuple[User, str, str]:
        """
        Rotate a refresh token: the presented token is revoked and a new pair issued.
        """
        try:
            payload = jwt.decode(
                refresh_token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM]
            )
        except JWTError as e:
            logger.warning(f"⚠️ Invalid refresh token: {str(e)}")
            raise UnauthorizedException("Invalid or expired refresh token")

        if payload.get("type") != "refresh" or not payload.get("jti") or not payload.get("sub"):
            raise UnauthorizedException("Invalid token type")

        stored = self.db.query(RefreshToken).filter(
            RefreshToken.jti_hash == hash_token(payload["jti"])
        ).first()
        if not stored or stored.is_revoked or stored.expires_at <= utcnow():
            raise UnauthorizedException("Invalid or expired refresh token")

        user = self.db.query(User).filter(User.id == payload["sub"]).first()
        if not user or str(user.id) != str(stored.user_id):
            raise UnauthorizedException("User not found")
        if user.status != UserStatus.ACTIVE:
            raise UnauthorizedException(f"Account is {user.status.value.lower()}")
        self._check_tenant_active(user)

        stored.revoked_at = utcnow()
        access_token = self._create_access_token(user)
        new_refresh_token = self._create_refresh_token(user)
        self.db.commit()

        logger.info(f"✅ Token refreshed for: {user.email}")
        return user, access_token, new_refresh_token

    def _check_tenant_active(self, user: User):
        if user.tenant_id:
            tenant = self.db.query(Tenant).filter(Tenant.id == user.tenant_id).first()
            if not tenant or tenant.status != TenantStatus.ACTIVE:
                raise UnauthorizedException("Club account is not active")

    def logout(self, user: User, refresh_token: str) -> None:
        """Revoke the given refresh token. Unknown or foreign tokens are ignored."""
        try:
            payload = jwt.decode(
                refresh_token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
                options={"verify_exp": False}
            )
        except JWTError:
            return

        jti = payload.get("jti")
        if not jti:
            return
        stored = self.db.query(RefreshToken).filter(
            RefreshToken.jti_hash == hash_token(jti),
            RefreshToken.user_id == user.id
        ).first()
        if stored and not stored.is_revoked:
            stored.revoked_at = utcnow()
            self.db.commit()
        logger.info(f"✅ User logged out: {user.email}")

    def _create_access_token(self, user: User) -> str:
        """
        Create JWT access token.
        """
        now = utcnow()
        payload = {
            "sub": str(user.id),
            "tenant_id": str(user.tenant_id) if user.tenant_id else None,
            "role": enum_value(user.role),
            "type": "access",
            "exp": now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
            "iat": now
        }

        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    def _create_refresh_token(self, user: User) -> str:
        """
        Create JWT refresh token (longer expiry) and record its jti so it can be revoked.
        """
        now = utcnow()
        expire = now + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
        jti = uuid.uuid4().hex

        self.db.add(RefreshToken(user_id=user.id, jti_hash=hash_token(jti), expires_at=expire))

        payload = {
            "sub": str(user.id),
            "type": "refresh",
            "jti": jti,
            "exp": expire,
            "iat": now
        }

        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    def change_password(self, user: User, current_password: str, new_password: str) -> bool:
        """
        Change user password. Every outstanding refresh token is revoked.
        """
        if not verify_password(current_password, user.password_hash):
            raise BadRequestException("Current password is incorrect")

        user.password_hash = hash_password(new_password)
        now = utcnow()
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user.id,
            RefreshToken.revoked_at.is_(None)
        ).update({RefreshToken.revoked_at: now}, synchronize_session=False)
        self.db.commit()

        logger.info(f"✅ Password changed for: {user.email}")
        return True

    # ============ Club users ============

    def _check_email_free(self, email: str):
        if self.db.query(User).filter(User.email == email).first():
            raise DuplicateResourceException("Email already registered")

    def create_staff_user(self, tenant_id: str, data: StaffUserCreate) -> User:
        email = data.email.lower()
        self._check_email_free(email)

        user = User(
            tenant_id=tenant_id,
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            status=UserStatus.ACTIVE,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"✅ Staff user created: {user.email} ({user.role.value})")
        return user

    def list_club_users(self, tenant_id: str):
        return self.db.query(User).filter(
            User.tenant_id == tenant_id,
            User.role != UserRole.MEMBER
        ).order_by(User.created_at.asc()).all()

    def set_user_status(self, tenant_id: str, user_id: str, status: UserStatus) -> User:
        user = self.db.query(User).filter(User.id == user_id, User.tenant_id == tenant_id).first()
        if not user:
            raise NotFoundException("User not found")
        user.status = status
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.email} is now {status.value}")
        return user

    def enable_portal_access(self, tenant_id: str, member_id: str, data: MemberPortalAccessCreate) -> User:
        """Give a member a MEMBER login using the member's email"""
        member = self.db.query(Member).filter(
            Member.id == member_id,
            Member.tenant_id == tenant_id,
            Member.deleted_at.is_(None)
        ).first()
        if not member:
            raise NotFoundException("Member not found")
        if not member.is_active:
            raise InvalidStateException("Member is not active")

        existing = self.db.query(User).filter(
            or_(User.member_id == member.id, User.email == member.email.lower())
        ).first()
        if existing:
            raise DuplicateResourceException("Member already has portal access")

        user = User(
            tenant_id=tenant_id,
            email=member.email.lower(),
            password_hash=hash_password(data.password),
            first_name=member.first_name,
            last_name=member.last_name,
            role=UserRole.MEMBER,
            status=UserStatus.ACTIVE,
            member_id=member.id,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"✅ Portal access enabled for member {member.id}")
        return user

    # ============ Housekeeping ============

    def cleanup_tokens(self) -> int:
        """Delete refresh tokens that expired or were revoked before the retention window"""
        cutoff = utcnow() - timedelta(days=settings.TOKEN_RETENTION_DAYS)
        deleted = self.db.query(RefreshToken).filter(
            or_(RefreshToken.expires_at < cutoff, RefreshToken.revoked_at < cutoff)
        ).delete(synchronize_session=False)
        self.db.commit()
        if deleted:
            logger.info(f"🧹 Deleted {deleted} stale refresh token(s)")
        return deleted
