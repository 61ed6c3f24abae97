from sqlalchemy import Column, String, DateTime, ForeignKey
from database.base import Base
from database.mixins import UUIDMixin, TimestampMixin, UUID


class RefreshToken(Base, UUIDMixin, TimestampMixin):
    """Issued refresh tokens, keyed by the hash of their jti so they can be rotated and revoked"""
    __tablename__ = "refresh_tokens"

    user_id = Column(UUID(), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    jti_hash = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    revoked_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} revoked={self.is_revoked}>"
