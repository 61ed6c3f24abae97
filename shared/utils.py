import hashlib
import hmac
import math
import secrets
import string
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Union

import bcrypt

from config.settings import settings

TWO_PLACES = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        return False


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def generate_secret(length: int = 32) -> str:
    """Generate a random URL-safe secret"""
    return secrets.token_urlsafe(length)


def generate_code(length: int = 8, uppercase: bool = True) -> str:
    """Generate a random alphanumeric code"""
    characters = string.ascii_uppercase + string.digits if uppercase else string.ascii_letters + string.digits
    return ''.join(secrets.choice(characters) for _ in range(length))


def sign_webhook_payload(payload: str, secret: str, timestamp: Optional[str] = None) -> str:
    """HMAC-SHA256 hex digest of the payload, prefixed with the timestamp when given"""
    message = f"{timestamp}.{payload}" if timestamp else payload
    return hmac.new(
        secret.encode('utf-8'),
        message.encode('utf-8'),
        hashlib.sha256
    ).hexdigest()


def verify_webhook_signature(payload: str, signature: str, secret: str, timestamp: Optional[str] = None) -> bool:
    """Verify webhook signature using HMAC-SHA256"""
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected_signature = sign_webhook_payload(payload, secret, timestamp)
    return hmac.compare_digest(signature, expected_signature)


def generate_unique_number(prefix: str, year: int, sequence: int) -> str:
    """Generate unique number with prefix (e.g., INV-2026-000123)"""
    return f"{prefix}-{year}-{sequence:06d}"


def to_decimal(value: Union[Decimal, float, int, str, None]) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Union[Decimal, float, int, str, None]) -> Decimal:
    """Round half-up to 2 decimal places"""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_tax(amount: Decimal, tax_rate: Union[Decimal, float]) -> Decimal:
    """Calculate tax amount"""
    return round_money(to_decimal(amount) * to_decimal(tax_rate) / Decimal("100"))


def format_currency(amount: Union[Decimal, float], currency: str = "SAR") -> str:
    """Format currency amount"""
    return f"{float(amount):,.2f} {currency}"


def clamp_page_size(per_page: Optional[int]) -> int:
    if not per_page or per_page < 1:
        return settings.DEFAULT_PAGE_SIZE
    return min(per_page, settings.MAX_PAGE_SIZE)


def paginate(query, page: int = 1, per_page: Optional[int] = None) -> dict:
    """Apply offset pagination to a query and build the PaginatedResponse payload"""
    page = max(page or 1, 1)
    per_page = clamp_page_size(per_page)
    total = query.count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    total_pages = math.ceil(total / per_page) if total else 0
    return {
        "items": items,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def enum_value(value: Any) -> Any:
    return value.value if hasattr(value, 'value') else value
