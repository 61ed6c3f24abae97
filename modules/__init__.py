# Import all models to ensure they're registered with SQLAlchemy
# Tenants first (every club-scoped table points at tenants.id)
from .tenants.models import Tenant, Location, TenantStatus, LocationStatus

from .members.models import Member, MemberStatus
from .users.models import User, UserRole, UserStatus
from .auth.models import RefreshToken
from .memberships.models import MembershipPlan, Subscription, SubscriptionStatus
from .invoices.models import Invoice, InvoiceLineItem, InvoiceSequence, InvoiceStatus, PaymentMethod
from .attendance.models import AttendanceRecord, AttendanceStatus, CheckInMethod
from .loyalty.models import LoyaltyConfig, MemberPoints, PointsTransaction, PointsTransactionType, LoyaltyTier
from .referrals.models import ReferralConfig, ReferralCode, Referral, ReferralStatus
from .vouchers.models import Voucher, VoucherUsage, DiscountType
from .webhooks.models import Webhook, WebhookDelivery, DeliveryStatus, WebhookEventType
from .notifications.models import Notification, NotificationType, NotificationEntityType
