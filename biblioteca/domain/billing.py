from datetime import datetime, timezone
from enum import Enum

LIFETIME_PLAN = "lifetime"
FREE_PLAN = "free"
LIFETIME_YEARS = 100

# Gateway statuses that mean the money has been received.
APPROVED_STATUSES = frozenset({"approved", "accredited"})


class PaymentOrigin(str, Enum):
    PIX_DIRECT = "pix_direct"
    LEGACY_MP = "legacy_mp"
    MANUAL = "manual"
    RESTORED = "restored"


# Origins a PaymentRequest row can carry; RESTORED only ever appears on subscriptions.
CHARGE_ORIGINS = (PaymentOrigin.PIX_DIRECT, PaymentOrigin.LEGACY_MP, PaymentOrigin.MANUAL)
GATEWAY_ORIGINS = (PaymentOrigin.PIX_DIRECT, PaymentOrigin.LEGACY_MP)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the tables store datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_approved(status: str | None) -> bool:
    return (status or "").lower() in APPROVED_STATUSES


def lifetime_expiry(now: datetime | None = None) -> datetime:
    now = now or utcnow()
    try:
        return now.replace(year=now.year + LIFETIME_YEARS)
    except ValueError:
        # Feb 29 in a year whose centennial is not a leap year
        return now.replace(year=now.year + LIFETIME_YEARS, day=28)


def origin_value(origin) -> str:
    return origin.value if isinstance(origin, PaymentOrigin) else PaymentOrigin(origin).value
