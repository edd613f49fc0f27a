import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from biblioteca.billing import ledger
from biblioteca.billing.cache import invalidate_entitlement
from biblioteca.billing.mercado_pago import GatewayCharge
from biblioteca.domain.billing import (
    PaymentOrigin,
    PaymentStatus,
    lifetime_expiry,
    origin_value,
    utcnow,
)
from biblioteca.errors.domain import AttributionError, ConflictError
from biblioteca.extensions import db

logger = logging.getLogger(__name__)


@dataclass
class ActivationResult:
    charge_id: str
    user_id: str
    origin: str
    already_active: bool
    expires_at: Optional[str] = None

    def to_dict(self):
        return {
            "charge_id": self.charge_id,
            "user_id": self.user_id,
            "origin": self.origin,
            "already_active": self.already_active,
            "expires_at": self.expires_at,
        }


def activate_charge(charge_id, user_id, origin, charge: Optional[GatewayCharge] = None) -> ActivationResult:
    """
    Mark ``charge_id`` paid and grant ``user_id`` a lifetime subscription.

    This is the only place entitlements are granted. It is idempotent:
    repeating it for a charge that is already paid with an active
    subscription writes nothing. Both writes are upserts on unique keys,
    so concurrent callers converge on one ledger row and one subscription.

    ``origin`` is recorded on the subscription; the ledger row keeps the
    origin it was created with.
    """
    if not user_id:
        logger.error("Refusing to activate unattributed charge", extra={"charge_id": charge_id})
        raise AttributionError(
            f"Charge {charge_id} has no owning user",
            payment_id=str(charge_id),
        )

    user_id = str(user_id)
    origin = origin_value(origin)
    existing = ledger.find_charge(charge_id)
    if existing is not None:
        charge_id = existing.charge_id

    subscription = ledger.get_subscription(user_id)
    if existing is not None and existing.is_paid and subscription is not None and subscription.is_active:
        logger.info(
            "Charge already activated",
            extra={"charge_id": charge_id, "user_id": user_id},
        )
        return ActivationResult(
            charge_id=str(charge_id),
            user_id=user_id,
            origin=subscription.origin,
            already_active=True,
            expires_at=_iso(subscription.current_period_end),
        )

    now = utcnow()
    expires_at = lifetime_expiry(now)
    ledger_origin = existing.origin if existing is not None else _ledger_origin(origin)

    try:
        ledger.upsert_payment_request(
            charge_id,
            origin=ledger_origin,
            user_id=user_id,
            amount=charge.transaction_amount if charge else None,
            currency=charge.currency if charge else None,
            status=PaymentStatus.PAID.value,
            gateway_status=charge.status if charge else None,
            raw=charge.raw if charge else None,
            paid_at=now,
        )
        ledger.upsert_subscription(
            user_id,
            origin=origin,
            source_charge_id=charge_id,
            expires_at=expires_at,
        )
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Could not activate charge {charge_id}: {exc.orig}") from exc
    except SQLAlchemyError:
        db.session.rollback()
        raise

    invalidate_entitlement(user_id)
    logger.info(
        "Lifetime access granted",
        extra={"charge_id": charge_id, "user_id": user_id, "origin": origin},
    )
    return ActivationResult(
        charge_id=str(charge_id),
        user_id=user_id,
        origin=origin,
        already_active=False,
        expires_at=_iso(expires_at),
    )


def activate_gateway_charge(charge: GatewayCharge, origin) -> ActivationResult:
    """
    Activate an approved gateway charge for the user it references.

    The owner is always the charge's ``external_reference``. The ledger's
    ``user_id`` is never used as a substitute, so every entry point reaches
    the same answer for the same charge.
    """
    return activate_charge(charge.charge_id, charge.owner_id, origin, charge=charge)


def _ledger_origin(origin):
    # A restore never creates a ledger row of its own kind.
    if origin == PaymentOrigin.RESTORED.value:
        return PaymentOrigin.MANUAL.value
    return origin


def _iso(value):
    return value.isoformat() if value else None
