"""
Read side of the subscription store.

Entitlements are cached per user for ``ENTITLEMENT_CACHE_TTL`` seconds.
Every activation and every sign-out drops the cached value, so a cached
answer is at most one TTL old and never outlives a grant.
"""

import logging
from datetime import timedelta

from flask import current_app

from biblioteca.billing import get_gateway, ledger
from biblioteca.billing.cache import invalidate_entitlement, read_entitlement, store_entitlement
from biblioteca.billing.state_machine import activate_charge, activate_gateway_charge
from biblioteca.domain.billing import CHARGE_ORIGINS, FREE_PLAN, PaymentOrigin, utcnow
from biblioteca.errors.domain import DomainError, ValidationError

logger = logging.getLogger(__name__)


def _ttl():
    return current_app.config["ENTITLEMENT_CACHE_TTL"]


def build_entitlement(user_id):
    record = ledger.get_subscription(user_id)
    active = record is not None and record.is_active
    checked_at = utcnow()
    return {
        "user_id": str(user_id),
        "isPaid": active,
        "plan": record.plan if active else FREE_PLAN,
        "status": record.status if record else None,
        "origin": record.origin if record else None,
        "expires_at": record.current_period_end.isoformat() if active and record.current_period_end else None,
        "checked_at": checked_at.isoformat(),
        "stale_after": (checked_at + timedelta(seconds=_ttl())).isoformat(),
    }


def get_entitlement(user_id):
    if not user_id:
        raise ValidationError("user_id is required")

    cached = read_entitlement(user_id)
    if cached is not None:
        return dict(cached, cached=True)

    entitlement = build_entitlement(user_id)
    store_entitlement(user_id, entitlement, _ttl())
    return dict(entitlement, cached=False)


def refresh_entitlement(user_id):
    """
    Re-verify a user's entitlement against the gateway, bypassing the cache.

    Pending charges are re-checked first; if the user is still not active a
    paid ledger row is used to restore access. A gateway failure is
    reported but never revokes an existing entitlement.
    """
    if not user_id:
        raise ValidationError("user_id is required")

    invalidate_entitlement(user_id)
    verification_error = None
    activated = []

    pending = [row.charge_id for row in ledger.pending_charges_for_user(
        user_id, current_app.config["RECONCILE_BATCH_SIZE"]
    )]
    gateway = get_gateway()
    for charge_id in pending:
        try:
            charge = gateway.get_charge(charge_id)
            if charge.is_approved:
                row = ledger.find_charge(charge_id)
                activate_gateway_charge(
                    charge, row.origin if row is not None else PaymentOrigin.PIX_DIRECT
                )
                activated.append(charge.charge_id)
        except DomainError as exc:
            logger.warning(
                "Entitlement refresh could not verify charge",
                extra={"charge_id": charge_id, "user_id": user_id, "error": str(exc)},
            )
            verification_error = str(exc)

    if not ledger.has_active_subscription(user_id):
        paid = ledger.latest_paid_charge(user_id, origins=CHARGE_ORIGINS)
        if paid is not None:
            activate_charge(paid.charge_id, user_id, PaymentOrigin.RESTORED)
            activated.append(paid.charge_id)

    entitlement = build_entitlement(user_id)
    store_entitlement(user_id, entitlement, _ttl())
    return dict(
        entitlement,
        success=True,
        cached=False,
        activated_charges=activated,
        verification_error=verification_error,
    )


def clear_entitlement(user_id):
    invalidate_entitlement(user_id)
    return {"success": True}
