import logging

from biblioteca.billing import ledger
from biblioteca.billing.state_machine import activate_charge
from biblioteca.domain.billing import CHARGE_ORIGINS, PaymentOrigin
from biblioteca.errors.domain import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def restore_access(user_id):
    """
    Re-grant access to a user who has a paid charge but no active record.

    Requires a paid ledger row as evidence; nothing is written otherwise.
    """
    if not user_id:
        raise ValidationError("user_id is required")

    subscription = ledger.get_subscription(user_id)
    if subscription is not None and subscription.is_active:
        return {
            "success": True,
            "message": "Access already active",
            "subscription": subscription.to_dict(),
        }

    paid = ledger.latest_paid_charge(user_id, origins=CHARGE_ORIGINS)
    if paid is None:
        logger.info("No paid charge to restore from", extra={"user_id": user_id})
        raise NotFoundError("No approved payment found for this user")

    payment_info = {
        "payment_id": paid.charge_id,
        "amount": paid.amount,
        "paid_at": paid.paid_at.isoformat() if paid.paid_at else None,
    }
    activation = activate_charge(paid.charge_id, user_id, PaymentOrigin.RESTORED)
    logger.info("Access restored", extra={"user_id": user_id, "charge_id": paid.charge_id})

    subscription = ledger.get_subscription(user_id)
    return {
        "success": True,
        "message": "Access restored",
        "already_active": activation.already_active,
        "subscription": subscription.to_dict() if subscription else None,
        "payment_info": payment_info,
    }
