import logging

from biblioteca.billing import get_gateway, ledger
from biblioteca.billing.state_machine import activate_gateway_charge
from biblioteca.domain.billing import FREE_PLAN, GATEWAY_ORIGINS, LIFETIME_PLAN, PaymentOrigin
from biblioteca.errors.domain import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def poll_charge_status(charge_id=None, user_id=None):
    """
    Ask the gateway about a charge and activate it if it has been paid.

    Without ``charge_id`` the caller's most recent charge is used. Amounts
    and dates are only returned to the user the charge belongs to.
    """
    if not charge_id and not user_id:
        raise ValidationError("payment_id or an authenticated user is required")

    row = None
    if charge_id:
        row = ledger.find_charge(charge_id)
    else:
        row = ledger.latest_charge_for_user(user_id, origins=GATEWAY_ORIGINS)
        if row is None:
            raise NotFoundError("No payment found for this user")
        charge_id = row.charge_id

    charge = get_gateway().get_charge(charge_id)
    is_owner = bool(user_id) and str(user_id) == charge.owner_id
    result = {"success": True, "payment_id": charge.charge_id, "status": charge.status}
    if is_owner:
        result.update(
            status_detail=charge.status_detail,
            transaction_amount=charge.transaction_amount,
            currency=charge.currency,
            date_created=charge.date_created,
            date_approved=charge.date_approved,
        )

    if not charge.is_approved:
        logger.debug("Charge not paid yet", extra={"charge_id": charge_id, "status": charge.status})
        result.update(isPaid=False, plan=FREE_PLAN)
        return result

    origin = row.origin if row is not None else PaymentOrigin.PIX_DIRECT
    activation = activate_gateway_charge(charge, origin)
    result.update(isPaid=True, plan=LIFETIME_PLAN)
    if is_owner:
        result.update(already_active=activation.already_active, expires_at=activation.expires_at)
    return result
