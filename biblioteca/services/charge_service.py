import logging
import re

from flask import current_app

from biblioteca.billing import get_gateway, ledger
from biblioteca.domain.billing import PaymentOrigin, PaymentStatus
from biblioteca.errors.domain import AuthorizationError, ValidationError
from biblioteca.extensions import db

logger = logging.getLogger(__name__)

PAYER_FIELDS = ("name", "email", "tax_id", "phone")


def normalize_payer(payer):
    """
    Validate and normalize payer details.

    Every field must be present; the CPF is reduced to its 11 digits.
    """
    if not isinstance(payer, dict):
        raise ValidationError("Payer details are required")

    cleaned = {key: str(payer.get(key) or "").strip() for key in PAYER_FIELDS}
    missing = [key for key, value in cleaned.items() if not value]
    if missing:
        raise ValidationError("Missing payer fields", fields=missing)

    if "@" not in cleaned["email"]:
        raise ValidationError("Invalid email address", fields=["email"])

    tax_id = re.sub(r"\D", "", cleaned["tax_id"])
    if len(tax_id) != 11:
        raise ValidationError("CPF must have 11 digits", fields=["tax_id"])
    cleaned["tax_id"] = tax_id
    cleaned["phone"] = re.sub(r"\D", "", cleaned["phone"]) or cleaned["phone"]
    return cleaned


def _notification_url(origin):
    if origin == PaymentOrigin.LEGACY_MP:
        return current_app.config.get("LEGACY_NOTIFICATION_URL")
    return current_app.config.get("PIX_NOTIFICATION_URL")


def create_pix_charge(user_id, payer, origin=PaymentOrigin.PIX_DIRECT):
    """
    Create a PIX charge for the lifetime plan on behalf of ``user_id``.

    Nothing is written unless the gateway returns a charge with PIX data.
    """
    if not user_id:
        raise AuthorizationError("An authenticated user is required to create a charge")
    origin = PaymentOrigin(origin)
    payer = normalize_payer(payer)

    config = current_app.config
    charge = get_gateway().create_pix_charge(
        amount=config["LIFETIME_PRICE"],
        description=config["CHARGE_DESCRIPTION"],
        payer=payer,
        user_id=str(user_id),
        notification_url=_notification_url(origin),
        source=origin.value,
    )

    ledger.upsert_payment_request(
        charge.charge_id,
        origin=origin,
        user_id=user_id,
        amount=charge.amount,
        currency=charge.currency,
        status=PaymentStatus.PENDING.value,
        gateway_status=charge.status,
        raw=charge.raw,
    )
    db.session.commit()

    logger.info(
        "PIX charge created",
        extra={"charge_id": charge.charge_id, "user_id": user_id, "origin": origin.value},
    )
    return {
        "success": True,
        "payment_id": charge.charge_id,
        "status": charge.status,
        "qr_code": charge.qr_code,
        "qr_code_base64": charge.qr_code_base64,
        "ticket_url": charge.ticket_url,
        "expires_at": charge.expires_at,
        "amount": charge.amount,
        "currency": charge.currency,
    }
