"""
Gateway push notifications.

The notification body is only a hint: the charge is always re-fetched
from the gateway before anything is written.
"""

import logging

from flask import current_app

from biblioteca.billing import get_gateway, ledger
from biblioteca.billing.mercado_pago import verify_webhook_signature
from biblioteca.billing.state_machine import activate_gateway_charge
from biblioteca.domain.billing import PaymentOrigin, PaymentStatus
from biblioteca.errors.domain import ValidationError, WebhookSignatureError
from biblioteca.extensions import db

logger = logging.getLogger(__name__)

PAYMENT_TOPIC = "payment"


def extract_notification(body, args):
    """
    Return ``(topic, charge_id)`` from a JSON body and/or query string.

    Supports the webhook form (``{"type": "payment", "data": {"id": ...}}``),
    the ``?type=payment&data.id=...`` form and legacy IPN
    (``?topic=payment&id=...``).
    """
    body = body if isinstance(body, dict) else {}
    data = body.get("data") if isinstance(body.get("data"), dict) else {}

    topic = body.get("type") or body.get("topic") or args.get("type") or args.get("topic")
    charge_id = data.get("id") or args.get("data.id") or args.get("id")
    if charge_id is None and topic == PAYMENT_TOPIC:
        charge_id = body.get("id")
    return topic, (str(charge_id) if charge_id not in (None, "") else None)


def check_signature(headers, charge_id):
    secret = current_app.config.get("MERCADO_PAGO_WEBHOOK_SECRET")
    if not secret:
        return
    if not verify_webhook_signature(
        headers.get("x-signature"),
        headers.get("x-request-id"),
        charge_id,
        secret,
    ):
        logger.warning("Webhook signature mismatch", extra={"charge_id": charge_id})
        raise WebhookSignatureError("Invalid webhook signature")


def handle_notification(body, args, headers, origin=PaymentOrigin.PIX_DIRECT):
    topic, charge_id = extract_notification(body, args)

    if topic != PAYMENT_TOPIC:
        logger.info("Ignoring non-payment notification", extra={"topic": topic})
        return {"success": True, "status": "ignored", "type": topic}

    if not charge_id:
        raise ValidationError("Notification has no payment id")

    check_signature(headers, charge_id)

    row = ledger.find_charge(charge_id)
    if row is not None and row.is_paid:
        logger.info("Duplicate notification for paid charge", extra={"charge_id": charge_id})
        return {"success": True, "status": "already_processed", "payment_id": row.charge_id}

    charge = get_gateway().get_charge(charge_id)

    if charge.is_approved:
        activation = activate_gateway_charge(charge, row.origin if row is not None else origin)
        return {
            "success": True,
            "status": "activated",
            "payment_id": charge.charge_id,
            "user_id": activation.user_id,
            "already_active": activation.already_active,
        }

    ledger.upsert_payment_request(
        row.charge_id if row is not None else charge.charge_id,
        origin=row.origin if row is not None else origin,
        user_id=charge.owner_id,
        amount=charge.transaction_amount,
        currency=charge.currency,
        status=PaymentStatus.PENDING.value,
        gateway_status=charge.status,
        raw=charge.raw,
    )
    db.session.commit()
    logger.info(
        "Recorded gateway status",
        extra={"charge_id": charge.charge_id, "status": charge.status},
    )
    return {"success": True, "status": "recorded", "payment_id": charge.charge_id, "gateway_status": charge.status}
