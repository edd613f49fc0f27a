import logging
import uuid

from biblioteca.billing import ledger
from biblioteca.billing.state_machine import activate_charge
from biblioteca.domain.billing import PaymentOrigin, PaymentStatus, SubscriptionStatus
from biblioteca.errors.domain import ValidationError
from biblioteca.extensions import db
from biblioteca.middleware.admin_guard import require_admin
from biblioteca.models.payment import PaymentRequest
from biblioteca.models.subscription import SubscriptionRecord

logger = logging.getLogger(__name__)


def grant_manual_access(requester_id, user_id, note=None):
    """Give ``user_id`` lifetime access without a gateway charge."""
    require_admin(requester_id)
    if not user_id:
        raise ValidationError("user_id is required")

    charge_id = f"manual-{uuid.uuid4()}"
    ledger.upsert_payment_request(
        charge_id,
        origin=PaymentOrigin.MANUAL,
        user_id=user_id,
        amount=0,
        status=PaymentStatus.PENDING.value,
        raw={"granted_by": str(requester_id), "note": note},
    )
    db.session.commit()

    activation = activate_charge(charge_id, user_id, PaymentOrigin.MANUAL)
    logger.info(
        "Manual lifetime access granted",
        extra={"user_id": user_id, "charge_id": charge_id, "requested_by": requester_id},
    )
    return {"success": True, "activation": activation.to_dict()}


def list_paid_users(requester_id):
    """
    Merge active subscriptions and paid ledger rows into one row per user,
    most recent activity first.
    """
    require_admin(requester_id)

    users = {}
    for record in SubscriptionRecord.query.filter_by(status=SubscriptionStatus.ACTIVE.value).all():
        users[record.user_id] = {
            "user_id": record.user_id,
            "subscription_status": record.status,
            "origin": record.origin,
            "expires_at": record.current_period_end.isoformat() if record.current_period_end else None,
            "payments": [],
            "total_paid": 0.0,
            "last_event_at": record.updated_at,
        }

    paid_rows = PaymentRequest.query.filter_by(status=PaymentStatus.PAID.value).all()
    for row in paid_rows:
        if not row.user_id:
            continue
        entry = users.setdefault(row.user_id, {
            "user_id": row.user_id,
            "subscription_status": None,
            "origin": None,
            "expires_at": None,
            "payments": [],
            "total_paid": 0.0,
            "last_event_at": None,
        })
        entry["payments"].append({
            "payment_id": row.charge_id,
            "amount": row.amount,
            "origin": row.origin,
            "paid_at": row.paid_at.isoformat() if row.paid_at else None,
        })
        entry["total_paid"] += float(row.amount or 0)
        event_at = row.paid_at or row.updated_at
        if event_at and (entry["last_event_at"] is None or event_at > entry["last_event_at"]):
            entry["last_event_at"] = event_at

    ordered = sorted(
        users.values(),
        key=lambda u: u["last_event_at"].isoformat() if u["last_event_at"] else "",
        reverse=True,
    )
    for entry in ordered:
        entry["last_event_at"] = entry["last_event_at"].isoformat() if entry["last_event_at"] else None

    return {
        "success": True,
        "total_users": len(ordered),
        "total_paid_payments": len(paid_rows),
        "users": ordered,
    }
