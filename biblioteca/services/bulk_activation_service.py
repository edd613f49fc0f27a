import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from biblioteca.billing import ledger
from biblioteca.billing.state_machine import activate_charge
from biblioteca.errors.domain import DomainError
from biblioteca.extensions import db
from biblioteca.middleware.admin_guard import require_admin

logger = logging.getLogger(__name__)


def activate_paid_users(requester_id):
    """
    Grant access to every user holding a paid charge without an active record.

    Restricted to administrators; the allow-list check happens before the
    ledger is read.
    """
    require_admin(requester_id)

    page_size = current_app.config["BULK_ACTIVATION_PAGE_SIZE"]
    rows = [
        (row.charge_id, row.user_id, row.origin)
        for row in ledger.iter_paid_charges(page_size)
    ]

    summary = {
        "success": True,
        "activated_count": 0,
        "already_active": 0,
        "total_paid_payments": len(rows),
        "results": [],
    }
    seen = set()

    for charge_id, user_id, origin in rows:
        if not user_id:
            summary["results"].append(
                {"user_id": None, "payment_id": charge_id, "success": False, "error": "missing user_id"}
            )
            continue
        if user_id in seen or ledger.has_active_subscription(user_id):
            summary["already_active"] += 1
            seen.add(user_id)
            continue
        try:
            activate_charge(charge_id, user_id, origin)
        except (DomainError, SQLAlchemyError) as exc:
            db.session.rollback()
            logger.warning(
                "Bulk activation failed",
                extra={"charge_id": charge_id, "user_id": user_id, "error": str(exc)},
            )
            summary["results"].append(
                {"user_id": user_id, "payment_id": charge_id, "success": False, "error": str(exc)}
            )
            continue
        except Exception as exc:
            db.session.rollback()
            logger.exception("Unexpected error in bulk activation", extra={"charge_id": charge_id, "user_id": user_id})
            summary["results"].append(
                {"user_id": user_id, "payment_id": charge_id, "success": False, "error": str(exc)}
            )
            continue
        seen.add(user_id)
        summary["activated_count"] += 1
        summary["results"].append({"user_id": user_id, "payment_id": charge_id, "success": True})

    logger.info(
        "Bulk activation finished",
        extra={
            "requested_by": requester_id,
            "activated_count": summary["activated_count"],
            "total_paid_payments": summary["total_paid_payments"],
        },
    )
    return summary
