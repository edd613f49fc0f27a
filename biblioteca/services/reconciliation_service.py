import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from biblioteca.billing import get_gateway, ledger
from biblioteca.billing.state_machine import activate_gateway_charge
from biblioteca.domain.billing import utcnow
from biblioteca.errors.domain import DomainError
from biblioteca.extensions import db
from biblioteca.models.payment import PaymentRequest

logger = logging.getLogger(__name__)


def reconcile_pending_payments(batch_size=None):
    """
    Sweep a bounded batch of pending ledger rows against the gateway.

    Rows are taken least recently checked first, and every row that stays
    pending has its ``updated_at`` bumped, so repeated sweeps rotate
    through the whole backlog. A failing row is reported and skipped.
    """
    limit = batch_size or current_app.config["RECONCILE_BATCH_SIZE"]
    rows = ledger.pending_batch(limit)
    gateway = get_gateway()

    report = {
        "success": True,
        "processed": 0,
        "activated": 0,
        "already_active": 0,
        "still_pending": 0,
        "errors": [],
        "details": [],
    }

    # Detach identifiers up front; commits inside the loop expire the ORM rows.
    batch = [(row.id, row.charge_id, row.user_id, row.origin) for row in rows]

    for row_id, charge_id, user_id, origin in batch:
        report["processed"] += 1
        try:
            if user_id and ledger.has_active_subscription(user_id):
                report["already_active"] += 1
                report["details"].append(
                    {"payment_id": charge_id, "user_id": user_id, "result": "already_active"}
                )
                _defer(row_id)
                continue

            charge = gateway.get_charge(charge_id)
            if charge.is_approved:
                activation = activate_gateway_charge(charge, origin)
                report["activated"] += 1
                report["details"].append(
                    {"payment_id": charge_id, "user_id": activation.user_id, "result": "activated"}
                )
                continue

            row = db.session.get(PaymentRequest, row_id)
            ledger.touch_pending(row, charge.status, charge.raw)
            db.session.commit()
            report["still_pending"] += 1
            report["details"].append(
                {"payment_id": charge_id, "user_id": user_id, "result": "pending", "status": charge.status}
            )
        except DomainError as exc:
            db.session.rollback()
            _record_error(report, charge_id, user_id, exc)
            _defer(row_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            _record_error(report, charge_id, user_id, exc)
        except Exception as exc:
            db.session.rollback()
            logger.exception("Unexpected error reconciling charge", extra={"charge_id": charge_id})
            _record_error(report, charge_id, user_id, exc)
            _defer(row_id)

    logger.info(
        "Reconciliation sweep finished",
        extra={k: report[k] for k in ("processed", "activated", "already_active", "still_pending")},
    )
    return report


def _record_error(report, charge_id, user_id, exc):
    logger.warning(
        "Reconciliation failed for charge",
        extra={"charge_id": charge_id, "user_id": user_id, "error": str(exc)},
    )
    report["errors"].append({"payment_id": charge_id, "user_id": user_id, "error": str(exc)})


def _defer(row_id):
    """Move a failing row to the back of the queue."""
    try:
        row = db.session.get(PaymentRequest, row_id)
        if row is not None:
            row.updated_at = utcnow()
            db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not defer pending charge", extra={"row_id": row_id})
